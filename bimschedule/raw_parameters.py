# Copyright 2025 Google LLC.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Builds raw parameters from model elements."""

from __future__ import annotations

from collections.abc import Sequence
import dataclasses

from absl import logging

from bimschedule import classification
from bimschedule import flattening
from bimschedule import values
from bimschedule.core import data


@dataclasses.dataclass(frozen=True)
class RawExtraction:
  """Output of one raw extraction.

  Attributes:
    raw: Raw parameters of all classified elements, in element order.
    issues: Issues met while flattening and classifying.
    relations: Host relationships between parents and children.
    stats: Aggregated flattening statistics.
  """

  raw: tuple[data.RawParameter, ...]
  issues: tuple[data.ExtractionIssue, ...]
  relations: data.ElementRelations
  stats: flattening.FlattenStats


def extract_raw_parameters(
    elements: Sequence[data.Element],
    categories: classification.CategoryConfig,
    *,
    reserved_prefix: str = "__",
    default_group: str = data.DEFAULT_GROUP,
) -> RawExtraction:
  """Flattens and normalizes the parameters of every element.

  Each element is classified once. Elements that are neither parents nor
  children are skipped and reported.

  Args:
    elements: The elements to extract from.
    categories: Category lists used to classify elements.
    reserved_prefix: Prefix of internal parameter names.
    default_group: Group for ungrouped parameter keys.

  Returns:
    A RawExtraction.
  """
  roles = classification.partition_roles(elements, categories)
  raw: list[data.RawParameter] = []
  issues: list[data.ExtractionIssue] = []
  stats = flattening.FlattenStats()
  dropped_empty = 0

  for element in elements:
    role = roles[element.id]
    if role is data.ElementRole.UNCLASSIFIED:
      issues.append(
          data.ExtractionIssue(
              kind=data.IssueKind.UNCLASSIFIED_ELEMENT,
              key=element.category,
              message=(
                  f"Category {element.category!r} is neither a parent nor a"
                  " child category"
              ),
              element_id=element.id,
          )
      )
      continue

    flat = flattening.flatten_parameters(
        element.parameters,
        reserved_prefix=reserved_prefix,
        default_group=default_group,
        element_id=element.id,
    )
    issues.extend(flat.issues)
    stats.update(flat.stats)

    for entry in flat.entries:
      value = values.normalize_value(entry.value)
      if value is None:
        dropped_empty += 1
        continue
      raw.append(
          data.RawParameter(
              id=entry.id,
              name=entry.name,
              value=value,
              source_group=entry.group,
              metadata=data.RawParameterMetadata(
                  category=element.category,
                  is_system=entry.name.startswith(reserved_prefix),
                  is_parent=role is data.ElementRole.PARENT,
                  is_nested=entry.is_nested,
                  parent_key=entry.parent_key,
                  element_id=element.id,
                  is_bim_origin=True,
              ),
          )
      )

  relations, relation_issues = classification.resolve_relations(
      elements, roles
  )
  issues.extend(relation_issues)

  logging.info(
      "Extracted %d raw parameters from %d elements (%d empty values dropped,"
      " %d system keys skipped)",
      len(raw),
      len(elements),
      dropped_empty,
      stats.skipped_system,
  )
  for group, count in stats.groups.most_common():
    logging.debug("Group %r: %d parameters", group, count)

  return RawExtraction(
      raw=tuple(raw),
      issues=tuple(issues),
      relations=relations,
      stats=stats,
  )
