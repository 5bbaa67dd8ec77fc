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

"""Deduplicates raw parameters into available parameters.

Raw parameters of one partition are grouped by case-insensitive name. The first
parameter of a group fixes the identity of the merged parameter. Values are
merged monotonically: the first known value wins and an empty value never
replaces a known one.
"""

from __future__ import annotations

from collections.abc import Iterable
import dataclasses
from typing import Any

from absl import logging

from bimschedule import classification
from bimschedule import type_inference
from bimschedule import values
from bimschedule.core import data
from bimschedule.core import exceptions


@dataclasses.dataclass(frozen=True)
class MergeResult:
  bim: tuple[data.AvailableBimParameter, ...]
  user: tuple[data.AvailableUserParameter, ...]
  issues: tuple[data.ExtractionIssue, ...]


@dataclasses.dataclass
class _Accumulator:
  first: data.RawParameter
  value: Any = None


def merge_value(current: Any, incoming: Any) -> Any:
  """Returns the merged value of two occurrences of the same parameter."""
  if current is None:
    return incoming
  return current


def _group_by_name(
    raw: Iterable[data.RawParameter],
    issues: list[data.ExtractionIssue],
) -> list[_Accumulator]:
  groups: dict[str, _Accumulator] = {}
  for param in raw:
    if param.metadata.is_system:
      issues.append(
          data.ExtractionIssue(
              kind=data.IssueKind.SYSTEM_KEY,
              key=param.id,
              message="System parameter excluded",
              element_id=param.metadata.element_id,
          )
      )
      continue
    key = param.name.casefold()
    acc = groups.get(key)
    if acc is None:
      groups[key] = _Accumulator(first=param, value=param.value)
    else:
      acc.value = merge_value(acc.value, param.value)
  return list(groups.values())


def merge_raw_parameters(
    raw: Iterable[data.RawParameter],
    *,
    identity_group: str = type_inference.IDENTITY_GROUP,
) -> MergeResult:
  """Merges the raw parameters of one partition.

  Args:
    raw: Raw parameters of a single partition.
    identity_group: Name of the identity-data group, used for type inference.

  Returns:
    The available BIM and user parameters in first-seen order, plus issues.

  Raises:
    ProcessingError: If the batch is non-empty and every parameter failed.
  """
  issues: list[data.ExtractionIssue] = []
  groups = _group_by_name(raw, issues)
  bim: list[data.AvailableBimParameter] = []
  user: list[data.AvailableUserParameter] = []
  failures = 0

  for acc in groups:
    first = acc.first
    try:
      try:
        value = values.to_parameter_value(acc.value)
        value_type = type_inference.infer_type(
            value,
            key=first.id,
            group=first.source_group,
            identity_group=identity_group,
        )
      except exceptions.ValueConversionError as e:
        logging.warning("Falling back to string for %r: %s", first.id, e)
        issues.append(
            data.ExtractionIssue(
                kind=data.IssueKind.NON_SERIALIZABLE,
                key=first.id,
                message=str(e),
                element_id=first.metadata.element_id,
            )
        )
        value = values.stringify_value(acc.value)
        value_type = data.ValueType.STRING

      source = classification.classify_source(first)
      if source.is_bim:
        bim.append(
            data.AvailableBimParameter(
                id=first.id,
                name=first.name,
                type=value_type,
                value=value,
                source_group=first.source_group,
                current_group=first.source_group,
                metadata=first.metadata,
            )
        )
      else:
        user.append(
            data.AvailableUserParameter(
                id=first.id,
                name=first.name,
                type=value_type,
                value=value,
                group=first.source_group,
            )
        )
    except Exception as e:  # pylint: disable=broad-exception-caught
      failures += 1
      logging.warning("Skipping parameter %r: %s", first.id, e)
      issues.append(
          data.ExtractionIssue(
              kind=data.IssueKind.PROCESSING_FAILED,
              key=first.id,
              message=str(e),
              element_id=first.metadata.element_id,
          )
      )

  if groups and failures == len(groups):
    raise exceptions.ProcessingError(
        f"All {failures} parameters failed to process"
    )

  logging.debug(
      "Merged %d parameters into %d BIM and %d user parameters",
      len(groups),
      len(bim),
      len(user),
  )
  return MergeResult(bim=tuple(bim), user=tuple(user), issues=tuple(issues))
