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

"""Flattens an element's parameter bag into (group, name, value) entries.

Three key shapes are recognised:

  * `"Group.Leaf"` keys, split on the first dot.
  * Plain keys, placed in the default group.
  * Keys whose value is a mapping or a JSON-object string (e.g. an IFC
    property set). Each nested key becomes its own entry and the container
    itself is not emitted.
"""

from __future__ import annotations

import collections
from collections.abc import Mapping
import dataclasses
from typing import Any

from bimschedule import values
from bimschedule.core import data


@dataclasses.dataclass(frozen=True)
class FlatEntry:
  """One flattened parameter.

  Attributes:
    id: Full key of the parameter, e.g. "Pset_WallCommon.IsExternal".
    group: Group the parameter belongs to.
    name: Leaf name.
    value: Raw (not yet normalized) value.
    is_nested: Whether the entry was expanded from a nested object.
    parent_key: Key of the containing object for nested entries.
  """

  id: str
  group: str
  name: str
  value: Any
  is_nested: bool = False
  parent_key: str | None = None


@dataclasses.dataclass
class FlattenStats:
  """Counters collected while flattening, for diagnostics only."""

  groups: collections.Counter = dataclasses.field(
      default_factory=collections.Counter
  )
  skipped_system: int = 0
  nested_expanded: int = 0

  def update(self, other: FlattenStats) -> None:
    self.groups.update(other.groups)
    self.skipped_system += other.skipped_system
    self.nested_expanded += other.nested_expanded


@dataclasses.dataclass(frozen=True)
class FlattenResult:
  entries: tuple[FlatEntry, ...]
  issues: tuple[data.ExtractionIssue, ...]
  stats: FlattenStats


def split_key(key: str, default_group: str) -> tuple[str, str]:
  """Splits a `Group.Leaf` key on its first dot.

  Args:
    key: Parameter key.
    default_group: Group used when the key has no usable group prefix.

  Returns:
    A (group, name) pair.
  """
  group, sep, name = key.partition(".")
  if sep and group and name:
    return group, name
  return default_group, key


def flatten_parameters(
    parameters: Mapping[str, Any],
    *,
    reserved_prefix: str = "__",
    default_group: str = data.DEFAULT_GROUP,
    element_id: str | None = None,
) -> FlattenResult:
  """Flattens a parameter bag.

  Args:
    parameters: Mapping of parameter key to raw value.
    reserved_prefix: Keys starting with this prefix are internal and skipped.
    default_group: Group for keys without a dotted group prefix.
    element_id: Id of the owning element, attached to reported issues.

  Returns:
    The flattened entries in insertion order, any issues met on the way and
    per-group statistics.
  """
  entries: list[FlatEntry] = []
  issues: list[data.ExtractionIssue] = []
  stats = FlattenStats()

  for key, raw_value in parameters.items():
    key = str(key)
    if key.startswith(reserved_prefix):
      stats.skipped_system += 1
      continue

    group, name = split_key(key, default_group)
    decoded = values.decode_value(raw_value)
    if decoded.error is not None:
      issues.append(
          data.ExtractionIssue(
              kind=data.IssueKind.MALFORMED_JSON,
              key=key,
              message=f"Could not parse JSON value: {decoded.error}",
              element_id=element_id,
          )
      )

    decoded_value = decoded.value
    if isinstance(decoded_value, values.Nested):
      # An undotted container key names its own group.
      nested_group = group if name != key else key
      stats.nested_expanded += 1
      for nested_key, nested_value in decoded_value.mapping.items():
        nested_key = str(nested_key)
        if nested_key.startswith(reserved_prefix):
          stats.skipped_system += 1
          continue
        entries.append(
            FlatEntry(
                id=f"{key}.{nested_key}",
                group=nested_group,
                name=nested_key,
                value=nested_value,
                is_nested=True,
                parent_key=key,
            )
        )
        stats.groups[nested_group] += 1
      continue

    if isinstance(decoded_value, values.Equation):
      value = decoded_value.equation
    else:
      value = decoded_value.value
    entries.append(FlatEntry(id=key, group=group, name=name, value=value))
    stats.groups[group] += 1

  return FlattenResult(
      entries=tuple(entries), issues=tuple(issues), stats=stats
  )
