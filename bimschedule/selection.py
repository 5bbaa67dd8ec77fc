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

"""Reconciles the user's parameter selection with freshly available parameters.

Every function here returns a new tuple sorted by `order` whose orders are
exactly `0..n-1`.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
import dataclasses

from bimschedule.core import data
from bimschedule.core import exceptions

Selection = tuple[data.SelectedParameter, ...]


def _sort_key(param: data.AvailableParameter) -> tuple[str, str, str]:
  return (param.group.casefold(), param.name.casefold(), param.id)


def renumber(selected: Iterable[data.SelectedParameter]) -> Selection:
  """Sorts by order, keeping relative order of ties, and renumbers."""
  ordered = sorted(selected, key=lambda p: p.order)
  return tuple(
      p if p.order == i else dataclasses.replace(p, order=i)
      for i, p in enumerate(ordered)
  )


def to_selected(
    param: data.AvailableParameter, order: int
) -> data.SelectedParameter:
  return data.SelectedParameter(
      id=param.id,
      name=param.name,
      kind=param.kind,
      type=param.type,
      value=param.value,
      group=param.group,
      visible=True,
      order=order,
  )


def reconcile_selection(
    available: Sequence[data.AvailableParameter],
    previous: Sequence[data.SelectedParameter] = (),
) -> Selection:
  """Merges the available parameters into the previous selection.

  Existing entries keep their visibility, order and group. Their name, type
  and kind are refreshed. BIM values are refreshed too, while user-entered
  values are kept. New parameters are appended after the current maximum
  order and entries no longer available are dropped.

  The result is always renumbered to contiguous zero-based orders, so a
  surviving entry keeps its relative position but not necessarily its number:
  a lone previous entry at order 1 comes back at order 0.

  Args:
    available: Available parameters of one partition.
    previous: The selection produced by the previous pass.

  Returns:
    The reconciled selection.
  """
  by_id = {p.id: p for p in previous}
  next_order = max((p.order for p in previous), default=-1) + 1
  result: list[data.SelectedParameter] = []

  for param in sorted(available, key=_sort_key):
    existing = by_id.get(param.id)
    if existing is None:
      result.append(to_selected(param, next_order))
      next_order += 1
      continue
    result.append(
        dataclasses.replace(
            existing,
            name=param.name,
            type=param.type,
            kind=param.kind,
            value=param.value if param.kind == "bim" else existing.value,
        )
    )

  return renumber(result)


def _index_of(selected: Sequence[data.SelectedParameter], param_id: str) -> int:
  for i, param in enumerate(selected):
    if param.id == param_id:
      return i
  raise exceptions.ParameterNotFoundError(
      f"Parameter {param_id!r} is not selected", param_id
  )


def set_visibility(
    selected: Sequence[data.SelectedParameter], param_id: str, visible: bool
) -> Selection:
  """Shows or hides one parameter.

  Raises:
    ParameterNotFoundError: If `param_id` is not selected.
  """
  ordered = list(renumber(selected))
  index = _index_of(ordered, param_id)
  ordered[index] = dataclasses.replace(ordered[index], visible=visible)
  return tuple(ordered)


def move_parameter(
    selected: Sequence[data.SelectedParameter], param_id: str, new_order: int
) -> Selection:
  """Moves one parameter to `new_order`, clamped to the valid range.

  Raises:
    ParameterNotFoundError: If `param_id` is not selected.
  """
  ordered = list(renumber(selected))
  param = ordered.pop(_index_of(ordered, param_id))
  position = min(max(new_order, 0), len(ordered))
  ordered.insert(position, param)
  return tuple(
      dataclasses.replace(p, order=i) for i, p in enumerate(ordered)
  )


def remove_parameter(
    selected: Sequence[data.SelectedParameter], param_id: str
) -> Selection:
  """Removes one parameter.

  Raises:
    ParameterNotFoundError: If `param_id` is not selected.
  """
  ordered = list(renumber(selected))
  del ordered[_index_of(ordered, param_id)]
  return renumber(ordered)


def append_parameter(
    selected: Sequence[data.SelectedParameter],
    param: data.AvailableParameter,
) -> Selection:
  ordered = renumber(selected)
  return ordered + (to_selected(param, len(ordered)),)
