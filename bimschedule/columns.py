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

"""Builds table column definitions from the selected parameters."""

from __future__ import annotations

from collections.abc import Sequence
import dataclasses

from bimschedule.core import data
from bimschedule.core import exceptions

Columns = tuple[data.ColumnDefinition, ...]

_UNSET = object()


def new_column(param: data.SelectedParameter) -> data.ColumnDefinition:
  return data.ColumnDefinition(
      id=param.id,
      name=param.name,
      field=param.id,
      header=param.name,
      type=param.type,
      group=param.group,
      visible=param.visible,
      order=param.order,
      kind=param.kind,
      value=param.value,
      removable=param.kind == "user",
  )


def build_columns(
    selected: Sequence[data.SelectedParameter],
    existing: Sequence[data.ColumnDefinition] = (),
) -> Columns:
  """Builds one column per selected parameter.

  Display settings of existing columns survive the rebuild: width, sortable
  and filterable are always kept, the header only when the user renamed it.

  Args:
    selected: The selected parameters.
    existing: Columns produced by the previous build.

  Returns:
    The columns, in the order of `selected`.
  """
  previous = {c.id: c for c in existing}
  columns = []
  for param in selected:
    column = new_column(param)
    old = previous.get(param.id)
    if old is not None:
      header = old.header if old.header != old.name else column.header
      column = dataclasses.replace(
          column,
          header=header,
          width=old.width,
          sortable=old.sortable,
          filterable=old.filterable,
      )
    columns.append(column)
  return tuple(columns)


def update_column(
    columns: Sequence[data.ColumnDefinition],
    column_id: str,
    *,
    header=_UNSET,
    width=_UNSET,
    sortable=_UNSET,
    filterable=_UNSET,
) -> Columns:
  """Sets display fields of one column.

  Only the fields passed explicitly are changed.

  Raises:
    ParameterNotFoundError: If no column has id `column_id`.
  """
  changes = {
      name: value
      for name, value in (
          ("header", header),
          ("width", width),
          ("sortable", sortable),
          ("filterable", filterable),
      )
      if value is not _UNSET
  }
  updated = []
  found = False
  for column in columns:
    if column.id == column_id:
      column = dataclasses.replace(column, **changes)
      found = True
    updated.append(column)
  if not found:
    raise exceptions.ParameterNotFoundError(
        f"No column with id {column_id!r}", column_id
    )
  return tuple(updated)
