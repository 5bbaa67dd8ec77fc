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

"""Infers the value type of a parameter from its key, group and value."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Final

from bimschedule.core import data

IDENTIFIER_MARKERS: Final[tuple[str, ...]] = ("Id", "GlobalId")
CLASSIFIER_MARKERS: Final[tuple[str, ...]] = ("Type", "Category")
IDENTITY_GROUP: Final[str] = "Identity Data"


def infer_type(
    value: Any,
    *,
    key: str,
    group: str,
    identity_group: str = IDENTITY_GROUP,
) -> data.ValueType:
  """Returns the value type of a parameter.

  The first matching rule wins:

    1. Identifier keys ("Id", "GlobalId") are strings.
    2. Classifier keys ("Type", "Category") are strings.
    3. Parameters of the identity-data group are strings.
    4. Equations have their declared result type.
    5. Otherwise the runtime shape of the value decides.

  Args:
    value: The normalized value.
    key: Parameter key or name.
    group: Group the parameter belongs to.
    identity_group: Name of the identity-data group.

  Returns:
    The inferred ValueType.
  """
  if any(marker in key for marker in IDENTIFIER_MARKERS):
    return data.ValueType.STRING
  if any(marker in key for marker in CLASSIFIER_MARKERS):
    return data.ValueType.STRING
  if group == identity_group:
    return data.ValueType.STRING
  if isinstance(value, data.EquationValue):
    return value.result_type
  return type_of_value(value)


def type_of_value(value: Any) -> data.ValueType:
  # bool is a subclass of int.
  if isinstance(value, bool):
    return data.ValueType.BOOLEAN
  if isinstance(value, (int, float)):
    return data.ValueType.NUMBER
  if isinstance(value, (list, tuple)):
    return data.ValueType.ARRAY
  if isinstance(value, Mapping):
    return data.ValueType.OBJECT
  return data.ValueType.STRING
