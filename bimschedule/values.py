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

"""Decoding of raw parameter values.

Values arrive from the viewer as primitives, nested mappings, JSON-encoded
property sets or equation descriptors. They are decoded once, at the boundary,
into one of three tagged variants so that later stages never re-inspect raw
strings:

  * `Primitive` for scalars, lists and strings that are not JSON objects.
  * `Equation` for `{kind: 'equation', ...}` descriptors.
  * `Nested` for plain mappings and JSON-object strings that parsed.
"""

from __future__ import annotations

from collections.abc import Mapping
import dataclasses
import json
import math
import re
from typing import Any, Final

from bimschedule.core import data
from bimschedule.core import exceptions

_NUMERIC_LITERAL: Final[re.Pattern[str]] = re.compile(
    r"^\s*[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?\s*$"
)
_INTEGER_LITERAL: Final[re.Pattern[str]] = re.compile(r"^\s*[-+]?\d+\s*$")


@dataclasses.dataclass(frozen=True)
class Primitive:
  value: Any


@dataclasses.dataclass(frozen=True)
class Equation:
  equation: data.EquationValue


@dataclasses.dataclass(frozen=True)
class Nested:
  mapping: Mapping[str, Any]


DecodedValue = Primitive | Equation | Nested


@dataclasses.dataclass(frozen=True)
class DecodeResult:
  """A decoded value plus the parse error met on the way, if any."""

  value: DecodedValue
  error: str | None = None


def normalize_value(value: Any) -> Any:
  """Normalizes a raw value.

  Args:
    value: The value as found on the element.

  Returns:
    None for missing, NaN and blank values, an int or float for numeric
    strings, and the value unchanged otherwise.
  """
  if value is None:
    return None
  if isinstance(value, bool):
    return value
  if isinstance(value, float) and math.isnan(value):
    return None
  if isinstance(value, str):
    if not value.strip():
      return None
    if _NUMERIC_LITERAL.match(value):
      if _INTEGER_LITERAL.match(value):
        return int(value)
      number = float(value)
      # Overflowing literals such as "1e999" stay strings.
      if math.isinf(number):
        return value
      return number
    return value
  return value


def parse_equation(value: Any) -> data.EquationValue | None:
  """Returns the equation descriptor held by `value`, or None."""
  if isinstance(value, data.EquationValue):
    return value
  return data.EquationValue.from_dict(value)


def looks_like_json_object(value: Any) -> bool:
  if not isinstance(value, str):
    return False
  stripped = value.strip()
  return stripped.startswith("{") and stripped.endswith("}")


def decode_value(value: Any) -> DecodeResult:
  """Decodes a raw value into its tagged variant.

  JSON-object strings are parsed. A parse failure is reported through
  `DecodeResult.error` and the original string is kept as a primitive.

  Args:
    value: The raw value.

  Returns:
    The decoded value.
  """
  equation = parse_equation(value)
  if equation is not None:
    return DecodeResult(Equation(equation))
  if isinstance(value, Mapping):
    return DecodeResult(Nested(value))
  if looks_like_json_object(value):
    try:
      parsed = json.loads(value)
    except json.JSONDecodeError as e:
      return DecodeResult(Primitive(value), error=str(e))
    equation = parse_equation(parsed)
    if equation is not None:
      return DecodeResult(Equation(equation))
    if isinstance(parsed, Mapping):
      return DecodeResult(Nested(parsed))
  return DecodeResult(Primitive(value))


def to_parameter_value(value: Any) -> Any:
  """Checks that `value` can be held by an available parameter.

  Args:
    value: A normalized value.

  Returns:
    The value, unchanged.

  Raises:
    ValueConversionError: If the value is not JSON serializable.
  """
  if value is None or isinstance(value, data.EquationValue):
    return value
  try:
    json.dumps(data.encode_value(value), allow_nan=False)
  except (TypeError, ValueError) as e:
    raise exceptions.ValueConversionError(
        f"Cannot convert value of type {type(value).__name__}: {e}"
    ) from e
  return value


def stringify_value(value: Any) -> str:
  if value is None:
    return ""
  return str(value)
