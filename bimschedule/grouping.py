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

"""Groups available parameters for display in a parameter picker."""

from __future__ import annotations

from collections.abc import Iterable
import dataclasses
from typing import Any


@dataclasses.dataclass(frozen=True)
class ParameterGroup:
  id: str
  name: str
  source: str
  parameter_ids: tuple[str, ...]

  def to_dict(self) -> dict[str, Any]:
    return {
        "id": self.id,
        "name": self.name,
        "source": self.source,
        "parameterIds": list(self.parameter_ids),
    }


def _groups_of(params, source: str) -> list[ParameterGroup]:
  by_group: dict[str, list[str]] = {}
  for param in params:
    by_group.setdefault(param.group, []).append(param.id)
  return [
      ParameterGroup(
          id=f"{source}_{name}",
          name=name,
          source=source,
          parameter_ids=tuple(ids),
      )
      for name, ids in sorted(
          by_group.items(), key=lambda item: item[0].casefold()
      )
  ]


def build_parameter_groups(
    available_bim: Iterable, available_user: Iterable
) -> tuple[ParameterGroup, ...]:
  """Returns one group per distinct group name, BIM groups first."""
  return tuple(
      _groups_of(available_bim, "bim") + _groups_of(available_user, "user")
  )
