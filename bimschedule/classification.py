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

"""Classification of parameters and elements.

Two independent decisions are made here:

  * Whether a parameter originates from the model (BIM) or was created by the
    user. The rules are heuristics over group names and key patterns.
  * Whether an element is a parent, a child or neither, based on its
    explicit flags and the configured category lists.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
import dataclasses
import re
from typing import Final

from absl import logging

from bimschedule.core import data

BIM_GROUPS: Final[frozenset[str]] = frozenset({
    "Identity Data",
    "Dimensions",
    "Constraints",
    "Phasing",
    "Structural",
    "Materials and Finishes",
    "Materials",
    "Graphics",
    "Construction",
    "Text",
    "General",
    "Other",
    "Mechanical",
    "Electrical",
    "Plumbing",
    "Energy Analysis",
    "Analytical Properties",
    "IFC Parameters",
    "Data",
    "Parameters",
})

IFC_PROPERTY_SET_PREFIX: Final[str] = "Pset_"

BIM_KEY_PATTERNS: Final[tuple[re.Pattern[str], ...]] = (
    re.compile(r"(?i)(category|type|family|material)$"),
    re.compile(r"(?i)^fm[_\s-]"),
    re.compile(r"(?i)(mark|number|position)$"),
)

MARK_KEYS: Final[tuple[str, ...]] = ("Identity Data.Mark", "Mark")


@dataclasses.dataclass(frozen=True)
class SourceClassification:
  is_bim: bool
  reason: str


@dataclasses.dataclass(frozen=True)
class CategoryConfig:
  """Category lists deciding which elements are parents and children."""

  parent_categories: tuple[str, ...] = ()
  child_categories: tuple[str, ...] = ()

  def __post_init__(self):
    object.__setattr__(
        self, "parent_categories", tuple(self.parent_categories)
    )
    object.__setattr__(self, "child_categories", tuple(self.child_categories))


def _is_bim_group(group: str | None) -> bool:
  if not group:
    return False
  return group in BIM_GROUPS or group.startswith(IFC_PROPERTY_SET_PREFIX)


def _matches_bim_pattern(key: str) -> bool:
  return any(pattern.search(key) for pattern in BIM_KEY_PATTERNS)


def classify_source(raw: data.RawParameter) -> SourceClassification:
  """Decides whether a raw parameter comes from the model.

  Args:
    raw: The raw parameter.

  Returns:
    The classification together with the first rule that matched.
  """
  if raw.source_group in BIM_GROUPS:
    return SourceClassification(True, f"group:{raw.source_group}")
  if raw.source_group.startswith(IFC_PROPERTY_SET_PREFIX):
    return SourceClassification(True, "ifc_property_set")
  if raw.metadata.is_system:
    return SourceClassification(True, "system")
  if raw.metadata.is_bim_origin:
    return SourceClassification(True, "bim_origin")
  if _matches_bim_pattern(raw.id) or _matches_bim_pattern(raw.name):
    return SourceClassification(True, "key_pattern")
  parent_key = raw.metadata.parent_key
  if raw.metadata.is_nested and parent_key:
    group = parent_key.partition(".")[0]
    if _is_bim_group(group) or _matches_bim_pattern(parent_key):
      return SourceClassification(True, "nested_parent")
  return SourceClassification(False, "user")


def classify_element(
    element: data.Element, categories: CategoryConfig
) -> data.ElementRole:
  """Decides the role of an element.

  Args:
    element: The element.
    categories: The configured category lists.

  Returns:
    PARENT when the element is flagged as a parent or its category is a parent
    category, CHILD when it is flagged as a child, its category is a child
    category or no child categories are configured, UNCLASSIFIED otherwise.
  """
  if element.is_parent or element.category in categories.parent_categories:
    return data.ElementRole.PARENT
  if (
      element.is_child
      or element.category in categories.child_categories
      or not categories.child_categories
  ):
    return data.ElementRole.CHILD
  return data.ElementRole.UNCLASSIFIED


def element_marks(element: data.Element) -> list[str]:
  """Returns every identifier a child may use to refer to `element`."""
  marks = []
  if element.mark:
    marks.append(element.mark)
  for key in MARK_KEYS:
    value = element.parameters.get(key)
    if value is not None and str(value).strip():
      marks.append(str(value).strip())
  identity = element.parameters.get("Identity Data")
  if isinstance(identity, Mapping) and identity.get("Mark") is not None:
    marks.append(str(identity["Mark"]).strip())
  marks.append(element.id)
  return marks


def resolve_relations(
    elements: Sequence[data.Element],
    roles: Mapping[str, data.ElementRole],
) -> tuple[data.ElementRelations, list[data.ExtractionIssue]]:
  """Links child elements to the parents hosting them.

  Args:
    elements: All classified elements.
    roles: Element id -> role.

  Returns:
    The relations and one `orphaned_child` issue per child whose host matched
    no parent.
  """
  parents: list[str] = []
  index: dict[str, str] = {}
  for element in elements:
    if roles.get(element.id) is not data.ElementRole.PARENT:
      continue
    parents.append(element.id)
    for mark in element_marks(element):
      index.setdefault(mark, element.id)

  children: dict[str, list[str]] = {}
  orphans: list[str] = []
  issues: list[data.ExtractionIssue] = []
  for element in elements:
    if roles.get(element.id) is not data.ElementRole.CHILD:
      continue
    if not element.host:
      continue
    parent_id = index.get(element.host)
    if parent_id is None:
      orphans.append(element.id)
      issues.append(
          data.ExtractionIssue(
              kind=data.IssueKind.ORPHANED_CHILD,
              key=element.host,
              message=f"Host {element.host!r} matches no parent element",
              element_id=element.id,
          )
      )
      continue
    children.setdefault(parent_id, []).append(element.id)

  if orphans:
    logging.warning("%d child elements have no matching host", len(orphans))

  relations = data.ElementRelations(
      parents=tuple(parents),
      children={k: tuple(v) for k, v in children.items()},
      orphans=tuple(orphans),
  )
  return relations, issues


def partition_roles(
    elements: Iterable[data.Element], categories: CategoryConfig
) -> dict[str, data.ElementRole]:
  return {e.id: classify_element(e, categories) for e in elements}
