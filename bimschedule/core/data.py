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

"""Classes used to represent parameters at every stage of the pipeline.

Records flow forward through the stages:

  Element -> RawParameter -> Available{Bim,User}Parameter -> SelectedParameter
  -> ColumnDefinition

Every record is a frozen dataclass. A pass creates fresh records and never
mutates them; updates go through `dataclasses.replace`.
"""

from __future__ import annotations

from collections.abc import Mapping
import dataclasses
import enum
from typing import Any

DEFAULT_CATEGORY = "Uncategorized"
DEFAULT_GROUP = "Parameters"


class ValueType(str, enum.Enum):
  """Kinds of value a BIM parameter can hold."""

  STRING = "string"
  NUMBER = "number"
  BOOLEAN = "boolean"
  DATE = "date"
  OBJECT = "object"
  ARRAY = "array"


class UserValueType(str, enum.Enum):
  """How a user-created parameter obtains its value."""

  FIXED = "fixed"
  EQUATION = "equation"


class Partition(str, enum.Enum):
  """The two disjoint partitions every parameter belongs to."""

  PARENT = "parent"
  CHILD = "child"


class ElementRole(str, enum.Enum):
  PARENT = "parent"
  CHILD = "child"
  UNCLASSIFIED = "unclassified"


class ProcessingStatus(str, enum.Enum):
  IDLE = "idle"
  PROCESSING = "processing"
  COMPLETE = "complete"
  ERROR = "error"


class IssueKind(str, enum.Enum):
  """Diagnostics recorded while a pass recovers from bad input."""

  MALFORMED_JSON = "malformed_json"
  NON_SERIALIZABLE = "non_serializable"
  PROCESSING_FAILED = "processing_failed"
  UNCLASSIFIED_ELEMENT = "unclassified_element"
  ORPHANED_CHILD = "orphaned_child"
  SYSTEM_KEY = "system_key"


@dataclasses.dataclass(frozen=True)
class EquationValue:
  """A formula descriptor carrying its own declared result type.

  Attributes:
    expression: The formula text.
    references: Ids of the parameters the formula refers to.
    result_type: The type the formula evaluates to.
  """

  expression: str
  references: tuple[str, ...] = ()
  result_type: ValueType = ValueType.NUMBER

  def to_dict(self) -> dict[str, Any]:
    return {
        "kind": "equation",
        "expression": self.expression,
        "references": list(self.references),
        "resultType": self.result_type.value,
    }

  @classmethod
  def from_dict(cls, payload: Any) -> EquationValue | None:
    """Returns an EquationValue if `payload` is a valid descriptor, else None."""
    if not isinstance(payload, Mapping) or payload.get("kind") != "equation":
      return None
    expression = payload.get("expression")
    references = payload.get("references")
    result_type = payload.get("resultType", payload.get("result_type"))
    if not isinstance(expression, str):
      return None
    if not isinstance(references, (list, tuple)) or not all(
        isinstance(ref, str) for ref in references
    ):
      return None
    try:
      parsed_type = ValueType(result_type)
    except ValueError:
      return None
    return cls(
        expression=expression,
        references=tuple(references),
        result_type=parsed_type,
    )


def encode_value(value: Any) -> Any:
  """Converts a parameter value into its JSON-compatible form."""
  if isinstance(value, EquationValue):
    return value.to_dict()
  if isinstance(value, tuple):
    return [encode_value(v) for v in value]
  return value


def decode_value(value: Any) -> Any:
  """Inverse of `encode_value` for values read back from storage."""
  equation = EquationValue.from_dict(value)
  if equation is not None:
    return equation
  return value


@dataclasses.dataclass(frozen=True)
class Element:
  """One model element as supplied by the viewer.

  Attributes:
    id: Unique element id.
    category: Category name, e.g. "Walls".
    parameters: The free-form parameter bag.
    is_child: Explicit child flag from the source, if any.
    is_parent: Explicit parent flag from the source, if any.
    host: Mark or id of the hosting parent element.
    mark: Human readable mark of this element.
  """

  id: str
  category: str = DEFAULT_CATEGORY
  parameters: Mapping[str, Any] = dataclasses.field(default_factory=dict)
  is_child: bool | None = None
  is_parent: bool | None = None
  host: str | None = None
  mark: str | None = None

  @classmethod
  def from_dict(cls, payload: Mapping[str, Any]) -> Element:
    metadata = payload.get("metadata") or {}
    is_parent = payload.get("isParent", metadata.get("isParent"))
    host = payload.get("host")
    mark = payload.get("mark")
    return cls(
        id=str(payload.get("id", "")),
        category=payload.get("category") or DEFAULT_CATEGORY,
        parameters=dict(payload.get("parameters") or {}),
        is_child=payload.get("isChild"),
        is_parent=is_parent,
        host=str(host) if host is not None else None,
        mark=str(mark) if mark is not None else None,
    )


@dataclasses.dataclass(frozen=True)
class RawParameterMetadata:
  """Provenance of a raw parameter."""

  category: str | None = None
  is_system: bool = False
  is_parent: bool = False
  is_nested: bool = False
  parent_key: str | None = None
  element_id: str | None = None
  is_bim_origin: bool = False

  def to_dict(self) -> dict[str, Any]:
    return {
        "category": self.category,
        "isSystem": self.is_system,
        "isParent": self.is_parent,
        "isNested": self.is_nested,
        "parentKey": self.parent_key,
        "elementId": self.element_id,
        "isBimOrigin": self.is_bim_origin,
    }

  @classmethod
  def from_dict(cls, payload: Mapping[str, Any] | None) -> RawParameterMetadata:
    payload = payload or {}
    return cls(
        category=payload.get("category"),
        is_system=bool(payload.get("isSystem", False)),
        is_parent=bool(payload.get("isParent", False)),
        is_nested=bool(payload.get("isNested", False)),
        parent_key=payload.get("parentKey"),
        element_id=payload.get("elementId"),
        is_bim_origin=bool(payload.get("isBimOrigin", False)),
    )


@dataclasses.dataclass(frozen=True)
class RawParameter:
  """A parameter as found on one element, before merging.

  Attributes:
    id: Full dotted key, e.g. "Identity Data.Mark".
    name: Leaf name, e.g. "Mark".
    value: The normalized value.
    source_group: Group the parameter was found in.
    metadata: Provenance of the parameter.
  """

  id: str
  name: str
  value: Any
  source_group: str = DEFAULT_GROUP
  metadata: RawParameterMetadata = dataclasses.field(
      default_factory=RawParameterMetadata
  )

  @property
  def partition(self) -> Partition:
    return Partition.PARENT if self.metadata.is_parent else Partition.CHILD

  def to_dict(self) -> dict[str, Any]:
    return {
        "id": self.id,
        "name": self.name,
        "value": encode_value(self.value),
        "sourceGroup": self.source_group,
        "metadata": self.metadata.to_dict(),
    }

  @classmethod
  def from_dict(cls, payload: Mapping[str, Any]) -> RawParameter:
    """Builds a raw parameter from its stored form.

    Raises:
      KeyError: If `id` or `name` is missing.
    """
    group = payload.get("sourceGroup", payload.get("fetchedGroup"))
    return cls(
        id=str(payload["id"]),
        name=str(payload["name"]),
        value=decode_value(payload.get("value")),
        source_group=group or DEFAULT_GROUP,
        metadata=RawParameterMetadata.from_dict(payload.get("metadata")),
    )


@dataclasses.dataclass(frozen=True)
class AvailableBimParameter:
  """A model parameter after merging, one per normalized name."""

  id: str
  name: str
  type: ValueType
  value: Any
  source_group: str
  current_group: str
  visible: bool = True
  metadata: RawParameterMetadata = dataclasses.field(
      default_factory=RawParameterMetadata
  )

  @property
  def kind(self) -> str:
    return "bim"

  @property
  def group(self) -> str:
    return self.current_group

  def to_dict(self) -> dict[str, Any]:
    return {
        "kind": self.kind,
        "id": self.id,
        "name": self.name,
        "type": self.type.value,
        "value": encode_value(self.value),
        "sourceGroup": self.source_group,
        "currentGroup": self.current_group,
        "visible": self.visible,
        "metadata": self.metadata.to_dict(),
    }


@dataclasses.dataclass(frozen=True)
class AvailableUserParameter:
  """A parameter created explicitly by the user."""

  id: str
  name: str
  type: ValueType
  value: Any
  group: str
  visible: bool = True
  user_type: UserValueType = UserValueType.FIXED

  @property
  def kind(self) -> str:
    return "user"

  def to_dict(self) -> dict[str, Any]:
    return {
        "kind": self.kind,
        "id": self.id,
        "name": self.name,
        "type": self.type.value,
        "value": encode_value(self.value),
        "group": self.group,
        "visible": self.visible,
        "userType": self.user_type.value,
    }


AvailableParameter = AvailableBimParameter | AvailableUserParameter


@dataclasses.dataclass(frozen=True)
class SelectedParameter:
  """A parameter the user displays, with persisted visibility and order."""

  id: str
  name: str
  kind: str
  type: ValueType
  value: Any
  group: str
  visible: bool = True
  order: int = 0

  def to_dict(self) -> dict[str, Any]:
    return {
        "id": self.id,
        "name": self.name,
        "kind": self.kind,
        "type": self.type.value,
        "value": encode_value(self.value),
        "group": self.group,
        "visible": self.visible,
        "order": self.order,
    }


@dataclasses.dataclass(frozen=True)
class ColumnDefinition:
  """The UI-facing description of one table column.

  `header`, `width`, `sortable` and `filterable` are display-only fields that
  survive rebuilds once the user has set them.
  """

  id: str
  name: str
  field: str
  header: str
  type: ValueType
  group: str
  visible: bool = True
  order: int = 0
  kind: str = "bim"
  value: Any = None
  width: int | None = None
  sortable: bool = True
  filterable: bool = True
  removable: bool = False

  def to_dict(self) -> dict[str, Any]:
    return {
        "id": self.id,
        "name": self.name,
        "field": self.field,
        "header": self.header,
        "type": self.type.value,
        "group": self.group,
        "visible": self.visible,
        "order": self.order,
        "kind": self.kind,
        "value": encode_value(self.value),
        "width": self.width,
        "sortable": self.sortable,
        "filterable": self.filterable,
        "removable": self.removable,
    }


@dataclasses.dataclass(frozen=True)
class ExtractionIssue:
  """A recoverable problem met during a pass."""

  kind: IssueKind
  key: str
  message: str
  element_id: str | None = None

  def to_dict(self) -> dict[str, Any]:
    return {
        "kind": self.kind.value,
        "key": self.key,
        "message": self.message,
        "elementId": self.element_id,
    }


@dataclasses.dataclass(frozen=True)
class ElementRelations:
  """Host relationships between parent and child elements.

  Attributes:
    parents: Ids of parent elements.
    children: Parent id -> ids of the children it hosts.
    orphans: Ids of child elements whose host matched no parent.
  """

  parents: tuple[str, ...] = ()
  children: Mapping[str, tuple[str, ...]] = dataclasses.field(
      default_factory=dict
  )
  orphans: tuple[str, ...] = ()

  def to_dict(self) -> dict[str, Any]:
    return {
        "parents": list(self.parents),
        "children": {k: list(v) for k, v in self.children.items()},
        "orphans": list(self.orphans),
    }


@dataclasses.dataclass(frozen=True)
class PartitionState:
  """Read-only view of one partition."""

  raw: tuple[RawParameter, ...] = ()
  available_bim: tuple[AvailableBimParameter, ...] = ()
  available_user: tuple[AvailableUserParameter, ...] = ()
  selected: tuple[SelectedParameter, ...] = ()
  columns: tuple[ColumnDefinition, ...] = ()

  def to_dict(self) -> dict[str, Any]:
    return {
        "raw": [p.to_dict() for p in self.raw],
        "available": {
            "bim": [p.to_dict() for p in self.available_bim],
            "user": [p.to_dict() for p in self.available_user],
        },
        "selected": [p.to_dict() for p in self.selected],
        "columns": [c.to_dict() for c in self.columns],
    }


@dataclasses.dataclass(frozen=True)
class PipelineSnapshot:
  """Immutable snapshot of the whole pipeline state."""

  parent: PartitionState = dataclasses.field(default_factory=PartitionState)
  child: PartitionState = dataclasses.field(default_factory=PartitionState)
  status: ProcessingStatus = ProcessingStatus.IDLE
  error: BaseException | None = None
  last_updated: float = 0.0
  relations: ElementRelations = dataclasses.field(
      default_factory=ElementRelations
  )
  issues: tuple[ExtractionIssue, ...] = ()

  @property
  def is_processing(self) -> bool:
    return self.status is ProcessingStatus.PROCESSING

  @property
  def has_error(self) -> bool:
    return self.error is not None

  def partition(self, partition: Partition | str) -> PartitionState:
    if Partition(partition) is Partition.PARENT:
      return self.parent
    return self.child

  def to_dict(self) -> dict[str, Any]:
    return {
        "parent": self.parent.to_dict(),
        "child": self.child.to_dict(),
        "status": self.status.value,
        "isProcessing": self.is_processing,
        "hasError": self.has_error,
        "error": str(self.error) if self.error is not None else None,
        "lastUpdated": self.last_updated,
        "relations": self.relations.to_dict(),
        "issues": [issue.to_dict() for issue in self.issues],
    }
