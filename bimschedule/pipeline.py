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

"""The parameter pipeline and the state it owns.

A `ParameterPipeline` turns model elements into the parent and child
partitions shown by a schedule view:

  elements -> raw parameters -> available parameters -> selection -> columns

Each pass starts from the previous pass's selection and columns, so user
customizations survive re-extraction. The pipeline moves through the statuses

  idle -> processing -> complete | error

where `error` is not terminal: the next pass may succeed. Consumers read
immutable `PipelineSnapshot`s, either on demand or through `subscribe`.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable, Mapping, Sequence
import dataclasses
import time
from typing import Any

from absl import logging

from bimschedule import cache as cache_lib
from bimschedule import columns as columns_lib
from bimschedule import config as config_lib
from bimschedule import merging
from bimschedule import raw_parameters
from bimschedule import selection
from bimschedule import values
from bimschedule.core import data
from bimschedule.core import exceptions

Subscriber = Callable[[data.PipelineSnapshot], None]
ElementInput = data.Element | Mapping[str, Any]


def _as_partition(partition: data.Partition | str) -> data.Partition:
  return data.Partition(partition)


def _as_element(element: ElementInput) -> data.Element:
  if isinstance(element, data.Element):
    return element
  return data.Element.from_dict(element)


class ParameterPipeline:
  """Owns the partitions and runs extraction passes over them."""

  def __init__(
      self,
      config: config_lib.PipelineConfig | None = None,
      *,
      cache: cache_lib.ParameterCache | None = None,
      clock: Callable[[], float] = time.time,
  ):
    """Initializes the pipeline.

    Args:
      config: Pipeline settings. Defaults to `PipelineConfig()`.
      cache: Cache used by the cache operations. Defaults to an in-memory
        cache configured from `config`.
      clock: Returns the current time in seconds since the epoch.
    """
    self._config = config or config_lib.PipelineConfig()
    self._clock = clock
    if cache is None:
      cache = cache_lib.ParameterCache(
          cache_lib.MemoryStorage(),
          version=self._config.cache_version,
          ttl_seconds=self._config.cache_ttl_seconds,
          max_bytes=self._config.cache_max_bytes,
          key=self._config.cache_key,
          clock=clock,
      )
    self._cache = cache
    self._subscribers: list[Subscriber] = []
    self._elements: tuple[data.Element, ...] = ()
    self._reset_state()

  def _reset_state(self) -> None:
    self._partitions = {
        data.Partition.PARENT: data.PartitionState(),
        data.Partition.CHILD: data.PartitionState(),
    }
    self._status = data.ProcessingStatus.IDLE
    self._error: BaseException | None = None
    self._last_updated = 0.0
    self._relations = data.ElementRelations()
    self._issues: tuple[data.ExtractionIssue, ...] = ()

  # Read views.

  @property
  def config(self) -> config_lib.PipelineConfig:
    return self._config

  @property
  def cache(self) -> cache_lib.ParameterCache:
    return self._cache

  @property
  def parent(self) -> data.PartitionState:
    return self._partitions[data.Partition.PARENT]

  @property
  def child(self) -> data.PartitionState:
    return self._partitions[data.Partition.CHILD]

  @property
  def status(self) -> data.ProcessingStatus:
    return self._status

  @property
  def error(self) -> BaseException | None:
    return self._error

  @property
  def is_processing(self) -> bool:
    return self._status is data.ProcessingStatus.PROCESSING

  @property
  def has_error(self) -> bool:
    return self._error is not None

  @property
  def last_updated(self) -> float:
    return self._last_updated

  @property
  def issues(self) -> tuple[data.ExtractionIssue, ...]:
    return self._issues

  def partition(self, partition: data.Partition | str) -> data.PartitionState:
    return self._partitions[_as_partition(partition)]

  def snapshot(self) -> data.PipelineSnapshot:
    return data.PipelineSnapshot(
        parent=self.parent,
        child=self.child,
        status=self._status,
        error=self._error,
        last_updated=self._last_updated,
        relations=self._relations,
        issues=self._issues,
    )

  def subscribe(self, callback: Subscriber) -> Callable[[], None]:
    """Registers `callback` to receive a snapshot after every state change.

    Args:
      callback: Called with the new PipelineSnapshot.

    Returns:
      A function that unregisters the callback.
    """
    self._subscribers.append(callback)

    def unsubscribe() -> None:
      if callback in self._subscribers:
        self._subscribers.remove(callback)

    return unsubscribe

  def _notify(self) -> None:
    snapshot = self.snapshot()
    for callback in list(self._subscribers):
      try:
        callback(snapshot)
      except Exception:  # pylint: disable=broad-exception-caught
        logging.exception("Pipeline subscriber %r failed", callback)

  def _touch(self) -> None:
    self._last_updated = self._clock()

  def _check_idle(self, operation: str) -> None:
    if self.is_processing:
      logging.warning("Rejected %s: extraction already in progress", operation)
      raise exceptions.PipelineBusyError(
          f"Cannot {operation} while an extraction is in progress"
      )

  # Extraction.

  def _build_partition(
      self,
      raw: Sequence[data.RawParameter],
      previous: data.PartitionState,
  ) -> tuple[data.PartitionState, tuple[data.ExtractionIssue, ...]]:
    merged = merging.merge_raw_parameters(
        raw, identity_group=self._config.identity_group
    )
    discovered = {p.id for p in merged.bim} | {p.id for p in merged.user}
    # User-created parameters are not part of the raw input.
    kept_user = tuple(
        p for p in previous.available_user if p.id not in discovered
    )
    available_user = merged.user + kept_user
    selected = selection.reconcile_selection(
        merged.bim + available_user, previous.selected
    )
    state = data.PartitionState(
        raw=tuple(raw),
        available_bim=merged.bim,
        available_user=available_user,
        selected=selected,
        columns=columns_lib.build_columns(selected, previous.columns),
    )
    return state, merged.issues

  async def _process_raw(
      self, raw: Sequence[data.RawParameter]
  ) -> tuple[dict[data.Partition, data.PartitionState], list]:
    partitions = {}
    issues = []
    for partition in (data.Partition.PARENT, data.Partition.CHILD):
      part_raw = tuple(r for r in raw if r.partition is partition)
      partitions[partition], part_issues = self._build_partition(
          part_raw, self._partitions[partition]
      )
      issues.extend(part_issues)
      await asyncio.sleep(0)
    return partitions, issues

  def _commit(
      self,
      partitions: dict[data.Partition, data.PartitionState],
      issues: Iterable[data.ExtractionIssue],
      relations: data.ElementRelations | None = None,
  ) -> None:
    self._partitions = partitions
    self._status = data.ProcessingStatus.COMPLETE
    self._error = None
    self._issues = tuple(issues)
    if relations is not None:
      self._relations = relations
    self._touch()
    self._notify()

  async def extract_and_process(
      self, elements: Iterable[ElementInput]
  ) -> data.PipelineSnapshot:
    """Runs one extraction pass and replaces both partitions.

    Args:
      elements: Elements or element dicts as supplied by the viewer.

    Returns:
      The snapshot after the pass.

    Raises:
      PipelineBusyError: If a pass is already running.
      NoParametersError: If no element carries parameters.
      ProcessingError: If every parameter of a partition failed.
    """
    self._check_idle("extract parameters")
    self._status = data.ProcessingStatus.PROCESSING
    self._notify()
    start = time.monotonic()

    try:
      with_params = tuple(
          e for e in map(_as_element, elements) if e.parameters
      )
      if not with_params:
        raise exceptions.NoParametersError(
            "No parameters found in the supplied elements"
        )
      self._elements = with_params

      extraction = raw_parameters.extract_raw_parameters(
          with_params,
          self._config.categories,
          reserved_prefix=self._config.reserved_prefix,
          default_group=self._config.default_group,
      )
      await asyncio.sleep(0)
      partitions, issues = await self._process_raw(extraction.raw)
    except Exception as e:
      logging.exception("Parameter extraction failed")
      self._status = data.ProcessingStatus.ERROR
      self._error = e
      self._touch()
      self._notify()
      raise

    self._commit(
        partitions,
        list(extraction.issues) + issues,
        relations=extraction.relations,
    )
    logging.info(
        "Extraction pass finished in %.3fs: %d parent / %d child columns,"
        " %d issues",
        time.monotonic() - start,
        len(self.parent.columns),
        len(self.child.columns),
        len(self._issues),
    )
    return self.snapshot()

  async def update_categories(
      self,
      parent_categories: Sequence[str],
      child_categories: Sequence[str],
  ) -> data.PipelineSnapshot | None:
    """Replaces the category lists and re-runs the last extraction.

    Returns:
      The snapshot after the pass, or None if no elements were supplied yet.
    """
    self._check_idle("update categories")
    self._config = dataclasses.replace(
        self._config,
        parent_categories=tuple(parent_categories),
        child_categories=tuple(child_categories),
    )
    if not self._elements:
      logging.info("Categories updated; no elements to re-extract")
      return None
    return await self.extract_and_process(self._elements)

  # User edits.

  def _replace_partition(
      self, partition: data.Partition, **changes: Any
  ) -> data.PartitionState:
    state = dataclasses.replace(self._partitions[partition], **changes)
    self._partitions = {**self._partitions, partition: state}
    self._touch()
    self._notify()
    return state

  def add_user_parameter(
      self,
      partition: data.Partition | str,
      name: str,
      value_type: data.ValueType | str | None = None,
      group: str = "User Parameters",
      initial_value: Any = None,
  ) -> data.AvailableUserParameter:
    """Adds a user parameter and appends it to the selection.

    Args:
      partition: Partition to add the parameter to.
      name: Display name.
      value_type: Declared value type. Defaults to the result type of an
        equation `initial_value`, otherwise to `string`.
      group: Group shown in the parameter picker.
      initial_value: Fixed value, or an equation descriptor.

    Returns:
      The new parameter.

    Raises:
      ParameterError: If `name` is empty, or `value_type` disagrees with the
        result type of an equation `initial_value`.
      DuplicateParameterError: If the parameter id is already in use.
      ValueConversionError: If `initial_value` is not serializable.
    """
    self._check_idle("add a parameter")
    part = _as_partition(partition)
    name = name.strip()
    if not name:
      raise exceptions.ParameterError("Parameter name must not be empty")
    param_id = f"user.{group}.{name}"
    state = self._partitions[part]
    existing_ids = {p.id for p in state.available_bim}
    existing_ids.update(p.id for p in state.available_user)
    if param_id in existing_ids:
      raise exceptions.DuplicateParameterError(
          f"Parameter {param_id!r} already exists", param_id
      )

    equation = values.parse_equation(initial_value)
    if equation is None:
      param_type = data.ValueType(value_type or data.ValueType.STRING)
    elif value_type is None:
      param_type = equation.result_type
    else:
      param_type = data.ValueType(value_type)
      if param_type is not equation.result_type:
        raise exceptions.ParameterError(
            f"Parameter {param_id!r} declared as {param_type.value} but its"
            f" equation yields {equation.result_type.value}",
            param_id,
        )
    param = data.AvailableUserParameter(
        id=param_id,
        name=name,
        type=param_type,
        value=equation or values.to_parameter_value(initial_value),
        group=group,
        user_type=(
            data.UserValueType.EQUATION
            if equation is not None
            else data.UserValueType.FIXED
        ),
    )
    selected = selection.append_parameter(state.selected, param)
    self._replace_partition(
        part,
        available_user=state.available_user + (param,),
        selected=selected,
        columns=columns_lib.build_columns(selected, state.columns),
    )
    logging.info("Added user parameter %r to %s", param_id, part.value)
    return param

  def remove_parameter(
      self, partition: data.Partition | str, param_id: str
  ) -> None:
    """Removes a user parameter.

    Raises:
      ParameterNotRemovableError: If the parameter comes from the model.
      ParameterNotFoundError: If no parameter has id `param_id`.
    """
    self._check_idle("remove a parameter")
    part = _as_partition(partition)
    state = self._partitions[part]
    if any(p.id == param_id for p in state.available_bim):
      raise exceptions.ParameterNotRemovableError(
          f"Parameter {param_id!r} comes from the model", param_id
      )
    if not any(p.id == param_id for p in state.available_user):
      raise exceptions.ParameterNotFoundError(
          f"Parameter {param_id!r} not found in {part.value}", param_id
      )
    selected = state.selected
    if any(p.id == param_id for p in selected):
      selected = selection.remove_parameter(selected, param_id)
    self._replace_partition(
        part,
        available_user=tuple(
            p for p in state.available_user if p.id != param_id
        ),
        selected=selected,
        columns=columns_lib.build_columns(selected, state.columns),
    )
    logging.info("Removed user parameter %r from %s", param_id, part.value)

  def update_parameter_visibility(
      self, param_id: str, visible: bool, partition: data.Partition | str
  ) -> None:
    """Shows or hides a selected parameter.

    Raises:
      ParameterNotFoundError: If `param_id` is not selected.
    """
    self._check_idle("change visibility")
    part = _as_partition(partition)
    state = self._partitions[part]
    selected = selection.set_visibility(state.selected, param_id, visible)
    self._replace_partition(
        part,
        selected=selected,
        columns=columns_lib.build_columns(selected, state.columns),
    )

  def update_parameter_order(
      self, param_id: str, new_order: int, partition: data.Partition | str
  ) -> None:
    """Moves a selected parameter; out of range orders are clamped.

    Raises:
      ParameterNotFoundError: If `param_id` is not selected.
    """
    self._check_idle("reorder parameters")
    part = _as_partition(partition)
    state = self._partitions[part]
    selected = selection.move_parameter(state.selected, param_id, new_order)
    self._replace_partition(
        part,
        selected=selected,
        columns=columns_lib.build_columns(selected, state.columns),
    )

  def update_column(
      self,
      partition: data.Partition | str,
      column_id: str,
      **display_fields: Any,
  ) -> data.ColumnDefinition:
    """Sets header, width, sortable or filterable of one column.

    Raises:
      ParameterNotFoundError: If no column has id `column_id`.
    """
    self._check_idle("update a column")
    part = _as_partition(partition)
    updated = columns_lib.update_column(
        self._partitions[part].columns, column_id, **display_fields
    )
    self._replace_partition(part, columns=updated)
    return next(c for c in updated if c.id == column_id)

  # Cache.

  async def _apply_raw(self, raw: Sequence[data.RawParameter]) -> bool:
    previous_status = self._status
    self._status = data.ProcessingStatus.PROCESSING
    self._notify()
    try:
      partitions, issues = await self._process_raw(raw)
    except exceptions.BimScheduleError as e:
      logging.warning("Could not rebuild parameters from cache: %s", e)
      self._status = previous_status
      self._notify()
      return False
    except BaseException:
      self._status = previous_status
      raise
    self._commit(partitions, issues)
    return True

  async def load_from_cache(self) -> bool:
    """Rebuilds both partitions from cached raw parameters.

    Returns:
      Whether cached data was applied. False while another pass is running.
    """
    if self.is_processing:
      logging.warning("Skipping cache load: extraction in progress")
      return False
    raw = self._cache.load()
    if not raw:
      return False
    applied = await self._apply_raw(raw)
    if applied:
      logging.info("Loaded %d raw parameters from cache", len(raw))
    return applied

  async def save_to_cache(self) -> bool:
    raw = self.parent.raw + self.child.raw
    if not raw:
      logging.debug("Nothing to cache")
      return False
    return self._cache.save(raw)

  async def clear_cache(self) -> None:
    self._cache.clear()

  async def recover(self) -> data.PipelineSnapshot:
    """Rebuilds the partitions from the cache or a minimal parameter set.

    Raises:
      PipelineBusyError: If a pass is already running.
    """
    self._check_idle("recover")
    raw = cache_lib.ParameterRecovery(self._cache).recover_raw_parameters()
    await self._apply_raw(raw)
    return self.snapshot()

  def reset(self) -> None:
    """Returns to the initial state. The cache is left untouched.

    Raises:
      PipelineBusyError: If a pass is already running.
    """
    self._check_idle("reset")
    self._elements = ()
    self._reset_state()
    self._notify()
