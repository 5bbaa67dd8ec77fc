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

"""Debounced scheduling of extraction passes.

Viewer events (selection changes, category edits) tend to arrive in bursts.
`ExtractionScheduler` collapses every burst into a single pass: each trigger
re-arms a timer and only the latest arguments are used once the quiet window
has elapsed. A trigger that fires while a pass is running is remembered in a
single slot and run after the current pass.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable, Sequence
from typing import Any

from absl import logging

from bimschedule import pipeline as pipeline_lib

_PassFactory = Callable[[], Awaitable[Any]]


class ExtractionScheduler:
  """Coalesces extraction triggers for one pipeline."""

  def __init__(
      self,
      pipeline: pipeline_lib.ParameterPipeline,
      *,
      quiet_window: float | None = None,
  ):
    """Initializes the scheduler.

    Args:
      pipeline: The pipeline to run passes on.
      quiet_window: Seconds without triggers before a pass starts. Defaults to
        the pipeline's `debounce_seconds`.
    """
    self._pipeline = pipeline
    if quiet_window is None:
      quiet_window = pipeline.config.debounce_seconds
    self._quiet_window = quiet_window
    self._pending: _PassFactory | None = None
    self._timer: asyncio.TimerHandle | None = None
    self._task: asyncio.Task | None = None
    self._rerun = False
    self.last_error: BaseException | None = None
    self.pass_count = 0

  @property
  def quiet_window(self) -> float:
    return self._quiet_window

  @property
  def is_busy(self) -> bool:
    return self._timer is not None or (
        self._task is not None and not self._task.done()
    )

  def request_extraction(self, elements: Iterable[Any]) -> None:
    """Schedules an extraction pass over `elements`.

    Must be called from within a running event loop.
    """
    elements = tuple(elements)
    self._schedule(lambda: self._pipeline.extract_and_process(elements))

  def request_category_update(
      self, parent_categories: Sequence[str], child_categories: Sequence[str]
  ) -> None:
    parent_categories = tuple(parent_categories)
    child_categories = tuple(child_categories)
    self._schedule(
        lambda: self._pipeline.update_categories(
            parent_categories, child_categories
        )
    )

  def _schedule(self, factory: _PassFactory) -> None:
    loop = asyncio.get_running_loop()
    self._pending = factory
    if self._timer is not None:
      self._timer.cancel()
    self._timer = loop.call_later(self._quiet_window, self._fire)

  def _fire(self) -> None:
    self._timer = None
    if self._task is not None and not self._task.done():
      logging.debug("Extraction in flight, queueing one re-run")
      self._rerun = True
      return
    self._task = asyncio.get_running_loop().create_task(self._run())

  async def _run(self) -> None:
    while True:
      factory, self._pending = self._pending, None
      self._rerun = False
      if factory is not None:
        try:
          await factory()
          self.last_error = None
        except Exception as e:  # pylint: disable=broad-exception-caught
          logging.warning("Scheduled extraction failed: %s", e)
          self.last_error = e
        self.pass_count += 1
      if not self._rerun:
        return

  async def wait_idle(self) -> None:
    """Waits until no timer is armed and no pass is running."""
    loop = asyncio.get_running_loop()
    while True:
      if self._task is not None and not self._task.done():
        await asyncio.wait({self._task})
      elif self._timer is not None:
        await asyncio.sleep(max(self._timer.when() - loop.time(), 0))
      else:
        return

  def cancel(self) -> None:
    """Drops any armed timer and queued re-run. A running pass completes."""
    if self._timer is not None:
      self._timer.cancel()
      self._timer = None
    self._pending = None
    self._rerun = False
