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

"""Exception hierarchy for bimschedule.

All errors raised by the library derive from `BimScheduleError` so callers can
catch a single base class.
"""

from __future__ import annotations

__all__ = [
    "BimScheduleError",
    "ConfigError",
    "ExtractionError",
    "NoParametersError",
    "ProcessingError",
    "PipelineBusyError",
    "ParameterError",
    "ParameterNotFoundError",
    "DuplicateParameterError",
    "ParameterNotRemovableError",
    "ValueConversionError",
    "CacheError",
]


class BimScheduleError(Exception):
  """Base exception for all bimschedule errors."""


class ConfigError(BimScheduleError):
  """Raised when the pipeline configuration cannot be loaded or is invalid."""


class ExtractionError(BimScheduleError):
  """Raised when an extraction pass fails as a whole."""


class NoParametersError(ExtractionError):
  """Raised when no supplied element carries any parameters."""


class ProcessingError(ExtractionError):
  """Raised when every parameter of a non-empty batch failed to convert."""


class PipelineBusyError(BimScheduleError):
  """Raised when an extraction pass is requested while another is running.

  The request is rejected, not queued. Callers must retry once the running
  pass has completed.
  """


class ParameterError(BimScheduleError):
  """Base class for errors about a single parameter operation."""

  def __init__(self, message: str, parameter_id: str | None = None):
    super().__init__(message)
    self.parameter_id = parameter_id


class ParameterNotFoundError(ParameterError):
  """Raised when a parameter id is not present in the target partition."""


class DuplicateParameterError(ParameterError):
  """Raised when adding a user parameter whose id already exists."""


class ParameterNotRemovableError(ParameterError):
  """Raised when removing a parameter discovered from the model."""


class ValueConversionError(BimScheduleError):
  """Raised when a raw value cannot be represented as a parameter value."""


class CacheError(BimScheduleError):
  """Raised by storage backends; always handled inside the cache layer."""
