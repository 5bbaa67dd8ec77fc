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

"""Pipeline configuration.

Settings are resolved in three layers, later layers winning:

  1. The defaults of `PipelineConfig`.
  2. An optional YAML file whose keys are `PipelineConfig` field names.
  3. `BIMSCHEDULE_*` environment variables, also read from a `.env` file.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
import dataclasses
import os
import pathlib
from typing import Any, Final

from absl import logging
from dotenv import load_dotenv
import yaml

from bimschedule import cache
from bimschedule import classification
from bimschedule.core import exceptions

DEFAULT_PARENT_CATEGORIES: Final[tuple[str, ...]] = (
    "Uncategorized",
    "Walls",
    "Floors",
    "Roofs",
    "Building",
    "Site",
    "Base",
)

DEFAULT_CHILD_CATEGORIES: Final[tuple[str, ...]] = (
    "Structural Framing",
    "Structural Connections",
    "Windows",
    "Doors",
    "Ducts",
    "Pipes",
    "Cable Trays",
    "Conduits",
    "Lighting Fixtures",
)


@dataclasses.dataclass(frozen=True)
class PipelineConfig:
  """Settings of a ParameterPipeline and its scheduler."""

  parent_categories: tuple[str, ...] = DEFAULT_PARENT_CATEGORIES
  child_categories: tuple[str, ...] = DEFAULT_CHILD_CATEGORIES
  reserved_prefix: str = "__"
  default_group: str = "Parameters"
  identity_group: str = "Identity Data"
  cache_key: str = cache.DEFAULT_CACHE_KEY
  cache_version: str = cache.DEFAULT_CACHE_VERSION
  cache_ttl_seconds: float = cache.DEFAULT_TTL_SECONDS
  cache_max_bytes: int = cache.DEFAULT_MAX_BYTES
  debounce_seconds: float = 0.3

  def __post_init__(self):
    for name in ("parent_categories", "child_categories"):
      value = getattr(self, name)
      if isinstance(value, str):
        value = _split_list(value)
      object.__setattr__(self, name, tuple(value or ()))
    if not self.reserved_prefix:
      raise exceptions.ConfigError("reserved_prefix must not be empty")
    if self.cache_ttl_seconds < 0 or self.cache_max_bytes < 0:
      raise exceptions.ConfigError("Cache limits must not be negative")
    if self.debounce_seconds < 0:
      raise exceptions.ConfigError("debounce_seconds must not be negative")

  @property
  def categories(self) -> classification.CategoryConfig:
    return classification.CategoryConfig(
        parent_categories=self.parent_categories,
        child_categories=self.child_categories,
    )


def _split_list(value: str) -> tuple[str, ...]:
  return tuple(item.strip() for item in value.split(",") if item.strip())


ENV_OVERRIDES: Final[Mapping[str, tuple[str, Callable[[str], Any]]]] = {
    "BIMSCHEDULE_CACHE_TTL": ("cache_ttl_seconds", float),
    "BIMSCHEDULE_CACHE_MAX_BYTES": ("cache_max_bytes", int),
    "BIMSCHEDULE_CACHE_VERSION": ("cache_version", str),
    "BIMSCHEDULE_DEBOUNCE": ("debounce_seconds", float),
    "BIMSCHEDULE_PARENT_CATEGORIES": ("parent_categories", _split_list),
    "BIMSCHEDULE_CHILD_CATEGORIES": ("child_categories", _split_list),
}


def _read_yaml(path: str | pathlib.Path) -> dict[str, Any]:
  try:
    with open(path, "r", encoding="utf-8") as f:
      loaded = yaml.safe_load(f)
  except OSError as e:
    raise exceptions.ConfigError(f"Cannot read config file {path}: {e}") from e
  except yaml.YAMLError as e:
    raise exceptions.ConfigError(f"Invalid YAML in {path}: {e}") from e
  if loaded is None:
    return {}
  if not isinstance(loaded, dict):
    raise exceptions.ConfigError(f"Config file {path} must hold a mapping")
  return loaded


def load_config(path: str | pathlib.Path | None = None) -> PipelineConfig:
  """Loads the pipeline configuration.

  Args:
    path: Optional YAML file.

  Returns:
    The resolved PipelineConfig.

  Raises:
    ConfigError: If the file cannot be read, holds unknown keys, or a value is
      invalid.
  """
  load_dotenv()
  settings: dict[str, Any] = {}
  if path is not None:
    settings.update(_read_yaml(path))

  known = {f.name for f in dataclasses.fields(PipelineConfig)}
  unknown = sorted(set(settings) - known)
  if unknown:
    raise exceptions.ConfigError(f"Unknown config keys: {', '.join(unknown)}")

  for env_name, (field_name, parse) in ENV_OVERRIDES.items():
    raw = os.getenv(env_name)
    if raw is None or not raw.strip():
      continue
    try:
      settings[field_name] = parse(raw)
    except ValueError as e:
      raise exceptions.ConfigError(f"Invalid value for {env_name}: {e}") from e
    logging.debug("Config %s overridden by %s", field_name, env_name)

  try:
    return PipelineConfig(**settings)
  except TypeError as e:
    raise exceptions.ConfigError(f"Invalid configuration: {e}") from e
