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

"""Best-effort persistence of raw parameters.

The cache stores a single versioned entry under one key of a key/value
`Storage`:

  {"data": [...raw parameters...], "timestamp": <ms>, "version": "1.0.0",
   "size": <bytes of data>}

Loading never raises. Invalid, outdated, expired and oversized entries, as well
as any storage failure, are reported as a cache miss.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
import json
import pathlib
import re
import time
from typing import Any, Final, Protocol

from absl import logging

from bimschedule.core import data
from bimschedule.core import exceptions

DEFAULT_CACHE_KEY: Final[str] = "parameter-store-cache"
DEFAULT_CACHE_VERSION: Final[str] = "1.0.0"
DEFAULT_TTL_SECONDS: Final[float] = 5 * 60
DEFAULT_MAX_BYTES: Final[int] = 5 * 1024 * 1024

_ENTRY_FIELDS: Final[frozenset[str]] = frozenset(
    {"data", "timestamp", "version", "size"}
)


class Storage(Protocol):
  """Minimal key/value storage contract."""

  def get_item(self, key: str) -> str | None:
    ...

  def set_item(self, key: str, value: str) -> None:
    ...

  def remove_item(self, key: str) -> None:
    ...


class MemoryStorage:
  """In-process storage backed by a dict."""

  def __init__(self, items: Mapping[str, str] | None = None):
    self._items: dict[str, str] = dict(items or {})

  def get_item(self, key: str) -> str | None:
    return self._items.get(key)

  def set_item(self, key: str, value: str) -> None:
    self._items[key] = value

  def remove_item(self, key: str) -> None:
    self._items.pop(key, None)

  def __len__(self) -> int:
    return len(self._items)


class FileStorage:
  """Storage keeping one JSON file per key in a directory."""

  def __init__(self, directory: str | pathlib.Path):
    self._directory = pathlib.Path(directory)

  def _path(self, key: str) -> pathlib.Path:
    safe_key = re.sub(r"[^A-Za-z0-9_.-]", "_", key)
    return self._directory / f"{safe_key}.json"

  def get_item(self, key: str) -> str | None:
    path = self._path(key)
    try:
      return path.read_text(encoding="utf-8")
    except FileNotFoundError:
      return None
    except OSError as e:
      raise exceptions.CacheError(f"Could not read {path}: {e}") from e

  def set_item(self, key: str, value: str) -> None:
    path = self._path(key)
    try:
      self._directory.mkdir(parents=True, exist_ok=True)
      path.write_text(value, encoding="utf-8")
    except OSError as e:
      raise exceptions.CacheError(f"Could not write {path}: {e}") from e

  def remove_item(self, key: str) -> None:
    path = self._path(key)
    try:
      path.unlink(missing_ok=True)
    except OSError as e:
      raise exceptions.CacheError(f"Could not remove {path}: {e}") from e


def _is_valid_entry(entry: Any) -> bool:
  if not isinstance(entry, dict) or not _ENTRY_FIELDS.issubset(entry):
    return False
  return (
      isinstance(entry["data"], list)
      and isinstance(entry["timestamp"], (int, float))
      and isinstance(entry["version"], str)
      and isinstance(entry["size"], int)
  )


class ParameterCache:
  """Versioned, expiring cache of raw parameters."""

  def __init__(
      self,
      storage: Storage,
      *,
      version: str = DEFAULT_CACHE_VERSION,
      ttl_seconds: float = DEFAULT_TTL_SECONDS,
      max_bytes: int = DEFAULT_MAX_BYTES,
      key: str = DEFAULT_CACHE_KEY,
      clock: Callable[[], float] = time.time,
  ):
    """Initializes the cache.

    Args:
      storage: Where the entry is kept.
      version: Entries written with another version are ignored.
      ttl_seconds: Entries older than this are ignored.
      max_bytes: Payloads larger than this are neither written nor read.
      key: Storage key of the entry.
      clock: Returns the current time in seconds since the epoch.
    """
    self._storage = storage
    self._version = version
    self._ttl_ms = ttl_seconds * 1000
    self._max_bytes = max_bytes
    self._key = key
    self._clock = clock

  def _now_ms(self) -> int:
    return int(self._clock() * 1000)

  def load(self) -> list[data.RawParameter] | None:
    """Returns the cached raw parameters, or None on a miss."""
    try:
      payload = self._storage.get_item(self._key)
    except Exception as e:  # pylint: disable=broad-exception-caught
      logging.warning("Failed to read parameter cache: %s", e)
      return None
    if payload is None:
      return None

    try:
      entry = json.loads(payload)
    except (json.JSONDecodeError, TypeError) as e:
      logging.warning("Discarding unreadable parameter cache: %s", e)
      return None
    if not _is_valid_entry(entry):
      logging.warning("Discarding malformed parameter cache entry")
      return None
    if entry["version"] != self._version:
      logging.info(
          "Ignoring parameter cache version %s (expected %s)",
          entry["version"],
          self._version,
      )
      return None
    if self._now_ms() - entry["timestamp"] > self._ttl_ms:
      logging.info("Parameter cache expired")
      return None
    if entry["size"] > self._max_bytes:
      logging.warning(
          "Ignoring oversized parameter cache (%d bytes)", entry["size"]
      )
      return None

    try:
      return [data.RawParameter.from_dict(item) for item in entry["data"]]
    except (KeyError, TypeError, AttributeError) as e:
      logging.warning("Discarding parameter cache with invalid data: %s", e)
      return None

  def save(self, params: Sequence[data.RawParameter]) -> bool:
    """Writes `params` to storage.

    Args:
      params: The raw parameters to cache.

    Returns:
      Whether the entry was written. Oversized payloads are skipped.
    """
    items = [p.to_dict() for p in params]
    try:
      serialized = json.dumps(items)
    except (TypeError, ValueError) as e:
      logging.warning("Parameters are not serializable, cache skipped: %s", e)
      return False
    size = len(serialized.encode("utf-8"))
    if size > self._max_bytes:
      logging.warning(
          "Parameter cache payload of %d bytes exceeds %d, skipped",
          size,
          self._max_bytes,
      )
      return False

    entry = {
        "data": items,
        "timestamp": self._now_ms(),
        "version": self._version,
        "size": size,
    }
    try:
      self._storage.set_item(self._key, json.dumps(entry))
    except Exception as e:  # pylint: disable=broad-exception-caught
      logging.warning("Failed to write parameter cache: %s", e)
      return False
    logging.debug("Cached %d raw parameters (%d bytes)", len(params), size)
    return True

  def clear(self) -> None:
    try:
      self._storage.remove_item(self._key)
    except Exception as e:  # pylint: disable=broad-exception-caught
      logging.warning("Failed to clear parameter cache: %s", e)


class ParameterRecovery:
  """Recovers a usable raw parameter set after a failed extraction."""

  def __init__(self, cache: ParameterCache):
    self._cache = cache

  def recover_raw_parameters(self) -> list[data.RawParameter]:
    cached = self._cache.load()
    if cached:
      logging.info("Recovered %d raw parameters from cache", len(cached))
      return cached
    logging.warning("No cached parameters, using a minimal parameter set")
    return [self.create_minimal_parameter("default")]

  @staticmethod
  def create_minimal_parameter(param_id: str) -> data.RawParameter:
    return data.RawParameter(
        id=param_id,
        name="Unknown",
        value=None,
        source_group=data.DEFAULT_GROUP,
        metadata=data.RawParameterMetadata(category="Unknown"),
    )
