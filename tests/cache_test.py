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

"""Tests for the parameter cache and recovery."""

import json

from absl.testing import absltest

from bimschedule import cache
from bimschedule.core import data
from bimschedule.core import exceptions

_PARAMS = [
    data.RawParameter(
        id="Dimensions.Width",
        name="Width",
        value=300,
        source_group="Dimensions",
        metadata=data.RawParameterMetadata(
            category="Walls", is_parent=True, element_id="w1",
            is_bim_origin=True,
        ),
    ),
    data.RawParameter(
        id="Dimensions.Area",
        name="Area",
        value=data.EquationValue(
            "Width * Height", ("Width", "Height"), data.ValueType.NUMBER
        ),
        source_group="Dimensions",
    ),
]


class FakeClock:

  def __init__(self, now=1_000_000.0):
    self.now = now

  def __call__(self):
    return self.now


class FailingStorage:

  def get_item(self, key):
    raise exceptions.CacheError("read failed")

  def set_item(self, key, value):
    raise exceptions.CacheError("write failed")

  def remove_item(self, key):
    raise exceptions.CacheError("remove failed")


class ParameterCacheTest(absltest.TestCase):

  def setUp(self):
    super().setUp()
    self.storage = cache.MemoryStorage()
    self.clock = FakeClock()
    self.cache = cache.ParameterCache(self.storage, clock=self.clock)

  def test_save_and_load(self):
    self.assertTrue(self.cache.save(_PARAMS))
    self.assertEqual(self.cache.load(), _PARAMS)

  def test_entry_layout(self):
    self.cache.save(_PARAMS)
    entry = json.loads(self.storage.get_item(cache.DEFAULT_CACHE_KEY))
    self.assertEqual(
        set(entry), {"data", "timestamp", "version", "size"}
    )
    self.assertEqual(entry["version"], "1.0.0")
    self.assertEqual(entry["timestamp"], 1_000_000_000)
    self.assertEqual(
        entry["size"],
        len(json.dumps([p.to_dict() for p in _PARAMS]).encode("utf-8")),
    )
    self.assertEqual(entry["data"][1]["value"]["kind"], "equation")

  def test_empty_storage_is_a_miss(self):
    self.assertIsNone(self.cache.load())

  def test_entry_expires_after_ttl(self):
    self.cache.save(_PARAMS)
    self.clock.now += 5 * 60
    self.assertEqual(self.cache.load(), _PARAMS)
    self.clock.now += 1
    self.assertIsNone(self.cache.load())

  def test_version_mismatch_is_a_miss(self):
    self.cache.save(_PARAMS)
    other = cache.ParameterCache(
        self.storage, version="2.0.0", clock=self.clock
    )
    self.assertIsNone(other.load())

  def test_oversized_payload_is_not_written(self):
    small = cache.ParameterCache(self.storage, max_bytes=10, clock=self.clock)
    self.assertFalse(small.save(_PARAMS))
    self.assertIsNone(self.storage.get_item(cache.DEFAULT_CACHE_KEY))

  def test_oversized_entry_is_a_miss(self):
    self.cache.save(_PARAMS)
    small = cache.ParameterCache(self.storage, max_bytes=10, clock=self.clock)
    self.assertIsNone(small.load())

  def test_corrupt_entries_are_a_miss(self):
    for payload in (
        "not json",
        json.dumps([1, 2]),
        json.dumps({"data": [], "timestamp": 1}),
        json.dumps({
            "data": [{"name": "no id"}],
            "timestamp": 1_000_000_000,
            "version": "1.0.0",
            "size": 1,
        }),
    ):
      self.storage.set_item(cache.DEFAULT_CACHE_KEY, payload)
      self.assertIsNone(self.cache.load(), msg=payload)

  def test_storage_failures_are_swallowed(self):
    failing = cache.ParameterCache(FailingStorage(), clock=self.clock)
    self.assertIsNone(failing.load())
    self.assertFalse(failing.save(_PARAMS))
    failing.clear()

  def test_clear(self):
    self.cache.save(_PARAMS)
    self.cache.clear()
    self.assertIsNone(self.cache.load())
    self.assertEmpty(self.storage)


class FileStorageTest(absltest.TestCase):

  def test_round_trip(self):
    directory = self.create_tempdir().full_path
    storage = cache.FileStorage(directory)
    self.assertIsNone(storage.get_item("parameter-store-cache"))
    storage.set_item("parameter-store-cache", '{"a": 1}')
    self.assertEqual(storage.get_item("parameter-store-cache"), '{"a": 1}')
    storage.remove_item("parameter-store-cache")
    self.assertIsNone(storage.get_item("parameter-store-cache"))

  def test_cache_on_files(self):
    directory = self.create_tempdir().full_path
    param_cache = cache.ParameterCache(cache.FileStorage(directory))
    self.assertTrue(param_cache.save(_PARAMS))
    reopened = cache.ParameterCache(cache.FileStorage(directory))
    self.assertEqual(reopened.load(), _PARAMS)


class ParameterRecoveryTest(absltest.TestCase):

  def test_recovers_cached_parameters(self):
    param_cache = cache.ParameterCache(cache.MemoryStorage())
    param_cache.save(_PARAMS)
    recovery = cache.ParameterRecovery(param_cache)
    self.assertEqual(recovery.recover_raw_parameters(), _PARAMS)

  def test_falls_back_to_minimal_parameter(self):
    recovery = cache.ParameterRecovery(
        cache.ParameterCache(cache.MemoryStorage())
    )
    self.assertEqual(
        recovery.recover_raw_parameters(),
        [
            data.RawParameter(
                id="default",
                name="Unknown",
                value=None,
                source_group="Parameters",
                metadata=data.RawParameterMetadata(category="Unknown"),
            )
        ],
    )


if __name__ == "__main__":
  absltest.main()
