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

import os
import textwrap
from unittest import mock

from absl.testing import absltest

from bimschedule import config
from bimschedule.core import exceptions


class LoadConfigTest(absltest.TestCase):

  def setUp(self):
    super().setUp()
    # Keep the developer's .env and environment out of the tests.
    self.enter_context(mock.patch.object(config, "load_dotenv"))
    self.enter_context(
        mock.patch.dict(
            os.environ,
            {k: "" for k in config.ENV_OVERRIDES},
        )
    )

  def _write(self, content):
    return self.create_tempfile(
        "config.yaml", content=textwrap.dedent(content)
    ).full_path

  def test_defaults(self):
    cfg = config.load_config()
    self.assertEqual(cfg, config.PipelineConfig())
    self.assertIn("Walls", cfg.parent_categories)
    self.assertIn("Doors", cfg.child_categories)
    self.assertEqual(cfg.cache_ttl_seconds, 300)
    self.assertEqual(cfg.cache_max_bytes, 5 * 1024 * 1024)
    self.assertEqual(cfg.cache_version, "1.0.0")
    self.assertEqual(cfg.debounce_seconds, 0.3)

  def test_yaml_file(self):
    path = self._write("""
        parent_categories: [Walls]
        child_categories:
          - Windows
          - Doors
        cache_ttl_seconds: 60
        """)
    cfg = config.load_config(path)
    self.assertEqual(cfg.parent_categories, ("Walls",))
    self.assertEqual(cfg.child_categories, ("Windows", "Doors"))
    self.assertEqual(cfg.cache_ttl_seconds, 60)
    self.assertEqual(
        cfg.categories.parent_categories, ("Walls",)
    )

  def test_empty_yaml_file(self):
    self.assertEqual(
        config.load_config(self._write("")), config.PipelineConfig()
    )

  def test_unknown_key_raises(self):
    path = self._write("cache_tll_seconds: 60\n")
    with self.assertRaisesRegex(exceptions.ConfigError, "cache_tll_seconds"):
      config.load_config(path)

  def test_non_mapping_yaml_raises(self):
    with self.assertRaises(exceptions.ConfigError):
      config.load_config(self._write("- a\n- b\n"))

  def test_missing_file_raises(self):
    with self.assertRaises(exceptions.ConfigError):
      config.load_config("/nonexistent/config.yaml")

  def test_environment_overrides_file(self):
    path = self._write("cache_ttl_seconds: 60\n")
    with mock.patch.dict(
        os.environ,
        {
            "BIMSCHEDULE_CACHE_TTL": "10",
            "BIMSCHEDULE_CACHE_MAX_BYTES": "2048",
            "BIMSCHEDULE_CACHE_VERSION": "2.0.0",
            "BIMSCHEDULE_DEBOUNCE": "0.05",
            "BIMSCHEDULE_PARENT_CATEGORIES": "Walls, Roofs",
            "BIMSCHEDULE_CHILD_CATEGORIES": "Doors",
        },
    ):
      cfg = config.load_config(path)
    self.assertEqual(cfg.cache_ttl_seconds, 10.0)
    self.assertEqual(cfg.cache_max_bytes, 2048)
    self.assertEqual(cfg.cache_version, "2.0.0")
    self.assertEqual(cfg.debounce_seconds, 0.05)
    self.assertEqual(cfg.parent_categories, ("Walls", "Roofs"))
    self.assertEqual(cfg.child_categories, ("Doors",))

  def test_invalid_environment_value_raises(self):
    with mock.patch.dict(os.environ, {"BIMSCHEDULE_CACHE_MAX_BYTES": "lots"}):
      with self.assertRaises(exceptions.ConfigError):
        config.load_config()

  def test_negative_values_are_rejected(self):
    with self.assertRaises(exceptions.ConfigError):
      config.PipelineConfig(debounce_seconds=-1)
    with self.assertRaises(exceptions.ConfigError):
      config.PipelineConfig(cache_max_bytes=-1)


if __name__ == "__main__":
  absltest.main()
