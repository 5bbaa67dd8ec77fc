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

import json
import os
import pathlib
from unittest import mock

from absl.testing import absltest

from bimschedule import cli
from bimschedule import config

_ELEMENTS = [
    {
        "id": "wall1",
        "category": "Walls",
        "parameters": {
            "Identity Data.Mark": "W1",
            "Dimensions.Height": 3000,
            "Material": "Concrete",
        },
    },
    {
        "id": "door1",
        "category": "Doors",
        "host": "W1",
        "parameters": {"Dimensions.Width": 900},
    },
]


class CliTest(absltest.TestCase):

  def setUp(self):
    super().setUp()
    self.enter_context(mock.patch.object(config, "load_dotenv"))
    self.enter_context(
        mock.patch.dict(os.environ, {k: "" for k in config.ENV_OVERRIDES})
    )
    self.tmp = pathlib.Path(self.create_tempdir().full_path)
    self.elements = self.tmp / "elements.json"
    self.elements.write_text(json.dumps(_ELEMENTS), encoding="utf-8")

  def test_writes_snapshot_and_groups(self):
    output = self.tmp / "out.json"

    code = cli.main(["--elements", str(self.elements), "--output", str(output)])

    self.assertEqual(code, 0)
    result = json.loads(output.read_text(encoding="utf-8"))
    self.assertEqual(result["status"], "complete")
    self.assertLen(result["parent"]["columns"], 3)
    self.assertLen(result["child"]["columns"], 1)
    self.assertEqual(result["relations"]["children"], {"wall1": ["door1"]})
    self.assertEqual(
        [g["id"] for g in result["groups"]["parent"]],
        ["bim_Dimensions", "bim_Identity Data", "bim_Parameters"],
    )

  def test_cache_dir_is_written(self):
    cache_dir = self.tmp / "cache"
    output = self.tmp / "out.json"
    args = [
        "--elements", str(self.elements),
        "--cache-dir", str(cache_dir),
        "--output", str(output),
    ]

    self.assertEqual(cli.main(args), 0)
    self.assertTrue((cache_dir / "parameter-store-cache.json").exists())
    # A second run starts from the cache and still succeeds.
    self.assertEqual(cli.main(args), 0)

  def test_config_file(self):
    cfg = self.tmp / "cfg.yaml"
    cfg.write_text("parent_categories: [Walls, Doors]\n", encoding="utf-8")
    output = self.tmp / "out.json"

    code = cli.main([
        "--elements", str(self.elements),
        "--config", str(cfg),
        "--output", str(output),
    ])

    self.assertEqual(code, 0)
    result = json.loads(output.read_text(encoding="utf-8"))
    self.assertEmpty(result["child"]["columns"])

  def test_extraction_failure_exits_with_one(self):
    self.elements.write_text(
        json.dumps([{"id": "x", "category": "Walls", "parameters": {}}]),
        encoding="utf-8",
    )
    self.assertEqual(cli.main(["--elements", str(self.elements)]), 1)

  def test_unreadable_input(self):
    self.assertEqual(
        cli.main(["--elements", str(self.tmp / "missing.json")]), 2
    )
    self.elements.write_text('{"not": "a list"}', encoding="utf-8")
    self.assertEqual(cli.main(["--elements", str(self.elements)]), 2)

  def test_invalid_config(self):
    cfg = self.tmp / "cfg.yaml"
    cfg.write_text("bogus: 1\n", encoding="utf-8")
    self.assertEqual(
        cli.main(["--elements", str(self.elements), "--config", str(cfg)]), 2
    )


if __name__ == "__main__":
  absltest.main()
