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

"""Runs one extraction pass over an elements JSON file.

Usage:

  python -m bimschedule --elements elements.json [--config cfg.yaml]
      [--cache-dir DIR] [--output out.json] [--verbose]
"""

from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path
import sys
from typing import Any

from absl import logging

from bimschedule import cache as cache_lib
from bimschedule import config as config_lib
from bimschedule import grouping
from bimschedule import pipeline as pipeline_lib
from bimschedule.core import exceptions


def build_parser() -> argparse.ArgumentParser:
  ap = argparse.ArgumentParser(
      prog="bimschedule",
      description="Extract schedule columns from BIM element parameters.",
  )
  ap.add_argument(
      "--elements",
      type=Path,
      required=True,
      help="JSON file holding a list of element objects",
  )
  ap.add_argument(
      "--config", type=Path, default=None, help="Optional YAML config file"
  )
  ap.add_argument(
      "--cache-dir",
      dest="cache_dir",
      type=Path,
      default=None,
      help="Directory for the parameter cache (default: no persistent cache)",
  )
  ap.add_argument(
      "--output",
      type=Path,
      default=None,
      help="Where to write the result JSON (default: stdout)",
  )
  ap.add_argument(
      "--verbose", action="store_true", help="Enable debug logging"
  )
  return ap


def _make_cache(
    config: config_lib.PipelineConfig, cache_dir: Path | None
) -> cache_lib.ParameterCache | None:
  if cache_dir is None:
    return None
  return cache_lib.ParameterCache(
      cache_lib.FileStorage(cache_dir),
      version=config.cache_version,
      ttl_seconds=config.cache_ttl_seconds,
      max_bytes=config.cache_max_bytes,
      key=config.cache_key,
  )


async def run(
    elements: list[Any],
    config: config_lib.PipelineConfig,
    cache_dir: Path | None = None,
) -> dict[str, Any]:
  """Runs a pass and returns the JSON-ready result."""
  pipeline = pipeline_lib.ParameterPipeline(
      config, cache=_make_cache(config, cache_dir)
  )
  if cache_dir is not None:
    await pipeline.load_from_cache()
  snapshot = await pipeline.extract_and_process(elements)
  if cache_dir is not None:
    await pipeline.save_to_cache()

  result = snapshot.to_dict()
  result["groups"] = {
      partition: [
          g.to_dict()
          for g in grouping.build_parameter_groups(
              state.available_bim, state.available_user
          )
      ]
      for partition, state in (
          ("parent", snapshot.parent),
          ("child", snapshot.child),
      )
  }
  return result


def main(argv: list[str] | None = None) -> int:
  args = build_parser().parse_args(argv)
  logging.set_verbosity(logging.DEBUG if args.verbose else logging.INFO)

  try:
    config = config_lib.load_config(args.config)
  except exceptions.ConfigError as e:
    logging.error("Invalid configuration: %s", e)
    return 2

  try:
    elements = json.loads(args.elements.read_text(encoding="utf-8"))
  except (OSError, json.JSONDecodeError) as e:
    logging.error("Could not read elements from %s: %s", args.elements, e)
    return 2
  if not isinstance(elements, list):
    logging.error("%s must hold a JSON list of elements", args.elements)
    return 2

  try:
    result = asyncio.run(run(elements, config, args.cache_dir))
  except exceptions.BimScheduleError as e:
    logging.error("Extraction failed: %s", e)
    return 1

  text = json.dumps(result, ensure_ascii=False, indent=2)
  if args.output is None:
    sys.stdout.write(text + "\n")
  else:
    args.output.write_text(text, encoding="utf-8")
    logging.info("Wrote %s", args.output)
  return 0


if __name__ == "__main__":
  raise SystemExit(main())
