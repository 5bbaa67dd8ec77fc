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

from absl.testing import absltest
from absl.testing import parameterized

from bimschedule import flattening
from bimschedule.core import data


class SplitKeyTest(parameterized.TestCase):

  @parameterized.named_parameters(
      dict(
          testcase_name="grouped",
          key="Identity Data.Mark",
          expected=("Identity Data", "Mark"),
      ),
      dict(
          testcase_name="split_on_first_dot",
          key="Dimensions.Area.Net",
          expected=("Dimensions", "Area.Net"),
      ),
      dict(testcase_name="plain", key="Width", expected=("Parameters", "Width")),
      dict(
          testcase_name="leading_dot",
          key=".Width",
          expected=("Parameters", ".Width"),
      ),
      dict(
          testcase_name="trailing_dot",
          key="Width.",
          expected=("Parameters", "Width."),
      ),
  )
  def test_split_key(self, key, expected):
    self.assertEqual(flattening.split_key(key, "Parameters"), expected)


class FlattenParametersTest(absltest.TestCase):

  def test_flat_keys_go_to_default_group(self):
    result = flattening.flatten_parameters({"Width": 300, "Height": 3000})
    self.assertEqual(
        [(e.id, e.group, e.name, e.value) for e in result.entries],
        [
            ("Width", "Parameters", "Width", 300),
            ("Height", "Parameters", "Height", 3000),
        ],
    )
    self.assertEmpty(result.issues)

  def test_grouped_keys(self):
    result = flattening.flatten_parameters({
        "Identity Data.Mark": "W1",
        "Dimensions.Width": 300,
    })
    self.assertEqual(
        [(e.group, e.name) for e in result.entries],
        [("Identity Data", "Mark"), ("Dimensions", "Width")],
    )

  def test_reserved_keys_are_skipped(self):
    result = flattening.flatten_parameters(
        {"__internal": 1, "__meta": {"a": 1}, "Width": 300}
    )
    self.assertEqual([e.id for e in result.entries], ["Width"])
    self.assertEqual(result.stats.skipped_system, 2)

  def test_custom_reserved_prefix(self):
    result = flattening.flatten_parameters(
        {"_x": 1, "__y": 2}, reserved_prefix="_x"
    )
    self.assertEqual([e.id for e in result.entries], ["__y"])

  def test_property_set_json_string_expands(self):
    result = flattening.flatten_parameters({
        "Pset_WallCommon": '{"IsExternal": true, "FireRating": "EI60"}',
    })
    self.assertEqual(
        result.entries,
        (
            flattening.FlatEntry(
                id="Pset_WallCommon.IsExternal",
                group="Pset_WallCommon",
                name="IsExternal",
                value=True,
                is_nested=True,
                parent_key="Pset_WallCommon",
            ),
            flattening.FlatEntry(
                id="Pset_WallCommon.FireRating",
                group="Pset_WallCommon",
                name="FireRating",
                value="EI60",
                is_nested=True,
                parent_key="Pset_WallCommon",
            ),
        ),
    )
    self.assertEqual(result.stats.nested_expanded, 1)

  def test_grouped_nested_mapping_keeps_prefix_group(self):
    result = flattening.flatten_parameters(
        {"Other.Extra": {"Colour": "Red", "__hidden": 1}}
    )
    self.assertLen(result.entries, 1)
    entry = result.entries[0]
    self.assertEqual(entry.id, "Other.Extra.Colour")
    self.assertEqual(entry.group, "Other")
    self.assertEqual(entry.parent_key, "Other.Extra")
    self.assertEqual(result.stats.skipped_system, 1)

  def test_second_level_is_not_flattened(self):
    result = flattening.flatten_parameters(
        {"Pset_Custom": {"Inner": {"Deep": 1}}}
    )
    self.assertLen(result.entries, 1)
    self.assertEqual(result.entries[0].value, {"Deep": 1})

  def test_malformed_json_records_issue(self):
    result = flattening.flatten_parameters(
        {"Pset_Broken": "{IsExternal: yes"}, element_id="wall-1"
    )
    # Not a JSON object shape, kept verbatim without an issue.
    self.assertEqual(result.entries[0].value, "{IsExternal: yes")
    self.assertEmpty(result.issues)

    result = flattening.flatten_parameters(
        {"Pset_Broken": "{IsExternal: yes}"}, element_id="wall-1"
    )
    self.assertEqual(
        [(e.id, e.group, e.value) for e in result.entries],
        [("Pset_Broken", "Parameters", "{IsExternal: yes}")],
    )
    self.assertLen(result.issues, 1)
    self.assertEqual(result.issues[0].kind, data.IssueKind.MALFORMED_JSON)
    self.assertEqual(result.issues[0].element_id, "wall-1")

  def test_equation_values_are_kept(self):
    result = flattening.flatten_parameters({
        "Dimensions.Area": {
            "kind": "equation",
            "expression": "Width * Height",
            "references": ["Width", "Height"],
            "resultType": "number",
        }
    })
    self.assertLen(result.entries, 1)
    self.assertIsInstance(result.entries[0].value, data.EquationValue)

  def test_group_statistics(self):
    result = flattening.flatten_parameters({
        "Identity Data.Mark": "W1",
        "Identity Data.Comments": "x",
        "Width": 1,
    })
    self.assertEqual(result.stats.groups["Identity Data"], 2)
    self.assertEqual(result.stats.groups["Parameters"], 1)


if __name__ == "__main__":
  absltest.main()
