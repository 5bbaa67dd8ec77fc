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

from bimschedule import type_inference
from bimschedule.core import data

STRING = data.ValueType.STRING
NUMBER = data.ValueType.NUMBER
BOOLEAN = data.ValueType.BOOLEAN
ARRAY = data.ValueType.ARRAY
OBJECT = data.ValueType.OBJECT
DATE = data.ValueType.DATE


class InferTypeTest(parameterized.TestCase):

  @parameterized.named_parameters(
      dict(testcase_name="number", value=3000, key="Height", expected=NUMBER),
      dict(testcase_name="float", value=2.5, key="Area", expected=NUMBER),
      dict(testcase_name="boolean", value=True, key="IsExternal",
           expected=BOOLEAN),
      dict(testcase_name="string", value="Brick", key="Finish",
           expected=STRING),
      dict(testcase_name="array", value=[1, 2], key="Points", expected=ARRAY),
      dict(testcase_name="object", value={"a": 1}, key="Extra",
           expected=OBJECT),
      dict(testcase_name="none", value=None, key="Empty", expected=STRING),
      dict(testcase_name="id_key", value=42, key="ElementId",
           expected=STRING),
      dict(testcase_name="global_id_key", value=1, key="GlobalId",
           expected=STRING),
      dict(testcase_name="type_key", value=7, key="TypeMark",
           expected=STRING),
      dict(testcase_name="category_key", value=True, key="Category",
           expected=STRING),
  )
  def test_infer_type(self, value, key, expected):
    self.assertEqual(
        type_inference.infer_type(value, key=key, group="Dimensions"),
        expected,
    )

  def test_identity_group_is_string(self):
    self.assertEqual(
        type_inference.infer_type(12, key="Mark", group="Identity Data"),
        STRING,
    )

  def test_custom_identity_group(self):
    self.assertEqual(
        type_inference.infer_type(
            12, key="Mark", group="Identität", identity_group="Identität"
        ),
        STRING,
    )

  def test_equation_uses_result_type(self):
    equation = data.EquationValue("Width * 2", ("Width",), NUMBER)
    self.assertEqual(
        type_inference.infer_type(equation, key="Double", group="Dimensions"),
        NUMBER,
    )
    equation = data.EquationValue("Today()", (), DATE)
    self.assertEqual(
        type_inference.infer_type(equation, key="Due", group="Other"), DATE
    )

  def test_key_rule_wins_over_equation(self):
    equation = data.EquationValue("1 + 1", (), NUMBER)
    self.assertEqual(
        type_inference.infer_type(equation, key="TypeCode", group="Other"),
        STRING,
    )


if __name__ == "__main__":
  absltest.main()
