"""
Unit tests for the advertised tool definitions.
"""

from streamrender.instructions import OPERATION_NAMES
from streamrender.schemas import tool_schemas


class TestToolSchemas:
    def test_one_tool_per_operation(self):
        names = [tool["function"]["name"] for tool in tool_schemas()]
        assert names == ["create", "update", "setText", "appendText", "remove"]

    def test_names_are_routable(self):
        for tool in tool_schemas():
            assert OPERATION_NAMES[tool["function"]["name"]] == tool["function"]["name"]

    def test_required_fields(self):
        required = {t["function"]["name"]: t["function"]["parameters"]["required"] for t in tool_schemas()}
        assert required["create"] == ["parentId", "label"]
        assert required["update"] == ["targetId", "attributes"]
        assert required["appendText"] == ["targetId", "text"]
        assert required["remove"] == ["targetId"]

    def test_function_tool_shape(self):
        for tool in tool_schemas():
            assert tool["type"] == "function"
            assert tool["function"]["description"]
            assert tool["function"]["parameters"]["type"] == "object"
