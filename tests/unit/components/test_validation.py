"""
Unit tests for shared validation helpers and instruction parsing.
"""

import pytest

from streamrender.errors import InstructionError
from streamrender.instructions import (
    AppendTextOp,
    CreateOp,
    Instruction,
    RemoveOp,
    SetTextOp,
    UpdateOp,
    canonical_name,
    parse_operation,
)
from streamrender.validation import (
    IdGenerator,
    is_root_reference,
    is_valid_instruction,
    normalize_label,
    parse_arguments,
    parses_as_structured,
)


class TestIdGenerator:
    def test_prefix_and_counter(self):
        gen = IdGenerator("el")
        first = gen.next_id()
        second = gen.next_id()
        assert first.startswith("el_1_")
        assert second.startswith("el_2_")

    def test_skips_taken_ids(self):
        gen = IdGenerator("el")
        taken = {gen.next_id()}
        assert gen.next_id(taken) not in taken

    def test_independent_generators_differ(self):
        assert IdGenerator().next_id() != IdGenerator().next_id()


class TestLabels:
    def test_plain_tags(self):
        assert normalize_label("div") == "div"
        assert normalize_label(" Span ") == "span"
        assert normalize_label("my-widget") == "my-widget"

    def test_bad_labels_use_default(self):
        assert normalize_label("", "section") == "section"
        assert normalize_label("1abc") == "div"
        assert normalize_label(42) == "div"


class TestRootReference:
    @pytest.mark.parametrize("value", [None, "", "null", "root", "ROOT", "None"])
    def test_root_spellings(self, value):
        assert is_root_reference(value)

    def test_real_id(self):
        assert not is_root_reference("app")


class TestArguments:
    def test_mapping_passthrough(self):
        assert parse_arguments({"a": 1}) == {"a": 1}

    def test_json_string(self):
        assert parse_arguments('{"a": 1}') == {"a": 1}

    def test_none_and_blank(self):
        assert parse_arguments(None) == {}
        assert parse_arguments("  ") == {}

    def test_bad_json(self):
        with pytest.raises(InstructionError, match="Invalid JSON"):
            parse_arguments('{"a":')

    def test_non_object(self):
        with pytest.raises(InstructionError, match="must be an object"):
            parse_arguments("[1]")

    def test_deep_nesting(self):
        with pytest.raises(InstructionError, match="nested too deeply"):
            parse_arguments("[" * 100_000)


class TestStructuredPayload:
    def test_complete_object(self):
        assert parses_as_structured('{"a": 1}')
        assert parses_as_structured("[]")

    def test_partial(self):
        assert not parses_as_structured('{"a": ')
        assert not parses_as_structured("")

    def test_scalars_are_not_structured(self):
        assert not parses_as_structured("12")
        assert not parses_as_structured('"text"')


class TestValidInstruction:
    def test_valid(self):
        assert is_valid_instruction({"name": "create", "arguments": {}})
        assert is_valid_instruction({"name": "create", "arguments": "{}"})

    def test_invalid(self):
        assert not is_valid_instruction({"name": "", "arguments": {}})
        assert not is_valid_instruction({"name": "create"})
        assert not is_valid_instruction({"name": "create", "arguments": ""})
        assert not is_valid_instruction({"name": "create", "arguments": 5})
        assert not is_valid_instruction(["create"])


class TestParseOperation:
    def test_create(self):
        op = parse_operation(Instruction("create", {"parentId": "p", "label": "li"}))
        assert op == CreateOp(parent_id="p", label="li", attributes={})

    def test_update(self):
        op = parse_operation(Instruction("update", {"targetId": "x", "attributes": {"a": 1}}))
        assert op == UpdateOp(target_id="x", attributes={"a": 1})

    def test_text_ops(self):
        assert parse_operation(Instruction("setText", {"targetId": "x", "text": "a"})) == SetTextOp("x", "a")
        assert parse_operation(Instruction("appendText", {"targetId": "x", "text": "b"})) == AppendTextOp("x", "b")

    def test_remove(self):
        assert parse_operation(Instruction("remove", '{"targetId": "x"}')) == RemoveOp("x")

    def test_numeric_target_is_stringified(self):
        assert parse_operation(Instruction("remove", {"targetId": 7})) == RemoveOp("7")

    def test_aliases(self):
        assert canonical_name("h") == "create"
        op = parse_operation(Instruction("setText", {"elementId": "x", "text": "t"}))
        assert op == SetTextOp("x", "t")

    def test_unknown(self):
        with pytest.raises(InstructionError, match="Unknown operation"):
            parse_operation(Instruction("explode", {}))

    def test_coerce_rejects_nameless(self):
        with pytest.raises(InstructionError):
            Instruction.coerce({"arguments": {}})
