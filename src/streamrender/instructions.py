"""
Instruction records and the closed set of tree operations.

An Instruction is what the assemblers emit: a name plus raw arguments (a JSON
string or a mapping), exactly as the model produced them. parse_operation()
validates one into a typed operation the dispatcher can route.
"""

from __future__ import annotations

from collections.abc import Hashable, Mapping
from dataclasses import dataclass, field
from typing import Any

from .errors import InstructionError
from .validation import parse_arguments, require_target


@dataclass(frozen=True)
class Instruction:
    """One fully-formed instruction."""
    name: str
    arguments: str | Mapping[str, Any] | None = None
    id: str | None = None
    slot_key: Hashable | None = None

    @classmethod
    def coerce(cls, value: Instruction | Mapping[str, Any]) -> Instruction:
        """Accept an Instruction or a {name, arguments[, id]} mapping."""
        if isinstance(value, Instruction):
            return value
        if not isinstance(value, Mapping):
            raise InstructionError(
                f"Instruction must be an object, got {type(value).__name__}"
            )
        name = value.get("name")
        if not isinstance(name, str) or not name:
            raise InstructionError("Instruction is missing a name")
        return cls(name=name, arguments=value.get("arguments"), id=value.get("id"))

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name, "arguments": self.arguments}
        if self.id is not None:
            data["id"] = self.id
        return data


@dataclass(frozen=True)
class CreateOp:
    parent_id: str | None
    label: Any
    attributes: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class UpdateOp:
    target_id: str
    attributes: dict[str, Any]


@dataclass(frozen=True)
class SetTextOp:
    target_id: str
    text: str


@dataclass(frozen=True)
class AppendTextOp:
    target_id: str
    text: str


@dataclass(frozen=True)
class RemoveOp:
    target_id: str


Operation = CreateOp | UpdateOp | SetTextOp | AppendTextOp | RemoveOp

# Canonical names plus the tool names earlier prompts taught models to call
OPERATION_NAMES: dict[str, str] = {
    "create": "create",
    "h": "create",
    "update": "update",
    "updateElement": "update",
    "setText": "setText",
    "appendText": "appendText",
    "remove": "remove",
    "removeElement": "remove",
}

FIELD_ALIASES: dict[str, str] = {
    "tagName": "label",
    "props": "attributes",
    "elementId": "targetId",
}


def canonical_name(name: str) -> str:
    """Map an instruction name onto one of the five operations."""
    try:
        return OPERATION_NAMES[name]
    except KeyError:
        raise InstructionError(f"Unknown operation: {name}") from None


def _canonical_fields(args: dict[str, Any]) -> dict[str, Any]:
    for alias, canonical in FIELD_ALIASES.items():
        if alias in args and canonical not in args:
            args[canonical] = args.pop(alias)
    return args


def _text_field(args: Mapping[str, Any], operation: str) -> str:
    if "text" not in args:
        raise InstructionError(f"{operation}: missing required field 'text'")
    text = args["text"]
    return "" if text is None else str(text)


def _attributes_field(args: Mapping[str, Any], operation: str, required: bool) -> dict[str, Any]:
    if "attributes" not in args or args["attributes"] is None:
        if required:
            raise InstructionError(f"{operation}: missing required field 'attributes'")
        return {}
    attributes = args["attributes"]
    if not isinstance(attributes, Mapping):
        raise InstructionError(f"{operation}: attributes must be an object")
    return dict(attributes)


def parse_operation(instruction: Instruction) -> Operation:
    """Validate an instruction's name and arguments into a typed operation."""
    op = canonical_name(instruction.name)
    args = _canonical_fields(parse_arguments(instruction.arguments))

    if op == "create":
        # Missing or bad labels degrade in the store
        return CreateOp(
            parent_id=args.get("parentId"),
            label=args.get("label"),
            attributes=_attributes_field(args, op, required=False),
        )
    if op == "update":
        return UpdateOp(
            target_id=require_target(args, op),
            attributes=_attributes_field(args, op, required=True),
        )
    if op == "setText":
        return SetTextOp(target_id=require_target(args, op), text=_text_field(args, op))
    if op == "appendText":
        return AppendTextOp(target_id=require_target(args, op), text=_text_field(args, op))
    if op == "remove":
        return RemoveOp(target_id=require_target(args, op))
    raise AssertionError(f"unhandled operation {op}")
