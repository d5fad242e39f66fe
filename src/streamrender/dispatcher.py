"""
Instruction dispatcher.

Validates one instruction and routes it to exactly one NodeStore operation.
Failures come back as Result values so a batch keeps going past a bad entry.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from .dom import NodeStore
from .errors import RenderError
from .instructions import (
    AppendTextOp,
    CreateOp,
    Instruction,
    Operation,
    RemoveOp,
    SetTextOp,
    UpdateOp,
    parse_operation,
)

logger = logging.getLogger(__name__)


@dataclass
class Result:
    """Outcome of one instruction."""
    success: bool
    instruction: Instruction | Any
    result: Any = None
    error_message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Event envelope handed to the presentation layer."""
        instruction = self.instruction
        if isinstance(instruction, Instruction):
            instruction = instruction.to_dict()
        data: dict[str, Any] = {"success": self.success, "instruction": instruction}
        if self.success:
            data["result"] = self.result
        else:
            data["errorMessage"] = self.error_message
        return data


class Dispatcher:
    """Applies instructions to one NodeStore."""

    def __init__(self, store: NodeStore):
        self.store = store

    def execute(self, instruction: Instruction | Mapping[str, Any]) -> Result:
        """Run one instruction. Never raises for malformed input."""
        parsed: Instruction | None = None
        try:
            parsed = Instruction.coerce(instruction)
            operation = parse_operation(parsed)
            value = self.apply(operation)
        except (RenderError, ValueError, TypeError) as e:
            logger.warning("Instruction %s failed: %s", parsed.name if parsed else instruction, e)
            return Result(success=False, instruction=parsed or instruction, error_message=str(e))
        return Result(success=True, instruction=parsed, result=value)

    def execute_batch(self, instructions: Iterable[Instruction | Mapping[str, Any]]) -> list[Result]:
        """Run instructions in list order, one Result per entry."""
        if instructions is None:
            raise TypeError("execute_batch() requires a list of instructions, got None")
        return [self.execute(instruction) for instruction in instructions]

    def apply(self, operation: Operation) -> str | None:
        """Route a validated operation to the store."""
        store = self.store
        if isinstance(operation, CreateOp):
            return store.create_node(operation.parent_id, operation.label, operation.attributes)
        if isinstance(operation, UpdateOp):
            return store.update_node(operation.target_id, operation.attributes)
        if isinstance(operation, SetTextOp):
            return store.set_text(operation.target_id, operation.text)
        if isinstance(operation, AppendTextOp):
            return store.append_text(operation.target_id, operation.text)
        if isinstance(operation, RemoveOp):
            store.remove_node(operation.target_id)
            return operation.target_id
        raise TypeError(f"Unsupported operation: {operation!r}")
