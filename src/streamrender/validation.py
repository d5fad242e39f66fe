"""
Shared validation and id helpers.

Used by the node store, the dispatcher and both feed assemblers. Everything
here is pure except IdGenerator, which each NodeStore owns privately.
"""

from __future__ import annotations

import itertools
import json
import re
import secrets
from collections.abc import Container, Mapping
from typing import Any

from .errors import InstructionError

ROOT = "root"

# Tag-like labels: "div", "h1", "my-widget", "svg:path"
LABEL_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9:_-]*$")

# Parent ids the model uses to mean "top level"
_ROOT_ALIASES = frozenset({"", "null", "none", ROOT})


class IdGenerator:
    """
    Produces node ids as prefix_counter_entropy.

    The counter makes ids from one generator distinct; the random suffix keeps
    ids from independent sessions apart when their trees get merged.
    """

    def __init__(self, prefix: str = "node"):
        self.prefix = prefix
        self._counter = itertools.count(1)

    def next_id(self, taken: Container[str] = ()) -> str:
        """Return a fresh id not contained in `taken`."""
        while True:
            candidate = f"{self.prefix}_{next(self._counter)}_{secrets.token_hex(3)}"
            if candidate not in taken:
                return candidate


def normalize_label(label: Any, default: str = "div") -> str:
    """Lowercased tag label, or `default` when empty or not tag-shaped."""
    if not isinstance(label, str):
        return default
    label = label.strip()
    if not LABEL_PATTERN.match(label):
        return default
    return label.lower()


def is_root_reference(parent_id: Any) -> bool:
    """True for None and the spellings of "no parent" models emit."""
    if parent_id is None:
        return True
    return isinstance(parent_id, str) and parent_id.strip().lower() in _ROOT_ALIASES


def parse_arguments(arguments: Any) -> dict[str, Any]:
    """
    Normalize instruction arguments to a dict.

    Accepts a mapping or a JSON-encoded object string. None means "no
    arguments". Anything else is an InstructionError.
    """
    if arguments is None:
        return {}
    if isinstance(arguments, str):
        if not arguments.strip():
            return {}
        try:
            arguments = json.loads(arguments)
        except json.JSONDecodeError as e:
            raise InstructionError(f"Invalid JSON arguments: {arguments!r}") from e
        except RecursionError:
            raise InstructionError("Invalid JSON arguments: nested too deeply") from None
    if not isinstance(arguments, Mapping):
        raise InstructionError(
            f"Arguments must be an object, got {type(arguments).__name__}"
        )
    return dict(arguments)


def parses_as_structured(payload: str) -> bool:
    """
    True if payload is a complete JSON object or array.

    Scalars don't count: "12" is also a prefix of "123", so a bare number can
    never prove a streamed payload has ended.
    """
    if not payload or not payload.strip():
        return False
    try:
        value = json.loads(payload)
    except (json.JSONDecodeError, RecursionError):
        return False
    return isinstance(value, (dict, list))


def is_valid_instruction(item: Any) -> bool:
    """An embedded instruction needs a non-empty name and usable arguments."""
    if not isinstance(item, Mapping):
        return False
    name = item.get("name")
    if not isinstance(name, str) or not name.strip():
        return False
    if "arguments" not in item:
        return False
    arguments = item["arguments"]
    if isinstance(arguments, Mapping):
        return True
    return isinstance(arguments, str) and bool(arguments.strip())


def require_target(args: Mapping[str, Any], operation: str) -> str:
    """Fetch the targetId field, which must be a non-empty string."""
    target = args.get("targetId")
    if target is None:
        raise InstructionError(f"{operation}: missing required field 'targetId'")
    if isinstance(target, (int, float)) and not isinstance(target, bool):
        target = str(target)
    if not isinstance(target, str) or not target.strip():
        raise InstructionError(f"{operation}: targetId must be a non-empty string")
    return target
