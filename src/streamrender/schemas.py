"""
Tool definitions advertised to the model.

OpenAI function-tool format, one per operation, using the canonical names the
dispatcher routes on.
"""

from __future__ import annotations

from typing import Any

_TARGET = {"type": "string", "description": "Id of an existing node"}


def _tool(name: str, description: str, properties: dict[str, Any], required: list[str]) -> dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": description,
            "parameters": {
                "type": "object",
                "properties": properties,
                "required": required,
            },
        },
    }


def tool_schemas() -> list[dict[str, Any]]:
    """Definitions for create, update, setText, appendText and remove."""
    return [
        _tool(
            "create",
            "Create a node under a parent and return its id. "
            "A null or unknown parent places it at the top level.",
            {
                "parentId": {"type": ["string", "null"], "description": "Parent node id, or null for the top level"},
                "label": {"type": "string", "description": 'Tag name such as "div", "p", "h1"'},
                "attributes": {
                    "type": "object",
                    "description": "Attributes; may include id, className, style and textContent",
                    "properties": {
                        "id": {"type": "string", "description": "Explicit node id (generated if omitted)"},
                        "textContent": {"type": "string", "description": "Initial text"},
                        "style": {"type": "object"},
                    },
                    "additionalProperties": True,
                },
            },
            ["parentId", "label"],
        ),
        _tool(
            "update",
            "Merge attributes into an existing node. A new id renames the node.",
            {
                "targetId": _TARGET,
                "attributes": {"type": "object", "additionalProperties": True},
            },
            ["targetId", "attributes"],
        ),
        _tool(
            "setText",
            "Replace a node's text; its child nodes are removed.",
            {"targetId": _TARGET, "text": {"type": "string"}},
            ["targetId", "text"],
        ),
        _tool(
            "appendText",
            "Append text to a node. Call repeatedly to stream long text.",
            {"targetId": _TARGET, "text": {"type": "string"}},
            ["targetId", "text"],
        ),
        _tool(
            "remove",
            "Remove a node and everything under it.",
            {"targetId": _TARGET},
            ["targetId"],
        ),
    ]
