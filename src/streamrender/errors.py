"""
Exception types raised by the node store and instruction parsing.

The dispatcher turns every one of these into a failed Result; they never
escape a streaming session.
"""


class RenderError(Exception):
    """Base class for instruction and store failures."""


class InstructionError(RenderError, ValueError):
    """Malformed instruction: unknown operation, bad JSON, missing field."""


class NodeNotFoundError(RenderError, LookupError):
    """An operation addressed a node id that is not live."""

    def __init__(self, node_id: str):
        super().__init__(f'Node with id "{node_id}" not found')
        self.node_id = node_id
