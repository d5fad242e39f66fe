"""
streamrender - incremental tree rendering from streamed model instructions.
"""

from .dispatcher import Dispatcher, Result
from .dom import Node, NodeStore
from .errors import InstructionError, NodeNotFoundError, RenderError
from .feeds.delta import DeltaAssembler, Fragment
from .feeds.text import TextAssembler
from .instructions import Instruction
from .schemas import tool_schemas
from .session import RenderSession
from .validation import ROOT

__all__ = [
    "ROOT",
    "DeltaAssembler",
    "Dispatcher",
    "Fragment",
    "Instruction",
    "InstructionError",
    "Node",
    "NodeNotFoundError",
    "NodeStore",
    "RenderError",
    "RenderSession",
    "Result",
    "TextAssembler",
    "tool_schemas",
]
