"""
Base feed interface and registry.

Each feed assembler turns one kind of raw model stream into complete
Instructions. Assemblers are stateful, so the registry holds factories and
hands every session a fresh instance.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

from ..config import Config
from ..instructions import Instruction


class FeedAssembler(ABC):
    """
    Base class for streaming instruction assemblers.

    Contract shared by every feed:
    - each logical instruction is emitted at most once
    - instructions come out in the order they became complete
    - malformed input is buffered or dropped, never raised
    """

    def __init__(self, config: Config | None = None):
        self.config = config
        self.transcript = ""  # plain assistant text seen so far

    @property
    @abstractmethod
    def name(self) -> str:
        """Registry name of this feed."""
        ...

    @abstractmethod
    def feed(self, chunk: Any) -> list[Instruction]:
        """Consume one raw chunk and return the instructions it completed."""
        ...

    @abstractmethod
    def flush(self) -> list[Instruction]:
        """
        Handle end of stream.

        Returns whatever can still be completed from buffered data; the rest
        is discarded.
        """
        ...

    def reset(self) -> None:
        """Forget all buffered state, ready for a new stream."""
        self.transcript = ""


class FeedRegistry:
    """Registry of feed assembler factories by name."""

    def __init__(self):
        self._factories: dict[str, Callable[..., FeedAssembler]] = {}

    def register(self, name: str, factory: Callable[..., FeedAssembler]) -> None:
        """Register a feed factory. First registration of a name wins."""
        if name not in self._factories:
            self._factories[name] = factory

    def create(self, name: str, config: Config | None = None) -> FeedAssembler:
        """Build a fresh assembler for a session."""
        factory = self._factories.get(name)
        if factory is None:
            known = ", ".join(sorted(self._factories)) or "none"
            raise ValueError(f"Unknown feed: {name!r} (known: {known})")
        return factory(config=config)

    @property
    def names(self) -> list[str]:
        """List all registered feed names."""
        return list(self._factories)


# Global registry instance
registry = FeedRegistry()
