"""
Rendering session: one assembler, one dispatcher, one node store.

This is the thin driver that sits between a model stream and the tree. It
feeds chunks to the assembler, applies completed instructions in batches
(list order, so batching never reorders) and reports each outcome to an
optional callback. It also keeps the assistant-side conversation records an
orchestration loop needs to call the model again.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterable, Callable, Iterable
from typing import Any

from .config import Config, get_config
from .dispatcher import Dispatcher, Result
from .dom import NodeStore
from .feeds import delta as _delta  # noqa: F401 - ensure delta feed is registered
from .feeds import text as _text  # noqa: F401 - ensure text feed is registered
from .feeds.base import FeedAssembler, registry
from .instructions import Instruction

logger = logging.getLogger(__name__)

EventCallback = Callable[[Result], None]


class RenderSession:
    """
    Drives one stream into one tree.

    Usage::

        session = RenderSession(feed="delta", on_event=print)
        for chunk in model_stream:
            session.feed(chunk)
        session.finish()
        session.store.inspect()
    """

    def __init__(
        self,
        feed: str | None = None,
        store: NodeStore | None = None,
        on_event: EventCallback | None = None,
        batch_size: int | None = None,
        config: Config | None = None,
    ):
        cfg = config or get_config()
        self.config = cfg
        self.store = store if store is not None else NodeStore(cfg)
        self.dispatcher = Dispatcher(self.store)
        self.assembler: FeedAssembler = registry.create(feed or cfg.driver.feed, config=cfg)
        self.on_event = on_event
        self.batch_size = max(1, batch_size if batch_size is not None else cfg.driver.batch_size)
        self.results: list[Result] = []

    @property
    def feed_name(self) -> str:
        return self.assembler.name

    def feed(self, chunk: Any) -> list[Result]:
        """Consume one chunk and apply whatever instructions it completed."""
        return self._apply(self.assembler.feed(chunk))

    def finish(self) -> list[Result]:
        """End of stream: flush the assembler and apply the remainder."""
        return self._apply(self.assembler.flush())

    def run(self, chunks: Iterable[Any]) -> list[Result]:
        """Drive a whole synchronous stream, then finish it."""
        results: list[Result] = []
        for chunk in chunks:
            results.extend(self.feed(chunk))
        results.extend(self.finish())
        return results

    async def arun(self, chunks: AsyncIterable[Any]) -> list[Result]:
        """Drive a whole async stream, then finish it."""
        results: list[Result] = []
        async for chunk in chunks:
            results.extend(self.feed(chunk))
        results.extend(self.finish())
        return results

    def reset(self) -> None:
        """Start a new model turn: drop stream state, keep the tree."""
        self.assembler.reset()
        self.results = []

    def clear(self) -> None:
        """Drop the tree as well."""
        self.store.clear()
        self.reset()

    def assistant_message(self) -> dict[str, Any]:
        """The assistant turn as a chat message, including applied tool calls."""
        message: dict[str, Any] = {"role": "assistant", "content": self.assembler.transcript}
        calls = [
            {
                "id": r.instruction.id,
                "type": "function",
                "function": {
                    "name": r.instruction.name,
                    "arguments": _arguments_text(r.instruction.arguments),
                },
            }
            for r in self._tool_call_results()
        ]
        if calls:
            message["tool_calls"] = calls
        return message

    def tool_results(self) -> list[dict[str, Any]]:
        """One role=tool message per tool call, carrying its outcome."""
        messages = []
        for r in self._tool_call_results():
            if r.success:
                outcome: dict[str, Any] = {"success": True, "result": r.result}
            else:
                outcome = {"success": False, "error": r.error_message}
            messages.append({
                "tool_call_id": r.instruction.id,
                "role": "tool",
                "name": r.instruction.name,
                "content": json.dumps(outcome),
            })
        return messages

    def _tool_call_results(self) -> list[Result]:
        # Only the delta feed answers real tool calls; text-feed ids are local
        if self.feed_name != "delta":
            return []
        return [r for r in self.results if isinstance(r.instruction, Instruction)]

    def _apply(self, instructions: list[Instruction]) -> list[Result]:
        applied: list[Result] = []
        for i in range(0, len(instructions), self.batch_size):
            batch = instructions[i:i + self.batch_size]
            for result in self.dispatcher.execute_batch(batch):
                applied.append(result)
                self._notify(result)
        self.results.extend(applied)
        return applied

    def _notify(self, result: Result) -> None:
        if self.on_event is None:
            return
        try:
            self.on_event(result)
        except Exception:
            # A broken renderer must not stop the stream
            logger.exception("on_event callback failed for %s", result.instruction)


def _arguments_text(arguments: Any) -> str:
    if isinstance(arguments, str):
        return arguments
    return json.dumps(arguments if arguments is not None else {})
