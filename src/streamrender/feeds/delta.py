"""
Structured-delta feed.

Reassembles tool calls that arrive as per-slot deltas (OpenAI-style
`choices[].delta.tool_calls[]`). A slot is keyed by the stream-assigned index,
because the call's real id and name may not have arrived yet.

A slot completes the moment its name is known and its accumulated payload
parses as a JSON object or array. It is then emitted once and retired;
redelivered deltas for a retired slot are ignored.
"""

from __future__ import annotations

import itertools
import json
import logging
from collections.abc import Hashable, Mapping
from dataclasses import dataclass, field
from typing import Any

from ..instructions import Instruction
from ..validation import parses_as_structured
from .base import FeedAssembler, registry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Fragment:
    """One delta for one slot."""
    slot_key: Hashable | None
    name: str | None = None
    payload: str | None = None
    call_id: str | None = None
    replace: bool = False  # payload is a full restatement, not a suffix


@dataclass
class ChunkDelta:
    """What one raw stream chunk contributes."""
    fragments: list[Fragment] = field(default_factory=list)
    content: str = ""
    terminal: bool = False


@dataclass
class PendingCall:
    """An in-progress instruction, keyed by slot."""
    slot_key: Hashable
    name: str = ""
    payload: str = ""
    call_id: str | None = None
    completed: bool = False

    @property
    def is_complete(self) -> bool:
        return bool(self.name) and parses_as_structured(self.payload)

    def to_instruction(self) -> Instruction:
        return Instruction(
            name=self.name,
            arguments=self.payload,
            id=self.call_id or f"call_{self.slot_key}",
            slot_key=self.slot_key,
        )


def _as_mapping(obj: Any) -> Mapping[str, Any] | None:
    """Plain mappings pass through; SDK models are dumped to dicts."""
    if isinstance(obj, Mapping):
        return obj
    dump = getattr(obj, "model_dump", None)
    if callable(dump):
        data = dump()
        if isinstance(data, Mapping):
            return data
    return None


def _payload_text(payload: Any) -> str | None:
    if payload is None or isinstance(payload, str):
        return payload
    return json.dumps(payload)


def _tool_call_fragment(call: Any, replace: bool, position: int | None = None) -> Fragment | None:
    call = _as_mapping(call)
    if call is None:
        return None
    function = _as_mapping(call.get("function")) or {}
    slot = call.get("index")
    if slot is None:
        # Final messages drop the index; list position matches the streamed one
        slot = position if position is not None else call.get("id")
    return Fragment(
        slot_key=slot,
        name=function.get("name") or call.get("name"),
        payload=_payload_text(function.get("arguments", call.get("arguments"))),
        call_id=call.get("id"),
        replace=replace,
    )


def parse_chunk(chunk: Any) -> ChunkDelta:
    """
    Adapt one raw stream chunk into fragments.

    Understands:
    - OpenAI chat chunks: choices[].delta.{content,tool_calls}, finish_reason,
      and choices[].message.tool_calls restating finished calls
    - a top-level "tool_calls" list, or a single {name, arguments} object,
      each carrying complete calls
    - plain records {slotKey, name, payloadFragment} and {done: true}
    """
    data = _as_mapping(chunk)
    result = ChunkDelta()
    if data is None:
        logger.debug("Ignoring non-object chunk of type %s", type(chunk).__name__)
        return result

    for choice in data.get("choices") or ():
        choice = _as_mapping(choice)
        if choice is None:
            continue
        delta = _as_mapping(choice.get("delta")) or {}
        content = delta.get("content")
        if isinstance(content, str):
            result.content += content
        for call in delta.get("tool_calls") or ():
            fragment = _tool_call_fragment(call, replace=False)
            if fragment is not None:
                result.fragments.append(fragment)

        message = _as_mapping(choice.get("message")) or {}
        for position, call in enumerate(message.get("tool_calls") or ()):
            fragment = _tool_call_fragment(call, replace=True, position=position)
            if fragment is not None:
                result.fragments.append(fragment)

        if choice.get("finish_reason"):
            result.terminal = True

    for call in data.get("tool_calls") or ():
        fragment = _tool_call_fragment(call, replace=True)
        if fragment is not None:
            result.fragments.append(fragment)

    if "slotKey" in data:
        result.fragments.append(Fragment(
            slot_key=data["slotKey"],
            name=data.get("name"),
            payload=_payload_text(data.get("payloadFragment", data.get("payload"))),
            call_id=data.get("id"),
        ))
    elif "name" in data and "arguments" in data and "choices" not in data:
        fragment = _tool_call_fragment(data, replace=True)
        if fragment is not None:
            result.fragments.append(fragment)

    if data.get("done") is True:
        result.terminal = True

    return result


class DeltaAssembler(FeedAssembler):
    """Assembles per-slot deltas into complete instructions."""

    def __init__(self, config=None):
        super().__init__(config)
        self._pending: dict[Hashable, PendingCall] = {}
        self._retired: set[Hashable] = set()
        self._auto_slots = itertools.count()

    @property
    def name(self) -> str:
        return "delta"

    @property
    def pending_slots(self) -> list[Hashable]:
        """Slots opened but not yet complete, in the order they were opened."""
        return list(self._pending)

    def is_retired(self, slot_key: Hashable) -> bool:
        return slot_key in self._retired

    def feed(self, chunk: Any) -> list[Instruction]:
        """
        Consume a Fragment, an iterable of Fragments, a ChunkDelta or a raw chunk.

        A terminal signal in the chunk runs the final pass after its fragments.
        """
        if isinstance(chunk, Fragment):
            return self.accept(chunk)

        if isinstance(chunk, ChunkDelta):
            delta = chunk
        elif isinstance(chunk, (list, tuple)) and all(isinstance(f, Fragment) for f in chunk):
            delta = ChunkDelta(fragments=list(chunk))
        else:
            try:
                delta = parse_chunk(chunk)
            except (TypeError, ValueError, AttributeError, RecursionError) as e:
                logger.debug("Dropping unparseable chunk: %s", e)
                return []

        self.transcript += delta.content
        emitted: list[Instruction] = []
        for fragment in delta.fragments:
            emitted.extend(self.accept(fragment))
        if delta.terminal:
            emitted.extend(self.finalize())
        return emitted

    def accept(self, fragment: Fragment) -> list[Instruction]:
        """Apply one fragment to its slot; returns the instruction if it completed."""
        key = fragment.slot_key
        if key is None:
            key = f"auto_{next(self._auto_slots)}"
        try:
            if key in self._retired:
                logger.debug("Ignoring delta for retired slot %r", key)
                return []
        except TypeError:
            logger.debug("Ignoring delta with unhashable slot key %r", key)
            return []

        pending = self._pending.get(key)
        if pending is None:
            pending = self._pending[key] = PendingCall(slot_key=key)

        if fragment.call_id and not pending.call_id:
            pending.call_id = str(fragment.call_id)
        if fragment.name:
            pending.name = str(fragment.name)

        try:
            payload = _payload_text(fragment.payload)
        except (TypeError, ValueError, RecursionError) as e:
            logger.debug("Dropping unencodable payload for slot %r: %s", key, e)
            payload = None
        if payload:
            if not fragment.replace:
                pending.payload += payload
            elif parses_as_structured(payload):
                pending.payload = payload
            # an unparseable restatement loses to what was buffered

        if not pending.is_complete:
            return []
        return [self._retire(pending)]

    def finalize(self) -> list[Instruction]:
        """
        End-of-turn pass: emit slots that now parse, drop the rest.

        Every pending slot is retired either way.
        """
        emitted: list[Instruction] = []
        for pending in list(self._pending.values()):
            if pending.is_complete:
                emitted.append(self._retire(pending))
            else:
                logger.debug(
                    "Dropping incomplete slot %r (name=%r, %d payload chars)",
                    pending.slot_key, pending.name, len(pending.payload),
                )
                self._retired.add(pending.slot_key)
                del self._pending[pending.slot_key]
        return emitted

    def flush(self) -> list[Instruction]:
        return self.finalize()

    def reset(self) -> None:
        super().reset()
        self._pending.clear()
        self._retired.clear()
        self._auto_slots = itertools.count()

    def _retire(self, pending: PendingCall) -> Instruction:
        pending.completed = True
        self._retired.add(pending.slot_key)
        del self._pending[pending.slot_key]
        return pending.to_instruction()


registry.register("delta", DeltaAssembler)
