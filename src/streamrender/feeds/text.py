"""
Fenced-block text feed.

Scans free assistant text for ``` fenced blocks and extracts the instructions
embedded in them. Text arrives in arbitrary chunks, so a block is only parsed
once its closing fence is in the buffer; completed blocks are spliced out and
scanning resumes at the start of what remains.

Block content is read by its leading character:
- "[" : one JSON array, each element an instruction
- "{" : one JSON object; if that fails, one object per line
- else: one JSON object per line, bad lines skipped
"""

from __future__ import annotations

import itertools
import json
import logging
import re
from dataclasses import dataclass
from typing import Any

from ..config import Config, get_config
from ..instructions import Instruction
from ..validation import is_valid_instruction
from .base import FeedAssembler, registry

logger = logging.getLogger(__name__)

FENCE = "```"

# Opening fence: language tag, then the rest of that line
OPEN_FENCE_PATTERN = re.compile(r"```(\w*)[^\S\n]*\n?")


@dataclass
class OpenBlock:
    """A fence seen without its closing partner yet. It always sits at buffer offset 0."""
    language: str
    resume: int  # where the search for the closing fence picks up


def _read_opening(buffer: str, start: int) -> tuple[int, str]:
    """Return (content_start, language) for the fence at `start`."""
    match = OPEN_FENCE_PATTERN.match(buffer, start)
    if match is None:
        return start + len(FENCE), ""
    return match.end(), match.group(1).lower()


def parse_block(content: str, language: str, languages: tuple[str, ...]) -> list[dict[str, Any]]:
    """Extract valid instruction objects from one block's content."""
    if language.lower() not in languages:
        logger.debug("Skipping ```%s block (not an instruction language)", language)
        return []

    content = content.strip()
    if not content:
        return []

    if content.startswith("["):
        try:
            data = json.loads(content)
        except (json.JSONDecodeError, RecursionError) as e:
            logger.debug("Failed to parse block as a JSON array: %s", e)
            return []
        if not isinstance(data, list):
            return []
        return [item for item in data if is_valid_instruction(item)]

    if content.startswith("{"):
        try:
            data = json.loads(content)
        except (json.JSONDecodeError, RecursionError):
            # One object per line also starts with "{"
            return _parse_lines(content)
        return [data] if is_valid_instruction(data) else []

    return _parse_lines(content)


def _parse_lines(content: str) -> list[dict[str, Any]]:
    found: list[dict[str, Any]] = []
    for line in content.split("\n"):
        line = line.strip()
        if not line:
            continue
        try:
            item = json.loads(line)
        except (json.JSONDecodeError, RecursionError):
            logger.debug("Skipping unparseable line: %.80s", line)
            continue
        if is_valid_instruction(item):
            found.append(item)
    return found


class TextAssembler(FeedAssembler):
    """Assembles instructions from fenced blocks in streamed text."""

    def __init__(self, config: Config | None = None):
        super().__init__(config)
        cfg = config or get_config()
        self.languages = tuple(lang.lower() for lang in cfg.text.languages)
        self._buffer = ""
        self._open: OpenBlock | None = None
        self._ids = itertools.count(1)

    @property
    def name(self) -> str:
        return "text"

    @property
    def buffer(self) -> str:
        """
        Unconsumed tail of the stream.

        Either an unclosed block, or at most the last two characters of prose
        (a fence may be split across chunks). The full text is in `transcript`.
        """
        return self._buffer

    @property
    def open_block(self) -> OpenBlock | None:
        return self._open

    def feed(self, chunk: Any) -> list[Instruction]:
        """Append a text chunk and return instructions from blocks it closed."""
        if chunk is None:
            return []
        text = chunk if isinstance(chunk, str) else str(chunk)
        self.transcript += text
        self._buffer += text

        emitted: list[Instruction] = []
        keep = len(FENCE) - 1
        while True:
            start = self._buffer.find(FENCE)
            if start == -1:
                self._buffer = self._buffer[max(0, len(self._buffer) - keep):]
                break
            if start > 0:
                # Prose before the fence is never looked at again
                self._buffer = self._buffer[start:]

            content_start, language = _read_opening(self._buffer, 0)
            resume = self._open.resume if self._open is not None else len(FENCE)
            end = self._buffer.find(FENCE, resume)
            if end == -1:
                # Only the last two chars can begin a fence that is still arriving
                self._open = OpenBlock(
                    language=language,
                    resume=max(len(FENCE), len(self._buffer) - keep),
                )
                break

            # The language tag may still be arriving while the body is empty
            content = self._buffer[min(content_start, end):end]
            emitted.extend(self._emit(parse_block(content, language, self.languages)))

            self._buffer = self._buffer[end + len(FENCE):]
            self._open = None

        return emitted

    def flush(self) -> list[Instruction]:
        """
        End of stream: best-effort parse of an unclosed block.

        Lossy by nature; anything unparseable is dropped. Resets the buffer.
        """
        emitted: list[Instruction] = []
        if self._open is not None:
            content_start, language = _read_opening(self._buffer, 0)
            # Drop a closing fence that only partly arrived
            content = self._buffer[content_start:].rstrip().rstrip("`")
            if content.strip():
                emitted = self._emit(parse_block(content, language, self.languages))
            if not emitted:
                logger.debug("Stream ended inside an unparseable ```%s block", language)

        self._buffer = ""
        self._open = None
        return emitted

    def reset(self) -> None:
        super().reset()
        self._buffer = ""
        self._open = None
        self._ids = itertools.count(1)

    def _emit(self, items: list[dict[str, Any]]) -> list[Instruction]:
        return [
            Instruction(
                name=item["name"],
                arguments=item["arguments"],
                id=item.get("id") if isinstance(item.get("id"), str) else f"cmd_{next(self._ids)}",
            )
            for item in items
        ]


registry.register("text", TextAssembler)
