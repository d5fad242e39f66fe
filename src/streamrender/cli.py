"""
CLI interface for streamrender.

Replays a recorded model stream into a node tree and prints the result.
Text feeds read raw assistant text; delta feeds read one JSON chunk per line
(server-sent-event "data: " prefixes and the [DONE] marker are understood).
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Iterator

from .config import get_config
from .dispatcher import Result
from .dom import NodeStore
from .feeds.base import registry
from .schemas import tool_schemas
from .session import RenderSession
from .validation import ROOT

logger = logging.getLogger(__name__)


def parse_args(args: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    cfg = get_config()

    parser = argparse.ArgumentParser(
        prog="streamrender",
        description="Render a node tree from a recorded model output stream",
    )

    parser.add_argument(
        "file",
        nargs="?",
        help="Recorded stream (reads from stdin if not provided)",
    )

    parser.add_argument(
        "--feed",
        "-f",
        choices=registry.names,
        default=cfg.driver.feed,
        help=f"Stream shape: fenced text or JSON-lines deltas (default: {cfg.driver.feed})",
    )

    parser.add_argument(
        "--chunk-size",
        "-c",
        type=int,
        default=0,
        help="Replay text in chunks of this many characters (default: whole input)",
    )

    parser.add_argument(
        "--batch-size",
        "-b",
        type=int,
        default=cfg.driver.batch_size,
        help="Instructions applied per batch",
    )

    parser.add_argument(
        "--json",
        action="store_true",
        dest="as_json",
        help="Print the tree snapshot as JSON instead of an outline",
    )

    parser.add_argument(
        "--schemas",
        action="store_true",
        help="Print the tool definitions offered to the model and exit",
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log degrades and dropped fragments to stderr",
    )

    return parser.parse_args(args)


def read_input(filepath: str | None) -> str:
    """Read from file or stdin."""
    if filepath:
        with open(filepath, encoding="utf-8") as f:
            return f.read()
    return sys.stdin.read()


def iter_text_chunks(content: str, chunk_size: int) -> Iterator[str]:
    """Split text into fixed-size chunks, or yield it whole."""
    if chunk_size <= 0:
        if content:
            yield content
        return
    for i in range(0, len(content), chunk_size):
        yield content[i:i + chunk_size]


def iter_delta_chunks(content: str) -> Iterator[dict]:
    """Parse JSON-lines chunks, skipping blanks, SSE framing and bad lines."""
    for line_num, line in enumerate(content.splitlines(), start=1):
        line = line.strip()
        if line.startswith("data:"):
            line = line[len("data:"):].strip()
        if not line:
            continue
        if line == "[DONE]":
            yield {"done": True}
            continue
        try:
            chunk = json.loads(line)
        except (json.JSONDecodeError, RecursionError):
            logger.warning("Skipping line %d: not JSON", line_num)
            continue
        if isinstance(chunk, dict):
            yield chunk


def format_outline(store: NodeStore) -> list[str]:
    """Indented outline of the tree: label#id, attributes, then text."""
    lines: list[str] = []
    stack = [(child_id, 0) for child_id in reversed(store.children_of(ROOT))]
    while stack:
        node_id, depth = stack.pop()
        node = store.get(node_id)
        if node is None:
            continue
        parts = [f"{node.label}#{node.id}"]
        for key, value in node.attributes.items():
            shown = value if isinstance(value, str) else json.dumps(value)
            parts.append(f"{key}={shown}")
        if node.text:
            parts.append(json.dumps(node.text))
        lines.append("  " * depth + " ".join(parts))
        stack.extend((child_id, depth + 1) for child_id in reversed(node.children))
    return lines


def report_failure(result: Result) -> None:
    if not result.success:
        name = getattr(result.instruction, "name", result.instruction)
        print(f"Error: {name}: {result.error_message}", file=sys.stderr)


def replay(content: str, feed: str, chunk_size: int = 0, batch_size: int | None = None) -> RenderSession:
    """Replay recorded stream content through a fresh session."""
    session = RenderSession(feed=feed, batch_size=batch_size, on_event=report_failure)
    if feed == "delta":
        session.run(iter_delta_chunks(content))
    else:
        session.run(iter_text_chunks(content, chunk_size))
    return session


def main(args: list[str] | None = None) -> int:
    """Main entry point."""
    parsed = parse_args(args)
    cfg = get_config()

    level = logging.DEBUG if parsed.verbose else getattr(logging, cfg.logging.level, logging.WARNING)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    if parsed.schemas:
        print(json.dumps(tool_schemas(), indent=2))
        return 0

    try:
        content = read_input(parsed.file)
    except FileNotFoundError:
        print(f"Error: File not found: {parsed.file}", file=sys.stderr)
        return 1
    except (OSError, UnicodeDecodeError) as e:
        print(f"Error reading input: {e}", file=sys.stderr)
        return 1

    if parsed.batch_size < 1:
        print(f"Error: Batch size must be >= 1, got {parsed.batch_size}", file=sys.stderr)
        return 1

    session = replay(content, parsed.feed, parsed.chunk_size, parsed.batch_size)

    if parsed.as_json:
        print(json.dumps(session.store.inspect(), indent=2))
    else:
        output = "\n".join(format_outline(session.store))
        if output:
            print(output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
