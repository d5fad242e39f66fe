"""
Integration tests for RenderSession: stream in, tree out.
"""

import asyncio
import json
from pathlib import Path

import pytest

from streamrender.dom import NodeStore
from streamrender.feeds.delta import Fragment
from streamrender.session import RenderSession
from streamrender.validation import ROOT

FIXTURES = Path(__file__).parent.parent / "fixtures"


def fenced(*items, language="render"):
    return f"```{language}\n{json.dumps(list(items))}\n```"


def create(node_id, parent=None, label="div", **attributes):
    return {"name": "create", "arguments": {"parentId": parent, "label": label, "attributes": dict(attributes, id=node_id)}}


def append(node_id, text):
    return {"name": "appendText", "arguments": {"targetId": node_id, "text": text}}


class TestTextSession:
    def test_fixture_document(self):
        session = RenderSession(feed="text")
        content = (FIXTURES / "landing.md").read_text()
        for i in range(0, len(content), 7):
            session.feed(content[i:i + 7])
        session.finish()

        store = session.store
        assert store.roots == ["page"]
        assert store.get("page").children == ["headline", "features"]
        assert store.get("headline").text == "Welcome"
        assert store.get("headline").attributes == {"className": "big"}
        assert store.get("f1").text == "Fast and small"
        assert "title" not in store
        assert all(r.success for r in session.results)

    def test_chunking_does_not_change_the_tree(self):
        content = (FIXTURES / "landing.md").read_text()
        whole = RenderSession(feed="text")
        whole.run([content])
        split = RenderSession(feed="text")
        split.run(content[i:i + 2] for i in range(0, len(content), 2))
        assert whole.store.inspect() == split.store.inspect()

    def test_failures_do_not_stop_the_stream(self):
        session = RenderSession(feed="text")
        results = session.run([fenced(
            create("a"),
            append("ghost", "x"),
            create("b", parent="a"),
        )])
        assert [r.success for r in results] == [True, False, True]
        assert session.store.get("a").children == ["b"]

    def test_unclosed_block_is_flushed(self):
        session = RenderSession(feed="text")
        session.feed("```render\n" + json.dumps([create("late")]))
        assert "late" not in session.store
        session.finish()
        assert "late" in session.store

    def test_no_tool_messages_for_text_feed(self):
        session = RenderSession(feed="text")
        session.run(["Hello " + fenced(create("a"))])
        assert session.tool_results() == []
        assert session.assistant_message() == {"role": "assistant", "content": "Hello " + fenced(create("a"))}


class TestDeltaSession:
    def fixture_chunks(self):
        for line in (FIXTURES / "delta_stream.jsonl").read_text().splitlines():
            payload = line.removeprefix("data:").strip()
            if payload == "[DONE]":
                yield {"done": True}
            elif payload.startswith("{"):
                yield json.loads(payload)

    def test_fixture_stream(self):
        session = RenderSession(feed="delta")
        results = session.run(self.fixture_chunks())

        assert [r.instruction.id for r in results] == ["call_note", "call_page", "call_text"]
        assert all(r.success for r in results)
        assert session.store.roots == ["note", "page"]
        assert session.store.get("note").text == "Beta"
        assert session.store.get("page").children == []

    def test_conversation_records(self):
        session = RenderSession(feed="delta")
        session.run(self.fixture_chunks())

        message = session.assistant_message()
        assert message["role"] == "assistant"
        assert message["content"] == "Rendering now."
        assert [c["id"] for c in message["tool_calls"]] == ["call_note", "call_page", "call_text"]
        assert message["tool_calls"][0]["function"]["name"] == "create"

        tool_messages = session.tool_results()
        assert [m["tool_call_id"] for m in tool_messages] == ["call_note", "call_page", "call_text"]
        assert json.loads(tool_messages[0]["content"]) == {"success": True, "result": "note"}

    def test_failed_call_reports_error(self):
        session = RenderSession(feed="delta")
        session.feed(Fragment(0, name="remove", payload='{"nope": 1}', call_id="call_bad"))
        outcome = json.loads(session.tool_results()[0]["content"])
        assert outcome["success"] is False
        assert "targetId" in outcome["error"]

    def test_reset_keeps_tree(self):
        session = RenderSession(feed="delta")
        session.feed(Fragment(0, name="create", payload='{"attributes": {"id": "kept"}}'))
        session.reset()
        assert "kept" in session.store
        assert session.results == []
        assert session.feed(Fragment(0, name="create", payload='{"attributes": {"id": "next"}}'))

    def test_clear_drops_tree(self):
        session = RenderSession(feed="delta")
        session.feed(Fragment(0, name="create", payload="{}"))
        session.clear()
        assert len(session.store) == 0


class TestBatching:
    @pytest.mark.parametrize("batch_size", [1, 2, 3, 10])
    def test_batching_preserves_order(self, batch_size):
        items = [create("p", label="p")] + [append("p", str(n)) for n in range(7)]
        session = RenderSession(feed="text", batch_size=batch_size)
        session.run([fenced(*items)])
        assert session.store.get("p").text == "0123456"

    def test_batch_size_floor(self):
        assert RenderSession(feed="text", batch_size=0).batch_size == 1


class TestEvents:
    def test_every_result_is_reported(self):
        seen = []
        session = RenderSession(feed="text", on_event=seen.append)
        session.run([fenced(create("a"), append("ghost", "x"))])
        assert [r.success for r in seen] == [True, False]

    def test_broken_callback_does_not_stop_rendering(self, caplog):
        def explode(result):
            raise RuntimeError("renderer died")

        session = RenderSession(feed="text", on_event=explode)
        session.run([fenced(create("a"), create("b"))])
        assert session.store.roots == ["a", "b"]
        assert "on_event callback failed" in caplog.text


class TestAsync:
    def test_arun(self):
        async def stream():
            yield "```render\n[" + json.dumps(create("a"))
            await asyncio.sleep(0)
            yield ", " + json.dumps(create("b", parent="a")) + "]\n```"

        session = RenderSession(feed="text")
        results = asyncio.run(session.arun(stream()))
        assert len(results) == 2
        assert session.store.get("b").parent_id == "a"
        assert session.store.get("a").parent_id == ROOT


class TestSharedStore:
    def test_sessions_can_share_a_store(self):
        store = NodeStore()
        RenderSession(feed="text", store=store).run([fenced(create("a"))])
        RenderSession(feed="text", store=store).run([fenced(create("b", parent="a"))])
        assert store.get("a").children == ["b"]

    def test_unknown_feed(self):
        with pytest.raises(ValueError, match="Unknown feed"):
            RenderSession(feed="smoke-signals")
