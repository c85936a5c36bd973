import asyncio
from hypothesis import HealthCheck, given, settings
import hypothesis.strategies as hs
import pytest
from dbgsource.config import Config
from dbgsource.context import DebugContext
from dbgsource.remote.thread import SourceResponse
from dbgsource.sourcefile import LoadState, SourceFile

TEXT = "function f() {\r\n  return 1;\r\n}"
LINES = ["function f() {", "  return 1;", "}"]


@pytest.fixture()
def sf(context):
    return context.add_source("server1.conn1.source7", "http://example.com/app.js")


def test_accessors(sf):
    assert sf.get_url() == "http://example.com/app.js"
    assert sf.get_display_name() == "http://example.com/app.js"
    assert str(sf) == "http://example.com/app.js"
    assert sf.content_type is None
    assert sf.load_state == LoadState.not_loaded
    assert sf.get_source_length() == 0
    assert not sf.is_executable_line(1)


def test_single_flight(sf, thread):
    got = []
    for i in range(5):
        r = sf.load_script_lines(got.append)
        assert r is None
    assert len(thread.requests) == 1
    assert sf.load_state == LoadState.loading
    assert len(sf.callbacks) == 5
    assert got == []


def test_callbacks_in_order(sf, thread):
    order = []
    for i in range(4):
        sf.load_script_lines(lambda lines, i=i: order.append((i, lines)))
    thread.respond(TEXT)
    assert [i for i, _ in order] == [0, 1, 2, 3]
    assert all(lines is sf.lines for _, lines in order)
    assert sf.lines == LINES
    assert sf.callbacks == []
    assert sf.load_state == LoadState.loaded
    assert sf.content_type == "text/javascript"


def test_loaded_reads_are_synchronous(sf, thread):
    sf.load_script_lines(lambda lines: None)
    thread.respond(TEXT)
    got = []
    assert sf.load_script_lines(got.append) is sf.lines
    assert got == [sf.lines]
    assert sf.get_line(1) == "  return 1;"
    assert sf.get_line(1, got.append) == "  return 1;"
    assert got[-1] == "  return 1;"
    assert len(thread.requests) == 1


def test_line_endings():
    context = DebugContext(active_thread=None)
    sf = SourceFile(context, "a1", "x.js")
    sf.load_state = LoadState.loading
    sf.on_source_loaded(SourceResponse(source="a\r\nb\r\nc"))
    assert sf.lines == ["a", "b", "c"]


@settings(suppress_health_check=[HealthCheck.function_scoped_fixture])
@given(hs.lists(hs.text("abc \t{}();=\\"), min_size=1))
def test_crlf_text_splits_back(lines):
    context = DebugContext()
    sf = SourceFile(context, "a1", "x.js")
    sf.load_state = LoadState.loading
    sf.on_source_loaded(SourceResponse(source="\r\n".join(lines)))
    assert sf.lines == lines


def test_out_of_range(sf, thread):
    sf.load_script_lines(lambda lines: None)
    thread.respond("a\nb\nc")
    got = []
    assert sf.get_line(5, got.append) is None
    assert sf.get_line(-1, got.append) is None
    assert sf.get_line(3, got.append) is None
    assert got == []
    assert len(thread.requests) == 1


def test_get_line_before_load(sf, thread):
    got = []
    assert sf.get_line(2, got.append) is None
    assert sf.get_line(10, got.append) is None
    assert sf.get_line(0) is None
    assert len(thread.requests) == 1
    thread.respond("a\nb\nc")
    assert got == ["c", None]


def test_no_connection():
    context = DebugContext(active_thread=None)
    sf = context.add_source("a1", "x.js")
    got = []
    assert sf.load_script_lines(got.append) is None
    assert got == [None]
    assert sf.load_state == LoadState.not_loaded
    assert sf.callbacks == []


def test_no_connection_then_retry(thread):
    context = DebugContext(active_thread=None)
    sf = context.add_source("a1", "x.js")
    got = []
    sf.load_script_lines(got.append)
    context.active_thread = thread
    sf.load_script_lines(got.append)
    thread.respond("one")
    assert got == [None, ["one"]]


def test_fetch_error_fails_everyone_and_allows_retry(sf, thread, context):
    loaded = []
    context.events.on("source_loaded", loaded.append)
    got = []
    sf.load_script_lines(lambda lines: got.append(("a", lines)))
    sf.load_script_lines(lambda lines: got.append(("b", lines)))
    thread.respond(error="noSuchActor")
    assert got == [("a", None), ("b", None)]
    assert sf.load_state == LoadState.not_loaded
    assert sf.callbacks == []
    assert sf.lines is None
    assert loaded == []

    sf.load_script_lines(lambda lines: got.append(("c", lines)))
    assert len(thread.requests) == 2
    thread.respond("ok")
    assert got[-1] == ("c", ["ok"])
    assert loaded == [sf]


def test_response_without_text_is_an_error(sf, thread):
    got = []
    sf.load_script_lines(got.append)
    thread.respond(source=None)
    assert got == [None]
    assert sf.load_state == LoadState.not_loaded


def test_empty_error_with_text_loads(sf, thread):
    got = []
    sf.load_script_lines(got.append)
    thread.respond("x", error="")
    assert got == [["x"]]
    assert sf.loaded


def test_pending_cap(sf, thread):
    got = []
    with Config(max_pending_callbacks=2):
        sf.load_script_lines(lambda lines: got.append(("a", lines)))
        sf.load_script_lines(lambda lines: got.append(("b", lines)))
        sf.load_script_lines(lambda lines: got.append(("c", lines)))
    assert got == [("c", None)]
    assert len(thread.requests) == 1
    thread.respond("x")
    assert got == [("c", None), ("a", ["x"]), ("b", ["x"])]


def test_source_loaded_event(sf, thread, context):
    loaded = []
    context.events.on("source_loaded", loaded.append)
    sf.load_script_lines(lambda lines: loaded.append(lines))
    thread.respond("x")
    assert loaded == [["x"], sf]
    sf.load_script_lines(lambda lines: None)
    assert loaded == [["x"], sf]


def test_failing_callback_does_not_stop_others(sf, thread):
    got = []

    def bad(lines):
        raise RuntimeError("oops")

    sf.load_script_lines(bad)
    sf.load_script_lines(got.append)
    thread.respond("x")
    assert got == [["x"]]
    assert sf.loaded


def test_late_response_is_ignored(sf, thread):
    got = []
    sf.load_script_lines(got.append)
    thread.respond("x")
    thread.respond("y")
    assert sf.lines == ["x"]
    assert got == [["x"]]


def test_await_load(sf, thread):
    async def run():
        t1 = asyncio.ensure_future(sf.load())
        t2 = asyncio.ensure_future(sf.load())
        await asyncio.sleep(0)
        assert len(thread.requests) == 1
        thread.respond("a\nb")
        return await t1, await t2, await sf.load()

    a, b, c = asyncio.run(run())
    assert a == b == c == ["a", "b"]
    assert len(thread.requests) == 1
