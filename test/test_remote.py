import asyncio
import json
from typing import Dict
import pytest
from dbgsource.config import Config
from dbgsource.remote.jsonrpc import (
    ErrorCode,
    Response,
    ResponseError,
    ResponseException,
    RpcConnection,
)
from dbgsource.context import DebugContext
from dbgsource.remote.thread import ThreadClient
from dbgsource.remote.transport import AsyncStreamTransport, transport_pair
from dbgsource.session import attach
from dbgsource.sourcefile import LoadState


class FakeEngine:
    """The far end of the connection: answers ``sources`` and ``source`` requests."""

    def __init__(self, transport, texts: Dict[str, str], delay=0.0):
        self.texts = texts
        self.delay = delay
        self.source_requests = []
        self.connection = RpcConnection(transport, name="<engine>")
        self.connection.dispatcher.register("sources")(self.sources)
        self.connection.dispatcher.register("source")(self.source)

    def sources(self, params):
        return [
            {"actor": actor, "url": f"http://example.com/{actor}.js"}
            for actor in self.texts
        ]

    async def source(self, params):
        actor = params["actor"]
        self.source_requests.append(actor)
        if self.delay:
            await asyncio.sleep(self.delay)
        if actor not in self.texts:
            raise KeyError(actor)
        return {"source": self.texts[actor], "contentType": "text/javascript"}


async def until(pred, tries=100):
    for _ in range(tries):
        if pred():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition never became true")


def run_with_engine(texts, body, delay=0.0):
    async def run():
        ours, theirs = transport_pair()
        engine = FakeEngine(theirs, texts, delay)
        serving = asyncio.create_task(engine.connection.serve_forever())
        try:
            async with attach(ours) as context:
                return await body(engine, context)
        finally:
            serving.cancel()

    return asyncio.run(run())


def test_load_over_rpc():
    async def body(engine, context):
        assert set(context.source_files) == {"http://example.com/s1.js"}
        sf = context.get_source_file("http://example.com/s1.js")
        results = await asyncio.gather(sf.load(), sf.load(), sf.load())
        assert engine.source_requests == ["s1"]
        assert sf.content_type == "text/javascript"
        return results

    results = run_with_engine({"s1": "var a;\r\nvar b;\n"}, body)
    assert results == [["var a;", "var b;", ""]] * 3


def test_new_source_notification():
    async def body(engine, context):
        await engine.connection.notify(
            "newSource", {"actor": "s9", "url": "http://example.com/late.js", "isBlackBoxed": True}
        )
        await until(lambda: context.get_source_file("http://example.com/late.js") is not None)
        sf = context.get_source_file("http://example.com/late.js")
        assert sf.is_black_boxed
        assert sf.actor == "s9"

    run_with_engine({"s1": "x"}, body)


def test_engine_error_fails_the_load():
    async def body(engine, context):
        sf = context.add_source("missing", "http://example.com/missing.js")
        lines = await sf.load()
        assert lines is None
        assert sf.load_state == LoadState.not_loaded
        assert engine.source_requests == ["missing"]

    run_with_engine({"s1": "x"}, body)


def test_fetch_timeout():
    async def body(engine, context):
        sf = context.get_source_file("http://example.com/s1.js")
        with Config(fetch_timeout=0.01):
            lines = await sf.load()
        assert lines is None
        assert sf.load_state == LoadState.not_loaded

    run_with_engine({"s1": "x"}, body, delay=5.0)


def test_detach_fails_pending_loads():
    async def run():
        ours, theirs = transport_pair()
        context = DebugContext()
        thread = ThreadClient(RpcConnection(ours))
        thread.attach(context)
        sf = context.add_source("s1", "http://example.com/s1.js")
        got = []
        sf.load_script_lines(got.append)
        thread.detach(context)
        await until(lambda: got != [])
        assert thread.tasks == set()
        assert context.active_thread is None
        return sf, got

    sf, got = asyncio.run(run())
    assert got == [None]
    assert sf.load_state == LoadState.not_loaded
    assert sf.callbacks == []


def test_request_error_raises():
    async def run():
        ours, theirs = transport_pair()
        client = RpcConnection(ours)
        server = RpcConnection(theirs)
        tasks = [
            asyncio.create_task(client.serve_forever()),
            asyncio.create_task(server.serve_forever()),
        ]
        server.dispatcher.register("echo")(lambda params: params)
        assert await client.request("echo", {"x": 1}) == {"x": 1}
        assert await client.request("echo", None) is None
        with pytest.raises(ResponseException) as e:
            await client.request("nope", None)
        assert e.value.code == ErrorCode.method_not_found
        for t in tasks:
            t.cancel()

    asyncio.run(run())


def test_closed_transport_fails_pending_requests():
    async def run():
        ours, theirs = transport_pair()
        client = RpcConnection(ours)
        serving = asyncio.create_task(client.serve_forever())
        pending = asyncio.create_task(client.request("source", {"actor": "s1"}))
        await asyncio.sleep(0)
        await theirs.close()
        with pytest.raises(ConnectionError):
            await pending
        await serving
        assert client.closed
        with pytest.raises(ConnectionError):
            await client.request("source", {"actor": "s1"})

    asyncio.run(run())


def test_response_encoding():
    assert json.loads(Response(id=3, result=None).to_bytes()) == {
        "jsonrpc": "2.0",
        "id": 3,
        "result": None,
    }
    r = json.loads(
        Response(
            id=4, error=ResponseError(code=ErrorCode.no_such_actor, message="no")
        ).to_bytes()
    )
    assert r["error"] == {"code": -32001, "message": "no"}
    assert "result" not in r


def test_stream_transport_framing():
    async def run():
        reader = asyncio.StreamReader()
        reader.feed_data(b"Content-Length: 7\r\n\r\n{\"a\":1}")
        reader.feed_eof()
        transport = AsyncStreamTransport(reader, None)  # type: ignore
        assert await transport.recv() == b'{"a":1}'
        with pytest.raises(EOFError):
            await transport.recv()

    asyncio.run(run())
