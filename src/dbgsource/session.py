import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import websockets

from dbgsource.console import logger
from dbgsource.context import DebugContext
from dbgsource.remote.jsonrpc import RpcConnection
from dbgsource.remote.thread import ThreadClient
from dbgsource.remote.transport import Transport, WebsocketTransport
from dbgsource.resolver import Introspector


@asynccontextmanager
async def attach(
    transport: Transport, introspector: Optional[Introspector] = None
) -> AsyncIterator[DebugContext]:
    """Run a debugging session over ``transport``.

    The engine's current ``sources`` listing is loaded into the context before it is yielded,
    and ``newSource`` notifications keep adding to it while the session is open."""
    connection = RpcConnection(transport)
    serving = asyncio.create_task(connection.serve_forever())
    context = DebugContext(introspector=introspector)
    thread = ThreadClient(connection)
    thread.attach(context)
    try:
        context.on_sources(await thread.list_sources())
        logger.debug(f"{context} attached with {len(context.source_files)} sources.")
        yield context
    finally:
        thread.detach(context)
        context.destroy()
        serving.cancel()


@asynccontextmanager
async def connect(
    url: str, introspector: Optional[Introspector] = None
) -> AsyncIterator[DebugContext]:
    """Open a websocket to the engine at ``url`` and ``attach`` to it."""
    async with websockets.connect(url) as websocket:
        async with attach(WebsocketTransport(websocket), introspector) as context:
            yield context
