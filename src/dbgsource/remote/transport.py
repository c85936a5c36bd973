from typing import Awaitable, Protocol, Tuple
import asyncio


class Transport(Protocol):
    """Moves whole messages between us and the debugger engine."""

    def recv(self) -> Awaitable[bytes]:
        ...

    def send(self, data: bytes) -> Awaitable[None]:
        ...


class AsyncStreamTransport(Transport):
    """Create a transport from a StreamReader, StreamWriter pair.

    Messages are framed with a ``Content-Length`` header, as in
    https://microsoft.github.io/language-server-protocol/specifications/lsp/3.17/specification/#baseProtocol
    """

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        self.reader = reader
        self.writer = writer

    async def recv(self):
        """Recieves data from the stream. If EOF is reached, raises EOFError."""
        header = {}
        while True:
            line = await self.reader.readline()
            if line == b"":
                if len(header) == 0:
                    raise EOFError("End of stream.")
                else:
                    raise asyncio.IncompleteReadError(partial=line, expected=None)
            line = line.decode().rstrip()
            if line == "":
                break
            k, v = line.split(":", 1)
            header[k.lower()] = v
        content_length = header.get("content-length")
        if content_length is None:
            raise ValueError("No content-length header")
        data = await self.reader.readexactly(int(content_length))
        return data

    async def send(self, data: bytes):
        header = f"Content-Length:{len(data)}\r\n\r\n"
        self.writer.write(header.encode())
        self.writer.write(data)
        await self.writer.drain()

    async def close(self):
        self.writer.close()
        await self.writer.wait_closed()


class WebsocketTransport(Transport):
    """Transport over an open ``websockets`` connection. Each websocket message is one rpc message."""

    def __init__(self, websocket):
        self.websocket = websocket

    async def recv(self) -> bytes:
        data = await self.websocket.recv()
        if isinstance(data, str):
            data = data.encode()
        return data

    async def send(self, data: bytes):
        await self.websocket.send(data.decode())

    async def close(self):
        await self.websocket.close()


class QueueTransport(Transport):
    """One end of an in-process transport. Use ``transport_pair`` to make both ends."""

    def __init__(self, inbox: "asyncio.Queue[bytes]", outbox: "asyncio.Queue[bytes]"):
        self.inbox = inbox
        self.outbox = outbox
        self.closed = False

    async def recv(self) -> bytes:
        data = await self.inbox.get()
        if data == b"":
            raise EOFError("Transport closed.")
        return data

    async def send(self, data: bytes):
        if self.closed:
            raise EOFError("Transport closed.")
        await self.outbox.put(data)

    async def close(self):
        if not self.closed:
            self.closed = True
            await self.outbox.put(b"")


def transport_pair() -> Tuple[QueueTransport, QueueTransport]:
    """Two connected in-process transports. Closing one end makes ``recv`` on the other raise EOFError."""
    a: asyncio.Queue = asyncio.Queue()
    b: asyncio.Queue = asyncio.Queue()
    return QueueTransport(a, b), QueueTransport(b, a)
