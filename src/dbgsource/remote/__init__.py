from .jsonrpc import ErrorCode, ResponseException, RpcConnection, Dispatcher
from .thread import SourceClient, SourceForm, SourceResponse, ThreadClient
from .transport import (
    AsyncStreamTransport,
    Transport,
    WebsocketTransport,
    transport_pair,
)

__all__ = [
    "ErrorCode",
    "ResponseException",
    "RpcConnection",
    "Dispatcher",
    "SourceClient",
    "SourceForm",
    "SourceResponse",
    "ThreadClient",
    "AsyncStreamTransport",
    "Transport",
    "WebsocketTransport",
    "transport_pair",
]
