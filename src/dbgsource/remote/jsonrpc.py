from asyncio import Future, Task
import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Union
import inspect
import json

from websockets.exceptions import ConnectionClosedOK, ConnectionClosedError

from dbgsource.util.ofdict import MyJsonEncoder, ofdict
from dbgsource.remote.transport import Transport
from dbgsource.console import logger, console


class ErrorCode(Enum):

    ### JSON-RPC codes

    parse_error = -32700
    """ It doesn't parse as JSON """
    invalid_request = -32600
    """ You aren't allowed to do this. """
    method_not_found = -32601
    """ We don't have a method handler for that. """
    invalid_params = -32602
    """ Your parameters are not valid. (eg fields missing, bad types etc) """
    internal_error = -32603
    """ The internal server code messed up. """

    ### Codes for the debugger protocol

    no_such_actor = -32001
    """ The engine doesn't know the actor the request was addressed to. """
    request_failed = -32803
    """ A request failed but it was syntactically correct. The message says why. """
    request_cancelled = -32800
    """ The request was cancelled. """


encoder = MyJsonEncoder()


@dataclass
class Request:
    method: str
    id: Optional[Union[str, int]] = field(default=None)
    params: Optional[Any] = field(default=None)
    jsonrpc: str = field(default="2.0")

    @property
    def is_notification(self):
        return self.id is None

    def to_bytes(self):
        return encoder.encode(self).encode()


@dataclass
class ResponseError:
    code: ErrorCode
    message: str
    data: Optional[Any] = field(default=None)


@dataclass
class ResponseException(Exception):
    code: ErrorCode
    message: str
    id: Any
    data: Optional[Any] = field(default=None)

    def __str__(self):
        return f"{self.code.name}: {self.message}"


@dataclass
class Response:
    """JSON-RPC response.

    https://www.jsonrpc.org/specification#response_object
    """

    id: Any = field(default=None)
    result: Optional[Any] = field(default=None)
    error: Optional[ResponseError] = field(default=None)
    jsonrpc: str = field(default="2.0")

    def to_bytes(self):
        # exactly one of result and error must be present, even when the result is null.
        r: Dict[str, Any] = {"jsonrpc": self.jsonrpc, "id": self.id}
        if self.error is not None:
            r["error"] = self.error
        else:
            r["result"] = self.result
        return encoder.encode(r).encode()


class Dispatcher:
    """Table of handlers for requests and notifications coming from the other side.

    The first parameter's annotation of a handler is used to decode the params with ``ofdict``.
    """

    def __init__(self, methods=None):
        self.methods = methods if methods is not None else {}

    def __contains__(self, method):
        return method in self.methods

    def __getitem__(self, method):
        return self.methods[method]

    def param_type(self, method):
        fn = self.methods[method]
        sig = inspect.signature(fn)
        if len(sig.parameters) == 0:
            T = Any
        else:
            P = next(iter(sig.parameters.values()))
            T = P.annotation
            if T is inspect.Parameter.empty:
                T = Any
        return T

    def register(self, name=None):
        def core(fn):
            funcname = name or fn.__name__
            self.methods[funcname] = fn
            return fn

        return core

    def unregister(self, name: str):
        self.methods.pop(name, None)


connection_count = 0

RequestId = Union[str, int]


class RpcConnection:
    """One end of a JSON-RPC connection to the debugger engine.

    We send requests with ``request`` and get a future for the result;
    requests and notifications from the engine go to the ``dispatcher``.
    Nothing happens until ``serve_forever`` is running.
    """

    dispatcher: Dispatcher
    transport: Transport
    request_counter: int
    my_requests: Dict[int, Future]
    their_requests: Dict[RequestId, Task]
    notification_tasks: "set[asyncio.Task]"
    closed: bool

    def __init__(self, transport: Transport, dispatcher=None, name=None):
        global connection_count
        connection_count += 1
        if name is None:
            self.name = f"<{type(self).__name__} {connection_count}>"
        else:
            self.name = name
        self.transport = transport
        self.dispatcher = dispatcher if dispatcher is not None else Dispatcher()
        self.my_requests = {}
        self.their_requests = {}
        self.request_counter = 1000
        self.notification_tasks = set()
        self.closed = False

    def __str__(self):
        return self.name

    async def send(self, r: Union[Response, Request]):
        await self.transport.send(r.to_bytes())

    async def notify(self, method: str, params: Optional[Any]):
        req = Request(method=method, params=params)
        await self.send(req)

    async def request(self, method: str, params: Optional[Any]) -> Any:
        """Send a request and wait for the result.

        Raises ``ResponseException`` if the other side answers with an error
        and ``ConnectionError`` if the connection closes first."""
        if self.closed:
            raise ConnectionError(f"{self} is closed.")
        self.request_counter += 1
        id = self.request_counter
        req = Request(method=method, id=id, params=params)
        fut = asyncio.get_running_loop().create_future()
        self.my_requests[id] = fut
        try:
            await self.send(req)
            return await fut
        finally:
            self.my_requests.pop(id, None)

    async def serve_forever(self):
        """Runs until the transport closes."""
        try:
            while True:
                try:
                    data = await self.transport.recv()
                    messages = json.loads(data)
                    # can be a batch
                    if isinstance(messages, dict):
                        messages = [messages]
                    if not isinstance(messages, list):
                        raise TypeError(f"expected list, got {type(messages)}")

                except (ConnectionClosedError, asyncio.IncompleteReadError) as e:
                    logger.error(f"{self.name} transport closed with error: {e}")
                    return
                except (ConnectionClosedOK, EOFError) as e:
                    logger.info(f"{self.name} transport closed gracefully: {e}")
                    return
                except json.JSONDecodeError as e:
                    response = Response(
                        error=ResponseError(message=e.msg, code=ErrorCode.parse_error)
                    )
                    await self.send(response)
                    continue
                except Exception as e:
                    logger.error(f"Fatal {type(e)}: {e}")
                    console.print_exception()
                    return
                for message in messages:
                    try:
                        self._handle_message(message)
                    except (TypeError, ValueError, NotImplementedError) as e:
                        logger.error(f"{self} dropped malformed message {message}: {e}")
        finally:
            self._close()

    def _close(self):
        self.closed = True
        for id, fut in list(self.my_requests.items()):
            if not fut.done():
                fut.set_exception(ConnectionError(f"{self} closed before {id} was answered."))
        self.my_requests.clear()

    def _handle_message(self, message: Any):
        if "result" in message or "error" in message:
            res = ofdict(Response, message)
            fut = self.my_requests.pop(res.id, None)
            if fut is None or fut.done():
                logger.debug(f"{self} got a response for unknown request {res.id}")
                return
            if res.error is not None:
                fut.set_exception(
                    ResponseException(
                        id=res.id,
                        message=res.error.message,
                        code=res.error.code,
                        data=res.error.data,
                    )
                )
            else:
                fut.set_result(res.result)
        else:
            req = ofdict(Request, message)
            task = asyncio.create_task(self._on_request(req))
            id = req.id
            if id is not None:
                self.their_requests[id] = task
                task.add_done_callback(lambda _: self.their_requests.pop(id, None))
            else:
                self.notification_tasks.add(task)
                task.add_done_callback(self.notification_tasks.discard)

    async def _on_request(self, req: Request) -> None:
        if req.method not in self.dispatcher:
            if req.is_notification:
                logger.debug(f"{self} Unhandled notification {req.method}")
                return
            msg = f"{self} No method named {req.method}"
            logger.error(msg)
            err = ResponseError(
                code=ErrorCode.method_not_found,
                message=msg,
            )
            await self.send(Response(id=req.id, error=err))
            return

        fn = self.dispatcher[req.method]
        T = self.dispatcher.param_type(req.method)
        try:
            params = ofdict(T, req.params)
        except (TypeError, ValueError) as e:
            msg = f"{self} {req.method} {type(e)} failed to decode params to {T}: {e}"
            logger.error(msg)
            if not req.is_notification:
                await self.send(
                    Response(
                        id=req.id,
                        error=ResponseError(
                            message=msg,
                            code=ErrorCode.invalid_params,
                        ),
                    )
                )
            return
        try:
            result = fn(params)
            if asyncio.iscoroutine(result):
                result = await result
            if not req.is_notification:
                await self.send(Response(id=req.id, result=result))
        except asyncio.CancelledError as e:
            if not req.is_notification:
                await self.send(
                    Response(
                        id=req.id,
                        error=ResponseError(
                            code=ErrorCode.request_cancelled, message=str(e)
                        ),
                    )
                )

        except Exception as e:
            msg = f"{self} {req.method} {type(e)}: {e}"
            logger.error(msg)
            console.print_exception()
            if not req.is_notification:
                await self.send(
                    Response(
                        id=req.id,
                        error=ResponseError(message=msg, code=ErrorCode.internal_error),
                    )
                )
