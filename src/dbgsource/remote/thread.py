import asyncio
from dataclasses import dataclass, field
import logging
from typing import TYPE_CHECKING, Callable, List, Optional, Set

from dbgsource.config import Config
from dbgsource.remote.jsonrpc import ResponseException, RpcConnection
from dbgsource.util.ofdict import ofdict

if TYPE_CHECKING:
    from dbgsource.context import DebugContext
    from dbgsource.sourcefile import SourceFile

logger = logging.getLogger("dbgsource.remote")


@dataclass
class SourceResponse:
    """The engine's answer to a ``source`` request."""

    error: Optional[str] = field(default=None)
    source: Optional[str] = field(default=None)
    contentType: Optional[str] = field(default=None)


@dataclass
class SourceForm:
    """How the engine describes a compilation unit, in the ``sources`` listing and ``newSource`` notifications."""

    actor: str
    url: str
    isBlackBoxed: Optional[bool] = field(default=None)


class SourceClient:
    """Fetches the text of one source file from the engine."""

    def __init__(self, thread: "ThreadClient", actor: str):
        self.thread = thread
        self.actor = actor

    def __str__(self):
        return f"<SourceClient {self.actor}>"

    async def fetch(self) -> SourceResponse:
        """Request the text. Failures come back as a ``SourceResponse`` with ``error`` set."""
        timeout = Config.current().fetch_timeout
        try:
            result = await asyncio.wait_for(
                self.thread.connection.request("source", {"actor": self.actor}),
                timeout,
            )
            return ofdict(SourceResponse, result)
        except ResponseException as e:
            return SourceResponse(error=str(e))
        except asyncio.TimeoutError:
            return SourceResponse(
                error=f"No answer for {self.actor} after {timeout} seconds."
            )
        except ConnectionError as e:
            return SourceResponse(error=f"Connection lost: {e}")
        except (TypeError, ValueError) as e:
            return SourceResponse(error=f"Malformed source packet: {e}")

    def source(self, callback: Callable[[SourceResponse], None]) -> asyncio.Task:
        """Start fetching the text; ``callback`` is called with the response once it arrives.

        Must be called with an event loop running. The callback is never called synchronously.
        """

        def done(task: asyncio.Task):
            self.thread.tasks.discard(task)
            # runs however the task ended, including a cancel before its first step.
            if task.cancelled():
                response = SourceResponse(error=f"Request for {self.actor} cancelled.")
            elif task.exception() is not None:
                response = SourceResponse(
                    error=f"Request for {self.actor} failed: {task.exception()}"
                )
            else:
                response = task.result()
            callback(response)

        task = asyncio.get_running_loop().create_task(self.fetch())
        self.thread.tasks.add(task)
        task.add_done_callback(done)
        return task


class ThreadClient:
    """Our handle on the engine's debuggee thread, reached over an ``RpcConnection``."""

    connection: RpcConnection
    tasks: Set[asyncio.Task]

    def __init__(self, connection: RpcConnection):
        self.connection = connection
        self.tasks = set()

    def __str__(self):
        return f"<ThreadClient {self.connection}>"

    def source(self, source_file: "SourceFile") -> SourceClient:
        return SourceClient(self, source_file.actor)

    async def list_sources(self) -> List[SourceForm]:
        result = await self.connection.request("sources", None)
        return ofdict(List[SourceForm], result)

    def attach(self, context: "DebugContext"):
        """Make this the active thread of the context, and route ``newSource`` notifications to it."""

        def newSource(params: SourceForm):
            context.on_new_source(params)

        self.connection.dispatcher.register("newSource")(newSource)
        context.active_thread = self
        logger.debug(f"{self} attached to {context}")

    def detach(self, context: "DebugContext"):
        self.connection.dispatcher.unregister("newSource")
        if context.active_thread is self:
            context.active_thread = None
        for t in list(self.tasks):
            t.cancel()
