from typing import Callable, List, Optional
import pytest
from dbgsource.config import Config
from dbgsource.context import DebugContext
from dbgsource.remote.thread import SourceResponse


class FakeSourceClient:
    def __init__(self, thread: "FakeThread", actor: str):
        self.thread = thread
        self.actor = actor

    def source(self, callback: Callable[[SourceResponse], None]):
        self.thread.requests.append((self.actor, callback))


class FakeThread:
    """Stands in for ThreadClient. Requests are held until the test answers them with ``respond``."""

    requests: List

    def __init__(self):
        self.requests = []

    def source(self, source_file):
        return FakeSourceClient(self, source_file.actor)

    def respond(
        self,
        source: Optional[str] = None,
        content_type: Optional[str] = "text/javascript",
        error: Optional[str] = None,
        index: int = -1,
    ):
        _, callback = self.requests[index]
        callback(SourceResponse(error=error, source=source, contentType=content_type))


@pytest.fixture(autouse=True)
def config(tmp_path):
    with Config(max_pending_callbacks=1000, fetch_timeout=None, config_dir=tmp_path) as cfg:
        yield cfg


@pytest.fixture()
def thread():
    return FakeThread()


@pytest.fixture()
def context(thread):
    return DebugContext(active_thread=thread)
