import asyncio
from enum import Enum
import logging
from typing import TYPE_CHECKING, Any, Callable, List, Optional

from dbgsource.config import Config
from dbgsource.console import internal_error
from dbgsource.util import normalize_line_endings, split_lines

if TYPE_CHECKING:
    from dbgsource.context import DebugContext
    from dbgsource.remote.thread import SourceResponse

logger = logging.getLogger("dbgsource.sourcefile")

LinesCallback = Callable[[Optional[List[str]]], Any]
LineCallback = Callable[[Optional[str]], Any]


class LoadState(Enum):
    not_loaded = 0
    loading = 1
    loaded = 2


class SourceFile:
    """Client-side model of one compilation unit that lives in the debugger engine.

    An instance is created by the ``DebugContext`` for every source the engine tells us about,
    once per (actor, url). The text is not sent with the announcement: it is fetched lazily,
    at most one request at a time, the first time somebody asks for lines.
    Everybody who asks while that request is in flight is queued and answered,
    in the order they asked, when it completes.

    Nothing here raises to the caller. Missing data is reported by calling back with ``None``.
    """

    context: "DebugContext"
    actor: str
    href: str
    is_black_boxed: bool
    content_type: Optional[str]
    display_name: str
    compilation_unit_type: str
    load_state: LoadState
    lines: Optional[List[str]]
    callbacks: List[LinesCallback]

    def __init__(
        self, context: "DebugContext", actor: str, href: str, is_black_boxed=False
    ):
        self.context = context
        self.actor = actor
        self.href = href
        # Not interpreted here; stepping and breaking look at it.
        self.is_black_boxed = is_black_boxed
        # Set when the text arrives.
        self.content_type = None
        self.compilation_unit_type = "script_tag"
        self.display_name = href
        self.load_state = LoadState.not_loaded
        self.lines = None
        self.callbacks = []

    def __str__(self):
        return self.href

    def __repr__(self):
        return f"<SourceFile {self.href} {self.actor} {self.load_state.name}>"

    def get_url(self) -> str:
        return self.href

    def get_display_name(self) -> str:
        return self.display_name

    @property
    def loaded(self) -> bool:
        return self.load_state == LoadState.loaded

    def get_source_length(self) -> int:
        # [todo] needs a length from the engine's source form.
        return 0

    def is_executable_line(self, line_no: int) -> bool:
        # [todo] needs the engine's per-script line offsets.
        return False

    def get_line(
        self, line_no: int, callback: Optional[LineCallback] = None
    ) -> Optional[str]:
        """Get the line at (0-based) ``line_no``.

        If the text is loaded the line is returned, and also passed to ``callback``.
        Otherwise this returns ``None``, starts loading, and ``callback`` gets the line
        (or ``None`` if it doesn't exist) once the load finishes.
        """
        if self.lines is not None:
            if 0 <= line_no < len(self.lines):
                line = self.lines[line_no]
                if callback is not None:
                    callback(line)
                return line
            logger.debug(
                f"{self.href}: line {line_no} is out of range (0 to {len(self.lines) - 1})."
            )
            return None

        def on_lines(lines: Optional[List[str]]):
            line = None
            if lines is not None and 0 <= line_no < len(lines):
                line = lines[line_no]
            if callback is not None:
                callback(line)

        self.load_script_lines(on_lines)
        return None

    def load_script_lines(self, callback: LinesCallback) -> Optional[List[str]]:
        """Get all the lines of the file.

        If the file is loaded, ``callback`` is called straight away and the lines are returned.
        Otherwise ``callback`` is queued and called exactly once, later, with the lines
        or with ``None`` if the file could not be fetched. Only the first caller
        triggers a request to the engine.
        """
        if self.lines is not None:
            callback(self.lines)
            return self.lines

        if self.load_state == LoadState.loading:
            cap = Config.current().max_pending_callbacks
            if cap is not None and len(self.callbacks) >= cap:
                logger.warning(
                    f"{self.href}: {len(self.callbacks)} callers are already waiting for the source, refusing another."
                )
                callback(None)
                return None
            self.callbacks.append(callback)
            logger.debug(f"{self.href}: already loading, {len(self.callbacks)} waiting.")
            return None

        thread = self.context.active_thread
        if thread is None:
            logger.debug(f"{self.href}: can't load the source, no active thread.")
            callback(None)
            return None

        logger.debug(f"{self.href}: loading source from {self.actor}.")
        self.callbacks.append(callback)
        self.load_state = LoadState.loading
        # This is the only place where the text of a file is requested.
        try:
            thread.source(self).source(self.on_source_loaded)
        except Exception as e:
            logger.exception(f"{self.href}: could not request the source: {e}")
            waiting = self.callbacks
            self.callbacks = []
            self.load_state = LoadState.not_loaded
            self._notify(waiting, None)
        return None

    async def load(self) -> Optional[List[str]]:
        """Awaitable form of ``load_script_lines``."""
        fut = asyncio.get_running_loop().create_future()

        def resolve(lines):
            if not fut.done():
                fut.set_result(lines)

        self.load_script_lines(resolve)
        return await fut

    def on_source_loaded(self, response: "SourceResponse"):
        """Completion handler for the fetch. Called once per request."""
        logger.debug(f"{self.href}: got source response.")
        if self.load_state != LoadState.loading:
            internal_error(f"{self.href}: source response arrived in state {self.load_state.name}.")
            return

        waiting = self.callbacks
        self.callbacks = []

        if response.error or response.source is None:
            logger.error(
                f"{self.href}: failed to load source: {response.error or 'no text in response'}"
            )
            # Go back so that a later call can try again.
            self.load_state = LoadState.not_loaded
            self._notify(waiting, None)
            return

        # Lines are kept unix style.
        source = normalize_line_endings(response.source)
        self.lines = split_lines(source)
        self.content_type = response.contentType
        self.load_state = LoadState.loaded

        self._notify(waiting, self.lines)
        self.context.events.dispatch("source_loaded", self)

    def _notify(self, callbacks: List[LinesCallback], lines: Optional[List[str]]):
        for callback in callbacks:
            try:
                callback(lines)
            except Exception as e:
                logger.exception(f"{self.href}: source callback {callback} failed: {e}")
