import logging
from typing import TYPE_CHECKING, Dict, Iterable, Optional, Tuple

from dbgsource.events import EventEmitter
from dbgsource.sourcefile import SourceFile

if TYPE_CHECKING:
    from dbgsource.remote.thread import SourceForm, ThreadClient
    from dbgsource.resolver import Introspector

logger = logging.getLogger("dbgsource.context")

context_count = 0


class DebugContext:
    """State for one debugging session with one engine.

    Owns the registry of source files, the event emitter that announces them,
    and the (possibly absent) thread client used to talk to the engine.
    """

    source_files: Dict[str, SourceFile]
    active_thread: Optional["ThreadClient"]
    introspector: Optional["Introspector"]
    events: EventEmitter

    def __init__(
        self,
        active_thread: Optional["ThreadClient"] = None,
        introspector: Optional["Introspector"] = None,
        events: Optional[EventEmitter] = None,
        name: Optional[str] = None,
    ):
        global context_count
        context_count += 1
        self.name = name or f"<{type(self).__name__} {context_count}>"
        self.source_files = {}
        self._by_actor: Dict[Tuple[str, str], SourceFile] = {}
        self.active_thread = active_thread
        self.introspector = introspector
        self.events = events if events is not None else EventEmitter()

    def __str__(self):
        return self.name

    def get_source_file(self, url: str) -> Optional[SourceFile]:
        return self.source_files.get(url)

    def add_source(self, actor: str, url: str, is_black_boxed=False) -> SourceFile:
        """Returns the source file for (actor, url), creating it the first time it is seen."""
        key = (actor, url)
        sf = self._by_actor.get(key)
        if sf is not None:
            return sf
        sf = SourceFile(self, actor, url, is_black_boxed)
        self._by_actor[key] = sf
        if url in self.source_files:
            logger.debug(f"{self}: {url} is now served by {actor}.")
        self.source_files[url] = sf
        self.events.dispatch("new_source", sf)
        return sf

    def on_new_source(self, form: "SourceForm") -> SourceFile:
        return self.add_source(form.actor, form.url, bool(form.isBlackBoxed))

    def on_sources(self, forms: Iterable["SourceForm"]):
        return [self.on_new_source(form) for form in forms]

    def destroy(self):
        logger.debug(f"{self} destroyed with {len(self.source_files)} source files.")
        self.source_files.clear()
        self._by_actor.clear()
        self.active_thread = None
        self.events.clear()
