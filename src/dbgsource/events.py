from collections import defaultdict
import logging
from typing import Any, Callable, Dict, List

logger = logging.getLogger("dbgsource.events")

Listener = Callable[..., Any]


class EventEmitter:
    """Session-scoped notification bus.

    Listeners are called synchronously, in the order they were added, with the
    arguments given to ``dispatch``. There is no acknowledgement; a listener that
    raises is logged and the remaining listeners still run.
    """

    listeners: Dict[str, List[Listener]]

    def __init__(self):
        self.listeners = defaultdict(list)

    def on(self, event: str, fn=None):
        """Add a listener. Can be used as a decorator: ``@events.on("source_loaded")``."""
        if fn is not None:
            self.listeners[event].append(fn)
            return fn

        def core(fn):
            self.listeners[event].append(fn)
            return fn

        return core

    def off(self, event: str, fn: Listener) -> None:
        ls = self.listeners.get(event, [])
        if fn in ls:
            ls.remove(fn)

    def dispatch(self, event: str, *args) -> None:
        # copy, listeners may remove themselves.
        for fn in list(self.listeners.get(event, [])):
            try:
                fn(*args)
            except Exception as e:
                logger.exception(f"Listener {fn} for {event} failed: {e}")

    def clear(self) -> None:
        self.listeners.clear()
