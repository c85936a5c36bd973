"""Resolving live function values back to the script they were defined in.

None of this talks to the network or caches anything; it is a synchronous
question to whatever introspection the session has attached.
"""
import inspect
import logging
from pathlib import Path
from typing import Any, Callable, Optional, Protocol

from dbgsource.context import DebugContext
from dbgsource.location import ScriptInfo, SourceLink
from dbgsource.sourcefile import SourceFile

logger = logging.getLogger("dbgsource.resolver")


class Introspector(Protocol):
    def resolve_script(self, context: DebugContext, fn: Any) -> Optional[ScriptInfo]:
        ...


class DebuggeeGlobalIntrospector:
    """Introspection through an engine-side debugger global.

    ``get_global(context)`` returns a handle for the session's debuggee global, or None
    when no debugger is attached. ``handle.wrap(fn).unwrap()`` gives the debuggee's view
    of the function (None if it has none) whose ``script`` has ``url`` and ``startLine``.
    """

    def __init__(self, get_global: Callable[[DebugContext], Any]):
        self.get_global = get_global

    def resolve_script(self, context: DebugContext, fn: Any) -> Optional[ScriptInfo]:
        dbg_global = self.get_global(context)
        if dbg_global is None:
            logger.debug(f"{context}: no debugger global.")
            return None
        dbg_fn = dbg_global.wrap(fn).unwrap()
        script = getattr(dbg_fn, "script", None) if dbg_fn is not None else None
        if script is None:
            # e.g. native functions
            logger.debug(f"{context}: no script for {fn!r}")
            return None
        return ScriptInfo(url=script.url, start_line=script.startLine)


class PythonIntrospector:
    """Introspection of live Python functions, using their code objects.

    Builtins and other functions without a ``__code__`` have no script.
    """

    def resolve_script(self, context: DebugContext, fn: Any) -> Optional[ScriptInfo]:
        fn = inspect.unwrap(fn)
        fn = getattr(fn, "__func__", fn)
        code = getattr(fn, "__code__", None)
        if code is None:
            logger.debug(f"{context}: no script for {fn!r}")
            return None
        filename = code.co_filename
        if filename.startswith("<"):
            url = filename
        else:
            url = Path(filename).resolve().as_uri()
        return ScriptInfo(url=url, start_line=code.co_firstlineno)


def get_source_file_by_url(context: DebugContext, url: str) -> Optional[SourceFile]:
    return context.get_source_file(url)


def resolve_script_for_function(context: DebugContext, fn: Any) -> Optional[ScriptInfo]:
    if context.introspector is None:
        logger.debug(f"{context}: no introspection attached.")
        return None
    return context.introspector.resolve_script(context, fn)


def get_source_link_for_script(script: ScriptInfo, context: DebugContext) -> SourceLink:
    return SourceLink(script.url, script.start_line, "script")


def resolve_location_for_function(fn: Any, context: DebugContext) -> Optional[SourceLink]:
    """Where the source of ``fn`` starts, or None if it can't be resolved."""
    script = resolve_script_for_function(context, fn)
    return get_source_link_for_script(script, context) if script is not None else None
