from .config import Config, __version__
from .context import DebugContext
from .events import EventEmitter
from .location import ScriptInfo, SourceLink
from .resolver import (
    DebuggeeGlobalIntrospector,
    Introspector,
    PythonIntrospector,
    get_source_file_by_url,
    get_source_link_for_script,
    resolve_location_for_function,
    resolve_script_for_function,
)
from .sourcefile import LoadState, SourceFile

__all__ = [
    "Config",
    "__version__",
    "DebugContext",
    "EventEmitter",
    "ScriptInfo",
    "SourceLink",
    "DebuggeeGlobalIntrospector",
    "Introspector",
    "PythonIntrospector",
    "get_source_file_by_url",
    "get_source_link_for_script",
    "resolve_location_for_function",
    "resolve_script_for_function",
    "LoadState",
    "SourceFile",
]
