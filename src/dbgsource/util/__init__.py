from contextvars import ContextVar
import functools
import re
from typing import List, Type, TypeVar

from .type_helpers import as_list, as_optional, is_optional
from .ofdict import ofdict, MyJsonEncoder

if hasattr(functools, "cache"):
    cache = functools.cache
else:
    cache = functools.lru_cache(maxsize=None)

__all__ = [
    "as_list",
    "as_optional",
    "is_optional",
    "ofdict",
    "MyJsonEncoder",
    "cache",
    "Current",
    "split_lines",
    "normalize_line_endings",
]

_LINE_BREAK = re.compile(r"\r\n|\r|\n")


def normalize_line_endings(text: str) -> str:
    """Converts all ``\\r\\n`` delimiters to unix style ``\\n``."""
    return text.replace("\r\n", "\n")


def split_lines(text: str) -> List[str]:
    """Splits on any of ``\\r\\n``, ``\\r`` or ``\\n``.

    Unlike ``str.splitlines``, a trailing newline produces a trailing empty line,
    so that ``"\\n".join(split_lines(x))`` recovers ``normalize_line_endings(x)`` when ``x`` has no lone ``\\r``.
    """
    return _LINE_BREAK.split(text)


T = TypeVar("T", bound="Current")


class Current:
    """A mixin for classes where you want there to be a 'current' instance.
    You can get the current instance by calling ``cls.current``
    """

    CURRENT: ContextVar
    _tokens: List

    @classmethod
    def default(cls):
        """Override this to create a default value for current."""
        raise NotImplementedError(f"{cls.__qualname__}.default() is not implemented.")

    def __init_subclass__(cls):
        cls.CURRENT = ContextVar(cls.__qualname__ + ".CURRENT")
        # ref: https://docs.python.org/3/reference/datamodel.html#object.__init_subclass__

    def __enter__(self):
        if not hasattr(self, "_tokens"):
            self._tokens = []
        self._tokens.append(self.__class__.CURRENT.set(self))
        return self

    def __exit__(self, ex_type, ex_value, ex_trace):
        assert hasattr(self, "_tokens")
        assert len(self._tokens) > 0
        t = self._tokens.pop()
        self.__class__.CURRENT.reset(t)

    @classmethod
    def current(cls: Type[T]) -> T:
        """The current value of the singleton class."""
        c = cls.CURRENT.get(None)
        if c is None:
            c = cls.default()
            cls.CURRENT.set(c)
        return c
