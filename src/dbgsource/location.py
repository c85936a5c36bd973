from dataclasses import dataclass, field


@dataclass(frozen=True)
class ScriptInfo:
    """What the engine's introspection layer knows about the script behind a function."""

    url: str
    start_line: int


@dataclass(frozen=True)
class SourceLink:
    """A navigable reference to a point in a source file.

    Lines are 1-based, as reported by the engine.
    """

    url: str
    line: int
    kind: str = field(default="script")
    """ Tag for the type of compilation unit, eg ``"script"``. """

    def __str__(self):
        return f"{self.url}:{self.line}"
