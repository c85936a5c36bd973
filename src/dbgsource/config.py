from dataclasses import dataclass, field, fields, replace
import os
import sys
from pathlib import Path
from typing import Optional
import importlib.metadata

from dbgsource.util import Current
from dbgsource.util.config_file import interpret_var_str, get_config
from dbgsource.console import logger

try:
    __version__ = importlib.metadata.version("dbgsource")
except importlib.metadata.PackageNotFoundError:
    __version__ = "0.0.0"

appname = "dbgsource"


def find_global_config_directory() -> Path:
    """Returns a path to the place on the user's system where they want to store configs.

    Trying to do this as canonically as possible. The directory is not created until something is written to it."""
    p = Path(os.environ.get("XDG_CONFIG_HOME", "~/.config"))
    if sys.platform == "win32":
        p = Path(os.environ.get("APPDATA", "~/.config"))
    elif sys.platform not in ["darwin", "linux"]:
        logger.warning(f"Unsupported platform {sys.platform}, using `~/.config`")
    return p.expanduser().resolve() / appname


def global_config_path() -> Path:
    return (
        Path(os.environ.get("DBGSOURCE_CONFIG_DIR", find_global_config_directory()))
        / "dbgsource.conf"
    )


@dataclass
class Config(Current):
    """This dataclass contains all of the configuration for talking to a remote debugger engine."""

    max_pending_callbacks: Optional[int] = field(default=1000)
    """ Maximum number of callers that may wait on a single source file while its text is being fetched.
    Callers beyond the cap are answered straight away with no lines. ``None`` means no cap. """

    fetch_timeout: Optional[float] = field(default=None)
    """ Seconds to wait for the engine to answer a source request before treating it as failed.
    ``None`` waits forever. """

    log_level: str = field(default="INFO")
    """ Level for the ``dbgsource`` logger. Set it to ``DEBUG`` to trace source loading. """

    config_dir: Path = field(default_factory=find_global_config_directory)
    """ The root config directory. """

    def merge_env(self):
        """Get config values from environment variables."""
        d = {}
        for fd in fields(self):
            k = fd.name
            K = f"DBGSOURCE_{k.upper()}"
            v = os.environ.get(K, None)
            if v is not None:
                logger.debug(f"Setting config {k} from environment variable {K}.")
                d[k] = interpret_var_str(fd.type, v)
        return replace(self, **d)

    def __post_init__(self):
        if self.max_pending_callbacks is not None and self.max_pending_callbacks < 1:
            logger.warning(
                f"max_pending_callbacks={self.max_pending_callbacks} would refuse every caller, using 1."
            )
            self.max_pending_callbacks = 1
        if self.fetch_timeout is not None and self.fetch_timeout <= 0:
            logger.warning(f"Ignoring non-positive fetch_timeout={self.fetch_timeout}.")
            self.fetch_timeout = None

    @classmethod
    def default(cls):
        """Creates the config, including the global config file and environment variables."""

        cfg = cls()

        from_global_file = get_config(
            global_config_path(), {field.name: field.type for field in fields(cls)}
        )

        cfg = replace(
            cfg,
            **from_global_file,
        )
        cfg = cfg.merge_env()
        logger.setLevel(cfg.log_level.upper())
        return cfg
