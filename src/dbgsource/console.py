import logging

from rich.console import Console
from rich.logging import RichHandler

console = Console(stderr=True)
""" Console for diagnostics. Everything goes to stderr so that stdout stays clean for command output. """

logger = logging.getLogger("dbgsource")
logger.addHandler(RichHandler(console=console, markup=False, show_path=False))
logger.propagate = False


def user_info(*args, **kwargs):
    """Messages addressed to the person running the tool rather than to the log."""
    console.print(*args, **kwargs)


def internal_error(*args):
    """Something that should not happen happened. We log it and carry on."""
    msg = " ".join(str(a) for a in args)
    logger.error(f"internal error: {msg}")
