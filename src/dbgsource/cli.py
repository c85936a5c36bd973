import asyncio
import importlib
from typing import Optional

import typer

from dbgsource.config import Config, global_config_path
from dbgsource.console import console, user_info
from dbgsource.context import DebugContext
from dbgsource.resolver import PythonIntrospector, resolve_location_for_function
from dbgsource.session import connect
from dbgsource.util.config_file import get_config, set_config

app = typer.Typer()
""" Entrypoint for CLI tool. """


@app.callback()
def main():
    # reads the config file and environment, and sets the log level.
    Config.current()


async def lines_async(engine: str, url: str, start: int, count: Optional[int]):
    async with connect(engine) as context:
        sf = context.get_source_file(url)
        if sf is None:
            user_info(f"[red]The engine at {engine} has no source {url}.[/]")
            raise typer.Exit(1)
        lines = await sf.load()
        if lines is None:
            user_info(f"[red]Could not load {url}, see the log for why.[/]")
            raise typer.Exit(1)
        end = len(lines) if count is None else min(len(lines), start + count)
        width = len(str(end))
        for i in range(max(start, 0), end):
            print(f"{i + 1:>{width}}  {lines[i]}")


@app.command()
def lines(
    url: str,
    engine: str = typer.Option(..., help="Websocket url of the debugger engine."),
    start: int = typer.Option(0, help="First line to print (0-based)."),
    count: Optional[int] = typer.Option(None, help="Number of lines to print."),
):
    """Fetch a source file from a running engine and print its lines."""
    asyncio.run(lines_async(engine, url, start, count))


async def sources_async(engine: str):
    async with connect(engine) as context:
        for url, sf in sorted(context.source_files.items()):
            flag = " [dim](black-boxed)[/]" if sf.is_black_boxed else ""
            console.print(f"{url} [cyan]{sf.actor}[/]{flag}", soft_wrap=True)


@app.command()
def sources(
    engine: str = typer.Option(..., help="Websocket url of the debugger engine."),
):
    """List the source files a running engine knows about."""
    asyncio.run(sources_async(engine))


def load_object(target: str):
    """Find the object for a ``module:qualname`` string."""
    if ":" not in target:
        raise typer.BadParameter(f"Expected module:qualname, got {target}")
    module_name, qualname = target.split(":", 1)
    o = importlib.import_module(module_name)
    for part in qualname.split("."):
        o = getattr(o, part)
    return o


@app.command()
def locate(target: str):
    """Print where the Python function ``module:qualname`` is defined."""
    fn = load_object(target)
    context = DebugContext(introspector=PythonIntrospector())
    link = resolve_location_for_function(fn, context)
    if link is None:
        user_info(f"[yellow]{target} has no script (is it a builtin?)[/]")
        raise typer.Exit(1)
    print(link)


config_subcommand = typer.Typer()
app.add_typer(config_subcommand, name="config", short_help="Manage the config file.")


@config_subcommand.command("set")
def config_set(key: str, value: str):
    """Add a key/value pair to the global config."""
    set_config(global_config_path(), **{key: value})


@config_subcommand.command("unset")
def config_unset(key: str):
    """Unset an option in the global config."""
    set_config(global_config_path(), **{key: None})


@config_subcommand.command("get")
def config_get(key: str):
    """Read an option from the global config."""
    v = get_config(global_config_path(), key)
    if v is None:
        print(f"option {key} is not set")
    else:
        print(v)


@config_subcommand.command("list")
def config_list():
    """List the values in the current config."""
    cfg = Config.current()
    for k in cfg.__dataclass_fields__.keys():
        print(f"{k} = {getattr(cfg, k)}")


if __name__ == "__main__":
    app()
