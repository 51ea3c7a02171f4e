"""CLI entry point for configfs-gadget."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

import configfs_gadget
from configfs_gadget.core.errors import GadgetError
from configfs_gadget.core.gadget import Gadget
from configfs_gadget.core.settings import GadgetSettings
from configfs_gadget.core.steps import Action

app = typer.Typer(
    name="configfs-gadget",
    help="Build and tear down USB gadgets through configfs.",
    no_args_is_help=True,
)
console = Console()

_state: dict[str, GadgetSettings] = {}


@app.callback()
def main(
    root: Optional[Path] = typer.Option(
        None, "--root", help="configfs usb_gadget directory"
    ),
    udc_path: Optional[Path] = typer.Option(
        None, "--udc-path", help="Directory listing USB device controllers"
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Log every filesystem step"
    ),
) -> None:
    """Build and tear down USB gadgets through configfs."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=console, show_path=False)],
        )
    _state["settings"] = GadgetSettings.from_env(root, udc_path)


def _settings() -> GadgetSettings:
    return _state.get("settings") or GadgetSettings.from_env()


def _load(file: Path) -> Gadget:
    from configfs_gadget.core.model_loader import load_gadget

    try:
        return load_gadget(file, settings=_settings())
    except (OSError, GadgetError) as e:
        console.print(f"[red]Error: {e}[/]")
        raise typer.Exit(1)


def _fail(e: GadgetError) -> None:
    console.print(f"[red]Error: {e}[/]")
    raise typer.Exit(1)


@app.command()
def plan(
    file: Path = typer.Argument(..., help="Gadget description (JSON)"),
    remove: bool = typer.Option(
        False, "--remove", help="Show the teardown plan instead"
    ),
) -> None:
    """Print the compiled step plan without touching the filesystem.

    The teardown plan omits the unbind write that `remove` runs first
    when the gadget is bound.
    """
    gadget = _load(file)
    steps = gadget.remove_steps() if remove else gadget.create_steps()

    table = Table(
        title=f"{'Remove' if remove else 'Create'} {gadget.name}",
        caption="Bound gadgets are unbound first" if remove else None,
    )
    table.add_column("#", justify="right", style="dim", no_wrap=True)
    table.add_column("Action", style="cyan", no_wrap=True)
    table.add_column("Path", style="green")
    table.add_column("Value")

    for index, step in enumerate(steps):
        if step.action is Action.NOOP:
            continue
        value = step.arg
        if isinstance(value, bytes):
            value = value.hex()
        table.add_row(str(index), step.action.value, step.path, str(value))

    console.print(table)


@app.command()
def create(
    file: Path = typer.Argument(..., help="Gadget description (JSON)"),
) -> None:
    """Create the gadget described by FILE."""
    gadget = _load(file)
    if gadget.exists():
        console.print(f"[yellow]Gadget {gadget.name} already exists at {gadget.path}[/]")
        raise typer.Exit(1)
    try:
        gadget.create()
    except GadgetError as e:
        _fail(e)
    console.print(f"[green]Created {gadget.name} at {gadget.path}[/]")


@app.command()
def remove(
    file: Path = typer.Argument(..., help="Gadget description (JSON)"),
) -> None:
    """Remove the gadget described by FILE."""
    gadget = _load(file)
    try:
        gadget.remove()
    except GadgetError as e:
        _fail(e)
    console.print(f"[green]Removed {gadget.name}[/]")


@app.command()
def bind(
    file: Path = typer.Argument(..., help="Gadget description (JSON)"),
    udc: str = typer.Option(
        "", "--udc", help="Controller name (default: first available)"
    ),
) -> None:
    """Bind the gadget to a USB device controller."""
    gadget = _load(file)
    try:
        name = gadget.bind(udc)
    except GadgetError as e:
        _fail(e)
    console.print(f"[green]Bound {gadget.name} to {name}[/]")


@app.command()
def unbind(
    file: Path = typer.Argument(..., help="Gadget description (JSON)"),
) -> None:
    """Unbind the gadget from its controller."""
    gadget = _load(file)
    try:
        gadget.unbind()
    except GadgetError as e:
        _fail(e)
    console.print(f"[green]Unbound {gadget.name}[/]")


@app.command("list-udcs")
def list_udcs_cmd() -> None:
    """List available USB device controllers."""
    from configfs_gadget.core.udc import list_udcs

    settings = _settings()
    udcs = list_udcs(settings.udc_root)
    if not udcs:
        console.print(f"[yellow]No controllers found under {settings.udc_root}[/]")
        raise typer.Exit(0)
    for name in udcs:
        console.print(name)


@app.command("list-functions")
def list_functions() -> None:
    """List supported function types."""
    from configfs_gadget.functions.registry import list_function_types

    for function_type in list_function_types():
        console.print(function_type)


@app.command()
def version() -> None:
    """Print version."""
    console.print(f"configfs-gadget {configfs_gadget.__version__}")


if __name__ == "__main__":
    app()
