"""Typer CLI entrypoint for kioskctl."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.json import JSON
from rich.panel import Panel
from rich.table import Table

from kioskctl.boot import BootOutcome, BootSignal
from kioskctl.cli.bootstrap import (
    build_runtime,
    configure_logging,
    default_config_file,
)
from kioskctl.commands import KioskCommandHandler
from kioskctl.config import EnableMode, dump_default_config
from kioskctl.errors import GatewayError
from kioskctl.launch import Unresolvable
from kioskctl.models import DndMode, ResultCode

app = typer.Typer(help="kioskctl: single-app kiosk session controller")
_CONSOLE = Console()

ConfigOption = Annotated[
    Path | None,
    typer.Option(
        "--config",
        file_okay=True,
        dir_okay=False,
        help="Path to kioskctl config YAML/JSON file.",
    ),
]
VerboseOption = Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging.")]


def _render_code(code: ResultCode) -> None:
    """Print a result code and exit non-zero unless it is OK.

    Args:
        code: Terminal result code.

    Raises:
        Exit: Always, carrying the shell exit code.
    """
    ok = code == ResultCode.OK
    _CONSOLE.print(
        Panel(
            code.value,
            title="kioskctl",
            border_style="green" if ok else "bold red",
            expand=True,
        )
    )
    raise typer.Exit(code=0 if ok else 1)


@app.command("init")
def init_command(
    config_file: ConfigOption = None,
    overwrite: Annotated[
        bool,
        typer.Option("--overwrite", help="Overwrite an existing config file."),
    ] = False,
) -> None:
    """Write a default config file.

    Args:
        config_file: Optional config path override.
        overwrite: Whether to overwrite an existing file.
    """
    path = config_file or default_config_file()
    existed = path.exists()
    if existed and not overwrite:
        _CONSOLE.print(f"Config already exists: {path}", style="yellow")
        return
    dump_default_config(path)
    status = "overwritten" if existed else "created"
    _CONSOLE.print(
        Panel(f"Config: {path}", title=f"Config {status}", border_style="green")
    )


@app.command("enable")
def enable_command(  # noqa: PLR0913
    allow: Annotated[
        list[str] | None,
        typer.Option("--allow", help="Package to allow-list; repeatable."),
    ] = None,
    features: Annotated[
        int, typer.Option("--features", help="Lock-task feature bitmask.")
    ] = 0,
    suppress_status_bar: Annotated[
        bool,
        typer.Option(
            "--no-status-bar/--status-bar", help="Suppress the status bar."
        ),
    ] = True,
    dnd: Annotated[
        DndMode, typer.Option("--dnd", help="Do-not-disturb mode.")
    ] = DndMode.TOTAL,
    mode: Annotated[
        EnableMode | None,
        typer.Option("--mode", help="prepare (arm only) or apply (take over)."),
    ] = None,
    config_file: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Enter kiosk mode.

    Args:
        allow: Extra allow-listed packages.
        features: Lock-task feature bitmask.
        suppress_status_bar: Whether to suppress the status bar.
        dnd: Do-not-disturb mode.
        mode: Enable variant; config default when omitted.
        config_file: Optional config path override.
        verbose: Whether to log at DEBUG.
    """
    configure_logging(verbose=verbose)
    runtime = build_runtime(config_file, console=_CONSOLE)
    handler = KioskCommandHandler(
        runtime.controller, default_mode=runtime.config.controller.default_mode
    )
    payload: dict[str, object] = {
        "action": "enable",
        "allowlist": list(allow or []),
        "features": features,
        "suppress_status_bar": suppress_status_bar,
        "dnd_mode": dnd.value,
    }
    if mode is not None:
        payload["mode"] = mode.value
    _render_code(handler.handle(payload))


@app.command("disable")
def disable_command(
    config_file: ConfigOption = None, verbose: VerboseOption = False
) -> None:
    """Leave kiosk mode and restore the previous home.

    Args:
        config_file: Optional config path override.
        verbose: Whether to log at DEBUG.
    """
    configure_logging(verbose=verbose)
    runtime = build_runtime(config_file, console=_CONSOLE)
    handler = KioskCommandHandler(runtime.controller)
    _render_code(handler.handle({"action": "disable"}))


@app.command("status")
def status_command(
    config_file: ConfigOption = None, verbose: VerboseOption = False
) -> None:
    """Show persisted session state and device-owner status.

    Args:
        config_file: Optional config path override.
        verbose: Whether to log at DEBUG.
    """
    configure_logging(verbose=verbose)
    runtime = build_runtime(config_file, console=_CONSOLE)
    state = runtime.controller.session_state()
    try:
        owner = "yes" if runtime.privilege.is_device_owner() else "no"
    except GatewayError as exc:
        owner = f"unknown ({exc.code})"
    table = Table(title="Kiosk Status", show_header=True, header_style="bold cyan")
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("applied", "yes" if state.applied else "no")
    table.add_row(
        "previous home",
        state.previous_home.flatten() if state.previous_home else "-",
    )
    table.add_row("dnd altered", "yes" if state.dnd_altered else "no")
    table.add_row("device owner", owner)
    table.add_row("target", runtime.config.target.package)
    _CONSOLE.print(table)


@app.command("boot")
def boot_command(
    signal: Annotated[
        list[BootSignal] | None,
        typer.Option(
            "--signal",
            help=(
                "Restart signal; repeatable, in order. Pass every signal of one "
                "boot to a single invocation."
            ),
        ),
    ] = None,
    config_file: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Relaunch the kiosk target after a restart, at most once per process.

    The latch lives only as long as this invocation, so signals split across
    separate runs can each relaunch the target.

    Args:
        signal: Signals to deliver in order.
        config_file: Optional config path override.
        verbose: Whether to log at DEBUG.
    """
    configure_logging(verbose=verbose)
    runtime = build_runtime(config_file, console=_CONSOLE)
    table = Table(title="Boot Signals", show_header=True, header_style="bold cyan")
    table.add_column("Signal", style="bold")
    table.add_column("Outcome")
    outcomes: list[BootOutcome] = []
    for item in signal or [BootSignal.BOOT_COMPLETED]:
        outcome = runtime.boot_guard.handle(item)
        outcomes.append(outcome)
        table.add_row(item.value, outcome.value)
    _CONSOLE.print(table)
    if BootOutcome.FAILED in outcomes:
        raise typer.Exit(code=1)


@app.command("resolve")
def resolve_command(
    package: Annotated[str, typer.Argument(help="Target package to resolve.")],
    config_file: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Resolve a launchable entry point, printing diagnostics on failure.

    Args:
        package: Target package id.
        config_file: Optional config path override.
        verbose: Whether to log at DEBUG.

    Raises:
        Exit: With code 1 when the package is unresolvable.
    """
    configure_logging(verbose=verbose)
    runtime = build_runtime(config_file, console=_CONSOLE)
    resolved = runtime.launch_resolver.resolve(package)
    if isinstance(resolved, Unresolvable):
        _CONSOLE.print(
            Panel(
                JSON.from_data(resolved.diagnostics.as_log_fields()),
                title=f"Unresolvable: {package}",
                border_style="bold red",
                expand=True,
            )
        )
        raise typer.Exit(code=1)
    _CONSOLE.print(
        Panel(resolved.flatten(), title="Resolved", border_style="green", expand=True)
    )


if __name__ == "__main__":
    app()
