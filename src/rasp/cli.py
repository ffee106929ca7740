"""
CLI entry point for rasp.

Policy authors use this to check a policy file before deploying it and
to see how a given call would be classified.

Commands:
    validate    Load and validate a policy file
    check       Show the verdict for one call under a policy file
    operations  List the operation catalogue

Architecture Note:
    The CLI is intentionally thin - it loads the policy and delegates to
    the policy engine. Nothing here intercepts real calls.
"""

import json
import traceback
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from rasp import __version__
from rasp.errors import RaspError
from rasp.operations import default_operations
from rasp.policy import DecisionEngine, PolicyStore
from rasp.schema import Category, Configuration, Mode, load_config

# Exit codes for `rasp check`
EXIT_ALLOW = 0
EXIT_ALERT = 1
EXIT_BLOCK = 2
EXIT_CONFIG_ERROR = 3

VERDICT_EXIT_CODES = {
    Mode.ALLOW: EXIT_ALLOW,
    Mode.ALERT: EXIT_ALERT,
    Mode.BLOCK: EXIT_BLOCK,
}

VERDICT_STYLES = {
    Mode.ALLOW: "green",
    Mode.ALERT: "yellow",
    Mode.BLOCK: "red",
}

app = typer.Typer(
    name="rasp",
    help="Inspect and test runtime self-protection policies.",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]rasp[/bold] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """
    rasp - runtime self-protection policy tooling.
    """
    pass


def _load(config_path: Path, json_output: bool, debug: bool) -> Configuration:
    """Load a policy file or exit with EXIT_CONFIG_ERROR."""
    try:
        return load_config(config_path)
    except (RaspError, OSError) as e:
        if json_output:
            payload = {"error": "config_load_error", "message": str(e)}
            if debug:
                payload["traceback"] = traceback.format_exc()
            print(json.dumps(payload, indent=2))
        else:
            console.print(f"[red]Error loading policy: {e}[/red]")
            if debug:
                console.print(f"[dim]{traceback.format_exc()}[/dim]")
        raise typer.Exit(code=EXIT_CONFIG_ERROR)


@app.command()
def validate(
    config_path: Annotated[
        Path,
        typer.Argument(
            help="Path to the policy YAML file.",
            exists=True,
            readable=True,
            resolve_path=True,
        ),
    ],
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output results in JSON format."),
    ] = False,
    debug: Annotated[
        bool,
        typer.Option("--debug", help="Enable debug mode with full error tracebacks."),
    ] = False,
) -> None:
    """
    Load and validate a policy file.

    Example:
        $ rasp validate policy.yaml
    """
    config = _load(config_path, json_output, debug)

    if json_output:
        print(json.dumps(config.model_dump(mode="json", by_alias=True), indent=2))
        return

    console.print(f"[green]✓[/green] Policy [bold]{config_path.name}[/bold] is valid")
    console.print(f"  Mode: [bold]{config.mode.value}[/bold]")
    console.print()

    table = Table(show_header=True, header_style="bold")
    table.add_column("Category", style="cyan")
    table.add_column("Patterns")
    for category in Category:
        patterns = config.patterns(category)
        table.add_row(category.value, "\n".join(patterns) if patterns else "[dim](none)[/dim]")
    apis = [f"{api.module}.{api.method}" for api in config.allow_api]
    table.add_row("api", "\n".join(apis) if apis else "[dim](none)[/dim]")
    console.print(table)


@app.command()
def check(
    config_path: Annotated[
        Path,
        typer.Argument(
            help="Path to the policy YAML file.",
            exists=True,
            readable=True,
            resolve_path=True,
        ),
    ],
    module: Annotated[str, typer.Argument(help="Module label, e.g. 'os'.")],
    method: Annotated[str, typer.Argument(help="Method label, e.g. 'listdir'.")],
    args: Annotated[
        Optional[list[str]],
        typer.Argument(help="Canonical call arguments, e.g. '/etc/passwd'."),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output results in JSON format."),
    ] = False,
    debug: Annotated[
        bool,
        typer.Option("--debug", help="Enable debug mode with full error tracebacks."),
    ] = False,
) -> None:
    """
    Show the verdict for one call.

    Exits 0 for allow, 1 for alert, 2 for block and 3 if the policy
    cannot be loaded.

    Example:
        $ rasp check policy.yaml os listdir /tmp/work
    """
    config = _load(config_path, json_output, debug)
    engine = DecisionEngine(PolicyStore(config.mode, config.rules()))
    call_args = args or []
    verdict = engine.decide(module, method, call_args)
    operation = engine.operations.get_optional(module, method)

    if json_output:
        print(json.dumps({
            "module": module,
            "method": method,
            "args": call_args,
            "category": operation.category_for(call_args).value if operation else None,
            "verdict": verdict.value,
        }, indent=2))
    else:
        style = VERDICT_STYLES[verdict]
        label = f"{module}.{method}"
        console.print(f"[bold]{label}[/bold]({', '.join(call_args)}): [{style}]{verdict.value}[/{style}]")
        if operation is None:
            console.print("[dim]Not in the operation catalogue; only allowApi or mode allow can permit it.[/dim]")
        else:
            console.print(
                f"[dim]Category {operation.category_for(call_args).value}, "
                f"matched on argument {operation.subject_index}[/dim]"
            )

    raise typer.Exit(code=VERDICT_EXIT_CODES[verdict])


@app.command()
def operations(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output results in JSON format."),
    ] = False,
) -> None:
    """
    List the operation catalogue.

    Example:
        $ rasp operations
    """
    table_ops = default_operations().list_operations()

    if json_output:
        print(json.dumps([
            {
                "module": op.module,
                "method": op.method,
                "category": op.category.value,
                "subject_index": op.subject_index,
            }
            for op in table_ops
        ], indent=2))
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Module", style="cyan")
    table.add_column("Method")
    table.add_column("Category")
    table.add_column("Arg", justify="right")
    for op in table_ops:
        table.add_row(op.module, op.method, op.category.value, str(op.subject_index))
    console.print(table)


if __name__ == "__main__":
    app()
