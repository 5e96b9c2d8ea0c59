"""
CLI entry point for fetchgate.

This module provides the Typer-based command-line interface for fetchgate.

Commands:
    serve       Run the gateway HTTP server
    policies    Load a policy directory and show its policies and problems
    fetch       Run one request through the policy pipeline

Architecture Note:
    The CLI is thin. It parses arguments and delegates to the
    gateway module, so everything here is also usable programmatically.
"""

import asyncio
import json
import os
import traceback
from pathlib import Path
from typing import Annotated, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from fetchgate import __version__
from fetchgate.config import GatewaySettings
from fetchgate.errors import ConfigurationError
from fetchgate.gateway import Gateway
from fetchgate.logging_config import setup_logging
from fetchgate.policy import MANIFEST_FILENAME, PolicySet, load_policy_set
from fetchgate.schema import ExecuteHttpParams, GatewayResult

app = typer.Typer(
    name="fetchgate",
    help="Execute outbound HTTP requests under ordered URL policies.",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]fetchgate[/bold] version {__version__}")
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
    fetchgate - Policy-gated HTTP request gateway.

    Requests are denied unless a policy matches the URL and allows them.
    """
    pass


@app.command()
def serve(
    config_dir: Annotated[
        Optional[Path],
        typer.Option(
            "--config",
            "-c",
            help="Policy directory. Defaults to $FETCHGATE_CONFIG.",
            resolve_path=True,
        ),
    ] = None,
    port: Annotated[
        Optional[int],
        typer.Option("--port", "-p", help="Listening port. Defaults to $FETCHGATE_PORT or 3000."),
    ] = None,
    host: Annotated[
        Optional[str],
        typer.Option("--host", help="Bind address. Defaults to $FETCHGATE_HOST or 0.0.0.0."),
    ] = None,
) -> None:
    """
    Run the gateway server.

    Settings are read from FETCHGATE_* environment variables; options given
    here take precedence.
    """
    from fetchgate.server import serve as run_server

    env_overrides = {}
    if config_dir is not None:
        env_overrides["FETCHGATE_CONFIG"] = str(config_dir)

    try:
        settings = GatewaySettings.from_env({**os.environ, **env_overrides})
        updates = {}
        if port is not None:
            updates["port"] = port
        if host is not None:
            updates["host"] = host
        if updates:
            settings = GatewaySettings.model_validate({**settings.model_dump(), **updates})
    except ConfigurationError as e:
        console.print(f"[red]Error: {e.message}[/red]")
        if e.suggestion:
            console.print(f"[dim]{e.suggestion}[/dim]")
        raise typer.Exit(code=1)
    except ValidationError as e:
        console.print(f"[red]Invalid settings: {e}[/red]")
        raise typer.Exit(code=1)

    console.print(f"[bold]fetchgate[/bold] listening on http://{settings.host}:{settings.port}")
    console.print(f"[dim]Config directory: {settings.config_dir}[/dim]")
    run_server(settings)


@app.command()
def policies(
    config_dir: Annotated[
        Path,
        typer.Argument(help="Policy directory containing manifest.json.", resolve_path=True),
    ],
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output in JSON format."),
    ] = False,
) -> None:
    """
    Load a policy directory and show its policies in evaluation order.

    Exits with code 1 if anything in the directory had to be skipped.
    """
    setup_logging("ERROR", json_format=False)
    policy_set = load_policy_set(config_dir)

    if json_output:
        output = {
            "directory": str(config_dir),
            "policies": [s.model_dump() for s in policy_set.summaries()],
            "diagnostics": [d.to_dict() for d in policy_set.diagnostics],
        }
        print(json.dumps(output, indent=2))
    else:
        _display_policy_set(policy_set)

    raise typer.Exit(code=1 if policy_set.diagnostics else 0)


def _display_policy_set(policy_set: PolicySet) -> None:
    """Display policies and load diagnostics."""
    if policy_set:
        table = Table(title=f"Policies ({len(policy_set)})")
        table.add_column("#", justify="right", style="dim")
        table.add_column("Title", style="cyan")
        table.add_column("Pattern", style="green")
        table.add_column("Description")
        for index, policy in enumerate(policy_set, start=1):
            table.add_row(str(index), policy.title, policy.pattern, policy.description)
        console.print(table)
    else:
        console.print("[yellow]No policies loaded.[/yellow]")
        console.print(
            f"[dim]List policy files in {MANIFEST_FILENAME} under a \"middlewares\" array.[/dim]"
        )

    if policy_set.diagnostics:
        console.print()
        console.print(f"[bold red]Problems ({len(policy_set.diagnostics)})[/bold red]")
        for diagnostic in policy_set.diagnostics:
            console.print(f"  [red]\\[E{diagnostic.code}][/red] {diagnostic.message}")
            if diagnostic.suggestion:
                console.print(f"    [dim]{diagnostic.suggestion}[/dim]")


def _parse_headers(values: list[str]) -> dict[str, str]:
    """Parse repeated 'Name: value' options."""
    headers: dict[str, str] = {}
    for value in values:
        name, sep, content = value.partition(":")
        if not sep or not name.strip():
            raise typer.BadParameter(f"Header must look like 'Name: value', got {value!r}")
        headers[name.strip()] = content.strip()
    return headers


@app.command()
def fetch(
    url: Annotated[str, typer.Argument(help="The full URL to call.")],
    config_dir: Annotated[
        Path,
        typer.Option(
            "--config",
            "-c",
            help="Policy directory containing manifest.json.",
            envvar="FETCHGATE_CONFIG",
            resolve_path=True,
        ),
    ],
    method: Annotated[
        str,
        typer.Option("--method", "-X", help="HTTP method."),
    ] = "GET",
    header: Annotated[
        Optional[list[str]],
        typer.Option("--header", "-H", help="Request header as 'Name: value'. Repeatable."),
    ] = None,
    data: Annotated[
        Optional[str],
        typer.Option("--data", "-d", help="Request body, sent verbatim."),
    ] = None,
    data_json: Annotated[
        Optional[str],
        typer.Option("--data-json", help="Request body as JSON, sent JSON-encoded."),
    ] = None,
    timeout: Annotated[
        Optional[float],
        typer.Option("--timeout", help="Request timeout in seconds. 0 for no limit."),
    ] = 30.0,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output the full result in JSON format."),
    ] = False,
    debug: Annotated[
        bool,
        typer.Option("--debug", help="Enable debug mode with full error tracebacks."),
    ] = False,
) -> None:
    """
    Run one request through the policy pipeline and print the response.

    Exits with code 1 if the request is denied or fails.
    """
    setup_logging("DEBUG" if debug else "ERROR", json_format=False)

    try:
        body = json.loads(data_json) if data_json is not None else data
        params = ExecuteHttpParams(
            url=url,
            method=method.upper(),
            headers=_parse_headers(header or []),
            body=body,
        )
    except (ValueError, ValidationError) as e:
        console.print(f"[red]Invalid request: {e}[/red]")
        raise typer.Exit(code=1)

    try:
        gateway = Gateway.from_directory(config_dir, timeout=timeout or None)
        result = asyncio.run(gateway.execute_http(params))
    except Exception as e:
        console.print(f"[red]Execution error: {e}[/red]")
        if debug:
            console.print(f"[dim]{traceback.format_exc()}[/dim]")
        raise typer.Exit(code=1)

    if json_output:
        print(json.dumps(result.to_wire(), indent=2))
    else:
        _display_gateway_result(result)

    raise typer.Exit(code=0 if result.succeeded else 1)


def _display_gateway_result(result: GatewayResult) -> None:
    """Display a gateway result in human-readable form."""
    if result.matched_policy:
        console.print(f"[dim]Policy: {result.matched_policy.title}[/dim]")

    if not result.allowed:
        console.print(f"[bold red]DENIED[/bold red] {result.error}")
        return

    if result.response is None:
        console.print(f"[bold yellow]FAILED[/bold yellow] {result.error}")
        return

    response = result.response
    style = "green" if response.status < 400 else "red"
    console.print(f"[bold {style}]{response.status} {response.status_text}[/bold {style}]")
    if isinstance(response.body, str):
        console.print(response.body, markup=False, highlight=False)
    else:
        console.print_json(json.dumps(response.body))


if __name__ == "__main__":
    app()
