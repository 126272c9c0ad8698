"""
CLI interface for AI Credit Watch.

Provides command-line access to the account balance and the manage page.
"""

import asyncio
import os
import sys
from typing import List, Optional

import typer
import yaml
from rich.console import Console

from ai_credit_watch.config.loader import (
    WatchConfig,
    load_watch_config,
    resolve_credentials,
    transform_base_url,
)
from ai_credit_watch.core.controller import BalanceController, BalanceView, FetchState
from ai_credit_watch.core.display import balance_summary, describe_view, manage_url
from ai_credit_watch.core.feature_flags import (
    DefaultModelResolver,
    StaticFlagProvider,
    get_flag_payload_json,
)
from ai_credit_watch.core.log_sink import configure_logging
from ai_credit_watch.sdk.balance_client import BalanceClient
from ai_credit_watch.storage.models import CredentialKey

app = typer.Typer()
console = Console()

EXIT_CODE_OK = 0
EXIT_CODE_FAIL = 1

DEFAULT_CONFIG_PATH = ".ai-credit-watch.yaml"


def _load_config(config_path: Optional[str]) -> WatchConfig:
    """Load the config file; a missing default file means empty config."""
    if config_path:
        return load_watch_config(config_path)
    if os.path.exists(DEFAULT_CONFIG_PATH):
        return load_watch_config(DEFAULT_CONFIG_PATH)
    return WatchConfig()


def _resolve(config: WatchConfig, endpoint: Optional[str], api_key: Optional[str]) -> CredentialKey:
    """Command-line options win over environment and file values."""
    credentials = resolve_credentials(config)
    return CredentialKey(
        endpoint=transform_base_url(endpoint) if endpoint else credentials.endpoint,
        secret=api_key or credentials.secret
    )


def _build_controller(config: WatchConfig) -> BalanceController:
    client = BalanceClient(timeout=config.request.timeout_seconds)
    return BalanceController.from_config(config, fetcher=client)


def _print_view(view: BalanceView) -> None:
    text = describe_view(view)
    if text:
        style = "dim" if view.state in (FetchState.LOADING, FetchState.REVALIDATING) else "bold"
        console.print(f"[{style}]{text}[/]")
        if view.record is not None:
            console.print(f"Keys status: {view.record.keys_status}")
    if view.error is not None:
        console.print(f"[red]Error:[/] {view.error}")


async def _read_once(controller: BalanceController, credentials: CredentialKey) -> BalanceView:
    async with controller:
        controller.read(credentials)
        return await controller.wait_for_fetch()


async def _watch(
    controller: BalanceController,
    credentials: CredentialKey,
    interval: float,
    count: int
) -> List[BalanceView]:
    published: List[BalanceView] = []

    def on_view(view: BalanceView) -> None:
        published.append(view)
        _print_view(view)

    async with controller:
        controller.subscribe(on_view)
        for i in range(count):
            if i:
                await asyncio.sleep(interval)
            controller.read(credentials)
            await controller.wait_for_fetch()
    return published


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context):
    """AI Credit Watch CLI."""
    if ctx.invoked_subcommand is None:
        console.print("AI Credit Watch - Use --help to see available commands")


@app.command()
def balance(
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to YAML config file"
    ),
    endpoint: Optional[str] = typer.Option(
        None,
        "--endpoint",
        "-e",
        help="API base URL (overrides config and environment)"
    ),
    api_key: Optional[str] = typer.Option(
        None,
        "--api-key",
        "-k",
        help="API key (overrides config and environment)"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable debug logging"
    )
):
    """Fetch and show the current account balance."""
    configure_logging(verbose)
    try:
        config = _load_config(config_path)
        credentials = _resolve(config, endpoint, api_key)
        if not credentials.is_complete:
            console.print("[yellow]API base URL and API key are required[/]")
            sys.exit(EXIT_CODE_FAIL)

        view = asyncio.run(_read_once(_build_controller(config), credentials))
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    if view.error is not None or view.record is None:
        console.print(f"[red]Error fetching balance:[/] {view.error}")
        sys.exit(EXIT_CODE_FAIL)

    console.print(f"[bold]{balance_summary(view.record)}[/bold]")
    console.print(f"Keys status: {view.record.keys_status}")
    sys.exit(EXIT_CODE_OK)


@app.command()
def watch(
    config_path: Optional[str] = typer.Option(None, "--config", "-c", help="Path to YAML config file"),
    endpoint: Optional[str] = typer.Option(None, "--endpoint", "-e", help="API base URL"),
    api_key: Optional[str] = typer.Option(None, "--api-key", "-k", help="API key"),
    interval: float = typer.Option(10.0, "--interval", "-i", help="Seconds between reads"),
    count: int = typer.Option(3, "--count", "-n", help="Number of reads"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging")
):
    """
    Read the balance repeatedly through one cache.

    Reads inside the freshness window are served from memory; later reads
    show the cached value while it is refreshed in the background.
    """
    configure_logging(verbose)
    if count < 1 or interval < 0:
        console.print("[red]Error:[/] count must be >= 1 and interval >= 0")
        sys.exit(EXIT_CODE_FAIL)

    try:
        config = _load_config(config_path)
        credentials = _resolve(config, endpoint, api_key)
        if not credentials.is_complete:
            console.print("[yellow]API base URL and API key are required[/]")
            sys.exit(EXIT_CODE_FAIL)

        published = asyncio.run(_watch(_build_controller(config), credentials, interval, count))
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    last = published[-1] if published else None
    if last is None or last.record is None:
        sys.exit(EXIT_CODE_FAIL)
    sys.exit(EXIT_CODE_OK)


@app.command()
def manage(
    config_path: Optional[str] = typer.Option(None, "--config", "-c", help="Path to YAML config file"),
    endpoint: Optional[str] = typer.Option(None, "--endpoint", "-e", help="API base URL")
):
    """Open the manage-credits page for the configured endpoint."""
    try:
        config = _load_config(config_path)
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    url = manage_url(_resolve(config, endpoint, None).endpoint)
    if url is None:
        console.print("[yellow]API base URL is required[/]")
        sys.exit(EXIT_CODE_FAIL)

    console.print(f"Opening {url}")
    typer.launch(url)
    sys.exit(EXIT_CODE_OK)


@app.command("default-model")
def default_model(
    config_path: Optional[str] = typer.Option(None, "--config", "-c", help="Path to YAML config file")
):
    """Show the default model from the model-settings feature flag."""
    try:
        config = _load_config(config_path)
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    resolver = DefaultModelResolver(StaticFlagProvider(config.feature_flags))
    console.print(asyncio.run(resolver.resolve()))
    sys.exit(EXIT_CODE_OK)


@app.command()
def flag(
    name: str = typer.Argument(..., help="Feature flag name"),
    config_path: Optional[str] = typer.Option(None, "--config", "-c", help="Path to YAML config file")
):
    """Print a feature flag payload as JSON."""
    try:
        config = _load_config(config_path)
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    payload = asyncio.run(get_flag_payload_json(StaticFlagProvider(config.feature_flags), name))
    if payload is None:
        console.print(f"[yellow]No payload for flag {name}[/]")
        sys.exit(EXIT_CODE_FAIL)

    console.print_json(payload)
    sys.exit(EXIT_CODE_OK)


if __name__ == "__main__":
    app()
