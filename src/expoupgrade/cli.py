"""CLI entrypoint for expo-upgrade.

Exit codes:
    0  expo-doctor passed
    1  invalid input, or a fatal step (staging, install, diagnostics launch) failed
    2  expo-doctor still failing after the maximum number of attempts
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from . import __version__
from .config import UpgradeConfig
from .errors import ExpoUpgradeError, InvalidInputError
from .ollama_client import OllamaClient
from .upgrade import GeminiCredentials, UpgradeResult, build_client, run_upgrade, validate_request

EXIT_FAILED = 1
EXIT_REPAIR_EXHAUSTED = 2

# Initialize Typer app
app = typer.Typer(
    name="expo-upgrade",
    help="Upgrade the Expo SDK of a React Native project and repair expo-doctor failures with AI.",
    add_completion=False,
)

console = Console()


def setup_logging(verbose: bool = False, level: str = "INFO") -> None:
    """Configure logging with Rich handler.

    Args:
        verbose: If True, set DEBUG level; otherwise use ``level``.
        level: Level name used when not verbose.
    """
    log_level = logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"expo-upgrade version {__version__}")
        raise typer.Exit()


def print_validation_errors(errors: list[str]) -> None:
    console.print("[bold red]Validation Errors:[/bold red]")
    for index, error in enumerate(errors, 1):
        console.print(f"[red]  {index}. {escape(error)}[/red]")
    console.print(
        "\n[yellow]Usage: expo-upgrade upgrade <src> <expo-version> "
        "--gemini-key=<key> OR --ollama-model=<model>[/yellow]"
    )


def print_summary(result: UpgradeResult) -> None:
    """Print the final state of the repair loop."""
    loop = result.loop
    table = Table(title="Expo Upgrade Summary", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Project", str(result.project_dir))
    table.add_row("Result", "[green]passed[/green]" if loop.passed else f"[red]{loop.status}[/red]")
    table.add_row("Attempts", f"{loop.attempts}/{loop.max_attempts}")
    table.add_row("LLM calls", str(loop.llm_calls))
    table.add_row("Repairs applied", str(loop.repairs_applied))
    table.add_row("Reinstalls", str(loop.reinstalls))
    if result.log_file:
        table.add_row("Log file", str(result.log_file))
    console.print(table)


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """Expo SDK upgrade automation."""
    pass


@app.command()
def upgrade(
    src: Optional[str] = typer.Argument(
        None,
        help="Path to the React Native project directory or a .zip archive of it.",
    ),
    expo_version: Optional[str] = typer.Argument(
        None,
        help="Target Expo SDK version (X.Y.Z, e.g. 53.0.0).",
    ),
    gemini_key: Optional[str] = typer.Option(
        None,
        "--gemini-key",
        help="Gemini API key. Falls back to GEMINI_API_KEY when no backend is given.",
    ),
    gemini_model: Optional[str] = typer.Option(
        None,
        "--gemini-model",
        help="Gemini model id (default from config: gemini-2.0-flash-lite).",
    ),
    ollama_model: Optional[str] = typer.Option(
        None,
        "--ollama-model",
        help="Ollama model to use instead of Gemini (e.g. llama3.2). Falls back to EXPO_UPGRADE_OLLAMA_MODEL.",
    ),
    ollama_url: Optional[str] = typer.Option(
        None,
        "--ollama-url",
        help="Ollama base URL (default: http://localhost:11434).",
    ),
    max_attempts: Optional[int] = typer.Option(
        None,
        "--max-attempts",
        "-n",
        min=1,
        help="Maximum expo-doctor attempts (default: 5).",
    ),
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to an expo_upgrade.yaml config file.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        help="Enable verbose output.",
    ),
) -> None:
    """Upgrade a project to a new Expo SDK and fix expo-doctor issues.

    Examples:
        expo-upgrade upgrade ./MyApp.zip 53.0.0 --gemini-key=AIza...
        expo-upgrade upgrade ./MyApp 53.0.0 --ollama-model llama3.2
    """
    try:
        config = UpgradeConfig.from_env(config_file)
    except InvalidInputError as e:
        print_validation_errors(e.errors)
        raise typer.Exit(EXIT_FAILED)

    setup_logging(verbose, config.log_level)
    logger = logging.getLogger(__name__)

    # Explicit options first, then the configured Gemini key, then the configured Ollama model
    if gemini_key is None and ollama_model is None:
        if config.gemini_api_key:
            gemini_key = config.gemini_api_key
        elif config.ollama.model:
            ollama_model = config.ollama.model

    try:
        request = validate_request(src, expo_version, gemini_key, ollama_model, ollama_url or config.ollama.base_url)
    except InvalidInputError as e:
        print_validation_errors(e.errors)
        raise typer.Exit(EXIT_FAILED)

    if max_attempts is not None:
        config.max_attempts = max_attempts
    if gemini_model:
        config.gemini.model = gemini_model

    console.print("[bold green]Validation passed! Starting Expo upgrade...[/bold green]")
    console.print("[blue]Parameters:[/blue]")
    console.print(f"[cyan]  - Source path: {request.source_path}[/cyan]")
    console.print(f"[cyan]  - Target Expo version: {request.target_version}[/cyan]")
    if isinstance(request.credentials, GeminiCredentials):
        console.print(f"[cyan]  - Gemini key: {request.credentials.api_key[:8]}...[/cyan]")
        console.print(f"[cyan]  - Gemini model: {config.gemini.model}[/cyan]")
    else:
        console.print(f"[cyan]  - Ollama URL: {request.credentials.base_url}[/cyan]")
        console.print(f"[cyan]  - Ollama model: {request.credentials.model}[/cyan]")

    client = build_client(request, config)
    if isinstance(client, OllamaClient) and not client.is_available():
        console.print(
            f"[yellow]Warning: Ollama at {client.base_url} is not reachable or "
            f"model '{client.model}' is not pulled. Repairs will fail.[/yellow]"
        )

    try:
        result = run_upgrade(request, config, client=client)
    except InvalidInputError as e:
        print_validation_errors(e.errors)
        raise typer.Exit(EXIT_FAILED)
    except ExpoUpgradeError as e:
        logger.debug("Upgrade aborted", exc_info=True)
        console.print("[bold red]Expo upgrade failed:[/bold red]")
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(EXIT_FAILED)

    print_summary(result)

    if not result.passed:
        console.print(
            "\n[bold red]Expo doctor failed after maximum attempts. "
            "Please check the issues manually.[/bold red]"
        )
        if result.loop.final_diagnostic:
            console.print(result.loop.final_diagnostic.output, markup=False, highlight=False)
        raise typer.Exit(EXIT_REPAIR_EXHAUSTED)

    console.print("\n[bold green]Expo doctor check passed successfully![/bold green]")
