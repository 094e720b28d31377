"""CLI interface for the arbitrator.

Settings come from ./.arbitrator.yaml, ~/.arbitrator/config.yaml or
ARBITRATOR_* environment variables, so most runs need no flags.

Quick start:
    arbitrator providers                          # Which local backends answer
    arbitrator route code generation -l python    # Which backend would be used
    arbitrator context src/app.ts                 # Related, test and doc files
    arbitrator enhance "parse a CSV" -l python    # Generate code
    arbitrator verify solution.py -l python       # Review code
    arbitrator optimize "write a sorter"          # Rewrite a prompt
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Coroutine, TypeVar

import typer
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from arbitrator import __version__
from arbitrator.config import Settings, load_settings
from arbitrator.context_engine import ContextDiscoverer
from arbitrator.errors import ArbitratorError
from arbitrator.providers import ProviderFactory
from arbitrator.routing import CapabilityRouter, TaskRequirement
from arbitrator.service import ArbitratorService, ToolName

T = TypeVar("T")

app = typer.Typer(
    name="arbitrator",
    help="Route coding tasks across locally hosted model backends",
    no_args_is_help=True,
)

console = Console()
err_console = Console(stderr=True)


class State:
    config_path: Path | None = None
    settings: Settings | None = None


state = State()


def setup_logging(settings: Settings, verbose: bool = False) -> None:
    """Send logs to stderr through Rich, and to debug.log_file if set."""
    level = logging.DEBUG if verbose or settings.debug.verbose else \
        getattr(logging, settings.server.log_level.upper())
    handlers: list[logging.Handler] = [
        RichHandler(console=err_console, show_path=False, rich_tracebacks=True),
    ]
    if settings.debug.log_file:
        file_handler = logging.FileHandler(settings.debug.log_file)
        file_handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s: %(message)s"))
        handlers.append(file_handler)
    logging.basicConfig(level=level, format="%(message)s",
                        handlers=handlers, force=True)


def _settings() -> Settings:
    """Settings for this invocation, loaded once."""
    if state.settings is None:
        try:
            state.settings = load_settings(state.config_path)
        except ArbitratorError as e:
            console.print(f"[red]Config error: {escape(str(e))}[/red]")
            raise typer.Exit(1)
    return state.settings


def _run(coro: Coroutine[Any, Any, T]) -> T:
    """Run a coroutine, turning arbitrator errors into exit code 1."""
    try:
        return asyncio.run(coro)
    except FileNotFoundError as e:
        console.print(f"[red]File not found: {escape(str(e.filename or e))}[/red]")
        raise typer.Exit(1)
    except ArbitratorError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)


async def _call_tool(settings: Settings, tool: ToolName, arguments: dict[str, Any]) -> str:
    service = ArbitratorService(settings)
    try:
        return await service.handle(tool, arguments)
    finally:
        await service.aclose()


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"arbitrator version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    config: Path = typer.Option(
        None, "--config", "-c", help="Config file (default: search standard locations)"),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Debug logging"),
    version: bool = typer.Option(
        None, "--version", callback=_version_callback, is_eager=True,
        help="Show version and exit"),
) -> None:
    """Route coding tasks across locally hosted model backends."""
    state.config_path = config
    state.settings = None
    setup_logging(_settings(), verbose)


@app.command()
def context(
    file_path: Path = typer.Argument(..., help="Source file to find context for"),
    max_files: int = typer.Option(
        None, "--max-files", "-n", min=0, help="Cap on related files"),
    no_tests: bool = typer.Option(False, "--no-tests", help="Skip test discovery"),
    no_docs: bool = typer.Option(False, "--no-docs", help="Skip documentation discovery"),
    json_output: bool = typer.Option(False, "--json", help="Print JSON"),
) -> None:
    """Show related, test and documentation files for a source file."""
    settings = _settings()
    discoverer = ContextDiscoverer(settings.scan_config(max_files))
    result = _run(discoverer.discover_all(
        str(file_path), include_tests=not no_tests, include_docs=not no_docs))

    if json_output:
        print(json.dumps(result.to_dict(), indent=2))
        return

    table = Table(title=f"Context for {file_path}")
    table.add_column("Kind", style="bold")
    table.add_column("File")
    for kind, files in (("related", result.related), ("test", result.tests),
                        ("docs", result.docs)):
        for path in files:
            table.add_row(kind, path)
    if table.row_count:
        console.print(table)
    else:
        console.print("[dim]No context files found.[/dim]")


@app.command()
def route(
    domain: str = typer.Argument(..., help="Task domain, e.g. code or reasoning"),
    task: str = typer.Argument(..., help="Task type, e.g. generation or verification"),
    language: str = typer.Option(None, "--language", "-l", help="Programming language"),
) -> None:
    """Show how each reachable backend scores for a task."""
    settings = _settings()
    try:
        requirement = TaskRequirement(domain, task, language)
    except ValueError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(1)

    async def _rank():
        factory = ProviderFactory(settings)
        router = CapabilityRouter()
        try:
            backends = factory.configured_providers()
            return (await router.rank(requirement, backends),
                    await router.select_backend(requirement, backends))
        finally:
            await factory.aclose()

    candidates, chosen = _run(_rank())

    table = Table(title=f"Routing {domain}/{task}" + (f" ({language})" if language else ""))
    table.add_column("Backend", style="cyan")
    table.add_column("Profile")
    table.add_column("Score", justify="right")
    table.add_column("Breakdown", style="dim")
    for c in candidates:
        table.add_row(c.backend.name, c.profile.domain,
                      f"{c.score.total:g}", c.score.explanation)
    console.print(table)

    if chosen is None:
        console.print("[yellow]No capable backend for this task.[/yellow]")
        raise typer.Exit(1)
    console.print(f"[green]Selected: {chosen.name}[/green]")


@app.command()
def providers() -> None:
    """Probe the configured backends."""
    settings = _settings()

    async def _probe():
        factory = ProviderFactory(settings)
        rows = []
        try:
            for provider in factory.configured_providers():
                reachable = await provider.is_reachable(refresh=True)
                models = await provider.get_available_models() if reachable else []
                rows.append((provider, reachable, models))
        finally:
            await factory.aclose()
        return rows

    table = Table(title="Backends")
    table.add_column("Name", style="cyan")
    table.add_column("Endpoint")
    table.add_column("Status")
    table.add_column("Default model")
    table.add_column("Models", justify="right")
    for provider, reachable, models in _run(_probe()):
        status = "[green]reachable[/green]" if reachable else "[red]unreachable[/red]"
        table.add_row(provider.name, provider.endpoint, status,
                      provider.default_model or "-", str(len(models)))
    console.print(table)


@app.command()
def enhance(
    task_description: str = typer.Argument(..., help="What the code should do"),
    language: str = typer.Option("", "--language", "-l", help="Programming language"),
    domain: str = typer.Option("", "--domain", "-d", help="quantum, functional, ..."),
    project_context: str = typer.Option("", "--context", help="Project background"),
    files: list[Path] = typer.Option(None, "--file", "-f", help="File to attach (repeatable)"),
    model: str = typer.Option("", "--model", "-m", help="Override model"),
) -> None:
    """Generate code for a task with the best-suited backend."""
    settings = _settings()
    text = _run(_call_tool(settings, ToolName.ENHANCE_CODE_GENERATION, {
        "taskDescription": task_description,
        "projectContext": project_context,
        "language": language,
        "domain": domain,
        "files": [str(f) for f in files or []],
        "model": model,
    }))
    console.print(Markdown(text))


@app.command()
def verify(
    file_path: Path = typer.Argument(..., help="File with the code to review"),
    language: str = typer.Option(..., "--language", "-l", help="Programming language"),
    task_description: str = typer.Option("", "--task", "-t", help="What the code should do"),
    files: list[Path] = typer.Option(None, "--file", "-f", help="File to attach (repeatable)"),
    model: str = typer.Option("", "--model", "-m", help="Override model"),
) -> None:
    """Review a code solution with the best-suited backend."""
    settings = _settings()
    try:
        code = file_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        console.print(f"[red]Cannot read {file_path}: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    text = _run(_call_tool(settings, ToolName.VERIFY_SOLUTION, {
        "code": code,
        "language": language,
        "taskDescription": task_description,
        "files": [str(f) for f in files or []],
        "model": model,
    }))
    console.print(Markdown(text))


@app.command()
def optimize(
    prompt: str = typer.Argument(..., help="Prompt to optimize"),
    domain: str = typer.Option("", "--domain", "-d", help="quantum, functional, ..."),
    files: list[Path] = typer.Option(None, "--file", "-f", help="File to attach (repeatable)"),
    model: str = typer.Option("", "--model", "-m", help="Override model"),
) -> None:
    """Rewrite a prompt with the best-suited backend."""
    settings = _settings()
    text = _run(_call_tool(settings, ToolName.OPTIMIZE_PROMPT, {
        "originalPrompt": prompt,
        "domain": domain,
        "files": [str(f) for f in files or []],
        "model": model,
    }))
    console.print(Markdown(text))


@app.command("config")
def show_config() -> None:
    """Show the effective settings."""
    settings = _settings()
    source = settings.source_path or "defaults + environment"
    body = yaml.dump(settings.model_dump(exclude={"source_path"}),
                     default_flow_style=False, sort_keys=False)
    console.print(Panel(Text(body.rstrip()), title=f"Settings ({source})"))


if __name__ == "__main__":
    app()
