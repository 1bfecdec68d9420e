"""CLI for chatrelay."""

import json
import sys
from typing import Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from chatrelay.browser import PageSurface, launch_persistent, shutdown
from chatrelay.config import Config
from chatrelay.constants import DEFAULT_MODE, MODES
from chatrelay.errors import LoginTimeout, RelayError, StateFileError
from chatrelay.graph import RelayGraph, forget_thread, reset_script
from chatrelay.models import Request
from chatrelay.report import format_report, to_dict
from chatrelay.store import StateStore
from chatrelay.utils.logging import SessionLogger

app = typer.Typer(help="chatrelay - relay a message to a chat web UI and return the answer")
console = Console()


def _load_config(headless: Optional[bool] = None) -> Config:
    try:
        config = Config.load()
    except Exception as e:
        console.print(f"[red]Error loading configuration: {e}[/red]")
        sys.exit(1)

    if headless is not None:
        config.headless = headless

    errors = config.validate()
    if errors:
        console.print("[red]Configuration errors:[/red]")
        for error in errors:
            console.print(f"  - {error}")
        sys.exit(1)

    return config


class BrowserSession:
    """Owns the Playwright browser for one command."""

    def __init__(self, config: Config):
        self.config = config
        self.playwright = None
        self.context = None

    def __enter__(self) -> PageSurface:
        self.playwright, self.context, page = launch_persistent(
            self.config.profile_dir, headless=self.config.headless
        )
        return PageSurface(page, self.config.nav_timeout_ms, self.config.action_timeout_ms)

    def __exit__(self, *args) -> None:
        shutdown(self.playwright, self.context)


@app.command()
def ask(
    message: str = typer.Argument(..., help="Message to send (sent verbatim)"),
    mode: str = typer.Option(
        DEFAULT_MODE, "--mode", "-m", help=f"One of: {', '.join(MODES)}"
    ),
    thread: Optional[str] = typer.Option(
        None, "--thread", "-t", help="Thread name to continue (or to register)"
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
    raw: bool = typer.Option(False, "--raw", help="Print only the response text"),
    headless: Optional[bool] = typer.Option(
        None, "--headless/--headful", help="Override CHATRELAY_HEADLESS"
    ),
) -> None:
    """Send MESSAGE and print the complete answer."""
    try:
        request = Request(mode=mode, message=message, thread=thread)
    except ValidationError as e:
        console.print(f"[red]Invalid request: {escape(e.errors()[0]['msg'])}[/red]")
        sys.exit(2)

    config = _load_config(headless)
    logger = SessionLogger(config.home)
    store = StateStore(config.state_path)

    try:
        with BrowserSession(config) as surface:
            graph = RelayGraph(
                surface,
                config,
                store=store,
                llm=RelayGraph.llm_from_config(config),
                logger=logger,
            )
            outcome = graph.handle_ask(request)
    except StateFileError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        sys.exit(1)
    except Exception as e:
        console.print(f"[red]Fatal error: {escape(str(e))}[/red]")
        console.print(f"[dim]Session logs: {logger.get_log_path()}[/dim]")
        import traceback
        traceback.print_exc()
        sys.exit(1)

    if as_json:
        print(json.dumps(to_dict(outcome), indent=2, ensure_ascii=False))
    elif raw and outcome.success:
        print(outcome.result.response_text)
    else:
        # Response text is printed as-is: no markup, no highlighting
        console.print(format_report(outcome), markup=False, highlight=False)

    if not outcome.success:
        console.print(f"[dim]Session logs: {logger.get_log_path()}[/dim]")
        sys.exit(1)


@app.command()
def threads() -> None:
    """List known conversation threads."""
    config = _load_config()
    try:
        session = StateStore(config.state_path).load()
    except StateFileError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        sys.exit(1)

    if not session.threads:
        console.print("[dim]No threads yet.[/dim]")
        return

    table = Table(title="Threads")
    table.add_column("Name", style="cyan")
    table.add_column("Remote handle")
    table.add_column("Last used", style="dim")
    for name, entry in sorted(session.threads.items()):
        last_used = entry.last_used.strftime("%Y-%m-%d %H:%M") if entry.last_used else "-"
        table.add_row(name, entry.remote_handle, last_used)
    console.print(table)


@app.command()
def forget(name: str = typer.Argument(..., help="Thread name to remove")) -> None:
    """Remove a thread from the state file."""
    config = _load_config()
    try:
        removed = forget_thread(StateStore(config.state_path), name)
    except StateFileError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        sys.exit(1)

    if removed:
        console.print(f"[green]✓ Forgot thread {name}[/green]")
    else:
        console.print(f"[yellow]No thread named {name}[/yellow]")


@app.command()
def script(
    reset: bool = typer.Option(False, "--reset", help="Drop the stored script and use the built-in one"),
) -> None:
    """Show the interaction script in use (or reset it)."""
    config = _load_config()
    store = StateStore(config.state_path)
    try:
        if reset:
            previous = reset_script(store)
            if previous is None:
                console.print("[dim]No stored script; already using the built-in one.[/dim]")
            else:
                console.print(f"[green]✓ Dropped stored script version {previous.version}[/green]")
            return
        session = store.load()
    except StateFileError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        sys.exit(1)

    current = session.effective_script()
    console.print(Panel(
        escape(json.dumps(current.model_dump(mode="json"), indent=2)),
        title=f"Script v{current.version} ({current.source})",
        border_style="blue",
    ))


@app.command()
def login() -> None:
    """Open the browser and wait until the service is logged in."""
    config = _load_config(headless=False)
    logger = SessionLogger(config.home)

    try:
        with BrowserSession(config) as surface:
            graph = RelayGraph(surface, config, logger=logger)
            already = graph.handle_login()
    except LoginTimeout as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        sys.exit(1)
    except (RelayError, StateFileError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        sys.exit(1)

    if already:
        console.print("[green]✓ Already logged in[/green]")
    else:
        console.print("[green]✓ Logged in; the browser profile will be reused[/green]")


@app.command()
def config() -> None:
    """Show current configuration."""
    current = _load_config()
    console.print(Panel(
        escape("\n".join(f"{k}: {v}" for k, v in current.to_dict().items())),
        title="Configuration",
        border_style="blue",
    ))


if __name__ == "__main__":
    app()
