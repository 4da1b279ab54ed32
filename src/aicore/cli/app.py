"""Main CLI application using Typer."""
import asyncio
from datetime import datetime

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..config import DEFAULT_MODEL, get_admin_token, save_settings
from ..dispatcher import Dispatcher
from ..errors import AICoreError
from ..llm import PROVIDERS
from ..storage import LogFilters
from .providers import configure_logging, get_settings, get_storage

# Load environment variables
load_dotenv()

# Create Typer app
app = typer.Typer(
    name="aicore",
    help="Chat with OpenAI and Anthropic models, with persisted threads and usage logs",
    no_args_is_help=True,
    add_completion=True,
)

# Console for rich output
console = Console()


@app.callback()
def main_callback():
    configure_logging(console)


def _mask(key: str) -> str:
    if not key:
        return "[dim]not set[/dim]"
    if len(key) <= 8:
        return "*" * len(key)
    return f"{key[:4]}...{key[-4:]}"


@app.command()
def init():
    """Create the database schema and migrate older log tables."""
    async def _init():
        storage = get_storage()
        try:
            console.print("[dim]Initializing database...[/dim]")
            await storage.connect()
            console.print("[green]Database initialized successfully![/green]")
            console.print("[dim]Configure keys with: aicore settings --openai-key ...[/dim]")
        except Exception as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(code=1)
        finally:
            await storage.disconnect()

    asyncio.run(_init())


@app.command()
def send(
    message: str = typer.Argument(..., help="Message to send"),
    thread: int | None = typer.Option(
        None,
        "--thread",
        "-t",
        help="Continue an existing thread"
    ),
    title: str | None = typer.Option(
        None,
        "--new-thread",
        "-n",
        help="Start a new thread with this title"
    ),
    model: str | None = typer.Option(
        None,
        "--model",
        "-m",
        help="Model name (default: configured default model)"
    ),
    system: str = typer.Option(
        "",
        "--system",
        "-s",
        help="System message"
    )
):
    """Send a message and print the reply."""
    async def _send():
        storage = get_storage()
        try:
            await storage.connect()
            settings = await get_settings(storage)

            async with Dispatcher(
                storage,
                model=model,
                settings=settings,
                system_message=system
            ) as ai:
                if thread is not None:
                    await ai.load_thread(thread)
                elif title is not None:
                    await ai.new_thread(title)

                with console.status(f"[dim]Waiting for {ai.model}...[/dim]"):
                    reply = await ai.send(message)

                console.print(Panel(reply, title=f"[bold]{ai.model}[/bold]", border_style="cyan"))
                if ai.thread_id is not None:
                    console.print(f"[dim]Thread #{ai.thread_id}[/dim]")

        except AICoreError as e:
            console.print(f"[red]Error ({e.code}): {e.message}[/red]")
            raise typer.Exit(code=1)
        finally:
            await storage.disconnect()

    asyncio.run(_send())


@app.command()
def threads(
    limit: int = typer.Option(50, "--limit", "-l", help="Number of threads to show"),
    offset: int = typer.Option(0, "--offset", help="Threads to skip")
):
    """List conversation threads, most recently updated first."""
    async def _threads():
        storage = get_storage()
        try:
            await storage.connect()
            summaries = await storage.list_threads(limit, offset)

            if not summaries:
                console.print("[yellow]No threads yet.[/yellow]")
                return

            table = Table(title="Threads")
            table.add_column("ID", justify="right", style="cyan")
            table.add_column("Title")
            table.add_column("Model", style="magenta")
            table.add_column("Updated", style="dim")
            for summary in summaries:
                table.add_row(
                    str(summary.id),
                    summary.title or "[dim]untitled[/dim]",
                    summary.model,
                    summary.updated_at.strftime("%Y-%m-%d %H:%M")
                )
            console.print(table)

        except Exception as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(code=1)
        finally:
            await storage.disconnect()

    asyncio.run(_threads())


@app.command(name="thread")
def show_thread(thread_id: int = typer.Argument(..., help="Thread ID")):
    """Show a thread with its messages."""
    async def _thread():
        storage = get_storage()
        try:
            await storage.connect()
            return await storage.get_thread(thread_id)
        finally:
            await storage.disconnect()

    found = asyncio.run(_thread())
    if found is None:
        console.print(f"[red]Thread {thread_id} not found[/red]")
        raise typer.Exit(code=1)

    console.print(f"[bold]#{found.id} {found.title or 'untitled'}[/bold] [dim]({found.model})[/dim]")
    if found.system_message:
        console.print(Panel(found.system_message, title="system", border_style="dim"))
    for msg in found.messages:
        style = "cyan" if msg.role == "assistant" else "green"
        console.print(Panel(msg.content, title=msg.role, border_style=style))


@app.command(name="delete-thread")
def delete_thread(
    thread_id: int = typer.Argument(..., help="Thread ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation")
):
    """Delete a thread. Its log entries are kept."""
    if not yes and not typer.confirm(f"Delete thread {thread_id}?"):
        console.print("[dim]Aborted.[/dim]")
        return

    async def _delete() -> bool:
        storage = get_storage()
        try:
            await storage.connect()
            return await storage.delete_thread(thread_id)
        finally:
            await storage.disconnect()

    if asyncio.run(_delete()):
        console.print(f"[green]Deleted thread {thread_id}[/green]")
    else:
        console.print(f"[red]Thread {thread_id} not found[/red]")
        raise typer.Exit(code=1)


@app.command()
def logs(
    page: int = typer.Option(1, "--page", "-p", min=1, help="Page number"),
    per_page: int = typer.Option(20, "--per-page", min=1, help="Entries per page"),
    model: str | None = typer.Option(None, "--model", "-m", help="Filter by model"),
    engine: str | None = typer.Option(None, "--engine", "-e", help="Filter by engine"),
    status: str | None = typer.Option(None, "--status", help="Filter by status (success/error)"),
    date_from: datetime | None = typer.Option(
        None, "--from", formats=["%Y-%m-%d"], help="First day (inclusive)"
    ),
    date_to: datetime | None = typer.Option(
        None, "--to", formats=["%Y-%m-%d"], help="Last day (inclusive)"
    )
):
    """Show call logs, newest first."""
    async def _logs():
        storage = get_storage()
        try:
            await storage.connect()
            filters = LogFilters(
                model=model,
                engine=engine,
                status=status,
                date_from=date_from.date() if date_from else None,
                date_to=date_to.date() if date_to else None
            )
            result = await storage.list_logs(filters, limit=per_page, offset=(page - 1) * per_page)

            table = Table(title=f"Logs (page {page}, {result.total} total)")
            table.add_column("ID", justify="right", style="cyan")
            table.add_column("When", style="dim")
            table.add_column("Model", style="magenta")
            table.add_column("Engine")
            table.add_column("Tokens", justify="right")
            table.add_column("Time", justify="right")
            table.add_column("Cost", justify="right")
            table.add_column("Status")
            for entry in result.items:
                status_text = (
                    "[green]success[/green]" if entry.status == "success"
                    else f"[red]error[/red] {entry.error_message[:40]}"
                )
                table.add_row(
                    str(entry.id),
                    entry.created_at.strftime("%Y-%m-%d %H:%M:%S"),
                    entry.model,
                    str(entry.engine),
                    f"{entry.input_tokens}/{entry.output_tokens}",
                    f"{entry.response_time:.2f}s",
                    f"${entry.cost or 0:.6f}",
                    status_text
                )
            console.print(table)

        except Exception as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(code=1)
        finally:
            await storage.disconnect()

    asyncio.run(_logs())


@app.command()
def stats():
    """Show usage statistics overall and per model."""
    async def _stats():
        storage = get_storage()

        try:
            await storage.connect()

            overview = await storage.log_stats()
            by_model = await storage.log_stats_by_model()

            table = Table(show_header=False, box=None)
            table.add_column("Metric", style="bold cyan", width=20)
            table.add_column("Value")

            table.add_row("Total Calls", str(overview.total_calls))
            table.add_row("Successful", str(overview.total_success))
            table.add_row("Errors", str(overview.total_errors))
            table.add_row("Input Tokens", str(overview.total_input_tokens))
            table.add_row("Output Tokens", str(overview.total_output_tokens))
            table.add_row("Avg Response", f"{overview.avg_response_time:.2f}s")
            table.add_row("Total Cost", f"${overview.total_cost:.4f}")
            console.print(table)

            if by_model:
                per_model = Table(title="By Model")
                per_model.add_column("Model", style="magenta")
                per_model.add_column("Engine")
                per_model.add_column("Calls", justify="right")
                per_model.add_column("Tokens", justify="right")
                per_model.add_column("Avg Time", justify="right")
                per_model.add_column("Cost", justify="right")
                for row in by_model:
                    per_model.add_row(
                        row.model,
                        row.engine,
                        str(row.calls),
                        str(row.tokens),
                        f"{row.avg_time:.2f}s",
                        f"${row.total_cost:.4f}"
                    )
                console.print(per_model)

        except Exception as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(code=1)
        finally:
            await storage.disconnect()

    asyncio.run(_stats())


@app.command()
def models(
    refresh: bool = typer.Option(False, "--refresh", "-r", help="Bypass the catalog cache")
):
    """List the models each configured vendor offers."""
    async def _models():
        storage = get_storage()
        try:
            await storage.connect()
            settings = await get_settings(storage)
        finally:
            await storage.disconnect()

        for provider_cls in PROVIDERS:
            api_key = settings.key_for(provider_cls.default_model)
            if not api_key:
                console.print(f"[yellow]{provider_cls.display_name}: API key not set[/yellow]")
                continue
            try:
                available = await provider_cls.list_models(api_key, refresh)
            except AICoreError as e:
                console.print(f"[red]{provider_cls.display_name}: {e.message}[/red]")
                continue

            table = Table(title=provider_cls.display_name)
            table.add_column("Model", style="magenta")
            table.add_column("Name")
            table.add_column("Created", style="dim")
            for info in available:
                table.add_row(info.id, info.display_name, info.created)
            console.print(table)

    asyncio.run(_models())


@app.command()
def settings(
    openai_key: str | None = typer.Option(None, "--openai-key", help="Set the OpenAI API key"),
    anthropic_key: str | None = typer.Option(None, "--anthropic-key", help="Set the Anthropic API key"),
    default_model: str | None = typer.Option(
        None, "--default-model", help=f"Set the default model (built-in: {DEFAULT_MODEL})"
    )
):
    """Show settings, or update the ones given."""
    async def _settings():
        storage = get_storage()
        try:
            await storage.connect()
            current = await save_settings(
                storage,
                openai_key=openai_key,
                anthropic_key=anthropic_key,
                default_model=default_model
            )
        finally:
            await storage.disconnect()

        if any(v is not None for v in (openai_key, anthropic_key, default_model)):
            console.print("[green]Settings saved.[/green]")

        table = Table(show_header=False, box=None)
        table.add_column("Setting", style="bold cyan", width=15)
        table.add_column("Value")
        table.add_row("OpenAI key", _mask(current.openai_key))
        table.add_row("Anthropic key", _mask(current.anthropic_key))
        table.add_row("Default model", current.default_model)
        console.print(table)

    asyncio.run(_settings())


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", "-p", help="Port")
):
    """Run the REST API server."""
    import uvicorn

    from ..api import create_app

    if get_admin_token() is None:
        console.print("[yellow]Warning: AICORE_ADMIN_TOKEN not set, every API request will be rejected[/yellow]")

    uvicorn.run(create_app(), host=host, port=port)


def main():
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
