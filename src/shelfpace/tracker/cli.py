"""Command-line interface for shelfpace.

Built with Typer for commands and Rich for output. Commands work against
the storage backend selected by the SHELFPACE_STORAGE environment variable.
"""

from datetime import date
from typing import Optional

import pydantic
import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..utils import parse_iso_date
from .config import configure_logging, get_config
from .db.schemas import Book, BookCreate, BookFormat, BookGenre, BookStatus, ReadingSession
from .db.storage import get_storage
from .exceptions import TrackerError
from .web.app import build_services, run_server
from .web.helpers import Services

# Create the main app
app = typer.Typer(
    name="shelfpace",
    help="Track reading sessions and forecast when you will finish.",
    no_args_is_help=True,
)

# Create sub-apps for command groups
book_app = typer.Typer(help="Manage the books in your library.")
app.add_typer(book_app, name="book")

session_app = typer.Typer(help="Start, pause, resume and stop reading sessions.")
app.add_typer(session_app, name="session")

stats_app = typer.Typer(help="Reading statistics.")
app.add_typer(stats_app, name="stats")

# Rich console for pretty output
console = Console()


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show log output"),
) -> None:
    """Track reading sessions and forecast when you will finish."""
    # Keep info logs out of the command output unless asked for
    config = get_config()
    configure_logging(config.environment, config.log_level if verbose else "WARNING")


# ============================================================================
# Helper Functions
# ============================================================================


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[bold red]Error:[/bold red] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[bold green]Success:[/bold green] {message}")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[dim]{message}[/dim]")


def get_services() -> Services:
    """Managers wired to the configured storage backend."""
    return build_services(get_storage())


def fail(message: str) -> None:
    """Print an error and exit with status 1."""
    print_error(message)
    raise typer.Exit(1)


def parse_date_option(value: Optional[str], name: str) -> Optional[date]:
    if value is None:
        return None
    day = parse_iso_date(value)
    if day is None:
        fail(f"Invalid {name} date: {value}. Use YYYY-MM-DD.")
    return day


def format_book_table(books: list[Book], title: str = "Books") -> Table:
    """Create a rich table for displaying books."""
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim", max_width=8)
    table.add_column("Title", style="cyan", no_wrap=False, max_width=40)
    table.add_column("Author", style="green", max_width=25)
    table.add_column("Status", style="yellow")
    table.add_column("Progress", justify="right")

    for book in books:
        if book.total_pages:
            progress = f"{book.current_page}/{book.total_pages}"
        else:
            progress = f"{book.progress:.0%}"
        table.add_row(book.id[:8], book.title, book.author, book.status.value, progress)

    return table


def format_session_table(sessions: list[ReadingSession], title: str = "Sessions") -> Table:
    """Create a rich table for displaying reading sessions."""
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim", max_width=8)
    table.add_column("Date", style="cyan")
    table.add_column("Type")
    table.add_column("State", style="yellow")
    table.add_column("Pages", justify="right")
    table.add_column("Minutes", justify="right")

    for session in sessions:
        table.add_row(
            session.id[:8],
            session.session_date.strftime("%Y-%m-%d %H:%M"),
            session.session_type.value,
            session.state.value,
            str(session.pages_read),
            str(session.duration) if session.duration is not None else "-",
        )

    return table


# ============================================================================
# Server Commands
# ============================================================================


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Interface to bind"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port to listen on"),
    debug: Optional[bool] = typer.Option(None, "--debug/--no-debug", help="Flask debug mode"),
) -> None:
    """Run the JSON API server."""
    config = get_config()
    errors = config.validate()
    if errors:
        for error in errors:
            print_error(error)
        raise typer.Exit(1)

    if host:
        config.host = host
    if port:
        config.port = port

    configure_logging(config.environment, config.log_level)
    console.print(
        f"[bold]shelfpace[/bold] serving on http://{config.host}:{config.port} "
        f"([cyan]{config.storage_backend}[/cyan] storage)"
    )
    run_server(config, debug=debug)


# ============================================================================
# Book Commands
# ============================================================================


@book_app.command("add")
def book_add(
    title: str = typer.Argument(..., help="Book title"),
    author: str = typer.Option(..., "--author", "-a", help="Author name"),
    genre: BookGenre = typer.Option(BookGenre.GENERAL_NON_FICTION, "--genre", "-g"),
    book_format: BookFormat = typer.Option(BookFormat.PAPER, "--format", "-f"),
    status: BookStatus = typer.Option(BookStatus.TO_READ, "--status", "-s"),
    pages: Optional[int] = typer.Option(None, "--pages", "-p", help="Total page count"),
    tags: Optional[str] = typer.Option(None, "--tags", "-t", help="Comma-separated tags"),
) -> None:
    """Add a book to the library."""
    try:
        data = BookCreate(
            title=title,
            author=author,
            genre=genre,
            format=book_format,
            status=status,
            total_pages=pages,
            tags=[t.strip() for t in tags.split(",") if t.strip()] if tags else [],
        )
    except pydantic.ValidationError as e:
        fail(str(e.errors()[0]["msg"]))

    book = get_services().library.create_book(data)
    print_success(f"Added '{book.title}' by {book.author}")
    print_info(f"ID: {book.id}")


@book_app.command("list")
def book_list(
    status: Optional[BookStatus] = typer.Option(None, "--status", "-s", help="Only this status"),
) -> None:
    """List books in the library."""
    library = get_services().library
    books = library.by_status(status) if status else library.list_books()

    if not books:
        print_info("No books found.")
        return

    console.print(format_book_table(books))


@book_app.command("show")
def book_show(book_id: str = typer.Argument(..., help="Book ID")) -> None:
    """Show a book with its reading state."""
    services = get_services()
    book = services.library.get_book(book_id)
    if not book:
        fail(f"Book not found: {book_id}")

    state = services.state_cache.get_or_default(book_id)
    stats = services.analytics.get_reading_stats(book_id)

    lines = [
        f"[bold]{book.title}[/bold] by {book.author}",
        f"Status: {book.status.value}  Format: {book.format.value}  Genre: {book.genre.value}",
        f"Progress: {book.progress:.0%}"
        + (f" (page {book.current_page} of {book.total_pages})" if book.total_pages else ""),
        f"Sessions: {stats.total_sessions}  Pages: {stats.total_pages}  "
        f"Minutes: {stats.total_minutes}",
    ]
    if state.active_session_id:
        lines.append(f"Active session: {state.active_session_id}")
    if state.estimated_finish_date:
        lines.append(f"Estimated finish: {state.estimated_finish_date:%Y-%m-%d}")
    if book.tags:
        lines.append(f"Tags: {', '.join(book.tags)}")

    console.print(Panel("\n".join(lines), title=book.id, expand=False))


@book_app.command("delete")
def book_delete(
    book_id: str = typer.Argument(..., help="Book ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete a book with its sessions and notes."""
    library = get_services().library
    book = library.get_book(book_id)
    if not book:
        fail(f"Book not found: {book_id}")

    if not yes and not typer.confirm(f"Delete '{book.title}' and all its sessions?"):
        raise typer.Abort()

    library.delete_book(book_id)
    print_success(f"Deleted '{book.title}'")


# ============================================================================
# Session Commands
# ============================================================================


@session_app.command("start")
def session_start(
    book_id: str = typer.Argument(..., help="Book ID"),
    page: Optional[int] = typer.Option(None, "--page", "-p", help="Page starting from"),
    pomodoro: Optional[int] = typer.Option(
        None, "--pomodoro", min=5, max=120, help="Focus timer in minutes"
    ),
) -> None:
    """Start a timed reading session."""
    try:
        session = get_services().sessions.start_session(
            book_id, start_page=page, pomodoro_minutes=pomodoro
        )
    except TrackerError as e:
        fail(e.message)

    print_success(f"Session started at page {session.start_page}")
    print_info(f"Session ID: {session.id}")


@session_app.command("pause")
def session_pause(session_id: str = typer.Argument(..., help="Session ID")) -> None:
    """Pause an active session."""
    try:
        get_services().sessions.pause_session(session_id)
    except TrackerError as e:
        fail(e.message)
    print_success("Session paused")


@session_app.command("resume")
def session_resume(session_id: str = typer.Argument(..., help="Session ID")) -> None:
    """Resume a paused session."""
    try:
        get_services().sessions.resume_session(session_id)
    except TrackerError as e:
        fail(e.message)
    print_success("Session resumed")


@session_app.command("stop")
def session_stop(
    session_id: str = typer.Argument(..., help="Session ID"),
    end_page: Optional[int] = typer.Option(None, "--end-page", "-e", min=0, help="Page reached"),
    notes: Optional[str] = typer.Option(None, "--notes", "-n", help="Session notes"),
) -> None:
    """Stop a session and update the book's progress."""
    try:
        session = get_services().sessions.stop_session(
            session_id, end_page=end_page, session_notes=notes
        )
    except TrackerError as e:
        fail(e.message)

    print_success(f"Read {session.pages_read} pages in {session.duration} minutes")


@session_app.command("quick-add")
def session_quick_add(
    book_id: str = typer.Argument(..., help="Book ID"),
    pages: int = typer.Argument(..., min=1, max=100, help="Pages read"),
    notes: Optional[str] = typer.Option(None, "--notes", "-n", help="Session notes"),
) -> None:
    """Log pages read without a timer."""
    try:
        session = get_services().sessions.quick_add_pages(book_id, pages, session_notes=notes)
    except TrackerError as e:
        fail(e.message)

    print_success(f"Logged {session.pages_read} pages, now on page {session.end_page}")


@session_app.command("active")
def session_active() -> None:
    """List sessions that are active or paused."""
    sessions = get_services().sessions.active_sessions()
    if not sessions:
        print_info("No active sessions.")
        return
    console.print(format_session_table(sessions, title="Active Sessions"))


@session_app.command("list")
def session_list(
    book_id: str = typer.Argument(..., help="Book ID"),
    limit: int = typer.Option(10, "--limit", "-l", min=1, help="Max sessions to show"),
) -> None:
    """List a book's sessions, newest first."""
    sessions = get_services().sessions.list_book_sessions(book_id, limit=limit)
    if not sessions:
        print_info("No sessions found.")
        return
    console.print(format_session_table(sessions))


# ============================================================================
# Forecast and Stats Commands
# ============================================================================


@app.command()
def forecast(book_id: str = typer.Argument(..., help="Book ID")) -> None:
    """Forecast pace, finish date and daily page target for a book."""
    try:
        result = get_services().progress.calculate_progress(book_id)
    except TrackerError as e:
        fail(e.message)

    console.print(f"Pace: [cyan]{result.average_pph:.1f}[/cyan] pages/hour")
    if result.eta:
        console.print(f"Estimated finish: [green]{result.eta:%Y-%m-%d %H:%M}[/green] UTC")
    else:
        console.print("Estimated finish: [dim]not enough data[/dim]")
    console.print(f"Daily target: [yellow]{result.daily_target}[/yellow] pages")


@stats_app.command("book")
def stats_book(book_id: str = typer.Argument(..., help="Book ID")) -> None:
    """Totals over a book's completed sessions."""
    services = get_services()
    if not services.library.get_book(book_id):
        fail(f"Book not found: {book_id}")

    stats = services.analytics.get_reading_stats(book_id)
    table = Table(show_header=False, box=None)
    table.add_column(style="bold")
    table.add_column(justify="right")
    table.add_row("Sessions", str(stats.total_sessions))
    table.add_row("Pages", str(stats.total_pages))
    table.add_row("Minutes", str(stats.total_minutes))
    table.add_row("Pages/hour", f"{stats.average_pages_per_hour:.1f}")
    console.print(table)


@stats_app.command("daily")
def stats_daily(
    day: Optional[str] = typer.Option(None, "--date", "-d", help="Day as YYYY-MM-DD"),
) -> None:
    """Sessions completed on one day (default: today)."""
    analytics = get_services().analytics
    target = parse_date_option(day, "--date") or analytics.today()
    stats = analytics.get_daily_reading_stats(target)

    console.print(f"[bold]{stats.date.isoformat()}[/bold]")
    console.print(
        f"Sessions: {stats.sessions_count}  Pages: {stats.total_pages}  "
        f"Minutes: {stats.total_minutes}  Books: {len(stats.books_read)}"
    )


@stats_app.command("overview")
def stats_overview(
    range_from: Optional[str] = typer.Option(None, "--from", help="First day, YYYY-MM-DD"),
    range_to: Optional[str] = typer.Option(None, "--to", help="Last day, YYYY-MM-DD"),
) -> None:
    """Totals, streaks and forecasts for a date range."""
    start = parse_date_option(range_from, "--from")
    end = parse_date_option(range_to, "--to")
    try:
        overview = get_services().analytics.get_overview(start, end)
    except TrackerError as e:
        fail(e.message)

    console.print(
        Panel(
            f"Pages: {overview.totals.pages}  Minutes: {overview.totals.minutes}  "
            f"Sessions: {overview.totals.sessions}\n"
            f"Streak: {overview.streak.current} days (best {overview.streak.best})\n"
            f"Daily bite: {overview.goals.bite_target_per_day} pages",
            title=f"{overview.range.range_from} to {overview.range.range_to}",
            expand=False,
        )
    )

    if overview.active_etas:
        table = Table(title="Currently Reading", header_style="bold magenta")
        table.add_column("Title", style="cyan", max_width=40)
        table.add_column("Progress", justify="right")
        table.add_column("ETA")
        table.add_column("Bite", justify="right")
        for eta in overview.active_etas:
            table.add_row(eta.title, f"{eta.progress_pct}%", eta.eta_date or "-", str(eta.bite_pages))
        console.print(table)


# ============================================================================
# Version Command
# ============================================================================


@app.command()
def version() -> None:
    """Show version information."""
    from .. import __version__

    console.print(f"shelfpace version {__version__}")


# ============================================================================
# Main Entry Point
# ============================================================================


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
