"""Command-line interface for vaymn.

Built with Typer for commands and Rich for beautiful output.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .accounts import AccountError, AccountManager
from .config import get_config
from .db import Book, User, UserRole, generate_id, get_db
from .lending import LendingError, LendingManager, days_remaining
from .log import setup_logging
from .sync import PersistenceMirror, RemoteStore

# Create the main app
app = typer.Typer(
    name="vaymn",
    help="Manage the VAYMN library catalog, accounts and loans.",
    no_args_is_help=True,
)

# Rich console for pretty output
console = Console()


# ============================================================================
# Helper Functions
# ============================================================================


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[bold red]Error:[/bold red] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[bold green]Success:[/bold green] {message}")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[bold yellow]Warning:[/bold yellow] {message}")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[dim]{message}[/dim]")


# Remote clients opened during this invocation, closed when it ends
_open_remotes: list[RemoteStore] = []


def build_mirror() -> PersistenceMirror:
    """Construct the one mirror this invocation works with."""
    config = get_config()
    db = get_db(str(config.db_path))
    remote = None
    if config.has_remote_config():
        remote = RemoteStore()
        _open_remotes.append(remote)
    return PersistenceMirror(db, remote)


def close_remotes() -> None:
    """Close every remote client opened by build_mirror."""
    while _open_remotes:
        _open_remotes.pop().close()


def run(coro):
    """Run a coroutine to completion."""
    return asyncio.run(coro)


def format_book_table(books: list[Book], title: str = "Books") -> Table:
    """Create a rich table for displaying books."""
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim")
    table.add_column("Title", style="cyan", no_wrap=False, max_width=40)
    table.add_column("Author", style="green", max_width=25)
    table.add_column("Genre")
    table.add_column("Stand", justify="center")
    table.add_column("Status", style="yellow")

    for book in books:
        if book.is_available:
            status = "Available"
        else:
            status = f"Issued to {book.issued_to} ({days_remaining(book)}d left)"
        if book.waitlist:
            status += f", {len(book.waitlist)} waiting"
        table.add_row(book.id, book.title, book.author, book.genre, book.stand_number, status)

    return table


def format_user_table(users: list[User], title: str = "Users") -> Table:
    """Create a rich table for displaying accounts."""
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Library ID", style="green")
    table.add_column("Email")
    table.add_column("XP", justify="right")

    for user in users:
        xp = str(user.xp) if user.xp is not None else "-"
        table.add_row(user.id, user.name, user.library_id, user.email, xp)

    return table


async def _require_session(mirror: PersistenceMirror) -> User:
    user = await mirror.get_current_user()
    if user is None:
        print_error("Not logged in. Run 'vaymn login' first.")
        raise typer.Exit(1)
    return user


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    """Manage the VAYMN library catalog, accounts and loans."""
    setup_logging(logging.DEBUG if verbose else get_config().log_level)
    ctx.call_on_close(close_remotes)


# ============================================================================
# Store Commands
# ============================================================================


@app.command()
def version() -> None:
    """Show the installed version."""
    console.print(f"vaymn {__version__}")


@app.command()
def status() -> None:
    """Show remote configuration, connectivity and the current session."""
    mirror = build_mirror()

    async def _status():
        connected = await mirror.test_cloud_connection()
        user = await mirror.get_current_user()
        return connected, user

    connected, user = run(_status())
    mode = "[green]CLOUD[/green]" if mirror.is_cloud_enabled() else "[dim]LOCAL[/dim]"
    lines = [f"Mode: {mode}"]
    if mirror.is_cloud_enabled():
        lines.append(f"Remote reachable: {'yes' if connected else '[red]no[/red]'}")
    lines.append(f"Database: {mirror.db.db_path}")
    lines.append(f"Session: {f'{user.name} ({user.role.value})' if user else 'none'}")
    console.print(Panel("\n".join(lines), title="VAYMN"))
    if mirror.is_cloud_enabled() and not connected:
        print_warning("Remote store unreachable; working from the local mirror.")


@app.command()
def seed(
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite both stores with defaults"),
) -> None:
    """Seed the remote store with the default catalog if it is empty."""
    mirror = build_mirror()

    if force:
        seeded = run(mirror.force_seed())
        print_success(
            f"Seeded {len(seeded['books'])} books, {len(seeded['users'])} users, "
            f"{len(seeded['admins'])} admins"
        )
        return

    if not mirror.is_cloud_enabled():
        print_info("No remote store configured; nothing to seed.")
        return
    run(mirror.seed_if_empty())
    print_success("Seed check complete")


@app.command("books")
def list_books(
    available: bool = typer.Option(False, "--available", "-a", help="Only available books"),
) -> None:
    """List the catalog."""
    books = run(build_mirror().get_books())
    if available:
        books = [b for b in books if b.is_available]
    if not books:
        print_info("No books found.")
        return
    console.print(format_book_table(books))


@app.command("users")
def list_users() -> None:
    """List student accounts."""
    console.print(format_user_table(run(build_mirror().get_users()), title="Students"))


@app.command("admins")
def list_admins() -> None:
    """List administrator accounts."""
    console.print(format_user_table(run(build_mirror().get_admins()), title="Admins"))


@app.command("add-book")
def add_book(
    title: str = typer.Option(..., "--title", "-t", help="Book title"),
    author: str = typer.Option(..., "--author", "-a", help="Author"),
    genre: str = typer.Option("", "--genre", "-g", help="Genre"),
    stand: str = typer.Option("", "--stand", "-s", help="Shelf location"),
    cover: str = typer.Option("", "--cover", help="Cover image URL"),
    description: Optional[str] = typer.Option(None, "--description", "-d", help="Description"),
) -> None:
    """Add a book to the catalog."""
    book = Book(
        id=generate_id(),
        title=title,
        author=author,
        genre=genre,
        stand_number=stand,
        cover_image=cover,
        description=description,
    )
    run(build_mirror().update_book(book))
    print_success(f"Added: {book.title} by {book.author} ({book.id})")


@app.command("remove-book")
def remove_book(book_id: str = typer.Argument(..., help="Book ID")) -> None:
    """Remove a book from the catalog."""
    run(build_mirror().delete_book(book_id))
    print_success(f"Removed book {book_id}")


@app.command("remove-user")
def remove_user(
    user_id: str = typer.Argument(..., help="Account ID"),
    admin: bool = typer.Option(False, "--admin", help="Remove an admin account"),
) -> None:
    """Remove a student or admin account."""
    mirror = build_mirror()
    if admin:
        run(mirror.delete_admin(user_id))
    else:
        run(mirror.delete_user(user_id))
    print_success(f"Removed account {user_id}")


@app.command()
def export(
    output: Optional[Path] = typer.Argument(None, help="Output file or directory"),
) -> None:
    """Export books, users and admins to a JSON snapshot."""
    path = run(build_mirror().export_full_database(output))
    print_success(f"Exported to {path}")


@app.command("import")
def import_snapshot(
    file: Path = typer.Argument(..., help="Snapshot file to import", exists=True, dir_okay=False),
) -> None:
    """Replace the local mirror with a JSON snapshot."""
    content = file.read_text(encoding="utf-8")
    if not run(build_mirror().import_database(content)):
        print_error(f"{file} is not a valid snapshot (a books collection is required)")
        raise typer.Exit(1)
    print_success(f"Imported {file}")


@app.command()
def reset(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Clear all local data, including the session."""
    if not yes and not typer.confirm("Clear all local data?", default=False):
        print_info("Cancelled.")
        raise typer.Exit(0)
    run(build_mirror().factory_reset())
    print_success("Local data cleared")


# ============================================================================
# Account Commands
# ============================================================================


@app.command()
def login(
    library_id: str = typer.Argument(..., help="Library ID"),
    password: str = typer.Option(..., "--password", "-p", prompt=True, hide_input=True),
    admin: bool = typer.Option(False, "--admin", help="Log in as an administrator"),
) -> None:
    """Log in and save the session on this device."""
    accounts = AccountManager(build_mirror())
    role = UserRole.ADMIN if admin else UserRole.USER
    try:
        user = run(accounts.login(library_id, password, role))
    except AccountError as e:
        print_error(str(e))
        raise typer.Exit(1)
    print_success(f"Welcome, {user.name}!")


@app.command()
def logout() -> None:
    """End the session on this device."""
    run(AccountManager(build_mirror()).logout())
    print_success("Signed out.")


@app.command()
def whoami() -> None:
    """Show the logged-in account."""
    user = run(AccountManager(build_mirror()).current_user())
    if user is None:
        print_info("Not logged in.")
        return
    console.print(f"{user.name} ({user.library_id}, {user.role.value})")


@app.command()
def signup(
    name: str = typer.Option(..., "--name", "-n", help="Full name"),
    library_id: str = typer.Option(..., "--library-id", "-l", help="Library ID"),
    password: str = typer.Option(..., "--password", "-p", prompt=True, hide_input=True),
    email: str = typer.Option("", "--email", "-e", help="Email address"),
    admin: bool = typer.Option(False, "--admin", help="Register an administrator"),
) -> None:
    """Register an account and log in."""
    accounts = AccountManager(build_mirror())
    role = UserRole.ADMIN if admin else UserRole.USER
    try:
        user = run(accounts.signup(name, library_id, password, email, role))
    except AccountError as e:
        print_error(str(e))
        raise typer.Exit(1)
    print_success(f"Welcome to VAYMN, {user.name}!")


# ============================================================================
# Lending Commands
# ============================================================================


@app.command()
def issue(
    book_id: str = typer.Argument(..., help="Book ID"),
    to: Optional[str] = typer.Option(None, "--to", help="Borrower library ID (defaults to you)"),
) -> None:
    """Check out a book."""
    mirror = build_mirror()
    lending = LendingManager(mirror)

    async def _issue():
        borrower = to or (await _require_session(mirror)).library_id
        return await lending.issue_book(book_id, borrower)

    try:
        book = run(_issue())
    except LendingError as e:
        print_error(str(e))
        raise typer.Exit(1)
    print_success(f"Checked out: {book.title} (due in {days_remaining(book)} days)")


@app.command("return")
def return_book(book_id: str = typer.Argument(..., help="Book ID")) -> None:
    """Return a book."""
    try:
        book = run(LendingManager(build_mirror()).return_book(book_id))
    except LendingError as e:
        print_error(str(e))
        raise typer.Exit(1)
    print_success(f"Returned: {book.title}")


@app.command()
def reissue(book_id: str = typer.Argument(..., help="Book ID")) -> None:
    """Renew your loan on a book."""
    mirror = build_mirror()
    lending = LendingManager(mirror)

    async def _reissue():
        user = await _require_session(mirror)
        return await lending.reissue_book(book_id, user.library_id)

    try:
        book = run(_reissue())
    except LendingError as e:
        print_error(str(e))
        raise typer.Exit(1)
    print_success(f"Renewed: {book.title} (due in {days_remaining(book)} days)")


@app.command()
def reserve(book_id: str = typer.Argument(..., help="Book ID")) -> None:
    """Join the waitlist for an issued book."""
    mirror = build_mirror()
    lending = LendingManager(mirror)

    async def _reserve():
        user = await _require_session(mirror)
        return await lending.reserve_book(book_id, user.library_id), user

    try:
        book, user = run(_reserve())
    except LendingError as e:
        print_error(str(e))
        raise typer.Exit(1)
    position = book.waitlist.index(user.library_id) + 1
    print_success(f"Reserved: {book.title} (#{position} in queue)")


@app.command()
def loans() -> None:
    """List active loans."""
    active = run(LendingManager(build_mirror()).active_loans())
    if not active:
        print_info("No active loans.")
        return
    console.print(format_book_table(active, title="Active Loans"))


if __name__ == "__main__":
    app()
