"""Lending manager for issuing, returning and reserving books."""

import math
from datetime import datetime, timedelta, timezone
from typing import Optional

from ..db.schemas import Book
from ..sync.mirror import PersistenceMirror

LOAN_PERIOD_DAYS = 7


class LendingError(Exception):
    """Base exception for lending operations."""

    pass


class BookNotFoundError(LendingError):
    """Raised when a book id is not in the catalog."""

    pass


class BookUnavailableError(LendingError):
    """Raised when issuing a book that is already out."""

    pass


def _utc(value: datetime) -> datetime:
    """Treat naive timestamps as UTC."""
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def due_date(book: Book) -> Optional[datetime]:
    """When the current loan of a book ends, or None if not issued."""
    if not book.issued_date:
        return None
    return _utc(book.issued_date) + timedelta(days=LOAN_PERIOD_DAYS)


def days_remaining(book: Book, now: Optional[datetime] = None) -> int:
    """Whole days left on a loan, rounded up. Zero when overdue or not issued."""
    deadline = due_date(book)
    if deadline is None:
        return 0
    now = _utc(now) if now else datetime.now(timezone.utc)
    return max(0, math.ceil((deadline - now) / timedelta(days=1)))


def _with(book: Book, **changes) -> Book:
    """Copy a book with changes, re-running validation."""
    return Book.model_validate({**book.model_dump(), **changes})


class LendingManager:
    """Manages loans on top of the persistence mirror."""

    def __init__(self, mirror: PersistenceMirror):
        """Initialize lending manager.

        Args:
            mirror: Persistence mirror holding the catalog
        """
        self.mirror = mirror

    async def get_book(self, book_id: str) -> Book:
        """Find a book by id.

        Raises:
            BookNotFoundError: If no book has that id
        """
        for book in await self.mirror.get_books():
            if book.id == book_id:
                return book
        raise BookNotFoundError(f"Book not found: {book_id}")

    async def issue_book(
        self,
        book_id: str,
        library_id: str,
        now: Optional[datetime] = None,
    ) -> Book:
        """Check a book out to a member.

        The member leaves the book's waitlist if they were queued on it.

        Args:
            book_id: Book to issue
            library_id: Borrower's library id
            now: Issue time (defaults to now, UTC)

        Returns:
            The updated book
        """
        book = await self.get_book(book_id)
        if not book.is_available:
            raise BookUnavailableError(f"'{book.title}' is already issued")

        waitlist = book.waitlist
        if waitlist is not None:
            waitlist = [member for member in waitlist if member != library_id]

        updated = _with(
            book,
            is_available=False,
            issued_to=library_id,
            issued_date=now or datetime.now(timezone.utc),
            waitlist=waitlist,
        )
        await self.mirror.update_book(updated)
        return updated

    async def return_book(self, book_id: str) -> Book:
        """Mark a book as returned and available again."""
        book = await self.get_book(book_id)
        if book.is_available:
            return book

        updated = _with(book, is_available=True, issued_to=None, issued_date=None)
        await self.mirror.update_book(updated)
        return updated

    async def reissue_book(
        self,
        book_id: str,
        library_id: str,
        now: Optional[datetime] = None,
    ) -> Book:
        """Renew a loan, restarting the loan period.

        Raises:
            LendingError: If the member is not the current borrower
        """
        book = await self.get_book(book_id)
        if book.is_available or book.issued_to != library_id:
            raise LendingError(f"'{book.title}' is not issued to {library_id}")

        updated = _with(book, issued_date=now or datetime.now(timezone.utc))
        await self.mirror.update_book(updated)
        return updated

    async def reserve_book(self, book_id: str, library_id: str) -> Book:
        """Join the waitlist of an issued book. Joining twice is a no-op.

        Raises:
            LendingError: If the book is available or held by the member
        """
        book = await self.get_book(book_id)
        if book.is_available:
            raise LendingError(f"'{book.title}' is available, issue it instead")
        if book.issued_to == library_id:
            raise LendingError(f"'{book.title}' is already issued to {library_id}")

        waitlist = list(book.waitlist or [])
        if library_id in waitlist:
            return book

        updated = _with(book, waitlist=waitlist + [library_id])
        await self.mirror.update_book(updated)
        return updated

    async def active_loans(self) -> list[Book]:
        """Issued books, ordered by title."""
        books = await self.mirror.get_books()
        return sorted((b for b in books if not b.is_available), key=lambda b: b.title)
