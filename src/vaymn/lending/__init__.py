"""Book lending module.

Provides functionality for:
- Issuing and returning books
- Renewing loans
- Waitlists on issued books
- Loan period and days remaining
"""

from .manager import (
    LOAN_PERIOD_DAYS,
    BookNotFoundError,
    BookUnavailableError,
    LendingError,
    LendingManager,
    days_remaining,
    due_date,
)

__all__ = [
    "LOAN_PERIOD_DAYS",
    "BookNotFoundError",
    "BookUnavailableError",
    "LendingError",
    "LendingManager",
    "days_remaining",
    "due_date",
]
