"""Bootstrap data set.

Default catalog and accounts used when no data exists anywhere yet, and
by the operator's forced re-seed. Every call returns fresh objects.
"""

from .schemas import Book, User, UserRole

_BOOKS = [
    {
        "id": "b1",
        "title": "The Pragmatic Programmer",
        "author": "David Thomas, Andrew Hunt",
        "genre": "Technology",
        "coverImage": "https://covers.openlibrary.org/b/isbn/9780135957059-L.jpg",
        "standNumber": "T-01",
        "description": "A guide to the craft of software development.",
    },
    {
        "id": "b2",
        "title": "Clean Code",
        "author": "Robert C. Martin",
        "genre": "Technology",
        "coverImage": "https://covers.openlibrary.org/b/isbn/9780132350884-L.jpg",
        "standNumber": "T-02",
        "description": "A handbook of agile software craftsmanship.",
    },
    {
        "id": "b3",
        "title": "Shyamchi Aai",
        "author": "Sane Guruji",
        "genre": "Marathi Literature",
        "coverImage": "https://covers.openlibrary.org/b/isbn/9788177660098-L.jpg",
        "standNumber": "M-01",
        "description": "Stories of a mother's teachings, told by her son.",
    },
    {
        "id": "b4",
        "title": "Sapiens",
        "author": "Yuval Noah Harari",
        "genre": "History",
        "coverImage": "https://covers.openlibrary.org/b/isbn/9780062316097-L.jpg",
        "standNumber": "H-04",
        "description": "A brief history of humankind.",
    },
    {
        "id": "b5",
        "title": "Wings of Fire",
        "author": "A. P. J. Abdul Kalam",
        "genre": "Biography",
        "coverImage": "https://covers.openlibrary.org/b/isbn/9788173711466-L.jpg",
        "standNumber": "B-02",
        "description": "An autobiography of a scientist and president.",
    },
    {
        "id": "b6",
        "title": "Atomic Habits",
        "author": "James Clear",
        "genre": "Self-Help",
        "coverImage": "https://covers.openlibrary.org/b/isbn/9780735211292-L.jpg",
        "standNumber": "S-07",
        "description": "Small changes, remarkable results.",
    },
]

_USERS = [
    {
        "id": "u1",
        "name": "Aarav Patil",
        "libraryId": "STU001",
        "password": "password123",
        "email": "aarav@vaymn.edu",
        "role": UserRole.USER.value,
        "xp": 0,
    },
    {
        "id": "u2",
        "name": "Isha Deshmukh",
        "libraryId": "STU002",
        "password": "password123",
        "email": "isha@vaymn.edu",
        "role": UserRole.USER.value,
        "xp": 0,
    },
]

_ADMINS = [
    {
        "id": "a1",
        "name": "Head Librarian",
        "libraryId": "ADMIN001",
        "password": "admin123",
        "email": "librarian@vaymn.edu",
        "role": UserRole.ADMIN.value,
    },
]


def initial_books() -> list[Book]:
    """Default catalog, every book available."""
    return [Book.model_validate(row) for row in _BOOKS]


def initial_users() -> list[User]:
    """Default student accounts."""
    return [User.model_validate(row) for row in _USERS]


def initial_admins() -> list[User]:
    """Default administrator accounts."""
    return [User.model_validate(row) for row in _ADMINS]
