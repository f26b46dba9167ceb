"""Pydantic schemas for library entities.

Field names are snake_case in Python and camelCase on the wire, so rows
stored in the local mirror and the remote store keep the shape the web
client has always used (``coverImage``, ``isAvailable``, ``libraryId``...).
"""

import random
import string
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, model_validator
from pydantic.alias_generators import to_camel


class UserRole(str, Enum):
    """Account role."""

    USER = "USER"
    ADMIN = "ADMIN"


class Collection(str, Enum):
    """Collections owned by the persistence mirror."""

    BOOKS = "books"
    USERS = "users"
    ADMINS = "admins"


ID_ALPHABET = string.ascii_lowercase + string.digits
ID_LENGTH = 9


def generate_id() -> str:
    """Generate a short opaque client-side identifier."""
    return "".join(random.choices(ID_ALPHABET, k=ID_LENGTH))


class Entity(BaseModel):
    """Base class for stored rows."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    id: str = Field(default_factory=generate_id, min_length=1)

    def to_row(self) -> dict:
        """Serialize for local storage and snapshots. Unset fields are omitted."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")

    def to_remote_row(self) -> dict:
        """Serialize for the remote store.

        Every column is present, with unset fields as explicit nulls, so a
        merge upsert clears them and bulk payloads share one key set.
        """
        return self.model_dump(by_alias=True, mode="json")


class Book(Entity):
    """A physical library asset."""

    title: str = Field(..., min_length=1)
    author: str = Field(..., min_length=1)
    genre: str = ""
    cover_image: str = Field("", description="Cover URL or data URI")
    stand_number: str = Field("", description="Shelf location")
    description: Optional[str] = None
    trailer_url: Optional[str] = None
    is_available: bool = True
    issued_to: Optional[str] = Field(None, description="Borrower's libraryId")
    issued_date: Optional[datetime] = None
    waitlist: Optional[list[str]] = None

    @model_validator(mode="after")
    def check_availability(self) -> "Book":
        """Available books carry no loan; issued books name a borrower."""
        if self.is_available and (self.issued_to or self.issued_date):
            raise ValueError("an available book cannot have issuedTo or issuedDate")
        if not self.is_available and not self.issued_to:
            raise ValueError("an issued book must have issuedTo")
        return self

    def __repr__(self) -> str:
        return f"<Book(id={self.id}, title='{self.title}', author='{self.author}')>"


class User(Entity):
    """A student or administrator account."""

    name: str = Field(..., min_length=1)
    library_id: str = Field(..., min_length=1)
    password: Optional[str] = None
    email: str = ""
    role: UserRole = UserRole.USER
    xp: Optional[int] = Field(None, ge=0)
    badges: Optional[set[str]] = None

    @field_serializer("badges")
    def serialize_badges(self, badges: Optional[set[str]]) -> Optional[list[str]]:
        return sorted(badges) if badges is not None else None

    def __repr__(self) -> str:
        return f"<User(id={self.id}, libraryId='{self.library_id}', role={self.role.value})>"


class Snapshot(BaseModel):
    """Full-database export: three collections plus when it was taken."""

    books: list[Book]
    users: list[User] = Field(default_factory=list)
    admins: list[User] = Field(default_factory=list)
    timestamp: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "books": [book.to_row() for book in self.books],
            "users": [user.to_row() for user in self.users],
            "admins": [admin.to_row() for admin in self.admins],
            "timestamp": self.timestamp,
        }
