"""Full-database snapshots.

A snapshot is a single JSON document holding the three collections and the
time it was taken::

    {"books": [...], "users": [...], "admins": [...], "timestamp": "..."}
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from ..db.schemas import Book, Snapshot, User

logger = logging.getLogger(__name__)

DEFAULT_FILENAME = "vaymn_backup.json"


def build_snapshot(
    books: list[Book],
    users: list[User],
    admins: list[User],
    timestamp: Optional[datetime] = None,
) -> Snapshot:
    """Assemble a snapshot stamped with the given (or current) UTC time."""
    taken_at = timestamp or datetime.now(timezone.utc)
    return Snapshot(
        books=books,
        users=users,
        admins=admins,
        timestamp=taken_at.isoformat(),
    )


def dumps_snapshot(snapshot: Snapshot, pretty: bool = True) -> str:
    """Serialize a snapshot to JSON text."""
    if pretty:
        return json.dumps(snapshot.to_dict(), indent=2, ensure_ascii=False)
    return json.dumps(snapshot.to_dict(), ensure_ascii=False)


def write_snapshot(snapshot: Snapshot, output_path: Optional[Path] = None) -> Path:
    """Write a snapshot file and return its path.

    Args:
        snapshot: Snapshot to write
        output_path: Target file, or a directory to place the default
            file name in. Defaults to the current directory.
    """
    if output_path is None:
        output_path = Path.cwd() / DEFAULT_FILENAME
    elif output_path.is_dir():
        output_path = output_path / DEFAULT_FILENAME

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as f:
        f.write(dumps_snapshot(snapshot))
    return output_path


def parse_snapshot(content: str) -> Optional[Snapshot]:
    """Parse and validate snapshot text.

    The books collection is required; missing users/admins default to
    empty. Any row failing validation rejects the whole snapshot.

    Returns:
        The snapshot, or None if the content is not a valid snapshot
    """
    try:
        data = json.loads(content)
    except (json.JSONDecodeError, TypeError) as e:
        logger.warning("Snapshot is not valid JSON: %s", e)
        return None

    if not isinstance(data, dict) or not isinstance(data.get("books"), list):
        logger.warning("Snapshot has no books collection")
        return None

    data = dict(data)
    for name in ("users", "admins"):
        if data.get(name) is None:
            data[name] = []

    try:
        return Snapshot.model_validate(data)
    except ValidationError as e:
        logger.warning("Snapshot failed validation: %s", e.error_count())
        return None
