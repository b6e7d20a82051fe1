"""
Storage failures.

Lookups that find nothing return None; only real failures raise. Every
backend raises the same classes so callers map them to responses the same
way whichever backend is configured.
"""
from contextlib import contextmanager
import re
from typing import Any, Dict, Iterator, Optional

from sqlalchemy import UniqueConstraint
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError

from studyhub.database import Base

# MySQL: Duplicate entry 'x' for key 'users.users_email_key' (table prefix since 8.0)
MYSQL_DUPLICATE_KEY = re.compile(r"for key '(?:[^'.]+\.)?([^']+)'")
# SQLite: UNIQUE constraint failed: user_progress.user_id, user_progress.lesson_id
SQLITE_UNIQUE_FAILED = re.compile(r"UNIQUE constraint failed: (.+)$")


class StorageError(Exception):
    """Base exception for all storage failures."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConstraintViolationError(StorageError):
    """A uniqueness or foreign key rule would be (or was) broken."""

    def __init__(
        self,
        message: str,
        constraint: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if constraint:
            details["constraint"] = constraint
        self.constraint = constraint
        super().__init__(message, details)


class StorageConnectionError(StorageError):
    """The backing database could not be reached."""


class StorageConfigurationError(StorageError):
    """The storage cannot be built from the given settings."""


def _sqlite_unique_name(columns: str) -> Optional[str]:
    """SQLite names columns, not constraints: look the constraint up in the models."""
    qualified = [column.strip().split(".", 1) for column in columns.split(",")]
    if any(len(parts) != 2 for parts in qualified):
        return None
    table = Base.metadata.tables.get(qualified[0][0])
    if table is None:
        return None
    wanted = {column for _, column in qualified}
    for constraint in table.constraints:
        if isinstance(constraint, UniqueConstraint) and {c.name for c in constraint.columns} == wanted:
            return constraint.name
    return None


def constraint_name(error: IntegrityError) -> Optional[str]:
    """Name of the violated constraint, when the driver reports enough to tell."""
    diag = getattr(error.orig, "diag", None)
    if diag is not None and getattr(diag, "constraint_name", None):
        return diag.constraint_name

    message = str(error.orig)
    match = MYSQL_DUPLICATE_KEY.search(message)
    if match:
        return match.group(1)
    match = SQLITE_UNIQUE_FAILED.search(message)
    if match:
        return _sqlite_unique_name(match.group(1))
    # SQLite foreign key failures carry no name at all
    return None


@contextmanager
def translate_db_errors() -> Iterator[None]:
    """Re-raise SQLAlchemy driver errors as storage failures."""
    try:
        yield
    except IntegrityError as e:
        raise ConstraintViolationError(
            "Database constraint violated",
            constraint=constraint_name(e),
            details={"error": str(e.orig)},
        ) from e
    except (OperationalError, InterfaceError) as e:
        raise StorageConnectionError(
            "Database is unavailable",
            details={"error": str(e.orig)},
        ) from e
