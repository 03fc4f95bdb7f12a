"""Query guards, error wrapping and transaction state shared by every adapter."""

import re
from typing import Any, Optional

from dbgateway.db.commands import StructuredCommand
from dbgateway.exceptions import DatabaseError, GatewayError, QueryValidationError, TransactionStateError


DANGEROUS_PATTERNS = [
    re.compile(r';\s*drop\s+table', re.IGNORECASE),
    re.compile(r';\s*delete\s+from', re.IGNORECASE),
    re.compile(r';\s*truncate\s+table', re.IGNORECASE),
    re.compile(r';\s*alter\s+table', re.IGNORECASE),
    re.compile(r';\s*drop\s+database', re.IGNORECASE),
]


def validate_query(query: Any) -> None:
    """Reject empty queries and destructive statements chained after a ``;``.

    Structured commands carry no statement separator and always pass.

    Raises:
        QueryValidationError: If the query is rejected.
    """
    if isinstance(query, StructuredCommand):
        return

    if not isinstance(query, str) or not query.strip():
        raise QueryValidationError("Query must be a non-empty string")

    for pattern in DANGEROUS_PATTERNS:
        if pattern.search(query):
            raise QueryValidationError("Potentially dangerous query detected", query=query)


def validate_parameters(parameters: Any) -> None:
    """Accept ``None`` or a positional sequence.

    Raises:
        QueryValidationError: For any other parameter container.
    """
    if parameters is not None and not isinstance(parameters, (list, tuple)):
        raise QueryValidationError("Parameters must be an array")


def wrap_error(label: str, exc: BaseException, database_type: Optional[str] = None) -> GatewayError:
    """Normalize a backend failure.

    Gateway errors are returned unchanged; anything else becomes a
    :class:`DatabaseError` prefixed with the backend label and chained to the
    original exception.
    """
    if isinstance(exc, GatewayError):
        return exc

    error = DatabaseError(f"{label} error: {exc}", database_type=database_type)
    error.__cause__ = exc
    return error


class TransactionState:
    """Idle / in-transaction state machine.

    The checks run before any native call so a misuse never reaches the
    backend.
    """

    def __init__(self, database_type: Optional[str] = None) -> None:
        self.database_type = database_type
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    def require_idle(self) -> None:
        if self._active:
            raise TransactionStateError("Transaction already in progress", database_type=self.database_type)

    def require_active(self) -> None:
        if not self._active:
            raise TransactionStateError("No transaction in progress", database_type=self.database_type)

    def begin(self) -> None:
        self.require_idle()
        self._active = True

    def end(self) -> None:
        self._active = False
