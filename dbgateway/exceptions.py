"""Core exceptions for dbgateway."""

from typing import Any, Dict, Optional


class GatewayError(Exception):
    """Base exception for all dbgateway errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(GatewayError):
    """Raised when a connection or gateway configuration is invalid."""
    pass


class QueryValidationError(GatewayError):
    """Raised when a query or its parameters are rejected before execution."""

    def __init__(
        self,
        message: str,
        query: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.query = query


class ConnectionNotFoundError(GatewayError):
    """Raised when a named connection is not registered."""

    def __init__(self, message: str, connection_name: Optional[str] = None):
        super().__init__(message)
        self.connection_name = connection_name


class DatabaseError(GatewayError):
    """Raised when a backend reports a failure or cannot be reached."""

    def __init__(
        self,
        message: str,
        database_type: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.database_type = database_type


class DatabaseConnectionError(DatabaseError):
    """Raised when a backend connection cannot be established."""
    pass


class NotConnectedError(DatabaseError):
    """Raised when an operation needs a native handle that is not open."""
    pass


class TransactionStateError(DatabaseError):
    """Raised on begin-while-active or commit/rollback-while-idle."""
    pass
