"""Registry of named database connections."""

import asyncio
import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Set

from dbgateway.config.models import GatewayConfig
from dbgateway.db.base import DatabaseAdapter
from dbgateway.db.factory import ConfigInput, DatabaseAdapterFactory
from dbgateway.exceptions import (
    ConfigurationError,
    ConnectionNotFoundError,
    DatabaseConnectionError,
)

logger = logging.getLogger(__name__)


@dataclass
class TeardownFailure:
    """A connection that failed to disconnect cleanly."""
    name: str
    error: str


class ConnectionManager:
    """Manages named database connections.

    Entries keep insertion order. At most one entry is current; the first
    connection added becomes current, and removing the current entry hands
    that role to the first remaining entry.
    """

    def __init__(self, factory: Optional[DatabaseAdapterFactory] = None) -> None:
        self._connections: "OrderedDict[str, DatabaseAdapter]" = OrderedDict()
        self._current: Optional[str] = None
        self._pending: Set[str] = set()
        self._factory = factory or DatabaseAdapterFactory()

    async def add_connection(self, name: str, config: ConfigInput) -> DatabaseAdapter:
        """Create, connect and register an adapter.

        The name is reserved while the adapter connects, so a second add under
        the same name fails immediately instead of racing the first.

        Args:
            name: Unique connection name.
            config: Connection configuration model or mapping.

        Returns:
            The connected adapter.

        Raises:
            ConfigurationError: If ``name`` is already registered or being added.
            DatabaseConnectionError: If the adapter cannot be created or connected.
        """
        if name in self._connections or name in self._pending:
            raise ConfigurationError(f"Connection '{name}' already exists")

        self._pending.add(name)
        try:
            adapter = await self._open(name, config)
        finally:
            self._pending.discard(name)

        self._connections[name] = adapter
        if self._current is None:
            self._current = name
        logger.info(f"Added {adapter.label} connection '{name}'")
        return adapter

    async def _open(self, name: str, config: ConfigInput) -> DatabaseAdapter:
        try:
            if isinstance(config, dict) and not config.get('name'):
                config = {**config, 'name': name}
            adapter = self._factory.create_database(config)
            await adapter.connect()
        except Exception as e:
            message = e.message if isinstance(e, ConfigurationError) else str(e)
            raise DatabaseConnectionError(f"Failed to add connection '{name}': {message}") from e
        return adapter

    async def remove_connection(self, name: str) -> None:
        """Disconnect and unregister a connection. Unknown names are ignored."""
        adapter = self._connections.get(name)
        if adapter is None:
            return

        try:
            await adapter.disconnect()
        finally:
            del self._connections[name]
            if self._current == name:
                self._current = next(iter(self._connections), None)
            logger.info(f"Removed connection '{name}'")

    def get_connection(self, name: Optional[str] = None) -> Optional[DatabaseAdapter]:
        """Look up a connection by name, or the current one when name is omitted."""
        if name:
            return self._connections.get(name)
        if self._current is None:
            return None
        return self._connections.get(self._current)

    def require_connection(self, name: Optional[str] = None) -> DatabaseAdapter:
        """Like :meth:`get_connection` but raise when nothing matches.

        Raises:
            ConnectionNotFoundError: If the named (or current) connection is missing.
        """
        adapter = self.get_connection(name)
        if adapter is None:
            if name:
                raise ConnectionNotFoundError(f"Connection '{name}' not found", connection_name=name)
            raise ConnectionNotFoundError("No active database connection")
        return adapter

    def set_current_connection(self, name: str) -> None:
        if name not in self._connections:
            raise ConnectionNotFoundError(f"Connection '{name}' not found", connection_name=name)
        self._current = name

    def get_current_connection_name(self) -> Optional[str]:
        return self._current

    def has_connection(self, name: str) -> bool:
        return name in self._connections

    def get_connection_count(self) -> int:
        return len(self._connections)

    def list_connections(self) -> List[Dict[str, Any]]:
        """Describe each entry with its live connected state."""
        return [
            {'name': name, 'type': adapter.kind.value, 'connected': adapter.is_connected()}
            for name, adapter in self._connections.items()
        ]

    async def validate_all_connections(self) -> Dict[str, bool]:
        """Round-trip every connection concurrently.

        Returns:
            Mapping of connection name to health; an adapter that raises
            counts as unhealthy.
        """
        names = list(self._connections)
        outcomes = await asyncio.gather(
            *(self._connections[name].validate_connection() for name in names),
            return_exceptions=True,
        )
        return {
            name: outcome is True
            for name, outcome in zip(names, outcomes)
        }

    async def disconnect_all(self) -> List[TeardownFailure]:
        """Disconnect every entry and clear the registry.

        Returns:
            One TeardownFailure per adapter whose disconnect raised.
        """
        failures: List[TeardownFailure] = []
        try:
            for name, adapter in self._connections.items():
                try:
                    await adapter.disconnect()
                except Exception as e:
                    logger.error(f"Failed to disconnect {name}: {e}")
                    failures.append(TeardownFailure(name=name, error=str(e)))
        finally:
            self._connections.clear()
            self._current = None
        return failures

    async def from_config(self, config: GatewayConfig) -> List[str]:
        """Register every configured database.

        Invalid or unreachable entries are logged and skipped.

        Returns:
            One message per skipped entry.
        """
        problems: List[str] = []
        for db_config in config.databases:
            result = self._factory.validate_config(db_config)
            if not result.valid:
                message = f"Skipping '{db_config.name}': {'; '.join(result.errors)}"
                logger.warning(message)
                problems.append(message)
                continue
            try:
                await self.add_connection(db_config.name, db_config)
            except (ConfigurationError, DatabaseConnectionError) as e:
                logger.warning(e.message)
                problems.append(e.message)

        if config.default_connection and self.has_connection(config.default_connection):
            self.set_current_connection(config.default_connection)
        return problems

