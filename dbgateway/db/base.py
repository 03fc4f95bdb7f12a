"""Base database adapter contract."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from dbgateway.config.models import BaseConnectionConfig, DatabaseType
from dbgateway.db.commands import StructuredCommand
from dbgateway.db.guards import TransactionState, validate_parameters, validate_query, wrap_error
from dbgateway.db.models import DatabaseOperation, DatabaseStats, QueryResult, TableInfo
from dbgateway.exceptions import GatewayError, NotConnectedError, QueryValidationError

logger = logging.getLogger(__name__)

Query = Union[str, StructuredCommand]


class DatabaseAdapter(ABC):
    """Base class for database adapters.

    An adapter owns exactly one backend-native client or pool. The class
    attributes describe the backend: ``kind`` selects it in the factory,
    ``label`` prefixes wrapped error messages and ``supports_transactions``
    tells callers whether ``begin``/``commit``/``rollback`` are real.
    """

    kind: DatabaseType
    label: str = "Database"
    supports_transactions: bool = True
    default_schema: Optional[str] = None

    def __init__(self, config: BaseConnectionConfig) -> None:
        """Initialize database adapter.

        Args:
            config: Connection configuration for this backend kind.
        """
        self.config = config
        self._connected = False
        self._transaction = TransactionState(self.kind.value)

    @property
    def name(self) -> str:
        return self.config.name or self.kind.value

    # -- lifecycle ---------------------------------------------------------

    @abstractmethod
    async def connect(self) -> None:
        """Open the native client or pool.

        Raises:
            DatabaseConnectionError: If the backend cannot be reached.
        """
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Tear down the native handle and clear connected state."""
        pass

    @property
    @abstractmethod
    def native_handle(self) -> Any:
        """The backend-native client, engine or pool, or None when closed."""
        pass

    def is_connected(self) -> bool:
        """True when the connected flag is set and the native handle exists."""
        return self._connected and self.native_handle is not None

    def _require_connection(self) -> None:
        if not self.is_connected():
            raise NotConnectedError("Database not connected", database_type=self.kind.value)

    def _wrap(self, exc: BaseException) -> GatewayError:
        return wrap_error(self.label, exc, self.kind.value)

    # -- queries and schema -----------------------------------------------

    @abstractmethod
    async def execute_query(self, query: Query, parameters: Optional[Sequence[Any]] = None) -> QueryResult:
        """Run one native query or structured command.

        Raises:
            NotConnectedError: Before any native call when not connected.
            DatabaseError: If the backend reports a failure.
        """
        pass

    @abstractmethod
    async def list_table_names(self) -> List[str]:
        """Names of the tables, collections or key groups visible to this connection."""
        pass

    @abstractmethod
    async def get_table_info(self, table_name: str, schema: Optional[str] = None) -> Optional[TableInfo]:
        """Describe one table, or return None when it does not exist."""
        pass

    @abstractmethod
    async def get_database_stats(self) -> DatabaseStats:
        pass

    @abstractmethod
    async def validate_connection(self) -> bool:
        """Round-trip to the backend. Never raises."""
        pass

    async def get_tables(self) -> List[TableInfo]:
        """Describe every table.

        A table whose details cannot be fetched is reported with an empty
        descriptor rather than failing the whole listing.
        """
        self._require_connection()
        try:
            refs = await self._table_refs()
        except Exception as e:
            raise self._wrap(e)

        tables: List[TableInfo] = []
        for table_name, schema in refs:
            try:
                info = await self.get_table_info(table_name, schema)
            except Exception as e:
                logger.debug(f"Could not describe {self.label} table '{table_name}': {e}")
                info = None
            tables.append(info or TableInfo(name=table_name, schema=schema or self.default_schema))
        return tables

    async def _table_refs(self) -> List[Tuple[str, Optional[str]]]:
        """``(name, schema)`` pairs for :meth:`get_tables`."""
        return [(table_name, None) for table_name in await self.list_table_names()]

    # -- transactions -----------------------------------------------------

    async def _begin(self) -> None:
        """Start a native transaction. No-op for backends without one."""

    async def _commit(self) -> None:
        """Commit the native transaction. No-op for backends without one."""

    async def _rollback(self) -> None:
        """Abort the native transaction. No-op for backends without one."""

    async def begin_transaction(self) -> None:
        """Enter a transaction.

        Raises:
            TransactionStateError: If a transaction is already in progress.
        """
        self._transaction.require_idle()
        try:
            await self._begin()
        except Exception as e:
            raise self._wrap(e)
        self._transaction.begin()

    async def commit_transaction(self) -> None:
        """Commit and return to idle.

        Raises:
            TransactionStateError: If no transaction is in progress.
        """
        self._transaction.require_active()
        try:
            await self._commit()
        except Exception as e:
            raise self._wrap(e)
        finally:
            self._transaction.end()

    async def rollback_transaction(self) -> None:
        """Roll back and return to idle.

        Raises:
            TransactionStateError: If no transaction is in progress.
        """
        self._transaction.require_active()
        try:
            await self._rollback()
        except Exception as e:
            raise self._wrap(e)
        finally:
            self._transaction.end()

    def is_in_transaction(self) -> bool:
        return self._transaction.active

    # -- composite operations ---------------------------------------------

    async def ensure_connection(self) -> None:
        """Connect once if the adapter is not connected."""
        if not self.is_connected():
            logger.info(f"Connecting {self.label} adapter '{self.name}'")
            await self.connect()

    async def safe_execute_query(self, query: Query, parameters: Optional[Sequence[Any]] = None) -> QueryResult:
        """Validate, ensure liveness, then execute.

        Raises:
            GatewayError: Every failure, with backend errors wrapped.
        """
        try:
            validate_query(query)
            validate_parameters(parameters)
            await self.ensure_connection()
            return await self.execute_query(query, parameters)
        except Exception as e:
            raise self._wrap(e)

    async def execute_batch(
        self, operations: Sequence[Union[DatabaseOperation, Dict[str, Any]]]
    ) -> List[QueryResult]:
        """Run operations in order inside one transaction.

        On failure the transaction is rolled back and the failing operation's
        error is raised with ``failed_operation``, ``completed_operations`` and
        ``atomic`` in its details. When the backend has no real transactions
        earlier operations stay applied and ``atomic`` is False.
        """
        try:
            batch = [DatabaseOperation.from_dict(op) for op in operations]
        except ValueError as e:
            raise QueryValidationError(str(e)) from e

        if not self.supports_transactions:
            logger.warning(
                f"{self.label} has no transactions; batch of {len(batch)} operations "
                f"on '{self.name}' is not atomic"
            )

        try:
            await self.ensure_connection()
            await self.begin_transaction()
        except Exception as e:
            raise self._wrap(e)

        results: List[QueryResult] = []
        for index, operation in enumerate(batch):
            try:
                validate_query(operation.query)
                validate_parameters(operation.parameters)
                results.append(await self.execute_query(operation.query, operation.parameters))
            except Exception as e:
                error = self._wrap(e)
                await self._abort_batch()
                error.details.update({
                    'failed_operation': index,
                    'completed_operations': len(results),
                    'atomic': self.supports_transactions,
                })
                raise error

        try:
            await self.commit_transaction()
        except Exception as e:
            raise self._wrap(e)
        return results

    async def _abort_batch(self) -> None:
        if not self.is_in_transaction():
            return
        try:
            await self.rollback_transaction()
        except Exception as e:
            logger.error(f"Rollback of failed batch on '{self.name}' failed: {e}")
