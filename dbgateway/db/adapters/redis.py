"""Redis database adapter."""

import logging
import shlex
from typing import Any, Dict, List, Optional, Sequence

from redis.asyncio import Redis

from dbgateway.config.models import DatabaseType
from dbgateway.db.base import DatabaseAdapter, Query
from dbgateway.db.commands import StructuredCommand
from dbgateway.db.models import ColumnInfo, DatabaseStats, FieldInfo, QueryResult, TableInfo
from dbgateway.exceptions import DatabaseConnectionError, QueryValidationError

logger = logging.getLogger(__name__)

SUPPORTED_COMMANDS = (
    "GET", "SET", "DEL", "EXISTS", "KEYS", "HGET", "HSET", "HGETALL", "LPUSH", "RPUSH",
    "LRANGE", "SADD", "SMEMBERS", "ZADD", "ZRANGE", "INFO", "PING",
)


def key_value_descriptor(pattern: str) -> TableInfo:
    """Synthetic two-column descriptor used for every key pattern."""
    return TableInfo(
        name=pattern,
        type='table',
        columns=[
            ColumnInfo(name='key', data_type='string', nullable=False, is_primary_key=True),
            ColumnInfo(name='value', data_type='string', nullable=True),
        ],
    )


def tokenize(command: str, parameters: Optional[Sequence[Any]] = None) -> List[str]:
    """Split a command line and substitute ``?`` tokens with parameters in order.

    Raises:
        QueryValidationError: If ``?`` tokens and parameters do not line up.
    """
    try:
        tokens = shlex.split(command)
    except ValueError as e:
        raise QueryValidationError(f"Malformed Redis command: {e}", query=command) from e

    params = list(parameters or [])
    placeholders = tokens.count('?')
    if placeholders != len(params):
        raise QueryValidationError(
            f"Redis command has {placeholders} '?' token(s) but {len(params)} parameter(s) were supplied",
            query=command,
        )

    values = iter(params)
    return [str(next(values)) if token == '?' else token for token in tokens]


class RedisAdapter(DatabaseAdapter):
    """Redis adapter (redis-py asyncio client).

    Queries are command lines such as ``HGET user:1 name``. Redis has no
    rollback, so transactions only move the state machine.
    """

    kind = DatabaseType.REDIS
    label = "Redis"
    supports_transactions = False

    def __init__(self, config) -> None:
        super().__init__(config)
        self._client: Optional[Redis] = None

    @property
    def native_handle(self) -> Optional[Redis]:
        return self._client

    def _build_client(self) -> Redis:
        options: Dict[str, Any] = {
            'decode_responses': True,
            'socket_timeout': self.config.request_timeout,
            'socket_connect_timeout': self.config.pool_timeout,
            'max_connections': self.config.pool_size,
        }
        if self.config.url:
            return Redis.from_url(self.config.url, **options)

        return Redis(
            host=self.config.host or 'localhost',
            port=self.config.port or 6379,
            db=self.config.db or 0,
            username=self.config.username,
            password=self.config.password,
            ssl=self.config.ssl,
            **options,
        )

    async def connect(self) -> None:
        client = self._build_client()
        try:
            await client.ping()
        except Exception as e:
            self._connected = False
            await client.aclose()
            raise DatabaseConnectionError(f"{self.label} error: {e}", database_type=self.kind.value) from e

        self._client = client
        self._connected = True
        logger.info(f"Connected to {self.label} database '{self.name}'")

    async def disconnect(self) -> None:
        try:
            if self._client is not None:
                await self._client.aclose()
        except Exception as e:
            raise self._wrap(e)
        finally:
            self._client = None
            self._transaction.end()
            self._connected = False

    async def execute_query(self, query: Query, parameters: Optional[Sequence[Any]] = None) -> QueryResult:
        self._require_connection()
        if isinstance(query, StructuredCommand):
            raise QueryValidationError(f"{self.label} expects a command line, not a structured command")

        tokens = tokenize(query, parameters)
        if not tokens:
            raise QueryValidationError("Query must be a non-empty string")
        command, args = tokens[0].upper(), tokens[1:]

        try:
            result = await self._dispatch(command, args)
        except Exception as e:
            raise self._wrap(e)

        if isinstance(result, (set, frozenset)):
            result = sorted(result)
        if isinstance(result, (list, tuple)):
            rows = [{'key': index, 'value': item} for index, item in enumerate(result)]
            fields = [
                FieldInfo(name='key', data_type='integer', nullable=False),
                FieldInfo(name='value', data_type='string', nullable=True),
            ]
        else:
            rows = [{'result': result}]
            fields = [FieldInfo(name='result', data_type='string', nullable=True)]

        return QueryResult(rows=rows, row_count=len(rows), fields=fields)

    async def _dispatch(self, command: str, args: List[str]) -> Any:
        client = self._client

        def arg(index: int, default: str = '') -> str:
            return args[index] if len(args) > index else default

        if command == 'GET':
            return await client.get(arg(0))
        if command == 'SET':
            return await client.set(arg(0), arg(1))
        if command == 'DEL':
            return await client.delete(*(args or ['']))
        if command == 'EXISTS':
            return await client.exists(*(args or ['']))
        if command == 'KEYS':
            return await client.keys(arg(0, '*'))
        if command == 'HGET':
            return await client.hget(arg(0), arg(1))
        if command == 'HSET':
            mapping = dict(zip(args[1::2], args[2::2]))
            return await client.hset(arg(0), mapping=mapping)
        if command == 'HGETALL':
            return await client.hgetall(arg(0))
        if command == 'LPUSH':
            return await client.lpush(arg(0), *args[1:])
        if command == 'RPUSH':
            return await client.rpush(arg(0), *args[1:])
        if command == 'LRANGE':
            return await client.lrange(arg(0), int(arg(1, '0')), int(arg(2, '-1')))
        if command == 'SADD':
            return await client.sadd(arg(0), *args[1:])
        if command == 'SMEMBERS':
            return await client.smembers(arg(0))
        if command == 'ZADD':
            mapping = {member: float(score) for score, member in zip(args[1::2], args[2::2])}
            return await client.zadd(arg(0), mapping)
        if command == 'ZRANGE':
            return await client.zrange(arg(0), int(arg(1, '0')), int(arg(2, '-1')))
        if command == 'INFO':
            return await client.info(arg(0, 'server'))
        if command == 'PING':
            return 'PONG' if await client.ping() else None

        raise QueryValidationError(f"Unsupported Redis command: {command}")

    async def list_table_names(self) -> List[str]:
        """Key patterns: ``prefix:*`` for namespaced keys and ``*`` for the rest."""
        self._require_connection()
        patterns = set()
        try:
            async for key in self._client.scan_iter(match='*', count=500):
                prefix, sep, _ = key.partition(':')
                patterns.add(f"{prefix}:*" if sep else '*')
        except Exception as e:
            raise self._wrap(e)
        return sorted(patterns)

    async def get_table_info(self, table_name: str, schema: Optional[str] = None) -> Optional[TableInfo]:
        self._require_connection()
        return key_value_descriptor(table_name)

    async def get_database_stats(self) -> DatabaseStats:
        self._require_connection()
        try:
            memory = await self._client.info('memory')
        except Exception as e:
            raise self._wrap(e)

        return DatabaseStats(
            total_tables=1,
            total_views=0,
            total_indexes=0,
            database_size=str(memory.get('used_memory_human', '0B')),
            connection_count=1,
        )

    async def validate_connection(self) -> bool:
        if not self.is_connected():
            return False
        try:
            result = await self.execute_query('PING')
            return result.rows[0].get('result') == 'PONG'
        except Exception as e:
            logger.debug(f"{self.label} connection check for '{self.name}' failed: {e}")
            return False
