"""MongoDB database adapter."""

import datetime
import logging
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import quote_plus

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorClientSession, AsyncIOMotorDatabase

from dbgateway.config.models import DatabaseType
from dbgateway.db.base import DatabaseAdapter, Query
from dbgateway.db.commands import StructuredCommand
from dbgateway.db.models import (
    ColumnInfo,
    DatabaseStats,
    FieldInfo,
    IndexInfo,
    QueryResult,
    TableInfo,
    format_megabytes,
)
from dbgateway.exceptions import DatabaseConnectionError, QueryValidationError

logger = logging.getLogger(__name__)

OPERATIONS = (
    "find", "findone", "insertone", "insertmany", "updateone", "updatemany",
    "deleteone", "deletemany", "count", "distinct", "aggregate",
)


def to_plain(value: Any) -> Any:
    """Recursively render ObjectId values as strings."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        return {key: to_plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_plain(item) for item in value]
    return value


def mongo_type(value: Any) -> str:
    if value is None:
        return 'null'
    if isinstance(value, (list, tuple)):
        return 'array'
    if isinstance(value, (datetime.datetime, datetime.date)):
        return 'date'
    if isinstance(value, ObjectId):
        return 'objectId'
    if isinstance(value, dict):
        return 'object'
    if isinstance(value, str):
        return 'string'
    if isinstance(value, bool):
        return 'boolean'
    if isinstance(value, (int, float)):
        return 'number'
    return 'unknown'


class MongoDBAdapter(DatabaseAdapter):
    """MongoDB adapter (motor driver).

    Queries are structured commands::

        {"collection": "users", "operation": "find", "filter": {"age": {"$gt": 30}}}

    While a transaction is open every command runs inside its session.
    """

    kind = DatabaseType.MONGODB
    label = "MongoDB"

    def __init__(self, config) -> None:
        super().__init__(config)
        self._client: Optional[AsyncIOMotorClient] = None
        self._db: Optional[AsyncIOMotorDatabase] = None
        self._session: Optional[AsyncIOMotorClientSession] = None

    @property
    def native_handle(self) -> Optional[AsyncIOMotorDatabase]:
        return self._db

    def build_connection_string(self) -> str:
        if self.config.url:
            return self.config.url

        credentials = ''
        if self.config.username:
            credentials = f"{quote_plus(self.config.username)}:{quote_plus(self.config.password or '')}@"
        return (
            f"mongodb://{credentials}{self.config.host or 'localhost'}:{self.config.port or 27017}"
            f"/{self.config.database or 'test'}"
        )

    async def connect(self) -> None:
        options: Dict[str, Any] = {
            'maxPoolSize': self.config.pool_size,
            'serverSelectionTimeoutMS': int(self.config.pool_timeout * 1000),
            'socketTimeoutMS': int(self.config.request_timeout * 1000),
        }
        if self.config.auth_source:
            options['authSource'] = self.config.auth_source
        if self.config.ssl:
            options['tls'] = True

        client = AsyncIOMotorClient(self.build_connection_string(), **options)
        try:
            await client.admin.command('ping')
        except Exception as e:
            self._connected = False
            client.close()
            raise DatabaseConnectionError(f"{self.label} error: {e}", database_type=self.kind.value) from e

        self._client = client
        self._db = client.get_default_database(default=self.config.database or 'test')
        self._connected = True
        logger.info(f"Connected to {self.label} database '{self.name}'")

    async def disconnect(self) -> None:
        try:
            if self._session is not None:
                await self._session.end_session()
            if self._client is not None:
                self._client.close()
        except Exception as e:
            raise self._wrap(e)
        finally:
            self._session = None
            self._client = None
            self._db = None
            self._transaction.end()
            self._connected = False

    async def execute_query(self, query: Query, parameters: Optional[Sequence[Any]] = None) -> QueryResult:
        self._require_connection()
        command = StructuredCommand.parse(query)
        if command.verb not in OPERATIONS:
            raise QueryValidationError(f"Unsupported MongoDB operation: {command.operation}")

        try:
            rows, row_count = await self._run(command)
        except Exception as e:
            raise self._wrap(e)

        fields = []
        if rows:
            fields = [
                FieldInfo(name=key, data_type=mongo_type(value), nullable=True)
                for key, value in rows[0].items()
            ]
        return QueryResult(rows=to_plain(rows), row_count=row_count, fields=fields)

    async def _run(self, command: StructuredCommand):
        """Execute one command and return ``(rows, row_count)``."""
        coll = self._db[command.target]
        verb = command.verb
        filter_ = command.get('filter', {})
        update = command.get('update')
        options = command.get('options', {})
        session = self._session

        if verb == 'find':
            documents = await coll.find(filter_, session=session, **options).to_list(length=None)
            return documents, len(documents)
        if verb == 'findone':
            document = await coll.find_one(filter_, session=session, **options)
            return ([document], 1) if document is not None else ([], 0)
        if verb == 'insertone':
            result = await coll.insert_one(update or command.get('document', {}), session=session)
            return [{'acknowledged': result.acknowledged, 'insertedId': result.inserted_id}], 1
        if verb == 'insertmany':
            documents = update or command.get('documents', [])
            if not isinstance(documents, list):
                documents = [documents]
            result = await coll.insert_many(documents, session=session)
            ids = list(result.inserted_ids)
            return [{'acknowledged': result.acknowledged, 'insertedIds': ids}], len(ids)
        if verb in ('updateone', 'updatemany'):
            method = coll.update_one if verb == 'updateone' else coll.update_many
            result = await method(filter_, update or {}, session=session, **options)
            row = {
                'acknowledged': result.acknowledged,
                'matchedCount': result.matched_count,
                'modifiedCount': result.modified_count,
                'upsertedId': result.upserted_id,
            }
            return [row], result.modified_count
        if verb in ('deleteone', 'deletemany'):
            method = coll.delete_one if verb == 'deleteone' else coll.delete_many
            result = await method(filter_, session=session, **options)
            return [{'acknowledged': result.acknowledged, 'deletedCount': result.deleted_count}], result.deleted_count
        if verb == 'count':
            count = await coll.count_documents(filter_, session=session, **options)
            return [{'count': count}], 1
        if verb == 'distinct':
            key = command.get('field') or command.get('key') or update
            if not isinstance(key, str):
                raise QueryValidationError("distinct requires a field name")
            values = await coll.distinct(key, filter_, session=session)
            return [{'value': value} for value in values], len(values)
        if verb == 'aggregate':
            pipeline = command.get('pipeline') or update or []
            if not isinstance(pipeline, list):
                pipeline = [pipeline]
            documents = await coll.aggregate(pipeline, session=session, **options).to_list(length=None)
            return documents, len(documents)

        raise QueryValidationError(f"Unsupported MongoDB operation: {command.operation}")

    async def list_table_names(self) -> List[str]:
        self._require_connection()
        try:
            return sorted(await self._db.list_collection_names())
        except Exception as e:
            raise self._wrap(e)

    async def get_table_info(self, table_name: str, schema: Optional[str] = None) -> Optional[TableInfo]:
        """Describe a collection from one sampled document. None if it is empty."""
        self._require_connection()
        try:
            coll = self._db[table_name]
            sample = await coll.find_one({})
            if sample is None:
                return None
            index_information = await coll.index_information()
        except Exception as e:
            raise self._wrap(e)

        columns = [
            ColumnInfo(
                name=key,
                data_type=mongo_type(value),
                nullable=True,
                is_primary_key=key == '_id',
            )
            for key, value in sample.items()
        ]
        indexes = [
            IndexInfo(
                name=index_name or 'unnamed',
                columns=[field for field, _ in spec.get('key', [])],
                unique=bool(spec.get('unique', False)),
                type='btree',
            )
            for index_name, spec in index_information.items()
        ]
        return TableInfo(name=table_name, type='table', columns=columns, indexes=indexes)

    async def get_database_stats(self) -> DatabaseStats:
        self._require_connection()
        try:
            stats = await self._db.command('dbstats')
            collections = await self._db.list_collection_names()
        except Exception as e:
            raise self._wrap(e)

        return DatabaseStats(
            total_tables=len(collections),
            total_views=0,
            total_indexes=int(stats.get('indexes', 0) or 0),
            database_size=format_megabytes(stats.get('dataSize', 0)),
            connection_count=1,
        )

    async def validate_connection(self) -> bool:
        if not self.is_connected():
            return False
        try:
            await self._client.admin.command('ping')
            return True
        except Exception as e:
            logger.debug(f"{self.label} connection check for '{self.name}' failed: {e}")
            return False

    async def _begin(self) -> None:
        self._require_connection()
        session = await self._client.start_session()
        session.start_transaction()
        self._session = session

    async def _commit(self) -> None:
        session, self._session = self._session, None
        try:
            await session.commit_transaction()
        finally:
            await session.end_session()

    async def _rollback(self) -> None:
        session, self._session = self._session, None
        try:
            await session.abort_transaction()
        finally:
            await session.end_session()
