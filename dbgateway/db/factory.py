"""Adapter factory and per-kind configuration checks."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Type, Union

from pydantic import ValidationError

from dbgateway.config.models import BaseConnectionConfig, DatabaseType, parse_connection_config
from dbgateway.config.parser import expand_connection_url, format_validation_error
from dbgateway.db.adapters import (
    CassandraAdapter,
    DynamoDBAdapter,
    MongoDBAdapter,
    MSSQLAdapter,
    MySQLAdapter,
    PostgreSQLAdapter,
    RedisAdapter,
    SQLiteAdapter,
)
from dbgateway.db.base import DatabaseAdapter
from dbgateway.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

ConfigInput = Union[BaseConnectionConfig, Mapping[str, Any]]


@dataclass
class ConfigValidationResult:
    """Outcome of :meth:`DatabaseAdapterFactory.validate_config`."""
    valid: bool
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {'valid': self.valid, 'errors': list(self.errors)}


class DatabaseAdapterFactory:
    """Factory for creating database adapters."""

    _adapters: Dict[DatabaseType, Type[DatabaseAdapter]] = {
        DatabaseType.POSTGRESQL: PostgreSQLAdapter,
        DatabaseType.MYSQL: MySQLAdapter,
        DatabaseType.SQLITE: SQLiteAdapter,
        DatabaseType.REDIS: RedisAdapter,
        DatabaseType.MONGODB: MongoDBAdapter,
        DatabaseType.CASSANDRA: CassandraAdapter,
        DatabaseType.MSSQL: MSSQLAdapter,
        DatabaseType.DYNAMODB: DynamoDBAdapter,
    }

    @classmethod
    def create_database(cls, config: ConfigInput) -> DatabaseAdapter:
        """Create a database adapter based on configuration.

        Args:
            config: A connection config model, or a mapping with a ``type`` key
                or a ``url`` to expand.

        Returns:
            An unconnected adapter instance.

        Raises:
            ConfigurationError: If the kind is not supported or the mapping
                does not describe a valid configuration.
        """
        if not isinstance(config, BaseConnectionConfig):
            config = expand_connection_url(config)
            kind = (config or {}).get('type') if isinstance(config, Mapping) else None
            if kind not in cls._kind_values():
                raise ConfigurationError(f"Unsupported database type: {kind}")
            try:
                config = parse_connection_config(dict(config))
            except ValidationError as e:
                raise ConfigurationError(
                    f"Invalid {kind} configuration: {'; '.join(format_validation_error(e))}"
                ) from e

        adapter_class = cls._adapters.get(config.kind)
        if adapter_class is None:
            raise ConfigurationError(f"Unsupported database type: {config.kind.value}")

        logger.debug(f"Creating {adapter_class.__name__} for '{config.name or config.kind.value}'")
        return adapter_class(config)

    @classmethod
    def get_supported_types(cls) -> List[DatabaseType]:
        """Get list of supported database types."""
        return list(DatabaseType)

    @classmethod
    def _kind_values(cls) -> List[str]:
        return [kind.value for kind in cls.get_supported_types()]

    @classmethod
    def validate_config(cls, config: Optional[ConfigInput]) -> ConfigValidationResult:
        """Check that a configuration carries enough to attempt a connection.

        Never raises; every problem is reported in ``errors``.
        """
        errors: List[str] = []

        if isinstance(config, BaseConnectionConfig):
            model: Optional[BaseConnectionConfig] = config
        else:
            config = expand_connection_url(config)
            data = dict(config) if isinstance(config, Mapping) else {}
            kind = data.get('type')
            if not kind:
                errors.append("Database type is required")
                return ConfigValidationResult(valid=False, errors=errors)
            if kind not in cls._kind_values():
                errors.append(f"Unsupported database type: {kind}")
                return ConfigValidationResult(valid=False, errors=errors)
            try:
                model = parse_connection_config(data)
            except ValidationError as e:
                errors.extend(format_validation_error(e))
                return ConfigValidationResult(valid=False, errors=errors)

        kind = model.kind
        has_url = bool(model.url)

        if kind in (DatabaseType.POSTGRESQL, DatabaseType.MYSQL):
            if not model.host and not has_url:
                errors.append("Host or URL is required for PostgreSQL/MySQL")
            if not model.database and not has_url:
                errors.append("Database name is required for PostgreSQL/MySQL")
        elif kind == DatabaseType.SQLITE:
            if not model.filename and not model.database and not has_url:
                errors.append("Filename or database name is required for SQLite")
        elif kind == DatabaseType.REDIS:
            if not model.host and not has_url:
                errors.append("Host or URL is required for Redis")
        elif kind == DatabaseType.MONGODB:
            if not model.host and not has_url:
                errors.append("Host or URL is required for MongoDB")
            if not model.database and not has_url:
                errors.append("Database name is required for MongoDB")
        elif kind == DatabaseType.CASSANDRA:
            if not model.host and not has_url:
                errors.append("Host or URL is required for Cassandra")
            if not model.keyspace and not model.database and not has_url:
                errors.append("Keyspace or database name is required for Cassandra")
        elif kind == DatabaseType.MSSQL:
            if not model.host and not has_url:
                errors.append("Host or URL is required for Microsoft SQL Server")
            if not model.database and not has_url:
                errors.append("Database name is required for Microsoft SQL Server")
        elif kind == DatabaseType.DYNAMODB:
            if not model.region and not model.endpoint:
                errors.append("Region or endpoint is required for DynamoDB")

        return ConfigValidationResult(valid=not errors, errors=errors)

    @classmethod
    def get_default_config(cls, db_type: Union[DatabaseType, str]) -> Dict[str, Any]:
        """Seed configuration for a kind.

        Raises:
            ConfigurationError: If the kind is not supported.
        """
        try:
            kind = DatabaseType(db_type)
        except ValueError as e:
            raise ConfigurationError(f"Unsupported database type: {db_type}") from e

        if kind == DatabaseType.SQLITE:
            return {'type': kind.value, 'filename': ':memory:'}
        if kind == DatabaseType.DYNAMODB:
            return {'type': kind.value, 'region': 'us-east-1'}
        return {'type': kind.value}

