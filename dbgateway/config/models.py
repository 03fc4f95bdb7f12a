"""Pydantic models for dbgateway configuration."""

from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing_extensions import Annotated


class DatabaseType(str, Enum):
    """Supported backend kinds."""
    POSTGRESQL = "postgresql"
    MYSQL = "mysql"
    SQLITE = "sqlite"
    REDIS = "redis"
    MONGODB = "mongodb"
    CASSANDRA = "cassandra"
    MSSQL = "mssql"
    DYNAMODB = "dynamodb"


class BaseConnectionConfig(BaseModel):
    """Fields shared by every backend kind.

    Nothing here is required: completeness is a per-kind question answered by
    ``DatabaseAdapterFactory.validate_config`` before a connection is attempted.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: Optional[str] = None
    url: Optional[str] = None
    host: Optional[str] = None
    port: Optional[int] = None
    database: Optional[str] = None
    username: Optional[str] = Field(default=None, validation_alias=AliasChoices("username", "user"))
    password: Optional[str] = None
    ssl: bool = False
    options: Dict[str, Any] = Field(default_factory=dict)

    # Passed through to the native driver where the backend supports them
    pool_size: int = Field(default=20, ge=1, le=1000, description="Maximum pooled connections")
    pool_timeout: float = Field(default=30.0, gt=0, description="Connection acquire timeout in seconds")
    request_timeout: float = Field(default=30.0, gt=0, description="Per-request timeout in seconds")

    @field_validator('port')
    def validate_port(cls, v):
        """Validate port number range."""
        if v is not None and (v < 1 or v > 65535):
            raise ValueError("Port must be between 1 and 65535")
        return v

    @property
    def kind(self) -> DatabaseType:
        return DatabaseType(getattr(self, "type"))


class PostgreSQLConfig(BaseConnectionConfig):
    type: Literal["postgresql"] = "postgresql"


class MySQLConfig(BaseConnectionConfig):
    type: Literal["mysql"] = "mysql"


class SQLiteConfig(BaseConnectionConfig):
    type: Literal["sqlite"] = "sqlite"
    filename: Optional[str] = Field(default=None, validation_alias=AliasChoices("filename", "path"))


class RedisConfig(BaseConnectionConfig):
    type: Literal["redis"] = "redis"
    db: Optional[int] = Field(default=None, ge=0)


class MongoDBConfig(BaseConnectionConfig):
    type: Literal["mongodb"] = "mongodb"
    auth_source: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("auth_source", "authSource")
    )


class CassandraConfig(BaseConnectionConfig):
    type: Literal["cassandra"] = "cassandra"
    keyspace: Optional[str] = None
    datacenter: Optional[str] = None


class MSSQLConfig(BaseConnectionConfig):
    type: Literal["mssql"] = "mssql"
    instance_name: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("instance_name", "instanceName")
    )
    trust_server_certificate: bool = Field(
        default=False,
        validation_alias=AliasChoices("trust_server_certificate", "trustServerCertificate"),
    )
    odbc_driver: str = "ODBC Driver 18 for SQL Server"


class DynamoDBConfig(BaseConnectionConfig):
    type: Literal["dynamodb"] = "dynamodb"
    region: Optional[str] = None
    access_key_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("access_key_id", "accessKeyId")
    )
    secret_access_key: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("secret_access_key", "secretAccessKey")
    )
    endpoint: Optional[str] = None


ConnectionConfig = Annotated[
    Union[
        PostgreSQLConfig,
        MySQLConfig,
        SQLiteConfig,
        RedisConfig,
        MongoDBConfig,
        CassandraConfig,
        MSSQLConfig,
        DynamoDBConfig,
    ],
    Field(discriminator="type"),
]

_connection_config_adapter: TypeAdapter = TypeAdapter(ConnectionConfig)


def parse_connection_config(data: Any) -> BaseConnectionConfig:
    """Build the kind-specific config model from a mapping.

    Raises:
        pydantic.ValidationError: If the mapping has no valid ``type`` or a
            field has the wrong shape.
    """
    if isinstance(data, BaseConnectionConfig):
        return data
    return _connection_config_adapter.validate_python(data)


class ServerSettings(BaseModel):
    """Identity reported by the tool surface."""
    name: str = Field(default="dbgateway")
    version: str = Field(default="1.0.0")
    description: str = Field(default="A gateway exposing multiple database backends through one tool surface")


class LoggingSettings(BaseModel):
    """Logging output settings."""
    level: str = Field(default="info", pattern="^(error|warn|warning|info|debug)$")
    format: str = Field(default="text", pattern="^(json|text)$")


class GatewayConfig(BaseModel):
    """Main configuration model for dbgateway."""
    databases: List[ConnectionConfig] = Field(default_factory=list)
    default_connection: Optional[str] = None
    server: ServerSettings = Field(default_factory=ServerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @field_validator('databases', mode='before')
    def accept_named_mapping(cls, v):
        """Allow ``databases`` as a ``{name: config}`` mapping as well as a list."""
        if isinstance(v, dict):
            return [{**(cfg or {}), 'name': name} for name, cfg in v.items()]
        return v

    @model_validator(mode='after')
    def validate_connection_names(self):
        """Ensure every configured connection has a unique name."""
        seen = set()
        for db in self.databases:
            if not db.name:
                raise ValueError("Every configured database requires a 'name'")
            if db.name in seen:
                raise ValueError(f"Duplicate database name '{db.name}'")
            seen.add(db.name)
        return self

    @model_validator(mode='after')
    def validate_default_connection(self):
        """Ensure default_connection refers to a configured database."""
        if self.default_connection and self.default_connection not in self.database_names:
            raise ValueError(f"default_connection '{self.default_connection}' not found in databases")
        return self

    @property
    def database_names(self) -> List[str]:
        return [db.name for db in self.databases]


class EnvironmentSettings(BaseSettings):
    """Environment-specific settings."""
    model_config = SettingsConfigDict(env_prefix="DBGATEWAY_", case_sensitive=False)

    log_level: str = Field(default="INFO")
    debug: bool = Field(default=False)
    config_file: Optional[str] = Field(default=None)
