"""Normalized result and descriptor containers shared by every adapter."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

import pandas as pd

from dbgateway.db.commands import StructuredCommand


@dataclass
class FieldInfo:
    """Description of one result column."""

    name: str
    data_type: str = "unknown"
    nullable: bool = True
    default_value: Any = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'name': self.name,
            'dataType': self.data_type,
            'nullable': self.nullable,
        }
        if self.default_value is not None:
            data['defaultValue'] = self.default_value
        return data


@dataclass
class QueryResult:
    """Container for query results.

    ``row_count`` is the number of rows returned for reads and the number of
    rows affected for writes.
    """

    rows: List[Dict[str, Any]] = field(default_factory=list)
    row_count: int = 0
    fields: List[FieldInfo] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        """Check if result is empty."""
        return not self.rows

    @property
    def columns(self) -> List[str]:
        if self.fields:
            return [f.name for f in self.fields]
        return list(self.rows[0].keys()) if self.rows else []

    def to_dict(self) -> Dict[str, Any]:
        """Convert result to the wire shape returned by tool calls."""
        return {
            'rows': self.rows,
            'rowCount': self.row_count,
            'fields': [f.to_dict() for f in self.fields],
        }

    def to_dataframe(self) -> pd.DataFrame:
        """Return the rows as a pandas DataFrame."""
        if not self.rows:
            return pd.DataFrame(columns=self.columns)
        return pd.DataFrame(self.rows, columns=self.columns or None)


@dataclass
class ColumnInfo:
    """Column of a table descriptor."""

    name: str
    data_type: str
    nullable: bool = True
    default_value: Any = None
    is_primary_key: bool = False
    is_foreign_key: bool = False
    max_length: Optional[int] = None
    precision: Optional[int] = None
    scale: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'dataType': self.data_type,
            'nullable': self.nullable,
            'defaultValue': self.default_value,
            'isPrimaryKey': self.is_primary_key,
            'isForeignKey': self.is_foreign_key,
            'maxLength': self.max_length,
            'precision': self.precision,
            'scale': self.scale,
        }


@dataclass
class IndexInfo:
    """Index of a table descriptor."""

    name: str
    columns: List[str] = field(default_factory=list)
    unique: bool = False
    type: str = "btree"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'columns': list(self.columns),
            'unique': self.unique,
            'type': self.type,
        }


@dataclass
class ConstraintInfo:
    """Constraint of a table descriptor.

    ``type`` is one of ``PRIMARY KEY``, ``FOREIGN KEY``, ``UNIQUE``, ``CHECK``
    or ``NOT NULL``.
    """

    name: str
    type: str
    columns: List[str] = field(default_factory=list)
    referenced_table: Optional[str] = None
    referenced_columns: Optional[List[str]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'type': self.type,
            'columns': list(self.columns),
            'referencedTable': self.referenced_table,
            'referencedColumns': self.referenced_columns,
        }


@dataclass
class TableInfo:
    """Schema descriptor for a table, collection, key pattern or keyspace table."""

    name: str
    schema: Optional[str] = None
    type: str = "table"
    columns: List[ColumnInfo] = field(default_factory=list)
    indexes: List[IndexInfo] = field(default_factory=list)
    constraints: List[ConstraintInfo] = field(default_factory=list)

    @property
    def primary_keys(self) -> List[str]:
        return [c.name for c in self.columns if c.is_primary_key]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'schema': self.schema,
            'type': self.type,
            'columns': [c.to_dict() for c in self.columns],
            'indexes': [i.to_dict() for i in self.indexes],
            'constraints': [c.to_dict() for c in self.constraints],
        }


@dataclass
class DatabaseStats:
    """Summary statistics for one connection."""

    total_tables: int = 0
    total_views: int = 0
    total_indexes: int = 0
    database_size: str = "Unknown"
    connection_count: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            'totalTables': self.total_tables,
            'totalViews': self.total_views,
            'totalIndexes': self.total_indexes,
            'databaseSize': self.database_size,
            'connectionCount': self.connection_count,
        }


@dataclass
class DatabaseOperation:
    """One step of a batch."""

    query: Union[str, StructuredCommand]
    parameters: Optional[List[Any]] = None
    type: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Union[Dict[str, Any], "DatabaseOperation"]) -> "DatabaseOperation":
        """Build an operation from its wire mapping (``type``, ``query``, ``parameters``)."""
        if isinstance(data, cls):
            return data
        if not isinstance(data, dict) or 'query' not in data:
            raise ValueError("Each operation must be an object with a 'query' field")
        query = data['query']
        if isinstance(query, dict):
            query = StructuredCommand.parse(query)
        return cls(
            query=query,
            parameters=data.get('parameters'),
            type=data.get('type'),
        )


def format_megabytes(size_bytes: Union[int, float, None]) -> str:
    """Render a byte count as ``"N.NN MB"``."""
    return f"{(size_bytes or 0) / (1024 * 1024):.2f} MB"
