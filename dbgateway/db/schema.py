"""Schema comparison and validation across connections."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from dbgateway.db.base import DatabaseAdapter
from dbgateway.db.models import ColumnInfo, TableInfo

logger = logging.getLogger(__name__)


@dataclass
class SchemaDifference:
    """One difference between a source and a target schema.

    ``type`` is one of ``table_added``, ``table_removed``, ``column_added``,
    ``column_removed``, ``column_modified``, ``index_added`` or
    ``index_removed``. "Added" means present in the source only.
    """

    type: str
    table_name: str
    details: str
    column_name: Optional[str] = None
    source_value: Optional[Dict[str, Any]] = None
    target_value: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {'type': self.type, 'tableName': self.table_name, 'details': self.details}
        if self.column_name is not None:
            data['columnName'] = self.column_name
        if self.source_value is not None:
            data['sourceValue'] = self.source_value
        if self.target_value is not None:
            data['targetValue'] = self.target_value
        return data


@dataclass
class SchemaComparison:
    differences: List[SchemaDifference] = field(default_factory=list)
    tables_modified: int = 0

    @property
    def identical(self) -> bool:
        return not self.differences

    def count(self, kind: str) -> int:
        return sum(1 for diff in self.differences if diff.type == kind)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'identical': self.identical,
            'differences': [diff.to_dict() for diff in self.differences],
            'summary': {
                'tablesAdded': self.count('table_added'),
                'tablesRemoved': self.count('table_removed'),
                'tablesModified': self.tables_modified,
                'columnsAdded': self.count('column_added'),
                'columnsRemoved': self.count('column_removed'),
                'columnsModified': self.count('column_modified'),
            },
        }


@dataclass
class SchemaValidation:
    issues: List[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.issues

    def to_dict(self) -> Dict[str, Any]:
        return {'valid': self.valid, 'issues': list(self.issues)}


def compare_columns(source: ColumnInfo, target: ColumnInfo) -> List[str]:
    """Property-level differences between two same-named columns."""
    changes = []
    if source.data_type != target.data_type:
        changes.append(f"type: {source.data_type} vs {target.data_type}")
    if source.nullable != target.nullable:
        changes.append(f"nullable: {source.nullable} vs {target.nullable}")
    if source.default_value != target.default_value:
        changes.append(f"default: {source.default_value} vs {target.default_value}")
    if source.max_length != target.max_length:
        changes.append(f"maxLength: {source.max_length} vs {target.max_length}")
    return changes


def compare_tables(source: TableInfo, target: TableInfo) -> List[SchemaDifference]:
    """Column and index differences between two descriptors of the same table."""
    name = source.name
    differences: List[SchemaDifference] = []
    source_columns = {column.name: column for column in source.columns}
    target_columns = {column.name: column for column in target.columns}

    for column_name, column in source_columns.items():
        other = target_columns.get(column_name)
        if other is None:
            differences.append(SchemaDifference(
                type='column_added', table_name=name, column_name=column_name,
                details=f"Column '{column_name}' exists in source but not in target",
                source_value=column.to_dict(),
            ))
            continue
        changes = compare_columns(column, other)
        if changes:
            differences.append(SchemaDifference(
                type='column_modified', table_name=name, column_name=column_name,
                details=', '.join(changes),
                source_value=column.to_dict(), target_value=other.to_dict(),
            ))

    for column_name, column in target_columns.items():
        if column_name not in source_columns:
            differences.append(SchemaDifference(
                type='column_removed', table_name=name, column_name=column_name,
                details=f"Column '{column_name}' exists in target but not in source",
                target_value=column.to_dict(),
            ))

    source_indexes = {index.name: index for index in source.indexes}
    target_indexes = {index.name: index for index in target.indexes}
    for index_name, index in source_indexes.items():
        if index_name not in target_indexes:
            differences.append(SchemaDifference(
                type='index_added', table_name=name,
                details=f"Index '{index_name}' exists in source but not in target",
                source_value=index.to_dict(),
            ))
    for index_name, index in target_indexes.items():
        if index_name not in source_indexes:
            differences.append(SchemaDifference(
                type='index_removed', table_name=name,
                details=f"Index '{index_name}' exists in target but not in source",
                target_value=index.to_dict(),
            ))

    return differences


async def compare_schemas(source: DatabaseAdapter, target: DatabaseAdapter) -> SchemaComparison:
    """Compare every table of two connections by name.

    Args:
        source: Adapter whose schema is the reference.
        target: Adapter compared against the reference.

    Returns:
        A SchemaComparison listing table, column and index differences.

    Raises:
        NotConnectedError: If either adapter is not connected.
        DatabaseError: If either listing fails.
    """
    source_tables = {table.name: table for table in await source.get_tables()}
    target_tables = {table.name: table for table in await target.get_tables()}
    comparison = SchemaComparison()

    for name, table in source_tables.items():
        other = target_tables.get(name)
        if other is None:
            comparison.differences.append(SchemaDifference(
                type='table_added', table_name=name,
                details=f"Table '{name}' exists in source but not in target",
            ))
            continue
        table_differences = compare_tables(table, other)
        if table_differences:
            comparison.tables_modified += 1
            comparison.differences.extend(table_differences)

    for name in target_tables:
        if name not in source_tables:
            comparison.differences.append(SchemaDifference(
                type='table_removed', table_name=name,
                details=f"Table '{name}' exists in target but not in source",
            ))

    logger.debug(
        f"Compared '{source.name}' with '{target.name}': {len(comparison.differences)} difference(s)"
    )
    return comparison


async def validate_schema(adapter: DatabaseAdapter) -> SchemaValidation:
    """Report tables without a primary key and columns without a type.

    A table that cannot be described is reported as an issue rather than
    failing the whole run.
    """
    validation = SchemaValidation()
    for table in await adapter.get_tables():
        try:
            info = await adapter.get_table_info(table.name, table.schema)
        except Exception as e:
            validation.issues.append(f"Error validating table '{table.name}': {e}")
            continue
        if info is None:
            validation.issues.append(f"Table '{table.name}' not found or inaccessible")
            continue

        has_primary_key = bool(info.primary_keys) or any(
            constraint.type == 'PRIMARY KEY' for constraint in info.constraints
        )
        if not has_primary_key:
            validation.issues.append(f"Table '{table.name}' has no primary key")
        for column in info.columns:
            if not column.data_type:
                validation.issues.append(f"Column '{column.name}' in table '{table.name}' has no type")

    return validation
