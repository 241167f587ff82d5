# mergesurge/etl/metadata.py
"""
Column metadata for record types, read once per loader and cached on it.
"""

import dataclasses
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Optional, Tuple, Type

from ..exceptions import SchemaError
from ..utils import validate_identifier
from .columns import COLUMN_KEY, TABLE_ATTR, TableName

logger = logging.getLogger(__name__)

# surrogate key every staging table gets as its first column
IDENTITY_COLUMN = 'id'


@dataclass(frozen=True)
class ColumnMapping:
    """Association between one record field and one staging table column."""
    field_name: str
    column_name: str
    sql_type: str
    nullable: bool = True
    collation: Optional[str] = None

    def get_value(self, record: Any) -> Any:
        """Read this column's value from a record (dataclass instance or mapping)."""
        if isinstance(record, Mapping):
            return record.get(self.field_name)
        return getattr(record, self.field_name, None)


@dataclass(frozen=True)
class TableDescriptor:
    """Staging table name plus its column mappings in declaration order."""
    table_name: str
    columns: Tuple[ColumnMapping, ...]

    @property
    def column_names(self) -> Tuple[str, ...]:
        return tuple(col.column_name for col in self.columns)


class TypeMetadataCache:
    """
    Reads the staging table declaration of a record type.

    The type is inspected exactly once, when the cache is built. Each
    ``InsertBatch`` builds its own cache and reuses it for every run.

    Raises
    ------
    SchemaError
        If the type has no valid ``@staging_table`` name, is not a dataclass,
        declares no columns, or declares the same column name twice.

    Example
    -------
    ::

        cache = TypeMetadataCache(SaleRow)
        cache.table_name            # '##staging_sales'
        [c.column_name for c in cache.columns]
    """

    def __init__(self, record_type: Type):
        self.record_type = record_type
        self.descriptor = TableDescriptor(
            table_name=self._read_table_name(record_type),
            columns=self._read_columns(record_type),
        )
        logger.debug(f"Cached {len(self.columns)} column mappings for {record_type.__name__} "
                     f"-> {self.table_name}")

    @property
    def table_name(self) -> str:
        return self.descriptor.table_name

    @property
    def columns(self) -> Tuple[ColumnMapping, ...]:
        return self.descriptor.columns

    @staticmethod
    def _read_table_name(record_type: Type) -> str:
        declared = getattr(record_type, TABLE_ATTR, None)
        if not isinstance(declared, TableName) or not declared.is_valid:
            raise SchemaError(f"No valid table-name attribute found on {record_type.__name__}")
        return declared.name

    @staticmethod
    def _read_columns(record_type: Type) -> Tuple[ColumnMapping, ...]:
        if not dataclasses.is_dataclass(record_type):
            raise SchemaError(f"{record_type.__name__} must be a dataclass to declare staging columns")

        mappings = []
        seen = set()
        for field in dataclasses.fields(record_type):
            declared = field.metadata.get(COLUMN_KEY)
            if declared is None:
                continue
            column_name = declared.name or field.name
            try:
                validate_identifier(column_name)
            except ValueError as e:
                raise SchemaError(f"Invalid column name on {record_type.__name__}.{field.name}: {e}") from e
            if column_name.lower() == IDENTITY_COLUMN:
                raise SchemaError(f"Column name '{column_name}' on {record_type.__name__} is reserved "
                                  f"for the staging table identity")
            if column_name.lower() in seen:
                raise SchemaError(f"Duplicate column '{column_name}' on {record_type.__name__}")
            seen.add(column_name.lower())
            mappings.append(ColumnMapping(
                field_name=field.name,
                column_name=column_name,
                sql_type=declared.sql_type,
                nullable=declared.nullable,
                collation=declared.collation or None,
            ))

        if not mappings:
            raise SchemaError(f"No fields found on {record_type.__name__}")
        return tuple(mappings)
