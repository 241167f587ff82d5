# mergesurge/etl/columns.py
"""
Declarations that describe how a record type maps onto a staging table.

Record types are dataclasses. The class decorator names the staging table and
``column()`` marks each field that becomes a column::

    @staging_table('##staging_sales')
    @dataclass(frozen=True)
    class SaleRow:
        sku: str = column('nvarchar(50)', nullable=False)
        qty: int = column('int', nullable=False)
        region: Optional[str] = column('nvarchar(20)', collation='Latin1_General_CI_AS', default=None)
        source_file: str = ''      # not a column

Fields without ``column()`` are ignored by the loader.
"""

import dataclasses
from dataclasses import dataclass
from typing import Any, Optional

from ..utils import validate_table_name

COLUMN_KEY = 'mergesurge.column'
TABLE_ATTR = '__staging_table__'


@dataclass(frozen=True)
class Column:
    """Column declaration stored in a dataclass field's metadata."""
    sql_type: str
    name: Optional[str] = None
    nullable: bool = True
    collation: Optional[str] = None


@dataclass(frozen=True)
class TableName:
    """Staging table name declared on a record type."""
    name: str

    @property
    def is_valid(self) -> bool:
        try:
            validate_table_name(self.name)
        except ValueError:
            return False
        return True


def column(sql_type: str, name: Optional[str] = None, nullable: bool = True,
           collation: Optional[str] = None, **field_kwargs: Any):
    """
    Declare a dataclass field as a staging table column.

    Args:
        sql_type: Column type as written in DDL, e.g. ``'nvarchar(50)'`` or ``'decimal(18, 4)'``
        name: Column name, defaults to the field name
        nullable: False adds NOT NULL and makes the loader reject None values
        collation: Optional ``COLLATE`` clause for text columns
        **field_kwargs: Passed to ``dataclasses.field`` (default, default_factory, repr...)
    """
    metadata = dict(field_kwargs.pop('metadata', None) or {})
    metadata[COLUMN_KEY] = Column(sql_type=sql_type, name=name, nullable=nullable, collation=collation)
    return dataclasses.field(metadata=metadata, **field_kwargs)


def staging_table(name: str):
    """Class decorator naming the staging table a record type loads into."""
    def decorator(cls):
        setattr(cls, TABLE_ATTR, TableName(name))
        return cls
    return decorator
