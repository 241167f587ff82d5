# mergesurge/etl/staging.py
"""
Staging table DDL and INSERT generation.

The generated shapes are what existing merge scripts are written against:

SQL Server::

    IF OBJECT_ID(N'tempdb..#staging_sales', N'U') IS NOT NULL DROP TABLE [#staging_sales]

    CREATE TABLE [dbo].[#staging_sales] (
        [id] [int] IDENTITY(1, 1) NOT NULL PRIMARY KEY,
        [sku] nvarchar(50) NOT NULL,
        [region] nvarchar(20) COLLATE Latin1_General_CI_AS NULL
    );

    INSERT INTO [#staging_sales] ([sku], [region]) VALUES (?, ?)

PostgreSQL and SQLite get the same table with their own identity syntax. A
leading ``#`` on the table name means temp scope: ``tempdb`` on SQL Server,
``CREATE TEMP TABLE`` on PostgreSQL and the ``temp`` schema on SQLite.
Loading still needs a name every session can see, so ``prepare`` only accepts
``##name`` on SQL Server or a permanent table.
"""

import logging
from typing import List, Optional, Sequence

from ..config import get_setting
from ..exceptions import SchemaError
from ..utils import TEMP_MARKER, quote_identifier, split_temp_marker
from .metadata import IDENTITY_COLUMN, ColumnMapping

logger = logging.getLogger(__name__)

SUPPORTED_SERVER_TYPES = ('sqlserver', 'postgres', 'sqlite')

DEFAULT_SCHEMAS = {
    'sqlserver': 'dbo',
    'postgres': 'public',
    'sqlite': 'main',
}


def _check_server_type(server_type: str) -> None:
    if server_type not in SUPPORTED_SERVER_TYPES:
        raise SchemaError(f"Staging tables are not supported for database type '{server_type}'. "
                          f"Supported: {', '.join(SUPPORTED_SERVER_TYPES)}")


def check_shared_visibility(server_type: Optional[str], table_name: str) -> None:
    """
    Reject staging names that chunk workers could not see.

    Every chunk inserts over its own connection, so the table must outlive the
    session that created it. ``#name`` is session scoped everywhere; ``##name``
    is only shared on SQL Server. Pass ``server_type=None`` to check what can
    be known before connecting.

    Raises:
        SchemaError: If the name is scoped to the creating session
    """
    marker, _ = split_temp_marker(table_name)
    if not marker:
        return
    if marker == TEMP_MARKER or (server_type is not None and server_type != 'sqlserver'):
        where = f" on {server_type}" if server_type else ''
        raise SchemaError(f"Staging table {table_name} would only be visible to the session creating it{where}; "
                          f"chunk workers use their own connections. Use a '##' name on SQL Server "
                          f"or a permanent table name.")


def resolve_schema(server_type: str, schema: Optional[str] = None) -> str:
    """Schema for permanent staging tables: argument, then setting, then server default."""
    return schema or get_setting('staging_schema') or DEFAULT_SCHEMAS[server_type]


def qualified_name(server_type: str, table_name: str, schema: Optional[str] = None) -> str:
    """Quoted name used to drop and insert into the staging table."""
    _check_server_type(server_type)
    marker, bare = split_temp_marker(table_name)
    if server_type == 'sqlserver':
        if marker:
            return quote_identifier(table_name, server_type)
        return f"{quote_identifier(resolve_schema(server_type, schema), server_type)}." \
               f"{quote_identifier(table_name, server_type)}"
    if server_type == 'postgres':
        if marker:
            return quote_identifier(bare)
        return f"{quote_identifier(resolve_schema(server_type, schema))}.{quote_identifier(bare)}"
    # sqlite
    if marker:
        return f"temp.{quote_identifier(bare)}"
    return f"{quote_identifier(resolve_schema(server_type, schema))}.{quote_identifier(bare)}"


def _column_definition(server_type: str, col: ColumnMapping) -> str:
    parts = [quote_identifier(col.column_name, server_type), col.sql_type.strip()]
    if col.collation:
        parts.append(f"COLLATE {col.collation}")
    parts.append('NULL' if col.nullable else 'NOT NULL')
    return ' '.join(parts)


def _identity_definition(server_type: str) -> str:
    if server_type == 'sqlserver':
        return f"[{IDENTITY_COLUMN}] [int] IDENTITY(1, 1) NOT NULL PRIMARY KEY"
    elif server_type == 'postgres':
        return f"{IDENTITY_COLUMN} SERIAL PRIMARY KEY"
    return f"{IDENTITY_COLUMN} INTEGER PRIMARY KEY AUTOINCREMENT"


def create_staging_sql(server_type: str, table_name: str, columns: Sequence[ColumnMapping],
                       schema: Optional[str] = None) -> List[str]:
    """
    Generate the statements that drop (if present) and create the staging table.

    SQL Server gets a single batch; PostgreSQL and SQLite drivers run one
    statement per execute, so they get the drop and the create separately.

    Returns:
        List of SQL statements to execute in order
    """
    _check_server_type(server_type)
    if not columns:
        raise SchemaError(f"No columns to create staging table {table_name}")

    marker, bare = split_temp_marker(table_name)
    target = qualified_name(server_type, table_name, schema)
    col_defs = [_identity_definition(server_type)]
    col_defs.extend(_column_definition(server_type, col) for col in columns)
    body = ",\n    ".join(col_defs)

    if server_type == 'sqlserver':
        if marker:
            existence_name = f"tempdb..{table_name}"
        else:
            existence_name = f"{resolve_schema(server_type, schema)}.{table_name}"
        create_name = (f"{quote_identifier(resolve_schema(server_type, schema), server_type)}."
                       f"{quote_identifier(table_name, server_type)}")
        sql = (f"IF OBJECT_ID(N'{existence_name}', N'U') IS NOT NULL DROP TABLE {target}\n\n"
               f"CREATE TABLE {create_name} (\n    {body}\n);")
        statements = [sql]
    elif server_type == 'postgres':
        if marker:
            statements = [f"DROP TABLE IF EXISTS pg_temp.{quote_identifier(bare)}",
                          f"CREATE TEMP TABLE {target} (\n    {body}\n)"]
        else:
            statements = [f"DROP TABLE IF EXISTS {target}",
                          f"CREATE TABLE {target} (\n    {body}\n)"]
    else:
        statements = [f"DROP TABLE IF EXISTS {target}",
                      f"CREATE TABLE {target} (\n    {body}\n)"]

    for sql in statements:
        logger.debug(f"Generated staging DDL for {table_name}:\n{sql}")
    return statements


def build_insert_sql(server_type: str, table_name: str, columns: Sequence[ColumnMapping],
                     schema: Optional[str] = None) -> str:
    """
    Generate the INSERT used for every row of a chunk.

    Placeholders are named ``:p0``, ``:p1``... in column order; the cursor
    converts them to the driver's paramstyle.
    """
    target = qualified_name(server_type, table_name, schema)
    cols_str = ', '.join(quote_identifier(col.column_name, server_type) for col in columns)
    params_str = ', '.join(f':p{idx}' for idx in range(len(columns)))
    return f"INSERT INTO {target} ({cols_str}) VALUES ({params_str})"


class StagingTableManager:
    """Drops and recreates the staging table on the orchestrator's connection."""

    def __init__(self, schema: Optional[str] = None):
        self.schema = schema

    def prepare(self, db, table_name: str, columns: Sequence[ColumnMapping]) -> None:
        """
        Drop the staging table if it exists and create it fresh.

        Raises:
            SchemaError: If the server type is unsupported, the table would only
                be visible to this session, or the DDL fails
        """
        statements = create_staging_sql(db.server_type, table_name, columns, self.schema)
        check_shared_visibility(db.server_type, table_name)
        cursor = db.cursor()
        try:
            for sql in statements:
                cursor.execute(sql)
        except db.interface.DatabaseError as e:
            raise SchemaError(f"Couldn't create staging table {table_name}: {e}") from e
        finally:
            cursor.close()
        logger.debug(f"Staging table {table_name} ready with {len(columns)} columns")
