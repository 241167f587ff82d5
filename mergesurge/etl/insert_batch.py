# mergesurge/etl/insert_batch.py
"""
Bulk insert into a generated staging table, then merge with caller SQL.

For batches where inserting row by row through an ORM is too slow: the rows
are loaded into a fresh staging table across parallel connections and a
single caller-supplied statement reconciles them with the real table.
"""

import importlib
import logging
from typing import Any, Callable, List, Optional, Sequence, Type, Union

from ..config import connect as connect_named, get_setting
from ..database import Database
from ..exceptions import InsertError, ValidationError
from .loader import ParallelChunkLoader
from .merge import MergeExecutor
from .metadata import TypeMetadataCache
from .staging import StagingTableManager, build_insert_sql, check_shared_visibility

logger = logging.getLogger(__name__)

ConnectionSource = Union[str, Callable[[], Any]]


class InsertBatch:
    """
    Stage a batch of records and merge them with a supplied script.

    Every call drops and recreates the staging table declared on the record
    type, inserts the rows in parallel (one thread and one connection per
    chunk of ``inserts_per_thread`` rows), then runs the merge SQL on its own
    connection. The staging table is left in place afterwards.

    Args:
        record_type: Dataclass decorated with ``@staging_table`` whose fields use ``column()``
        connection: Connection name from the config file, or a zero-argument
            callable returning a ``Database`` or a raw DB-API connection.
            It is called once for the table/merge and once per chunk.
        inserts_per_thread: Default chunk size (setting ``default_inserts_per_thread``, 10,000)
        schema: Schema for permanent staging tables (setting ``staging_schema``)

    Raises:
        SchemaError: If the record type has no valid staging declaration, or its
            staging table is a session temp table (``#name``) the chunk connections can't see
        ValueError: If inserts_per_thread is less than 1

    Example
    -------
    ::

        from mergesurge.etl import InsertBatch

        MERGE_SQL = '''
            MERGE sales AS t
            USING ##staging_sales AS s ON t.sku = s.sku
            WHEN MATCHED THEN UPDATE SET t.qty = s.qty
            WHEN NOT MATCHED THEN INSERT (sku, qty) VALUES (s.sku, s.qty);
        '''

        batch = InsertBatch(SaleRow, 'warehouse')
        affected = batch.run(rows, merge_sql=MERGE_SQL)
    """

    def __init__(self, record_type: Type, connection: ConnectionSource,
                 inserts_per_thread: Optional[int] = None, schema: Optional[str] = None):
        self.record_type = record_type
        self.metadata = TypeMetadataCache(record_type)
        check_shared_visibility(None, self.metadata.table_name)
        self._connection_source = connection
        if inserts_per_thread is None:
            inserts_per_thread = get_setting('default_inserts_per_thread', 10_000)
        self.inserts_per_thread = inserts_per_thread
        self.loader = ParallelChunkLoader(inserts_per_thread)
        self.staging = StagingTableManager(schema)
        self.merger = MergeExecutor()
        self.rows: List[Any] = []
        self.total_loaded = 0

    @property
    def table_name(self) -> str:
        return self.metadata.table_name

    def open_connection(self) -> Database:
        """Open a new autocommit connection from the configured source."""
        source = self._connection_source
        if isinstance(source, str):
            db = connect_named(source)
        elif callable(source):
            db = source()
        else:
            raise TypeError(f"connection must be a config name or a callable, got {type(source).__name__}")

        if not isinstance(db, Database):
            db = Database(db, _driver_module(db))
        db.set_autocommit()
        return db

    def save_to_staging_table(self, merge_sql: Optional[str] = None,
                              inserts_per_thread: Optional[int] = None) -> int:
        """Stage and merge ``self.rows``."""
        return self.run(self.rows, inserts_per_thread, merge_sql)

    def run(self, batch: Sequence[Any], chunk_size: Optional[int] = None,
            merge_sql: Optional[str] = None) -> int:
        """
        Stage batch and merge it.

        Args:
            batch: Records of ``record_type`` (or mappings keyed by field name)
            chunk_size: Rows per insert thread, defaults to ``inserts_per_thread``
            merge_sql: Statement reconciling the staging table with the target.
                Empty or None skips the merge and returns 0.

        Returns:
            Rows affected by the merge as reported by the database

        Raises:
            SchemaError: Staging table could not be created
            ValidationError: A NOT NULL column got None
            InsertError: The database rejected a row
            MergeError: The merge statement failed
            ValueError: chunk_size is less than 1
        """
        loader = self.loader if chunk_size is None else ParallelChunkLoader(chunk_size)
        batch = list(batch)
        if not batch:
            return 0

        table_name = self.table_name
        columns = self.metadata.columns
        self.total_loaded = 0

        db = self.open_connection()
        try:
            self.staging.prepare(db, table_name, columns)

            loader.load(
                batch,
                self._insert_chunk,
                lambda threads: logger.info(
                    f"Inserting {len(batch):,} records into {table_name}, across {threads} thread(s)..."),
            )
            self.total_loaded = len(batch)

            affected = self.merger.merge(db, merge_sql)
        finally:
            db.close()

        logger.info(f"Staged {self.total_loaded:,} records in {table_name}; merge affected {affected:,} rows")
        return affected

    def _insert_chunk(self, chunk: List[Any], chunk_idx: int) -> None:
        """Insert one chunk row by row on a dedicated connection."""
        table_name = self.table_name
        columns = self.metadata.columns

        db = self.open_connection()
        try:
            insert_sql = build_insert_sql(db.server_type, table_name, columns, self.staging.schema)
            cursor = db.cursor()
            stmt = cursor.prepare(insert_sql)
            for record in chunk:
                bind_vars = {}
                for idx, col in enumerate(columns):
                    value = col.get_value(record)
                    if value is None and not col.nullable:
                        raise ValidationError(
                            f"Couldn't insert null into batch insert field '{col.field_name}' "
                            f"in table '{table_name}': column '{col.column_name}' is not nullable",
                            field=col.field_name, table=table_name)
                    bind_vars[f'p{idx}'] = value
                try:
                    stmt.execute(bind_vars)
                except db.interface.DatabaseError as e:
                    logger.critical(f"Failed to insert record into {table_name} - {insert_sql}: {e}")
                    raise InsertError(f"Failed to insert record into {table_name}: {e}",
                                      table=table_name, sql=insert_sql) from e
            cursor.close()
        finally:
            db.close()
        logger.debug(f"Done: chunk #{chunk_idx} ({len(chunk):,} rows) into {table_name}")


def _driver_module(connection) -> Any:
    """Find the DB-API module a raw connection object came from."""
    module_name = type(connection).__module__.split('.')[0]
    return importlib.import_module(module_name)
