# mergesurge/etl/__init__.py
"""
Staging-table bulk loads followed by a caller-supplied merge.

- staging_table / column: declare how a dataclass maps onto the staging table
- TypeMetadataCache: column mappings read once per record type
- StagingTableManager: drop-if-exists and create the staging table
- ParallelChunkLoader: insert chunks of a batch on parallel threads
- MergeExecutor: run the merge statement and report affected rows
- InsertBatch: the whole sequence behind one call

Example
-------
::

    from dataclasses import dataclass
    from mergesurge.etl import InsertBatch, column, staging_table

    @staging_table('##staging_sales')
    @dataclass(frozen=True)
    class SaleRow:
        sku: str = column('nvarchar(50)', nullable=False)
        qty: int = column('int', nullable=False)

    batch = InsertBatch(SaleRow, 'warehouse')
    affected = batch.run(rows, chunk_size=5000, merge_sql=MERGE_SQL)
"""

from .columns import Column, TableName, column, staging_table
from .metadata import ColumnMapping, TableDescriptor, TypeMetadataCache
from .staging import StagingTableManager, build_insert_sql, create_staging_sql
from .loader import ParallelChunkLoader, chunked
from .merge import MergeExecutor, disable_statement_timeout
from .insert_batch import InsertBatch

__all__ = [
    'Column', 'TableName', 'column', 'staging_table',
    'ColumnMapping', 'TableDescriptor', 'TypeMetadataCache',
    'StagingTableManager', 'build_insert_sql', 'create_staging_sql',
    'ParallelChunkLoader', 'chunked',
    'MergeExecutor', 'disable_statement_timeout',
    'InsertBatch',
]
