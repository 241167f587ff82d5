# mergesurge/__init__.py
"""
mergesurge - staging-table bulk loads with a caller-supplied merge

Loads an in-memory batch of records into a freshly created staging table
over parallel connections, then runs one merge statement to reconcile it
with the target table:

- Record types declare their staging table with dataclass metadata
- Drop/create DDL for SQL Server, PostgreSQL and SQLite
- One thread and one connection per chunk of rows
- YAML-based connection configuration
- Logging helpers for batch scripts

Basic usage::

    import mergesurge
    from mergesurge.etl import InsertBatch

    mergesurge.setup_logging('nightly_sales')
    batch = InsertBatch(SaleRow, 'warehouse')
    affected = batch.run(rows, merge_sql=MERGE_SQL)
"""

__version__ = '0.3.0'

from .database import Database
from .config import connect, set_config_file, get_setting
from .cursors import Cursor
from .exceptions import BatchSaveError, SchemaError, ValidationError, InsertError, MergeError
from .logging_utils import setup_logging, errors_logged, cleanup_old_logs
from . import etl

__all__ = [
    'connect',
    'set_config_file',
    'get_setting',
    'Database',
    'Cursor',
    'BatchSaveError',
    'SchemaError',
    'ValidationError',
    'InsertError',
    'MergeError',
    'etl',
    'setup_logging',
    'errors_logged',
    'cleanup_old_logs',
]
