# mergesurge/etl/merge.py
"""
Runs the caller's merge statement against the loaded staging table.
"""

import logging
from typing import Optional

from ..exceptions import MergeError

logger = logging.getLogger(__name__)


def disable_statement_timeout(db) -> None:
    """Remove any statement timeout on db so a long merge runs to completion."""
    if db.server_type == 'sqlserver':
        # pyodbc's query timeout; 0 means wait forever. pymssql has no such attribute.
        if hasattr(db._connection, 'timeout'):
            db._connection.timeout = 0
    elif db.server_type == 'postgres':
        cursor = db.cursor()
        try:
            cursor.execute("SET statement_timeout = 0")
        finally:
            cursor.close()
    # sqlite statements never time out


class MergeExecutor:
    """Executes the merge SQL and reports the rows it affected."""

    def merge(self, db, merge_sql: Optional[str]) -> int:
        """
        Execute merge_sql on db.

        Returns:
            Row count reported by the driver, 0 when there is no merge SQL

        Raises:
            MergeError: If the statement fails
        """
        if not merge_sql or not merge_sql.strip():
            logger.debug("No merge SQL given, leaving rows in the staging table")
            return 0

        try:
            disable_statement_timeout(db)
            cursor = db.cursor()
            try:
                cursor.execute(merge_sql)
                affected = cursor.rowcount
            finally:
                cursor.close()
        except db.interface.DatabaseError as e:
            raise MergeError(f"Couldn't merge batch insert using given SQL: {e}") from e

        # DB-API reports -1 when the count is unknown
        if affected is None or affected < 0:
            logger.warning("Driver didn't report an affected row count for the merge")
            return 0
        return affected
