# mergesurge/cursors.py
"""
Cursor wrapper that delegates to the driver cursor stored in _cursor and
translates ``:name`` parameters to the driver's paramstyle.
"""

import logging
from typing import List, Any, Optional, Sequence

from .utils import ParamStyle, process_sql_parameters

logger = logging.getLogger(__name__)
__all__ = ['Cursor', 'PreparedStatement']


class PreparedStatement:
    """
    A SQL statement converted once to the cursor's paramstyle and executed
    many times with different bind values.

    The staging loader builds one INSERT per chunk and reuses it for every
    row in that chunk; only the parameter values change.

    Example
    -------
    ::

        stmt = PreparedStatement(cursor, "INSERT INTO t (a, b) VALUES (:p0, :p1)")
        for a, b in rows:
            stmt.execute({'p0': a, 'p1': b})
    """

    def __init__(self, cursor: 'Cursor', query: str):
        self.cursor = cursor
        self.original_sql = query
        self.sql, self.param_names = process_sql_parameters(query, cursor.paramstyle)

    def execute(self, bind_vars: dict) -> Any:
        """Execute the statement with the given named parameters."""
        params = self.cursor._prepare_params(self.param_names, bind_vars)
        return self.cursor.execute(self.sql, params)

    def __getattr__(self, key: str):
        """Delegate attribute access to underlying cursor."""
        return getattr(self.cursor, key)


class Cursor:
    """
    Basic cursor wrapping a driver cursor.

    Attributes
    ----------
    connection : Database
        The database connection this cursor belongs to
    paramstyle : str
        Parameter style of the underlying driver ('qmark', 'named', etc.)

    Note
    ----
    Attribute access falls through to the driver cursor, so ``rowcount``,
    ``description``, ``fetchall`` and friends behave exactly as the driver's.
    """
    # Attributes that live on this class and are not delegated to the underlying cursor
    _local_attrs = ['connection', 'debug', 'paramstyle', '_cursor']

    def __init__(self, connection, debug: Optional[bool] = False, **kwargs):
        """
        Initialize a cursor.

        Parameters
        ----------
        connection : Database
            Database connection object
        debug : bool, default False
            Log every statement and its bind variables at DEBUG level
        **kwargs
            Additional arguments passed to the underlying database cursor
        """
        self.connection = connection
        self.debug = debug
        try:
            if hasattr(self.connection, '_connection'):
                self._cursor = self.connection._connection.cursor(**kwargs)
            else:
                self._cursor = self.connection.cursor(**kwargs)
        except Exception as e:
            raise TypeError(f'First argument must be a database connection object: {e}')

        self.paramstyle = getattr(self.connection.interface, 'paramstyle', ParamStyle.DEFAULT)

    def __getattr__(self, key: str) -> Any:
        """Delegate attribute access to underlying cursor."""
        return getattr(self._cursor, key)

    def __setattr__(self, key: str, value: Any) -> None:
        """Set attributes on this cursor or delegate to underlying cursor."""
        if key in self._local_attrs:
            self.__dict__[key] = value
        else:
            setattr(self._cursor, key, value)

    def __dir__(self) -> List[str]:
        return list(set(dir(self._cursor) + dir(self.__class__) + self._local_attrs))

    def _prepare_params(self, param_names: Sequence[str], bind_vars: dict) -> Any:
        """
        Convert dict parameters to the format required by the cursor's paramstyle.

        Returns:
            Tuple for positional styles, dict for named styles
        """
        if self.paramstyle in ParamStyle.positional_styles():
            return tuple(bind_vars.get(name) for name in param_names)
        return {name: bind_vars.get(name) for name in param_names}

    def prepare(self, query: str) -> PreparedStatement:
        """Convert query once for repeated execution."""
        return PreparedStatement(self, query)

    def execute(self, query: str, bind_vars: Any = ()) -> None:
        """Execute a statement. Empty bind_vars executes it without parameters."""
        if self.debug:
            logger.debug(f'Query:\n{query}')
            logger.debug(f'Bind vars:\n{bind_vars}')

        # some adapters return a cursor instead of the DB-API specified None
        if bind_vars:
            _ = self._cursor.execute(query, bind_vars)
        else:
            _ = self._cursor.execute(query)
        return None
