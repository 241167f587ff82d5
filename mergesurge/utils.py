# mergesurge/utils.py
"""
Utility functions for mergesurge.
"""

import itertools
import re
from typing import Tuple, List, Any, Iterable, Optional


TEMP_MARKER = '#'


class ParamStyle:
    """
    SQL parameter placeholder styles for different database drivers.

    - QMARK: Question mark placeholders (?, ?) - SQLite, pyodbc
    - NUMERIC: Numeric placeholders (:1, :2)
    - NAMED: Named placeholders (:name, :email)
    - FORMAT: Printf-style (%s, %s) - pymssql
    - PYFORMAT: Python format (%(name)s) - psycopg2

    Example
    -------
    ::
        >>> ParamStyle.QMARK in ParamStyle.positional_styles()
        True
    """
    QMARK = 'qmark'         # id = ?
    NUMERIC = 'numeric'     # id = :1
    NAMED = 'named'         # id = :id
    FORMAT = 'format'       # id = %s
    PYFORMAT = 'pyformat'   # id = %(id)s
    DEFAULT = NAMED

    @classmethod
    def positional_styles(cls):
        """ Parameter styles where parameters must be in properly ordered tuple instead of dict"""
        return (cls.QMARK, cls.NUMERIC, cls.FORMAT)


def process_sql_parameters(sql: str, paramstyle: str) -> Tuple[str, Tuple[str, ...]]:
    """
    Convert ``:name`` parameters in sql to the given paramstyle.

    Parameters:
        sql: The SQL string containing named parameters in the format ':name'.
        paramstyle: The desired parameter style for the resulting SQL string.

    Returns:
        A tuple of the converted SQL and the parameter names in order of appearance.

    Raises:
        ValueError: If the provided paramstyle is not supported.
    """
    param_names = tuple(re.findall(r':(\w+)', sql))

    if paramstyle == ParamStyle.NAMED:
        return sql, param_names
    elif paramstyle == ParamStyle.PYFORMAT:
        return re.sub(r':(\w+)', r'%(\1)s', sql), param_names
    elif paramstyle == ParamStyle.QMARK:
        return re.sub(r':(\w+)', '?', sql), param_names
    elif paramstyle == ParamStyle.FORMAT:
        return re.sub(r':(\w+)', '%s', sql), param_names
    elif paramstyle == ParamStyle.NUMERIC:
        counter = iter(range(1, len(param_names) + 1))
        return re.sub(r':(\w+)', lambda m: f':{next(counter)}', sql), param_names
    else:
        raise ValueError(f"Unsupported paramstyle: {paramstyle}")


def validate_identifier(identifier: str, max_length: int = 128) -> str:
    """
    Validate that an identifier is safe for use (even if it needs quoting).
    Returns the identifier if valid, raises ValueError if invalid.
    """
    if not isinstance(identifier, str):
        raise ValueError(f"Invalid identifier: must be a string, got {type(identifier).__name__}")
    if '.' in identifier:
        return '.'.join(validate_identifier(part, max_length) for part in identifier.split('.'))

    if not identifier:
        raise ValueError("Invalid identifier: cannot be empty")
    if not (identifier[0].isalpha() or identifier[0] == '_'):
        raise ValueError(f"Invalid identifier: must start with a letter: {identifier}")
    if len(identifier) > max_length:
        raise ValueError(f"Invalid identifier: exceeds max length of {max_length}")

    # characters/sequences that could enable injection or break SQL parsing
    dangerous_patterns = ['\x00', '\n', '\r', '"', ';', '\x1a', '--', '/*', '*/', '[', ']']
    for pattern in dangerous_patterns:
        if pattern in identifier:
            raise ValueError(f"Invalid identifier: contains dangerous pattern '{pattern}': {identifier}")

    if identifier.startswith(' ') or identifier.endswith(' '):
        raise ValueError(f"Invalid identifier: has leading/trailing spaces: {identifier}")

    return identifier


def split_temp_marker(table_name: str) -> Tuple[str, str]:
    """
    Split a leading temp-table marker off a table name.

    >>> split_temp_marker('##staging')
    ('##', 'staging')
    """
    bare = table_name.lstrip(TEMP_MARKER)
    return table_name[:len(table_name) - len(bare)], bare


def validate_table_name(table_name: str) -> str:
    """Validate a staging table name, allowing up to two leading temp markers."""
    if not isinstance(table_name, str):
        raise ValueError(f"Invalid table name: {table_name!r}")
    marker, bare = split_temp_marker(table_name)
    if len(marker) > 2:
        raise ValueError(f"Invalid table name: too many temp markers: {table_name}")
    if '.' in bare:
        raise ValueError(f"Invalid table name: staging tables can't be schema qualified: {table_name}")
    validate_identifier(bare)
    return table_name


def identifier_needs_quoting(identifier: str) -> bool:
    """Check if identifier needs quoting."""
    return not re.match(r'^([a-z][a-z0-9_]*|[A-Z][A-Z0-9_]*)$', identifier)


def quote_identifier(identifier: str, server_type: Optional[str] = None) -> str:
    """
    Quote identifier, handling qualified names by splitting on dots.

    SQL Server identifiers are always bracketed so generated scripts match the
    ``[dbo].[#table]`` shape; everything else uses ANSI double quotes only when needed.
    """
    if '.' in identifier:
        return '.'.join(quote_identifier(part, server_type) for part in identifier.split('.'))

    if server_type == 'sqlserver':
        return f'[{identifier}]'
    if identifier_needs_quoting(identifier):
        return f'"{identifier}"'
    return identifier


def batch_iterable(iterable: Iterable[Any], batch_size: int) -> Iterable[List[Any]]:
    """
    Batch an iterable into chunks of specified size.

    Args:
        iterable: The iterable to batch
        batch_size: Size of each batch

    Yields:
        Lists of items up to batch_size length
    """
    iterator = iter(iterable)
    while True:
        batch = list(itertools.islice(iterator, batch_size))
        if not batch:
            break
        yield batch
