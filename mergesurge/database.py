# mergesurge/database.py
"""
Database connection wrapper that provides a uniform interface
to different DB-API 2.0 database adapters.
"""

import importlib
import importlib.util
import logging
import os
from typing import Any, Optional, List

from .cursors import Cursor

logger = logging.getLogger(__name__)


DRIVERS = {
    # SQL Server Drivers
    'pyodbc_sqlserver': {
        'module': 'pyodbc',
        'database_type': 'sqlserver',
        'priority': 11,
        'param_map': {'host': 'SERVER', 'database': 'DATABASE', 'user': 'UID', 'password': 'PWD'},
        'required_params': [{'host', 'database', 'user'}, {'host', 'database', 'trusted_connection'}],
        'optional_params': {'password', 'port', 'driver', 'trusted_connection', 'encrypt', 'trustservercertificate'},
        'connection_method': 'odbc_string',
        'odbc_driver_name': 'ODBC Driver 18 for SQL Server',
        'default_port': 1433
    },
    'pymssql': {
        'module': 'pymssql',
        'database_type': 'sqlserver',
        'priority': 12,
        'param_map': {'host': 'server'},
        'required_params': [{'host', 'database', 'user'}],
        'optional_params': {'password', 'port', 'timeout', 'login_timeout', 'charset', 'appname'},
        'connection_method': 'kwargs',
        'default_port': 1433
    },

    # PostgreSQL Drivers
    'psycopg2': {
        'module': 'psycopg2',
        'database_type': 'postgres',
        'priority': 11,
        'param_map': {'database': 'dbname'},
        'required_params': [{'host', 'database', 'user'}],
        'optional_params': {'port', 'password', 'sslmode', 'connect_timeout', 'application_name',
                            'options', 'sslcert', 'sslkey', 'sslrootcert'},
        'connection_method': 'connection_string',
        'default_port': 5432,
    },
    'psycopg': {  # psycopg3
        'module': 'psycopg',
        'database_type': 'postgres',
        'priority': 12,
        'param_map': {'database': 'dbname'},
        'required_params': [{'host', 'database', 'user'}],
        'optional_params': {'port', 'password', 'sslmode', 'connect_timeout', 'application_name',
                            'options', 'sslcert', 'sslkey', 'sslrootcert'},
        'connection_method': 'connection_string',
        'default_port': 5432,
    },

    # SQLite Driver
    'sqlite3': {
        'module': 'sqlite3',
        'database_type': 'sqlite',
        'priority': 1,
        'param_map': {},
        'required_params': [{'database'}],
        'optional_params': {'timeout', 'detect_types', 'isolation_level', 'check_same_thread',
                            'cached_statements', 'uri'},
        'connection_method': 'kwargs'
    }
}

# Server type for a raw driver module when the caller hands us an unwrapped connection
MODULE_SERVER_TYPES = {
    'pyodbc': 'sqlserver',
    'pymssql': 'sqlserver',
    'psycopg2': 'postgres',
    'psycopg': 'postgres',
    'sqlite3': 'sqlite',
}


def get_drivers_for_database(db_type: str, valid_only: bool = True) -> List[str]:
    """
    Get the drivers registered for a database type, best priority first.

    Parameters:
        db_type (str): The type of database ('sqlserver', 'postgres', 'sqlite').
        valid_only (bool): Only include drivers whose module is importable.
    """
    available_drivers = []
    for driver_name, info in DRIVERS.items():
        if info['database_type'] != db_type:
            continue
        if valid_only and importlib.util.find_spec(info['module']) is None:
            continue
        available_drivers.append(driver_name)
    available_drivers.sort(key=lambda d: DRIVERS[d]['priority'])
    return available_drivers


def get_params_for_database(db_type: str, driver: Optional[str] = None) -> set:
    """Get all valid connection parameters for a database type."""
    valid_params = set()
    for driver_name, driver_info in DRIVERS.items():
        if driver_info['database_type'] != db_type:
            continue
        if driver and driver_name != driver:
            continue
        for param_set in driver_info['required_params']:
            valid_params.update(param_set)
        valid_params.update(driver_info.get('optional_params', set()))
    return valid_params


def validate_connection_params(driver_name: str, **params) -> dict:
    """
    Validate connection parameters against driver requirements.

    Args:
        driver_name: Name of the database driver
        **params: Connection parameters

    Returns:
        Dict of validated parameters, renamed for the driver, with extras removed

    Raises:
        ValueError: If the driver is unknown or required parameters are missing
    """
    if driver_name not in DRIVERS:
        raise ValueError(f"Unknown driver: {driver_name}")

    driver_info = DRIVERS[driver_name]

    if 'port' not in params and driver_info.get('default_port'):
        params['port'] = driver_info['default_port']

    if not any(required.issubset(params.keys()) for required in driver_info['required_params']):
        raise ValueError(f"Missing required parameters. Need one of: {driver_info['required_params']}")

    all_valid_params = set()
    for req_set in driver_info['required_params']:
        all_valid_params.update(req_set)
    all_valid_params.update(driver_info.get('optional_params', set()))

    param_map = driver_info.get('param_map', {})
    return {param_map.get(key, key): value for key, value in params.items()
            if key in all_valid_params}


def get_connection_string(**kwargs) -> str:
    """Get libpq style connection string from keyword arguments."""
    return " ".join(f"{key}={value}" for key, value in kwargs.items() if value is not None)


def get_odbc_connection_string(odbc_driver_name: Optional[str] = None, **kwargs) -> str:
    """Get ODBC connection string from keyword arguments."""
    driver = kwargs.pop('driver', None) or odbc_driver_name
    port = kwargs.pop('port', None)
    server = kwargs.pop('SERVER', 'localhost')
    params = {'SERVER': f'{server},{port}' if port else server}
    for key, value in kwargs.items():
        if value is None:
            continue
        if isinstance(value, bool):
            value = 'yes' if value else 'no'
        params[key.upper()] = value
    conn_str = ";".join(f"{key}={value}" for key, value in params.items())
    if driver:
        return f"DRIVER={{{driver}}};" + conn_str
    return conn_str


class Database:
    """
    Database connection wrapper that provides uniform interface
    across different database adapters.

    Unknown attributes (``commit``, ``close``, ``rollback``...) are delegated
    to the driver connection.
    """

    # Attributes stored locally, others delegated to _connection
    _local_attrs = ['_connection', 'server_type', 'database_name', 'interface', 'name']

    def __init__(self, connection, interface, database_name: Optional[str] = None,
                 server_type: Optional[str] = None):
        """
        Initialize Database wrapper.

        Args:
            connection: Underlying database connection object
            interface: Database adapter module (pyodbc, psycopg2, sqlite3, ...)
            database_name: Name of the database
            server_type: 'sqlserver', 'postgres' or 'sqlite'. Derived from the
                interface module when omitted.
        """
        self._connection = connection
        self.interface = interface
        self.database_name = database_name
        self.name = None

        if server_type is None:
            server_type = MODULE_SERVER_TYPES.get(getattr(interface, '__name__', ''), 'unknown')
        self.server_type = server_type

    def __getattr__(self, key: str) -> Any:
        """Delegate attribute access to underlying connection."""
        return getattr(self._connection, key)

    def __setattr__(self, key: str, value: Any) -> None:
        """Set attributes locally or delegate to connection."""
        if key in self._local_attrs:
            self.__dict__[key] = value
        else:
            setattr(self._connection, key, value)

    def __str__(self) -> str:
        if self.database_name:
            return f'Database({self.database_name}:{self.server_type})'
        return f'Database({self.server_type})'

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    @property
    def database_type(self) -> str:
        return self.server_type

    def cursor(self, **kwargs) -> Cursor:
        """Create a wrapped cursor."""
        return Cursor(self, **kwargs)

    def set_autocommit(self) -> None:
        """
        Commit every statement as it executes.

        Staging loads depend on this: the table created on one connection must be
        visible to the worker connections, and each row insert stands on its own.
        """
        if self.server_type == 'sqlite':
            self._connection.isolation_level = None
        else:
            self._connection.autocommit = True

    @classmethod
    def create(cls, db_type: str, driver: Optional[str] = None, **kwargs) -> 'Database':
        """
        Factory method to create database connections.

        Args:
            db_type: Database type ('sqlserver', 'postgres', 'sqlite')
            driver: Optional driver name from DRIVERS
            **kwargs: Connection parameters

        Returns:
            Database instance
        """
        db_driver = None
        driver_name = None
        if driver:
            if driver not in DRIVERS:
                raise ValueError(f"Unknown driver: {driver}")
            if DRIVERS[driver]['database_type'] != db_type:
                raise ValueError(f"Driver '{driver}' is not compatible with database type '{db_type}'")
            try:
                db_driver = importlib.import_module(DRIVERS[driver]['module'])
                driver_name = driver
            except ImportError:
                logger.warning(f"Driver '{driver}' not available, falling back to default")

        if db_driver is None:
            for candidate in get_drivers_for_database(db_type):
                try:
                    db_driver = importlib.import_module(DRIVERS[candidate]['module'])
                    driver_name = candidate
                    break
                except ImportError:
                    pass

        if db_driver is None:
            raise ImportError(f"No database driver found for database type '{db_type}'")

        database_name = kwargs.get('database')
        params = validate_connection_params(driver_name, **kwargs)

        driver_conf = DRIVERS[driver_name]
        method = driver_conf['connection_method']
        if method == 'kwargs':
            connection = db_driver.connect(**params)
        elif method == 'connection_string':
            connection = db_driver.connect(get_connection_string(**params))
        elif method == 'odbc_string':
            connection = db_driver.connect(
                get_odbc_connection_string(driver_conf.get('odbc_driver_name'), **params))
        else:
            raise ValueError(f"Unknown connection method '{method}' for driver {driver_name}")

        if db_type == 'sqlite' and database_name:
            database_name = os.path.basename(database_name)
        return cls(connection, db_driver, database_name, server_type=db_type)


def sqlserver(user: Optional[str] = None, password: Optional[str] = None, database: Optional[str] = None,
              host: str = 'localhost', port: int = 1433, driver: Optional[str] = None, **kwargs) -> Database:
    """Create SQL Server connection."""
    if user is not None:
        kwargs['user'] = user
    return Database.create('sqlserver', password=password, database=database,
                           host=host, port=port, driver=driver, **kwargs)


def postgres(user: str, password: Optional[str] = None, database: str = 'postgres',
             host: str = 'localhost', port: int = 5432, driver: Optional[str] = None, **kwargs) -> Database:
    """Create PostgreSQL connection."""
    return Database.create('postgres', user=user, password=password, database=database,
                           host=host, port=port, driver=driver, **kwargs)


def sqlite(database: str, **kwargs) -> Database:
    """Create SQLite connection."""
    import sqlite3

    connection = sqlite3.connect(database, **kwargs)
    return Database(connection, sqlite3, os.path.basename(database), server_type='sqlite')
