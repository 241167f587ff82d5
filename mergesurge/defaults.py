# mergesurge/defaults.py
"""Default settings - no imports to avoid circular dependencies."""

settings = {
    'default_inserts_per_thread': 10_000,
    'default_db_type': 'sqlserver',
    'staging_schema': None,   # None uses the server default (dbo, public, main)
    'logging': {
        'directory': './logs',
        'level': 'INFO',
        'format': '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        'timestamp_format': '%Y-%m-%d %H:%M:%S',
        'filename_format': '%Y%m%d_%H%M%S',  # Set to '' for single log file (no timestamp)
        'split_errors': True,
        'console': True,
        'retention_days': 30,
    }
}
