# tests/conftest.py
"""
Shared test fixtures and configuration for pytest.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from unittest.mock import patch

import pytest

from mergesurge.database import sqlite
from mergesurge.etl import column, staging_table


@staging_table('staging_air_nomads')
@dataclass(frozen=True)
class NomadRow:
    """Air Nomad training record staged before merging into air_nomads."""
    nomad_id: str = column('TEXT', nullable=False)
    name: str = column('TEXT', nullable=False)
    temple: Optional[str] = column('TEXT', default=None)
    airbending_level: Optional[int] = column('INTEGER CHECK (airbending_level >= 0)', default=None)


UPSERT_NOMADS = """
INSERT INTO air_nomads (nomad_id, name, temple, airbending_level)
SELECT nomad_id, name, temple, airbending_level FROM staging_air_nomads WHERE true
ON CONFLICT (nomad_id) DO UPDATE SET
    name = excluded.name,
    temple = excluded.temple,
    airbending_level = excluded.airbending_level
"""


@pytest.fixture(autouse=True)
def setup_test_config(tmp_path):
    """Point the global config at tests/test.yml with a per-test SQLite file."""
    from mergesurge.config import set_config_file

    env = {
        'MERGESURGE_TEST_DB': str(tmp_path / 'config_db.sqlite'),
        'MERGESURGE_TEST_PASSWORD': 'not_a_real_password',
    }
    with patch.dict(os.environ, env):
        set_config_file(str(Path(__file__).parent / 'test.yml'))
        yield


@pytest.fixture(autouse=True)
def restore_root_logging():
    """setup_logging() replaces root handlers; put the originals back after each test."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)


@pytest.fixture
def db_path(tmp_path):
    """Path of a SQLite file shared by the orchestrator and worker connections."""
    return str(tmp_path / 'air_temple.db')


@pytest.fixture
def connect_db(db_path):
    """Connection source handing out a new SQLite connection on every call."""
    def _connect():
        db = sqlite(db_path, timeout=30)
        # per-row autocommit without fsync keeps the larger loads quick
        db.execute('PRAGMA synchronous = OFF')
        return db
    return _connect


@pytest.fixture
def air_nomads_table(db_path):
    """Create the merge target with one existing nomad."""
    db = sqlite(db_path)
    cursor = db.cursor()
    cursor.execute("""
                   CREATE TABLE air_nomads
                   (
                       nomad_id         TEXT PRIMARY KEY,
                       name             TEXT NOT NULL,
                       temple           TEXT,
                       airbending_level INTEGER
                   )
                   """)
    cursor.execute("INSERT INTO air_nomads VALUES ('AANG001', 'Aang', 'Southern Air Temple', 3)")
    db.commit()
    db.close()
    return 'air_nomads'


@pytest.fixture
def nomad_rows():
    """Five Air Nomad records, one of which updates an existing nomad."""
    return [
        NomadRow('AANG001', 'Aang', 'Southern Air Temple', 4),
        NomadRow('TENZIN001', 'Tenzin', 'Air Temple Island', 4),
        NomadRow('JINORA001', 'Jinora', 'Air Temple Island', 3),
        NomadRow('IKKI001', 'Ikki', 'Air Temple Island', 1),
        NomadRow('MEELO001', 'Meelo', None, None),
    ]


def count_rows(db_path, table_name):
    db = sqlite(db_path)
    try:
        cursor = db.cursor()
        cursor.execute(f"SELECT COUNT(*) FROM {table_name}")
        return cursor.fetchone()[0]
    finally:
        db.close()


def fetch_rows(db_path, sql):
    db = sqlite(db_path)
    try:
        cursor = db.cursor()
        cursor.execute(sql)
        return cursor.fetchall()
    finally:
        db.close()
