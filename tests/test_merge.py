# tests/test_merge.py
import sqlite3
from unittest.mock import Mock, call

import pytest

from mergesurge.etl import MergeExecutor, disable_statement_timeout
from mergesurge.exceptions import MergeError


def mock_db(server_type='sqlite', rowcount=0):
    db = Mock()
    db.server_type = server_type
    db.interface = sqlite3
    db.cursor.return_value.rowcount = rowcount
    return db


class TestMergeExecutor:
    """Test running the caller's merge statement."""

    @pytest.mark.parametrize('merge_sql', [None, '', '   \n\t  '])
    def test_no_merge_sql_skips_database(self, merge_sql):
        db = mock_db()
        assert MergeExecutor().merge(db, merge_sql) == 0
        db.cursor.assert_not_called()

    def test_returns_driver_rowcount(self):
        db = mock_db(rowcount=42)
        merge_sql = "UPDATE earth_kingdom SET ruler = 'Kuei'"

        assert MergeExecutor().merge(db, merge_sql) == 42
        db.cursor.return_value.execute.assert_called_once_with(merge_sql)
        db.cursor.return_value.close.assert_called_once()

    @pytest.mark.parametrize('rowcount', [-1, None])
    def test_unknown_rowcount_is_zero(self, rowcount, caplog):
        db = mock_db(rowcount=rowcount)
        assert MergeExecutor().merge(db, 'MERGE ...') == 0
        assert "didn't report an affected row count" in caplog.text

    def test_database_error_raises_merge_error(self):
        db = mock_db()
        db.cursor.return_value.execute.side_effect = sqlite3.OperationalError('no such table: ba_sing_se')

        with pytest.raises(MergeError, match="Couldn't merge batch insert using given SQL: no such table") as exc:
            MergeExecutor().merge(db, 'INSERT INTO ba_sing_se SELECT * FROM staging')
        assert isinstance(exc.value.__cause__, sqlite3.OperationalError)
        db.cursor.return_value.close.assert_called_once()

    def test_merge_on_real_database(self, connect_db, air_nomads_table):
        db = connect_db()
        db.set_autocommit()
        cursor = db.cursor()
        cursor.execute("CREATE TABLE staging_air_nomads (id INTEGER PRIMARY KEY, nomad_id TEXT, "
                       "name TEXT, temple TEXT, airbending_level INTEGER)")
        cursor.execute("INSERT INTO staging_air_nomads (nomad_id, name, temple, airbending_level) "
                       "VALUES ('AANG001', 'Aang', 'Northern Air Temple', 5), "
                       "('GYATSO001', 'Gyatso', 'Southern Air Temple', 10)")
        cursor.close()

        affected = MergeExecutor().merge(
            db, "UPDATE air_nomads SET airbending_level = (SELECT s.airbending_level FROM staging_air_nomads s "
                "WHERE s.nomad_id = air_nomads.nomad_id) "
                "WHERE nomad_id IN (SELECT nomad_id FROM staging_air_nomads)")
        db.close()
        assert affected == 1


class TestDisableStatementTimeout:
    """Test lifting statement timeouts before the merge."""

    def test_sqlserver_sets_connection_timeout(self):
        db = mock_db('sqlserver')
        db._connection.timeout = 30
        disable_statement_timeout(db)
        assert db._connection.timeout == 0
        db.cursor.assert_not_called()

    def test_sqlserver_without_timeout_attribute(self):
        db = mock_db('sqlserver')
        db._connection = object()
        disable_statement_timeout(db)
        db.cursor.assert_not_called()

    def test_postgres_resets_statement_timeout(self):
        db = mock_db('postgres')
        disable_statement_timeout(db)
        assert db.cursor.return_value.execute.call_args_list == [call("SET statement_timeout = 0")]
        db.cursor.return_value.close.assert_called_once()

    def test_merge_disables_timeout_first(self):
        db = mock_db('postgres', rowcount=7)
        assert MergeExecutor().merge(db, 'INSERT INTO fire_nation SELECT * FROM staging') == 7
        assert db.cursor.return_value.execute.call_args_list == [
            call("SET statement_timeout = 0"),
            call('INSERT INTO fire_nation SELECT * FROM staging'),
        ]

    def test_sqlite_does_nothing(self):
        db = mock_db('sqlite')
        disable_statement_timeout(db)
        db.cursor.assert_not_called()
