# tests/test_metadata.py
from dataclasses import dataclass
from typing import Optional

import pytest

from mergesurge.etl import TableName, TypeMetadataCache, column, staging_table
from mergesurge.exceptions import SchemaError

from conftest import NomadRow


@staging_table('#staging_fire_nation')
@dataclass
class SoldierRow:
    soldier_id: str = column('nvarchar(20)', nullable=False)
    full_name: str = column('nvarchar(100)', name='name', nullable=False, collation='Latin1_General_CI_AS')
    notes: str = ''
    rank: Optional[str] = column('nvarchar(40)', default=None)


class TestTableName:
    """Test the table-name declaration validity flag."""

    @pytest.mark.parametrize('name', ['staging', '#staging', '##staging', 'Staging_2024'])
    def test_valid_names(self, name):
        assert TableName(name).is_valid

    @pytest.mark.parametrize('name', ['', '#', '###staging', 'bad name;', 'dbo.staging',
                                      '1staging', 'x--y'])
    def test_invalid_names(self, name):
        assert not TableName(name).is_valid


class TestTypeMetadataCache:
    """Test reading staging declarations from record types."""

    def test_reads_table_name(self):
        cache = TypeMetadataCache(SoldierRow)
        assert cache.table_name == '#staging_fire_nation'

    def test_columns_keep_declaration_order(self):
        """Unmarked fields are skipped and the rest keep their order."""
        cache = TypeMetadataCache(SoldierRow)
        assert [c.field_name for c in cache.columns] == ['soldier_id', 'full_name', 'rank']
        assert cache.descriptor.column_names == ('soldier_id', 'name', 'rank')

    def test_column_attributes(self):
        soldier_id, name, rank = TypeMetadataCache(SoldierRow).columns
        assert soldier_id.sql_type == 'nvarchar(20)'
        assert soldier_id.nullable is False
        assert name.collation == 'Latin1_General_CI_AS'
        assert rank.nullable is True
        assert rank.collation is None

    def test_caches_are_independent(self):
        first = TypeMetadataCache(NomadRow)
        second = TypeMetadataCache(NomadRow)
        assert first is not second
        assert first.columns is not second.columns
        assert second.columns == first.columns

    def test_get_value_from_record_and_mapping(self):
        cache = TypeMetadataCache(SoldierRow)
        name = cache.columns[1]
        assert name.get_value(SoldierRow('ZUKO001', 'Prince Zuko')) == 'Prince Zuko'
        assert name.get_value({'soldier_id': 'IROH001', 'full_name': 'General Iroh'}) == 'General Iroh'
        assert name.get_value({'soldier_id': 'AZULA001'}) is None

    def test_missing_table_name(self):
        @dataclass
        class Undeclared:
            name: str = column('TEXT')

        with pytest.raises(SchemaError, match='No valid table-name attribute found on Undeclared'):
            TypeMetadataCache(Undeclared)

    def test_invalid_table_name(self):
        @staging_table('staging; DROP TABLE users')
        @dataclass
        class Injected:
            name: str = column('TEXT')

        with pytest.raises(SchemaError, match='No valid table-name'):
            TypeMetadataCache(Injected)

    def test_no_columns(self):
        @staging_table('staging_empty')
        @dataclass
        class NoColumns:
            name: str = ''

        with pytest.raises(SchemaError, match='No fields found on NoColumns'):
            TypeMetadataCache(NoColumns)

    def test_not_a_dataclass(self):
        @staging_table('staging_plain')
        class Plain:
            name = 'Sokka'

        with pytest.raises(SchemaError, match='must be a dataclass'):
            TypeMetadataCache(Plain)

    def test_duplicate_column_names(self):
        @staging_table('staging_dupes')
        @dataclass
        class Dupes:
            name: str = column('TEXT')
            alias: str = column('TEXT', name='NAME')

        with pytest.raises(SchemaError, match="Duplicate column 'NAME'"):
            TypeMetadataCache(Dupes)

    def test_identity_column_is_reserved(self):
        @staging_table('staging_ids')
        @dataclass
        class WithId:
            id: int = column('int')

        with pytest.raises(SchemaError, match='reserved'):
            TypeMetadataCache(WithId)

    def test_invalid_column_name(self):
        @staging_table('staging_bad_cols')
        @dataclass
        class BadColumn:
            name: str = column('TEXT', name='name]; --')

        with pytest.raises(SchemaError, match='Invalid column name'):
            TypeMetadataCache(BadColumn)
