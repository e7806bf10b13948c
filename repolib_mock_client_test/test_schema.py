"""
Tests for the read-only repository schema.
"""

import pytest

from repolib.config.client_config_loader import DEFAULT_SCHEMA
from repolib.model.schema import Schema


@pytest.fixture
def schema():
    mapping = dict(DEFAULT_SCHEMA)
    mapping['namespaces'] = {'ex': 'https://example.org/vocab#'}
    mapping['classes'] = ['https://example.org/vocab#Collection']
    return Schema(mapping)


def test_properties(schema):
    assert schema.id == 'https://example.org/repo/schema#hasIdentifier'
    assert schema.parent == 'https://example.org/repo/schema#isPartOf'
    assert schema.delete == 'https://example.org/repo/schema#delete'
    assert schema.binary_size == 'https://example.org/repo/schema#hasBinarySize'
    assert schema.search_order == 'https://example.org/repo/schema#searchOrder'


def test_missing_value_is_none(schema):
    assert schema.get('noSuchProperty') is None
    assert 'noSuchProperty' not in schema
    assert 'id' in schema


def test_structured_values_are_copies(schema):
    namespaces = schema.get('namespaces')
    namespaces['other'] = 'https://other.org/'
    schema.get('classes').append('x')

    assert schema.get('namespaces') == {'ex': 'https://example.org/vocab#'}
    assert schema.get('classes') == ['https://example.org/vocab#Collection']


def test_source_mapping_changes_dont_leak():
    mapping = {'id': 'https://example.org/id', 'nested': {'a': 1}}
    schema = Schema(mapping)
    mapping['id'] = 'changed'
    mapping['nested']['a'] = 2

    assert schema.id == 'https://example.org/id'
    assert schema.get('nested') == {'a': 1}


def test_schema_is_read_only(schema):
    with pytest.raises(TypeError):
        schema._schema['id'] = 'x'
    assert schema.to_dict()['id'] == 'https://example.org/repo/schema#hasIdentifier'
