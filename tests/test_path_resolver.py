"""
Tests for the path resolver.

Tests dotted/bracket lookups, the length pseudo-property, the db alias
and the MISSING marker.
"""

import pytest

from mockzilla.common.path_resolver import (
    MISSING,
    split_path,
    resolve_path,
    resolve_context_path,
    alias_db_path
)


@pytest.fixture
def data():
    return {
        'user': {'name': 'Ann', 'roles': ['admin', 'dev']},
        'items': [{'sku': 'A'}, {'sku': 'B'}],
        'empty': None
    }


class TestSplitPath:
    """Test path tokenization."""

    def test_dots_and_brackets(self):
        assert split_path('items[0].sku') == ['items', '0', 'sku']

    def test_strips_jsonpath_prefix(self):
        assert split_path('$.user.name') == ['user', 'name']
        assert split_path('$user') == ['user']

    def test_discards_empty_tokens(self):
        assert split_path('a..b[]') == ['a', 'b']


class TestResolvePath:
    """Test resolving paths against JSON-like values."""

    def test_nested_field(self, data):
        assert resolve_path('user.name', data) == 'Ann'

    def test_array_index(self, data):
        assert resolve_path('items[1].sku', data) == 'B'
        assert resolve_path('user.roles.0', data) == 'admin'

    def test_index_out_of_range(self, data):
        assert resolve_path('items[5]', data) is MISSING

    def test_negative_index_does_not_wrap(self, data):
        assert resolve_path('items[-1]', data) is MISSING

    def test_length_of_list_and_string(self, data):
        assert resolve_path('items.length', data) == 2
        assert resolve_path('user.name.length', data) == 3

    def test_missing_field(self, data):
        assert resolve_path('user.email', data) is MISSING

    def test_null_value_is_not_missing(self, data):
        assert resolve_path('empty', data) is None

    def test_walking_through_null(self, data):
        assert resolve_path('empty.anything', data) is MISSING

    def test_field_on_scalar(self, data):
        assert resolve_path('user.name.first', data) is MISSING

    def test_missing_is_falsy_singleton(self):
        assert not MISSING
        assert type(MISSING)() is MISSING


class TestContextPath:
    """Test the db -> tables alias."""

    def test_alias(self):
        assert alias_db_path('db') == 'tables'
        assert alias_db_path('db.cart') == 'tables.cart'
        assert alias_db_path('db[0]') == 'tables[0]'
        assert alias_db_path('dbx.cart') == 'dbx.cart'
        assert alias_db_path('state.db') == 'state.db'

    def test_resolves_tables_through_db(self):
        view = {'tables': {'cart': [{'sku': 'A'}]}, 'state': {}}
        assert resolve_context_path('db.cart.length', view) == 1
        assert resolve_context_path(' $.db.cart[0].sku ', view) == 'A'
        assert resolve_context_path('tables.cart[0].sku', view) == 'A'

    @pytest.mark.parametrize('path', ['', '  ', '$', '$.', ' $. '])
    def test_empty_path_is_missing(self, path):
        view = {'input': {'headers': {'authorization': 'Bearer secret'}}, 'state': {}}
        assert resolve_context_path(path, view) is MISSING
