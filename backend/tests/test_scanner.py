"""Tests for walking, matching and materializing discovered files."""

import logging

import pytest

from dynaload.core.errors import ModuleLoadError
from dynaload.loader import scanner
from dynaload.loader.contracts import inspect_contract
from dynaload.loader.scanner import matches, materialize, scan
from tests.helpers import plugin_source
from tests.plugin_contracts import C1


@pytest.mark.parametrize('rel, pattern, expected', [
    ('Inventory/inventory.routes.py', '.routes.py', True),
    ('Inventory/inventory.routes.py', '*.routes.py', True),
    ('Inventory/inventory.py', '*.routes.py', False),
    ('a/b/x.plug', '.plug', True),
    ('a/b/x.plug.bak', '.plug', False),
    ('a/b/x.plug', 'a/*/x.plug', True),
    ('c/b/x.plug', 'a/*/x.plug', False),
    ('x.plug', '?.plug', True),
    ('anything', None, True),
])
def test_matches(rel, pattern, expected):
    assert matches(rel, pattern) is expected


class TestScan:

    def test_selection_returns_exactly_the_matching_valid_files(self, write_module, source_root):
        for i in range(3):
            write_module(f'pkg{i}/mod{i}.plug', plugin_source(f'mod{i}'))
        write_module('pkg0/readme.txt', 'not a plugin')
        write_module('pkg1/helper.py', plugin_source('helper'))
        write_module('other.plugx', plugin_source('other'))

        found = scan(source_root, '.plug', inspect_contract(C1), source_root)
        assert list(found) == ['pkg0/mod0.plug', 'pkg1/mod1.plug', 'pkg2/mod2.plug']
        assert all(callable(m.value) for m in found.values())
        assert found['pkg1/mod1.plug'].path == 'pkg1/mod1.plug'

    def test_results_are_path_sorted(self, write_module, source_root):
        for rel in ['b/z.plug', 'a.plug', 'b/a.plug', 'c.plug', 'a/b/c.plug']:
            write_module(rel, plugin_source(rel))
        found = scan(source_root, '.plug', inspect_contract(C1), source_root)
        assert list(found) == sorted(found)

    def test_example_tree(self, example_tree, monkeypatch, caplog):
        seen = []
        real = scanner.materialize

        def spy(path, rel, *, execute):
            seen.append(rel)
            return real(path, rel, execute=execute)

        monkeypatch.setattr(scanner, 'materialize', spy)
        with caplog.at_level(logging.WARNING, logger='dynaload.loader.scanner'):
            found = scan(example_tree, '.plug', inspect_contract(C1), example_tree)

        assert list(found) == ['x.plug']
        assert 'z.other' not in seen
        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 1
        assert 'y.plug' in warnings[0].getMessage()
        assert 'contract violation' in warnings[0].getMessage()

    def test_malformed_and_violating_modules_are_logged_differently(self, write_module, source_root, caplog):
        write_module('broken.plug', 'def plugin(ctx)\n    pass\n')
        write_module('raises.plug', 'raise ValueError("at import")\n')
        write_module('noexport.plug', 'value = 1\n')
        write_module('string.plug', 'plugin = "text"\n')
        write_module('good.plug', plugin_source('good'))

        with caplog.at_level(logging.WARNING, logger='dynaload.loader.scanner'):
            found = scan(source_root, '.plug', inspect_contract(C1), source_root)

        assert list(found) == ['good.plug']
        messages = {r.getMessage().split(' ')[3]: r.getMessage() for r in caplog.records}
        assert 'malformed module' in messages['broken.plug']
        assert 'malformed module' in messages['raises.plug']
        assert "does not define 'plugin'" in messages['noexport.plug']
        assert 'contract violation' in messages['string.plug']

    def test_zero_matches_is_a_warning(self, write_module, source_root, caplog):
        write_module('a.txt', 'hello')
        with caplog.at_level(logging.WARNING, logger='dynaload.loader.scanner'):
            found = scan(source_root, '.plug', inspect_contract(C1), source_root)
        assert found == {}
        assert any('no files matching' in r.getMessage() for r in caplog.records)

    def test_search_dir_subtree_keeps_source_relative_paths(self, write_module, source_root):
        write_module('inner/deep/a.plug', plugin_source('a'))
        write_module('outer.plug', plugin_source('outer'))
        found = scan(source_root / 'inner', '.plug', inspect_contract(C1), source_root)
        assert list(found) == ['inner/deep/a.plug']

    def test_pycache_and_hidden_directories_are_pruned(self, write_module, source_root):
        write_module('__pycache__/cached.plug', plugin_source('cached'))
        write_module('.git/hook.plug', plugin_source('hook'))
        write_module('real.plug', plugin_source('real'))
        found = scan(source_root, '.plug', inspect_contract(C1), source_root)
        assert list(found) == ['real.plug']

    def test_without_contract_values_are_returned_as_is(self, write_module, source_root):
        write_module('defs/users.yml', 'table: users\ncolumns: [id, name]\n')
        write_module('defs/orders.py', 'plugin = {"table": "orders"}\n')
        write_module('defs/notes.sql', 'CREATE TABLE notes (id INT);\n')
        found = scan(source_root, None, None, source_root)
        assert found['defs/users.yml'].value == {'table': 'users', 'columns': ['id', 'name']}
        assert found['defs/orders.py'].value == {'table': 'orders'}
        assert found['defs/notes.sql'].value == 'CREATE TABLE notes (id INT);\n'


class TestMaterialize:

    def test_contract_mode_executes_any_suffix(self, write_module):
        path = write_module('x.plug', 'plugin = 3\n')
        assert materialize(path, 'x.plug', execute=True) == 3
        assert materialize(path, 'x.plug', execute=False) == 'plugin = 3\n'

    def test_modules_get_their_own_namespace(self, write_module):
        path = write_module('m.py', 'counter = 0\ndef plugin():\n    return __name__, __file__\n')
        name, file = materialize(path, 'm.py', execute=True)()
        assert name == 'dynaload.modules.m.py'
        assert file == str(path)

    def test_invalid_yaml(self, write_module):
        path = write_module('bad.yml', 'a: [1, 2\n')
        with pytest.raises(ModuleLoadError, match='invalid YAML'):
            materialize(path, 'bad.yml', execute=False)

    def test_missing_file(self, source_root):
        with pytest.raises(ModuleLoadError):
            materialize(source_root / 'gone.plug', 'gone.plug', execute=True)
