"""
Tests for the interactive REPL commands, run against the mock repository.
"""

import pytest
from rdflib import BNode, Graph, Literal, Namespace

from repolib.cmd.repo_repl import RepoREPL
from repolib.mock.mock_repo import MockRepo

SCHEMA = Namespace('https://example.org/repo/schema#')


@pytest.fixture
def repl():
    instance = RepoREPL()
    instance.repo = MockRepo()
    assert instance.execute_command('open;')
    yield instance
    instance.execute_command('close;')


def add_resource(repo, title, identifier):
    graph = Graph()
    subject = BNode()
    graph.add((subject, SCHEMA.hasTitle, Literal(title)))
    graph.add((subject, SCHEMA.hasIdentifier, Literal(identifier)))
    return repo.create_resource(graph.resource(subject))


def test_parse_command():
    assert RepoREPL().parse_command('GET a b;') == ('get', ['a', 'b'])
    assert RepoREPL().parse_command('   ') == ('', [])


def test_commands_need_connection(capsys):
    instance = RepoREPL()
    assert instance.execute_command('get x;')
    assert 'Not connected' in capsys.readouterr().out


def test_unknown_command(repl, capsys):
    assert repl.execute_command('frobnicate;')
    assert 'Unknown command' in capsys.readouterr().out


def test_get_and_search(repl, capsys):
    res = add_resource(repl.repo, 'Alpha', 'alpha-id')

    repl.execute_command('get alpha-id;')
    assert res.get_uri() in capsys.readouterr().out

    repl.execute_command(f'search {SCHEMA.hasTitle} Alpha;')
    out = capsys.readouterr().out
    assert 'Alpha' in out
    assert '1 of 1 matches' in out


def test_errors_are_reported(repl, capsys):
    assert repl.execute_command('get missing-id;')
    assert 'No repository resource found' in capsys.readouterr().out

    assert repl.execute_command('meta http://localhost/api/1 sideways;')
    assert '❌' in capsys.readouterr().out


def test_delete(repl, capsys):
    res = add_resource(repl.repo, 'Alpha', 'alpha-id')

    repl.execute_command(f'delete {res.get_uri()} tombstone;')

    assert res.get_uri() not in repl.repo.store.resources
    assert res.get_uri() not in repl.repo.store.tombstones
    assert 'Deleted' in capsys.readouterr().out


def test_exit(repl):
    assert repl.execute_command('exit;') is False
    assert not repl.connected
