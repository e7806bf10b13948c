"""Shared fixtures for the mock repository test suite."""

import logging

import pytest
from rdflib import BNode, Graph, Namespace, URIRef

from repolib.mock.mock_repo import MockRepo

logging.basicConfig(level=logging.INFO, format='%(levelname)s: %(message)s')

SCHEMA = Namespace('https://example.org/repo/schema#')
EX = Namespace('https://example.org/vocab#')


@pytest.fixture
def repo():
    """An open in-memory repository connection."""
    mock_repo = MockRepo()
    mock_repo.open()
    yield mock_repo
    if mock_repo.is_connected():
        mock_repo.close()


@pytest.fixture
def make_resource(repo):
    """Create a repository resource from (predicate, object) pairs and optional identifiers."""
    def _make(*pairs, ids=()):
        graph = Graph()
        subject = BNode()
        for predicate, obj in pairs:
            graph.add((subject, predicate, obj))
        for identifier in ids:
            graph.add((subject, SCHEMA.hasIdentifier, URIRef(identifier)))
        return repo.create_resource(graph.resource(subject))
    return _make
