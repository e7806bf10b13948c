"""
Tests for resource deletion: tombstones, the reference sweep and recursive deletion.
"""

from urllib.parse import parse_qs

import pytest
from rdflib import Literal, Namespace, URIRef

from repolib.client import repo_resource
from repolib.client.repo_resource import SyncState
from repolib.rdf.rdf_utils import parse_graph
from repolib.utils.client_utils import TransportFailure

SCHEMA = Namespace('https://example.org/repo/schema#')
EX = Namespace('https://example.org/vocab#')


def patch_bodies(repo):
    """Map resource URI to the graph sent in its metadata PATCH."""
    bodies = {}
    for request in repo.get_requests('PATCH', '/metadata'):
        uri = request.url[:-len('/metadata')]
        bodies[uri] = parse_graph(request.body, request.headers['Content-Type'])
    return bodies


class TestDelete:

    def test_delete_marks_handle_deleted(self, repo, make_resource):
        res = make_resource((EX.title, Literal('a')))
        uri = res.get_uri()

        res.delete()

        assert res.sync_state == SyncState.DELETED
        assert uri not in repo.store.resources
        assert uri in repo.store.tombstones

    def test_delete_with_tombstone_purges_it(self, repo, make_resource):
        res = make_resource((EX.title, Literal('a')))
        uri = res.get_uri()
        repo.requests.clear()

        res.delete(tombstone=True)

        assert [(r.method, r.url) for r in repo.requests] == [
            ('DELETE', uri),
            ('DELETE', uri + '/tombstone'),
        ]
        assert uri not in repo.store.tombstones

    def test_deleted_resource_metadata_is_gone(self, repo, make_resource):
        res = make_resource((EX.title, Literal('a')))
        res.delete()

        with pytest.raises(TransportFailure) as exc_info:
            res.load_metadata()
        assert exc_info.value.status_code == 410

    def test_failed_delete_keeps_local_state(self, repo, make_resource):
        res = make_resource((EX.title, Literal('a')))
        repo.store.resources.discard(res.get_uri())

        with pytest.raises(TransportFailure):
            res.delete(tombstone=True, references=True)

        assert res.sync_state == SyncState.SYNCED
        assert len(repo.get_requests('POST', 'search')) == 0


class TestReferenceSweep:

    def test_unreferenced_resource_needs_no_cleanup_writes(self, repo, make_resource):
        res = make_resource((EX.title, Literal('lonely')))
        repo.requests.clear()

        res.delete(tombstone=False, references=True)

        assert len(repo.get_requests('PATCH')) == 0
        assert len(repo.get_requests('POST', 'search')) == 1

    def test_each_referencing_resource_is_patched_once(self, repo, make_resource):
        target = make_resource((EX.title, Literal('target')))
        other = make_resource((EX.title, Literal('other')))
        target_uri = URIRef(target.get_uri())
        single = [make_resource((EX.relation, target_uri)) for _ in range(3)]
        multi = make_resource((EX.relation, target_uri), (EX.relation, URIRef(other.get_uri())))
        repo.requests.clear()

        target.delete(references=True)

        bodies = patch_bodies(repo)
        assert len(repo.get_requests('PATCH')) == 4
        for res in single:
            body = bodies[res.get_uri()]
            subject = URIRef(res.get_uri())
            assert (subject, EX.relation, target_uri) not in body
            assert (subject, SCHEMA.delete, EX.relation) in body
        multi_body = bodies[multi.get_uri()]
        multi_subject = URIRef(multi.get_uri())
        assert (multi_subject, EX.relation, target_uri) not in multi_body
        assert (multi_subject, EX.relation, URIRef(other.get_uri())) in multi_body
        assert (multi_subject, SCHEMA.delete, EX.relation) not in multi_body

    def test_value_and_marker_never_coexist(self, repo, make_resource):
        target = make_resource((EX.title, Literal('target')))
        referencing = make_resource((EX.relation, URIRef(target.get_uri())), (EX.title, Literal('keep')))
        subject = URIRef(referencing.get_uri())

        target.delete(references=True)

        graph = repo.store.graph
        assert (subject, EX.relation, None) not in graph
        assert (subject, SCHEMA.delete, None) not in graph
        assert (subject, EX.title, Literal('keep')) in graph

        # the handle returned by the search isn't the one we hold, reload ours
        referencing.load_metadata(force=True)
        meta = referencing.get_graph()
        assert meta.graph.value(meta.identifier, EX.relation) is None

    def test_sweep_pages_without_advancing_offset(self, repo, make_resource, monkeypatch):
        monkeypatch.setattr(repo_resource, 'DELETE_STEP', 2)
        target = make_resource((EX.title, Literal('target')))
        referencing = [make_resource((EX.relation, URIRef(target.get_uri()))) for _ in range(5)]
        repo.requests.clear()

        target.delete(references=True)

        searches = repo.get_requests('POST', 'search')
        assert len(searches) == 4
        for request in searches:
            form = parse_qs(request.body)
            assert form['limit'] == ['2']
            assert 'offset' not in form
        assert set(patch_bodies(repo)) == {res.get_uri() for res in referencing}

    def test_sweep_stops_when_repository_makes_no_progress(self, repo, make_resource, monkeypatch):
        target = make_resource((EX.title, Literal('target')))
        stuck = make_resource((EX.relation, URIRef(target.get_uri())))
        monkeypatch.setattr(repo.store, '_referencing', lambda uri: [stuck.get_uri()])
        repo.requests.clear()

        target.delete(references=True)

        assert len(repo.get_requests('PATCH')) == 1
        assert len(repo.get_requests('POST', 'search')) == 2
        assert target.sync_state == SyncState.DELETED


class TestDeleteRecursively:

    def test_chain_is_deleted_leaves_first(self, repo, make_resource):
        a = make_resource((EX.title, Literal('A')))
        b = make_resource((SCHEMA.isPartOf, URIRef(a.get_uri())))
        c = make_resource((SCHEMA.isPartOf, URIRef(b.get_uri())))
        unrelated = make_resource((EX.title, Literal('unrelated')))
        repo.requests.clear()

        a.delete_recursively(str(SCHEMA.isPartOf))

        deleted = [r.url for r in repo.get_requests('DELETE')]
        assert deleted == [c.get_uri(), b.get_uri(), a.get_uri()]
        assert a.sync_state == SyncState.DELETED
        assert unrelated.get_uri() in repo.store.resources

    def test_tree_is_deleted_by_depth_then_id(self, repo, make_resource):
        root = make_resource((EX.title, Literal('root')))
        child1 = make_resource((SCHEMA.isPartOf, URIRef(root.get_uri())))
        child2 = make_resource((SCHEMA.isPartOf, URIRef(root.get_uri())))
        grandchild = make_resource((SCHEMA.isPartOf, URIRef(child1.get_uri())))
        repo.requests.clear()

        root.delete_recursively(str(SCHEMA.isPartOf), tombstone=True)

        deleted = [r.url for r in repo.get_requests('DELETE') if not r.url.endswith('/tombstone')]
        assert deleted == [grandchild.get_uri(), child1.get_uri(), child2.get_uri(), root.get_uri()]
        assert repo.store.tombstones == set()

    def test_cascade_removes_references(self, repo, make_resource):
        root = make_resource((EX.title, Literal('root')))
        child = make_resource((SCHEMA.isPartOf, URIRef(root.get_uri())))
        observer = make_resource((EX.seeAlso, URIRef(child.get_uri())), (EX.title, Literal('observer')))
        subject = URIRef(observer.get_uri())

        root.delete_recursively(str(SCHEMA.isPartOf), references=True)

        assert repo.store.resources == {observer.get_uri()}
        assert (subject, EX.seeAlso, None) not in repo.store.graph
        assert (subject, EX.title, Literal('observer')) in repo.store.graph

    def test_cascade_pages_without_advancing_offset(self, repo, make_resource, monkeypatch):
        monkeypatch.setattr(repo_resource, 'DELETE_STEP', 2)
        root = make_resource((EX.title, Literal('root')))
        for _ in range(4):
            make_resource((SCHEMA.isPartOf, URIRef(root.get_uri())))
        repo.requests.clear()

        root.delete_recursively(str(SCHEMA.isPartOf))

        assert repo.store.resources == set()
        assert len(repo.get_requests('DELETE')) == 5
        # pages of 2, 2, 1 (the root) and the final empty one
        assert len(repo.get_requests('POST', 'search')) == 4

    def test_failure_aborts_cascade_without_rollback(self, repo, make_resource, monkeypatch):
        a = make_resource((EX.title, Literal('A')))
        b = make_resource((SCHEMA.isPartOf, URIRef(a.get_uri())))
        c = make_resource((SCHEMA.isPartOf, URIRef(b.get_uri())))

        dispatch = repo._dispatch

        def failing_dispatch(method, url, headers, body):
            if method == 'DELETE' and url == b.get_uri():
                return repo.store._response(500, url=url)
            return dispatch(method, url, headers, body)

        monkeypatch.setattr(repo, '_dispatch', failing_dispatch)

        with pytest.raises(TransportFailure) as exc_info:
            a.delete_recursively(str(SCHEMA.isPartOf))

        assert exc_info.value.status_code == 500
        assert c.get_uri() not in repo.store.resources
        assert b.get_uri() in repo.store.resources
        assert a.get_uri() in repo.store.resources
        assert a.sync_state == SyncState.SYNCED
