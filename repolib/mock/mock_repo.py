"""Mock Repository

In-memory implementation of the repository REST API for testing and offline use.
MockRepo replaces only the HTTP transport of Repo, so resource handles,
searches and transactions run the same code paths as against a real server.
"""

import http
import logging
import re
from collections import namedtuple
from typing import Any, Dict, List, Optional, Set, Union
from urllib.parse import parse_qsl

import requests
from rdflib import Graph, Literal, URIRef
from requests.structures import CaseInsensitiveDict

from ..client.repo import Repo
from ..client.repo_resource import REFERENCES_QUERY, RELATIVES_QUERY
from ..config.client_config_loader import DEFAULT_HEADERS, DEFAULT_SCHEMA
from ..model.schema import Schema
from ..model.search_config import MetadataMode
from ..rdf.rdf_utils import NTRIPLES, parse_graph, serialize_graph
from ..utils.client_utils import ParseFailure

logger = logging.getLogger(__name__)

MockRequest = namedtuple('MockRequest', ['method', 'url', 'headers', 'body'])

_TERM_KEY = re.compile(r'^(property|operator|value|type|language)\[(\d+)\](\[\])?$')
_OPERATORS = ('=', '!=', '<', '<=', '>', '>=', '~')


class MockRepoStore:
    """
    In-memory repository server state.

    All metadata lives in a single rdflib graph. Resources are numbered
    sequentially below the base URL.
    """

    def __init__(self, base_url: str, schema: Schema, headers: Dict[str, str]):
        self.base_url = base_url
        self.schema = schema
        self.header_names = headers
        self.graph = Graph()
        self.resources: Set[str] = set()
        self.binaries: Dict[str, tuple] = {}
        self.tombstones: Set[str] = set()
        self.next_id = 1
        self.transaction_id: Optional[str] = None
        self._transaction_counter = 0
        self._snapshot = None

    # Request routing

    def handle(self, method: str, url: str, headers: Dict[str, str],
               body: Union[bytes, str, None]) -> requests.Response:
        headers = CaseInsensitiveDict(headers)
        if not url.startswith(self.base_url):
            return self._response(404, url=url)
        path = url[len(self.base_url):]

        if path == 'search' and method == 'POST':
            return self._search(url, headers, body)
        if path == 'transaction':
            return self._transaction(url, method)
        if path == 'metadata' and method == 'POST':
            return self._create(url, headers, body)
        if path == '' and method == 'POST':
            return self._create_binary(url, headers, body)

        parts = path.split('/')
        uri = self.base_url + parts[0]
        sub = parts[1] if len(parts) > 1 else ''

        if sub == 'tombstone' and method == 'DELETE':
            if uri not in self.tombstones:
                return self._response(404, url=url)
            self.tombstones.discard(uri)
            return self._response(204, url=url)
        if uri in self.tombstones:
            return self._response(410, url=url)
        if uri not in self.resources:
            return self._response(404, url=url)

        if sub == '':
            if method == 'GET':
                data, content_type = self.binaries.get(uri, (b'', 'application/octet-stream'))
                return self._response(200, data, {'Content-Type': content_type}, url)
            if method == 'PUT':
                self._store_binary(uri, headers, body)
                return self._response(204, url=url)
            if method == 'DELETE':
                self._delete(uri)
                return self._response(204, url=url)
        elif sub == 'metadata':
            if method == 'GET':
                return self._metadata_response(url, [uri], headers)
            if method == 'PATCH':
                return self._patch(url, uri, headers, body)
        return self._response(405, url=url)

    def _response(self, status: int, body: bytes = b'', headers: Optional[Dict[str, str]] = None,
                  url: Optional[str] = None) -> requests.Response:
        response = requests.Response()
        response.status_code = status
        response.reason = http.HTTPStatus(status).phrase
        response._content = body
        response.headers = CaseInsensitiveDict(headers or {})
        response.url = url
        response.encoding = 'utf-8'
        return response

    def _graph_response(self, url: str, graph: Graph, status: int = 200,
                        headers: Optional[Dict[str, str]] = None) -> requests.Response:
        headers = dict(headers or {})
        headers['Content-Type'] = NTRIPLES
        return self._response(status, serialize_graph(graph), headers, url)

    def _header(self, headers: CaseInsensitiveDict, name: str) -> Optional[str]:
        return headers.get(self.header_names[name])

    # Metadata

    def add_triples(self, uri: str, graph: Graph, subject: Optional[str] = None) -> None:
        source = URIRef(subject or uri)
        for _, predicate, obj in graph.triples((source, None, None)):
            self.graph.add((URIRef(uri), predicate, obj))

    def _metadata_graph(self, uris: List[str], mode: str, parent: Optional[str]) -> Graph:
        subjects = set(uris)
        if mode == MetadataMode.NEIGHBORS.value:
            for uri in uris:
                for obj in self.graph.objects(URIRef(uri), None):
                    if str(obj) in self.resources:
                        subjects.add(str(obj))
        elif mode == MetadataMode.RELATIVES.value and parent:
            for uri in uris:
                subjects |= self._relatives(uri, parent)

        graph = Graph()
        for subject in subjects:
            for triple in self.graph.triples((URIRef(subject), None, None)):
                graph.add(triple)
        return graph

    def _metadata_response(self, url: str, uris: List[str], headers: CaseInsensitiveDict,
                           status: int = 200, extra_headers: Optional[Dict[str, str]] = None) -> requests.Response:
        mode = self._header(headers, 'metadataReadMode') or MetadataMode.RESOURCE.value
        if mode not in {m.value for m in MetadataMode}:
            return self._response(400, f"Unknown metadata read mode {mode}".encode(), url=url)
        parent = self._header(headers, 'metadataParentProperty') or self.schema.parent
        return self._graph_response(url, self._metadata_graph(uris, mode, parent), status, extra_headers)

    def _patch(self, url: str, uri: str, headers: CaseInsensitiveDict,
               body: Union[bytes, str, None]) -> requests.Response:
        mode = self._header(headers, 'metadataWriteMode') or 'merge'
        try:
            graph = parse_graph(body, headers.get('Content-Type'))
        except ParseFailure as e:
            return self._response(400, str(e).encode(), url=url)

        subject = URIRef(uri)
        delete_marker = URIRef(self.schema.delete)
        new_triples = [(p, o) for p, o in graph.predicate_objects(subject) if p != delete_marker]
        # a delete marker drops all values of the property it points to
        deleted_properties = set(graph.objects(subject, delete_marker))
        managed = URIRef(self.schema.binary_size)
        if mode == 'overwrite':
            for predicate in set(self.graph.predicates(subject, None)):
                if predicate != managed:
                    self.graph.remove((subject, predicate, None))
        elif mode == 'merge':
            for predicate in {p for p, _ in new_triples}:
                self.graph.remove((subject, predicate, None))
        elif mode != 'add':
            return self._response(400, f"Unknown metadata write mode {mode}".encode(), url=url)
        for predicate, obj in new_triples:
            self.graph.add((subject, predicate, obj))
        for predicate in deleted_properties:
            self.graph.remove((subject, URIRef(predicate), None))
        return self._metadata_response(url, [uri], headers)

    # Resource lifecycle

    def _new_resource(self) -> str:
        uri = f"{self.base_url}{self.next_id}"
        self.next_id += 1
        self.resources.add(uri)
        self.graph.add((URIRef(uri), URIRef(self.schema.id), URIRef(uri)))
        return uri

    def _create(self, url: str, headers: CaseInsensitiveDict, body: Union[bytes, str, None]) -> requests.Response:
        try:
            graph = parse_graph(body, headers.get('Content-Type'))
        except ParseFailure as e:
            return self._response(400, str(e).encode(), url=url)
        uri = self._new_resource()
        self.add_triples(uri, graph, self.base_url)
        logger.debug(f"Mock repository created {uri}")
        return self._metadata_response(url, [uri], headers, 201, {'Location': uri})

    def _create_binary(self, url: str, headers: CaseInsensitiveDict, body: Union[bytes, str, None]) -> requests.Response:
        uri = self._new_resource()
        self._store_binary(uri, headers, body)
        logger.debug(f"Mock repository created binary resource {uri}")
        return self._response(201, headers={'Location': uri}, url=url)

    def _store_binary(self, uri: str, headers: CaseInsensitiveDict, body: Union[bytes, str, None]) -> None:
        if isinstance(body, str):
            body = body.encode('utf-8')
        data = body or b''
        self.binaries[uri] = (data, headers.get('Content-Type', 'application/octet-stream'))
        size_property = URIRef(self.schema.binary_size)
        self.graph.remove((URIRef(uri), size_property, None))
        self.graph.add((URIRef(uri), size_property, Literal(len(data))))

    def _delete(self, uri: str) -> None:
        self.graph.remove((URIRef(uri), None, None))
        self.resources.discard(uri)
        self.binaries.pop(uri, None)
        self.tombstones.add(uri)
        logger.debug(f"Mock repository deleted {uri}")

    # Graph traversal

    def _internal_id(self, uri: str) -> int:
        return int(uri[len(self.base_url):])

    def _relatives(self, uri: str, parent: str) -> Set[str]:
        prop = URIRef(parent)
        found = {uri}
        queue = [URIRef(uri)]
        while queue:
            node = queue.pop()
            related = list(self.graph.objects(node, prop)) + list(self.graph.subjects(prop, node))
            for other in related:
                if str(other) in self.resources and str(other) not in found:
                    found.add(str(other))
                    queue.append(other)
        return found

    def _descendants(self, uri: str, prop: str) -> Dict[str, int]:
        """Resources pointing to uri via prop, transitively, with their depth."""
        depths = {uri: 0} if uri in self.resources else {}
        level = [URIRef(uri)]
        depth = 0
        while level:
            depth += 1
            next_level = []
            for node in level:
                for subject in self.graph.subjects(URIRef(prop), node):
                    if str(subject) in self.resources and str(subject) not in depths:
                        depths[str(subject)] = depth
                        next_level.append(subject)
            level = next_level
        return depths

    def _referencing(self, target: str) -> List[str]:
        id_property = URIRef(self.schema.id)
        found = set()
        for subject, predicate in self.graph.subject_predicates(URIRef(target)):
            if predicate != id_property and str(subject) in self.resources and str(subject) != target:
                found.add(str(subject))
        return sorted(found, key=self._internal_id)

    # Search

    def _search(self, url: str, headers: CaseInsensitiveDict, body: Union[bytes, str, None]) -> requests.Response:
        if isinstance(body, bytes):
            body = body.decode('utf-8')
        params: Dict[str, List[str]] = {}
        for key, value in parse_qsl(body or '', keep_blank_values=True):
            params.setdefault(key, []).append(value)

        if 'sql' in params:
            sql = params['sql'][0]
            sql_params = params.get('sqlParam[]', [])
            if sql == REFERENCES_QUERY:
                matches = self._referencing(self.base_url + sql_params[0])
            elif sql == RELATIVES_QUERY:
                depths = self._descendants(self.base_url + sql_params[0], sql_params[1])
                matches = sorted(depths, key=lambda u: (-depths[u], self._internal_id(u)))
            else:
                return self._response(400, b"Unsupported query", url=url)
        else:
            terms = self._parse_terms(params)
            if any(t.get('operator', '=') not in _OPERATORS for t in terms):
                return self._response(400, b"Unsupported operator", url=url)
            matches = [uri for uri in self.resources if all(self._matches_term(uri, t) for t in terms)]
            matches = self._order(matches, params.get('orderBy[]', []), params.get('orderByLang', [None])[0])

        total = len(matches)
        offset = int(params.get('offset', ['0'])[0] or 0)
        limit = params.get('limit', [None])[0]
        matches = matches[offset:offset + int(limit)] if limit else matches[offset:]

        mode = self._header(headers, 'metadataReadMode') or MetadataMode.RESOURCE.value
        parent = self._header(headers, 'metadataParentProperty') or self.schema.parent
        graph = self._metadata_graph(matches, mode, parent)
        for n, uri in enumerate(matches):
            graph.add((URIRef(uri), URIRef(self.schema.search_match), Literal(True)))
            graph.add((URIRef(uri), URIRef(self.schema.search_order), Literal(n)))
        graph.add((URIRef(self.base_url), URIRef(self.schema.search_count), Literal(total)))
        return self._graph_response(url, graph)

    def _parse_terms(self, params: Dict[str, List[str]]) -> List[Dict[str, Any]]:
        terms: Dict[int, Dict[str, Any]] = {}
        for key, values in params.items():
            match = _TERM_KEY.match(key)
            if not match:
                continue
            name, index, is_list = match.group(1), int(match.group(2)), match.group(3)
            terms.setdefault(index, {})[name] = values if is_list else values[0]
        return [terms[i] for i in sorted(terms)]

    def _matches_term(self, uri: str, term: Dict[str, Any]) -> bool:
        prop = term.get('property')
        values = term.get('value')
        if values is not None and not isinstance(values, list):
            values = [values]
        operator = term.get('operator', '=')
        language = term.get('language')
        for predicate, obj in self.graph.predicate_objects(URIRef(uri)):
            if prop and str(predicate) != prop:
                continue
            if term.get('type') == 'relation' and not isinstance(obj, URIRef):
                continue
            if language and getattr(obj, 'language', None) != language:
                continue
            if values is None or any(self._compare(obj, operator, v) for v in values):
                return True
        return False

    def _compare(self, obj, operator: str, value: str) -> bool:
        text = str(obj)
        if operator == '~':
            return re.search(value, text) is not None
        if operator == '=':
            return text == value
        if operator == '!=':
            return text != value
        try:
            left, right = float(text), float(value)
        except ValueError:
            left, right = text, value
        if operator == '<':
            return left < right
        if operator == '<=':
            return left <= right
        if operator == '>':
            return left > right
        return left >= right

    def _order(self, uris: List[str], order_by: List[str], language: Optional[str]) -> List[str]:
        def key(uri):
            values = []
            for prop in order_by:
                literals = [str(o) for o in self.graph.objects(URIRef(uri), URIRef(prop))
                            if isinstance(o, Literal) and (language is None or o.language == language)]
                values.append(min(literals) if literals else '')
            return (values, self._internal_id(uri))
        return sorted(uris, key=key)

    # Transactions

    def _transaction(self, url: str, method: str) -> requests.Response:
        if method == 'POST':
            if self.transaction_id is not None:
                return self._response(400, b"Transaction already open", url=url)
            self._transaction_counter += 1
            self.transaction_id = str(self._transaction_counter)
            snapshot = Graph()
            snapshot += self.graph
            self._snapshot = (snapshot, set(self.resources), dict(self.binaries),
                              set(self.tombstones), self.next_id)
            return self._response(201, headers={self.header_names['transactionId']: self.transaction_id}, url=url)

        if self.transaction_id is None:
            return self._response(400, b"No open transaction", url=url)
        if method == 'PATCH':
            return self._response(204, url=url)
        if method == 'DELETE':
            self.graph, self.resources, self.binaries, self.tombstones, self.next_id = self._snapshot
        elif method != 'PUT':
            return self._response(405, url=url)
        self.transaction_id = None
        self._snapshot = None
        return self._response(204, url=url)


class MockRepo(Repo):
    """
    Repository connection backed by an in-memory MockRepoStore.

    All requests sent are recorded in `requests`.
    """

    def __init__(self, base_url: str = 'http://localhost/api/', schema: Optional[Schema] = None,
                 headers: Optional[Dict[str, str]] = None, **kwargs):
        super().__init__(base_url, schema or Schema(DEFAULT_SCHEMA), headers or dict(DEFAULT_HEADERS), **kwargs)
        self.store = MockRepoStore(self.base_url, self.schema, self.headers)
        self.requests: List[MockRequest] = []
        logger.info(f"Mock repository initialized at {self.base_url}")

    def open(self) -> None:
        if self.is_open:
            logger.warning("Mock repository connection is already open")
            return
        self.is_open = True
        logger.info("Mock repository connection opened")

    def close(self) -> None:
        if not self.is_open:
            logger.warning("Mock repository connection is already closed")
            return
        self.is_open = False
        self.transaction_id = None
        logger.info("Mock repository connection closed")

    def get_server_info(self) -> Dict[str, Any]:
        info = super().get_server_info()
        info['mock'] = True
        return info

    def get_requests(self, method: Optional[str] = None, suffix: Optional[str] = None) -> List[MockRequest]:
        """Return recorded requests, optionally filtered by method and URL suffix."""
        return [r for r in self.requests
                if (method is None or r.method == method) and (suffix is None or r.url.endswith(suffix))]

    def _dispatch(self, method: str, url: str, headers: Dict[str, str],
                  body: Union[bytes, str, None]) -> requests.Response:
        self.requests.append(MockRequest(method, url, dict(headers), body))
        return self.store.handle(method, url, headers, body)
