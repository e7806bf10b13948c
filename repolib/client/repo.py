"""Repository Client

REST API client connecting to an RDF metadata repository.
"""

import requests
import logging
from typing import Optional, Dict, Any, Iterator, List, Sequence, Set, Union
from urllib.parse import urlencode

from rdflib import Graph, URIRef
from rdflib.resource import Resource
from requests.adapters import HTTPAdapter

from ..config.client_config_loader import RepoClientConfig
from ..model.schema import Schema
from ..model.search_config import MetadataMode, SearchConfig
from ..model.search_term import SearchTerm
from ..rdf.rdf_utils import NTRIPLES, copy_resource, copy_subjects, parse_graph, serialize_graph
from ..utils.client_utils import (
    AmbiguousMatch, ConfigurationError, NotFound, RepoLibError, TransportFailure,
    validate_required_params
)
from .binary_payload import BinaryPayload
from .repo_inf import RepoInterface
from .repo_resource import RepoResource, UpdateMode

logger = logging.getLogger(__name__)

FORM_CONTENT_TYPE = 'application/x-www-form-urlencoded'


class Repo(RepoInterface):
    """
    Repository REST API connection.

    Resolves identifiers, runs searches, creates resources, manages
    transactions and sends the requests issued by resource handles.
    """

    def __init__(self, base_url: str, schema: Schema, headers: Dict[str, str], *,
                 auth: Optional[tuple] = None, timeout: int = 30, max_retries: int = 3):
        """
        Initialize the repository connection.

        Args:
            base_url: Repository REST API base URL
            schema: Schema mapping logical names to RDF properties
            headers: Mapping of logical header names to HTTP header names
            auth: Optional (username, password) tuple for basic authentication
            timeout: Request timeout in seconds
            max_retries: Connection retries performed by the transport adapter
        """
        validate_required_params(base_url=base_url)
        self.base_url = base_url if base_url.endswith('/') else base_url + '/'
        self.schema = schema
        self.headers = dict(headers)
        self.auth = auth
        self.timeout = timeout
        self.max_retries = max_retries
        self.session: Optional[requests.Session] = None
        self.is_open: bool = False
        self.transaction_id: Optional[str] = None

    @classmethod
    def from_config(cls, config: RepoClientConfig) -> 'Repo':
        """
        Create a repository connection from the client configuration.

        Args:
            config: Loaded client configuration

        Returns:
            Repository connection (not yet opened)
        """
        username, password = config.get_credentials()
        auth = (username, password) if username else None
        return cls(
            config.get_server_url(),
            Schema(config.get_schema_config()),
            config.get_headers(),
            auth=auth,
            timeout=config.get_timeout(),
            max_retries=config.get_max_retries()
        )

    def open(self) -> None:
        """
        Open the connection.

        Initializes the HTTP session with authentication and retry settings.
        """
        if self.is_open:
            logger.warning("Repository connection is already open")
            return

        self.session = requests.Session()
        adapter = HTTPAdapter(max_retries=self.max_retries)
        self.session.mount('http://', adapter)
        self.session.mount('https://', adapter)
        if self.auth:
            self.session.auth = self.auth
        self.session.headers.update({'User-Agent': 'repolib/1.0'})

        self.is_open = True
        logger.info(f"Repository connection to {self.base_url} opened")

    def close(self) -> None:
        """
        Close the connection.

        Cleans up the HTTP session and resets connection state.
        """
        if not self.is_open:
            logger.warning("Repository connection is already closed")
            return

        if self.session:
            try:
                self.session.close()
            finally:
                self.session = None
        self.is_open = False
        self.transaction_id = None
        logger.info("Repository connection closed")

    def is_connected(self) -> bool:
        return self.is_open

    def get_server_info(self) -> Dict[str, Any]:
        """
        Get information about the configured repository.

        Returns:
            Dictionary containing connection information
        """
        return {
            'base_url': self.base_url,
            'timeout': self.timeout,
            'max_retries': self.max_retries,
            'is_connected': self.is_connected(),
            'transaction_id': self.transaction_id
        }

    def __enter__(self):
        """Context manager entry."""
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()

    def __str__(self) -> str:
        status = "connected" if self.is_connected() else "disconnected"
        return f"{self.__class__.__name__}(base_url={self.base_url}, status={status})"

    def __repr__(self) -> str:
        return self.__str__()

    def get_base_url(self) -> str:
        return self.base_url

    def get_schema(self) -> Schema:
        return self.schema

    def get_header_name(self, name: str) -> str:
        """
        Map a logical header name to the repository's HTTP header name.

        Args:
            name: Logical name, e.g. 'metadataReadMode'

        Raises:
            ConfigurationError: If the header isn't configured
        """
        header = self.headers.get(name)
        if not header:
            raise ConfigurationError(f"No HTTP header configured for '{name}'")
        return header

    # Transport

    def send_request(self, method: str, url: str, headers: Optional[Dict[str, str]] = None,
                     body: Union[bytes, str, None] = None) -> requests.Response:
        """
        Send a request to the repository.

        Args:
            method: HTTP method
            url: Request URL
            headers: Request headers
            body: Request body

        Returns:
            Response object

        Raises:
            RepoLibError: If the connection isn't open
            TransportFailure: If the request fails or returns a non-2xx status
        """
        if not self.is_connected():
            raise RepoLibError("Repository connection is not open")

        headers = {k: v for k, v in (headers or {}).items() if v is not None}
        if self.transaction_id is not None:
            headers[self.get_header_name('transactionId')] = self.transaction_id

        method = method.upper()
        logger.debug(f"{method} {url}")
        try:
            response = self._dispatch(method, url, headers, body)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            response = getattr(e, 'response', None)
            status_code = response.status_code if response is not None else None
            error_msg = f"{method} {url} failed: {e}"
            if response is not None and response.text:
                error_msg += f": {response.text}"
            logger.error(error_msg)
            raise TransportFailure(error_msg, status_code) from e
        return response

    def _dispatch(self, method: str, url: str, headers: Dict[str, str],
                  body: Union[bytes, str, None]) -> requests.Response:
        return self.session.request(method, url, headers=headers, data=body, timeout=self.timeout)

    # Resource lookup and search

    def get_resource_by_id(self, id: str, resource_class: Optional[type] = None) -> RepoResource:
        return self.get_resource_by_ids([id], resource_class)

    def get_resource_by_ids(self, ids: Sequence[str], resource_class: Optional[type] = None) -> RepoResource:
        """
        Find the single repository resource matching any of the given identifiers.

        Args:
            ids: Identifiers
            resource_class: Optional class of the returned handle

        Returns:
            Resource handle

        Raises:
            NotFound: If no resource matches
            AmbiguousMatch: If more than one resource matches
        """
        ids = list(ids)
        validate_required_params(ids=ids)
        term = SearchTerm(self.schema.id, ids)
        config = SearchConfig(metadata_mode=MetadataMode.RESOURCE, resource_class=resource_class)
        matches = list(self.get_resources_by_search_terms([term], config))
        if len(matches) == 0:
            raise NotFound(f"No repository resource found with identifier(s): {', '.join(ids)}")
        if len(matches) > 1:
            uris = ', '.join(res.get_uri() for res in matches)
            raise AmbiguousMatch(f"Identifier(s) {', '.join(ids)} match more than one resource: {uris}")
        return matches[0]

    def get_resources_by_sql_query(self, query: str, parameters: List[Any],
                                   config: SearchConfig) -> Iterator[RepoResource]:
        """
        Run a server-side SQL search.

        The request is sent when the iteration starts. `config.count` is set to
        the total number of matches.

        Args:
            query: SQL query returning resource ids
            parameters: Query parameters
            config: Search configuration

        Yields:
            Resource handles holding the returned metadata
        """
        form = [('sql', query)]
        form.extend(('sqlParam[]', str(p)) for p in parameters)
        form.extend(config.to_form_data())
        yield from self._search(form, config)

    def get_resources_by_search_terms(self, search_terms: List[SearchTerm],
                                      config: SearchConfig) -> Iterator[RepoResource]:
        """
        Yield resources matching all the search terms.

        Args:
            search_terms: Search terms (ANDed)
            config: Search configuration

        Yields:
            Resource handles holding the returned metadata
        """
        form = []
        for n, term in enumerate(search_terms):
            form.extend(term.get_form_data(n))
        form.extend(config.to_form_data())
        yield from self._search(form, config)

    def _search(self, form: List[tuple], config: SearchConfig) -> Iterator[RepoResource]:
        headers = {'Accept': NTRIPLES, 'Content-Type': FORM_CONTENT_TYPE}
        headers.update(config.get_headers(self))
        response = self.send_request('POST', self.base_url + 'search', headers, urlencode(form))
        graph = parse_graph(response.content, response.headers.get('Content-Type'))

        count = graph.value(URIRef(self.base_url), URIRef(self.schema.search_count))
        config.count = int(str(count)) if count is not None else 0

        order_property = URIRef(self.schema.search_order) if self.schema.search_order else None

        def order_key(subject):
            order = graph.value(subject, order_property) if order_property is not None else None
            try:
                return (0, int(str(order)), str(subject))
            except ValueError:
                if order is not None:
                    logger.warning(f"Ignoring non-integer search order {order!r} of {subject}")
                return (1, 0, str(subject))

        match_property = URIRef(self.schema.search_match)
        matches = sorted(set(graph.subjects(match_property, None)), key=order_key)
        logger.debug(f"Search returned {len(matches)} of {config.count} matches")

        # search bookkeeping isn't resource metadata
        graph.remove((None, match_property, None))
        graph.remove((URIRef(self.base_url), URIRef(self.schema.search_count), None))
        if order_property is not None:
            graph.remove((None, order_property, None))

        mode = MetadataMode(config.metadata_mode) if config.metadata_mode else MetadataMode.RESOURCE
        parent = config.metadata_parent_property or self.schema.parent
        resource_class = config.resource_class or RepoResource
        for subject in matches:
            res = resource_class(str(subject), self)
            subjects = self._related_subjects(graph, subject, mode, parent)
            res._set_synced_graph(copy_subjects(graph, subjects).resource(subject))
            yield res

    def _related_subjects(self, graph: Graph, subject: URIRef, mode: MetadataMode,
                          parent: Optional[str]) -> Set[URIRef]:
        """Subjects of a search response belonging to one match under the given read mode."""
        subjects = {subject}
        if mode == MetadataMode.NEIGHBORS:
            subjects.update(obj for obj in graph.objects(subject, None)
                            if isinstance(obj, URIRef) and (obj, None, None) in graph)
        elif mode == MetadataMode.RELATIVES and parent:
            parent = URIRef(parent)
            queue = [subject]
            while queue:
                node = queue.pop()
                related = list(graph.objects(node, parent)) + list(graph.subjects(parent, node))
                for other in related:
                    if isinstance(other, URIRef) and other not in subjects:
                        subjects.add(other)
                        queue.append(other)
        return subjects

    # Resource creation

    def create_resource(self, metadata: Resource, payload: Optional[BinaryPayload] = None,
                        resource_class: Optional[type] = None,
                        read_mode: MetadataMode = MetadataMode.RESOURCE) -> RepoResource:
        """
        Create a repository resource.

        Args:
            metadata: Metadata of the new resource (its subject is replaced)
            payload: Optional binary content
            resource_class: Optional class of the returned handle
            read_mode: Scope of the metadata returned by the repository

        Returns:
            Handle of the created resource holding its metadata
        """
        resource_class = resource_class or RepoResource
        headers = {
            'Content-Type': NTRIPLES,
            'Accept': NTRIPLES,
            self.get_header_name('metadataReadMode'): MetadataMode(read_mode).value,
        }
        uri = None
        if payload is not None:
            binary_headers, binary_body = payload.attach_to()
            response = self.send_request('POST', self.base_url, binary_headers, binary_body)
            uri = response.headers.get('Location')
            if not uri:
                raise TransportFailure("Repository didn't return the created resource location")
            headers[self.get_header_name('metadataWriteMode')] = UpdateMode.MERGE.value
            body = serialize_graph(copy_resource(metadata, uri).graph)
            response = self.send_request('PATCH', uri + '/metadata', headers, body)
        else:
            body = serialize_graph(copy_resource(metadata, self.base_url).graph)
            response = self.send_request('POST', self.base_url + 'metadata', headers, body)

        res = resource_class.factory(self, response, uri)
        logger.info(f"Created resource {res.get_uri()}")
        return res

    # Transactions

    def begin(self) -> str:
        """
        Begin a transaction.

        Returns:
            Transaction id sent with all following requests
        """
        if self.transaction_id is not None:
            raise RepoLibError(f"Transaction {self.transaction_id} is already open")
        response = self.send_request('POST', self.base_url + 'transaction')
        transaction_id = response.headers.get(self.get_header_name('transactionId'))
        if not transaction_id:
            try:
                transaction_id = str(response.json()['transactionId'])
            except (ValueError, KeyError, TypeError) as e:
                raise TransportFailure("Repository didn't return a transaction id") from e
        self.transaction_id = transaction_id
        logger.info(f"Transaction {transaction_id} started")
        return transaction_id

    def commit(self) -> None:
        self._end_transaction('PUT')
        logger.info("Transaction committed")

    def rollback(self) -> None:
        self._end_transaction('DELETE')
        logger.info("Transaction rolled back")

    def prolong(self) -> None:
        """Extend the open transaction's timeout."""
        if self.transaction_id is None:
            raise RepoLibError("No open transaction")
        self.send_request('PATCH', self.base_url + 'transaction')

    def in_transaction(self) -> bool:
        return self.transaction_id is not None

    def _end_transaction(self, method: str) -> None:
        if self.transaction_id is None:
            raise RepoLibError("No open transaction")
        self.send_request(method, self.base_url + 'transaction')
        self.transaction_id = None
