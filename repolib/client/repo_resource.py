"""Repository Resource

Handle of a single repository resource: caches its RDF metadata, tracks the
synchronization state and implements content, metadata and deletion operations.
"""

import logging
import math
from enum import Enum
from typing import List, Optional

import requests
from rdflib import RDF, URIRef
from rdflib.resource import Resource

from ..model.search_config import MetadataMode, SearchConfig
from ..rdf.rdf_utils import NTRIPLES, copy_resource, parse_graph, serialize_graph
from ..utils.client_utils import ConfigurationError, RepoLibError, TransportFailure
from .binary_payload import BinaryPayload

logger = logging.getLogger(__name__)

DELETE_STEP = 1000

REFERENCES_QUERY = "SELECT id FROM relations WHERE target_id = ? ORDER BY id"
RELATIVES_QUERY = "SELECT id FROM get_relatives(?, ?, 999999, 0) ORDER BY n DESC, id"


class UpdateMode(str, Enum):
    """How pushed metadata is combined with the metadata stored in the repository."""
    ADD = 'add'
    OVERWRITE = 'overwrite'
    MERGE = 'merge'


class SyncState(str, Enum):
    UNLOADED = 'unloaded'
    SYNCED = 'synced'
    DIRTY = 'dirty'
    DELETED = 'deleted'


class RepoResource:
    """
    A repository resource.

    Metadata is loaded lazily. Local edits (`set_metadata()`, `set_graph()`)
    mark the handle dirty until `update_metadata()` pushes them.
    """

    @classmethod
    def factory(cls, repo, response: requests.Response, uri: Optional[str] = None) -> 'RepoResource':
        """
        Create a resource handle from a repository response returning the metadata.

        Args:
            repo: Repository connection
            response: Repository response
            uri: Resource URI (the response's Location header is used when not given)

        Returns:
            Resource handle, holding the metadata if the response carries any
        """
        uri = uri or response.headers.get('Location')
        if not uri:
            raise TransportFailure("Repository response carries no resource location")
        res = cls(uri, repo)
        if response.headers.get('Content-Type'):
            res._parse_metadata(response)
        return res

    def __init__(self, uri: str, repo):
        """
        Args:
            uri: Resource URI
            repo: Repository connection, must be a Repo

        Raises:
            ConfigurationError: If repo isn't a Repo connection
        """
        from .repo import Repo

        if not isinstance(repo, Repo):
            raise ConfigurationError("A RepoResource can be created only with a Repo repository connection")
        self._uri = uri
        self._repo = repo
        self._metadata: Optional[Resource] = None
        self._synced = False
        self._deleted = False

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self._uri!r}, state={self.sync_state.value})"

    def get_uri(self) -> str:
        return self._uri

    def get_repo(self):
        return self._repo

    def get_id(self) -> int:
        """Return the internal repository identifier of the resource."""
        base_url = self._repo.get_base_url()
        if not self._uri.startswith(base_url):
            raise RepoLibError(f"Resource {self._uri} doesn't belong to the repository {base_url}")
        try:
            return int(self._uri[len(base_url):])
        except ValueError as e:
            raise RepoLibError(f"Resource {self._uri} has no internal repository id") from e

    @property
    def sync_state(self) -> SyncState:
        if self._deleted and self._metadata is None:
            return SyncState.DELETED
        if self._metadata is None:
            return SyncState.UNLOADED
        return SyncState.SYNCED if self._synced else SyncState.DIRTY

    def is_synced(self) -> bool:
        return self.sync_state == SyncState.SYNCED

    # Metadata access

    def get_metadata(self) -> Resource:
        """
        Return a copy of the resource metadata.

        Modifications of the returned object don't affect the handle until
        they are passed to `set_metadata()`.
        """
        self.load_metadata()
        return copy_resource(self._metadata)

    def get_graph(self) -> Resource:
        """Return the resource metadata by reference."""
        self.load_metadata()
        return self._metadata

    def set_metadata(self, metadata: Resource) -> None:
        """
        Replace the resource metadata with a deep copy of the given resource.

        The copy is rooted at this resource's URI. Use `update_metadata()` to
        write the changes back to the repository.
        """
        self._metadata = copy_resource(metadata, self._uri)
        self._synced = False

    def set_graph(self, metadata: Resource) -> None:
        """
        Replace the resource metadata with the given resource, stored by reference.

        Later modifications of the given object directly affect the handle.
        """
        self._metadata = metadata
        self._synced = False

    def get_ids(self) -> List[str]:
        """Return all identifiers of the resource."""
        graph = self.get_graph()
        id_property = URIRef(self._repo.get_schema().id)
        return [str(v) for v in graph.graph.objects(graph.identifier, id_property)]

    def get_classes(self) -> List[str]:
        graph = self.get_graph()
        return [str(v) for v in graph.graph.objects(graph.identifier, RDF.type)]

    def is_a(self, class_uri: str) -> bool:
        return class_uri in self.get_classes()

    # Repository operations

    def load_metadata(self, force: bool = False, mode: MetadataMode = MetadataMode.RESOURCE,
                      parent_property: Optional[str] = None) -> None:
        """
        Load the current metadata from the repository.

        Args:
            force: Fetch even if the metadata is already loaded (discards local changes)
            mode: Scope of the returned metadata: the resource only, also the
                resources it points to, or also all resources recursively
                related through `parent_property` in both directions
            parent_property: Property used by the relatives mode (defaults to the schema parent)
        """
        if self._metadata is not None and not force:
            return
        headers = {
            'Accept': NTRIPLES,
            self._repo.get_header_name('metadataReadMode'): MetadataMode(mode).value,
            self._repo.get_header_name('metadataParentProperty'): parent_property or self._repo.get_schema().parent,
        }
        response = self._repo.send_request('GET', self._uri + '/metadata', headers)
        self._parse_metadata(response)

    def get_content(self) -> requests.Response:
        """Return the response carrying the resource binary content."""
        return self._repo.send_request('GET', self._uri)

    def update_content(self, content: BinaryPayload) -> None:
        """
        Replace the resource binary content.

        The metadata is reloaded afterwards as the repository derives part of it
        from the binary.
        """
        headers, body = content.attach_to()
        self._repo.send_request('PUT', self._uri, headers, body)
        self.load_metadata(True)

    def has_binary_content(self) -> bool:
        self.load_metadata()
        size = self._metadata.graph.value(self._metadata.identifier,
                                          URIRef(self._repo.get_schema().binary_size))
        if size is None:
            return False
        try:
            value = float(str(size))
        except ValueError:
            return False
        return math.isfinite(value) and value > 0

    def update_metadata(self, update_mode: UpdateMode = UpdateMode.MERGE,
                        read_mode: MetadataMode = MetadataMode.RESOURCE) -> None:
        """
        Save local metadata changes to the repository.

        Only a dirty handle sends anything. The local metadata is replaced with
        the metadata returned by the repository.

        Args:
            update_mode: ADD appends triples, OVERWRITE replaces the whole
                metadata, MERGE replaces values of properties present locally
                and keeps the others
            read_mode: Scope of the metadata returned by the repository
        """
        if self.sync_state != SyncState.DIRTY:
            return
        headers = {
            'Content-Type': NTRIPLES,
            'Accept': NTRIPLES,
            self._repo.get_header_name('metadataWriteMode'): UpdateMode(update_mode).value,
            self._repo.get_header_name('metadataReadMode'): MetadataMode(read_mode).value,
        }
        body = serialize_graph(self._metadata.graph)
        response = self._repo.send_request('PATCH', self._uri + '/metadata', headers, body)
        self._parse_metadata(response)

    def delete(self, tombstone: bool = False, references: bool = False) -> None:
        """
        Delete the repository resource.

        Args:
            tombstone: Also remove the tombstone left by the deletion
            references: Remove references to the deleted resource from other
                resources, leaving a delete marker where a property lost its last value
        """
        logger.info(f"Deleting {self._uri}")
        self._repo.send_request('DELETE', self._uri)

        if tombstone:
            self._repo.send_request('DELETE', self._uri + '/tombstone')

        if references:
            self._remove_references()

        self._metadata = None
        self._synced = False
        self._deleted = True

    def delete_recursively(self, property: str, tombstone: bool = False,
                           references: bool = False) -> None:
        """
        Delete the resource and all resources pointing to it, recursively, with a given property.

        Resources are deleted deepest first. A failure stops the cascade,
        resources deleted before stay deleted.

        Args:
            property: RDF property followed by the cascade
            tombstone: Also remove tombstones of deleted resources
            references: Remove references to deleted resources from other resources
        """
        logger.info(f"Deleting {self._uri} recursively via {property}")
        config = SearchConfig(metadata_mode=MetadataMode.RESOURCE, offset=0, limit=DELETE_STEP)
        parameters = [self.get_id(), property]
        deleted = set()
        while True:
            page = list(self._repo.get_resources_by_sql_query(RELATIVES_QUERY, parameters, config))
            logger.debug(f"Recursive delete page of {len(page)} resources")
            if not page:
                break
            fresh = [res for res in page if res.get_uri() not in deleted]
            if not fresh:
                logger.warning(f"Recursive delete of {self._uri} stopped: repository keeps returning deleted resources")
                break
            for res in fresh:
                res.delete(tombstone, references)
                deleted.add(res.get_uri())
            # offset stays at 0: deleted resources drop out of the next page

        logger.info(f"Deleted {len(deleted)} resources")
        self._metadata = None
        self._synced = False
        self._deleted = True

    def _remove_references(self) -> None:
        schema = self._repo.get_schema()
        delete_marker = URIRef(schema.delete)
        target = URIRef(self._uri)
        config = SearchConfig(metadata_mode=MetadataMode.RESOURCE, offset=0, limit=DELETE_STEP)
        cleaned = set()
        while True:
            page = list(self._repo.get_resources_by_sql_query(REFERENCES_QUERY, [self.get_id()], config))
            logger.debug(f"Reference sweep page of {len(page)} resources")
            if not page:
                break
            fresh = [res for res in page if res.get_uri() not in cleaned]
            if not fresh:
                logger.warning(f"Reference sweep for {self._uri} stopped: repository keeps returning cleaned resources")
                break
            for res in fresh:
                res.load_metadata(False, MetadataMode.RESOURCE)
                meta = res.get_metadata()
                graph, subject = meta.graph, meta.identifier
                for predicate in set(graph.predicates(subject, target)):
                    graph.remove((subject, predicate, target))
                    if (subject, predicate, None) not in graph:
                        graph.add((subject, delete_marker, predicate))
                res.set_metadata(meta)
                res.update_metadata()
                cleaned.add(res.get_uri())
            # offset stays at 0: cleaned resources no longer match the query

        if cleaned:
            logger.info(f"Removed references to {self._uri} from {len(cleaned)} resources")

    def _set_synced_graph(self, metadata: Resource) -> None:
        self._metadata = metadata
        self._synced = True

    def _parse_metadata(self, response: requests.Response) -> None:
        graph = parse_graph(response.content, response.headers.get('Content-Type'))
        self._metadata = graph.resource(URIRef(self._uri))
        self._synced = True
