"""Client library for RDF metadata repositories exposed over HTTP."""

from .client.binary_payload import BinaryPayload
from .client.client_factory import create_repo
from .client.repo import Repo
from .client.repo_resource import RepoResource, SyncState, UpdateMode
from .model.schema import Schema
from .model.search_config import MetadataMode, SearchConfig
from .model.search_term import SearchTerm, SearchTermType
from .utils.client_utils import (
    AmbiguousMatch, ConfigurationError, NotFound, ParseFailure, RepoLibError, TransportFailure
)

__all__ = [
    'AmbiguousMatch', 'BinaryPayload', 'ConfigurationError', 'MetadataMode', 'NotFound',
    'ParseFailure', 'Repo', 'RepoLibError', 'RepoResource', 'Schema', 'SearchConfig',
    'SearchTerm', 'SearchTermType', 'SyncState', 'TransportFailure', 'UpdateMode', 'create_repo',
]
