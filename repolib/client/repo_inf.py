"""Repository Connection Interface

Abstract base class defining the interface of repository connections.
"""

from abc import ABC, abstractmethod
from typing import Any, Iterator, List, Optional, Sequence

from ..model.schema import Schema
from ..model.search_config import SearchConfig
from ..model.search_term import SearchTerm


class RepoInterface(ABC):
    """
    Abstract interface for repository connections.

    Resource handles consume identifier resolution and searches through it.
    """

    @abstractmethod
    def get_base_url(self) -> str:
        """Return the repository REST API base URL."""
        pass

    @abstractmethod
    def get_schema(self) -> Schema:
        """Return the schema mapping logical names to RDF properties."""
        pass

    @abstractmethod
    def get_resource_by_id(self, id: str, resource_class: Optional[type] = None) -> Any:
        """
        Find the repository resource with a given identifier.

        Raises:
            NotFound: If no resource has the identifier
        """
        pass

    @abstractmethod
    def get_resource_by_ids(self, ids: Sequence[str], resource_class: Optional[type] = None) -> Any:
        """
        Find the single repository resource matching any of the given identifiers.

        A resource is not required to carry all the identifiers.

        Raises:
            NotFound: If no resource matches
            AmbiguousMatch: If more than one resource matches
        """
        pass

    @abstractmethod
    def get_resources_by_sql_query(self, query: str, parameters: List[Any],
                                   config: SearchConfig) -> Iterator[Any]:
        """Run a server-side SQL search, lazily yielding resource handles."""
        pass

    @abstractmethod
    def get_resources_by_search_terms(self, search_terms: List[SearchTerm],
                                      config: SearchConfig) -> Iterator[Any]:
        """Yield resources matching all the search terms."""
        pass
