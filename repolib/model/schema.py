"""Repository Schema

Read-only container mapping logical property names to repository-specific
RDF predicates and settings.
"""

import copy
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional


class Schema:
    """
    A read-only accessor over the repository schema configuration.

    Structured values (dictionaries, lists) are deep-copied on every access so
    that callers can't modify the shared configuration through an alias.
    """

    KNOWN_PROPERTIES = (
        'id', 'label', 'parent', 'delete', 'binarySize',
        'searchCount', 'searchMatch', 'searchOrder', 'searchFts',
    )

    def __init__(self, schema: Mapping[str, Any]):
        """
        Create the schema object.

        Args:
            schema: Mapping of logical names to predicate URIs or nested settings
        """
        self._schema = MappingProxyType(copy.deepcopy(dict(schema)))

    def get(self, name: str) -> Any:
        """
        Return the configuration value for a given logical name.

        Args:
            name: Logical property name

        Returns:
            The value (a fresh copy for structured values) or None if not configured
        """
        value = self._schema.get(name)
        if isinstance(value, (dict, list)):
            return copy.deepcopy(value)
        return value

    def to_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(dict(self._schema))

    def __contains__(self, name: str) -> bool:
        return name in self._schema

    @property
    def id(self) -> Optional[str]:
        return self.get('id')

    @property
    def label(self) -> Optional[str]:
        return self.get('label')

    @property
    def parent(self) -> Optional[str]:
        return self.get('parent')

    @property
    def delete(self) -> Optional[str]:
        return self.get('delete')

    @property
    def binary_size(self) -> Optional[str]:
        return self.get('binarySize')

    @property
    def search_count(self) -> Optional[str]:
        return self.get('searchCount')

    @property
    def search_match(self) -> Optional[str]:
        return self.get('searchMatch')

    @property
    def search_order(self) -> Optional[str]:
        return self.get('searchOrder')

    @property
    def search_fts(self) -> Optional[str]:
        return self.get('searchFts')

    def __repr__(self) -> str:
        return f"Schema({dict(self._schema)!r})"
