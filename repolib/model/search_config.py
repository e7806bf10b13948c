"""Search Configuration Model

Pydantic model describing repository search options: metadata scope,
pagination, ordering and full text search highlighting.
"""

from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple
from urllib.parse import urlencode

from pydantic import BaseModel, ConfigDict, Field


FTS_BINARY = 'BINARY'

# handled by get_headers() or local only
_NON_QUERY_FIELDS = ('class', 'metadataMode', 'metadataParentProperty')


class MetadataMode(str, Enum):
    """Scope of the metadata returned by the repository along with a resource."""
    RESOURCE = 'resource'
    NEIGHBORS = 'neighbors'
    RELATIVES = 'relatives'


def _is_empty(value: Any) -> bool:
    return value is None or value is False or value == '' or value == 0 or value == []


def _form_value(value: Any) -> str:
    if isinstance(value, bool):
        return '1' if value else '0'
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


class SearchConfig(BaseModel):
    """Repository search configuration."""

    model_config = ConfigDict(populate_by_name=True)

    metadata_mode: Optional[MetadataMode] = Field(None, alias='metadataMode', description="Amount of metadata included in the search results")
    metadata_parent_property: Optional[str] = Field(None, alias='metadataParentProperty', description="RDF predicate used by the relatives metadata mode")
    limit: Optional[int] = Field(None, description="Maximum number of matched resources returned")
    offset: Optional[int] = Field(None, description="Offset of the first returned match (order your results for stable paging)")
    count: Optional[int] = Field(None, description="Total number of matches regardless of limit/offset, set by the search")
    order_by: List[str] = Field(default_factory=list, alias='orderBy', description="Metadata properties to order matches by (literal values only)")
    order_by_lang: Optional[str] = Field(None, alias='orderByLang', description="Only values in this language are used for ordering")
    fts_query: Optional[str] = Field(None, alias='ftsQuery', description="Full text search query used for results highlighting")
    fts_property: Optional[str] = Field(None, alias='ftsProperty', description="Property to highlight, FTS_BINARY for the binary content, None for both")
    fts_start_sel: Optional[str] = Field(None, alias='ftsStartSel')
    fts_stop_sel: Optional[str] = Field(None, alias='ftsStopSel')
    fts_max_words: Optional[int] = Field(None, alias='ftsMaxWords')
    fts_min_words: Optional[int] = Field(None, alias='ftsMinWords')
    fts_short_word: Optional[int] = Field(None, alias='ftsShortWord')
    fts_highlight_all: Optional[bool] = Field(None, alias='ftsHighlightAll')
    fts_max_fragments: Optional[int] = Field(None, alias='ftsMaxFragments')
    fts_fragment_delimiter: Optional[str] = Field(None, alias='ftsFragmentDelimiter')
    resource_class: Optional[Any] = Field(None, alias='class', description="Class of the objects returned as search results")

    @classmethod
    def from_form(cls, data: Mapping[str, Any]) -> 'SearchConfig':
        """
        Create a search configuration from posted form data.

        Args:
            data: Form data keyed by wire names, either `name` or `name[]`

        Returns:
            SearchConfig instance
        """
        values = {}
        for name, field in cls.model_fields.items():
            key = field.alias or name
            if key == 'class':
                continue
            if key in data:
                values[key] = data[key]
            elif f"{key}[]" in data:
                values[key] = data[f"{key}[]"]
        if isinstance(values.get('orderBy'), str):
            values['orderBy'] = [values['orderBy']]
        return cls.model_validate(values)

    def to_array(self) -> Dict[str, Any]:
        """Return all non-empty query options keyed by their wire names."""
        data = {}
        for name, field in type(self).model_fields.items():
            key = field.alias or name
            value = getattr(self, name)
            if key not in _NON_QUERY_FIELDS and not _is_empty(value):
                data[key] = value
        return data

    def to_form_data(self) -> List[Tuple[str, str]]:
        """Return the query options as form fields, list values as repeated `name[]` keys."""
        form = []
        for key, value in self.to_array().items():
            if isinstance(value, (list, tuple)):
                form.extend((f"{key}[]", _form_value(v)) for v in value)
            else:
                form.append((key, _form_value(value)))
        return form

    def to_query(self) -> str:
        return urlencode(self.to_form_data())

    def get_headers(self, repo) -> Dict[str, str]:
        """
        Return HTTP headers setting the metadata read mode and parent property.

        Args:
            repo: Repository connection providing the header names

        Returns:
            Dictionary of headers, empty settings are omitted
        """
        headers = {}
        if self.metadata_mode:
            headers[repo.get_header_name('metadataReadMode')] = MetadataMode(self.metadata_mode).value
        if self.metadata_parent_property:
            headers[repo.get_header_name('metadataParentProperty')] = self.metadata_parent_property
        return headers
