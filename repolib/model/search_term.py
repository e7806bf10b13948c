"""Search Term Model

A single predicate-based filter of a repository search.
"""

from enum import Enum
from typing import Any, List, Optional, Tuple

from pydantic import BaseModel, Field


class SearchTermType(str, Enum):
    """Value type a search term compares against."""
    RELATION = 'relation'
    NUMBER = 'number'
    DATE = 'date'
    DATETIME = 'datetime'
    STRING = 'string'


class SearchTerm(BaseModel):
    """
    One filter of a conjunctive search.

    A list `value` matches any of the listed values.
    """

    property: Optional[str] = Field(None, description="RDF predicate to match, None for any predicate")
    operator: str = Field('=', description="Comparison operator")
    value: Any = Field(None, description="Value or list of alternative values")
    type: Optional[SearchTermType] = Field(None, description="Value type")
    language: Optional[str] = Field(None, description="Literal language")

    def __init__(self, property: Optional[str] = None, value: Any = None, operator: str = '=',
                 type: Optional[SearchTermType] = None, language: Optional[str] = None, **kwargs):
        super().__init__(property=property, value=value, operator=operator, type=type,
                         language=language, **kwargs)

    def get_form_data(self, index: int) -> List[Tuple[str, str]]:
        """
        Return the term as indexed form fields.

        Args:
            index: Position of the term in the search

        Returns:
            List of (key, value) pairs, None members omitted
        """
        form = []
        for key in ('property', 'operator', 'value', 'type', 'language'):
            value = getattr(self, key)
            if value is None:
                continue
            if isinstance(value, Enum):
                value = value.value
            if isinstance(value, (list, tuple)):
                form.extend((f"{key}[{index}][]", str(v)) for v in value)
            else:
                form.append((f"{key}[{index}]", str(value)))
        return form
