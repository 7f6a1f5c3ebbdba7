"""Markup (CDA) parsing and tree search."""

from docencap.markup.node import (
    CDA_ROOT_TAG,
    DEFAULT_MAX_DEPTH,
    MarkupNode,
    parse_markup,
)
from docencap.markup.resolver import FIELD_PATHS, SEMANTIC_FIELDS, SearchPath, resolve
from docencap.markup.searcher import (
    MULTI_VALUE_SEPARATOR,
    SearchResult,
    get_all_attribute_values,
    search,
)

__all__ = [
    "CDA_ROOT_TAG",
    "DEFAULT_MAX_DEPTH",
    "FIELD_PATHS",
    "MULTI_VALUE_SEPARATOR",
    "MarkupNode",
    "SEMANTIC_FIELDS",
    "SearchPath",
    "SearchResult",
    "get_all_attribute_values",
    "parse_markup",
    "resolve",
    "search",
]
