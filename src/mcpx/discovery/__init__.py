"""Tool discovery: schema loading, indexing and intent matching."""

from mcpx.discovery.index import ToolIndex, extract_keywords, infer_category
from mcpx.discovery.matcher import SemanticMatcher, tokenize_query
from mcpx.discovery.models import (
    FieldMatch,
    SearchResult,
    ToolExample,
    ToolIndexEntry,
    ToolParameter,
    ToolReturn,
    ToolSchema,
)
from mcpx.discovery.schema_parser import SchemaParser, validate_schema

__all__ = [
    "FieldMatch",
    "SchemaParser",
    "SearchResult",
    "SemanticMatcher",
    "ToolExample",
    "ToolIndex",
    "ToolIndexEntry",
    "ToolParameter",
    "ToolReturn",
    "ToolSchema",
    "extract_keywords",
    "infer_category",
    "tokenize_query",
    "validate_schema",
]
