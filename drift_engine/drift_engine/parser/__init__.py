"""Quote-aware DDL scanning, normalisation and statement classification."""

from drift_engine.parser.create_parser import extract_view_query, parse_columns_from_create, parse_create_options
from drift_engine.parser.normalizer import (
    canonical_name,
    canonicalize_type,
    extract_comment,
    normalize_comment,
    normalize_default,
    normalize_type,
    normalize_view_query,
)
from drift_engine.parser.statement import ParsedStatement, StatementKind, classify_statement, split_statements

__all__ = [
    "ParsedStatement",
    "StatementKind",
    "canonical_name",
    "canonicalize_type",
    "classify_statement",
    "extract_view_query",
    "extract_comment",
    "normalize_comment",
    "normalize_default",
    "normalize_type",
    "normalize_view_query",
    "parse_columns_from_create",
    "parse_create_options",
    "split_statements",
]
