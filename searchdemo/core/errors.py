"""Error taxonomy for the search demo.

Every failure that reaches the entry point is one of these classes, so the
process can report the underlying message and exit with a code per kind.
"""

from __future__ import annotations

import redis


class SearchDemoError(Exception):
    """Base class for all search demo errors."""

    exit_code: int = 1


class ConnectionFailedError(SearchDemoError):
    """Endpoint unreachable, authentication rejected or socket timed out."""

    exit_code = 2


class SchemaError(SearchDemoError):
    """Index already exists, unknown index, or a field name collision."""

    exit_code = 3


class QuerySyntaxError(SearchDemoError):
    """Malformed query, filter or aggregation pipeline."""

    exit_code = 4


class WriteError(SearchDemoError):
    """One or more commands of a batched write failed."""

    exit_code = 5

    def __init__(self, message: str, failed_keys: list[str] | None = None):
        super().__init__(message)
        self.failed_keys = failed_keys or []


# reply fragments, matched lowercased
SCHEMA_MARKERS: tuple[str, ...] = (
    "index already exists",
    "unknown index name",
    "no such index",
    "duplicate field",
    "already exists in schema",
)
QUERY_MARKERS: tuple[str, ...] = (
    "syntax error",
    "unknown argument",
    "bad arguments",
    "expected an argument",
    "unknown property",
    "property `",
    "unknown field",
)


def classify_redis_error(exc: Exception) -> SearchDemoError:
    """Map a redis-py exception onto the demo error hierarchy."""
    if isinstance(exc, SearchDemoError):
        return exc

    msg = str(exc) or exc.__class__.__name__

    if isinstance(exc, (redis.exceptions.ConnectionError, redis.exceptions.TimeoutError)):
        return ConnectionFailedError(msg)

    if isinstance(exc, redis.exceptions.ResponseError):
        low = msg.lower()
        if any(m in low for m in SCHEMA_MARKERS):
            return SchemaError(msg)
        if any(m in low for m in QUERY_MARKERS):
            return QuerySyntaxError(msg)

    return SearchDemoError(msg)


def is_unknown_index(exc: Exception) -> bool:
    low = str(exc).lower()
    return "unknown index name" in low or "no such index" in low
