"""
Builders for the FT.* commands the demo issues.

Each builder returns the argument tuple handed to ``execute_command``;
``format_command`` renders one for console output.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence

from searchdemo.models.records import IndexField

Command = tuple[str, ...]

# characters with meaning inside a query term or tag
ESCAPE_RE = re.compile(r"([,.<>{}\[\]\"':;!@#$%^&*()\-+=~|/\\ ])")


def escape_value(value: str) -> str:
    return ESCAPE_RE.sub(r"\\\1", value)


def field_ref(name: str) -> str:
    return f"@{name}"


# Queries


def text_term_query(field: str, term: str) -> str:
    return f"@{field}:{escape_value(term)}"


def numeric_range_query(field: str, lo: int | float, hi: int | float) -> str:
    # both bounds inclusive
    return f"@{field}:[{lo} {hi}]"


def tag_query(field: str, *tags: str) -> str:
    if not tags:
        raise ValueError("at least one tag is required")
    if len(tags) == 1:
        return f"@{field}:{{{escape_value(tags[0])}}}"

    return f"@{field}:{{ {' | '.join(escape_value(t) for t in tags)} }}"


# Index management


def create_index_cmd(index: str, prefix: str, fields: Iterable[IndexField]) -> Command:
    schema: list[str] = []
    for f in fields:
        schema.extend(f.to_args())
    if not schema:
        raise ValueError("index schema needs at least one field")

    return ("FT.CREATE", index, "ON", "HASH", "PREFIX", "1", prefix, "SCHEMA", *schema)


def info_cmd(index: str) -> Command:
    return ("FT.INFO", index)


def drop_index_cmd(index: str) -> Command:
    # documents are kept, only the index goes
    return ("FT.DROPINDEX", index)


def alter_add_field_cmd(index: str, field: IndexField) -> Command:
    return ("FT.ALTER", index, "SCHEMA", "ADD", *field.to_args())


# Search / aggregate


def search_cmd(index: str, query: str, limit: int | None = None) -> Command:
    # without LIMIT the server returns at most 10 documents
    if limit is None:
        return ("FT.SEARCH", index, query)
    if limit < 0:
        raise ValueError("search limit must be >= 0")

    return ("FT.SEARCH", index, query, "LIMIT", "0", str(limit))


def aggregate_group_count_cmd(index: str, query: str, field: str, alias: str = "CNT") -> Command:
    return (
        "FT.AGGREGATE",
        index,
        query,
        "GROUPBY",
        "1",
        field_ref(field),
        "REDUCE",
        "COUNT",
        "0",
        "AS",
        alias,
    )


def aggregate_apply_cmd(index: str, query: str, expression: str, alias: str) -> Command:
    return ("FT.AGGREGATE", index, query, "APPLY", expression, "AS", alias)


def aggregate_cursor_cmd(
    index: str, query: str, load_fields: Sequence[str], count: int
) -> Command:
    if count < 1:
        raise ValueError("cursor page size must be >= 1")

    load: list[str] = []
    if load_fields:
        load = ["LOAD", str(len(load_fields)), *(field_ref(f) for f in load_fields)]

    return ("FT.AGGREGATE", index, query, *load, "WITHCURSOR", "COUNT", str(count))


def cursor_read_cmd(index: str, cursor_id: int, count: int) -> Command:
    return ("FT.CURSOR", "READ", index, str(cursor_id), "COUNT", str(count))


def format_command(cmd: Sequence[str]) -> str:
    return " ".join(str(part) for part in cmd)
