from __future__ import annotations

from typing import Any

from searchdemo.models.records import AggregateResult, CursorPage, Document, SearchResult


def _text(v: Any) -> str:
    if isinstance(v, bytes):
        return v.decode("utf-8")
    return str(v)


def pairs_to_dict(flat: list[Any]) -> dict[str, Any]:
    """
    ["a", "1", "b", "2"] -> {"a": "1", "b": "2"}
    Trailing unpaired items are dropped.
    """
    out: dict[str, Any] = {}
    for i in range(0, len(flat) - 1, 2):
        out[_text(flat[i])] = flat[i + 1]
    return out


def parse_search(raw: list[Any]) -> SearchResult:
    """
    FT.SEARCH reply: [total, key1, [field, value, ...], key2, [...], ...]
    """
    if not raw:
        return SearchResult(total=0, documents=[])

    total = int(raw[0])
    docs: list[Document] = []

    body = raw[1:]
    i = 0
    while i < len(body):
        key = _text(body[i])
        fields: dict[str, str] = {}
        if i + 1 < len(body) and isinstance(body[i + 1], list):
            fields = {k: _text(v) for k, v in pairs_to_dict(body[i + 1]).items()}
            i += 2
        else:
            i += 1
        docs.append(Document(key=key, fields=fields))

    return SearchResult(total=total, documents=docs)


def parse_rows(items: list[Any]) -> list[dict[str, str]]:
    """Row arrays of an aggregate page; scalar entries (the count header) are skipped."""
    return [
        {k: _text(v) for k, v in pairs_to_dict(item).items()}
        for item in items
        if isinstance(item, list)
    ]


def parse_aggregate(raw: list[Any]) -> AggregateResult:
    if not raw:
        return AggregateResult(total=0, rows=[])

    return AggregateResult(total=int(raw[0]), rows=parse_rows(raw[1:]))


def parse_cursor_page(raw: list[Any]) -> CursorPage:
    """
    WITHCURSOR / FT.CURSOR READ reply: [[total, row, row, ...], cursor_id]
    """
    if not isinstance(raw, list) or len(raw) != 2 or not isinstance(raw[0], list):
        raise ValueError(f"unexpected cursor reply: {raw!r}")

    return CursorPage(items=list(raw[0]), cursor_id=int(raw[1] or 0))


def parse_info(raw: list[Any]) -> dict[str, Any]:
    return pairs_to_dict(raw or [])


def attribute_names(info: dict[str, Any]) -> list[str]:
    """Field identifiers declared by the index, in schema order."""
    names: list[str] = []
    for attr in info.get("attributes") or []:
        d = pairs_to_dict(attr)
        name = d.get("identifier", d.get("attribute"))
        if name is not None:
            names.append(_text(name))
    return names
