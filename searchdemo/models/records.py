from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

TEXT_FIELD = "textField"
NUMERIC_FIELD = "numericField"
TAG_FIELD = "tagField"

TAG_SEPARATOR = ","


class Record(BaseModel):
    """One synthetic hash written under the index prefix."""

    model_config = ConfigDict(frozen=True)

    key: str = Field(..., min_length=1)
    text: str
    numeric: int = Field(..., ge=0)
    tags: tuple[str, ...] = Field(..., min_length=1)

    @field_validator("tags")
    @classmethod
    def _unique_tags(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        if len(set(v)) != len(v):
            raise ValueError("tags must be unique")
        return v

    def to_mapping(self) -> dict[str, str | int]:
        # TAG fields are stored as one separator-joined string
        return {
            TEXT_FIELD: self.text,
            NUMERIC_FIELD: self.numeric,
            TAG_FIELD: TAG_SEPARATOR.join(self.tags),
        }


class IndexField(BaseModel):
    name: str = Field(..., min_length=1)
    type: Literal["TEXT", "NUMERIC", "TAG"]
    sortable: bool = False

    def to_args(self) -> list[str]:
        args = [self.name, self.type]
        if self.sortable:
            args.append("SORTABLE")
        return args


DEFAULT_SCHEMA: tuple[IndexField, ...] = (
    IndexField(name=TEXT_FIELD, type="TEXT", sortable=True),
    IndexField(name=NUMERIC_FIELD, type="NUMERIC", sortable=True),
    IndexField(name=TAG_FIELD, type="TAG"),
)


@dataclass(frozen=True)
class Document:
    key: str
    fields: dict[str, str]


@dataclass(frozen=True)
class SearchResult:
    total: int
    documents: list[Document]

    @property
    def keys(self) -> list[str]:
        return [d.key for d in self.documents]


@dataclass(frozen=True)
class AggregateResult:
    total: int
    rows: list[dict[str, str]]


@dataclass(frozen=True)
class CursorPage:
    """
    One page of a WITHCURSOR aggregate.
    items is the raw page as returned (count header plus row arrays),
    cursor_id is 0 once the result set is exhausted.
    """

    items: list[Any]
    cursor_id: int

    @property
    def exhausted(self) -> bool:
        return not self.cursor_id


@dataclass
class RunReport:
    index_info: dict[str, Any] = field(default_factory=dict)
    searches: dict[str, SearchResult] = field(default_factory=dict)
    aggregates: dict[str, AggregateResult] = field(default_factory=dict)
    cursor_rows: list[dict[str, str]] = field(default_factory=list)
    cursor_pages: int = 0
    altered_info: dict[str, Any] = field(default_factory=dict)
    new_field_search: SearchResult | None = None
