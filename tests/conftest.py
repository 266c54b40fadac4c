import io
import itertools
import math
import random
import re

import pytest
import redis

from searchdemo.core.config import Settings
from searchdemo.services.driver import DemoDriver
from searchdemo.services.search.client import SearchClient

NUMERIC_RE = re.compile(r"^@(\w+):\[(\S+) (\S+)\]$")
TAG_RE = re.compile(r"^@(\w+):\{(.*)\}$")
TERM_RE = re.compile(r"^@(\w+):(\S+)$")
APPLY_SQRT_RE = re.compile(r"^SQRT\(@(\w+)\)$")


def _unescape(s: str) -> str:
    return re.sub(r"\\(.)", r"\1", s)


def _flat(d: dict) -> list:
    out = []
    for k, v in d.items():
        out.extend([k, v])
    return out


class FakePipeline:
    def __init__(self, owner: "FakeRedis"):
        self.owner = owner
        self.queued = []

    def hset(self, key, field=None, value=None, mapping=None):
        self.queued.append((key, field, value, mapping))
        return self

    def execute(self, raise_on_error=True):
        self.owner.round_trips += 1
        results = []
        for key, field, value, mapping in self.queued:
            try:
                results.append(self.owner.hset(key, field, value, mapping=mapping))
            except redis.exceptions.ResponseError as e:
                if raise_on_error:
                    raise
                results.append(e)
        self.queued = []
        return results


class FakeRedis:
    """
    In-memory stand-in for a redis server with the search module.
    Understands only the hash writes and FT.* commands the demo issues.
    """

    def __init__(self):
        self.hashes: dict[str, dict[str, str]] = {}
        self.indexes: dict[str, dict] = {}
        self.cursors: dict[int, list[list[str]]] = {}
        self.cursor_ids = itertools.count(1001)
        self.commands: list[tuple] = []
        self.fail_keys: set[str] = set()
        self.round_trips = 0
        self.closed = 0

    # connection

    def ping(self):
        return True

    def close(self):
        self.closed += 1

    def pipeline(self, transaction=True):
        return FakePipeline(self)

    # hashes

    def hset(self, key, field=None, value=None, mapping=None):
        if key in self.fail_keys:
            raise redis.exceptions.ResponseError(
                "WRONGTYPE Operation against a key holding the wrong kind of value"
            )
        items = dict(mapping or {})
        if field is not None:
            items[field] = value
        h = self.hashes.setdefault(key, {})
        added = sum(1 for k in items if k not in h)
        h.update({k: str(v) for k, v in items.items()})
        return added

    # search module

    def execute_command(self, *args):
        self.commands.append(args)
        name = args[0].upper()
        if name == "FT.CURSOR":
            return self._cursor_read(*args[2:])
        handler = {
            "FT.CREATE": self._create,
            "FT.INFO": self._info,
            "FT.DROPINDEX": self._drop,
            "FT.ALTER": self._alter,
            "FT.SEARCH": self._search,
            "FT.AGGREGATE": self._aggregate,
        }.get(name)
        if handler is None:
            raise redis.exceptions.ResponseError(f"unknown command '{args[0]}'")
        return handler(*args[1:])

    def _index(self, idx):
        if idx not in self.indexes:
            raise redis.exceptions.ResponseError(f"{idx}: Unknown Index name")
        return self.indexes[idx]

    @staticmethod
    def _parse_fields(args):
        fields = []
        args = list(args)
        while args:
            name, ftype = args.pop(0), args.pop(0)
            sortable = bool(args) and args[0] == "SORTABLE"
            if sortable:
                args.pop(0)
            fields.append((name, ftype, sortable))
        return fields

    def _create(self, idx, *args):
        if idx in self.indexes:
            raise redis.exceptions.ResponseError("Index already exists")
        args = list(args)
        prefix = args[args.index("PREFIX") + 2]
        fields = self._parse_fields(args[args.index("SCHEMA") + 1 :])
        self.indexes[idx] = {"prefix": prefix, "fields": fields}
        return "OK"

    def _drop(self, idx):
        self._index(idx)
        del self.indexes[idx]
        return "OK"

    def _alter(self, idx, *args):
        index = self._index(idx)
        for name, ftype, sortable in self._parse_fields(args[2:]):
            if any(f[0] == name for f in index["fields"]):
                raise redis.exceptions.ResponseError(f"Duplicate field in schema - {name}")
            index["fields"].append((name, ftype, sortable))
        return "OK"

    def _docs(self, idx):
        index = self._index(idx)
        keys = sorted(
            (k for k in self.hashes if k.startswith(index["prefix"])),
            key=lambda k: int(k.rsplit(":", 1)[-1]) if k.rsplit(":", 1)[-1].isdigit() else k,
        )
        return index, [(k, self.hashes[k]) for k in keys]

    def _info(self, idx):
        index, docs = self._docs(idx)
        attributes = []
        for name, ftype, sortable in index["fields"]:
            attr = ["identifier", name, "attribute", name, "type", ftype]
            if sortable:
                attr.append("SORTABLE")
            attributes.append(attr)
        return [
            "index_name",
            idx,
            "index_definition",
            ["key_type", "HASH", "prefixes", [index["prefix"]]],
            "attributes",
            attributes,
            "num_docs",
            str(len(docs)),
        ]

    def _matcher(self, index, query):
        declared = {f[0]: f[1] for f in index["fields"]}

        def check_field(name, expected):
            if declared.get(name) != expected:
                raise redis.exceptions.ResponseError(f"Unknown field `{name}`")

        if query == "*":
            return lambda h: True
        m = NUMERIC_RE.match(query)
        if m:
            name, lo, hi = m.group(1), float(m.group(2)), float(m.group(3))
            check_field(name, "NUMERIC")
            return lambda h: name in h and lo <= float(h[name]) <= hi
        m = TAG_RE.match(query)
        if m:
            name = m.group(1)
            check_field(name, "TAG")
            wanted = {_unescape(t.strip()) for t in m.group(2).split("|")}
            return lambda h: bool(wanted & set(h.get(name, "").split(",")))
        m = TERM_RE.match(query)
        if m:
            name, term = m.group(1), _unescape(m.group(2)).lower()
            check_field(name, "TEXT")
            return lambda h: h.get(name, "").lower() == term
        raise redis.exceptions.ResponseError(f"Syntax error at offset 0 near {query}")

    def _search(self, idx, query, *args):
        offset, num = 0, 10
        if args[:1] == ("LIMIT",):
            offset, num = int(args[1]), int(args[2])
        index, docs = self._docs(idx)
        match = self._matcher(index, query)
        hits = [(k, h) for k, h in docs if match(h)]
        out = [len(hits)]
        for k, h in hits[offset : offset + num]:
            out.extend([k, _flat(h)])
        return out

    def _aggregate(self, idx, query, *args):
        index, docs = self._docs(idx)
        match = self._matcher(index, query)
        rows = [(h, {}) for _, h in docs if match(h)]
        args = list(args)
        cursor_count = None
        while args:
            op = args.pop(0)
            if op == "LOAD":
                n = int(args.pop(0))
                names = [args.pop(0).lstrip("@") for _ in range(n)]
                for h, row in rows:
                    row.update({f: h[f] for f in names if f in h})
            elif op == "APPLY":
                expr, _, alias = args.pop(0), args.pop(0), args.pop(0)
                m = APPLY_SQRT_RE.match(expr)
                if not m:
                    raise redis.exceptions.ResponseError(f"Syntax error near {expr}")
                for h, row in rows:
                    row[alias] = f"{math.sqrt(float(h[m.group(1)])):.12g}"
            elif op == "GROUPBY":
                n = int(args.pop(0))
                names = [args.pop(0).lstrip("@") for _ in range(n)]
                assert args[:3] == ["REDUCE", "COUNT", "0"]
                alias = args[4]
                del args[:5]
                groups: dict[tuple, int] = {}
                for h, _ in rows:
                    key = tuple(h.get(f, "") for f in names)
                    groups[key] = groups.get(key, 0) + 1
                rows = [
                    ({}, {**dict(zip(names, key)), alias: str(cnt)}) for key, cnt in groups.items()
                ]
            elif op == "WITHCURSOR":
                cursor_count = 1000
                if args[:1] == ["COUNT"]:
                    cursor_count = int(args[1])
                    del args[:2]
            else:
                raise redis.exceptions.ResponseError(f"Unknown argument `{op}`")

        flat_rows = [_flat(row) for _, row in rows]
        if cursor_count is None:
            return [len(flat_rows), *flat_rows]
        return self._page(flat_rows, cursor_count)

    def _page(self, rows, count):
        page, rest = rows[:count], rows[count:]
        cid = 0
        if rest:
            cid = next(self.cursor_ids)
            self.cursors[cid] = rest
        return [[len(page), *page], cid]

    def _cursor_read(self, idx, cid, *args):
        self._index(idx)
        count = int(args[1]) if args[:1] == ("COUNT",) else 1000
        rows = self.cursors.pop(int(cid), None)
        if rows is None:
            raise redis.exceptions.ResponseError("Cursor not found")
        return self._page(rows, count)


@pytest.fixture()
def fake_redis():
    return FakeRedis()


@pytest.fixture()
def search_client(fake_redis):
    return SearchClient(fake_redis)


@pytest.fixture()
def demo_settings():
    return Settings(NUM_RECORDS=10, RANDOM_SEED=7)


@pytest.fixture()
def make_driver(search_client, demo_settings):
    def _make(cfg=None, seed=7):
        return DemoDriver(
            search_client,
            cfg=cfg or demo_settings,
            rng=random.Random(seed),
            out=io.StringIO(),
        )

    return _make
