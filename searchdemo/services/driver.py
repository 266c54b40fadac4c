from __future__ import annotations

import json
import logging
import random
import sys
from typing import Any, TextIO

from searchdemo.core.config import Settings, settings
from searchdemo.models.records import (
    DEFAULT_SCHEMA,
    NUMERIC_FIELD,
    TAG_FIELD,
    TEXT_FIELD,
    IndexField,
    Record,
    RunReport,
)
from searchdemo.services.generator import generate_new_field_values, generate_records
from searchdemo.services.search import commands as cmds
from searchdemo.services.search.client import SearchClient
from searchdemo.services.search.cursor import iter_cursor_pages, nested_items
from searchdemo.services.search.responses import (
    parse_aggregate,
    parse_info,
    parse_rows,
    parse_search,
)

logger = logging.getLogger(__name__)


class DemoDriver:
    """
    Runs Load -> Search -> Aggregate -> Alter against one open connection.

    No phase catches errors: the first failure aborts the run and is left
    to the caller, which owns the connection.
    """

    def __init__(
        self,
        client: SearchClient,
        cfg: Settings = settings,
        rng: random.Random | None = None,
        out: TextIO | None = None,
    ):
        self.client = client
        self.cfg = cfg
        self.rng = rng or random.Random(cfg.RANDOM_SEED)
        self.out = out or sys.stdout
        self.report = RunReport()

    @property
    def index(self) -> str:
        return self.cfg.INDEX_NAME

    def _render(self, cmd: cmds.Command, raw: Any) -> None:
        print(f"{cmds.format_command(cmd)} - {json.dumps(raw)}\n", file=self.out)

    def _run_search(self, query: str) -> Any:
        limit = self.cfg.NUM_RECORDS
        raw = self.client.search(self.index, query, limit=limit)
        self._render(cmds.search_cmd(self.index, query, limit), raw)
        return raw

    def _describe(self) -> dict[str, Any]:
        raw = self.client.describe_index(self.index)
        self._render(cmds.info_cmd(self.index), raw)
        return parse_info(raw)

    def load(self) -> list[Record]:
        cfg = self.cfg
        if cfg.DROP_EXISTING_INDEX:
            self.client.drop_index(self.index)

        records = generate_records(cfg.NUM_RECORDS, cfg.TAG_PALETTE, cfg.KEY_PREFIX, self.rng)
        # raises WriteError before the index exists if any write failed
        self.client.write_records({r.key: r.to_mapping() for r in records})

        self.client.create_index(self.index, cfg.KEY_PREFIX, list(DEFAULT_SCHEMA))
        logger.info("Created index %s on prefix %s", self.index, cfg.KEY_PREFIX)

        self.report.index_info = self._describe()
        return records

    def search(self) -> dict[str, Any]:
        cfg = self.cfg
        lo, hi = cfg.SEARCH_NUMERIC_RANGE
        queries = {
            "text": cmds.text_term_query(TEXT_FIELD, cfg.SEARCH_TEXT_TERM),
            "numeric": cmds.numeric_range_query(NUMERIC_FIELD, lo, hi),
            "tag": cmds.tag_query(TAG_FIELD, cfg.SEARCH_TAG),
        }

        for name, query in queries.items():
            self.report.searches[name] = parse_search(self._run_search(query))

        return self.report.searches

    def aggregate(self) -> None:
        cfg = self.cfg

        cmd = cmds.aggregate_group_count_cmd(self.index, "*", TEXT_FIELD, alias="CNT")
        raw = self.client.aggregate(cmd)
        self._render(cmd, raw)
        self.report.aggregates["group_by_text"] = parse_aggregate(raw)

        upper = self.rng.randint(1, cfg.NUM_RECORDS)
        cmd = cmds.aggregate_apply_cmd(
            self.index,
            cmds.numeric_range_query(NUMERIC_FIELD, 0, upper),
            f"SQRT({cmds.field_ref(NUMERIC_FIELD)})",
            "SQRT",
        )
        raw = self.client.aggregate(cmd)
        self._render(cmd, raw)
        self.report.aggregates["sqrt"] = parse_aggregate(raw)

        self.read_with_cursor()

    def read_with_cursor(self) -> list[dict[str, str]]:
        cfg = self.cfg
        cmd = cmds.aggregate_cursor_cmd(
            self.index,
            cmds.tag_query(TAG_FIELD, *cfg.AGGREGATE_OR_TAGS),
            [TEXT_FIELD, NUMERIC_FIELD, TAG_FIELD],
            cfg.CURSOR_PAGE_SIZE,
        )
        print(cmds.format_command(cmd), file=self.out)

        first = self.client.aggregate(cmd)
        for page in iter_cursor_pages(self.client, self.index, first, cfg.CURSOR_PAGE_SIZE):
            self.report.cursor_pages += 1
            for item in nested_items(page):
                print(json.dumps(item), file=self.out)
            self.report.cursor_rows.extend(parse_rows(page.items))
        print(file=self.out)

        return self.report.cursor_rows

    def alter(self) -> dict[str, str]:
        cfg = self.cfg
        name = cfg.NEW_FIELD_NAME
        print(
            f'Adding additional text field "{name}" to all hashes and altering index',
            file=self.out,
        )

        values = generate_new_field_values(cfg.NUM_RECORDS, cfg.KEY_PREFIX, self.rng)
        self.client.write_field_batch(name, values)

        self.client.alter_index(self.index, IndexField(name=name, type="TEXT", sortable=True))
        logger.info("Altered index %s: added %s", self.index, name)

        self.report.altered_info = self._describe()
        self.report.new_field_search = parse_search(
            self._run_search(cmds.text_term_query(name, cfg.NEW_FIELD_TERM))
        )

        return values

    def run(self) -> RunReport:
        for phase in (self.load, self.search, self.aggregate, self.alter):
            logger.info("Phase %s", phase.__name__)
            phase()

        logger.info("All phases completed")
        return self.report
