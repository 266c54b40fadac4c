from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import Any

import redis

from searchdemo.core.errors import WriteError, is_unknown_index
from searchdemo.models.records import IndexField
from searchdemo.services.search import commands as cmds
from searchdemo.services.search.commands import Command

logger = logging.getLogger(__name__)


def connect(url: str, socket_timeout: float | None = None) -> redis.Redis:
    # decode_responses = True -> every reply comes back as str
    return redis.Redis.from_url(url, decode_responses=True, socket_timeout=socket_timeout)


@contextmanager
def open_connection(url: str, socket_timeout: float | None = None) -> Iterator[redis.Redis]:
    """
    Connection scope for one run.
    The client is closed exactly once, whichever way the block exits.
    """
    client = connect(url, socket_timeout=socket_timeout)
    try:
        client.ping()
        logger.info("Connected to redis")
        yield client
    finally:
        client.close()
        logger.info("Connection closed")


def _check_batch(replies: list[Any], keys: list[str], what: str) -> None:
    failed = [k for k, r in zip(keys, replies) if isinstance(r, Exception)]
    if failed:
        first = next(r for r in replies if isinstance(r, Exception))
        raise WriteError(
            f"{what}: {len(failed)} of {len(keys)} writes failed ({first})",
            failed_keys=failed,
        )
    if len(replies) != len(keys):
        raise WriteError(f"{what}: expected {len(keys)} replies, got {len(replies)}")


class SearchClient:
    """
    Thin wrapper around one redis connection, one method per
    remote operation. Nothing is retried; errors propagate as raised by redis-py.
    """

    def __init__(self, client: redis.Redis):
        self.client = client

    def execute(self, cmd: Command) -> Any:
        logger.debug("-> %s", cmds.format_command(cmd))
        return self.client.execute_command(*cmd)

    # Writes

    def write_records(self, records: Mapping[str, Mapping[str, Any]]) -> None:
        """batch-write-record: every hash in one round trip, failures surfaced per key."""
        pipe = self.client.pipeline(transaction=False)
        keys = list(records)
        for key in keys:
            pipe.hset(key, mapping=dict(records[key]))

        replies = pipe.execute(raise_on_error=False)
        _check_batch(replies, keys, "batch write")
        logger.info("Wrote %d records", len(keys))

    def write_field(self, key: str, field: str, value: Any) -> None:
        """single-write-field"""
        self.client.hset(key, field, value)

    def write_field_batch(self, field: str, values: Mapping[str, Any]) -> None:
        pipe = self.client.pipeline(transaction=False)
        keys = list(values)
        for key in keys:
            pipe.hset(key, field, values[key])

        replies = pipe.execute(raise_on_error=False)
        _check_batch(replies, keys, f"update of {field}")
        logger.info("Set %s on %d records", field, len(keys))

    # Index management

    def create_index(self, index: str, prefix: str, fields: list[IndexField]) -> Any:
        return self.execute(cmds.create_index_cmd(index, prefix, fields))

    def describe_index(self, index: str) -> list[Any]:
        return self.execute(cmds.info_cmd(index))

    def drop_index(self, index: str) -> bool:
        """Returns False when there was nothing to drop."""
        try:
            self.execute(cmds.drop_index_cmd(index))
        except redis.exceptions.ResponseError as e:
            if is_unknown_index(e):
                logger.info("Index %s does not exist, nothing to drop", index)
                return False
            raise
        logger.info("Dropped index %s", index)
        return True

    def alter_index(self, index: str, field: IndexField) -> Any:
        return self.execute(cmds.alter_add_field_cmd(index, field))

    # Queries

    def search(self, index: str, query: str, limit: int | None = None) -> list[Any]:
        return self.execute(cmds.search_cmd(index, query, limit))

    def aggregate(self, cmd: Command) -> list[Any]:
        if not cmd or cmd[0] != "FT.AGGREGATE":
            raise ValueError("not an FT.AGGREGATE command")
        return self.execute(cmd)

    def cursor_read(self, index: str, cursor_id: int, count: int) -> list[Any]:
        return self.execute(cmds.cursor_read_cmd(index, cursor_id, count))
