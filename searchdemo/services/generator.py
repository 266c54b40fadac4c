from __future__ import annotations

import random
from collections.abc import Sequence

from searchdemo.models.records import Record


def record_key(prefix: str, seq: int) -> str:
    return f"{prefix}{seq}"


def random_tags(palette: Sequence[str], rng: random.Random) -> tuple[str, ...]:
    """
    Shuffle the palette and keep a random non-empty head of it.
    Order inside the result follows the shuffle.
    """
    if not palette:
        raise ValueError("tag palette must not be empty")

    shuffled = list(palette)
    rng.shuffle(shuffled)
    size = rng.randint(1, len(shuffled))

    return tuple(shuffled[:size])


def generate_records(
    n: int,
    palette: Sequence[str],
    prefix: str,
    rng: random.Random | None = None,
) -> list[Record]:
    rng = rng or random.Random()
    records: list[Record] = []

    for i in range(n):
        records.append(
            Record(
                key=record_key(prefix, i),
                text=f"text{rng.randrange(n)}",
                numeric=rng.randrange(n),
                tags=random_tags(palette, rng),
            )
        )

    return records


def generate_new_field_values(
    n: int, prefix: str, rng: random.Random | None = None
) -> dict[str, str]:
    """Values for the field added during schema alteration, keyed by record key."""
    rng = rng or random.Random()

    return {record_key(prefix, i): f"new{rng.randrange(n)}" for i in range(n)}
