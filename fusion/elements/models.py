"""Element record — the only persistent entity."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone


def new_element_id() -> str:
    return f"el_{uuid.uuid4().hex[:12]}"


def name_key(name: str) -> str:
    """Unique-index key: names compare case-insensitively, ignoring outer whitespace."""
    return name.strip().casefold()


def pair_key(id_a: str, id_b: str) -> tuple[str, str]:
    """{A, B} and {B, A} map to the same key."""
    return (id_a, id_b) if id_a <= id_b else (id_b, id_a)


@dataclass(frozen=True)
class Element:
    id: str
    name: str
    icon_url: str
    description: str = ""
    combined_from: tuple[str, ...] = ()
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_root(self) -> bool:
        return not self.combined_from

    @property
    def parent_pair(self) -> tuple[str, str] | None:
        if len(self.combined_from) != 2:
            return None
        return pair_key(*self.combined_from)
