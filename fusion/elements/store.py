"""
store.py — Element Store
========================
`ElementStore` is the interface the orchestrator and graph depend on.
`InMemoryElementStore` keeps everything in process (tests, throwaway runs);
`fusion.elements.sqlite_store.SqliteElementStore` is the durable backend.

In memory, the name index is the unique constraint: the existence check and
the insert happen under the same lock, so two racing creates of one name can
never both succeed. Lookups read the live collection; nothing is cached.
"""

from __future__ import annotations

import threading
from collections.abc import Sequence
from typing import Protocol

from fusion.elements.models import Element, name_key, new_element_id, pair_key
from fusion.errors import DuplicateNameError, UnknownElementError


class ElementStore(Protocol):
    async def create(
        self,
        name: str,
        icon_url: str,
        description: str = "",
        combined_from: Sequence[str] = (),
    ) -> Element: ...

    async def delete_all(self) -> int: ...

    async def get(self, element_id: str) -> Element | None: ...

    async def find_by_name(self, name: str) -> Element | None: ...

    async def find_by_parent_pair(self, id_a: str, id_b: str) -> Element | None: ...

    async def list_all(self) -> list[Element]: ...

    async def count(self) -> int: ...


def check_combined_from(combined_from: Sequence[str]) -> None:
    if len(combined_from) not in (0, 2):
        raise ValueError(f"combined_from must hold 0 or 2 ids, got {len(combined_from)}")


class InMemoryElementStore:
    """Thread-safe element collection with name and parent-pair indexes."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._elements: dict[str, Element] = {}  # insertion order == creation order
        self._by_name: dict[str, str] = {}
        self._by_pair: dict[tuple[str, str], str] = {}

    # ── Writes ───────────────────────────────────────

    async def create(
        self,
        name: str,
        icon_url: str,
        description: str = "",
        combined_from: Sequence[str] = (),
    ) -> Element:
        """Insert a new element. Raises DuplicateNameError if the name is taken."""
        name = name.strip()
        if not name:
            raise ValueError("Element name must not be empty")
        check_combined_from(combined_from)

        with self._lock:
            key = name_key(name)
            if key in self._by_name:
                raise DuplicateNameError(name)
            for parent_id in combined_from:
                if parent_id not in self._elements:
                    raise UnknownElementError(parent_id)

            element = Element(
                id=new_element_id(),
                name=name,
                icon_url=icon_url,
                description=description,
                combined_from=tuple(combined_from),
            )
            self._elements[element.id] = element
            self._by_name[key] = element.id
            pair = element.parent_pair
            if pair is not None:
                # First element recorded for a pair stays the canonical answer
                self._by_pair.setdefault(pair, element.id)
            return element

    async def delete_all(self) -> int:
        with self._lock:
            removed = len(self._elements)
            self._elements.clear()
            self._by_name.clear()
            self._by_pair.clear()
            return removed

    # ── Reads ────────────────────────────────────────

    async def get(self, element_id: str) -> Element | None:
        with self._lock:
            return self._elements.get(element_id)

    async def find_by_name(self, name: str) -> Element | None:
        with self._lock:
            element_id = self._by_name.get(name_key(name))
            return self._elements.get(element_id) if element_id else None

    async def find_by_parent_pair(self, id_a: str, id_b: str) -> Element | None:
        with self._lock:
            element_id = self._by_pair.get(pair_key(id_a, id_b))
            return self._elements.get(element_id) if element_id else None

    async def list_all(self) -> list[Element]:
        """All elements, most recently created first."""
        with self._lock:
            return list(reversed(self._elements.values()))

    async def count(self) -> int:
        with self._lock:
            return len(self._elements)
