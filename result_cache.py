"""
result_cache.py
===============
Per-source store of the latest search page.

Each registry gets its own slot holding the most recent ``SourcePage``, a
loading flag and a generation counter.  Every fetch takes a generation
number from ``begin``; ``complete`` only stores a page whose generation is
still the newest for that source, so a slow reply to an old query can never
overwrite a newer one.  Slots never expire and never affect each other.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from source_adapters import SourcePage

logger = logging.getLogger(__name__)


class SourceState(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


@dataclass
class _Slot:
    page: Optional[SourcePage] = None
    loading: bool = False
    generation: int = 0


class ResultCache:
    """Latest ``SourcePage`` per source id, with staleness protection."""

    def __init__(self) -> None:
        self._slots: Dict[str, _Slot] = {}

    def _slot(self, source_id: str) -> _Slot:
        return self._slots.setdefault(source_id, _Slot())

    def get(self, source_id: str) -> Optional[SourcePage]:
        slot = self._slots.get(source_id)
        return slot.page if slot else None

    def put(self, source_id: str, page: SourcePage) -> None:
        """Replace the stored page unconditionally."""
        self._slot(source_id).page = page

    def is_loading(self, source_id: str) -> bool:
        slot = self._slots.get(source_id)
        return bool(slot and slot.loading)

    def begin(self, source_id: str) -> int:
        """Mark a fetch as in flight and return its generation number."""
        slot = self._slot(source_id)
        slot.generation += 1
        slot.loading = True
        return slot.generation

    def complete(self, source_id: str, generation: int, page: SourcePage) -> bool:
        """
        Store ``page`` if ``generation`` is still the newest for the source.

        Returns:
            True when the page was stored, False when it was stale
        """
        slot = self._slot(source_id)
        if generation != slot.generation:
            logger.debug(
                "Discarding stale %s page (generation %d, newest %d)",
                source_id, generation, slot.generation,
            )
            return False
        slot.page = page
        slot.loading = False
        return True

    def state(self, source_id: str) -> SourceState:
        slot = self._slots.get(source_id)
        if slot is None or (slot.page is None and not slot.loading):
            return SourceState.UNINITIALIZED
        if slot.loading:
            return SourceState.LOADING
        if slot.page is not None and slot.page.failure is not None:
            return SourceState.FAILED
        return SourceState.READY
