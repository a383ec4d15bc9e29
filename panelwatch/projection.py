from __future__ import annotations

from threading import RLock
from typing import Dict, Iterable, Optional, Tuple

import structlog

from panelwatch.chain.types import ProjectionEntry

log = structlog.get_logger(__name__)


class ProjectionStore:
    """
    Last known status per panel.

    - Keys are case-insensitive; the casing first seen for a panel is kept.
    - Upserts replace the entry wholesale.
    - One writer (the poll loop), any number of readers; readers get copies.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        # casefolded id -> (display id, entry)
        self._entries: Dict[str, Tuple[str, ProjectionEntry]] = {}

    @staticmethod
    def _key(entity_id: str) -> str:
        return entity_id.casefold()

    def _put(self, entity_id: str, entry: ProjectionEntry) -> None:
        key = self._key(entity_id)
        prev = self._entries.get(key)
        display = prev[0] if prev else entity_id
        self._entries[key] = (display, entry)

    def apply(self, entity_id: str, entry: Optional[ProjectionEntry]) -> bool:
        if not entity_id or not entity_id.strip() or entry is None:
            return False
        with self._lock:
            self._put(entity_id, entry)
        return True

    def apply_batch(self, pairs: Iterable[Tuple[str, Optional[ProjectionEntry]]]) -> int:
        """
        Commit one polled range at once. Pairs are applied in order, so a
        later event for the same panel wins.
        """
        staged = [(eid, e) for eid, e in pairs if eid and eid.strip() and e is not None]
        if not staged:
            return 0
        with self._lock:
            for eid, e in staged:
                self._put(eid, e)
        log.debug("projection_committed", entries=len(staged))
        return len(staged)

    def get(self, entity_id: str) -> Optional[ProjectionEntry]:
        with self._lock:
            hit = self._entries.get(self._key(entity_id))
        return hit[1] if hit else None

    def snapshot(self) -> Dict[str, ProjectionEntry]:
        with self._lock:
            return {display: entry for display, entry in self._entries.values()}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
