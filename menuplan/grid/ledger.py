"""Per-session list of detected repetition conflicts, keyed by cell and item."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from ..errors import StaleReferenceWarning
from .grid import MenuGrid
from .models import CellCoordinate, ConflictLogEntry

logger = logging.getLogger(__name__)


class ConflictLedger:
    """Deduplicated, append-only record of detected repetitions.

    Entries are never edited; they leave the ledger when the item is removed
    from either the attempted or the original cell, or when dismissed.
    The identity key-set belongs to this instance (one per editing session).
    """

    def __init__(self, entries: Iterable[ConflictLogEntry] = ()) -> None:
        self._entries: list[ConflictLogEntry] = []
        self._keys: set[tuple[str, ...]] = set()
        self.load(entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(list(self._entries))

    def entries(self) -> list[ConflictLogEntry]:
        return list(self._entries)

    def add(self, entry: ConflictLogEntry) -> bool:
        key = entry.identity_key
        if key in self._keys:
            return False
        self._keys.add(key)
        self._entries.append(entry)
        return True

    def load(self, entries: Iterable[ConflictLogEntry]) -> None:
        for entry in entries:
            self.add(entry)

    def _drop(self, doomed: list[ConflictLogEntry]) -> list[ConflictLogEntry]:
        if not doomed:
            return []
        ids = {e.id for e in doomed}
        self._entries = [e for e in self._entries if e.id not in ids]
        for e in doomed:
            self._keys.discard(e.identity_key)
        return doomed

    def remove_by_coordinate(self, item_id: str, coord: CellCoordinate) -> list[ConflictLogEntry]:
        return self._drop([e for e in self._entries if e.item_id == item_id and e.touches(coord)])

    def remove_by_ids(self, ids: Iterable[str]) -> list[ConflictLogEntry]:
        wanted = set(ids)
        return self._drop([e for e in self._entries if e.id in wanted])

    def clear_all(self) -> list[ConflictLogEntry]:
        removed = self._entries
        self._entries = []
        self._keys.clear()
        return removed

    def find_by_cell_coordinate(self, coord: CellCoordinate) -> list[ConflictLogEntry]:
        return [e for e in self._entries if e.touches(coord)]

    def prune_stale(self, grid: MenuGrid) -> list[StaleReferenceWarning]:
        """Drop entries whose item is no longer in the attempted cell."""
        warnings: list[StaleReferenceWarning] = []
        stale: list[ConflictLogEntry] = []
        for entry in self._entries:
            cell = grid.cell(entry.coordinate)
            if cell is not None and entry.item_id in cell:
                continue
            stale.append(entry)
            warnings.append(StaleReferenceWarning(entry_id=entry.id, item_id=entry.item_id, coordinate=entry.coordinate))
        self._drop(stale)
        if warnings:
            logger.info("Pruned %d stale repetition log entries", len(warnings))
        return warnings
