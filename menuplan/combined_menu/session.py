"""Editing session: one combined menu being edited by one writer.

Every public method runs under the session's mutex so that repetition
detection always sees a complete grid. The ledger is the source of truth for
conflicts; mirroring it to the repetition log store is best-effort.
"""

from __future__ import annotations

import functools
import logging
import threading
import uuid
from collections.abc import Iterable, Mapping
from typing import Any, Callable, TypeVar

from .. import metrics
from ..errors import PersistenceFailure, SessionNotFound, StaleReferenceWarning, ValidationError
from ..grid.assignments import CustomAssignmentResolver, StructureCatalog
from ..grid.grid import MenuGrid
from ..grid.ledger import ConflictLedger
from ..grid.models import CellCoordinate, ConflictLogEntry, CopyBuffer, MutationResult, StructureKey
from .repo import RepetitionLogRepo

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


def _locked(fn: F) -> F:
    @functools.wraps(fn)
    def wrapper(self: EditingSession, *args: Any, **kwargs: Any) -> Any:
        with self.lock:
            return fn(self, *args, **kwargs)

    return wrapper  # type: ignore[return-value]


class EditingSession:
    def __init__(
        self,
        grid: MenuGrid,
        structures: StructureCatalog,
        *,
        company_id: str | None = None,
        ledger: ConflictLedger | None = None,
        log_repo: RepetitionLogRepo | None = None,
        combined_menu_id: str | None = None,
        original_menu_data: dict[str, Any] | None = None,
        session_id: str | None = None,
    ) -> None:
        if not grid.dates:
            raise ValidationError([{"field": "dates", "msg": "empty"}], detail="editing session needs a date range")
        self.id = session_id or uuid.uuid4().hex
        self.grid = grid
        self.structures = structures
        self.company_id = company_id
        self.ledger = ledger or ConflictLedger()
        self.log_repo = log_repo
        self.combined_menu_id = combined_menu_id
        self.draft_id: str | None = None
        self.original_menu_data = original_menu_data
        # set while a saved combined menu still lacks its company menus
        self.company_menus_pending = False
        self.copy_buffer: CopyBuffer | None = None
        self.persistence_failures = 0
        self._drag_source: CellCoordinate | None = None
        self._drag_items: tuple[str, ...] = ()
        self.lock = threading.RLock()

    @property
    def start_date(self) -> str:
        return self.grid.dates[0]

    @property
    def end_date(self) -> str:
        return self.grid.dates[-1]

    @property
    def is_dragging(self) -> bool:
        return self._drag_source is not None

    # ---- ledger mirroring ----
    def _persistence_failed(self, exc: PersistenceFailure) -> None:
        self.persistence_failures += 1
        metrics.increment("menuplan.persistence_failures", {"operation": exc.operation})
        logger.warning("Repetition log mirror failed (session=%s): %s", self.id, exc.detail)

    def _mirror_added(self, entry: ConflictLogEntry) -> None:
        if self.log_repo is None:
            return
        try:
            self.log_repo.add(entry, self.start_date, self.end_date, self.company_id)
        except PersistenceFailure as exc:
            self._persistence_failed(exc)

    def _mirror_removed(self, entries: Iterable[ConflictLogEntry]) -> None:
        ids = [e.id for e in entries]
        if self.log_repo is None or not ids:
            return
        try:
            self.log_repo.delete_all(ids)
        except PersistenceFailure as exc:
            self._persistence_failed(exc)

    def _record(self, conflicts: Iterable[ConflictLogEntry]) -> list[ConflictLogEntry]:
        added = []
        for entry in conflicts:
            if self.ledger.add(entry):
                added.append(entry)
                metrics.increment("menuplan.conflicts.detected", {"type": entry.type.value})
                self._mirror_added(entry)
        return added

    # ---- grid mutations ----
    @_locked
    def add_item(self, coord: CellCoordinate, item_id: str) -> MutationResult:
        result = self.grid.add_item(coord, item_id)
        return MutationResult(self.grid, self._record(result.conflicts))

    @_locked
    def remove_item(self, coord: CellCoordinate, item_id: str) -> list[ConflictLogEntry]:
        self.grid.remove_item(coord, item_id)
        removed = self.ledger.remove_by_coordinate(item_id, coord)
        self._mirror_removed(removed)
        return removed

    @_locked
    def apply_items_to_cell(self, coord: CellCoordinate, items: Iterable[str]) -> MutationResult:
        cell = self.grid.cell(coord)
        before = list(cell.menu_item_ids) if cell is not None else []
        result = self.grid.apply_items_to_cell(coord, items)
        after = self.grid.cell(coord)
        removed: list[ConflictLogEntry] = []
        for item_id in before:
            if after is None or item_id not in after:
                removed.extend(self.ledger.remove_by_coordinate(item_id, coord))
        self._mirror_removed(removed)
        return MutationResult(self.grid, self._record(result.conflicts))

    @_locked
    def set_selected_description(self, coord: CellCoordinate, item_id: str, text: str | None) -> None:
        self.grid.set_selected_description(coord, item_id, text)

    # ---- copy / paste ----
    @_locked
    def copy_from_cell(self, coord: CellCoordinate, meta: Mapping[str, Any] | None = None) -> CopyBuffer:
        cell = self.grid.cell(coord)
        if cell is None or cell.is_empty:
            raise ValidationError([{"field": "cell", "msg": "empty"}], detail="nothing to copy")
        self.copy_buffer = CopyBuffer(tuple(cell.menu_item_ids), {"source": coord.to_dict(), **(meta or {})})
        return self.copy_buffer

    @_locked
    def paste_to_cell(self, coord: CellCoordinate) -> MutationResult:
        if self.copy_buffer is None or not self.copy_buffer.items:
            raise ValidationError([{"field": "copy_buffer", "msg": "empty"}], detail="nothing to paste")
        return self.apply_items_to_cell(coord, self.copy_buffer.items)

    @_locked
    def clear_copy_buffer(self) -> None:
        self.copy_buffer = None

    # ---- drag fill ----
    @_locked
    def start_drag(self, coord: CellCoordinate) -> tuple[str, ...]:
        cell = self.grid.cell(coord)
        self._drag_source = coord
        self._drag_items = tuple(cell.menu_item_ids) if cell is not None else ()
        return self._drag_items

    @_locked
    def drag_over(self, date: str) -> MutationResult | None:
        """Apply the dragged items to the same row on ``date``; no-op when not dragging."""
        if self._drag_source is None or not self._drag_items:
            return None
        target = self._drag_source.with_date(date)
        if target == self._drag_source:
            return None
        return self.apply_items_to_cell(target, self._drag_items)

    @_locked
    def end_drag(self) -> None:
        self._drag_source = None
        self._drag_items = ()

    # ---- custom assignments ----
    def default_structures(self, coord: CellCoordinate) -> frozenset[StructureKey]:
        return self.structures.default_structures(coord)

    def _resolver(self, coord: CellCoordinate) -> CustomAssignmentResolver:
        cell = self.grid.cell(coord)
        if cell is None:
            raise ValidationError([{"field": "cell", "msg": "unknown", "value": coord.key}], detail="unknown cell")
        return CustomAssignmentResolver(cell, self.default_structures(coord))

    @_locked
    def effective_assignment(self, coord: CellCoordinate, item_id: str) -> frozenset[StructureKey]:
        return self._resolver(coord).effective_assignment(item_id)

    @_locked
    def set_custom_assignments(
        self,
        coord: CellCoordinate,
        assignments: Mapping[str, Iterable[StructureKey]],
        focus_item_id: str | None = None,
    ) -> dict[str, Any]:
        resolver = self._resolver(coord)
        cell = resolver.cell
        if focus_item_id is not None:
            if focus_item_id not in cell:
                raise ValidationError(
                    [{"field": "focus_item_id", "msg": "not_in_cell", "value": focus_item_id}],
                    detail="focused item is not assigned to this cell",
                )
            if focus_item_id not in assignments:
                raise ValidationError(
                    [{"field": "assignments", "msg": "missing_focus_item", "value": focus_item_id}],
                    detail="no assignment given for the focused item",
                )
        unknown = [i for i in assignments if i not in cell]
        if unknown and focus_item_id is None:
            raise ValidationError(
                [{"field": "assignments", "msg": "not_in_cell", "value": i} for i in unknown],
                detail="assignments reference items not in this cell",
            )
        resolver.apply(assignments, focus_item_id=focus_item_id)
        return self._assignment_view(resolver)

    @_locked
    def assignment_view(self, coord: CellCoordinate) -> dict[str, Any]:
        return self._assignment_view(self._resolver(coord))

    def _assignment_view(self, resolver: CustomAssignmentResolver) -> dict[str, Any]:
        return {
            "default": [self.structures.describe(k) for k in sorted(resolver.default_structures)],
            "items": {
                item_id: {
                    "kind": resolver.assignment_for(item_id).kind,
                    "effective": [k.to_dict() for k in sorted(resolver.effective_assignment(item_id))],
                }
                for item_id in resolver.cell.menu_item_ids
            },
        }

    # ---- conflicts ----
    @_locked
    def conflicts_for_cell(self, coord: CellCoordinate) -> list[ConflictLogEntry]:
        return self.ledger.find_by_cell_coordinate(coord)

    @_locked
    def conflicts(self) -> list[ConflictLogEntry]:
        return self.ledger.entries()

    @_locked
    def dismiss_conflicts(self, ids: Iterable[str]) -> list[ConflictLogEntry]:
        removed = self.ledger.remove_by_ids(ids)
        self._mirror_removed(removed)
        return removed

    @_locked
    def clear_conflicts(self) -> list[ConflictLogEntry]:
        removed = self.ledger.clear_all()
        self._mirror_removed(removed)
        return removed

    @_locked
    def load_conflicts(self, entries: Iterable[ConflictLogEntry]) -> list[StaleReferenceWarning]:
        """Load persisted log entries and prune the ones whose item left its cell."""
        self.ledger.load(entries)
        warnings = self.ledger.prune_stale(self.grid)
        if warnings and self.log_repo is not None:
            try:
                self.log_repo.delete_all(w.entry_id for w in warnings)
            except PersistenceFailure as exc:
                self._persistence_failed(exc)
        for w in warnings:
            logger.info("Stale repetition log entry=%s item=%s cell=%s", w.entry_id, w.item_id, w.coordinate.key)
        return warnings

    @_locked
    def find_occurrences(self, item_id: str) -> list[CellCoordinate]:
        return self.grid.find_occurrences(item_id)

    @_locked
    def to_document(self, prune_empty: bool = False) -> dict[str, Any]:
        return {
            "id": self.id,
            "startDate": self.start_date,
            "endDate": self.end_date,
            "dates": list(self.grid.dates),
            "companyId": self.company_id,
            "combinedMenuId": self.combined_menu_id,
            "menuData": self.grid.to_menu_data(prune_empty=prune_empty),
            "conflicts": [e.to_document() for e in self.ledger.entries()],
            "copyBuffer": list(self.copy_buffer.items) if self.copy_buffer else None,
            "prevWeek": self.grid.detector.prev_week.to_dict() if self.grid.detector else {},
        }


class SessionRegistry:
    """In-process map of open editing sessions."""

    def __init__(self) -> None:
        self._sessions: dict[str, EditingSession] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._sessions)

    def put(self, session: EditingSession) -> EditingSession:
        with self._lock:
            self._sessions[session.id] = session
        return session

    def get(self, session_id: str) -> EditingSession:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    def close(self, session_id: str) -> EditingSession | None:
        with self._lock:
            return self._sessions.pop(session_id, None)

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()
