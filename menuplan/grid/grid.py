"""In-memory combined-menu grid.

Cells are stored in a flat map keyed by ``CellCoordinate``; a per-date index
keeps the generation order (catalog order) so that full-grid scans are
deterministic within one editing session. Mutations happen in place and return
``MutationResult(grid, conflicts)``; applying the conflicts is left to the host.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from typing import Any, TYPE_CHECKING

from ..errors import ValidationError
from .catalog import ServiceCatalog
from .models import Cell, CellCoordinate, ConflictLogEntry, MutationResult

if TYPE_CHECKING:  # pragma: no cover
    from .detector import RepetitionDetector


def iter_menu_data(menu_data: Mapping[str, Any] | None) -> Iterator[tuple[CellCoordinate, dict[str, Any]]]:
    """Walk a nested ``menuData`` document, yielding (coordinate, leaf)."""
    for date, services in (menu_data or {}).items():
        for service_id, sub_services in (services or {}).items():
            for sub_service_id, meal_plans in (sub_services or {}).items():
                for meal_plan_id, sub_meal_plans in (meal_plans or {}).items():
                    for sub_meal_plan_id, leaf in (sub_meal_plans or {}).items():
                        if not isinstance(leaf, dict):
                            continue
                        yield CellCoordinate(
                            str(date), str(service_id), str(sub_service_id), str(meal_plan_id), str(sub_meal_plan_id)
                        ), leaf


def nest_cells(cells: Iterable[tuple[CellCoordinate, dict[str, Any]]]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for coord, leaf in cells:
        node = out.setdefault(coord.date, {})
        node = node.setdefault(coord.service_id, {})
        node = node.setdefault(coord.sub_service_id, {})
        node = node.setdefault(coord.meal_plan_id, {})
        node[coord.sub_meal_plan_id] = leaf
    return out


class MenuGrid:
    def __init__(self, dates: Iterable[str], detector: RepetitionDetector | None = None) -> None:
        self.dates: list[str] = list(dates)
        self.detector = detector
        self._cells: dict[CellCoordinate, Cell] = {}
        self._by_date: dict[str, list[CellCoordinate]] = {d: [] for d in self.dates}

    @classmethod
    def generate(
        cls,
        dates: Iterable[str],
        catalog: ServiceCatalog,
        detector: RepetitionDetector | None = None,
    ) -> MenuGrid:
        grid = cls(dates, detector)
        paths = list(catalog.paths())
        for date in grid.dates:
            for path in paths:
                grid._put(CellCoordinate(date, *path), Cell())
        return grid

    # ---- read side ----
    def __contains__(self, coord: object) -> bool:
        return coord in self._cells

    def __len__(self) -> int:
        return len(self._cells)

    def cell(self, coord: CellCoordinate) -> Cell | None:
        return self._cells.get(coord)

    def items(self) -> Iterator[tuple[CellCoordinate, Cell]]:
        for date in self.dates:
            yield from self.cells_for_date(date)

    def cells_for_date(self, date: str) -> Iterator[tuple[CellCoordinate, Cell]]:
        for coord in self._by_date.get(date, ()):
            yield coord, self._cells[coord]

    @property
    def is_empty(self) -> bool:
        return all(cell.is_empty for cell in self._cells.values())

    def find_occurrences(self, item_id: str) -> list[CellCoordinate]:
        return [coord for coord, cell in self.items() if item_id in cell]

    # ---- mutations ----
    def _put(self, coord: CellCoordinate, cell: Cell) -> Cell:
        if coord not in self._cells:
            self._by_date[coord.date].append(coord)
        self._cells[coord] = cell
        return cell

    def _require(self, coord: CellCoordinate) -> Cell:
        if coord.date not in self._by_date:
            raise ValidationError(
                [{"field": "date", "msg": "outside_range", "value": coord.date}],
                detail="date outside the active range",
            )
        cell = self._cells.get(coord)
        if cell is None:
            cell = self._put(coord, Cell())
        return cell

    def _detect(self, coord: CellCoordinate, item_ids: Iterable[str]) -> list[ConflictLogEntry]:
        if self.detector is None:
            return []
        found = []
        for item_id in item_ids:
            entry = self.detector.detect(self, coord, item_id)
            if entry is not None:
                found.append(entry)
        return found

    def add_item(self, coord: CellCoordinate, item_id: str) -> MutationResult:
        cell = self._require(coord)
        if item_id in cell:
            return MutationResult(self, [])
        conflicts = self._detect(coord, [item_id])
        cell.menu_item_ids.append(item_id)
        return MutationResult(self, conflicts)

    def remove_item(self, coord: CellCoordinate, item_id: str) -> MutationResult:
        cell = self._require(coord)
        cell.menu_item_ids = [i for i in cell.menu_item_ids if i != item_id]
        cell.custom_assignments.pop(item_id, None)
        return MutationResult(self, [])

    def apply_items_to_cell(self, coord: CellCoordinate, items: Iterable[str]) -> MutationResult:
        cell = self._require(coord)
        new_ids: list[str] = []
        for item_id in items:
            if item_id not in new_ids:
                new_ids.append(item_id)
        conflicts = self._detect(coord, new_ids)
        cell.menu_item_ids = new_ids
        cell.custom_assignments = {k: v for k, v in cell.custom_assignments.items() if k in new_ids}
        cell.selected_descriptions = {k: v for k, v in cell.selected_descriptions.items() if k in new_ids}
        return MutationResult(self, conflicts)

    def set_selected_description(self, coord: CellCoordinate, item_id: str, text: str | None) -> None:
        cell = self._require(coord)
        if item_id not in cell:
            raise ValidationError(
                [{"field": "item_id", "msg": "not_in_cell", "value": item_id}],
                detail="item is not assigned to this cell",
            )
        if text:
            cell.selected_descriptions[item_id] = text
        else:
            cell.selected_descriptions.pop(item_id, None)

    # ---- documents ----
    def to_menu_data(self, prune_empty: bool = True) -> dict[str, Any]:
        if prune_empty:
            return nest_cells((c, cell.to_dict()) for c, cell in self.items() if not cell.is_empty)
        out = nest_cells((c, cell.to_dict()) for c, cell in self.items())
        for date in self.dates:
            out.setdefault(date, {})
        return out

    def merge_menu_data(self, menu_data: Mapping[str, Any] | None) -> int:
        """Copy stored cells onto generated coordinates; returns how many were merged."""
        merged = 0
        for coord, leaf in iter_menu_data(menu_data):
            if coord not in self._cells:
                continue
            self._cells[coord] = Cell.from_dict(leaf)
            merged += 1
        return merged
