"""Repetition detection for item placements.

An in-week scan runs first (other dates in range order, cells in generation
order, first match wins). Only when it finds nothing is the previous-week
snapshot consulted. Placements into repeat-plan rows are never checked.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from datetime import date as date_cls, datetime, timedelta
from typing import Any

from .grid import MenuGrid, iter_menu_data
from .models import CellCoordinate, ConflictLogEntry, ConflictType, utcnow


def shift_date(iso_date: str, days: int) -> str:
    return (date_cls.fromisoformat(iso_date) + timedelta(days=days)).isoformat()


class PrevWeekSnapshot:
    """Item ids seen exactly one week earlier, keyed by the current-range date."""

    def __init__(self, data: Mapping[str, Mapping[tuple[str, str, str, str], Iterable[str]]] | None = None) -> None:
        self._data: dict[str, dict[tuple[str, str, str, str], list[str]]] = {}
        for day, paths in (data or {}).items():
            for path, ids in paths.items():
                bucket = self._data.setdefault(day, {}).setdefault(tuple(path), [])  # type: ignore[arg-type]
                for item_id in ids:
                    if item_id not in bucket:
                        bucket.append(item_id)

    @classmethod
    def from_company_menus(cls, menu_data_docs: Iterable[Mapping[str, Any] | None], dates: Iterable[str]) -> PrevWeekSnapshot:
        wanted = {shift_date(d, -7): d for d in dates}
        snapshot = cls()
        for doc in menu_data_docs:
            for coord, leaf in iter_menu_data(doc):
                current = wanted.get(coord.date)
                if current is None:
                    continue
                bucket = snapshot._data.setdefault(current, {}).setdefault(coord.path, [])
                for item_id in leaf.get("menuItemIds") or []:
                    if item_id not in bucket:
                        bucket.append(str(item_id))
        return snapshot

    def __bool__(self) -> bool:
        return bool(self._data)

    def items_for(self, coord: CellCoordinate) -> list[str]:
        return list(self._data.get(coord.date, {}).get(coord.path, []))

    def contains(self, coord: CellCoordinate, item_id: str) -> bool:
        return item_id in self._data.get(coord.date, {}).get(coord.path, ())

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for day, paths in self._data.items():
            for (service_id, sub_service_id, meal_plan_id, sub_meal_plan_id), ids in paths.items():
                node = out.setdefault(day, {}).setdefault(service_id, {}).setdefault(sub_service_id, {})
                node.setdefault(meal_plan_id, {})[sub_meal_plan_id] = list(ids)
        return out


class RepetitionDetector:
    def __init__(
        self,
        prev_week: PrevWeekSnapshot | None = None,
        repeat_plan_ids: Iterable[str] = (),
        item_names: Mapping[str, str] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.prev_week = prev_week or PrevWeekSnapshot()
        self.repeat_plan_ids = frozenset(repeat_plan_ids)
        self.item_names = dict(item_names or {})
        self.clock = clock or utcnow

    def is_exempt(self, sub_meal_plan_id: str) -> bool:
        return sub_meal_plan_id in self.repeat_plan_ids

    def find_in_week(self, grid: MenuGrid, coord: CellCoordinate, item_id: str) -> CellCoordinate | None:
        for day in grid.dates:
            if day == coord.date:
                continue
            for other, cell in grid.cells_for_date(day):
                if item_id in cell:
                    return other
        return None

    def detect(self, grid: MenuGrid, coord: CellCoordinate, item_id: str) -> ConflictLogEntry | None:
        if self.is_exempt(coord.sub_meal_plan_id):
            return None
        name = self.item_names.get(item_id, item_id)
        original = self.find_in_week(grid, coord, item_id)
        if original is not None:
            return ConflictLogEntry(
                type=ConflictType.IN_WEEK_DUPLICATE,
                item_id=item_id,
                item_name=name,
                coordinate=coord,
                original=original,
                time=self.clock(),
            )
        if self.prev_week.contains(coord, item_id):
            return ConflictLogEntry(
                type=ConflictType.PREV_WEEK_REPEAT,
                item_id=item_id,
                item_name=name,
                coordinate=coord,
                prev_date=shift_date(coord.date, -7),
                time=self.clock(),
            )
        return None
