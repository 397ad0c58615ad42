"""Value types for the combined-menu grid.

A cell lives at a five part coordinate (date, service, sub-service, meal plan,
sub-meal plan). Item visibility per company/building is a tri-state carried by
``DefaultAssignment`` / ``OverrideAssignment`` instead of None-vs-empty-list.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Literal, NamedTuple, TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from .grid import MenuGrid


@dataclass(frozen=True)
class CellCoordinate:
    date: str  # ISO date
    service_id: str
    sub_service_id: str
    meal_plan_id: str
    sub_meal_plan_id: str

    @property
    def path(self) -> tuple[str, str, str, str]:
        return (self.service_id, self.sub_service_id, self.meal_plan_id, self.sub_meal_plan_id)

    @property
    def key(self) -> str:
        return "|".join((self.date, *self.path))

    def with_date(self, date: str) -> CellCoordinate:
        return CellCoordinate(date, *self.path)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CellCoordinate:
        return cls(
            date=str(data["date"]),
            service_id=str(data["serviceId"]),
            sub_service_id=str(data["subServiceId"]),
            meal_plan_id=str(data["mealPlanId"]),
            sub_meal_plan_id=str(data["subMealPlanId"]),
        )

    def to_dict(self) -> dict[str, str]:
        return {
            "date": self.date,
            "serviceId": self.service_id,
            "subServiceId": self.sub_service_id,
            "mealPlanId": self.meal_plan_id,
            "subMealPlanId": self.sub_meal_plan_id,
        }


@dataclass(frozen=True, order=True)
class StructureKey:
    company_id: str
    building_id: str

    @property
    def key(self) -> str:
        return f"{self.company_id}-{self.building_id}"

    def to_dict(self) -> dict[str, str]:
        return {"companyId": self.company_id, "buildingId": self.building_id}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StructureKey:
        return cls(str(data["companyId"]), str(data["buildingId"]))


@dataclass(frozen=True)
class DefaultAssignment:
    kind: Literal["default"] = "default"


@dataclass(frozen=True)
class OverrideAssignment:
    structures: frozenset[StructureKey] = frozenset()
    kind: Literal["override"] = "override"

    def allows(self, structure: StructureKey) -> bool:
        return structure in self.structures

    def to_list(self) -> list[dict[str, str]]:
        return [s.to_dict() for s in sorted(self.structures)]


Assignment = DefaultAssignment | OverrideAssignment
DEFAULT = DefaultAssignment()


@dataclass
class Cell:
    menu_item_ids: list[str] = field(default_factory=list)
    selected_descriptions: dict[str, str] = field(default_factory=dict)
    custom_assignments: dict[str, OverrideAssignment] = field(default_factory=dict)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self.menu_item_ids

    @property
    def is_empty(self) -> bool:
        return not self.menu_item_ids

    def assignment_for(self, item_id: str) -> Assignment:
        return self.custom_assignments.get(item_id, DEFAULT)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"menuItemIds": list(self.menu_item_ids)}
        if self.selected_descriptions:
            out["selectedDescriptions"] = dict(self.selected_descriptions)
        if self.custom_assignments:
            out["customAssignments"] = {
                item_id: override.to_list() for item_id, override in self.custom_assignments.items()
            }
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Cell:
        data = data or {}
        custom: dict[str, OverrideAssignment] = {}
        for item_id, entries in (data.get("customAssignments") or {}).items():
            # A null entry is the absent state; [] is an explicit "nowhere" override.
            if entries is None:
                continue
            custom[str(item_id)] = OverrideAssignment(frozenset(StructureKey.from_dict(e) for e in entries))
        return cls(
            menu_item_ids=[str(i) for i in (data.get("menuItemIds") or [])],
            selected_descriptions={str(k): str(v) for k, v in (data.get("selectedDescriptions") or {}).items()},
            custom_assignments=custom,
        )


class ConflictType(str, Enum):
    IN_WEEK_DUPLICATE = "in_week_duplicate"
    PREV_WEEK_REPEAT = "prev_week_repeat"


def utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class ConflictLogEntry:
    """One detected repetition event. Never mutated once created."""

    type: ConflictType
    item_id: str
    item_name: str
    coordinate: CellCoordinate  # where the placement was attempted
    original: CellCoordinate | None = None  # in-week duplicates only
    prev_date: str | None = None  # prev-week repeats only
    time: datetime = field(default_factory=utcnow)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def attempted_date(self) -> str:
        return self.coordinate.date

    @property
    def identity_key(self) -> tuple[str, ...]:
        return (self.type.value, self.item_id, self.coordinate.date, *self.coordinate.path)

    def touches(self, coord: CellCoordinate) -> bool:
        return self.coordinate == coord or self.original == coord

    def to_document(self) -> dict[str, Any]:
        doc: dict[str, Any] = {
            "id": self.id,
            "type": self.type.value,
            "itemId": self.item_id,
            "itemName": self.item_name,
            "serviceId": self.coordinate.service_id,
            "subServiceId": self.coordinate.sub_service_id,
            "mealPlanId": self.coordinate.meal_plan_id,
            "subMealPlanId": self.coordinate.sub_meal_plan_id,
            "attemptedDate": self.coordinate.date,
            "time": self.time.isoformat(),
        }
        if self.original is not None:
            doc.update(
                originalDate=self.original.date,
                originalServiceId=self.original.service_id,
                originalSubServiceId=self.original.sub_service_id,
                originalMealPlanId=self.original.meal_plan_id,
                originalSubMealPlanId=self.original.sub_meal_plan_id,
            )
        if self.prev_date is not None:
            doc["prevDate"] = self.prev_date
        return doc

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> ConflictLogEntry:
        coordinate = CellCoordinate(
            date=str(doc["attemptedDate"]),
            service_id=str(doc["serviceId"]),
            sub_service_id=str(doc["subServiceId"]),
            meal_plan_id=str(doc["mealPlanId"]),
            sub_meal_plan_id=str(doc["subMealPlanId"]),
        )
        original = None
        if doc.get("originalDate"):
            original = CellCoordinate(
                date=str(doc["originalDate"]),
                service_id=str(doc["originalServiceId"]),
                sub_service_id=str(doc["originalSubServiceId"]),
                meal_plan_id=str(doc["originalMealPlanId"]),
                sub_meal_plan_id=str(doc["originalSubMealPlanId"]),
            )
        raw_time = doc.get("time")
        if isinstance(raw_time, datetime):
            when = raw_time
        elif raw_time:
            when = datetime.fromisoformat(str(raw_time))
        else:
            when = utcnow()
        return cls(
            type=ConflictType(doc["type"]),
            item_id=str(doc["itemId"]),
            item_name=str(doc.get("itemName") or doc["itemId"]),
            coordinate=coordinate,
            original=original,
            prev_date=doc.get("prevDate"),
            time=when,
            id=str(doc.get("id") or uuid.uuid4().hex),
        )


class MutationResult(NamedTuple):
    grid: MenuGrid
    conflicts: list[ConflictLogEntry]


@dataclass(frozen=True)
class CopyBuffer:
    items: tuple[str, ...]
    meta: dict[str, Any] = field(default_factory=dict)
