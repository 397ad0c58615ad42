"""Company/building visibility of items per cell.

``StructureCatalog`` derives the structural default from the structure and
meal-plan-structure assignment documents. ``CustomAssignmentResolver`` layers
per-item overrides on top and keeps overrides that equal the default out of
the cell.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from datetime import date as date_cls
from typing import Any

from .models import DEFAULT, Assignment, Cell, CellCoordinate, OverrideAssignment, StructureKey

_DAY_KEYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

Path = tuple[str, str, str, str]


def day_key(iso_date: str) -> str:
    return _DAY_KEYS[date_cls.fromisoformat(iso_date).weekday()]


@dataclass(frozen=True)
class Company:
    id: str
    name: str
    status: str = "active"


@dataclass(frozen=True)
class Building:
    id: str
    name: str
    company_id: str
    status: str = "active"


@dataclass
class StructurePair:
    company: Company
    building: Building
    services_by_day: dict[str, set[str]] = field(default_factory=dict)
    paths_by_day: dict[str, list[Path]] = field(default_factory=dict)

    @property
    def key(self) -> StructureKey:
        return StructureKey(self.company.id, self.building.id)

    def permits(self, day: str, path: Path) -> bool:
        return path[0] in self.services_by_day.get(day, ()) and path in self.paths_by_day.get(day, ())


def _services_by_day(week_structure: Mapping[str, Any] | None) -> dict[str, set[str]]:
    out: dict[str, set[str]] = {}
    for day, services in (week_structure or {}).items():
        out[str(day).lower()] = {str(s["serviceId"]) for s in services or [] if s.get("serviceId")}
    return out


def _paths_by_day(week_structure: Mapping[str, Any] | None) -> dict[str, list[Path]]:
    out: dict[str, list[Path]] = {}
    for day, services in (week_structure or {}).items():
        paths: list[Path] = []
        for service in services or []:
            for sub_service in service.get("subServices") or []:
                for meal_plan in sub_service.get("mealPlans") or []:
                    for sub_meal_plan in meal_plan.get("subMealPlans") or []:
                        paths.append((
                            str(service["serviceId"]),
                            str(sub_service["subServiceId"]),
                            str(meal_plan["mealPlanId"]),
                            str(sub_meal_plan["subMealPlanId"]),
                        ))
        out[str(day).lower()] = paths
    return out


class StructureCatalog:
    def __init__(
        self,
        companies: Iterable[Company],
        buildings: Iterable[Building],
        structure_assignments: Iterable[Mapping[str, Any]] = (),
        meal_plan_structure_assignments: Iterable[Mapping[str, Any]] = (),
    ) -> None:
        self.companies = list(companies)
        self.buildings = list(buildings)
        self.structure_assignments = list(structure_assignments)
        self.meal_plan_structure_assignments = list(meal_plan_structure_assignments)
        self._pairs: list[StructurePair] | None = None

    @classmethod
    def from_dicts(
        cls,
        companies: Iterable[Mapping[str, Any]],
        buildings: Iterable[Mapping[str, Any]],
        structure_assignments: Iterable[Mapping[str, Any]] = (),
        meal_plan_structure_assignments: Iterable[Mapping[str, Any]] = (),
    ) -> StructureCatalog:
        return cls(
            [Company(str(c["id"]), str(c.get("name") or c["id"]), str(c.get("status") or "active")) for c in companies],
            [
                Building(str(b["id"]), str(b.get("name") or b["id"]), str(b["companyId"]), str(b.get("status") or "active"))
                for b in buildings
            ],
            structure_assignments,
            meal_plan_structure_assignments,
        )

    @staticmethod
    def _find_active(docs: list[Mapping[str, Any]], company_id: str, building_id: str) -> Mapping[str, Any] | None:
        for doc in docs:
            if (
                str(doc.get("companyId")) == company_id
                and str(doc.get("buildingId")) == building_id
                and doc.get("status", "active") == "active"
            ):
                return doc
        return None

    def iter_pairs(self) -> Iterator[tuple[Company, Building, StructurePair | None]]:
        """Every active company/building; the pair is None when an assignment is missing."""
        for company in self.companies:
            if company.status != "active":
                continue
            for building in self.buildings:
                if building.company_id != company.id or building.status != "active":
                    continue
                structure = self._find_active(self.structure_assignments, company.id, building.id)
                meal_plan_structure = self._find_active(self.meal_plan_structure_assignments, company.id, building.id)
                if structure is None or meal_plan_structure is None:
                    yield company, building, None
                    continue
                yield company, building, StructurePair(
                    company,
                    building,
                    services_by_day=_services_by_day(structure.get("weekStructure")),
                    paths_by_day=_paths_by_day(meal_plan_structure.get("weekStructure")),
                )

    def active_pairs(self) -> list[StructurePair]:
        if self._pairs is None:
            self._pairs = [pair for _, _, pair in self.iter_pairs() if pair is not None]
        return list(self._pairs)

    def permitted_paths(self, pair: StructurePair, day: str) -> list[Path]:
        return [p for p in pair.paths_by_day.get(day, []) if p[0] in pair.services_by_day.get(day, ())]

    def default_structures(self, coord: CellCoordinate) -> frozenset[StructureKey]:
        day = day_key(coord.date)
        return frozenset(pair.key for pair in self.active_pairs() if pair.permits(day, coord.path))

    def describe(self, key: StructureKey) -> dict[str, str]:
        for pair in self.active_pairs():
            if pair.key == key:
                return {**key.to_dict(), "companyName": pair.company.name, "buildingName": pair.building.name}
        return key.to_dict()


class CustomAssignmentResolver:
    """Per-cell override editor. Never raises for "no override needed"."""

    def __init__(self, cell: Cell, default_structures: Iterable[StructureKey]) -> None:
        self.cell = cell
        self.default_structures = frozenset(default_structures)

    def assignment_for(self, item_id: str) -> Assignment:
        return self.cell.assignment_for(item_id)

    def effective_assignment(self, item_id: str) -> frozenset[StructureKey]:
        override = self.cell.custom_assignments.get(item_id)
        if override is not None:
            return override.structures
        return self.default_structures

    def set_override(self, item_id: str, structures: Iterable[StructureKey]) -> Assignment:
        wanted = frozenset(structures)
        if wanted == self.default_structures:
            self.cell.custom_assignments.pop(item_id, None)
            return DEFAULT
        override = OverrideAssignment(wanted)
        self.cell.custom_assignments[item_id] = override
        return override

    def apply(
        self,
        assignments: Mapping[str, Iterable[StructureKey]],
        focus_item_id: str | None = None,
    ) -> dict[str, Assignment]:
        if focus_item_id is not None:
            if focus_item_id not in self.cell or focus_item_id not in assignments:
                return {}
            return {focus_item_id: self.set_override(focus_item_id, assignments[focus_item_id])}
        result: dict[str, Assignment] = {}
        for item_id in self.cell.menu_item_ids:
            if item_id in assignments:
                result[item_id] = self.set_override(item_id, assignments[item_id])
        return result
