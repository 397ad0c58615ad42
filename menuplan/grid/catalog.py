from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any

_MISSING_ORDER = 999


@dataclass(frozen=True)
class CatalogEntry:
    id: str
    name: str
    order: int = _MISSING_ORDER
    status: str = "active"
    parent_id: str | None = None  # service for sub-services, meal plan for sub-meal plans
    is_repeat_plan: bool = False

    @property
    def active(self) -> bool:
        return self.status == "active"

    @classmethod
    def from_dict(cls, data: dict[str, Any], parent_key: str | None = None) -> CatalogEntry:
        order = data.get("order")
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or data["id"]),
            order=int(order) if order is not None else _MISSING_ORDER,
            status=str(data.get("status") or "active"),
            parent_id=str(data[parent_key]) if parent_key and data.get(parent_key) is not None else None,
            is_repeat_plan=bool(data.get("isRepeatPlan", False)),
        )


def _active_sorted(entries: Iterable[CatalogEntry]) -> list[CatalogEntry]:
    # sorted() is stable, ties keep their load order
    return sorted((e for e in entries if e.active), key=lambda e: e.order)


@dataclass
class ServiceCatalog:
    """Active, order-sorted view of the service hierarchy used to build grids."""

    services: list[CatalogEntry] = field(default_factory=list)
    sub_services: list[CatalogEntry] = field(default_factory=list)
    meal_plans: list[CatalogEntry] = field(default_factory=list)
    sub_meal_plans: list[CatalogEntry] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.services = _active_sorted(self.services)
        self.sub_services = _active_sorted(self.sub_services)
        self.meal_plans = _active_sorted(self.meal_plans)
        self.sub_meal_plans = _active_sorted(self.sub_meal_plans)

    @classmethod
    def from_dicts(
        cls,
        services: Iterable[dict[str, Any]],
        sub_services: Iterable[dict[str, Any]],
        meal_plans: Iterable[dict[str, Any]],
        sub_meal_plans: Iterable[dict[str, Any]],
    ) -> ServiceCatalog:
        return cls(
            services=[CatalogEntry.from_dict(d) for d in services],
            sub_services=[CatalogEntry.from_dict(d, "serviceId") for d in sub_services],
            meal_plans=[CatalogEntry.from_dict(d) for d in meal_plans],
            sub_meal_plans=[CatalogEntry.from_dict(d, "mealPlanId") for d in sub_meal_plans],
        )

    def sub_services_of(self, service_id: str) -> list[CatalogEntry]:
        return [s for s in self.sub_services if s.parent_id == service_id]

    def sub_meal_plans_of(self, meal_plan_id: str) -> list[CatalogEntry]:
        return [s for s in self.sub_meal_plans if s.parent_id == meal_plan_id]

    def paths(self) -> Iterator[tuple[str, str, str, str]]:
        """Yield (service, subService, mealPlan, subMealPlan) in generation order."""
        for service in self.services:
            for sub_service in self.sub_services_of(service.id):
                for meal_plan in self.meal_plans:
                    for sub_meal_plan in self.sub_meal_plans_of(meal_plan.id):
                        yield (service.id, sub_service.id, meal_plan.id, sub_meal_plan.id)

    def repeat_plan_ids(self) -> frozenset[str]:
        return frozenset(s.id for s in self.sub_meal_plans if s.is_repeat_plan)

    def names(self) -> dict[str, str]:
        out: dict[str, str] = {}
        for group in (self.services, self.sub_services, self.meal_plans, self.sub_meal_plans):
            out.update((e.id, e.name) for e in group)
        return out
