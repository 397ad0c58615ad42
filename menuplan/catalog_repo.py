from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from .db import get_session
from .errors import PersistenceFailure
from .grid.assignments import Building, Company, StructureCatalog
from .grid.catalog import CatalogEntry, ServiceCatalog
from .models import (
    Building as BuildingRow,
    Company as CompanyRow,
    MealPlan,
    MealPlanStructureAssignment,
    MenuItem,
    Service,
    StructureAssignment,
    SubMealPlan,
    SubService,
)


def _entry(row, parent_id: str | None = None, is_repeat_plan: bool = False) -> CatalogEntry:
    return CatalogEntry(
        id=row.id,
        name=row.name,
        order=row.order if row.order is not None else 999,
        status=row.status or "active",
        parent_id=parent_id,
        is_repeat_plan=is_repeat_plan,
    )


class CatalogRepo:
    """Read-only access to the service hierarchy and structural assignments."""

    def load_service_catalog(self) -> ServiceCatalog:
        db = get_session()
        try:
            return ServiceCatalog(
                services=[_entry(r) for r in db.scalars(select(Service))],
                sub_services=[_entry(r, r.service_id) for r in db.scalars(select(SubService))],
                meal_plans=[_entry(r) for r in db.scalars(select(MealPlan))],
                sub_meal_plans=[
                    _entry(r, r.meal_plan_id, bool(r.is_repeat_plan)) for r in db.scalars(select(SubMealPlan))
                ],
            )
        except SQLAlchemyError as exc:
            raise PersistenceFailure("load_service_catalog", str(exc)) from exc
        finally:
            db.close()

    def load_structure_catalog(self) -> StructureCatalog:
        db = get_session()
        try:
            companies = [Company(r.id, r.name, r.status) for r in db.scalars(select(CompanyRow))]
            buildings = [Building(r.id, r.name, r.company_id, r.status) for r in db.scalars(select(BuildingRow))]
            structures = [
                {"companyId": r.company_id, "buildingId": r.building_id, "status": r.status, "weekStructure": r.week_structure}
                for r in db.scalars(select(StructureAssignment))
            ]
            meal_plan_structures = [
                {"companyId": r.company_id, "buildingId": r.building_id, "status": r.status, "weekStructure": r.week_structure}
                for r in db.scalars(select(MealPlanStructureAssignment))
            ]
            return StructureCatalog(companies, buildings, structures, meal_plan_structures)
        except SQLAlchemyError as exc:
            raise PersistenceFailure("load_structure_catalog", str(exc)) from exc
        finally:
            db.close()

    def load_item_names(self) -> dict[str, str]:
        db = get_session()
        try:
            return {r.id: r.name for r in db.scalars(select(MenuItem))}
        except SQLAlchemyError as exc:
            raise PersistenceFailure("load_item_names", str(exc)) from exc
        finally:
            db.close()
