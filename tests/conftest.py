import os
import sys

import pytest

# Path setup before any project imports to satisfy E402
ROOT = os.path.dirname(__file__)
PARENT = os.path.abspath(os.path.join(ROOT, ".."))
if PARENT not in sys.path:  # pragma: no cover - environment dependent
    sys.path.insert(0, PARENT)

from menuplan.grid.assignments import StructureCatalog  # noqa: E402
from menuplan.grid.catalog import ServiceCatalog  # noqa: E402
from menuplan.grid.models import CellCoordinate  # noqa: E402

# Monday 2024-01-08 .. Sunday 2024-01-14
WEEK = [f"2024-01-{d:02d}" for d in range(8, 15)]
PREV_WEEK = [f"2024-01-{d:02d}" for d in range(1, 8)]

PATH_A = ("svc-lunch", "sub-main", "mp-std", "smp-a")
PATH_A_REPEAT = ("svc-lunch", "sub-main", "mp-std", "smp-repeat")
PATH_B = ("svc-dinner", "sub-eve", "mp-std", "smp-a")
PATH_B_REPEAT = ("svc-dinner", "sub-eve", "mp-std", "smp-repeat")

DAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

SERVICES = [
    {"id": "svc-dinner", "name": "Dinner", "order": 2},
    {"id": "svc-lunch", "name": "Lunch", "order": 1},
    {"id": "svc-old", "name": "Retired", "order": 0, "status": "inactive"},
]
SUB_SERVICES = [
    {"id": "sub-main", "name": "Main", "serviceId": "svc-lunch", "order": 1},
    {"id": "sub-eve", "name": "Evening", "serviceId": "svc-dinner", "order": 1},
]
MEAL_PLANS = [{"id": "mp-std", "name": "Standard", "order": 1}]
SUB_MEAL_PLANS = [
    {"id": "smp-a", "name": "Option A", "mealPlanId": "mp-std", "order": 1},
    {"id": "smp-repeat", "name": "Daily staples", "mealPlanId": "mp-std", "order": 2, "isRepeatPlan": True},
]
MENU_ITEMS = {"itm-x": "Pasta", "itm-y": "Soup", "itm-p": "Salad", "itm-q": "Curry", "itm-r": "Bread"}


def coord(date, path=PATH_A):
    return CellCoordinate(date, *path)


def _meal_plan_tree(paths):
    tree = {}
    for service_id, sub_service_id, meal_plan_id, sub_meal_plan_id in paths:
        svc = tree.setdefault(service_id, {})
        svc.setdefault(sub_service_id, {}).setdefault(meal_plan_id, []).append(sub_meal_plan_id)
    return [
        {
            "serviceId": service_id,
            "subServices": [
                {
                    "subServiceId": sub_service_id,
                    "mealPlans": [
                        {"mealPlanId": mp, "subMealPlans": [{"subMealPlanId": s} for s in smps]}
                        for mp, smps in meal_plans.items()
                    ],
                }
                for sub_service_id, meal_plans in subs.items()
            ],
        }
        for service_id, subs in tree.items()
    ]


def week_structures(company_id, building_id, paths, days=DAYS):
    services = sorted({p[0] for p in paths})
    structure = {
        "companyId": company_id,
        "buildingId": building_id,
        "status": "active",
        "weekStructure": {d: [{"serviceId": s} for s in services] for d in days},
    }
    meal_plan_structure = {
        "companyId": company_id,
        "buildingId": building_id,
        "status": "active",
        "weekStructure": {d: _meal_plan_tree(paths) for d in days},
    }
    return structure, meal_plan_structure


COMPANIES = [
    {"id": "co-a", "name": "Acme"},
    {"id": "co-b", "name": "Beta"},
    {"id": "co-c", "name": "Gamma"},
    {"id": "co-x", "name": "Closed", "status": "inactive"},
]
BUILDINGS = [
    {"id": "b-a1", "name": "Acme HQ", "companyId": "co-a"},
    {"id": "b-b1", "name": "Beta Tower", "companyId": "co-b"},
    {"id": "b-c1", "name": "Gamma Lab", "companyId": "co-c"},
    {"id": "b-x1", "name": "Closed Site", "companyId": "co-x"},
]


def structure_docs():
    sa_a, mpsa_a = week_structures("co-a", "b-a1", [PATH_A, PATH_A_REPEAT, PATH_B])
    sa_b, mpsa_b = week_structures("co-b", "b-b1", [PATH_A, PATH_A_REPEAT])
    # co-c has a structure assignment but no meal-plan structure: skipped on projection
    sa_c, _ = week_structures("co-c", "b-c1", [PATH_A])
    sa_x, mpsa_x = week_structures("co-x", "b-x1", [PATH_A])
    return [sa_a, sa_b, sa_c, sa_x], [mpsa_a, mpsa_b, mpsa_x]


@pytest.fixture
def week():
    return list(WEEK)


@pytest.fixture
def catalog():
    return ServiceCatalog.from_dicts(SERVICES, SUB_SERVICES, MEAL_PLANS, SUB_MEAL_PLANS)


@pytest.fixture
def structures():
    structure_assignments, meal_plan_structures = structure_docs()
    return StructureCatalog.from_dicts(COMPANIES, BUILDINGS, structure_assignments, meal_plan_structures)


def _seed(db):
    from menuplan.models import (
        Building,
        Company,
        MealPlan,
        MealPlanStructureAssignment,
        MenuItem,
        Service,
        StructureAssignment,
        SubMealPlan,
        SubService,
    )

    for s in SERVICES:
        db.add(Service(id=s["id"], name=s["name"], order=s["order"], status=s.get("status", "active")))
    for s in SUB_SERVICES:
        db.add(SubService(id=s["id"], name=s["name"], service_id=s["serviceId"], order=s["order"]))
    for m in MEAL_PLANS:
        db.add(MealPlan(id=m["id"], name=m["name"], order=m["order"]))
    for s in SUB_MEAL_PLANS:
        db.add(
            SubMealPlan(
                id=s["id"],
                name=s["name"],
                meal_plan_id=s["mealPlanId"],
                order=s["order"],
                is_repeat_plan=s.get("isRepeatPlan", False),
            )
        )
    for item_id, name in MENU_ITEMS.items():
        db.add(MenuItem(id=item_id, name=name))
    for c in COMPANIES:
        db.add(Company(id=c["id"], name=c["name"], status=c.get("status", "active")))
    for b in BUILDINGS:
        db.add(Building(id=b["id"], name=b["name"], company_id=b["companyId"]))
    db.flush()
    structure_assignments, meal_plan_structures = structure_docs()
    for doc in structure_assignments:
        db.add(StructureAssignment(company_id=doc["companyId"], building_id=doc["buildingId"], week_structure=doc["weekStructure"]))
    for doc in meal_plan_structures:
        db.add(
            MealPlanStructureAssignment(
                company_id=doc["companyId"], building_id=doc["buildingId"], week_structure=doc["weekStructure"]
            )
        )
    db.commit()


@pytest.fixture(scope="session")
def app_session(tmp_path_factory):
    from menuplan.app_factory import create_app
    from menuplan.db import create_all, get_session

    db_file = tmp_path_factory.mktemp("db") / "test_app.db"
    url = f"sqlite:///{db_file}"
    app = create_app({"TESTING": True, "SECRET_KEY": "test", "database_url": url, "FORCE_DB_REINIT": True})
    with app.app_context():
        create_all()
        db = get_session()
        try:
            _seed(db)
        finally:
            db.close()
    return app


@pytest.fixture
def clean_menus(app_session):
    """Empty the menu/log tables around a test; catalog rows stay seeded."""
    from menuplan.db import get_session
    from menuplan.models import CombinedMenu, CompanyMenu, MenuUpdation, RepetitionLog

    def _wipe():
        db = get_session()
        try:
            for model in (MenuUpdation, RepetitionLog, CompanyMenu, CombinedMenu):
                db.query(model).delete()
            db.commit()
        finally:
            db.close()

    _wipe()
    yield
    _wipe()


@pytest.fixture
def client(app_session, clean_menus):
    return app_session.test_client()
