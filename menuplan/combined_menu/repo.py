from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db import get_session
from ..errors import PersistenceFailure
from ..grid.models import ConflictLogEntry
from ..models import CombinedMenu, CompanyMenu, MenuUpdation, RepetitionLog

logger = logging.getLogger(__name__)


def _fail(operation: str, exc: SQLAlchemyError) -> PersistenceFailure:
    logger.warning("Persistence failure during %s: %s", operation, exc)
    return PersistenceFailure(operation, str(exc))


def combined_menu_doc(row: CombinedMenu) -> dict[str, Any]:
    return {
        "id": row.id,
        "startDate": row.start_date,
        "endDate": row.end_date,
        "status": row.status,
        "companyId": row.company_id,
        "menuData": row.menu_data or {},
        "createdAt": row.created_at.isoformat() if row.created_at else None,
        "updatedAt": row.updated_at.isoformat() if row.updated_at else None,
    }


class CombinedMenuRepo:
    def add(self, start_date: str, end_date: str, menu_data: dict[str, Any], status: str = "draft", company_id: str | None = None) -> str:
        db = get_session()
        try:
            row = CombinedMenu(
                start_date=start_date,
                end_date=end_date,
                status=status,
                company_id=company_id,
                menu_data=menu_data,
            )
            db.add(row)
            db.commit()
            return row.id
        except SQLAlchemyError as exc:
            db.rollback()
            raise _fail("combined_menu.add", exc) from exc
        finally:
            db.close()

    def get(self, menu_id: str) -> dict[str, Any] | None:
        db = get_session()
        try:
            row = db.get(CombinedMenu, menu_id)
            return combined_menu_doc(row) if row is not None else None
        except SQLAlchemyError as exc:
            raise _fail("combined_menu.get", exc) from exc
        finally:
            db.close()

    def update_menu_data(self, menu_id: str, menu_data: dict[str, Any], status: str | None = None) -> bool:
        db = get_session()
        try:
            row = db.get(CombinedMenu, menu_id)
            if row is None:
                return False
            row.menu_data = menu_data
            if status is not None:
                row.status = status
            row.updated_at = datetime.now(UTC)
            db.commit()
            return True
        except SQLAlchemyError as exc:
            db.rollback()
            raise _fail("combined_menu.update", exc) from exc
        finally:
            db.close()

    def check_duplicate(self, start_date: str, end_date: str) -> str | None:
        """Id of a saved (non-archived, non-draft) combined menu covering exactly this range."""
        db = get_session()
        try:
            stmt = (
                select(CombinedMenu.id)
                .where(CombinedMenu.start_date == start_date)
                .where(CombinedMenu.end_date == end_date)
                .where(CombinedMenu.status.not_in(("archived", "draft")))
                .limit(1)
            )
            return db.scalars(stmt).first()
        except SQLAlchemyError as exc:
            raise _fail("combined_menu.check_duplicate", exc) from exc
        finally:
            db.close()

    def get_draft_by_date_range(self, start_date: str, end_date: str, company_id: str | None) -> dict[str, Any] | None:
        db = get_session()
        try:
            stmt = (
                select(CombinedMenu)
                .where(CombinedMenu.start_date == start_date)
                .where(CombinedMenu.end_date == end_date)
                .where(CombinedMenu.status == "draft")
                .where(CombinedMenu.company_id == company_id if company_id is not None else CombinedMenu.company_id.is_(None))
                .order_by(CombinedMenu.updated_at.desc())
                .limit(1)
            )
            row = db.scalars(stmt).first()
            return combined_menu_doc(row) if row is not None else None
        except SQLAlchemyError as exc:
            raise _fail("combined_menu.get_draft", exc) from exc
        finally:
            db.close()


class CompanyMenuRepo:
    def bulk_create(self, docs: Sequence[dict[str, Any]]) -> list[str]:
        db = get_session()
        try:
            rows = [
                CompanyMenu(
                    combined_menu_id=d.get("combinedMenuId"),
                    company_id=d["companyId"],
                    building_id=d["buildingId"],
                    company_name=d.get("companyName"),
                    building_name=d.get("buildingName"),
                    start_date=d["startDate"],
                    end_date=d["endDate"],
                    status=d.get("status", "active"),
                    menu_data=d.get("menuData") or {},
                )
                for d in docs
            ]
            db.add_all(rows)
            db.commit()
            return [r.id for r in rows]
        except SQLAlchemyError as exc:
            db.rollback()
            raise _fail("company_menu.bulk_create", exc) from exc
        finally:
            db.close()

    def list_menu_data(self) -> list[dict[str, Any]]:
        db = get_session()
        try:
            return [m or {} for m in db.scalars(select(CompanyMenu.menu_data))]
        except SQLAlchemyError as exc:
            raise _fail("company_menu.list_menu_data", exc) from exc
        finally:
            db.close()

    def list_for_combined_menu(self, combined_menu_id: str) -> list[dict[str, Any]]:
        db = get_session()
        try:
            rows = db.scalars(
                select(CompanyMenu)
                .where(CompanyMenu.combined_menu_id == combined_menu_id)
                .order_by(CompanyMenu.created_at)
            )
            return [
                {
                    "id": r.id,
                    "combinedMenuId": r.combined_menu_id,
                    "companyId": r.company_id,
                    "buildingId": r.building_id,
                    "companyName": r.company_name,
                    "buildingName": r.building_name,
                    "startDate": r.start_date,
                    "endDate": r.end_date,
                    "status": r.status,
                    "menuData": r.menu_data or {},
                }
                for r in rows
            ]
        except SQLAlchemyError as exc:
            raise _fail("company_menu.list_for_combined_menu", exc) from exc
        finally:
            db.close()


def _log_row(entry: ConflictLogEntry, start_date: str, end_date: str, company_id: str | None) -> RepetitionLog:
    doc = entry.to_document()
    return RepetitionLog(
        id=entry.id,
        menu_start_date=start_date,
        menu_end_date=end_date,
        company_id=company_id,
        type=doc["type"],
        item_id=doc["itemId"],
        item_name=doc["itemName"],
        service_id=doc["serviceId"],
        sub_service_id=doc["subServiceId"],
        meal_plan_id=doc["mealPlanId"],
        sub_meal_plan_id=doc["subMealPlanId"],
        attempted_date=doc["attemptedDate"],
        original_date=doc.get("originalDate"),
        original_service_id=doc.get("originalServiceId"),
        original_sub_service_id=doc.get("originalSubServiceId"),
        original_meal_plan_id=doc.get("originalMealPlanId"),
        original_sub_meal_plan_id=doc.get("originalSubMealPlanId"),
        prev_date=doc.get("prevDate"),
        time=entry.time,
    )


def _log_entry(row: RepetitionLog) -> ConflictLogEntry:
    return ConflictLogEntry.from_document(
        {
            "id": row.id,
            "type": row.type,
            "itemId": row.item_id,
            "itemName": row.item_name,
            "serviceId": row.service_id,
            "subServiceId": row.sub_service_id,
            "mealPlanId": row.meal_plan_id,
            "subMealPlanId": row.sub_meal_plan_id,
            "attemptedDate": row.attempted_date,
            "originalDate": row.original_date,
            "originalServiceId": row.original_service_id,
            "originalSubServiceId": row.original_sub_service_id,
            "originalMealPlanId": row.original_meal_plan_id,
            "originalSubMealPlanId": row.original_sub_meal_plan_id,
            "prevDate": row.prev_date,
            "time": row.time,
        }
    )


class RepetitionLogRepo:
    """Mirror of the ledger, keyed by (menu start, menu end, company)."""

    def add(self, entry: ConflictLogEntry, start_date: str, end_date: str, company_id: str | None) -> str:
        db = get_session()
        try:
            db.add(_log_row(entry, start_date, end_date, company_id))
            db.commit()
            return entry.id
        except SQLAlchemyError as exc:
            db.rollback()
            raise _fail("repetition_log.add", exc) from exc
        finally:
            db.close()

    def get_by_date_range(self, start_date: str, end_date: str, company_id: str | None) -> list[ConflictLogEntry]:
        db = get_session()
        try:
            stmt = (
                select(RepetitionLog)
                .where(RepetitionLog.menu_start_date == start_date)
                .where(RepetitionLog.menu_end_date == end_date)
                .where(RepetitionLog.company_id == company_id if company_id is not None else RepetitionLog.company_id.is_(None))
                .order_by(RepetitionLog.created_at.desc())
            )
            return [_log_entry(r) for r in db.scalars(stmt)]
        except SQLAlchemyError as exc:
            raise _fail("repetition_log.get_by_date_range", exc) from exc
        finally:
            db.close()

    def delete_all(self, ids: Iterable[str]) -> int:
        wanted = list(ids)
        if not wanted:
            return 0
        db = get_session()
        try:
            result = db.execute(delete(RepetitionLog).where(RepetitionLog.id.in_(wanted)))
            db.commit()
            return result.rowcount or 0
        except SQLAlchemyError as exc:
            db.rollback()
            raise _fail("repetition_log.delete_all", exc) from exc
        finally:
            db.close()


def _updation_count(db: Session, menu_id: str) -> int:
    return db.scalar(select(func.count()).select_from(MenuUpdation).where(MenuUpdation.menu_id == menu_id)) or 0


class MenuUpdationRepo:
    def count_for_menu(self, menu_id: str) -> int:
        db = get_session()
        try:
            return _updation_count(db, menu_id)
        except SQLAlchemyError as exc:
            raise _fail("menu_updation.count", exc) from exc
        finally:
            db.close()

    def add(
        self,
        menu_id: str,
        changed_cells: list[dict[str, Any]],
        total_changes: int,
        start_date: str,
        end_date: str,
        menu_type: str = "combined",
        created_by: str | None = None,
        notes: str | None = None,
    ) -> dict[str, Any]:
        db = get_session()
        try:
            number = _updation_count(db, menu_id) + 1
            row = MenuUpdation(
                menu_id=menu_id,
                menu_type=menu_type,
                updation_number=number,
                changed_cells=changed_cells,
                total_changes=total_changes,
                menu_start_date=start_date,
                menu_end_date=end_date,
                created_by=created_by,
                notes=notes,
            )
            db.add(row)
            db.commit()
            return {
                "id": row.id,
                "menuId": menu_id,
                "menuType": menu_type,
                "updationNumber": number,
                "totalChanges": total_changes,
                "changedCells": changed_cells,
                "menuStartDate": start_date,
                "menuEndDate": end_date,
            }
        except SQLAlchemyError as exc:
            db.rollback()
            raise _fail("menu_updation.add", exc) from exc
        finally:
            db.close()
