from __future__ import annotations

import copy
import logging
from datetime import date as date_cls, timedelta
from typing import Any

from .. import metrics
from ..catalog_repo import CatalogRepo
from ..errors import DomainError, DuplicateRangeError, PersistenceFailure, ValidationError
from ..grid.changes import create_change_summary, detect_menu_changes
from ..grid.detector import PrevWeekSnapshot, RepetitionDetector
from ..grid.grid import MenuGrid
from ..grid.projector import CompanyMenuProjector
from .repo import CombinedMenuRepo, CompanyMenuRepo, MenuUpdationRepo, RepetitionLogRepo
from .session import EditingSession

logger = logging.getLogger(__name__)

MAX_RANGE_DAYS = 31


def date_range(start: str | None, end: str | None) -> list[str]:
    """Inclusive ISO date list; raises ValidationError for bad input."""
    errors = []
    if not start:
        errors.append({"field": "start_date", "msg": "required"})
    if not end:
        errors.append({"field": "end_date", "msg": "required"})
    if errors:
        raise ValidationError(errors, detail="start and end dates are required")
    try:
        first = date_cls.fromisoformat(str(start))
        last = date_cls.fromisoformat(str(end))
    except ValueError:
        raise ValidationError([{"field": "date", "msg": "invalid_format"}], detail="dates must be YYYY-MM-DD") from None
    if first > last:
        raise ValidationError([{"field": "start_date", "msg": "after_end_date"}], detail="start date is after end date")
    days = (last - first).days + 1
    if days > MAX_RANGE_DAYS:
        raise ValidationError([{"field": "end_date", "msg": "range_too_long", "max_days": MAX_RANGE_DAYS}], detail="date range too long")
    return [(first + timedelta(days=i)).isoformat() for i in range(days)]


class CombinedMenuService:
    """Boundary workflows around an editing session: load, generate, save."""

    def __init__(
        self,
        catalog_repo: CatalogRepo | None = None,
        combined_repo: CombinedMenuRepo | None = None,
        company_repo: CompanyMenuRepo | None = None,
        log_repo: RepetitionLogRepo | None = None,
        updation_repo: MenuUpdationRepo | None = None,
    ) -> None:
        self.catalog_repo = catalog_repo or CatalogRepo()
        self.combined_repo = combined_repo or CombinedMenuRepo()
        self.company_repo = company_repo or CompanyMenuRepo()
        self.log_repo = log_repo or RepetitionLogRepo()
        self.updation_repo = updation_repo or MenuUpdationRepo()

    # ---- loading ----
    def _prev_week(self, dates: list[str]) -> PrevWeekSnapshot:
        try:
            return PrevWeekSnapshot.from_company_menus(self.company_repo.list_menu_data(), dates)
        except PersistenceFailure:
            logger.warning("Previous-week snapshot unavailable for %s..%s; continuing without it", dates[0], dates[-1])
            return PrevWeekSnapshot()

    def _new_session(
        self,
        dates: list[str],
        company_id: str | None,
        menu_data: dict[str, Any] | None,
        combined_menu_id: str | None = None,
    ) -> EditingSession:
        catalog = self.catalog_repo.load_service_catalog()
        structures = self.catalog_repo.load_structure_catalog()
        item_names = self.catalog_repo.load_item_names()
        detector = RepetitionDetector(self._prev_week(dates), catalog.repeat_plan_ids(), item_names)
        grid = MenuGrid.generate(dates, catalog, detector)
        if menu_data:
            merged = grid.merge_menu_data(menu_data)
            logger.debug("Merged %d stored cells into grid %s..%s", merged, dates[0], dates[-1])
        session = EditingSession(
            grid,
            structures,
            company_id=company_id,
            log_repo=self.log_repo,
            combined_menu_id=combined_menu_id,
            original_menu_data=copy.deepcopy(menu_data) if combined_menu_id else None,
        )
        try:
            entries = self.log_repo.get_by_date_range(dates[0], dates[-1], company_id)
        except PersistenceFailure:
            logger.warning("Repetition logs unavailable for %s..%s", dates[0], dates[-1])
            entries = []
        session.load_conflicts(entries)
        return session

    def generate_grid(self, start_date: str | None, end_date: str | None, company_id: str | None) -> EditingSession:
        dates = date_range(start_date, end_date)
        existing = self.combined_repo.check_duplicate(dates[0], dates[-1])
        if existing:
            raise DuplicateRangeError(existing, dates[0], dates[-1])
        draft = None
        try:
            draft = self.combined_repo.get_draft_by_date_range(dates[0], dates[-1], company_id)
        except PersistenceFailure:
            logger.warning("Draft lookup failed for %s..%s; starting from an empty grid", dates[0], dates[-1])
        session = self._new_session(dates, company_id, draft["menuData"] if draft else None)
        if draft:
            session.draft_id = draft["id"]
            logger.info("Restored draft %s into session %s", draft["id"], session.id)
        return session

    def open_combined_menu(self, menu_id: str, company_id: str | None) -> EditingSession:
        doc = self.combined_repo.get(menu_id)
        if doc is None:
            raise DomainError(404, "combined_menu_not_found", "combined menu not found", menu_id=menu_id)
        dates = date_range(doc["startDate"], doc["endDate"])
        return self._new_session(dates, company_id, doc["menuData"] or {}, combined_menu_id=menu_id)

    # ---- saving ----
    def save_draft(self, session: EditingSession) -> str:
        if session.combined_menu_id:
            raise ValidationError([{"field": "session", "msg": "already_saved"}], detail="saved menus cannot be stored as drafts")
        with session.lock:
            menu_data = session.grid.to_menu_data(prune_empty=True)
            if session.draft_id and self.combined_repo.update_menu_data(session.draft_id, menu_data):
                return session.draft_id
            session.draft_id = self.combined_repo.add(
                session.start_date, session.end_date, menu_data, status="draft", company_id=session.company_id
            )
            return session.draft_id

    def _generate_company_menus(self, session: EditingSession, menu_id: str, menu_data: dict[str, Any]) -> list[str]:
        docs = CompanyMenuProjector(session.structures).project(menu_data, session.grid.dates, menu_id)
        if not docs:
            logger.info("No company/building pairs qualified for combined menu %s", menu_id)
            return []
        ids = self.company_repo.bulk_create(docs)
        metrics.increment("menuplan.company_menus.generated", {"count": str(len(ids))})
        return ids

    def _pruned_or_fail(self, session: EditingSession) -> dict[str, Any]:
        menu_data = session.grid.to_menu_data(prune_empty=True)
        if not menu_data:
            raise ValidationError([{"field": "menu_data", "msg": "empty"}], detail="Please add menu items before saving")
        return menu_data

    def save_and_generate(self, session: EditingSession) -> dict[str, Any]:
        if session.combined_menu_id:
            return self.save_changes(session)
        with session.lock:
            menu_data = self._pruned_or_fail(session)
            menu_id = self.combined_repo.add(
                session.start_date, session.end_date, menu_data, status="active", company_id=session.company_id
            )
            session.combined_menu_id = menu_id
            session.original_menu_data = copy.deepcopy(menu_data)
            session.company_menus_pending = True
            company_menu_ids = self._generate_company_menus(session, menu_id, menu_data)
            session.company_menus_pending = False
        return {"combinedMenuId": menu_id, "companyMenuIds": company_menu_ids, "updation": None}

    def save_changes(self, session: EditingSession, created_by: str | None = None, notes: str | None = None) -> dict[str, Any]:
        """Persist edits to an opened menu and regenerate its company menus.

        Item-list changes also produce a numbered updation record. Edits that
        only touch overrides or descriptions are stored without one.
        """
        if not session.combined_menu_id:
            raise ValidationError([{"field": "session", "msg": "not_saved"}], detail="menu has not been saved yet")
        with session.lock:
            menu_data = self._pruned_or_fail(session)
            if menu_data == session.original_menu_data and not session.company_menus_pending:
                return {"combinedMenuId": session.combined_menu_id, "companyMenuIds": [], "updation": None}
            names = session.grid.detector.item_names if session.grid.detector else {}
            changes = detect_menu_changes(session.original_menu_data or {}, menu_data, names)
            self.combined_repo.update_menu_data(session.combined_menu_id, menu_data)
            updation = None
            if changes:
                summary = create_change_summary(changes)
                updation = self.updation_repo.add(
                    session.combined_menu_id,
                    [c.to_dict() for c in changes],
                    summary["totalChanges"],
                    session.start_date,
                    session.end_date,
                    created_by=created_by,
                    notes=notes,
                )
                updation["summary"] = summary
            session.original_menu_data = copy.deepcopy(menu_data)
            session.company_menus_pending = True
            company_menu_ids = self._generate_company_menus(session, session.combined_menu_id, menu_data)
            session.company_menus_pending = False
        return {"combinedMenuId": session.combined_menu_id, "companyMenuIds": company_menu_ids, "updation": updation}
