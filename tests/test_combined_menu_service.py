"""CombinedMenuService workflows against the SQLite test database."""

from __future__ import annotations

import pytest

from conftest import PATH_B, PREV_WEEK, WEEK, coord
from menuplan.combined_menu.repo import CompanyMenuRepo, MenuUpdationRepo, RepetitionLogRepo
from menuplan.combined_menu.service import CombinedMenuService, date_range
from menuplan.errors import DomainError, DuplicateRangeError, PersistenceFailure, ValidationError
from menuplan.grid.models import ConflictType, StructureKey


@pytest.fixture
def service(clean_menus):
    return CombinedMenuService()


def test_date_range_inclusive():
    assert date_range(WEEK[0], WEEK[-1]) == WEEK
    assert date_range("2024-01-08", "2024-01-08") == ["2024-01-08"]


@pytest.mark.parametrize(
    "start,end",
    [(None, "2024-01-14"), ("2024-01-08", ""), ("08/01/2024", "2024-01-14"), ("2024-01-14", "2024-01-08")],
)
def test_date_range_rejects_bad_input(start, end):
    with pytest.raises(ValidationError):
        date_range(start, end)


def test_date_range_has_upper_bound():
    with pytest.raises(ValidationError):
        date_range("2024-01-01", "2024-02-01")  # 32 days


def test_generate_grid_builds_catalog_cells(service):
    sess = service.generate_grid(WEEK[0], WEEK[-1], "co-a")
    assert sess.grid.dates == WEEK
    assert len(sess.grid) == 7 * 4
    assert sess.draft_id is None
    assert sess.company_id == "co-a"


def test_draft_is_restored_and_updated_in_place(service):
    sess = service.generate_grid(WEEK[0], WEEK[-1], "co-a")
    sess.add_item(coord(WEEK[0]), "itm-x")
    draft_id = service.save_draft(sess)

    restored = service.generate_grid(WEEK[0], WEEK[-1], "co-a")
    assert restored.draft_id == draft_id
    assert restored.find_occurrences("itm-x") == [coord(WEEK[0])]

    restored.add_item(coord(WEEK[1], PATH_B), "itm-y")
    assert service.save_draft(restored) == draft_id
    stored = service.combined_repo.get(draft_id)
    assert stored["status"] == "draft"
    assert WEEK[1] in stored["menuData"]


def test_draft_is_scoped_to_company(service):
    sess = service.generate_grid(WEEK[0], WEEK[-1], "co-a")
    sess.add_item(coord(WEEK[0]), "itm-x")
    service.save_draft(sess)
    other = service.generate_grid(WEEK[0], WEEK[-1], "co-b")
    assert other.draft_id is None
    assert other.grid.is_empty


def test_save_empty_grid_rejected(service):
    sess = service.generate_grid(WEEK[0], WEEK[-1], "co-a")
    with pytest.raises(ValidationError) as exc:
        service.save_and_generate(sess)
    assert exc.value.detail == "Please add menu items before saving"


def test_save_and_generate_writes_company_menus(service):
    sess = service.generate_grid(WEEK[0], WEEK[-1], "co-a")
    sess.apply_items_to_cell(coord(WEEK[0]), ["itm-p", "itm-q"])
    result = service.save_and_generate(sess)
    assert result["updation"] is None
    assert len(result["companyMenuIds"]) == 2

    docs = CompanyMenuRepo().list_for_combined_menu(result["combinedMenuId"])
    assert sorted(d["companyId"] for d in docs) == ["co-a", "co-b"]
    assert all(d["startDate"] == WEEK[0] and d["endDate"] == WEEK[-1] for d in docs)


def test_duplicate_range_gate(service):
    sess = service.generate_grid(WEEK[0], WEEK[-1], "co-a")
    sess.add_item(coord(WEEK[0]), "itm-x")
    menu_id = service.save_and_generate(sess)["combinedMenuId"]
    with pytest.raises(DuplicateRangeError) as exc:
        service.generate_grid(WEEK[0], WEEK[-1], "co-b")
    assert exc.value.existing_id == menu_id
    assert exc.value.status == 409


def test_prev_week_snapshot_from_saved_company_menus(service):
    previous = service.generate_grid(PREV_WEEK[0], PREV_WEEK[-1], "co-a")
    previous.add_item(coord(PREV_WEEK[0]), "itm-y")
    service.save_and_generate(previous)

    sess = service.generate_grid(WEEK[0], WEEK[-1], "co-a")
    prev = sess.to_document()["prevWeek"]
    assert prev[WEEK[0]]["svc-lunch"]["sub-main"]["mp-std"]["smp-a"] == ["itm-y"]
    entry = sess.add_item(coord(WEEK[0]), "itm-y").conflicts[0]
    assert entry.type is ConflictType.PREV_WEEK_REPEAT
    assert entry.prev_date == PREV_WEEK[0]
    assert entry.item_name == "Soup"


def test_prev_week_failure_falls_back_to_empty_snapshot(clean_menus):
    class FailingCompanyRepo(CompanyMenuRepo):
        def list_menu_data(self):
            raise PersistenceFailure("company_menu.list_menu_data", "offline")

    service = CombinedMenuService(company_repo=FailingCompanyRepo())
    sess = service.generate_grid(WEEK[0], WEEK[-1], "co-a")
    assert not sess.grid.detector.prev_week


def test_logs_are_reloaded_and_stale_entries_pruned(service):
    sess = service.generate_grid(WEEK[0], WEEK[-1], "co-a")
    sess.add_item(coord(WEEK[0]), "itm-x")
    sess.add_item(coord(WEEK[1]), "itm-x")
    service.save_draft(sess)
    assert len(RepetitionLogRepo().get_by_date_range(WEEK[0], WEEK[-1], "co-a")) == 1

    # conflict survives a reload while the item is still placed
    again = service.generate_grid(WEEK[0], WEEK[-1], "co-a")
    assert len(again.conflicts()) == 1

    # remove it locally without mirroring, then reload from the draft
    again.grid.remove_item(coord(WEEK[1]), "itm-x")
    service.save_draft(again)
    third = service.generate_grid(WEEK[0], WEEK[-1], "co-a")
    assert third.conflicts() == []
    assert RepetitionLogRepo().get_by_date_range(WEEK[0], WEEK[-1], "co-a") == []


def test_open_unknown_menu(service):
    with pytest.raises(DomainError) as exc:
        service.open_combined_menu("missing", "co-a")
    assert exc.value.status == 404


def test_save_changes_writes_numbered_updations(service):
    sess = service.generate_grid(WEEK[0], WEEK[-1], "co-a")
    sess.add_item(coord(WEEK[0]), "itm-x")
    menu_id = service.save_and_generate(sess)["combinedMenuId"]

    opened = service.open_combined_menu(menu_id, "co-a")
    assert opened.combined_menu_id == menu_id
    with pytest.raises(ValidationError):
        service.save_draft(opened)
    unchanged = service.save_and_generate(opened)
    assert unchanged["updation"] is None

    opened.apply_items_to_cell(coord(WEEK[0]), ["itm-y"])
    first = service.save_and_generate(opened)
    assert first["updation"]["updationNumber"] == 1
    assert first["updation"]["summary"]["replacedCount"] == 1
    assert first["updation"]["changedCells"][0]["changes"][0]["replacedWithName"] == "Soup"

    opened.add_item(coord(WEEK[2]), "itm-p")
    second = service.save_changes(opened, created_by="chef", notes="extra salad")
    assert second["updation"]["updationNumber"] == 2
    assert MenuUpdationRepo().count_for_menu(menu_id) == 2
    assert service.combined_repo.get(menu_id)["menuData"][WEEK[2]]
    assert len(CompanyMenuRepo().list_for_combined_menu(menu_id)) == 6


def test_save_changes_requires_saved_menu(service):
    sess = service.generate_grid(WEEK[0], WEEK[-1], "co-a")
    sess.add_item(coord(WEEK[0]), "itm-x")
    with pytest.raises(ValidationError):
        service.save_changes(sess)


def test_override_only_edit_is_saved_and_projected(service):
    sess = service.generate_grid(WEEK[0], WEEK[-1], "co-a")
    sess.apply_items_to_cell(coord(WEEK[0]), ["itm-p", "itm-q"])
    menu_id = service.save_and_generate(sess)["combinedMenuId"]

    opened = service.open_combined_menu(menu_id, "co-a")
    opened.set_custom_assignments(coord(WEEK[0]), {"itm-p": [StructureKey("co-a", "b-a1")]}, focus_item_id="itm-p")
    result = service.save_and_generate(opened)
    assert result["updation"] is None
    assert len(result["companyMenuIds"]) == 2
    assert MenuUpdationRepo().count_for_menu(menu_id) == 0

    leaf = service.combined_repo.get(menu_id)["menuData"][WEEK[0]]["svc-lunch"]["sub-main"]["mp-std"]["smp-a"]
    assert leaf["customAssignments"] == {"itm-p": [{"companyId": "co-a", "buildingId": "b-a1"}]}

    docs = CompanyMenuRepo().list_for_combined_menu(menu_id)
    latest = {d["companyId"]: d for d in docs if d["id"] in result["companyMenuIds"]}
    items_b = latest["co-b"]["menuData"][WEEK[0]]["svc-lunch"]["sub-main"]["mp-std"]["smp-a"]["menuItemIds"]
    assert items_b == ["itm-q"]
    items_a = latest["co-a"]["menuData"][WEEK[0]]["svc-lunch"]["sub-main"]["mp-std"]["smp-a"]["menuItemIds"]
    assert items_a == ["itm-p", "itm-q"]

    # nothing left to store
    assert service.save_and_generate(opened)["companyMenuIds"] == []


def test_company_menus_regenerated_after_failed_save(clean_menus):
    class FlakyCompanyRepo(CompanyMenuRepo):
        calls = 0

        def bulk_create(self, docs):
            self.calls += 1
            if self.calls == 1:
                raise PersistenceFailure("company_menu.bulk_create", "offline")
            return super().bulk_create(docs)

    service = CombinedMenuService(company_repo=FlakyCompanyRepo())
    sess = service.generate_grid(WEEK[0], WEEK[-1], "co-a")
    sess.add_item(coord(WEEK[0]), "itm-x")
    with pytest.raises(PersistenceFailure):
        service.save_and_generate(sess)
    assert sess.combined_menu_id
    assert sess.company_menus_pending

    retry = service.save_and_generate(sess)
    assert retry["combinedMenuId"] == sess.combined_menu_id
    assert len(retry["companyMenuIds"]) == 2
    assert retry["updation"] is None
    assert not sess.company_menus_pending
    assert len(CompanyMenuRepo().list_for_combined_menu(sess.combined_menu_id)) == 2
    assert MenuUpdationRepo().count_for_menu(sess.combined_menu_id) == 0
