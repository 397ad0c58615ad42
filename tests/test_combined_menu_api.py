"""HTTP workflow for combined-menu editing sessions."""

from __future__ import annotations

from conftest import PATH_B, WEEK, coord

H = {"X-Company-Id": "co-a"}
BASE = "/api/combined-menus/sessions"


def _cell(date, path=None):
    return coord(date, path).to_dict() if path else coord(date).to_dict()


def _open(client):
    r = client.post(BASE, json={"startDate": WEEK[0], "endDate": WEEK[-1]}, headers=H)
    assert r.status_code == 201, r.get_json()
    return r.get_json()


def test_create_session_returns_unpruned_grid(client):
    doc = _open(client)
    assert doc["companyId"] == "co-a"
    assert list(doc["menuData"]) == WEEK
    assert doc["conflicts"] == []
    assert client.get(f"{BASE}/{doc['id']}", headers=H).get_json()["dates"] == WEEK


def test_create_session_validation_problem(client):
    r = client.post(BASE, json={"startDate": WEEK[-1], "endDate": WEEK[0]}, headers=H)
    assert r.status_code == 422
    assert r.mimetype == "application/problem+json"
    body = r.get_json()
    assert body["type"].endswith("/validation_error")
    assert body["errors"][0]["msg"] == "after_end_date"


def test_add_duplicate_reports_conflict_on_both_cells(client):
    sid = _open(client)["id"]
    r = client.post(f"{BASE}/{sid}/items", json={"cell": _cell(WEEK[0]), "itemId": "itm-x"}, headers=H)
    assert r.get_json()["detected"] == []
    r = client.post(f"{BASE}/{sid}/items", json={**_cell(WEEK[2]), "itemId": "itm-x"}, headers=H)
    body = r.get_json()
    assert body["data"]["menuItemIds"] == ["itm-x"]
    assert body["detected"][0]["type"] == "in_week_duplicate"
    assert body["detected"][0]["originalDate"] == WEEK[0]

    filtered = client.get(f"{BASE}/{sid}/conflicts", query_string=_cell(WEEK[0]), headers=H).get_json()
    assert len(filtered["conflicts"]) == 1

    r = client.delete(f"{BASE}/{sid}/items", json={"cell": _cell(WEEK[0]), "itemId": "itm-x"}, headers=H)
    assert r.get_json()["removedConflicts"] == [body["detected"][0]["id"]]
    assert client.get(f"{BASE}/{sid}/conflicts", headers=H).get_json()["conflicts"] == []


def test_add_item_requires_item_and_full_cell(client):
    sid = _open(client)["id"]
    r = client.post(f"{BASE}/{sid}/items", json={"cell": _cell(WEEK[0])}, headers=H)
    assert r.status_code == 422
    r = client.post(f"{BASE}/{sid}/items", json={"date": WEEK[0], "itemId": "itm-x"}, headers=H)
    assert r.status_code == 422
    assert {e["field"] for e in r.get_json()["errors"]} == {"serviceId", "subServiceId", "mealPlanId", "subMealPlanId"}


def test_apply_cells_and_descriptions(client):
    sid = _open(client)["id"]
    cell = _cell(WEEK[1])
    r = client.put(f"{BASE}/{sid}/cells", json={"cell": cell, "items": ["itm-p", "itm-q"]}, headers=H)
    assert r.get_json()["data"]["menuItemIds"] == ["itm-p", "itm-q"]
    r = client.put(f"{BASE}/{sid}/cells", json={"cell": cell, "items": "itm-p"}, headers=H)
    assert r.status_code == 422

    r = client.put(f"{BASE}/{sid}/descriptions", json={"cell": cell, "itemId": "itm-p", "text": "no nuts"}, headers=H)
    assert r.get_json()["data"]["selectedDescriptions"] == {"itm-p": "no nuts"}
    r = client.put(f"{BASE}/{sid}/descriptions", json={"cell": cell, "itemId": "itm-z", "text": "x"}, headers=H)
    assert r.status_code == 422


def test_copy_paste_and_drag(client):
    sid = _open(client)["id"]
    client.put(f"{BASE}/{sid}/cells", json={"cell": _cell(WEEK[0]), "items": ["itm-x"]}, headers=H)

    r = client.post(f"{BASE}/{sid}/copy", json={"cell": _cell(WEEK[0])}, headers=H)
    assert r.get_json()["items"] == ["itm-x"]
    r = client.post(f"{BASE}/{sid}/paste", json={"cell": _cell(WEEK[0], PATH_B)}, headers=H)
    assert r.get_json()["data"]["menuItemIds"] == ["itm-x"]
    assert client.delete(f"{BASE}/{sid}/copy", headers=H).status_code == 204
    assert client.post(f"{BASE}/{sid}/paste", json={"cell": _cell(WEEK[1])}, headers=H).status_code == 422

    assert client.post(f"{BASE}/{sid}/drag", json={"cell": _cell(WEEK[0])}, headers=H).get_json() == {"items": ["itm-x"]}
    r = client.post(f"{BASE}/{sid}/drag/over", json={"date": WEEK[1]}, headers=H)
    assert r.get_json()["applied"] is True
    assert r.get_json()["detected"][0]["type"] == "in_week_duplicate"
    assert client.delete(f"{BASE}/{sid}/drag", headers=H).status_code == 204
    assert client.post(f"{BASE}/{sid}/drag/over", json={"date": WEEK[2]}, headers=H).get_json() == {"applied": False}

    occ = client.get(f"{BASE}/{sid}/items/itm-x/occurrences", headers=H).get_json()["occurrences"]
    assert [o["date"] for o in occ] == [WEEK[0], WEEK[0], WEEK[1]]


def test_assignments_roundtrip(client):
    sid = _open(client)["id"]
    cell = _cell(WEEK[0])
    client.put(f"{BASE}/{sid}/cells", json={"cell": cell, "items": ["itm-p", "itm-q"]}, headers=H)
    r = client.put(
        f"{BASE}/{sid}/assignments",
        json={"cell": cell, "assignments": {"itm-p": [{"companyId": "co-a", "buildingId": "b-a1"}]}, "focusItemId": "itm-p"},
        headers=H,
    )
    assert r.status_code == 200
    view = client.get(f"{BASE}/{sid}/assignments", query_string=cell, headers=H).get_json()
    assert view["items"]["itm-p"]["kind"] == "override"
    assert view["items"]["itm-q"]["kind"] == "default"
    assert len(view["default"]) == 2

    r = client.put(f"{BASE}/{sid}/assignments", json={"cell": cell, "assignments": {"itm-p": [{"companyId": "co-a"}]}}, headers=H)
    assert r.status_code == 422


def test_dismiss_conflicts_by_id_and_all(client):
    sid = _open(client)["id"]
    for date in WEEK[:3]:
        client.post(f"{BASE}/{sid}/items", json={"cell": _cell(date), "itemId": "itm-x"}, headers=H)
    conflicts = client.get(f"{BASE}/{sid}/conflicts", headers=H).get_json()["conflicts"]
    assert len(conflicts) == 2
    r = client.delete(f"{BASE}/{sid}/conflicts", json={"ids": [conflicts[0]["id"]]}, headers=H)
    assert r.get_json()["removed"] == [conflicts[0]["id"]]
    r = client.delete(f"{BASE}/{sid}/conflicts", headers=H)
    assert r.get_json()["removed"] == [conflicts[1]["id"]]


def test_draft_save_and_duplicate_gate(client):
    sid = _open(client)["id"]
    client.post(f"{BASE}/{sid}/items", json={"cell": _cell(WEEK[0]), "itemId": "itm-x"}, headers=H)
    draft_id = client.post(f"{BASE}/{sid}/draft", headers=H).get_json()["draftId"]
    assert draft_id

    restored = _open(client)
    assert restored["menuData"][WEEK[0]]["svc-lunch"]["sub-main"]["mp-std"]["smp-a"]["menuItemIds"] == ["itm-x"]

    saved = client.post(f"{BASE}/{restored['id']}/save", headers=H).get_json()
    assert len(saved["companyMenuIds"]) == 2
    assert client.get(f"{BASE}/{restored['id']}", headers=H).status_code == 404

    r = client.post(BASE, json={"startDate": WEEK[0], "endDate": WEEK[-1]}, headers=H)
    assert r.status_code == 409
    assert r.get_json()["existing_id"] == saved["combinedMenuId"]

    reopened = client.post(f"{BASE}/open/{saved['combinedMenuId']}", headers=H)
    assert reopened.status_code == 201
    assert reopened.get_json()["combinedMenuId"] == saved["combinedMenuId"]


def test_unknown_session_is_problem_404(client):
    r = client.get(f"{BASE}/nope", headers=H)
    assert r.status_code == 404
    body = r.get_json()
    assert body["code"] == "session_not_found"
    assert body["session_id"] == "nope"
    assert r.headers["X-Request-Id"] == body["request_id"]
