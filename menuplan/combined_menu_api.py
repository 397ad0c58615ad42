from __future__ import annotations

import logging
from typing import Any

from flask import Blueprint, jsonify, request, session
from werkzeug.wrappers.response import Response

from .combined_menu.service import CombinedMenuService
from .combined_menu.session import EditingSession, SessionRegistry
from .errors import ValidationError
from .grid.models import CellCoordinate, MutationResult, StructureKey

logger = logging.getLogger(__name__)

bp = Blueprint("combined_menu_api", __name__, url_prefix="/api/combined-menus")
_service = CombinedMenuService()
_registry = SessionRegistry()

_COORD_FIELDS = ("date", "serviceId", "subServiceId", "mealPlanId", "subMealPlanId")


def _company_id() -> str | None:
    return session.get("company_id") or None


def _json() -> dict[str, Any]:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError([{"field": "body", "msg": "must_be_object"}], detail="request body must be a JSON object")
    return data


def _coord(source: Any) -> CellCoordinate:
    if isinstance(source, dict) and isinstance(source.get("cell"), dict):
        source = source["cell"]
    missing = [f for f in _COORD_FIELDS if not (source or {}).get(f)]
    if missing:
        raise ValidationError([{"field": f, "msg": "required"} for f in missing], detail="cell coordinate incomplete")
    return CellCoordinate.from_dict(source)


def _item_id(data: dict[str, Any]) -> str:
    item_id = data.get("itemId")
    if not item_id or not isinstance(item_id, str):
        raise ValidationError([{"field": "itemId", "msg": "required"}], detail="itemId is required")
    return item_id


def _cell_payload(sess: EditingSession, coord: CellCoordinate) -> dict[str, Any]:
    cell = sess.grid.cell(coord)
    return {
        "cell": coord.to_dict(),
        "data": cell.to_dict() if cell is not None else {"menuItemIds": []},
        "conflicts": [e.to_document() for e in sess.conflicts_for_cell(coord)],
    }


def _mutation_payload(sess: EditingSession, coord: CellCoordinate, result: MutationResult | None) -> dict[str, Any]:
    payload = _cell_payload(sess, coord)
    payload["detected"] = [e.to_document() for e in result.conflicts] if result is not None else []
    return payload


@bp.post("/sessions")
def create_session() -> tuple[Response, int]:
    data = _json()
    sess = _service.generate_grid(data.get("startDate"), data.get("endDate"), _company_id())
    _registry.put(sess)
    logger.info("Opened editing session %s for %s..%s", sess.id, sess.start_date, sess.end_date)
    return jsonify(sess.to_document()), 201


@bp.post("/sessions/open/<menu_id>")
def open_session(menu_id: str) -> tuple[Response, int]:
    sess = _registry.put(_service.open_combined_menu(menu_id, _company_id()))
    return jsonify(sess.to_document()), 201


@bp.get("/sessions/<sid>")
def get_session_doc(sid: str) -> Response:
    return jsonify(_registry.get(sid).to_document(prune_empty=False))


@bp.post("/sessions/<sid>/items")
def add_item(sid: str) -> Response:
    sess = _registry.get(sid)
    data = _json()
    coord = _coord(data)
    result = sess.add_item(coord, _item_id(data))
    return jsonify(_mutation_payload(sess, coord, result))


@bp.delete("/sessions/<sid>/items")
def remove_item(sid: str) -> Response:
    sess = _registry.get(sid)
    data = _json()
    coord = _coord(data)
    removed = sess.remove_item(coord, _item_id(data))
    payload = _cell_payload(sess, coord)
    payload["removedConflicts"] = [e.id for e in removed]
    return jsonify(payload)


@bp.put("/sessions/<sid>/cells")
def apply_items(sid: str) -> Response:
    sess = _registry.get(sid)
    data = _json()
    coord = _coord(data)
    items = data.get("items")
    if not isinstance(items, list) or not all(isinstance(i, str) for i in items):
        raise ValidationError([{"field": "items", "msg": "must_be_string_list"}], detail="items must be a list of ids")
    return jsonify(_mutation_payload(sess, coord, sess.apply_items_to_cell(coord, items)))


@bp.put("/sessions/<sid>/descriptions")
def set_description(sid: str) -> Response:
    sess = _registry.get(sid)
    data = _json()
    coord = _coord(data)
    sess.set_selected_description(coord, _item_id(data), data.get("text"))
    return jsonify(_cell_payload(sess, coord))


@bp.post("/sessions/<sid>/copy")
def copy_cell(sid: str) -> Response:
    sess = _registry.get(sid)
    data = _json()
    buffer = sess.copy_from_cell(_coord(data), data.get("meta"))
    return jsonify({"items": list(buffer.items), "meta": buffer.meta})


@bp.post("/sessions/<sid>/paste")
def paste_cell(sid: str) -> Response:
    sess = _registry.get(sid)
    coord = _coord(_json())
    return jsonify(_mutation_payload(sess, coord, sess.paste_to_cell(coord)))


@bp.delete("/sessions/<sid>/copy")
def clear_copy(sid: str) -> tuple[str, int]:
    _registry.get(sid).clear_copy_buffer()
    return "", 204


@bp.post("/sessions/<sid>/drag")
def start_drag(sid: str) -> Response:
    items = _registry.get(sid).start_drag(_coord(_json()))
    return jsonify({"items": list(items)})


@bp.post("/sessions/<sid>/drag/over")
def drag_over(sid: str) -> Response:
    sess = _registry.get(sid)
    date = _json().get("date")
    if not date:
        raise ValidationError([{"field": "date", "msg": "required"}], detail="date is required")
    result = sess.drag_over(str(date))
    if result is None:
        return jsonify({"applied": False})
    return jsonify({"applied": True, "detected": [e.to_document() for e in result.conflicts]})


@bp.delete("/sessions/<sid>/drag")
def end_drag(sid: str) -> tuple[str, int]:
    _registry.get(sid).end_drag()
    return "", 204


@bp.get("/sessions/<sid>/assignments")
def get_assignments(sid: str) -> Response:
    sess = _registry.get(sid)
    return jsonify(sess.assignment_view(_coord(request.args.to_dict())))


@bp.put("/sessions/<sid>/assignments")
def put_assignments(sid: str) -> Response:
    sess = _registry.get(sid)
    data = _json()
    coord = _coord(data)
    raw = data.get("assignments")
    if not isinstance(raw, dict):
        raise ValidationError([{"field": "assignments", "msg": "must_be_object"}], detail="assignments must map item ids to lists")
    try:
        assignments = {str(item_id): [StructureKey.from_dict(e) for e in entries] for item_id, entries in raw.items()}
    except (KeyError, TypeError, AttributeError):
        raise ValidationError(
            [{"field": "assignments", "msg": "invalid_entry"}], detail="each entry needs companyId and buildingId"
        ) from None
    return jsonify(sess.set_custom_assignments(coord, assignments, focus_item_id=data.get("focusItemId")))


@bp.get("/sessions/<sid>/conflicts")
def list_conflicts(sid: str) -> Response:
    sess = _registry.get(sid)
    if request.args.get("date"):
        entries = sess.conflicts_for_cell(_coord(request.args.to_dict()))
    else:
        entries = sess.conflicts()
    return jsonify({"conflicts": [e.to_document() for e in entries]})


@bp.delete("/sessions/<sid>/conflicts")
def dismiss_conflicts(sid: str) -> Response:
    sess = _registry.get(sid)
    ids = _json().get("ids")
    if ids is not None and not isinstance(ids, list):
        raise ValidationError([{"field": "ids", "msg": "must_be_list"}], detail="ids must be a list")
    removed = sess.clear_conflicts() if ids is None else sess.dismiss_conflicts([str(i) for i in ids])
    return jsonify({"removed": [e.id for e in removed]})


@bp.get("/sessions/<sid>/items/<item_id>/occurrences")
def occurrences(sid: str, item_id: str) -> Response:
    coords = _registry.get(sid).find_occurrences(item_id)
    return jsonify({"itemId": item_id, "occurrences": [c.to_dict() for c in coords]})


@bp.post("/sessions/<sid>/draft")
def save_draft(sid: str) -> Response:
    return jsonify({"draftId": _service.save_draft(_registry.get(sid))})


@bp.post("/sessions/<sid>/save")
def save(sid: str) -> Response:
    sess = _registry.get(sid)
    result = _service.save_and_generate(sess)
    _registry.close(sid)
    logger.info("Saved combined menu %s from session %s", result["combinedMenuId"], sid)
    return jsonify(result)
