"""Cell-level diff between two ``menuData`` documents.

Used when an already saved combined menu is edited and saved again; the
result is stored as a numbered updation record.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

UNKNOWN_ITEM = "Unknown Item"

Action = Literal["added", "removed", "replaced"]


@dataclass(frozen=True)
class ItemChange:
    item_id: str
    item_name: str
    action: Action
    replaced_with: str | None = None
    replaced_with_name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"itemId": self.item_id, "itemName": self.item_name, "action": self.action}
        if self.replaced_with is not None:
            out["replacedWith"] = self.replaced_with
            out["replacedWithName"] = self.replaced_with_name
        return out


@dataclass(frozen=True)
class CellChange:
    date: str
    service_id: str
    sub_service_id: str
    meal_plan_id: str
    sub_meal_plan_id: str
    changes: tuple[ItemChange, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date,
            "serviceId": self.service_id,
            "subServiceId": self.sub_service_id,
            "mealPlanId": self.meal_plan_id,
            "subMealPlanId": self.sub_meal_plan_id,
            "changes": [c.to_dict() for c in self.changes],
        }


def _union_keys(a: Mapping[str, Any] | None, b: Mapping[str, Any] | None) -> list[str]:
    keys = list(a or {})
    keys.extend(k for k in (b or {}) if k not in keys)
    return keys


def _child(node: Mapping[str, Any] | None, key: str) -> Mapping[str, Any]:
    value = (node or {}).get(key)
    return value if isinstance(value, Mapping) else {}


def detect_item_changes(original: list[str], updated: list[str], item_names: Mapping[str, str]) -> list[ItemChange]:
    removed = [i for i in dict.fromkeys(original) if i not in updated]
    added = [i for i in dict.fromkeys(updated) if i not in original]
    if len(removed) == 1 and len(added) == 1:
        return [
            ItemChange(
                removed[0],
                item_names.get(removed[0], UNKNOWN_ITEM),
                "replaced",
                replaced_with=added[0],
                replaced_with_name=item_names.get(added[0], UNKNOWN_ITEM),
            )
        ]
    changes = [ItemChange(i, item_names.get(i, UNKNOWN_ITEM), "removed") for i in removed]
    changes.extend(ItemChange(i, item_names.get(i, UNKNOWN_ITEM), "added") for i in added)
    return changes


def detect_menu_changes(
    original: Mapping[str, Any] | None,
    updated: Mapping[str, Any] | None,
    item_names: Mapping[str, str] | None = None,
) -> list[CellChange]:
    names = item_names or {}
    out: list[CellChange] = []
    for date in _union_keys(original, updated):
        o_date, u_date = _child(original, date), _child(updated, date)
        for service_id in _union_keys(o_date, u_date):
            o_svc, u_svc = _child(o_date, service_id), _child(u_date, service_id)
            for sub_service_id in _union_keys(o_svc, u_svc):
                o_sub, u_sub = _child(o_svc, sub_service_id), _child(u_svc, sub_service_id)
                for meal_plan_id in _union_keys(o_sub, u_sub):
                    o_mp, u_mp = _child(o_sub, meal_plan_id), _child(u_sub, meal_plan_id)
                    for sub_meal_plan_id in _union_keys(o_mp, u_mp):
                        before = list(_child(o_mp, sub_meal_plan_id).get("menuItemIds") or [])
                        after = list(_child(u_mp, sub_meal_plan_id).get("menuItemIds") or [])
                        if before == after:
                            continue
                        # reordering alone yields no item change
                        changes = detect_item_changes(before, after, names)
                        if changes:
                            out.append(
                                CellChange(date, service_id, sub_service_id, meal_plan_id, sub_meal_plan_id, tuple(changes))
                            )
    return out


def create_change_summary(changes: list[CellChange]) -> dict[str, int]:
    counts = {"added": 0, "removed": 0, "replaced": 0}
    for cell in changes:
        for change in cell.changes:
            counts[change.action] += 1
    return {
        "totalChanges": sum(len(c.changes) for c in changes),
        "addedCount": counts["added"],
        "removedCount": counts["removed"],
        "replacedCount": counts["replaced"],
        "cellsChanged": len(changes),
    }
