from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from .assignments import StructureCatalog, StructurePair, day_key
from .grid import MenuGrid, iter_menu_data, nest_cells
from .models import Cell, CellCoordinate

logger = logging.getLogger(__name__)


def _cells_of(source: MenuGrid | Mapping[str, Any]) -> dict[CellCoordinate, Cell]:
    if isinstance(source, MenuGrid):
        return dict(source.items())
    return {coord: Cell.from_dict(leaf) for coord, leaf in iter_menu_data(source)}


class CompanyMenuProjector:
    """Fans a combined menu out into one menu per company/building pair."""

    def __init__(self, structures: StructureCatalog) -> None:
        self.structures = structures

    def project_pair(
        self,
        pair: StructurePair,
        cells: Mapping[CellCoordinate, Cell],
        dates: Iterable[str],
    ) -> dict[str, Any]:
        kept: list[tuple[CellCoordinate, dict[str, Any]]] = []
        for date in dates:
            for path in self.structures.permitted_paths(pair, day_key(date)):
                coord = CellCoordinate(date, *path)
                cell = cells.get(coord)
                if cell is None or cell.is_empty:
                    continue
                item_ids = []
                for item_id in cell.menu_item_ids:
                    override = cell.custom_assignments.get(item_id)
                    # no override: the path is already structurally permitted
                    if override is None or override.allows(pair.key):
                        item_ids.append(item_id)
                if not item_ids:
                    continue
                leaf: dict[str, Any] = {"menuItemIds": item_ids}
                descriptions = {i: cell.selected_descriptions[i] for i in item_ids if i in cell.selected_descriptions}
                if descriptions:
                    leaf["selectedDescriptions"] = descriptions
                kept.append((coord, leaf))
        return nest_cells(kept)

    def project(
        self,
        source: MenuGrid | Mapping[str, Any],
        dates: Iterable[str],
        combined_menu_id: str | None = None,
    ) -> list[dict[str, Any]]:
        dates = list(dates)
        if not dates:
            return []
        cells = _cells_of(source)
        out: list[dict[str, Any]] = []
        for company, building, pair in self.structures.iter_pairs():
            if pair is None:
                logger.debug(
                    "Skipping company menu for company=%s building=%s: missing structure assignment",
                    company.id,
                    building.id,
                )
                continue
            out.append(
                {
                    "companyId": company.id,
                    "buildingId": building.id,
                    "companyName": company.name,
                    "buildingName": building.name,
                    "startDate": dates[0],
                    "endDate": dates[-1],
                    "combinedMenuId": combined_menu_id,
                    "status": "active",
                    "menuData": self.project_pair(pair, cells, dates),
                }
            )
        return out
