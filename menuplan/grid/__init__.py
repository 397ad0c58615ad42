"""In-memory combined-menu core: grid, repetition detection, ledger, projection."""

from .assignments import CustomAssignmentResolver, StructureCatalog
from .catalog import ServiceCatalog
from .detector import PrevWeekSnapshot, RepetitionDetector
from .grid import MenuGrid
from .ledger import ConflictLedger
from .models import (
    DEFAULT,
    Cell,
    CellCoordinate,
    ConflictLogEntry,
    ConflictType,
    CopyBuffer,
    DefaultAssignment,
    MutationResult,
    OverrideAssignment,
    StructureKey,
)
from .projector import CompanyMenuProjector

__all__ = [
    "DEFAULT",
    "Cell",
    "CellCoordinate",
    "CompanyMenuProjector",
    "ConflictLedger",
    "ConflictLogEntry",
    "ConflictType",
    "CopyBuffer",
    "CustomAssignmentResolver",
    "DefaultAssignment",
    "MenuGrid",
    "MutationResult",
    "OverrideAssignment",
    "PrevWeekSnapshot",
    "RepetitionDetector",
    "ServiceCatalog",
    "StructureCatalog",
    "StructureKey",
]
