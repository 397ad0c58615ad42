from .service import CombinedMenuService, date_range
from .session import EditingSession, SessionRegistry

__all__ = ["CombinedMenuService", "EditingSession", "SessionRegistry", "date_range"]
