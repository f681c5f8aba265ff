from .cadet import Cadet
from .study_session import StudySession
from .override import LeaderboardOverride
from .identity import Identity
from .admin import Admin, AdminRole
from .logs import AdminActionLog

__all__ = [
    "Cadet",
    "StudySession",
    "LeaderboardOverride",
    "Identity",
    "Admin",
    "AdminRole",
    "AdminActionLog",
]
