from scheduled_import.db.base import Base
from scheduled_import.models.import_schedule import ImportSchedule

__all__ = [
    "Base",
    "ImportSchedule",
]
