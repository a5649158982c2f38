from db.client import get_db
from db.collections import (
    notification_log_collection,
    profiles_collection,
)

__all__ = [
    "get_db",
    "profiles_collection",
    "notification_log_collection",
]
