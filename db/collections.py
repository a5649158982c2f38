"""Collection accessors and document shape helpers. Use get_db()[name] for raw access."""
import time

from pymongo.collection import Collection
from pymongo.database import Database

from db.client import get_db


def _coll(db: Database, name: str) -> Collection:
    return db[name]


def profiles_collection() -> Collection:
    return _coll(get_db(), "profiles")


def notification_log_collection() -> Collection:
    return _coll(get_db(), "notification_log")


# --- Document helpers (for consistent keys) ---
PROFILE_SUMMARY_FIELDS = (
    "name",
    "email",
    "codeforces_handle",
    "rank",
    "current_rating",
    "max_rating",
    "problems_solved",
    "last_synced_at",
    "last_activity_at",
    "last_sync_error",
    "notifications",
)


def profile_doc(
    name: str,
    email: str,
    codeforces_handle: str,
    notifications_enabled: bool = True,
) -> dict:
    return {
        "name": name,
        "email": email,
        "codeforces_handle": codeforces_handle,
        "rank": "",
        "current_rating": 0,
        "max_rating": 0,
        "problems_solved": 0,
        "last_synced_at": None,
        "last_activity_at": None,
        "last_sync_error": None,
        "sync_warnings": [],
        "notifications": {"enabled": notifications_enabled, "sent_count": 0, "last_sent_at": None},
        "contest_history": [],
        "recent_submissions": [],
        "problem_solving_data": {},
        "created_at": int(time.time()),
    }


def contest_result_doc(change: dict) -> dict:
    """One entry of Codeforces user.rating, in store shape."""
    return {
        "contest_id": change.get("contestId"),
        "contest_name": change.get("contestName") or "",
        "rank": change.get("rank"),
        "old_rating": change.get("oldRating"),
        "new_rating": change.get("newRating"),
        "timestamp": change.get("ratingUpdateTimeSeconds"),
    }


def notification_log_doc(event_type: str, payload: dict | None = None, ref: str | None = None) -> dict:
    return {
        "event_type": event_type,
        "payload": payload or {},
        "ref": ref or "",
        "sent_at": int(time.time()),
    }
