"""Data access layer: profiles (one record per Codeforces handle) and the notification log."""
import time
from typing import Any

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from db.collections import (
    PROFILE_SUMMARY_FIELDS,
    notification_log_collection,
    notification_log_doc,
    profile_doc,
    profiles_collection,
)
from utils.errors import DuplicateProfile, ProfileNotFound

EDITABLE_FIELDS = ("name", "email", "codeforces_handle")


def _serialize_doc(doc: dict | None) -> dict | None:
    """Convert MongoDB ObjectId fields to strings so FastAPI can JSON-serialize them."""
    if doc is None:
        return None
    out = dict(doc)
    if "_id" in out:
        out["_id"] = str(out["_id"])
    return out


def _serialize_docs(docs: list[dict]) -> list[dict]:
    """Convert a list of MongoDB documents for JSON serialization."""
    return [_serialize_doc(d) for d in docs]


def _oid(profile_id: str | ObjectId) -> ObjectId | None:
    if isinstance(profile_id, ObjectId):
        return profile_id
    try:
        return ObjectId(profile_id)
    except (InvalidId, TypeError):
        return None


def _require_oid(profile_id: str | ObjectId) -> ObjectId:
    oid = _oid(profile_id)
    if oid is None:
        raise ProfileNotFound(profile_id)
    return oid


# --- Profiles ---
def create_profile(name: str, email: str, codeforces_handle: str, notifications_enabled: bool = True) -> dict:
    doc = profile_doc(name, email, codeforces_handle, notifications_enabled=notifications_enabled)
    try:
        r = profiles_collection().insert_one(doc)
    except DuplicateKeyError as e:
        raise DuplicateProfile(f"A profile with this handle or email already exists: {codeforces_handle}") from e
    doc["_id"] = r.inserted_id
    return _serialize_doc(doc)


def get_profile(profile_id: str) -> dict | None:
    oid = _oid(profile_id)
    if oid is None:
        return None
    return _serialize_doc(profiles_collection().find_one({"_id": oid}))


def get_profile_by_handle(handle: str) -> dict | None:
    return _serialize_doc(profiles_collection().find_one({"codeforces_handle": handle}))


def list_profiles() -> list[dict]:
    return _serialize_docs(list(profiles_collection().find({})))


def list_profile_summaries() -> list[dict]:
    """All profiles with summary fields only, highest rating first."""
    projection = {field: 1 for field in PROFILE_SUMMARY_FIELDS}
    cursor = profiles_collection().find({}, projection).sort("current_rating", -1)
    return _serialize_docs(list(cursor))


def update_profile(profile_id: str, **fields: Any) -> dict:
    update = {k: v for k, v in fields.items() if k in EDITABLE_FIELDS and v is not None}
    coll = profiles_collection()
    oid = _require_oid(profile_id)
    if not update:
        doc = coll.find_one({"_id": oid})
    else:
        try:
            doc = coll.find_one_and_update({"_id": oid}, {"$set": update}, return_document=ReturnDocument.AFTER)
        except DuplicateKeyError as e:
            raise DuplicateProfile("A profile with this handle or email already exists") from e
    if doc is None:
        raise ProfileNotFound(profile_id)
    return _serialize_doc(doc)


def delete_profile(profile_id: str) -> bool:
    oid = _oid(profile_id)
    if oid is None:
        return False
    return profiles_collection().delete_one({"_id": oid}).deleted_count > 0


def save_sync_result(profile_id: str, update: dict) -> dict:
    """Replace the synced fields of a profile in one write and return the updated document."""
    doc = profiles_collection().find_one_and_update(
        {"_id": _require_oid(profile_id)},
        {"$set": update},
        return_document=ReturnDocument.AFTER,
    )
    if doc is None:
        raise ProfileNotFound(profile_id)
    return _serialize_doc(doc)


def record_sync_error(profile_id: str, message: str) -> None:
    oid = _oid(profile_id)
    if oid is None:
        return
    profiles_collection().update_one(
        {"_id": oid},
        {"$set": {"last_sync_error": message, "last_sync_attempt_at": int(time.time())}},
    )


def record_notification_sent(profile_id: str, sent_at: int) -> dict | None:
    doc = profiles_collection().find_one_and_update(
        {"_id": _require_oid(profile_id)},
        {"$inc": {"notifications.sent_count": 1}, "$set": {"notifications.last_sent_at": sent_at}},
        return_document=ReturnDocument.AFTER,
    )
    return _serialize_doc(doc)


def toggle_notifications(profile_id: str) -> dict:
    coll = profiles_collection()
    oid = _require_oid(profile_id)
    doc = coll.find_one({"_id": oid})
    if doc is None:
        raise ProfileNotFound(profile_id)
    notif = dict(doc.get("notifications") or {})
    notif["enabled"] = not notif.get("enabled", False)
    notif.setdefault("sent_count", 0)
    notif.setdefault("last_sent_at", None)
    coll.update_one({"_id": oid}, {"$set": {"notifications": notif}})
    return notif


def get_contest_history(profile_id: str, days: int | None = None) -> list[dict]:
    doc = profiles_collection().find_one({"_id": _require_oid(profile_id)}, {"contest_history": 1})
    if doc is None:
        raise ProfileNotFound(profile_id)
    history = doc.get("contest_history") or []
    if days:
        cutoff = int(time.time()) - days * 86400
        history = [c for c in history if (c.get("timestamp") or 0) >= cutoff]
    return history


# --- Notification log ---
def log_notification_sent(event_type: str, payload: dict | None = None, ref: str | None = None) -> None:
    notification_log_collection().insert_one(notification_log_doc(event_type=event_type, payload=payload or {}, ref=ref or ""))

