import copy
import itertools
import os

import pytest

os.environ.setdefault("CF_MIN_INTERVAL", "0")
os.environ.setdefault("DISABLE_SCHEDULER", "true")
os.environ.setdefault("MONGODB_URI", "mongodb://localhost:27017")
os.environ["SMTP_HOST"] = ""

from db import dal  # noqa: E402
from utils.errors import DuplicateProfile, ProfileNotFound  # noqa: E402


def make_submission(contest_id, index, verdict="OK", rating=None, tags=None, ts=1_700_000_000, name=None):
    problem = {"contestId": contest_id, "index": index, "name": name or f"Problem {contest_id}{index}", "tags": tags or []}
    if rating is not None:
        problem["rating"] = rating
    return {"id": ts, "problem": problem, "verdict": verdict, "creationTimeSeconds": ts}


def make_entry(contest_id, index, rating, tags=None, name=None):
    return {"contest_id": contest_id, "index": index, "name": name or f"{contest_id}{index}", "rating": rating, "tags": tags or []}


class FakeResponse:
    def __init__(self, payload=None, status_code=200, raise_on_json=False):
        self._payload = payload
        self.status_code = status_code
        self._raise_on_json = raise_on_json

    def json(self):
        if self._raise_on_json:
            raise ValueError("not json")
        return self._payload


class FakeStore:
    """In-memory stand-in for the MongoDB data access layer."""

    def __init__(self):
        self.profiles: dict[str, dict] = {}
        self.notification_log: list[dict] = []
        self._ids = itertools.count(1)

    def add(self, handle, **fields):
        doc = {
            "_id": f"p{next(self._ids)}",
            "name": handle.title(),
            "email": f"{handle}@example.com",
            "codeforces_handle": handle,
            "current_rating": 0,
            "max_rating": 0,
            "problems_solved": 0,
            "last_activity_at": None,
            "last_sync_error": None,
            "notifications": {"enabled": True, "sent_count": 0, "last_sent_at": None},
            "contest_history": [],
            "recent_submissions": [],
            "problem_solving_data": {},
        }
        doc.update(fields)
        self.profiles[doc["_id"]] = doc
        return copy.deepcopy(doc)

    # dal API
    def create_profile(self, name, email, codeforces_handle, notifications_enabled=True):
        for p in self.profiles.values():
            if p["codeforces_handle"] == codeforces_handle or p["email"] == email:
                raise DuplicateProfile(codeforces_handle)
        return self.add(codeforces_handle, name=name, email=email, notifications={"enabled": notifications_enabled, "sent_count": 0, "last_sent_at": None})

    def get_profile(self, profile_id):
        doc = self.profiles.get(profile_id)
        return copy.deepcopy(doc) if doc else None

    def get_profile_by_handle(self, handle):
        for p in self.profiles.values():
            if p["codeforces_handle"] == handle:
                return copy.deepcopy(p)
        return None

    def list_profiles(self):
        return [copy.deepcopy(p) for p in self.profiles.values()]

    def list_profile_summaries(self):
        keys = ("_id", "name", "codeforces_handle", "current_rating", "max_rating", "problems_solved", "last_sync_error")
        rows = [{k: p.get(k) for k in keys} for p in self.profiles.values()]
        return sorted(rows, key=lambda r: r["current_rating"] or 0, reverse=True)

    def update_profile(self, profile_id, **fields):
        doc = self.profiles.get(profile_id)
        if doc is None:
            raise ProfileNotFound(profile_id)
        doc.update({k: v for k, v in fields.items() if v is not None})
        return copy.deepcopy(doc)

    def delete_profile(self, profile_id):
        return self.profiles.pop(profile_id, None) is not None

    def save_sync_result(self, profile_id, update):
        doc = self.profiles.get(profile_id)
        if doc is None:
            raise ProfileNotFound(profile_id)
        doc.update(copy.deepcopy(update))
        return copy.deepcopy(doc)

    def record_sync_error(self, profile_id, message):
        if profile_id in self.profiles:
            self.profiles[profile_id]["last_sync_error"] = message

    def record_notification_sent(self, profile_id, sent_at):
        notif = self.profiles[profile_id]["notifications"]
        notif["sent_count"] += 1
        notif["last_sent_at"] = sent_at
        return copy.deepcopy(self.profiles[profile_id])

    def toggle_notifications(self, profile_id):
        doc = self.profiles.get(profile_id)
        if doc is None:
            raise ProfileNotFound(profile_id)
        doc["notifications"]["enabled"] = not doc["notifications"]["enabled"]
        return copy.deepcopy(doc["notifications"])

    def get_contest_history(self, profile_id, days=None):
        doc = self.profiles.get(profile_id)
        if doc is None:
            raise ProfileNotFound(profile_id)
        return copy.deepcopy(doc["contest_history"])

    def log_notification_sent(self, event_type, payload=None, ref=None):
        self.notification_log.append({"event_type": event_type, "payload": payload or {}, "ref": ref or ""})


STORE_FUNCTIONS = (
    "create_profile",
    "get_profile",
    "get_profile_by_handle",
    "list_profiles",
    "list_profile_summaries",
    "update_profile",
    "delete_profile",
    "save_sync_result",
    "record_sync_error",
    "record_notification_sent",
    "toggle_notifications",
    "get_contest_history",
    "log_notification_sent",
)


@pytest.fixture
def store(monkeypatch):
    fake = FakeStore()
    for name in STORE_FUNCTIONS:
        monkeypatch.setattr(dal, name, getattr(fake, name))
    return fake
