"""Sync Codeforces profiles into MongoDB: ingest, aggregate, write, then check for inactivity."""
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Callable

from analytics.aggregation import aggregate
from config import settings
from db import dal
from db.collections import contest_result_doc
from integrations.codeforces import fetch_profile
from integrations.notifications import notify_inactivity
from utils.errors import ProfileNotFound, SyncError
from utils.logging import get_logger, log_extra

logger = get_logger(__name__)

Notifier = Callable[[dict], None]

# One lock per profile id: syncs of the same profile are serialized, different profiles run freely.
_profile_locks: dict[str, threading.Lock] = {}
_profile_locks_guard = threading.Lock()


def _profile_lock(profile_id: str) -> threading.Lock:
    with _profile_locks_guard:
        lock = _profile_locks.get(profile_id)
        if lock is None:
            lock = _profile_locks[profile_id] = threading.Lock()
        return lock


def _build_update(info: dict, rating_history: list[dict] | None, submissions: list[dict] | None, now: int) -> dict:
    update: dict = {
        "current_rating": info.get("rating") or 0,
        "max_rating": info.get("maxRating") or 0,
        "rank": info.get("rank") or "",
        "last_synced_at": now,
        "last_sync_error": None,
    }
    warnings = []
    if rating_history is None:
        warnings.append("Rating history unavailable; kept previous contest history")
    else:
        update["contest_history"] = [contest_result_doc(r) for r in rating_history]
    if submissions is None:
        warnings.append("Submissions unavailable; kept previous statistics")
    else:
        stats, recent = aggregate(submissions, recent_window=settings.RECENT_SUBMISSIONS_WINDOW)
        update["problem_solving_data"] = stats
        update["recent_submissions"] = recent
        update["problems_solved"] = stats["total_solved"]
        update["last_activity_at"] = stats["last_submission_at"]
    update["sync_warnings"] = warnings
    return update


def check_inactivity(profile: dict, notify: Notifier = notify_inactivity, now: int | None = None) -> bool:
    """Send one inactivity reminder if the profile qualifies. Returns True when a reminder was sent."""
    now = now or int(time.time())
    notif = profile.get("notifications") or {}
    if not notif.get("enabled"):
        return False
    last_activity = profile.get("last_activity_at")
    if not last_activity or now - last_activity <= settings.INACTIVITY_DAYS * 86400:
        return False
    last_sent = notif.get("last_sent_at")
    if last_sent and now - last_sent < settings.REMINDER_COOLDOWN_HOURS * 3600:
        return False
    handle = profile.get("codeforces_handle")
    try:
        notify(profile)
    except Exception as e:
        logger.warning("Inactivity reminder for %s failed: %s", handle, e)
        return False
    dal.record_notification_sent(profile["_id"], now)
    dal.log_notification_sent("inactivity", {"handle": handle, "last_activity_at": last_activity}, ref=profile["_id"])
    logger.info("Inactivity reminder sent to %s", handle)
    return True


def sync_one(profile: dict, notify: Notifier = notify_inactivity, now: int | None = None) -> dict:
    """Sync one profile and return the updated record.

    InvalidHandle / Unavailable from user.info abort before any write. Rating
    history and submissions that are unavailable keep their stored values.
    """
    profile_id = profile["_id"]
    handle = profile["codeforces_handle"]
    with _profile_lock(profile_id):
        try:
            info, rating_history, submissions = fetch_profile(handle)
        except SyncError as e:
            logger.warning("Sync failed for %s: %s", handle, e)
            try:
                dal.record_sync_error(profile_id, str(e))
            except Exception as store_err:
                logger.warning("Could not record sync error for %s: %s", handle, store_err)
            raise
        update = _build_update(info, rating_history, submissions, now or int(time.time()))
        updated = dal.save_sync_result(profile_id, update)
        logger.info(
            "Synced %s: rating %s, %s solved%s",
            handle,
            update["current_rating"],
            updated.get("problems_solved", 0),
            f" ({'; '.join(update['sync_warnings'])})" if update["sync_warnings"] else "",
        )
        check_inactivity(updated, notify=notify, now=now)
    return updated


def sync_profile_id(profile_id: str, notify: Notifier = notify_inactivity) -> dict:
    profile = dal.get_profile(profile_id)
    if profile is None:
        raise ProfileNotFound(profile_id)
    return sync_one(profile, notify=notify)


def sync_handle(handle: str, notify: Notifier = notify_inactivity) -> dict:
    profile = dal.get_profile_by_handle(handle)
    if profile is None:
        raise ProfileNotFound(handle)
    return sync_one(profile, notify=notify)


def _outcome(profile: dict, error: str | None = None) -> dict:
    return {
        "id": profile.get("_id"),
        "handle": profile.get("codeforces_handle"),
        "name": profile.get("name"),
        "status": "error" if error else "ok",
        "error": error,
    }


def sync_all(
    profiles: list[dict] | None = None,
    max_workers: int | None = None,
    deadline_seconds: float | None = None,
    notify: Notifier = notify_inactivity,
) -> dict:
    """Sync every profile on a small worker pool. One failure never stops the batch.

    Profiles still running or queued when the deadline passes are reported as
    failures; queued ones are cancelled.
    """
    if profiles is None:
        profiles = dal.list_profiles()
    workers = max(1, max_workers or settings.SYNC_WORKERS)
    started = time.time()
    results: list[dict] = []

    ex = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="profile-sync")
    try:
        futures = [ex.submit(sync_one, p, notify) for p in profiles]
        _, not_done = wait(futures, timeout=deadline_seconds or None)
        for profile, fut in zip(profiles, futures):
            if fut in not_done:
                fut.cancel()
                results.append(_outcome(profile, f"Sync deadline of {deadline_seconds}s exceeded"))
                continue
            err = fut.exception()
            if err is None:
                results.append(_outcome(profile))
            elif isinstance(err, SyncError):
                results.append(_outcome(profile, str(err)))
            else:
                logger.error("Unexpected sync failure for %s", profile.get("codeforces_handle"), exc_info=err)
                results.append(_outcome(profile, f"{type(err).__name__}: {err}"))
    finally:
        ex.shutdown(wait=False, cancel_futures=True)

    succeeded = sum(1 for r in results if r["status"] == "ok")
    summary = {
        "total": len(results),
        "succeeded": succeeded,
        "failed": len(results) - succeeded,
        "duration_seconds": round(time.time() - started, 2),
        "results": results,
    }
    log_extra(
        logger,
        "Batch sync finished",
        level=logging.WARNING if summary["failed"] else logging.INFO,
        total=summary["total"],
        succeeded=succeeded,
        failed=summary["failed"],
        seconds=summary["duration_seconds"],
    )
    return summary
