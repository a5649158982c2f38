"""FastAPI app: profile listing, sync triggers and problem recommendations."""
from contextlib import asynccontextmanager

from fastapi import Body, FastAPI, HTTPException
from fastapi.responses import JSONResponse

from analytics.catalog_cache import CatalogCache
from analytics.recommendations import browse_problemset, get_recommendations
from config import settings
from db import dal
from db.client import ensure_indexes, ping
from integrations.codeforces import fetch_catalog
from jobs import profile_sync
from utils.errors import CatalogUnavailable, DuplicateProfile, InvalidHandle, ProfileNotFound, SyncError
from utils.logging import setup_logging, get_logger

setup_logging()
logger = get_logger(__name__)

# Problemset snapshots: long-lived for recommendations, short-lived for browsing.
recommendation_catalog = CatalogCache(
    fetch_catalog,
    ttl_seconds=settings.CATALOG_TTL_HOURS * 3600,
    name="recommendations",
    retry_seconds=settings.CATALOG_RETRY_SECONDS,
)
browse_catalog = CatalogCache(
    fetch_catalog,
    ttl_seconds=settings.CATALOG_BROWSE_TTL_MINUTES * 60,
    name="problemset",
    retry_seconds=settings.CATALOG_RETRY_SECONDS,
)

_scheduler = None


def _start_background_scheduler() -> None:
    """Start APScheduler in a background thread so the daily sync runs inside the web process."""
    global _scheduler
    if settings.DISABLE_SCHEDULER:
        logger.info("Background scheduler disabled via DISABLE_SCHEDULER env var")
        return
    from apscheduler.schedulers.background import BackgroundScheduler
    from jobs.scheduler import build_scheduler

    _scheduler = build_scheduler(BackgroundScheduler)
    _scheduler.start()
    logger.info("Background scheduler started: profile sync on cron %r", settings.SYNC_CRON)


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        ensure_indexes()
    except Exception as e:
        logger.warning("Index ensure failed (MongoDB may be down): %s", e)
    _start_background_scheduler()
    yield
    if _scheduler is not None and _scheduler.running:
        _scheduler.shutdown(wait=False)


app = FastAPI(title="CP Progress Tracker", lifespan=lifespan)


def _profile_or_404(profile_id: str) -> dict:
    profile = dal.get_profile(profile_id)
    if profile is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    return profile


def _sync_response(profile: dict) -> dict:
    """Run a sync and answer with the freshest profile data we have, plus a warning on failure."""
    try:
        updated = profile_sync.sync_one(profile)
    except SyncError as e:
        stale = dal.get_profile(profile["_id"]) or profile
        return {"status": "error", "message": e.message, "invalid_handle": isinstance(e, InvalidHandle), "profile": stale}
    message = "Sync completed"
    if updated.get("sync_warnings"):
        message += " with warnings: " + "; ".join(updated["sync_warnings"])
    return {"status": "ok", "message": message, "profile": updated}


# --- Health ---
@app.get("/api/health")
def api_health():
    return {
        "status": "ok",
        "database": "up" if ping() else "down",
        "catalog": {"recommendations": recommendation_catalog.state, "problemset": browse_catalog.state},
    }


# --- Profiles ---
@app.get("/api/profiles")
def api_list_profiles():
    return dal.list_profile_summaries()


@app.post("/api/profiles", status_code=201)
def api_create_profile(payload: dict = Body(default=None)):
    payload = payload or {}
    name = (payload.get("name") or "").strip()
    email = (payload.get("email") or "").strip()
    handle = (payload.get("codeforces_handle") or "").strip()
    errors = []
    if not name:
        errors.append("name is required")
    if not email or "@" not in email:
        errors.append("a valid email is required")
    if not handle:
        errors.append("codeforces_handle is required")
    if errors:
        raise HTTPException(status_code=400, detail=errors)
    try:
        profile = dal.create_profile(name, email, handle, notifications_enabled=bool(payload.get("notifications_enabled", True)))
    except DuplicateProfile as e:
        raise HTTPException(status_code=409, detail=str(e))
    result = _sync_response(profile)
    if result["status"] != "ok":
        return JSONResponse(status_code=201, content={"profile": result["profile"], "warning": result["message"]})
    return result["profile"]


@app.get("/api/profiles/{profile_id}")
def api_get_profile(profile_id: str):
    return _profile_or_404(profile_id)


@app.put("/api/profiles/{profile_id}")
def api_update_profile(profile_id: str, payload: dict = Body(default=None)):
    payload = payload or {}
    current = _profile_or_404(profile_id)
    try:
        updated = dal.update_profile(
            profile_id,
            name=payload.get("name"),
            email=payload.get("email"),
            codeforces_handle=payload.get("codeforces_handle"),
        )
    except DuplicateProfile as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ProfileNotFound:
        raise HTTPException(status_code=404, detail="Profile not found")
    if updated.get("codeforces_handle") != current.get("codeforces_handle"):
        result = _sync_response(updated)
        if result["status"] != "ok":
            return {"profile": result["profile"], "warning": result["message"]}
        return result["profile"]
    return updated


@app.delete("/api/profiles/{profile_id}")
def api_delete_profile(profile_id: str):
    if not dal.delete_profile(profile_id):
        raise HTTPException(status_code=404, detail="Profile not found")
    return {"message": "Profile deleted"}


@app.get("/api/profiles/{profile_id}/contests")
def api_contest_history(profile_id: str, days: int | None = None):
    try:
        return dal.get_contest_history(profile_id, days=days)
    except ProfileNotFound:
        raise HTTPException(status_code=404, detail="Profile not found")


@app.get("/api/profiles/{profile_id}/problems")
def api_problem_solving_data(profile_id: str):
    return _profile_or_404(profile_id).get("problem_solving_data") or {}


@app.patch("/api/profiles/{profile_id}/notifications")
def api_toggle_notifications(profile_id: str):
    try:
        return dal.toggle_notifications(profile_id)
    except ProfileNotFound:
        raise HTTPException(status_code=404, detail="Profile not found")


# --- Sync triggers ---
@app.post("/api/profiles/sync-all")
def api_sync_all():
    return profile_sync.sync_all(deadline_seconds=settings.SYNC_DEADLINE_SECONDS or None)


@app.post("/api/profiles/sync/handle/{handle}")
def api_sync_handle(handle: str):
    profile = dal.get_profile_by_handle(handle)
    if profile is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    return _sync_response(profile)


@app.post("/api/profiles/{profile_id}/sync")
def api_sync_profile(profile_id: str):
    return _sync_response(_profile_or_404(profile_id))


@app.post("/api/schedule")
def api_update_schedule(payload: dict = Body(default=None)):
    expr = ((payload or {}).get("schedule") or "").strip()
    if not expr:
        raise HTTPException(status_code=400, detail="Schedule is required")
    if _scheduler is None:
        raise HTTPException(status_code=409, detail="Scheduler is not running in this process")
    try:
        from jobs.scheduler import update_sync_schedule
        update_sync_schedule(_scheduler, expr)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"message": "Sync schedule updated", "schedule": expr}


# --- Recommendations & problemset ---
@app.get("/api/profiles/{profile_id}/recommendations")
def api_recommendations(profile_id: str):
    profile = _profile_or_404(profile_id)
    try:
        return get_recommendations(profile, recommendation_catalog)
    except CatalogUnavailable as e:
        logger.warning("Recommendations unavailable for %s: %s", profile.get("codeforces_handle"), e)
        raise HTTPException(status_code=503, detail="Problemset is unavailable, try again later")


@app.get("/api/problemset")
def api_problemset(tag: str | None = None, min_rating: int | None = None, max_rating: int | None = None, limit: int = 50):
    try:
        return browse_problemset(browse_catalog, tag=tag, min_rating=min_rating, max_rating=max_rating, limit=max(1, min(limit, 500)))
    except CatalogUnavailable:
        raise HTTPException(status_code=503, detail="Problemset is unavailable, try again later")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
