"""Codeforces official API client. Rate limit: 1 request per CF_MIN_INTERVAL seconds, shared process-wide."""
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any

import requests

from config import settings
from utils.errors import CodeforcesAPIError, InvalidHandle, Unavailable
from utils.logging import get_logger

logger = get_logger(__name__)

_last_request_time = 0.0
_rate_lock = threading.Lock()
MIN_INTERVAL = settings.CF_MIN_INTERVAL


def _rate_limit() -> None:
    global _last_request_time
    with _rate_lock:
        now = time.time()
        elapsed = now - _last_request_time
        if elapsed < MIN_INTERVAL:
            time.sleep(MIN_INTERVAL - elapsed)
        _last_request_time = time.time()


def _get(method: str, params: dict[str, str | int] | None = None, handle: str = "") -> Any:
    """Call an API method and unwrap the {status, result, comment} envelope.

    Raises Unavailable for transport problems and rate limiting, and
    CodeforcesAPIError for any other non-OK status.
    """
    _rate_limit()
    url = f"{settings.CODEFORCES_API_BASE}/{method}"
    try:
        r = requests.get(url, params=params or {}, timeout=settings.CF_REQUEST_TIMEOUT)
    except requests.RequestException as e:
        logger.warning("Codeforces API %s failed: %s", method, e)
        raise Unavailable(handle, f"{method}: {e}") from e
    if r.status_code == 429 or r.status_code >= 500:
        logger.warning("Codeforces API %s returned HTTP %s", method, r.status_code)
        raise Unavailable(handle, f"{method}: HTTP {r.status_code}")
    try:
        data = r.json()
    except ValueError as e:
        logger.warning("Codeforces API %s returned a non-JSON body", method)
        raise Unavailable(handle, f"{method}: malformed response") from e
    if not isinstance(data, dict) or "status" not in data:
        raise Unavailable(handle, f"{method}: unexpected response shape")
    if data.get("status") != "OK":
        comment = data.get("comment") or "Unknown error"
        logger.warning("Codeforces API %s failed: %s", method, comment)
        if "limit exceeded" in comment.lower():
            raise Unavailable(handle, f"{method}: {comment}")
        raise CodeforcesAPIError(method, comment)
    return data.get("result")


class CodeforcesAPI:
    @staticmethod
    def user_info(handle: str) -> dict:
        try:
            result = _get("user.info", {"handles": handle}, handle=handle)
        except CodeforcesAPIError as e:
            raise InvalidHandle(handle, e.comment) from e
        if not isinstance(result, list) or not result or not isinstance(result[0], dict):
            raise InvalidHandle(handle)
        return result[0]

    @staticmethod
    def user_rating(handle: str) -> list[dict]:
        return _get("user.rating", {"handle": handle}, handle=handle)

    @staticmethod
    def user_status(handle: str, from_index: int = 1, count: int = 100) -> list[dict]:
        return _get("user.status", {"handle": handle, "from": from_index, "count": count}, handle=handle)

    @staticmethod
    def problemset_problems(tags: str | None = None) -> dict:
        params = {}
        if tags:
            params["tags"] = tags
        return _get("problemset.problems", params if params else None)


def _optional_stage(future: Future, method: str, handle: str) -> list[dict] | None:
    """Normalize rating history / submissions. [] when missing, None when the stage is unavailable."""
    try:
        result = future.result()
    except Unavailable as e:
        logger.warning("%s unavailable for %s: %s", method, handle, e)
        return None
    except CodeforcesAPIError as e:
        logger.info("%s returned no data for %s: %s", method, handle, e.comment)
        return []
    if not isinstance(result, list):
        return []
    return [item for item in result if isinstance(item, dict)]


def fetch_profile(handle: str) -> tuple[dict, list[dict] | None, list[dict] | None]:
    """Return (info, rating_history, submissions) for a handle.

    The three reads run concurrently. InvalidHandle / Unavailable from user.info
    propagate; the other two stages degrade to [] (no data) or None (unavailable).
    """
    with ThreadPoolExecutor(max_workers=3, thread_name_prefix="cf-fetch") as ex:
        info_f = ex.submit(CodeforcesAPI.user_info, handle)
        rating_f = ex.submit(CodeforcesAPI.user_rating, handle)
        status_f = ex.submit(CodeforcesAPI.user_status, handle, 1, settings.CF_SUBMISSIONS_COUNT)
        info = info_f.result()
        rating_history = _optional_stage(rating_f, "user.rating", handle)
        submissions = _optional_stage(status_f, "user.status", handle)
    return info, rating_history, submissions


def catalog_entry(problem: dict) -> dict | None:
    contest_id = problem.get("contestId")
    index = problem.get("index")
    if contest_id is None or not index:
        return None
    rating = problem.get("rating")
    tags = problem.get("tags")
    return {
        "contest_id": contest_id,
        "index": str(index),
        "name": problem.get("name") or f"{contest_id}{index}",
        "rating": rating if isinstance(rating, int) else None,
        "tags": [t for t in tags if isinstance(t, str)] if isinstance(tags, list) else [],
    }


def fetch_catalog() -> list[dict]:
    """Fetch the full problemset as catalog entries, in API order."""
    try:
        data = CodeforcesAPI.problemset_problems()
    except CodeforcesAPIError as e:
        raise Unavailable("", str(e)) from e
    problems = data.get("problems") if isinstance(data, dict) else None
    if not isinstance(problems, list):
        raise Unavailable("", "problemset.problems: missing problems list")
    entries = [catalog_entry(p) for p in problems if isinstance(p, dict)]
    return [e for e in entries if e is not None]
