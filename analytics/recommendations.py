"""Three-bucket problem recommendations from the problemset catalog and a profile's statistics."""
from typing import Any

from analytics.aggregation import parse_success_rate, problem_key
from analytics.catalog_cache import CatalogCache
from utils.logging import get_logger

logger = get_logger(__name__)

BUCKET_SIZE = 5
RATING_FLOOR = 800
PROGRESSION_CEILING = 2000
WEAK_TAG_THRESHOLD = 50.0

CF_PROBLEM_URL = "https://codeforces.com/problemset/problem/{contest_id}/{index}"
CF_CONTEST_URL = "https://codeforces.com/contest/{contest_id}"


def difficulty_label(rating: int | None) -> str:
    if rating is None:
        return "unrated"
    if rating < 1200:
        return "easy"
    if rating < 1600:
        return "medium"
    if rating < 2000:
        return "hard"
    return "expert"


def difficulty_color(rating: int | None) -> str:
    """Codeforces rank colour for a problem rating."""
    if rating is None or rating < 1200:
        return "#808080"
    if rating < 1400:
        return "#008000"
    if rating < 1600:
        return "#03A89E"
    if rating < 1900:
        return "#0000FF"
    if rating < 2200:
        return "#AA00AA"
    if rating < 2400:
        return "#FF8C00"
    return "#FF0000"


def decorate(entry: dict) -> dict:
    out = dict(entry)
    out["problem_id"] = problem_key(entry.get("contest_id"), entry.get("index"))
    out["difficulty"] = difficulty_label(entry.get("rating"))
    out["difficulty_color"] = difficulty_color(entry.get("rating"))
    out["url"] = CF_PROBLEM_URL.format(contest_id=entry.get("contest_id"), index=entry.get("index"))
    out["contest_url"] = CF_CONTEST_URL.format(contest_id=entry.get("contest_id"))
    out["tags"] = sorted(entry.get("tags") or [])
    return out


def weak_tags(profile: dict) -> set[str]:
    """Tags with a success rate below 50%."""
    data = profile.get("problem_solving_data") or {}
    return {
        s["tag"]
        for s in data.get("tag_stats") or []
        if s.get("tag") and parse_success_rate(s.get("success_rate")) < WEAK_TAG_THRESHOLD
    }


def excluded_problems(profile: dict) -> set[str]:
    """Problems the user already solved or attempted."""
    data = profile.get("problem_solving_data") or {}
    excluded = set(data.get("solved_problems") or [])
    excluded.update(data.get("attempted_problems") or [])
    for sub in profile.get("recent_submissions") or []:
        problem = sub.get("problem") or {}
        key = sub.get("problem_id") or problem_key(problem.get("contest_id"), problem.get("index"))
        if key:
            excluded.add(key)
    return excluded


def _select(
    catalog: list[dict],
    low: int,
    high: int,
    excluded: set[str],
    tags: set[str] | None = None,
) -> list[dict]:
    candidates = []
    for entry in catalog:
        rating = entry.get("rating")
        if rating is None or not (low <= rating <= high):
            continue
        if problem_key(entry.get("contest_id"), entry.get("index")) in excluded:
            continue
        if tags is not None and not tags.intersection(entry.get("tags") or []):
            continue
        candidates.append(entry)
    # list.sort is stable: equal ratings keep catalog order
    candidates.sort(key=lambda e: e["rating"])
    return [decorate(e) for e in candidates[:BUCKET_SIZE]]


def recommend(profile: dict, catalog: list[dict]) -> list[dict[str, Any]]:
    """Return exactly three buckets: Rating Progression, Weak Areas, Practice Problems."""
    current = int(profile.get("current_rating") or 0)
    excluded = excluded_problems(profile)
    weak = weak_tags(profile)
    low = max(current - 100, RATING_FLOOR)

    buckets = [
        {
            "title": "Rating Progression",
            "description": "Problems to help you progress to the next rating level",
            "problems": _select(catalog, low, min(current + 200, PROGRESSION_CEILING), excluded),
        },
        {
            "title": "Weak Areas",
            "description": "Problems to improve your weaker topics",
            "problems": _select(catalog, low, current + 100, excluded, tags=weak),
        },
        {
            "title": "Practice Problems",
            "description": "Problems at your current level to maintain consistency",
            "problems": _select(catalog, current - 100, current + 100, excluded),
        },
    ]
    logger.info(
        "Recommendations for %s: %s",
        profile.get("codeforces_handle"),
        {b["title"]: len(b["problems"]) for b in buckets},
    )
    return buckets


def get_recommendations(profile: dict, cache: CatalogCache) -> list[dict[str, Any]]:
    """Recommend from the cached catalog. Raises CatalogUnavailable only on a cold cache."""
    return recommend(profile, cache.get())


def browse_problemset(
    cache: CatalogCache,
    tag: str | None = None,
    min_rating: int | None = None,
    max_rating: int | None = None,
    limit: int = 50,
) -> list[dict]:
    """Filter the cached catalog by tag and rating range, keeping catalog order."""
    out = []
    for entry in cache.get():
        rating = entry.get("rating")
        if tag and tag not in (entry.get("tags") or []):
            continue
        if min_rating is not None and (rating is None or rating < min_rating):
            continue
        if max_rating is not None and (rating is None or rating > max_rating):
            continue
        out.append(decorate(entry))
        if len(out) >= limit:
            break
    return out
