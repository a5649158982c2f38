"""Turn a raw Codeforces submission log into the derived statistics stored on a profile."""
import math
from typing import Any

from utils.logging import get_logger

logger = get_logger(__name__)

ACCEPTED = "OK"
SECONDS_PER_DAY = 86400


def problem_key(contest_id: Any, index: Any) -> str | None:
    """Stable problem identity: contest id + index."""
    if contest_id is None or index is None or index == "":
        return None
    return f"{contest_id}-{index}"


def format_success_rate(solved: int, attempted: int) -> str:
    if attempted <= 0:
        return "0.0"
    return f"{solved / attempted * 100:.1f}"


def parse_success_rate(value: Any) -> float:
    """Read a stored success rate ("66.7", "66.7%" or a number); 0.0 when unreadable."""
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip().rstrip("%"))
    except ValueError:
        return 0.0


def _tags(problem: dict) -> list[str]:
    tags = problem.get("tags")
    if not isinstance(tags, list):
        return []
    # a tag listed twice on one problem still counts once per submission
    return list(dict.fromkeys(t for t in tags if isinstance(t, str) and t))


def recent_submission_doc(submission: dict) -> dict:
    problem = submission.get("problem") if isinstance(submission.get("problem"), dict) else {}
    contest_id = problem.get("contestId")
    index = problem.get("index")
    rating = problem.get("rating")
    return {
        "problem_id": problem_key(contest_id, index),
        "problem_name": problem.get("name"),
        "problem_rating": rating if isinstance(rating, int) else None,
        "verdict": submission.get("verdict"),
        "submitted_at": submission.get("creationTimeSeconds"),
        "problem": {
            "contest_id": contest_id,
            "index": index,
            "name": problem.get("name"),
            "rating": rating if isinstance(rating, int) else None,
            "tags": _tags(problem),
        },
    }


def empty_statistics() -> dict:
    return {
        "total_solved": 0,
        "problems_by_rating": [],
        "tag_stats": [],
        "average_per_day": 0.0,
        "solved_problems": [],
        "attempted_problems": [],
        "first_submission_at": None,
        "last_submission_at": None,
    }


def aggregate(submissions: list[dict], recent_window: int = 10) -> tuple[dict, list[dict]]:
    """Single pass over submissions (source order, newest first on Codeforces).

    Returns (problem_solving_data, recent_submissions). Malformed submissions
    never raise: missing fields are just left out of the aggregate they feed.
    """
    if not submissions:
        return empty_statistics(), []

    solved: set[str] = set()
    attempted: set[str] = set()
    by_rating: dict[int, int] = {}
    tag_counts: dict[str, dict[str, int]] = {}
    recent: list[dict] = []
    min_ts: int | None = None
    max_ts: int | None = None

    for sub in submissions:
        if not isinstance(sub, dict):
            continue
        if len(recent) < recent_window:
            recent.append(recent_submission_doc(sub))

        ts = sub.get("creationTimeSeconds")
        if isinstance(ts, (int, float)):
            ts = int(ts)
            min_ts = ts if min_ts is None else min(min_ts, ts)
            max_ts = ts if max_ts is None else max(max_ts, ts)

        problem = sub.get("problem")
        if not isinstance(problem, dict):
            continue
        key = problem_key(problem.get("contestId"), problem.get("index"))
        tags = _tags(problem)
        if key is not None:
            attempted.add(key)
        for tag in tags:
            tag_counts.setdefault(tag, {"solved": 0, "attempted": 0})["attempted"] += 1

        if sub.get("verdict") != ACCEPTED:
            continue
        for tag in tags:
            tag_counts[tag]["solved"] += 1
        if key is None or key in solved:
            continue
        solved.add(key)
        rating = problem.get("rating")
        if isinstance(rating, int):
            by_rating[rating] = by_rating.get(rating, 0) + 1

    tag_stats = []
    for tag, counts in tag_counts.items():
        if counts["attempted"] <= 0:
            continue
        tag_stats.append({
            "tag": tag,
            "solved": counts["solved"],
            "attempted": counts["attempted"],
            "success_rate": format_success_rate(counts["solved"], counts["attempted"]),
        })

    average_per_day = 0.0
    if solved and min_ts is not None and max_ts is not None:
        days = max(1, math.ceil((max_ts - min_ts) / SECONDS_PER_DAY))
        average_per_day = round(len(solved) / days, 2)

    stats = {
        "total_solved": len(solved),
        "problems_by_rating": [{"rating": r, "count": c} for r, c in sorted(by_rating.items())],
        "tag_stats": tag_stats,
        "average_per_day": average_per_day,
        "solved_problems": sorted(solved),
        "attempted_problems": sorted(attempted),
        "first_submission_at": min_ts,
        "last_submission_at": max_ts,
    }
    logger.debug("Aggregated %s submissions: %s solved", len(submissions), len(solved))
    return stats, recent
