"""Manually resync profiles from Codeforces.

Usage:
    python resync.py                  # resync every profile
    python resync.py tourist petr     # resync only these handles
"""
import sys

from config import settings
from db import dal
from jobs.profile_sync import sync_all
from utils.logging import setup_logging, get_logger

setup_logging(settings.LOG_LEVEL)
logger = get_logger(__name__)


def main() -> int:
    handles = [h.strip() for h in sys.argv[1:] if h.strip()]
    if handles:
        profiles = []
        for handle in handles:
            profile = dal.get_profile_by_handle(handle)
            if profile is None:
                print(f"No profile with handle {handle}; skipping.")
                continue
            profiles.append(profile)
    else:
        profiles = dal.list_profiles()
    print(f"Resyncing {len(profiles)} profile(s)...")
    summary = sync_all(profiles, deadline_seconds=settings.SYNC_DEADLINE_SECONDS or None)
    for r in summary["results"]:
        status = "ok" if r["status"] == "ok" else f"FAILED: {r['error']}"
        print(f"  {r['handle']}: {status}")
    print(f"Done: {summary['succeeded']} succeeded, {summary['failed']} failed.")
    return 1 if summary["failed"] else 0


if __name__ == "__main__":
    sys.exit(main())
