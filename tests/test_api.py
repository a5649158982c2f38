import pytest
from apscheduler.schedulers.background import BackgroundScheduler
from fastapi.testclient import TestClient

from analytics.catalog_cache import CatalogCache
from api import main
from jobs import profile_sync
from jobs.scheduler import build_scheduler
from utils.errors import InvalidHandle, Unavailable
from conftest import make_entry, make_submission

client = TestClient(main.app)


def _info(handle, rating=1400):
    return {"handle": handle, "rating": rating, "maxRating": rating + 100, "rank": "specialist"}


@pytest.fixture
def codeforces(monkeypatch):
    """Per-handle fake ingestion results; unknown handles are invalid."""
    data = {}

    def fake_fetch(handle):
        result = data.get(handle, InvalidHandle(handle))
        if isinstance(result, Exception):
            raise result
        return result

    monkeypatch.setattr(profile_sync, "fetch_profile", fake_fetch)
    return data


@pytest.fixture
def catalog(monkeypatch):
    entries = [
        make_entry(1, "A", 1300, ["dp"]),
        make_entry(2, "B", 1500, ["greedy"]),
        make_entry(3, "C", 2400, ["graphs"]),
    ]
    monkeypatch.setattr(main, "recommendation_catalog", CatalogCache(lambda: entries, ttl_seconds=3600))
    monkeypatch.setattr(main, "browse_catalog", CatalogCache(lambda: entries, ttl_seconds=3600))
    return entries


def test_health(monkeypatch):
    monkeypatch.setattr(main, "ping", lambda: False)
    monkeypatch.setattr(main, "recommendation_catalog", CatalogCache(lambda: [], ttl_seconds=60))

    body = client.get("/api/health").json()

    assert body["status"] == "ok"
    assert body["database"] == "down"
    assert body["catalog"]["recommendations"] == "empty"


def test_create_profile_runs_initial_sync(store, codeforces):
    codeforces["tourist"] = (_info("tourist", 3500), [], [make_submission(1, "A")])

    r = client.post("/api/profiles", json={"name": "Gennady", "email": "g@example.com", "codeforces_handle": "tourist"})

    assert r.status_code == 201
    body = r.json()
    assert body["current_rating"] == 3500
    assert body["problems_solved"] == 1


def test_create_profile_with_invalid_handle_is_kept_with_warning(store, codeforces):
    r = client.post("/api/profiles", json={"name": "Ghost", "email": "ghost@example.com", "codeforces_handle": "ghost"})

    assert r.status_code == 201
    body = r.json()
    assert "Invalid Codeforces handle" in body["warning"]
    assert body["profile"]["last_sync_error"]
    assert len(store.profiles) == 1


def test_create_profile_validation_and_duplicates(store, codeforces):
    assert client.post("/api/profiles", json={"name": "", "email": "nope"}).status_code == 400

    store.add("tourist")
    r = client.post("/api/profiles", json={"name": "T", "email": "other@example.com", "codeforces_handle": "tourist"})
    assert r.status_code == 409


def test_list_profiles_orders_by_rating(store):
    store.add("low", current_rating=1200)
    store.add("high", current_rating=2100)

    rows = client.get("/api/profiles").json()

    assert [r["codeforces_handle"] for r in rows] == ["high", "low"]


def test_get_update_delete_profile(store, codeforces):
    profile = store.add("alice")
    pid = profile["_id"]

    assert client.get(f"/api/profiles/{pid}").json()["codeforces_handle"] == "alice"
    assert client.put(f"/api/profiles/{pid}", json={"name": "Alice B"}).json()["name"] == "Alice B"
    assert client.delete(f"/api/profiles/{pid}").status_code == 200
    assert client.get(f"/api/profiles/{pid}").status_code == 404
    assert client.delete(f"/api/profiles/{pid}").status_code == 404


def test_changing_handle_resyncs(store, codeforces):
    profile = store.add("alice")
    codeforces["alice2"] = (_info("alice2", 1900), [], [])

    body = client.put(f"/api/profiles/{profile['_id']}", json={"codeforces_handle": "alice2"}).json()

    assert body["codeforces_handle"] == "alice2"
    assert body["current_rating"] == 1900


def test_sync_by_id_and_handle(store, codeforces):
    profile = store.add("alice")
    codeforces["alice"] = (_info("alice", 1600), [], [])

    by_id = client.post(f"/api/profiles/{profile['_id']}/sync").json()
    by_handle = client.post("/api/profiles/sync/handle/alice").json()

    assert by_id["status"] == "ok"
    assert by_id["profile"]["current_rating"] == 1600
    assert by_handle["status"] == "ok"
    assert client.post("/api/profiles/sync/handle/nobody").status_code == 404


def test_sync_failure_returns_stored_data_with_warning(store, codeforces):
    profile = store.add("alice", current_rating=1550)
    codeforces["alice"] = Unavailable("alice", "Codeforces timed out")

    body = client.post(f"/api/profiles/{profile['_id']}/sync").json()

    assert body["status"] == "error"
    assert body["invalid_handle"] is False
    assert body["message"] == "Codeforces timed out"
    assert body["profile"]["current_rating"] == 1550


def test_sync_all_reports_per_profile_outcomes(store, codeforces):
    store.add("a")
    store.add("b")
    codeforces["a"] = (_info("a"), [], [])

    body = client.post("/api/profiles/sync-all").json()

    assert body["total"] == 2
    assert body["succeeded"] == 1
    assert body["failed"] == 1


def test_contests_problems_and_notification_toggle(store):
    profile = store.add(
        "alice",
        contest_history=[{"contest_id": 1, "new_rating": 1500}],
        problem_solving_data={"total_solved": 3},
    )
    pid = profile["_id"]

    assert client.get(f"/api/profiles/{pid}/contests", params={"days": 30}).json() == [{"contest_id": 1, "new_rating": 1500}]
    assert client.get(f"/api/profiles/{pid}/problems").json() == {"total_solved": 3}
    assert client.patch(f"/api/profiles/{pid}/notifications").json()["enabled"] is False
    assert client.patch(f"/api/profiles/{pid}/notifications").json()["enabled"] is True
    assert client.patch("/api/profiles/missing/notifications").status_code == 404


def test_recommendations(store, catalog):
    profile = store.add("alice", current_rating=1400, problem_solving_data={"solved_problems": ["2-B"], "tag_stats": []})

    buckets = client.get(f"/api/profiles/{profile['_id']}/recommendations").json()

    assert [b["title"] for b in buckets] == ["Rating Progression", "Weak Areas", "Practice Problems"]
    assert [p["problem_id"] for p in buckets[0]["problems"]] == ["1-A"]


def test_recommendations_unavailable_on_cold_catalog(store, monkeypatch):
    def down():
        raise Unavailable("", "problemset.problems timed out")

    monkeypatch.setattr(main, "recommendation_catalog", CatalogCache(down, ttl_seconds=3600))
    profile = store.add("alice", current_rating=1400)

    assert client.get(f"/api/profiles/{profile['_id']}/recommendations").status_code == 503


def test_problemset_browse(catalog):
    body = client.get("/api/problemset", params={"min_rating": 1400}).json()

    assert [p["problem_id"] for p in body] == ["2-B", "3-C"]


def test_schedule_update(monkeypatch):
    assert client.post("/api/schedule", json={"schedule": "0 3 * * *"}).status_code == 409

    monkeypatch.setattr(main, "_scheduler", build_scheduler(BackgroundScheduler))

    assert client.post("/api/schedule", json={"schedule": "0 3 * * *"}).json()["schedule"] == "0 3 * * *"
    assert client.post("/api/schedule", json={"schedule": "bad"}).status_code == 400
    assert client.post("/api/schedule", json={}).status_code == 400
