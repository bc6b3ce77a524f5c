"""
HTTP surface: status codes per failure kind, response shape, read-back routes.
Pipeline collaborators are replaced through FastAPI dependency overrides.
"""
import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.routes import roadmap as roadmap_routes
from app.schemas.roadmap import (
    QUALIFICATION_OPTIONS,
    TIME_COMMITMENT_OPTIONS,
    LearnerProfile,
    RoadmapListItem,
    RoadmapStep,
    StoredRoadmap,
)
from app.services.exceptions import PersistenceError, UpstreamError
from app.services.roadmap_pipeline import RoadmapPipeline
from tests.conftest import FakeSearchClient, FakeStore, make_result


PROFILE_JSON = {
    "qualification": "Bachelor's Degree",
    "skills": "JavaScript, React",
    "interests": "",
    "jobProfile": "Software Developer",
    "timeCommitment": "5-10 hours",
}


class FakeReadStore:
    def __init__(self, stored=None):
        self.stored = stored or {}

    async def get(self, roadmap_id, user_id=None):
        entry = self.stored.get(roadmap_id)
        if entry is None or entry[0] != user_id:
            return None
        return entry[1]

    async def list_recent(self, user_id=None, limit=20):
        return [
            RoadmapListItem(roadmap_id=rid, created_at=None, job_profile=s.profile.job_profile, step_count=len(s.steps))
            for rid, (owner, s) in sorted(self.stored.items(), reverse=True)
            if owner == user_id
        ][:limit]


@pytest.fixture()
def client():
    roadmap_routes.limiter.enabled = False
    yield TestClient(app)
    app.dependency_overrides.clear()
    roadmap_routes.limiter.enabled = True


def _use_pipeline(search, store):
    app.dependency_overrides[roadmap_routes.get_pipeline] = lambda: RoadmapPipeline(search, store)


def test_generate_returns_saved_steps(client, sample_results):
    search, store = FakeSearchClient(sample_results), FakeStore()
    _use_pipeline(search, store)

    resp = client.post("/api/roadmap", json=PROFILE_JSON, headers={"X-User-ID": "user-1"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["roadmapId"] == 1
    assert "createdAt" in body
    assert [s["title"][:8] for s in body["steps"]] == ["Step 1: ", "Step 2: ", "Step 3: ", "Step 4: "]
    assert body["steps"][0]["estimatedTime"] == 20
    assert body["steps"][0]["weeksToComplete"] == 4
    assert search.calls == ["Software Developer Bachelor's Degree JavaScript, React"]
    assert store.saved[0][1] == "user-1"
    assert resp.headers["X-Correlation-ID"]


def test_empty_profile_is_400(client):
    search = FakeSearchClient([make_result()])
    _use_pipeline(search, FakeStore())

    resp = client.post("/api/roadmap", json={"qualification": "", "skills": " "})

    assert resp.status_code == 400
    assert resp.json()["error"] == "InvalidInput"
    assert search.calls == []


def test_no_results_is_404(client):
    _use_pipeline(FakeSearchClient([]), FakeStore())

    resp = client.post("/api/roadmap", json=PROFILE_JSON)

    assert resp.status_code == 404
    assert resp.json()["error"] == "NoResults"
    assert "refine" in resp.json()["detail"]


def test_upstream_failure_is_502_with_provider_status(client):
    _use_pipeline(FakeSearchClient(error=UpstreamError("Search provider error: 429 - quota", status_code=429)), FakeStore())

    resp = client.post("/api/roadmap", json=PROFILE_JSON)

    assert resp.status_code == 502
    body = resp.json()
    assert body["error"] == "UpstreamError"
    assert body["provider_status"] == 429
    assert "quota" in body["detail"]


def test_persistence_failure_is_503_without_steps(client, sample_results):
    _use_pipeline(FakeSearchClient(sample_results), FakeStore(error=PersistenceError("store down")))

    resp = client.post("/api/roadmap", json=PROFILE_JSON)

    assert resp.status_code == 503
    body = resp.json()
    assert body["error"] == "PersistenceError"
    assert "steps" not in body


def test_search_endpoint_returns_raw_results(client, sample_results):
    search = FakeSearchClient(sample_results)
    app.dependency_overrides[roadmap_routes.get_search_client] = lambda: search

    resp = client.get("/api/roadmap/search", params={"q": "python"})

    assert resp.status_code == 200
    assert [r["link"] for r in resp.json()] == [r.link for r in sample_results]
    assert search.calls == ["python"]


def test_search_endpoint_requires_query(client):
    search = FakeSearchClient([make_result()])
    app.dependency_overrides[roadmap_routes.get_search_client] = lambda: search

    resp = client.get("/api/roadmap/search")

    assert resp.status_code == 400
    assert resp.json()["detail"] == "Search query is required"
    assert search.calls == []


def test_read_back_routes(client):
    steps = [RoadmapStep(position=1, title="Step 1: X", description="d", link="https://x", estimated_time=10, weeks_to_complete=2)]
    stored = StoredRoadmap(roadmap_id=7, created_at=None, profile=LearnerProfile(job_profile="Analyst"), steps=steps)
    app.dependency_overrides[roadmap_routes.get_roadmap_store] = lambda: FakeReadStore({7: ("u", stored)})

    listing = client.get("/api/roadmaps", headers={"X-User-ID": "u"})
    assert listing.status_code == 200
    assert listing.json() == [{"roadmapId": 7, "createdAt": None, "jobProfile": "Analyst", "stepCount": 1}]

    found = client.get("/api/roadmaps/7", headers={"X-User-ID": "u"})
    assert found.status_code == 200
    assert found.json()["steps"][0]["weeksToComplete"] == 2
    assert found.json()["profile"]["jobProfile"] == "Analyst"

    assert client.get("/api/roadmaps/7", headers={"X-User-ID": "other"}).status_code == 404


def test_health_and_metrics(client):
    health = client.get("/health")
    assert health.status_code == 200
    assert health.json()["status"] == "ok"
    assert "google_search" in health.json()["circuits"]

    assert "counters" in client.get("/metrics").json()


def test_long_free_text_profile_is_accepted(client, sample_results):
    search, store = FakeSearchClient(sample_results), FakeStore()
    _use_pipeline(search, store)

    resp = client.post("/api/roadmap", json={**PROFILE_JSON, "skills": "python " * 400})

    assert resp.status_code == 200
    assert len(resp.json()["steps"]) == len(sample_results)
    assert store.saved[0][0].profile.skills == "python " * 400


def test_malformed_body_is_400_invalid_input(client):
    search = FakeSearchClient([make_result()])
    _use_pipeline(search, FakeStore())

    resp = client.post("/api/roadmap", json={**PROFILE_JSON, "skills": ["python", "sql"]})

    assert resp.status_code == 400
    body = resp.json()
    assert body["error"] == "InvalidInput"
    assert "skills" in body["detail"]
    assert search.calls == []


def test_bad_query_parameter_is_400_invalid_input(client):
    app.dependency_overrides[roadmap_routes.get_roadmap_store] = lambda: FakeReadStore()

    resp = client.get("/api/roadmaps", params={"limit": 0})

    assert resp.status_code == 400
    assert resp.json()["error"] == "InvalidInput"


def test_profile_schema_lists_form_options():
    properties = LearnerProfile.model_json_schema()["properties"]

    assert properties["qualification"]["examples"] == list(QUALIFICATION_OPTIONS)
    assert properties["timeCommitment"]["examples"] == list(TIME_COMMITMENT_OPTIONS)
