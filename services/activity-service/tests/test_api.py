from __future__ import annotations

import time
from dataclasses import replace
from datetime import date, datetime

import jwt
import pytest
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.testclient import TestClient

from app.api import routes
from app.api.errors import register_error_middleware, register_exception_handlers
from app.config import get_settings
from app.domain.activity import Activity
from app.domain.contracts import ActivityQuery, CreateActivityInput
from app.domain.service import ActivityService

TODAY = date(2025, 1, 15)


class FakeRepository:
    """In-memory repository mimicking Postgres-backed behaviors."""

    def __init__(self) -> None:
        self._activities: dict[int, Activity] = {}
        self._workers: dict[int, str] = {1: "王小明", 2: "陳美華"}
        self._seq = 0

    def add(self, **fields) -> Activity:
        self._seq += 1
        activity = Activity(activity_id=self._seq, **fields)
        self._activities[activity.activity_id] = activity
        return activity

    def _matching(self, query: ActivityQuery) -> list[Activity]:
        results = list(self._activities.values())
        if query.status:
            wanted = query.status.strip().lower()
            results = [a for a in results if a.status and a.status.strip().lower() == wanted]
        if query.audience:
            wanted = query.audience.strip().lower()
            results = [
                a for a in results if a.target_audience and a.target_audience.strip().lower() == wanted
            ]
        if query.content:
            needle = query.content.lower()
            results = [
                a
                for a in results
                if any(needle in (value or "").lower() for value in (a.activity_name, a.location, a.description))
            ]
        results.sort(key=lambda a: (a.start_date is not None, a.start_date or datetime.min, a.activity_id), reverse=True)
        return results

    def count_activities(self, query: ActivityQuery) -> int:
        return len(self._matching(query))

    def list_activities(self, query: ActivityQuery, *, offset: int, limit: int) -> list[Activity]:
        return self._matching(query)[offset : offset + limit]

    def get_activity(self, activity_id: int) -> Activity | None:
        return self._activities.get(activity_id)

    def create_activity(self, payload: CreateActivityInput, *, worker_id: int, status: str) -> Activity:
        return self.add(
            activity_name=payload.activity_name,
            description=payload.description,
            image_url=payload.image_url,
            location=payload.location,
            address=payload.address,
            max_participants=payload.max_participants,
            current_participants=0,
            start_date=payload.start_date,
            end_date=payload.end_date,
            signup_deadline=payload.signup_deadline,
            worker_id=worker_id,
            target_audience=payload.target_audience,
            status=status,
            category=payload.category,
        )

    def update_activity(self, activity_id: int, changes: dict) -> Activity | None:
        activity = self._activities.get(activity_id)
        if activity is None:
            return None
        updated = replace(activity, **changes)
        self._activities[activity_id] = updated
        return updated

    def delete_activity(self, activity_id: int) -> bool:
        return self._activities.pop(activity_id, None) is not None

    def worker_exists(self, worker_id: int) -> bool:
        return worker_id in self._workers

    def get_worker_names(self, worker_ids) -> dict[int, str]:
        return {worker_id: self._workers[worker_id] for worker_id in worker_ids if worker_id in self._workers}


def make_token(worker_id: int | str | None = 1, **extra) -> str:
    settings = get_settings()
    now = int(time.time())
    claims = {"iss": settings.jwt_issuer, "iat": now, "exp": now + 300, **extra}
    if worker_id is not None:
        claims["worker_id"] = worker_id
    return jwt.encode(claims, settings.jwt_secret, algorithm="HS256")


def auth_headers(worker_id: int | str | None = 1, **extra) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(worker_id, **extra)}"}


@pytest.fixture
def api_client():
    """Provide a FastAPI test client with isolated state."""
    repository = FakeRepository()
    service = ActivityService(repository, today=lambda: TODAY)

    app = FastAPI()
    app.include_router(routes.router)
    register_exception_handlers(app)
    app.state.activity_service = service

    with TestClient(app) as client:
        yield client, repository


def test_categories_endpoint_returns_ordered_options(api_client):
    client, _ = api_client
    response = client.get("/v1/activities/categories")
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["error"] is None
    assert body["data"][0] == {"value": "生活", "label": "生活"}
    assert [item["value"] for item in body["data"]][-1] == "社福"
    assert len(body["data"]) == 9


def test_paged_listing_wraps_items_with_page_info(api_client):
    client, repo = api_client
    for day in range(1, 6):
        repo.add(
            activity_name=f"活動 {day}",
            location="台北",
            start_date=datetime(2025, 2, day),
            status="open",
            worker_id=1,
            max_participants=10,
            current_participants=0,
        )

    response = client.get("/v1/activities", params={"page": 2, "pageSize": 2})
    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "query succeeded"
    assert body["pageInfo"] == {
        "page": 2,
        "pageSize": 2,
        "totalCount": 5,
        "totalPages": 3,
        "hasNextPage": True,
        "hasPreviousPage": True,
    }
    names = [item["activityName"] for item in body["data"]]
    assert names == ["活動 3", "活動 2"]
    assert body["data"][0]["workerName"] == "王小明"


def test_paged_listing_clamps_bad_paging(api_client):
    client, repo = api_client
    repo.add(activity_name="園遊會", status="open")
    body = client.get("/v1/activities", params={"page": 0, "pageSize": 0}).json()
    assert body["pageInfo"]["page"] == 1
    assert body["pageInfo"]["pageSize"] == get_settings().default_page_size
    assert body["pageInfo"]["hasPreviousPage"] is False


def test_paged_listing_applies_filters(api_client):
    client, repo = api_client
    repo.add(activity_name="健走活動", location="公園", status="Open ", target_audience="public")
    repo.add(activity_name="讀書會", location="圖書館", status="closed", target_audience="case")
    repo.add(activity_name="手作課", description="健走前暖身", status="open", target_audience="case")

    body = client.get("/v1/activities", params={"status": "open"}).json()
    assert {item["activityName"] for item in body["data"]} == {"健走活動", "手作課"}

    body = client.get("/v1/activities", params={"audience": "CASE", "content": "健走"}).json()
    assert [item["activityName"] for item in body["data"]] == ["手作課"]

    body = client.get("/v1/activities", params={"content": "不存在"}).json()
    assert body["data"] == []
    assert body["pageInfo"]["totalPages"] == 0
    assert body["pageInfo"]["hasNextPage"] is False


def test_get_activity_not_found_returns_failure_envelope(api_client):
    client, _ = api_client
    response = client.get("/v1/activities/999")
    assert response.status_code == 404
    body = response.json()
    assert body["success"] is False
    assert body["data"] is None
    assert body["message"] == "activity not found"
    assert body["error"] == {"status": 404}


def test_activity_status_endpoint(api_client):
    client, repo = api_client
    activity = repo.add(
        activity_name="冬令營",
        start_date=datetime(2025, 1, 10, 9, 0),
        end_date=datetime(2025, 1, 20, 17, 0),
        signup_deadline=date(2025, 1, 5),
        current_participants=5,
        max_participants=10,
        status="open",
        category="教育",
        target_audience="case",
    )
    response = client.get(f"/v1/activities/{activity.activity_id}/status")
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["timeBasedStatus"] == "ongoing"
    assert data["capacitySignal"] == "open"
    assert data["daysRemaining"] == -10
    assert data["recommendedStatus"] == "ongoing"
    assert data["statusLabel"] == "進行中"
    assert data["consistencyCheck"] == "consistent"
    assert data["rawStatus"] == "open"
    assert data["category"] == "教育"
    assert data["startDate"] == "2025-01-10"
    assert data["referenceDate"] == "2025-01-15"


def test_activity_status_accepts_reference_date(api_client):
    client, repo = api_client
    activity = repo.add(
        start_date=datetime(2025, 3, 1),
        signup_deadline=date(2025, 2, 20),
        current_participants=10,
        max_participants=10,
        status="open",
    )
    data = client.get(
        f"/v1/activities/{activity.activity_id}/status", params={"referenceDate": "2025-02-25"}
    ).json()["data"]
    assert data["timeBasedStatus"] == "signup-closed"
    assert data["recommendedStatus"] == "full-but-active"
    assert data["consistencyCheck"] == "needs-review"


def test_activity_status_unknown_activity(api_client):
    client, _ = api_client
    response = client.get("/v1/activities/42/status")
    assert response.status_code == 404
    assert response.json()["success"] is False


def test_status_listing_is_paged(api_client):
    client, repo = api_client
    repo.add(activity_name="舊活動", start_date=datetime(2024, 12, 1), end_date=datetime(2024, 12, 2), status="closed")
    repo.add(activity_name="新活動", start_date=datetime(2025, 2, 1), status="open")
    body = client.get("/v1/activities/statuses", params={"pageSize": 1}).json()
    assert body["pageInfo"]["totalCount"] == 2
    assert body["pageInfo"]["totalPages"] == 2
    assert body["data"][0]["activityName"] == "新活動"
    assert body["data"][0]["timeBasedStatus"] == "upcoming"


def test_create_activity_requires_token(api_client):
    client, _ = api_client
    response = client.post("/v1/activities", json={"activityName": "x", "maxParticipants": 5})
    assert response.status_code == 401
    assert response.json()["success"] is False


def test_create_activity_rejects_bad_token(api_client):
    client, _ = api_client
    response = client.post(
        "/v1/activities",
        json={"activityName": "x", "maxParticipants": 5},
        headers={"Authorization": "Bearer not-a-jwt"},
    )
    assert response.status_code == 401
    assert response.json()["message"] == "invalid token"


def test_create_activity_uses_worker_from_token(api_client):
    client, repo = api_client
    response = client.post(
        "/v1/activities",
        json={
            "activityName": "社區關懷",
            "location": "活動中心",
            "maxParticipants": 20,
            "startDate": "2025-03-01T09:00:00",
            "signupDeadline": "2025-02-20",
            "category": "社福",
            "workerId": 99,
        },
        headers=auth_headers(worker_id=2),
    )
    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "activity created"
    data = body["data"]
    assert data["workerId"] == 2
    assert data["workerName"] == "陳美華"
    assert data["status"] == "open"
    assert data["currentParticipants"] == 0
    assert repo.get_activity(data["activityId"]).category == "社福"


def test_create_activity_falls_back_to_subject_claim(api_client):
    client, _ = api_client
    response = client.post(
        "/v1/activities",
        json={"activityName": "健康講座", "maxParticipants": 30},
        headers=auth_headers(worker_id=None, sub="1"),
    )
    assert response.status_code == 201
    assert response.json()["data"]["workerId"] == 1


def test_create_activity_rejects_invalid_category(api_client):
    client, _ = api_client
    response = client.post(
        "/v1/activities",
        json={"activityName": "x", "maxParticipants": 5, "category": "sports"},
        headers=auth_headers(),
    )
    assert response.status_code == 400
    body = response.json()
    assert body["message"] == "invalid activity category"
    assert body["data"] is None


def test_create_activity_rejects_unknown_worker(api_client):
    client, _ = api_client
    response = client.post(
        "/v1/activities",
        json={"activityName": "x", "maxParticipants": 5},
        headers=auth_headers(worker_id=77),
    )
    assert response.status_code == 400
    assert "77" in response.json()["message"]


def test_create_activity_validation_error_is_enveloped(api_client):
    client, _ = api_client
    response = client.post("/v1/activities", json={"activityName": "x"}, headers=auth_headers())
    assert response.status_code == 422
    body = response.json()
    assert body["success"] is False
    assert body["message"] == "validation error"
    assert body["error"]["errors"]


def test_update_activity_applies_only_provided_fields(api_client):
    client, repo = api_client
    activity = repo.add(activity_name="舊名稱", location="台中", status="open", category="生活", worker_id=1)
    response = client.patch(
        f"/v1/activities/{activity.activity_id}",
        json={"activityName": "新名稱", "status": "full", "location": None},
        headers=auth_headers(),
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["activityName"] == "新名稱"
    assert data["status"] == "full"
    assert data["location"] == "台中"
    assert data["category"] == "生活"


def test_update_activity_rejects_invalid_category(api_client):
    client, repo = api_client
    activity = repo.add(activity_name="x", category="生活")
    response = client.patch(
        f"/v1/activities/{activity.activity_id}",
        json={"category": "Life"},
        headers=auth_headers(),
    )
    assert response.status_code == 400
    assert repo.get_activity(activity.activity_id).category == "生活"


def test_update_unknown_activity(api_client):
    client, _ = api_client
    response = client.patch("/v1/activities/5", json={"status": "closed"}, headers=auth_headers())
    assert response.status_code == 404


def test_delete_activity(api_client):
    client, repo = api_client
    activity = repo.add(activity_name="x")
    response = client.delete(f"/v1/activities/{activity.activity_id}", headers=auth_headers())
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"] is None
    assert repo.get_activity(activity.activity_id) is None

    again = client.delete(f"/v1/activities/{activity.activity_id}", headers=auth_headers())
    assert again.status_code == 404


def test_unknown_route_is_enveloped(api_client):
    client, _ = api_client
    response = client.get("/v1/nothing-here")
    assert response.status_code == 404
    assert response.json()["success"] is False


def test_status_discrepancy_is_counted(api_client):
    from prometheus_client import REGISTRY

    client, repo = api_client
    activity = repo.add(start_date=datetime(2024, 1, 1), end_date=datetime(2024, 1, 2), status="open")
    labels = {"recommended_status": "ended"}
    before = REGISTRY.get_sample_value("activity_status_discrepancies_total", labels) or 0.0
    data = client.get(f"/v1/activities/{activity.activity_id}/status").json()["data"]
    assert data["consistencyCheck"] == "needs-review"
    assert REGISTRY.get_sample_value("activity_status_discrepancies_total", labels) == before + 1


def test_paged_listing_caps_page_size(api_client):
    client, repo = api_client
    for number in range(150):
        repo.add(activity_name=f"活動 {number}", status="open")

    body = client.get("/v1/activities", params={"pageSize": 1000}).json()
    max_page_size = get_settings().max_page_size
    assert body["pageInfo"]["pageSize"] == max_page_size
    assert body["pageInfo"]["totalCount"] == 150
    assert body["pageInfo"]["totalPages"] == -(-150 // max_page_size)
    assert body["pageInfo"]["hasNextPage"] is True
    assert len(body["data"]) == max_page_size


class FailingRepository(FakeRepository):
    def get_activity(self, activity_id: int) -> Activity | None:
        raise RuntimeError("database unavailable")


def _failing_app() -> FastAPI:
    app = FastAPI()
    app.include_router(routes.router)
    register_exception_handlers(app)
    app.state.activity_service = ActivityService(FailingRepository(), today=lambda: TODAY)
    return app


def test_unexpected_error_is_enveloped():
    with TestClient(_failing_app(), raise_server_exceptions=False) as client:
        response = client.get("/v1/activities/1")

    assert response.status_code == 500
    body = response.json()
    assert body["success"] is False
    assert body["message"] == "internal server error"
    assert body["error"] == {"status": 500}
    assert body["data"] is None


def test_unexpected_error_envelope_carries_cors_headers():
    app = _failing_app()
    register_error_middleware(app)
    app.add_middleware(CORSMiddleware, allow_origins=["http://spa.test"], allow_methods=["*"])

    with TestClient(app, raise_server_exceptions=False) as client:
        response = client.get("/v1/activities/1", headers={"Origin": "http://spa.test"})

    assert response.status_code == 500
    assert response.headers["access-control-allow-origin"] == "http://spa.test"
    body = response.json()
    assert body["success"] is False
    assert body["message"] == "internal server error"


@pytest.mark.parametrize("worker_id", [True, 1.5, "1.5", "abc"])
def test_create_activity_rejects_non_integer_worker_claim(api_client, worker_id):
    client, repo = api_client
    response = client.post(
        "/v1/activities",
        json={"activityName": "健康講座", "maxParticipants": 30},
        headers=auth_headers(worker_id=worker_id),
    )
    assert response.status_code == 401
    assert response.json()["message"] == "token does not identify a worker"
    assert repo.count_activities(ActivityQuery()) == 0
