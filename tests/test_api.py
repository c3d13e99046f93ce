import pytest
from fastapi.testclient import TestClient

import main
from database import Base, build_engine, build_session_factory
from insight_cache import InsightCache

BUDGET = {
    "id": "b-1",
    "name": "Household",
    "cadence": {"type": "weekly", "startDate": "2025-01-06"},
    "categoryBudgets": [{"id": "a-1", "category": "Groceries", "budgetedAmount": 140}],
    "transactions": [
        {"amount": "4500", "category": "Salary", "type": "income", "date": "2025-01-06"},
        {"amount": 50, "category": " groceries", "type": "expense", "date": "2025-01-07"},
    ],
}


@pytest.fixture()
def client():
    engine = build_engine("sqlite://")
    Base.metadata.create_all(engine)
    TestingSession = build_session_factory(engine)

    def override_db():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    cache = InsightCache(max_entries=10)
    main.app.dependency_overrides[main.get_db] = override_db
    main.app.dependency_overrides[main.get_insight_cache] = lambda: cache
    try:
        yield TestClient(main.app)
    finally:
        main.app.dependency_overrides.clear()


def test_cycle_window_endpoint(client) -> None:
    resp = client.post(
        "/api/cycle-window",
        json={"cadence": {"type": "fortnightly", "startDate": "2025-01-06"}, "referenceDate": "2025-01-20"},
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["start"] == "2025-01-20"
    assert data["end"] == "2025-02-03"
    assert data["cycleLengthDays"] == 14
    assert data["elapsedRatio"] == 0
    assert data["degraded"] is False


def test_pacing_endpoint(client) -> None:
    resp = client.post("/api/pacing", json={"budget": BUDGET, "referenceDate": "2025-01-08"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["cadenceType"] == "weekly"
    assert data["cycle"]["start"] == "2025-01-06"
    assert data["categories"]["Groceries"]["status"] == "yellow"
    assert data["worstStatus"] == "yellow"


def test_reports_endpoint(client) -> None:
    resp = client.post(
        "/api/reports",
        json={"budgets": [BUDGET], "period": "month", "referenceDate": "2025-02-10"},
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["range"]["start"] == "2025-02-01T00:00:00.000"
    assert data["range"]["end"] == "2025-02-28T23:59:59.999"
    assert data["previousRange"]["label"] == "January 2025"
    assert data["totalExpenses"] == 0
    assert len(data["incomeExpenseSeries"]) == 28


def test_insights_are_cached_between_requests(client) -> None:
    body = {"userId": "alice", "budget": BUDGET, "referenceDate": "2025-01-08"}
    first = client.post("/api/insights", json=body)
    second = client.post("/api/insights", json=body)
    assert first.status_code == 200
    assert first.json()["cached"] is False
    assert second.json()["cached"] is True
    assert second.json()["insights"] == first.json()["insights"]
    assert "healthScore" in first.json()["insights"]

    forced = client.post("/api/insights", json={**body, "forceRefresh": True})
    assert forced.json()["cached"] is False


def test_insights_require_user_id(client) -> None:
    resp = client.post("/api/insights", json={"budget": BUDGET})
    assert resp.status_code == 400
    assert "user id" in resp.json()["detail"]


def test_insights_require_budget_id(client) -> None:
    budget = {key: value for key, value in BUDGET.items() if key != "id"}
    resp = client.post("/api/insights", json={"userId": "alice", "budget": budget})
    assert resp.status_code == 400
    assert "budget id" in resp.json()["detail"]


def test_dismiss_and_restore(client) -> None:
    payload = {"userId": "alice", "cycleId": "2025-01", "itemId": "tip:24-hour-rule"}
    resp = client.post("/api/insights/dismiss", json=payload)
    assert resp.status_code == 200
    assert resp.json() == {"cycleId": "2025-01", "dismissedIds": ["tip:24-hour-rule"]}

    listed = client.get(
        "/api/insights/dismissed", params={"cycle_id": "2025-01", "user_id": "alice"}
    )
    assert listed.json()["dismissedIds"] == ["tip:24-hour-rule"]

    resp = client.post("/api/insights/dismiss", json={**payload, "dismissed": False})
    assert resp.json()["dismissedIds"] == []


def test_dismiss_validates_cycle_and_user(client) -> None:
    bad_cycle = client.post(
        "/api/insights/dismiss",
        json={"userId": "alice", "cycleId": "Jan 2025", "itemId": "tip:x"},
    )
    assert bad_cycle.status_code == 422

    no_user = client.get("/api/insights/dismissed", params={"cycle_id": "2025-01"})
    assert no_user.status_code == 400
