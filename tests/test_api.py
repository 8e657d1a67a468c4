"""Tests for the tool endpoints."""

from datetime import UTC, datetime

from fastapi.testclient import TestClient

from meal_log.api.app import create_app
from meal_log.domain.errors import EstimationUnavailableError
from tests.conftest import (
    CHICKEN_PAYLOAD,
    POTATO_PAYLOAD,
    FakeCompletionClient,
    make_meal,
)


def test_health(container) -> None:
    client = TestClient(create_app(container))

    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_log_meal_returns_committed_meal(
    container, completion_client: FakeCompletionClient, meal_repository
) -> None:
    client = TestClient(create_app(container))
    completion_client.queue_json(CHICKEN_PAYLOAD)

    response = client.post(
        "/tools/log_meal",
        json={
            "description": "grilled chicken breast with steamed broccoli, no sauce",
            "timestamp": "2024-01-15T12:30:00Z",
        },
    )

    assert response.status_code == 200
    data = response.json()
    assert data["source"] == "ai_parsed"
    assert data["timestamp"] == "2024-01-15T12:30:00+00:00"
    assert data["total_carbs"] == 6.5
    assert [food["name"] for food in data["foods"]] == [
        "grilled chicken breast",
        "steamed broccoli",
    ]
    assert len(meal_repository.meals) == 1


def test_log_meal_returns_clarifications(
    container, completion_client: FakeCompletionClient, meal_repository
) -> None:
    client = TestClient(create_app(container))
    completion_client.queue_json(POTATO_PAYLOAD)

    response = client.post("/tools/log_meal", json={"description": "a potato"})

    assert response.status_code == 200
    data = response.json()
    assert data["needs_clarification"] is True
    assert data["clarifications"] == POTATO_PAYLOAD["clarifications"]
    assert data["preliminary_analysis"]["needs_more_info"] is True
    assert meal_repository.meals == {}


def test_log_meal_rejects_bad_timestamp(container) -> None:
    client = TestClient(create_app(container))

    response = client.post(
        "/tools/log_meal", json={"description": "toast", "timestamp": "noon"}
    )

    assert response.status_code == 400
    assert response.json()["error"] == "invalid_input"


def test_log_meal_reports_unavailable_estimation(
    container, completion_client: FakeCompletionClient
) -> None:
    client = TestClient(create_app(container))
    completion_client.responses.extend(
        [EstimationUnavailableError("down"), EstimationUnavailableError("down")]
    )

    response = client.post("/tools/log_meal", json={"description": "pasta"})

    assert response.status_code == 502
    assert response.json()["error"] == "estimation_unavailable"


def test_calculate_carbs_returns_estimate(
    container, completion_client: FakeCompletionClient, meal_repository
) -> None:
    client = TestClient(create_app(container))
    completion_client.queue_json(CHICKEN_PAYLOAD)

    response = client.post(
        "/tools/calculate_carbs",
        json={"meal_description": "chicken and broccoli", "ask_clarifications": False},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["total_carbs"] == 6.5
    assert data["confidence"] == "high"
    assert data["clarifications"] == []
    assert meal_repository.meals == {}


def test_calculate_carbs_requires_description(container) -> None:
    client = TestClient(create_app(container))

    response = client.post("/tools/calculate_carbs", json={"meal_description": ""})

    assert response.status_code == 400


def test_get_meals_filters_range(container, meal_repository) -> None:
    client = TestClient(create_app(container))
    december = make_meal(datetime(2023, 12, 31, 18, 0, tzinfo=UTC))
    january = make_meal(datetime(2024, 1, 15, 12, 0, tzinfo=UTC))
    meal_repository.save_meal(december)
    meal_repository.save_meal(january)

    response = client.post(
        "/tools/get_meals",
        json={"start_date": "2024-01-01", "end_date": "2024-01-31", "limit": 10},
    )

    assert response.status_code == 200
    data = response.json()
    assert [meal["id"] for meal in data] == [str(january.id)]
    assert data[0]["foods"][0]["name"] == "white rice"


def test_get_meals_defaults_non_positive_limit(container, meal_repository) -> None:
    client = TestClient(create_app(container))
    meal = make_meal(datetime(2024, 1, 15, 12, 0, tzinfo=UTC))
    meal_repository.save_meal(meal)

    response = client.post("/tools/get_meals", json={"limit": 0})

    assert response.status_code == 200
    assert [item["id"] for item in response.json()] == [str(meal.id)]


def test_log_meal_missing_description_is_invalid_input(
    container, completion_client: FakeCompletionClient
) -> None:
    client = TestClient(create_app(container))

    response = client.post("/tools/log_meal", json={})

    assert response.status_code == 400
    data = response.json()
    assert data["error"] == "invalid_input"
    assert "description" in data["detail"]
    assert completion_client.calls == []


def test_get_meals_mistyped_limit_is_invalid_input(container) -> None:
    client = TestClient(create_app(container))

    response = client.post("/tools/get_meals", json={"limit": "many"})

    assert response.status_code == 400
    assert response.json()["error"] == "invalid_input"
