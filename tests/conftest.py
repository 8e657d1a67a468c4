"""Shared test fixtures."""

import asyncio
import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import uuid4

import pytest

from meal_log.adapters.in_memory_meal_repository import InMemoryMealRepository
from meal_log.config import Settings
from meal_log.containers import AppContainer
from meal_log.domain.errors import PersistenceError
from meal_log.domain.meals import Confidence, Food, Meal, MealSource
from meal_log.services.estimation import (
    CompletionClient,
    EstimationService,
    EstimatorConfig,
)
from meal_log.services.meals import MealLogService
from meal_log.services.notifications import MealNotifier

CHICKEN_PAYLOAD: dict[str, object] = {
    "foods": [
        {
            "name": "grilled chicken breast",
            "quantity": "150g",
            "carbs_per_100g": 0.0,
            "estimated_carbs": 0.0,
            "confidence": "high",
        },
        {
            "name": "steamed broccoli",
            "quantity": "1 cup (90g)",
            "carbs_per_100g": 7.2,
            "estimated_carbs": 6.5,
            "confidence": "high",
        },
    ],
    "total_carbs": 6.5,
    "confidence": "high",
    "clarifications": [],
    "needs_more_info": False,
}

POTATO_PAYLOAD: dict[str, object] = {
    "foods": [
        {
            "name": "potato",
            "quantity": "1 medium",
            "carbs_per_100g": 17.5,
            "estimated_carbs": 30.0,
            "confidence": "low",
        }
    ],
    "total_carbs": 30.0,
    "confidence": "low",
    "clarifications": [
        "How large was the potato?",
        "Was it baked, boiled, or fried?",
    ],
    "needs_more_info": True,
}


@dataclass
class FakeCompletionClient(CompletionClient):
    """Fake completion client replaying queued responses."""

    responses: list[str | Exception] = field(default_factory=list)
    calls: list[dict[str, object]] = field(default_factory=list)
    delay_seconds: float = 0.0

    def queue_json(self, payload: dict[str, object], prose: bool = True) -> None:
        text = json.dumps(payload)
        if prose:
            text = f"Here is my analysis:\n{text}\nLet me know if you need more."
        self.responses.append(text)

    async def complete(  # noqa: PLR0913
        self,
        *,
        model: str,
        instructions: str,
        prompt: str,
        max_output_tokens: int,
        temperature: float | None,
        reasoning_effort: str | None,
        store: bool,
    ) -> str:
        self.calls.append(
            {
                "model": model,
                "instructions": instructions,
                "prompt": prompt,
                "max_output_tokens": max_output_tokens,
                "temperature": temperature,
            }
        )
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        response = self.responses.pop(0) if self.responses else ""
        if isinstance(response, Exception):
            raise response
        return response


@dataclass
class RecordingMealNotifier(MealNotifier):
    """Notifier that records meals it receives."""

    meals: list[Meal] = field(default_factory=list)

    async def notify(self, meal: Meal) -> None:
        self.meals.append(meal)


@dataclass
class FailingMealNotifier(MealNotifier):
    """Notifier that always fails."""

    attempts: int = 0

    async def notify(self, meal: Meal) -> None:
        self.attempts += 1
        raise RuntimeError("knowledge graph offline")


@dataclass
class FailingMealRepository(InMemoryMealRepository):
    """Repository whose writes always fail."""

    def save_meal(self, meal: Meal) -> None:
        raise PersistenceError("database is read-only")


def make_config(**overrides: object) -> EstimatorConfig:
    values: dict[str, object] = {
        "api_key": "openai-key",
        "model": "gpt-4o-mini",
        "timeout_seconds": 1.0,
        "retry_attempts": 1,
        "retry_delay_seconds": 0.0,
    }
    values.update(overrides)
    return EstimatorConfig(**values)


def make_meal(
    timestamp: datetime,
    foods: list[Food] | None = None,
    description: str = "rice and beans",
) -> Meal:
    resolved_foods = foods or [
        Food(
            name="white rice",
            quantity="1 cup",
            carbs_per_100g=28.0,
            estimated_carbs=45.0,
            confidence=Confidence.HIGH,
        ),
        Food(
            name="black beans",
            quantity="1/2 cup",
            carbs_per_100g=23.7,
            estimated_carbs=20.0,
            confidence=Confidence.MEDIUM,
        ),
    ]
    now = datetime(2024, 2, 1, 9, 0, tzinfo=UTC)
    return Meal(
        id=uuid4(),
        description=description,
        timestamp=timestamp,
        foods=resolved_foods,
        total_carbs=sum(food.estimated_carbs for food in resolved_foods),
        confidence=Confidence.MEDIUM,
        created_at=now,
        updated_at=now,
        source=MealSource.AI_PARSED,
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(
        openai_api_key="openai-key",
        supabase_url=None,
        supabase_service_key=None,
    )


@pytest.fixture
def completion_client() -> FakeCompletionClient:
    return FakeCompletionClient()


@pytest.fixture
def meal_repository() -> InMemoryMealRepository:
    return InMemoryMealRepository()


@pytest.fixture
def notifier() -> RecordingMealNotifier:
    return RecordingMealNotifier()


@pytest.fixture
def estimation_service(completion_client: FakeCompletionClient) -> EstimationService:
    return EstimationService(client=completion_client, config=make_config())


@pytest.fixture
def meal_log_service(
    estimation_service: EstimationService,
    meal_repository: InMemoryMealRepository,
    notifier: RecordingMealNotifier,
) -> MealLogService:
    return MealLogService(
        estimation_service=estimation_service,
        repository=meal_repository,
        notifier=notifier,
        notify_timeout_seconds=0.5,
    )


@pytest.fixture
def container(
    settings: Settings,
    estimation_service: EstimationService,
    meal_log_service: MealLogService,
) -> AppContainer:
    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        estimation_service=estimation_service,
        meal_log_service=meal_log_service,
        close_resources=close_resources,
    )

