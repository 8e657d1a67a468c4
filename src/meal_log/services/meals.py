"""Meal logging orchestration."""

import asyncio
import logging
import math
import re
from dataclasses import dataclass
from datetime import UTC, date, datetime
from typing import Protocol
from uuid import UUID, uuid4

from meal_log.domain.errors import InvalidInputError
from meal_log.domain.estimation import CarbEstimate, ClarificationNeeded
from meal_log.domain.meals import Food, Meal, MealSource
from meal_log.services.estimation import EstimationService
from meal_log.services.notifications import MealNotifier

_logger = logging.getLogger(__name__)

DEFAULT_MEAL_LIMIT = 20
_RFC3339_PATTERN = re.compile(
    r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(\.\d{1,6})?(Z|[+-]\d{2}:\d{2})"
)


class MealRepository(Protocol):
    """Persistence interface for meals and their foods."""

    def save_meal(self, meal: Meal) -> None:
        """Insert a meal and its foods atomically."""

    def list_meals(
        self, start_date: date | None, end_date: date | None, limit: int
    ) -> list[Meal]:
        """Return meals newest first, filtered by inclusive UTC dates."""

    def get_meal(self, meal_id: UUID) -> Meal | None:
        """Return a meal by id."""

    def delete_meal(self, meal_id: UUID) -> bool:
        """Delete a meal and its foods; return whether it existed."""


@dataclass
class MealLogService:
    """Service that estimates, clarifies, and commits meals."""

    estimation_service: EstimationService
    repository: MealRepository
    notifier: MealNotifier
    notify_timeout_seconds: float = 5.0

    async def log_meal(
        self, description: str, timestamp: str | None = None
    ) -> Meal | ClarificationNeeded:
        """Estimate a meal and persist it unless clarification is needed."""
        _require_description(description)
        occurred_at = parse_timestamp(timestamp)

        estimate = await self.estimation_service.estimate(
            description, allow_clarifications=True
        )
        if estimate.needs_more_info and estimate.clarifications:
            _logger.info(
                "Meal needs clarification: questions=%s", len(estimate.clarifications)
            )
            return ClarificationNeeded(
                clarifications=list(estimate.clarifications),
                preliminary_estimate=estimate,
            )

        meal = build_meal(description, occurred_at, estimate)
        self.repository.save_meal(meal)
        _logger.info("Meal saved: id=%s total_carbs=%s", meal.id, meal.total_carbs)
        await self._notify(meal)
        return meal

    async def estimate_carbs(
        self, description: str, allow_clarifications: bool
    ) -> CarbEstimate:
        """Estimate carbohydrates without logging a meal."""
        _require_description(description)
        return await self.estimation_service.estimate(
            description, allow_clarifications=allow_clarifications
        )

    def list_meals(
        self,
        start_date: str | None = None,
        end_date: str | None = None,
        limit: int | None = None,
    ) -> list[Meal]:
        """Return logged meals newest first within an optional date range."""
        start = _parse_date(start_date, "start_date")
        end = _parse_date(end_date, "end_date")
        if start and end and start > end:
            raise InvalidInputError("start_date must not be after end_date")
        if limit is None or limit < 1:
            limit = DEFAULT_MEAL_LIMIT
        return self.repository.list_meals(start, end, limit)

    async def _notify(self, meal: Meal) -> None:
        try:
            await asyncio.wait_for(
                self.notifier.notify(meal), timeout=self.notify_timeout_seconds
            )
        except TimeoutError:
            _logger.warning("Meal notification timed out: id=%s", meal.id)
        except Exception:
            _logger.exception("Meal notification failed: id=%s", meal.id)


def build_meal(description: str, occurred_at: datetime, estimate: CarbEstimate) -> Meal:
    """Construct a committed meal from an estimate."""
    foods = [
        Food(
            name=item.name,
            quantity=item.quantity,
            carbs_per_100g=item.carbs_per_100g,
            estimated_carbs=item.estimated_carbs,
            confidence=item.confidence,
        )
        for item in estimate.foods
    ]
    now = datetime.now(tz=UTC)
    return Meal(
        id=uuid4(),
        description=description,
        timestamp=occurred_at,
        foods=foods,
        total_carbs=math.fsum(food.estimated_carbs for food in foods),
        confidence=estimate.confidence,
        created_at=now,
        updated_at=now,
        source=MealSource.AI_PARSED,
    )


def parse_timestamp(value: str | None) -> datetime:
    """Parse an RFC 3339 timestamp, defaulting to now (UTC)."""
    if value is None or not value.strip():
        return datetime.now(tz=UTC)
    raw = value.strip().upper()
    if not _RFC3339_PATTERN.fullmatch(raw):
        raise InvalidInputError(
            f"Invalid timestamp {value!r}: expected YYYY-MM-DDTHH:MM:SS with offset"
        )
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError as exc:
        raise InvalidInputError(f"Invalid timestamp {value!r}") from exc
    return parsed.astimezone(UTC)


def _parse_date(value: str | None, field: str) -> date | None:
    if value is None or not value.strip():
        return None
    try:
        return date.fromisoformat(value.strip())
    except ValueError as exc:
        raise InvalidInputError(
            f"Invalid {field} {value!r}: expected YYYY-MM-DD"
        ) from exc


def _require_description(description: str) -> None:
    if not description or not description.strip():
        raise InvalidInputError("Meal description is required")
