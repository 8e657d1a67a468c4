"""Knowledge-graph notifications for committed meals."""

import logging
from dataclasses import dataclass
from typing import Protocol

from meal_log.domain.meals import Food, Meal

_logger = logging.getLogger(__name__)


class MealNotifier(Protocol):
    """Sink that receives committed meals."""

    async def notify(self, meal: Meal) -> None:
        """Publish a committed meal."""


@dataclass
class LoggingMealNotifier(MealNotifier):
    """Notifier that logs the knowledge-graph entity it would publish."""

    async def notify(self, meal: Meal) -> None:
        """Log the entity built for the meal."""
        entity = build_meal_entity(meal)
        _logger.info(
            "Knowledge graph entity %s: %s",
            entity["name"],
            "; ".join(entity["observations"]),
        )


def build_meal_entity(meal: Meal) -> dict[str, object]:
    """Build the knowledge-graph entity describing a meal."""
    return {
        "name": f"Meal_{meal.timestamp.strftime('%Y-%m-%d_%H-%M')}",
        "entityType": "Meal Entry",
        "observations": [
            f"Description: {meal.description}",
            f"Total Carbs: {meal.total_carbs:.1f} g",
            f"Timestamp: {meal.timestamp.isoformat()}",
            f"Confidence: {meal.confidence.value}",
            f"Foods: {format_foods(meal.foods)}",
            f"Source: {meal.source.value}",
        ],
    }


def format_foods(foods: list[Food]) -> str:
    """Format foods as a single line."""
    return "; ".join(
        f"{food.name} ({food.quantity}, {food.estimated_carbs:.1f}g carbs)"
        for food in foods
    )
