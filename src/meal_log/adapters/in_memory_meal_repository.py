"""In-process meal repository."""

import threading
from dataclasses import dataclass, field, replace
from datetime import UTC, date
from uuid import UUID

from meal_log.domain.errors import PersistenceError
from meal_log.domain.meals import Food, Meal
from meal_log.services.meals import MealRepository


@dataclass
class InMemoryMealRepository(MealRepository):
    """Thread-safe in-process meal store for local runs and tests.

    Meals and foods are kept in separate tables keyed the same way as the
    database layout, so foods are ordered by an increasing sequence and are
    removed together with their meal.
    """

    meals: dict[UUID, Meal] = field(default_factory=dict)
    foods: dict[int, tuple[UUID, Food]] = field(default_factory=dict)
    _next_food_id: int = 1
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def save_meal(self, meal: Meal) -> None:
        """Insert a meal and its foods in one step."""
        with self._lock:
            if meal.id in self.meals:
                raise PersistenceError(f"Meal {meal.id} already exists")
            self.meals[meal.id] = replace(meal, foods=[])
            for food in meal.foods:
                self.foods[self._next_food_id] = (meal.id, food)
                self._next_food_id += 1

    def list_meals(
        self, start_date: date | None, end_date: date | None, limit: int
    ) -> list[Meal]:
        """Return meals newest first within the inclusive UTC date range."""
        with self._lock:
            selected = [
                meal
                for meal in self.meals.values()
                if _in_range(meal, start_date, end_date)
            ]
            selected.sort(key=lambda meal: meal.timestamp, reverse=True)
            return [self._with_foods(meal) for meal in selected[:limit]]

    def get_meal(self, meal_id: UUID) -> Meal | None:
        """Return a meal by id."""
        with self._lock:
            meal = self.meals.get(meal_id)
            return self._with_foods(meal) if meal else None

    def delete_meal(self, meal_id: UUID) -> bool:
        """Delete a meal and its foods."""
        with self._lock:
            if self.meals.pop(meal_id, None) is None:
                return False
            for food_id in [
                key for key, (owner, _) in self.foods.items() if owner == meal_id
            ]:
                del self.foods[food_id]
            return True

    def _with_foods(self, meal: Meal) -> Meal:
        foods = [
            food
            for _, (owner, food) in sorted(self.foods.items())
            if owner == meal.id
        ]
        return replace(meal, foods=foods)


def _in_range(meal: Meal, start_date: date | None, end_date: date | None) -> bool:
    day = meal.timestamp.astimezone(UTC).date()
    if start_date and day < start_date:
        return False
    return not (end_date and day > end_date)
