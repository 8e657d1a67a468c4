"""Supabase repository for meals."""

from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from uuid import UUID

import httpx
from postgrest.exceptions import APIError as PostgrestAPIError
from supabase import Client

from meal_log.domain.errors import CorruptRecordError, PersistenceError
from meal_log.domain.meals import Confidence, Food, Meal, MealSource
from meal_log.services.meals import MealRepository

_MEAL_COLUMNS = (
    "id, description, timestamp, total_carbs, confidence, created_at, "
    "updated_at, source"
)
_FOOD_COLUMNS = "id, name, quantity, carbs_per_100g, estimated_carbs, confidence"
_STORAGE_ERRORS = (PostgrestAPIError, httpx.HTTPError)


@dataclass
class SupabaseMealRepository(MealRepository):
    """Supabase implementation for meals.

    Inserts go through the ``save_meal`` database function so the header and
    its foods are written in a single transaction.
    """

    client: Client

    def save_meal(self, meal: Meal) -> None:
        """Insert a meal and its foods atomically."""
        try:
            self.client.rpc(
                "save_meal",
                {
                    "p_meal": {
                        "id": str(meal.id),
                        "description": meal.description,
                        "timestamp": meal.timestamp.isoformat(),
                        "total_carbs": meal.total_carbs,
                        "confidence": meal.confidence.value,
                        "created_at": meal.created_at.isoformat(),
                        "updated_at": meal.updated_at.isoformat(),
                        "source": meal.source.value,
                    },
                    "p_foods": [
                        {
                            "name": food.name,
                            "quantity": food.quantity,
                            "carbs_per_100g": food.carbs_per_100g,
                            "estimated_carbs": food.estimated_carbs,
                            "confidence": food.confidence.value,
                        }
                        for food in meal.foods
                    ],
                },
            ).execute()
        except _STORAGE_ERRORS as exc:
            raise PersistenceError(f"Failed to save meal {meal.id}: {exc}") from exc

    def list_meals(
        self, start_date: date | None, end_date: date | None, limit: int
    ) -> list[Meal]:
        """Return meals newest first within the inclusive UTC date range."""
        query = self.client.table("meals").select(
            f"{_MEAL_COLUMNS}, foods({_FOOD_COLUMNS})"
        )
        if start_date:
            query = query.gte("timestamp", _day_start(start_date).isoformat())
        if end_date:
            query = query.lt(
                "timestamp", _day_start(end_date + timedelta(days=1)).isoformat()
            )
        try:
            response = query.order("timestamp", desc=True).limit(limit).execute()
        except _STORAGE_ERRORS as exc:
            raise PersistenceError(f"Failed to query meals: {exc}") from exc
        return [_parse_meal(row) for row in response.data or []]

    def get_meal(self, meal_id: UUID) -> Meal | None:
        """Return a meal by id."""
        try:
            response = (
                self.client.table("meals")
                .select(f"{_MEAL_COLUMNS}, foods({_FOOD_COLUMNS})")
                .eq("id", str(meal_id))
                .limit(1)
                .execute()
            )
        except _STORAGE_ERRORS as exc:
            raise PersistenceError(f"Failed to load meal {meal_id}: {exc}") from exc
        if not response.data:
            return None
        return _parse_meal(response.data[0])

    def delete_meal(self, meal_id: UUID) -> bool:
        """Delete a meal; foods are removed by the cascading foreign key."""
        try:
            response = (
                self.client.table("meals").delete().eq("id", str(meal_id)).execute()
            )
        except _STORAGE_ERRORS as exc:
            raise PersistenceError(f"Failed to delete meal {meal_id}: {exc}") from exc
        return bool(response.data)


def _day_start(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=UTC)


def _parse_meal(row: dict[str, object]) -> Meal:
    try:
        food_rows = sorted(row.get("foods") or [], key=lambda food: int(food["id"]))
        return Meal(
            id=UUID(str(row["id"])),
            description=str(row["description"]),
            timestamp=_parse_datetime(row["timestamp"]),
            foods=[_parse_food(food) for food in food_rows],
            total_carbs=float(row["total_carbs"]),
            confidence=Confidence(row["confidence"]),
            created_at=_parse_datetime(row["created_at"]),
            updated_at=_parse_datetime(row["updated_at"]),
            source=MealSource(row["source"]),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise CorruptRecordError(
            f"Stored meal {row.get('id')!r} is malformed: {exc}"
        ) from exc


def _parse_food(row: dict[str, object]) -> Food:
    return Food(
        name=str(row["name"]),
        quantity=str(row["quantity"]),
        carbs_per_100g=float(row["carbs_per_100g"]),
        estimated_carbs=float(row["estimated_carbs"]),
        confidence=Confidence(row["confidence"]),
    )


def _parse_datetime(value: object) -> datetime:
    if not isinstance(value, str):
        raise TypeError(f"expected ISO timestamp string, got {type(value).__name__}")
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        raise ValueError(f"timestamp {value!r} has no UTC offset")
    return parsed.astimezone(UTC)
