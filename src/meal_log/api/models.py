"""Request models for the tool endpoints."""

from pydantic import BaseModel


class LogMealRequest(BaseModel):
    """Parameters for logging a meal."""

    description: str
    timestamp: str | None = None


class CalculateCarbsRequest(BaseModel):
    """Parameters for a carbohydrate estimate without logging."""

    meal_description: str
    ask_clarifications: bool = False


class GetMealsRequest(BaseModel):
    """Parameters for listing logged meals."""

    start_date: str | None = None
    end_date: str | None = None
    limit: int | None = None
