"""Models for carbohydrate estimation results."""

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field, field_validator

from meal_log.domain.meals import Confidence


class FoodEstimate(BaseModel):
    """Single estimated food item."""

    model_config = ConfigDict(allow_inf_nan=False)

    name: str = Field(min_length=1)
    quantity: str = ""
    carbs_per_100g: float = Field(default=0.0, ge=0.0)
    estimated_carbs: float = Field(ge=0.0)
    confidence: Confidence = Confidence.MEDIUM

    @field_validator("confidence", mode="before")
    @classmethod
    def _lower_confidence(cls, value: object) -> object:
        return value.strip().lower() if isinstance(value, str) else value


class CarbEstimate(BaseModel):
    """Structured carbohydrate breakdown for a meal description."""

    model_config = ConfigDict(allow_inf_nan=False)

    foods: list[FoodEstimate]
    total_carbs: float = Field(default=0.0, ge=0.0)
    confidence: Confidence = Confidence.LOW
    clarifications: list[str] = Field(default_factory=list)
    needs_more_info: bool = False

    @field_validator("confidence", mode="before")
    @classmethod
    def _lower_confidence(cls, value: object) -> object:
        return value.strip().lower() if isinstance(value, str) else value


@dataclass(frozen=True)
class ClarificationNeeded:
    """Outcome returned instead of a meal when more detail is required."""

    clarifications: list[str]
    preliminary_estimate: CarbEstimate
