"""Domain models for logged meals."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID


class Confidence(str, Enum):
    """Confidence tag attached to estimates and meals."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class MealSource(str, Enum):
    """Provenance of a meal record."""

    AI_PARSED = "ai_parsed"
    MANUAL = "manual"


@dataclass(frozen=True)
class Food:
    """Estimated food component owned by a meal."""

    name: str
    quantity: str
    carbs_per_100g: float
    estimated_carbs: float
    confidence: Confidence


@dataclass(frozen=True)
class Meal:
    """Committed meal with its food line items."""

    id: UUID
    description: str
    timestamp: datetime
    foods: list[Food]
    total_carbs: float
    confidence: Confidence
    created_at: datetime
    updated_at: datetime
    source: MealSource
