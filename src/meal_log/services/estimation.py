"""Carbohydrate estimation service backed by a text-completion provider."""

import asyncio
import json
import logging
import math
from dataclasses import dataclass
from typing import Protocol

from pydantic import ValidationError

from meal_log.domain.errors import EstimationUnavailableError
from meal_log.domain.estimation import CarbEstimate, FoodEstimate
from meal_log.domain.meals import Confidence

_logger = logging.getLogger(__name__)

CARBS_TOLERANCE_G = 0.01
FALLBACK_SUMMARY_CHARS = 80
FALLBACK_CLARIFICATIONS = (
    "What was the approximate portion size?",
    "How was the food prepared (fried, baked, etc.)?",
    "Were there any sauces or condiments?",
)

SYSTEM_PROMPT = (
    "You are a nutrition assistant that estimates carbohydrates in meals. "
    "Respond with a single JSON object and nothing else, using exactly this shape: "
    '{"foods": [{"name": "<food>", "quantity": "<amount and unit>", '
    '"carbs_per_100g": <number>, "estimated_carbs": <number>, '
    '"confidence": "high|medium|low"}], '
    '"total_carbs": <number>, "confidence": "high|medium|low", '
    '"clarifications": ["<question>"], "needs_more_info": <true|false>}. '
    "All carbohydrate values are grams and must be non-negative. "
    "total_carbs is the sum of estimated_carbs over all foods."
)


class CompletionClient(Protocol):
    """Interface for text-completion providers."""

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
        """Return the provider's free-text response."""


@dataclass(frozen=True)
class EstimatorConfig:
    """Provider endpoint, credentials, and generation limits."""

    api_key: str
    model: str
    base_url: str | None = None
    max_output_tokens: int = 1024
    temperature: float | None = 0.1
    reasoning_effort: str | None = None
    store: bool = False
    timeout_seconds: float = 30.0
    retry_attempts: int = 1
    retry_delay_seconds: float = 0.5


@dataclass
class EstimationService:
    """Service that prompts the provider and parses carbohydrate estimates."""

    client: CompletionClient
    config: EstimatorConfig

    async def estimate(
        self, description: str, allow_clarifications: bool
    ) -> CarbEstimate:
        """Estimate carbohydrates for a meal description.

        Raises EstimationUnavailableError when the provider cannot be reached.
        Output that cannot be parsed degrades to the fallback estimate.
        """
        prompt = build_user_prompt(description, allow_clarifications)
        text = await self._complete_with_retry(prompt)
        return parse_estimate(text, description)

    async def _complete_with_retry(self, prompt: str) -> str:
        attempt = 0
        while True:
            try:
                return await asyncio.wait_for(
                    self.client.complete(
                        model=self.config.model,
                        instructions=SYSTEM_PROMPT,
                        prompt=prompt,
                        max_output_tokens=self.config.max_output_tokens,
                        temperature=self.config.temperature,
                        reasoning_effort=self.config.reasoning_effort,
                        store=self.config.store,
                    ),
                    timeout=self.config.timeout_seconds,
                )
            except (TimeoutError, EstimationUnavailableError) as exc:
                attempt += 1
                transient = (
                    not isinstance(exc, EstimationUnavailableError) or exc.transient
                )
                _logger.warning(
                    "Estimation call failed (attempt %s/%s): %s",
                    attempt,
                    self.config.retry_attempts + 1,
                    str(exc) or type(exc).__name__,
                )
                if not transient or attempt > self.config.retry_attempts:
                    if isinstance(exc, EstimationUnavailableError):
                        raise
                    raise EstimationUnavailableError(
                        f"Estimation timed out after {self.config.timeout_seconds}s"
                    ) from exc
                await asyncio.sleep(self.config.retry_delay_seconds)


def build_user_prompt(description: str, allow_clarifications: bool) -> str:
    """Build the user instruction embedding the meal description."""
    lines = [
        f'Estimate the carbohydrates in this meal: "{description}"',
        "Identify each food item, estimate its portion from typical servings, "
        "look up its carbohydrates per 100g, and compute the carbohydrates for "
        "the stated quantity.",
    ]
    if allow_clarifications:
        lines.append(
            "If the portion size, preparation method, or condiments are not "
            "specified, set needs_more_info to true and list short clarifying "
            "questions in clarifications."
        )
    else:
        lines.append(
            "Do not ask clarifying questions. Set needs_more_info to false and "
            "give your best estimate."
        )
    return "\n".join(lines)


def parse_estimate(text: str, description: str) -> CarbEstimate:
    """Parse provider text into an estimate, falling back when it is unusable."""
    first = text.find("{")
    last = text.rfind("}")
    if first == -1 or last <= first:
        _logger.info("Estimation fallback: no JSON object in provider output")
        return fallback_estimate(text, description)
    try:
        raw = json.loads(text[first : last + 1])
        estimate = CarbEstimate.model_validate(raw)
    except (json.JSONDecodeError, ValidationError) as exc:
        _logger.info("Estimation fallback: %s", type(exc).__name__)
        return fallback_estimate(text, description)
    if not estimate.foods and not (
        estimate.needs_more_info and any(q.strip() for q in estimate.clarifications)
    ):
        _logger.info("Estimation fallback: estimate has no food items")
        return fallback_estimate(text, description)
    return _normalize(estimate)


def fallback_estimate(text: str, description: str) -> CarbEstimate:
    """Return the low-confidence estimate used when parsing fails."""
    summary = " ".join(text.split()) or " ".join(description.split())
    if len(summary) > FALLBACK_SUMMARY_CHARS:
        summary = summary[: FALLBACK_SUMMARY_CHARS - 3].rstrip() + "..."
    food = FoodEstimate(
        name=f"Unparsed estimate: {summary}",
        quantity="unspecified",
        carbs_per_100g=0.0,
        estimated_carbs=0.0,
        confidence=Confidence.LOW,
    )
    return CarbEstimate(
        foods=[food],
        total_carbs=food.estimated_carbs,
        confidence=Confidence.LOW,
        clarifications=list(FALLBACK_CLARIFICATIONS),
        needs_more_info=True,
    )


def _normalize(estimate: CarbEstimate) -> CarbEstimate:
    total = math.fsum(food.estimated_carbs for food in estimate.foods)
    if abs(total - estimate.total_carbs) > CARBS_TOLERANCE_G:
        _logger.warning(
            "Provider total_carbs=%s disagrees with food sum=%s; using the sum",
            estimate.total_carbs,
            total,
        )
    clarifications = [
        question.strip() for question in estimate.clarifications if question.strip()
    ]
    if not estimate.needs_more_info:
        clarifications = []
    return estimate.model_copy(
        update={"total_carbs": total, "clarifications": clarifications}
    )
