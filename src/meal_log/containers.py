"""Dependency container wiring for the application."""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from meal_log.adapters.in_memory_meal_repository import InMemoryMealRepository
from meal_log.adapters.openai_completion_client import OpenAICompletionClient
from meal_log.adapters.supabase_meal_repository import SupabaseMealRepository
from meal_log.config import Settings
from meal_log.services.estimation import EstimationService, EstimatorConfig
from meal_log.services.meals import MealLogService, MealRepository
from meal_log.services.notifications import LoggingMealNotifier

_logger = logging.getLogger(__name__)


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    estimation_service: EstimationService
    meal_log_service: MealLogService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    estimator_config = estimator_config_from_settings(resolved_settings)
    completion_client = OpenAICompletionClient.create(estimator_config)
    estimation_service = EstimationService(
        client=completion_client,
        config=estimator_config,
    )
    meal_log_service = MealLogService(
        estimation_service=estimation_service,
        repository=build_meal_repository(resolved_settings),
        notifier=LoggingMealNotifier(),
        notify_timeout_seconds=resolved_settings.notifier_timeout_seconds,
    )

    async def close_resources() -> None:
        await completion_client.close()

    return AppContainer(
        settings=resolved_settings,
        estimation_service=estimation_service,
        meal_log_service=meal_log_service,
        close_resources=close_resources,
    )


def estimator_config_from_settings(settings: Settings) -> EstimatorConfig:
    """Build estimator config from application settings."""
    return EstimatorConfig(
        api_key=settings.openai_api_key,
        base_url=settings.openai_base_url,
        model=settings.openai_model,
        max_output_tokens=settings.estimation_max_output_tokens,
        temperature=settings.estimation_temperature,
        reasoning_effort=settings.openai_reasoning_effort,
        store=settings.openai_store,
        timeout_seconds=settings.estimation_timeout_seconds,
        retry_attempts=settings.estimation_retry_attempts,
    )


def build_meal_repository(settings: Settings) -> MealRepository:
    """Return the Supabase store when configured, else the in-process store."""
    if settings.uses_supabase:
        client = create_client(settings.supabase_url, settings.supabase_service_key)
        return SupabaseMealRepository(client)
    _logger.warning("Supabase is not configured; meals are kept in memory")
    return InMemoryMealRepository()
