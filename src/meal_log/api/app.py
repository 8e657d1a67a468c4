"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from meal_log.api.models import CalculateCarbsRequest, GetMealsRequest, LogMealRequest
from meal_log.app_logging import configure_logging
from meal_log.containers import AppContainer
from meal_log.domain.errors import (
    CorruptRecordError,
    EstimationUnavailableError,
    InvalidInputError,
    MealLogError,
    PersistenceError,
)
from meal_log.domain.estimation import ClarificationNeeded
from meal_log.domain.meals import Food, Meal

_ERROR_STATUS: dict[type[MealLogError], int] = {
    InvalidInputError: 400,
    EstimationUnavailableError: 502,
    PersistenceError: 503,
    CorruptRecordError: 500,
}


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    @app.exception_handler(MealLogError)
    async def meal_log_error_handler(
        request: Request, exc: MealLogError
    ) -> JSONResponse:
        status_code = _ERROR_STATUS.get(type(exc), 500)
        if status_code >= 500:
            logger.error("Request failed: %s %s: %s", request.url.path, exc.kind, exc)
        return JSONResponse(
            status_code=status_code,
            content={"error": exc.kind, "detail": str(exc)},
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        detail = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        )
        return JSONResponse(
            status_code=400,
            content={"error": InvalidInputError.kind, "detail": detail},
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.post("/tools/log_meal")
    async def log_meal(body: LogMealRequest, request: Request) -> dict[str, object]:
        """Estimate and log a meal, or return clarifying questions."""
        state_container: AppContainer = request.app.state.container
        result = await state_container.meal_log_service.log_meal(
            body.description, body.timestamp
        )
        if isinstance(result, ClarificationNeeded):
            return {
                "needs_clarification": True,
                "clarifications": result.clarifications,
                "preliminary_analysis": result.preliminary_estimate.model_dump(
                    mode="json"
                ),
            }
        return meal_payload(result)

    @app.post("/tools/calculate_carbs")
    async def calculate_carbs(
        body: CalculateCarbsRequest, request: Request
    ) -> dict[str, object]:
        """Estimate carbohydrates without logging."""
        state_container: AppContainer = request.app.state.container
        estimate = await state_container.meal_log_service.estimate_carbs(
            body.meal_description, body.ask_clarifications
        )
        return estimate.model_dump(mode="json")

    @app.post("/tools/get_meals")
    async def get_meals(
        body: GetMealsRequest, request: Request
    ) -> list[dict[str, object]]:
        """Return logged meals, newest first."""
        state_container: AppContainer = request.app.state.container
        meals = state_container.meal_log_service.list_meals(
            body.start_date, body.end_date, body.limit
        )
        return [meal_payload(meal) for meal in meals]

    return app


def meal_payload(meal: Meal) -> dict[str, object]:
    """Serialize a meal for API responses."""
    return {
        "id": str(meal.id),
        "description": meal.description,
        "timestamp": meal.timestamp.isoformat(),
        "foods": [_food_payload(food) for food in meal.foods],
        "total_carbs": meal.total_carbs,
        "confidence": meal.confidence.value,
        "created_at": meal.created_at.isoformat(),
        "updated_at": meal.updated_at.isoformat(),
        "source": meal.source.value,
    }


def _food_payload(food: Food) -> dict[str, object]:
    return {
        "name": food.name,
        "quantity": food.quantity,
        "carbs_per_100g": food.carbs_per_100g,
        "estimated_carbs": food.estimated_carbs,
        "confidence": food.confidence.value,
    }
