"""OpenAI Responses API client for text completions."""

from dataclasses import dataclass

from openai import APIConnectionError, APIError, APIStatusError, AsyncOpenAI

from meal_log.domain.errors import EstimationUnavailableError
from meal_log.services.estimation import CompletionClient, EstimatorConfig


@dataclass
class OpenAICompletionClient(CompletionClient):
    """Completion client backed by OpenAI Responses API."""

    client: AsyncOpenAI

    @classmethod
    def create(cls, config: EstimatorConfig) -> "OpenAICompletionClient":
        """Create an OpenAI completion client from estimator config."""
        return cls(
            client=AsyncOpenAI(
                api_key=config.api_key,
                base_url=config.base_url,
                timeout=config.timeout_seconds,
                max_retries=0,
            )
        )

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
        """Call OpenAI Responses API and return the output text."""
        request_payload: dict[str, object] = {
            "model": model,
            "instructions": instructions,
            "input": prompt,
            "max_output_tokens": max_output_tokens,
            "store": store,
        }
        if temperature is not None:
            request_payload["temperature"] = temperature
        if reasoning_effort:
            request_payload["reasoning"] = {"effort": reasoning_effort}

        try:
            response = await self.client.responses.create(**request_payload)
        except APIError as exc:
            raise EstimationUnavailableError(
                f"OpenAI request failed: {type(exc).__name__}: {exc}",
                transient=_is_transient(exc),
            ) from exc
        return response.output_text or ""

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.close()


def _is_transient(exc: APIError) -> bool:
    if isinstance(exc, APIConnectionError):
        return True
    if isinstance(exc, APIStatusError):
        return exc.status_code == 429 or exc.status_code >= 500
    return False
