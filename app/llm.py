"""Thin client for the generative text model."""

import logging
from typing import Protocol

import httpx

from app.config import Settings
from app.models import ModelCallError

logger = logging.getLogger(__name__)


class ModelClient(Protocol):
    async def complete(self, prompt: str, max_tokens: int) -> str: ...


class AnthropicClient:
    """Send single-turn prompts to the Anthropic Messages API."""

    def __init__(
        self,
        api_key: str,
        model: str = "claude-3-haiku-20240307",
        base_url: str = "https://api.anthropic.com",
        version: str = "2023-06-01",
        timeout: float = 60.0,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.version = version
        self.timeout = timeout

    async def complete(self, prompt: str, max_tokens: int) -> str:
        payload = {
            "model": self.model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        headers = {
            "Content-Type": "application/json",
            "x-api-key": self.api_key,
            "anthropic-version": self.version,
        }
        logger.debug(
            "Model call: %s, %d prompt chars, max_tokens=%d",
            self.model,
            len(prompt),
            max_tokens,
        )
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/v1/messages", json=payload, headers=headers
                )
                response.raise_for_status()
        except httpx.TimeoutException:
            logger.warning("Model call timed out after %.0fs", self.timeout)
            raise ModelCallError("Model request timed out")
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.warning("Model API returned HTTP %d", status)
            raise ModelCallError(
                f"Model API returned HTTP {status}: {_error_message(e.response)}"
            )
        except httpx.RequestError as e:
            logger.warning("Model request failed: %s", e)
            raise ModelCallError(f"Model request failed: {e}")

        try:
            blocks = response.json()["content"]
            return "".join(b.get("text", "") for b in blocks if b.get("type") == "text")
        except (ValueError, KeyError, TypeError, AttributeError):
            logger.warning("Unexpected model response shape")
            raise ModelCallError("Unexpected response from model API")


def get_model_client(settings: Settings) -> AnthropicClient | None:
    """Build the configured model client, or None when no API key is set."""
    if not settings.anthropic_api_key:
        return None
    return AnthropicClient(
        api_key=settings.anthropic_api_key,
        model=settings.anthropic_model,
        base_url=settings.anthropic_base_url,
        version=settings.anthropic_version,
        timeout=settings.anthropic_timeout,
    )


def _error_message(response: httpx.Response) -> str:
    """Pull the API's own error message out of an error response, if any."""
    try:
        return response.json()["error"]["message"]
    except (ValueError, KeyError, TypeError):
        return response.reason_phrase
