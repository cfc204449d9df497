"""OpenRouter provider implementation using the openai SDK."""

from __future__ import annotations

import logging
import os
from typing import Final

from openai import AsyncOpenAI

from app.ai.providers.base import AIModel, ModelResponse, Provider, SimpleModelResponse

logger = logging.getLogger(__name__)


class OpenRouterModel(AIModel):
  """OpenRouter chat-completions client."""

  def __init__(self, name: str, api_key: str | None = None, base_url: str | None = None) -> None:
    self.name: str = name

    api_key = api_key or os.getenv("OPENROUTER_API_KEY")
    if not api_key:
      raise ValueError("OPENROUTER_API_KEY environment variable is required")

    self._client = AsyncOpenAI(api_key=api_key, base_url=base_url or "https://openrouter.ai/api/v1")

  async def generate(self, prompt: str) -> ModelResponse:
    """Generate text response from OpenRouter."""
    response = await self._client.chat.completions.create(model=self.name, messages=[{"role": "user", "content": prompt}])
    content = response.choices[0].message.content or "" if response.choices else ""
    logger.debug("OpenRouter response model=%s chars=%d", self.name, len(content))

    usage = None
    if response.usage:
      usage = {"prompt_tokens": response.usage.prompt_tokens, "completion_tokens": response.usage.completion_tokens, "total_tokens": response.usage.total_tokens}
    return SimpleModelResponse(content=content, usage=usage)


class OpenRouterProvider(Provider):
  """OpenRouter provider."""

  _DEFAULT_MODEL: Final[str] = "google/gemini-2.0-flash-001"
  _AVAILABLE_MODELS: Final[set[str]] = {"google/gemini-2.0-flash-001", "google/gemini-2.5-flash", "openai/gpt-4o-mini", "openai/gpt-4o", "anthropic/claude-3.5-sonnet"}

  def __init__(self, api_key: str | None = None, base_url: str | None = None) -> None:
    self.name: str = "openrouter"
    self._api_key = api_key
    self._base_url = base_url

  def get_model(self, model: str | None = None) -> AIModel:
    """Return an OpenRouter model client."""
    model_name = model or self._DEFAULT_MODEL
    if model_name not in self._AVAILABLE_MODELS:
      raise ValueError(f"Unsupported OpenRouter model '{model_name}'.")
    return OpenRouterModel(model_name, api_key=self._api_key, base_url=self._base_url)
