"""Base class for AI agents."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Generic, TypeVar

from app.ai.backoff import retry_with_backoff
from app.ai.errors import TransportFailure
from app.ai.providers.base import AIModel, ModelResponse

InputT = TypeVar("InputT")
OutputT = TypeVar("OutputT")


class BaseAgent(ABC, Generic[InputT, OutputT]):
  """Base agent with shared dependencies."""

  name: str

  def __init__(self, *, model: AIModel, prov: str, delays: tuple[float, ...] | None = None) -> None:
    self._model = model
    self._provider_name = prov
    self._delays = delays

  @abstractmethod
  async def run(self, input_data: InputT) -> OutputT:
    """Run the agent on input data."""

  async def _call_model(self, prompt: str, *, purpose: str) -> ModelResponse:
    """Call the model with quota backoff; an empty reply counts as a transport failure."""
    if self._delays is None:
      response = await retry_with_backoff(self._model.generate, prompt)
    else:
      response = await retry_with_backoff(self._model.generate, prompt, delays=self._delays)

    if not (response.content or "").strip():
      raise TransportFailure(f"{self.name} received an empty response from {self._provider_name} ({purpose})")

    return response
