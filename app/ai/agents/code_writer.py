"""Code writer agent implementation."""

from __future__ import annotations

import logging

from app.ai.agents.base import BaseAgent
from app.ai.agents.prompts import clean_code_response, render_generation_prompt
from app.ai.pipeline.contracts import DraftResult, GenerationRequest

logger = logging.getLogger(__name__)


class CodeWriterAgent(BaseAgent[GenerationRequest, DraftResult]):
  """Write a first draft of a lesson component from an outline."""

  name = "CodeWriter"

  async def run(self, input_data: GenerationRequest) -> DraftResult:
    prompt = render_generation_prompt(input_data.outline, input_data.attempt + 1)
    response = await self._call_model(prompt, purpose="generate_lesson")
    code = clean_code_response(response.content)
    logger.info("Draft written lesson_id=%s attempt=%d chars=%d", input_data.lesson_id, input_data.attempt + 1, len(code))
    return DraftResult(code=code, usage=response.usage)
