"""Repairer agent implementation."""

from __future__ import annotations

import logging

from app.ai.agents.base import BaseAgent
from app.ai.agents.prompts import clean_code_response, render_repair_prompt
from app.ai.pipeline.contracts import DraftResult, RepairInput

logger = logging.getLogger(__name__)


class RepairerAgent(BaseAgent[RepairInput, DraftResult]):
  """Repair a draft that the static validator rejected."""

  name = "Repairer"

  async def run(self, input_data: RepairInput) -> DraftResult:
    """Send the prior draft with its exact violation list and return the cleaned fix."""
    prompt = render_repair_prompt(input_data.outline, input_data.code, input_data.violations)
    response = await self._call_model(prompt, purpose="repair_lesson")
    code = clean_code_response(response.content)
    logger.info("Repair received violations=%d chars=%d", len(input_data.violations), len(code))
    return DraftResult(code=code, usage=response.usage)
