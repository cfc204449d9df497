"""Title extraction agent."""

from __future__ import annotations

from app.ai.agents.base import BaseAgent
from app.ai.agents.prompts import clean_title, render_title_prompt


class TitleAgent(BaseAgent[str, str]):
  """Condense a lesson outline into a short display title."""

  name = "Titler"

  async def run(self, input_data: str) -> str:
    response = await self._call_model(render_title_prompt(input_data), purpose="extract_title")
    return clean_title(response.content)
