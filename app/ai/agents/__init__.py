"""Agent implementations."""

from app.ai.agents.base import BaseAgent
from app.ai.agents.code_writer import CodeWriterAgent
from app.ai.agents.repairer import RepairerAgent
from app.ai.agents.titler import TitleAgent

__all__ = ["BaseAgent", "CodeWriterAgent", "RepairerAgent", "TitleAgent"]
