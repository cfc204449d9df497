"""Pipeline contracts."""

from app.ai.pipeline.contracts import DraftResult, GenerationRequest, RepairInput

__all__ = ["DraftResult", "GenerationRequest", "RepairInput"]
