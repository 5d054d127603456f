"""Application services: prompt building and the manual response orchestrator."""
from earpiece.services.prompts import build_manual_prompt, build_reconnection_context, build_system_prompt

__all__ = ["build_manual_prompt", "build_reconnection_context", "build_system_prompt"]
