"""Tool-calling generation session."""

from sqlagent.generation.session import GenerationSession, SessionState

__all__ = ["GenerationSession", "SessionState"]
