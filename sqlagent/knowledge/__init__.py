"""Knowledge-base build workflow."""

from sqlagent.knowledge.builder import BuildStartResult, ConnectionBuildService

__all__ = ["BuildStartResult", "ConnectionBuildService"]
