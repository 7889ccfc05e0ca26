"""
Pipeline Module

LangGraph ask pipeline.
"""

from sqlagent.pipeline.ask import AskPipeline, AskState, create_pipeline

__all__ = ["AskPipeline", "AskState", "create_pipeline"]
