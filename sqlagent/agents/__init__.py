"""
Agents Module

Generation agents built on tool-calling sessions.
"""

from sqlagent.agents.base import BaseAgent
from sqlagent.agents.chart import ChartAgent
from sqlagent.agents.knowledge import KnowledgeAgent
from sqlagent.agents.repair import RepairAgent
from sqlagent.agents.sql import SQLAgent

__all__ = ["BaseAgent", "ChartAgent", "KnowledgeAgent", "RepairAgent", "SQLAgent"]
