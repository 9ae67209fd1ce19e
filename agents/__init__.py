"""Agents package: prompt-building agents over the generation backend."""

from agents.base_agent import BaseAgent
from agents.planner_agent import PlannerAgent
from agents.writer_agent import WriterAgent
from agents.consistency_agent import ConsistencyAgent
from agents.grammar_agent import GrammarAgent

__all__ = [
    "BaseAgent",
    "PlannerAgent",
    "WriterAgent",
    "ConsistencyAgent",
    "GrammarAgent",
]
