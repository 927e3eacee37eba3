"""Coaching agent catalogue shared by classification, routing and program generation."""
from __future__ import annotations

from typing import Any, Literal, Tuple

AgentType = Literal[
    "Cognition",
    "Identity",
    "Mind",
    "Clinical",
    "Nutrition",
    "Training",
    "Body",
    "Sleep",
    "other",
]

AGENT_TYPES: Tuple[str, ...] = (
    "Cognition",
    "Identity",
    "Mind",
    "Clinical",
    "Nutrition",
    "Training",
    "Body",
    "Sleep",
    "other",
)

CATCH_ALL_AGENT = "other"

_BY_LOWER = {agent.lower(): agent for agent in AGENT_TYPES}


def normalize_agent_type(value: Any) -> str:
    """Map any model-supplied label onto a known agent, defaulting to the catch-all."""
    if not isinstance(value, str):
        return CATCH_ALL_AGENT
    return _BY_LOWER.get(value.strip().lower(), CATCH_ALL_AGENT)


def agent_key(agent: str) -> str:
    return agent.lower()


def agent_to_program_type(agent: str, version: str = "v1") -> str:
    """Program table type for an agent, e.g. Training -> training.v1."""
    return f"{agent_key(agent)}.{version}"


def is_program_capable(agent: str | None) -> bool:
    """Every concrete agent can own a program; the catch-all cannot."""
    return normalize_agent_type(agent) != CATCH_ALL_AGENT
