"""Schemas for the insights endpoint."""
from __future__ import annotations

from typing import List

from pydantic import BaseModel


class Observations(BaseModel):
    cognition: str
    identity: str
    mind: str
    clinical: str
    nutrition: str
    training: str
    body: str
    sleep: str


class NextAction(BaseModel):
    title: str
    text: str


class InsightsResponse(BaseModel):
    observations: Observations
    next_actions: List[NextAction]
    reveal: str
