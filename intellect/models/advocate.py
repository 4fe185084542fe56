"""
intellect/models/advocate.py

Advocate directory models and the matcher's result.
"""

from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class Advocate(BaseModel):
    """An IP advocate eligible for matching. Read-only to the matcher."""
    model_config = ConfigDict(frozen=True)

    sl_no: int
    name: str
    short_description: str = ""
    skills: str = ""
    experience: float = 0
    gender: str = ""
    rating: float = Field(default=0, ge=0, le=10)
    email: str = ""
    country: str


class SelectedAdvocate(Advocate):
    reason: str
    confidence_score: int = Field(ge=0, le=100)


class MatchResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    selected_advocate: Optional[SelectedAdvocate] = None
    confidence: int = 0
