"""
intellect/models/usage.py

Usage ledger models for the admission gate.
"""

from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any
from pydantic import BaseModel, ConfigDict, Field


class ActionType(str, Enum):
    """Gated actions. Each one has its own quota policy."""
    ENFORCEMENT_SEARCH = "enforcement_search"
    IMAGE_GENERATION = "image_generation"


class UsageRecord(BaseModel):
    """
    UsageRecord tracks one consumed action by one identity.

    Records are append-only: they stop counting once they fall out of the
    trailing window, they are never updated or deleted.

    Metadata can include:
    - description / country: enforcement search inputs
    - selected_advocate: name of the matched advocate
    - prompt: image prompt text
    """
    model_config = ConfigDict(frozen=True)

    identity: str
    action_type: ActionType
    occurred_at: datetime
    metadata: Optional[Dict[str, Any]] = None


class UsageCounter(BaseModel):
    """Per-identity aggregate used by the fixed-counter policy."""
    model_config = ConfigDict(frozen=True)

    identity: str
    action_type: ActionType
    count: int = Field(default=0, ge=0)
    blocked_until: Optional[datetime] = None
