"""
API Models - Request/Response Schemas

All Pydantic models for API validation.
"""

from typing import Optional, Dict, Any
from pydantic import BaseModel, Field


# ============================================
# BRIDGE MODELS
# ============================================

class ContextRequest(BaseModel):
    owner: str = Field(..., min_length=1)
    message: str


class ContextResponse(BaseModel):
    owner: str
    context: str
    has_context: bool


class TurnRequest(BaseModel):
    owner: str = Field(..., min_length=1)
    user_message: str
    assistant_reply: str = ""


class TurnResponse(BaseModel):
    owner: str
    stored: bool
    sector: Optional[str] = None
    reply_stored: bool = False
    reason: str = ""


# ============================================
# INSPECTION MODELS
# ============================================

class MemoryItem(BaseModel):
    id: int
    content: str
    sector: str
    salience: float
    created_at: str


class SweepResponse(BaseModel):
    decayed: int
    deleted: int


class StatsResponse(BaseModel):
    total_memories: int
    owners: int
    semantic: int
    episodic: int
    average_salience: float
    indexed: int
    config: Dict[str, Any]
