"""
Memory Routes - Context Injection, Turn Recording & Inspection
"""

import sqlite3
from typing import List
from fastapi import APIRouter, Depends, HTTPException, Query

from api.models import (
    ContextRequest, ContextResponse, TurnRequest, TurnResponse,
    MemoryItem, SweepResponse, StatsResponse
)
from api.dependencies import get_memory_manager
from modules.memory import MemoryManager, MemoryStoreError
from utils.logger import get_logger

logger = get_logger('api.routes.memory')

router = APIRouter(prefix="/api/memory", tags=["memory"])


@router.post("/context", response_model=ContextResponse)
async def build_context(
    request: ContextRequest,
    memory: MemoryManager = Depends(get_memory_manager)
):
    """Memory block to prepend to the next prompt ("" if none)"""
    context = memory.build_context(request.owner, request.message)

    return ContextResponse(
        owner=request.owner,
        context=context,
        has_context=bool(context)
    )


@router.post("/turns", response_model=TurnResponse)
async def record_turn(
    request: TurnRequest,
    memory: MemoryManager = Depends(get_memory_manager)
):
    """Persist a finished conversation turn"""
    try:
        classification = memory.record_turn(
            request.owner,
            request.user_message,
            request.assistant_reply
        )
    except (sqlite3.Error, MemoryStoreError) as e:
        logger.error(f"[{request.owner}] Record turn error: {e}")
        raise HTTPException(status_code=503, detail="Memory store unavailable")

    return TurnResponse(
        owner=request.owner,
        stored=classification.should_store,
        sector=classification.sector.value if classification.sector else None,
        reply_stored=classification.store_reply,
        reason=classification.reason
    )


@router.get("/stats", response_model=StatsResponse)
async def get_stats(memory: MemoryManager = Depends(get_memory_manager)):
    """Memory system statistics"""
    try:
        return StatsResponse(**memory.get_stats())
    except sqlite3.Error as e:
        logger.error(f"Stats error: {e}")
        raise HTTPException(status_code=503, detail="Memory store unavailable")


@router.post("/sweep", response_model=SweepResponse)
async def run_sweep(memory: MemoryManager = Depends(get_memory_manager)):
    """Run one decay sweep now"""
    try:
        result = memory.run_decay_sweep()
    except sqlite3.Error as e:
        logger.error(f"Sweep error: {e}")
        raise HTTPException(status_code=503, detail="Memory store unavailable")

    return SweepResponse(**result.to_dict())


@router.get("/owners/{owner}", response_model=List[MemoryItem])
async def list_memories(
    owner: str,
    limit: int = Query(10, ge=1, le=100),
    memory: MemoryManager = Depends(get_memory_manager)
):
    """Newest memories for an owner (read-only, full content)"""
    try:
        memories = memory.list_recent(owner, limit)
    except sqlite3.Error as e:
        logger.error(f"[{owner}] List memories error: {e}")
        raise HTTPException(status_code=503, detail="Memory store unavailable")

    return [
        MemoryItem(
            id=m.id,
            content=m.content,
            sector=m.sector.value,
            salience=m.salience,
            created_at=m.to_dict()['created_at']
        )
        for m in memories
    ]
