"""
API Dependencies - Shared Resources

Holds the memory handles built at startup and provides them to routes.
"""

from typing import Optional
from fastapi import HTTPException

from modules.memory import MemoryManager, DecaySweeper
from utils.logger import get_logger

logger = get_logger('api.dependencies')

# ============================================
# PROCESS STATE (set by api.main on startup)
# ============================================

memory_manager: Optional[MemoryManager] = None
decay_sweeper: Optional[DecaySweeper] = None


# ============================================
# DEPENDENCY FUNCTIONS
# ============================================

def get_memory_manager() -> MemoryManager:
    """
    Get memory manager.

    Raises:
        HTTPException: If the memory system is not ready
    """
    if memory_manager is None:
        logger.warning("Memory requested before the service finished starting")
        raise HTTPException(status_code=503, detail="Memory system not ready")
    return memory_manager


def get_decay_sweeper() -> Optional[DecaySweeper]:
    """Get decay sweeper (None when not running)"""
    return decay_sweeper
