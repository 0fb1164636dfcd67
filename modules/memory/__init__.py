"""
Memory System Module

SQLite + FTS5 conversation memory with salience decay and reinforcement.
"""

from modules.memory.base import (
    # Enums
    Sector,

    # Data classes
    Memory,
    SweepResult,
    TurnClassification,

    # Errors
    MemoryStoreError,
    MemorySearchError,
    IndexConsistencyError,

    # Interfaces
    MemoryStore,
    MemoryClassifier
)

from modules.memory.sql_store import SQLStore, build_fts_query
from modules.memory.classifier import SectorClassifier, SEMANTIC_SIGNALS
from modules.memory.memory_manager import MemoryManager
from modules.memory.decay import DecaySweeper, half_life_cycles, cycles_until_deleted

__all__ = [
    # Enums
    'Sector',

    # Data classes
    'Memory',
    'SweepResult',
    'TurnClassification',

    # Errors
    'MemoryStoreError',
    'MemorySearchError',
    'IndexConsistencyError',

    # Interfaces
    'MemoryStore',
    'MemoryClassifier',

    # Implementations
    'SQLStore',
    'build_fts_query',
    'SectorClassifier',
    'SEMANTIC_SIGNALS',
    'MemoryManager',
    'DecaySweeper',
    'half_life_cycles',
    'cycles_until_deleted'
]
