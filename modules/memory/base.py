"""
Memory System - Base Interfaces

Data classes, enums and abstract interfaces shared by the store,
the classifier and the memory manager.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, List, Dict, Any
from enum import Enum
from datetime import datetime


class Sector(Enum):
    """Memory sectors"""
    SEMANTIC = "semantic"    # Durable fact / preference about the user
    EPISODIC = "episodic"    # Transient conversational context


class MemoryStoreError(Exception):
    """Base error raised by memory storage"""


class MemorySearchError(MemoryStoreError):
    """The search index could not be queried"""


class IndexConsistencyError(MemoryStoreError):
    """Search index no longer mirrors the memory table"""


@dataclass
class Memory:
    """A single remembered snippet, owned by one conversation"""
    id: Optional[int] = None
    owner: str = ""
    content: str = ""
    sector: Sector = Sector.EPISODIC
    salience: float = 1.0
    created_at: float = 0.0
    accessed_at: float = 0.0
    topic_key: Optional[str] = None

    def snippet(self, max_chars: int = 100) -> str:
        """Truncated content for display"""
        if len(self.content) <= max_chars:
            return self.content
        return self.content[:max_chars - 3] + "..."

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for display / JSON"""
        return {
            'id': self.id,
            'owner': self.owner,
            'content': self.content,
            'sector': self.sector.value,
            'salience': self.salience,
            'topic_key': self.topic_key,
            'created_at': datetime.fromtimestamp(self.created_at).isoformat(),
            'accessed_at': datetime.fromtimestamp(self.accessed_at).isoformat()
        }


@dataclass
class SweepResult:
    """Outcome of one decay sweep"""
    decayed: int = 0
    deleted: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {'decayed': self.decayed, 'deleted': self.deleted}


@dataclass
class TurnClassification:
    """Result of classifying one conversation turn"""
    should_store: bool
    sector: Optional[Sector] = None
    store_reply: bool = False
    reason: str = ""


# Abstract Interfaces

class MemoryStore(ABC):
    """Base interface for memory storage"""

    @abstractmethod
    def initialize(self):
        """Initialize storage (create tables, etc.)"""
        pass

    @abstractmethod
    def insert(
        self,
        owner: str,
        content: str,
        sector: Sector,
        topic_key: Optional[str] = None
    ) -> int:
        """Store a memory and return its ID"""
        pass

    @abstractmethod
    def search(self, owner: str, query: str, limit: int = 3) -> List[Memory]:
        """Relevance search within one owner's memories"""
        pass

    @abstractmethod
    def recent(self, owner: str, limit: int = 5) -> List[Memory]:
        """Most recently accessed memories for an owner"""
        pass

    @abstractmethod
    def list_for_display(self, owner: str, limit: int = 10) -> List[Memory]:
        """Newest memories for an owner, without reinforcing them"""
        pass

    @abstractmethod
    def get_stats(self) -> Dict[str, Any]:
        """Storage statistics"""
        pass

    @abstractmethod
    def touch(self, memory_id: int, owner: Optional[str] = None):
        """Reinforce a memory (refresh access time, boost salience)"""
        pass

    @abstractmethod
    def decay_sweep(
        self,
        rate: float,
        min_salience: float,
        grace_seconds: Optional[float] = None
    ) -> SweepResult:
        """Fade old memories and prune the ones below the floor"""
        pass


class MemoryClassifier(ABC):
    """Base interface for memory classification"""

    @abstractmethod
    def classify(
        self,
        user_input: str,
        assistant_response: str = ""
    ) -> TurnClassification:
        """Decide whether and how a turn should be remembered"""
        pass
