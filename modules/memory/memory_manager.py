"""
Memory Manager - Main Orchestrator

Coordinates classification, storage, and retrieval of memories.
This is the interface the conversation bridge talks to:

    context = memory.build_context(owner, user_message)   # before inference
    memory.record_turn(owner, user_message, reply)        # after inference
"""

from typing import Optional, List, Dict, Any

from modules.memory.base import (
    Memory, MemoryStore, MemoryClassifier, Sector, SweepResult,
    TurnClassification, MemorySearchError
)
from modules.memory.classifier import SectorClassifier
from modules.memory.sql_store import SQLStore
from utils.config import MemoryConfig
from utils.logger import get_logger

logger = get_logger('memory.manager')

CONTEXT_HEADER = "[Memory context]"


class MemoryManager:
    """
    Main memory orchestrator.

    Handles the complete flow:
    1. Classify each finished turn and store what is worth keeping
    2. Before each reply, merge relevant and recent memories into a
       context block, reinforcing everything it surfaces
    3. Expose a read-only view and the decay sweep
    """

    def __init__(
        self,
        store: MemoryStore,
        classifier: Optional[MemoryClassifier] = None,
        config: Optional[MemoryConfig] = None
    ):
        self.config = config or MemoryConfig()
        self.store = store
        self.classifier = classifier or SectorClassifier.from_config(self.config)

        logger.info("Memory manager initialized")

    @classmethod
    def from_config(cls, config: MemoryConfig, **store_kwargs) -> "MemoryManager":
        """Build a manager backed by an initialized SQLStore"""
        store = SQLStore(config=config, **store_kwargs)
        store.initialize()
        return cls(store, config=config)

    # Write path

    def record_turn(
        self,
        owner: str,
        user_message: str,
        assistant_reply: str = ""
    ) -> TurnClassification:
        """
        Persist a conversation turn.

        Call this after each inference response. Storage errors are not
        caught: the caller decides whether to retry or drop the turn.

        Args:
            owner: Conversation/channel identifier
            user_message: What the user said
            assistant_reply: What the assistant replied

        Returns:
            TurnClassification showing what was stored
        """
        classification = self.classifier.classify(user_message, assistant_reply)

        if not classification.should_store:
            logger.debug(f"[{owner}] Turn skipped ({classification.reason})")
            return classification

        memory_id = self.store.insert(owner, user_message, classification.sector)
        logger.info(f"[{owner}] Stored turn as {classification.sector.value} (id={memory_id})")

        if classification.store_reply:
            reply_id = self.store.insert(owner, assistant_reply, Sector.EPISODIC)
            logger.debug(f"[{owner}] Stored reply as episodic (id={reply_id})")

        return classification

    # Read path

    def retrieve(self, owner: str, user_message: str) -> List[Memory]:
        """
        Select memories for the next turn.

        Relevance results come first, then recent ones not already
        selected, capped at max_context_memories. Every selected memory
        is touched. Never raises: a failing query just contributes
        nothing.
        """
        relevant: List[Memory] = []
        recent: List[Memory] = []

        try:
            relevant = self.store.search(owner, user_message, self.config.relevance_limit)
        except MemorySearchError as e:
            logger.warning(f"[{owner}] Search failed, using recent memories only: {e}")
        except Exception as e:
            logger.error(f"[{owner}] Memory search error: {e}")

        try:
            recent = self.store.recent(owner, self.config.recency_limit)
        except Exception as e:
            logger.error(f"[{owner}] Recent memory lookup error: {e}")

        selected = self._merge(relevant, recent)[:self.config.max_context_memories]

        for memory in selected:
            try:
                self.store.touch(memory.id, owner=owner)
            except Exception as e:
                logger.warning(f"[{owner}] Failed to reinforce memory {memory.id}: {e}")

        logger.debug(
            f"[{owner}] Selected {len(selected)} memories "
            f"({len(relevant)} relevant, {len(recent)} recent)"
        )
        return selected

    def build_context(self, owner: str, user_message: str) -> str:
        """
        Build the memory block prepended to the next prompt.

        Returns:
            Formatted context, or "" when there is nothing to inject
        """
        try:
            memories = self.retrieve(owner, user_message)
            return self.format_context_for_prompt(memories)
        except Exception as e:
            logger.error(f"[{owner}] Context build failed: {e}", exc_info=True)
            return ""

    def _merge(self, relevant: List[Memory], recent: List[Memory]) -> List[Memory]:
        """Relevance-first union of both result lists, deduplicated by id"""
        seen = set()
        merged = []

        for memory in relevant + recent:
            if memory.id in seen:
                continue
            seen.add(memory.id)
            merged.append(memory)

        return merged

    def format_context_for_prompt(self, memories: List[Memory]) -> str:
        """
        Format memories for prompt injection.

        One line per memory, tagged with its sector:

            [Memory context]
            - I prefer dark mode in every app (semantic)
        """
        if not memories:
            return ""

        lines = [CONTEXT_HEADER]
        for memory in memories:
            lines.append(f"- {memory.content} ({memory.sector.value})")

        return "\n".join(lines)

    # Inspection & maintenance

    def list_recent(self, owner: str, limit: int = 10) -> List[Memory]:
        """Read-only view of an owner's newest memories (no reinforcement)"""
        return self.store.list_for_display(owner, limit)

    def run_decay_sweep(self) -> SweepResult:
        """One decay + prune pass with the configured rate and floor"""
        return self.store.decay_sweep(
            self.config.decay_rate,
            self.config.min_salience,
            self.config.decay_grace_seconds
        )

    def get_stats(self) -> Dict[str, Any]:
        """Get memory system statistics"""
        stats = self.store.get_stats()
        stats['config'] = {
            'decay_rate': self.config.decay_rate,
            'min_salience': self.config.min_salience,
            'max_context_memories': self.config.max_context_memories,
            'relevance_limit': self.config.relevance_limit,
            'recency_limit': self.config.recency_limit
        }
        return stats
