"""
Memory Classifier

Rule-based decision over one conversation turn:
1. Skip (noise: short utterances, bot commands)
2. Semantic (first-person facts and preferences)
3. Episodic (everything else)
"""

import re
from typing import Optional, Pattern

from modules.memory.base import MemoryClassifier, TurnClassification, Sector
from utils.config import MemoryConfig
from utils.logger import get_logger

logger = get_logger('memory.classifier')

# Whole-word, case-insensitive
SEMANTIC_SIGNALS = re.compile(
    r"\b(my|i am|i'm|i prefer|remember|always|never)\b",
    re.IGNORECASE
)


class SectorClassifier(MemoryClassifier):
    """
    Lexicon-based memory classifier.

    Decides whether a turn should be stored at all and, if so, under
    which sector the user's utterance belongs. The assistant reply, when
    stored, is always episodic.
    """

    def __init__(
        self,
        min_length: int = 20,
        command_prefix: str = "/",
        signals: Pattern = SEMANTIC_SIGNALS
    ):
        self.min_length = min_length
        self.command_prefix = command_prefix
        self.signals = signals

    @classmethod
    def from_config(cls, config: MemoryConfig) -> "SectorClassifier":
        return cls(
            min_length=config.min_message_length,
            command_prefix=config.command_prefix
        )

    def classify(
        self,
        user_input: str,
        assistant_response: str = ""
    ) -> TurnClassification:
        """
        Classify a turn's memory worth.

        Args:
            user_input: What the user said
            assistant_response: What the assistant replied

        Returns:
            TurnClassification (should_store, sector, store_reply)
        """
        if len(user_input) <= self.min_length:
            return TurnClassification(
                should_store=False,
                reason=f"utterance too short ({len(user_input)} chars)"
            )

        if self.command_prefix and user_input.startswith(self.command_prefix):
            return TurnClassification(
                should_store=False,
                reason="command"
            )

        signal = self.matched_signal(user_input)
        sector = Sector.SEMANTIC if signal else Sector.EPISODIC
        store_reply = bool(assistant_response) and len(assistant_response) > self.min_length

        logger.debug(f"Classified as {sector.value} (store_reply={store_reply})")

        return TurnClassification(
            should_store=True,
            sector=sector,
            store_reply=store_reply,
            reason=f"signal '{signal}'" if signal else "no semantic signal"
        )

    def matched_signal(self, text: str) -> Optional[str]:
        """The first semantic signal found in text, if any"""
        match = self.signals.search(text)
        return match.group(0) if match else None
