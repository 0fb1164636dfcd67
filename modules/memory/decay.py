"""
Memory Decay Sweeper

Background task that fades salience and prunes memories below the floor.
Runs once at startup, then every sweep_interval_seconds.

With no reinforcement a memory halves in ln(0.5)/ln(rate) sweeps and is
deleted after ln(min_salience/initial)/ln(rate) sweeps (~34 and ~114 at
the defaults). Memories surfaced by retrieval get boosted and outlive this.
"""

import asyncio
import math
from typing import Optional

from modules.memory.base import MemoryStore, SweepResult
from utils.config import MemoryConfig
from utils.logger import get_logger

logger = get_logger('memory.decay')


def half_life_cycles(rate: float) -> float:
    """Sweeps until an unreinforced memory's salience halves"""
    if rate >= 1.0:
        return math.inf
    return math.log(0.5) / math.log(rate)


def cycles_until_deleted(
    rate: float,
    min_salience: float = 0.1,
    initial_salience: float = 1.0
) -> float:
    """Sweeps until an unreinforced memory drops under the deletion floor"""
    if rate >= 1.0:
        return math.inf
    return math.log(min_salience / initial_salience) / math.log(rate)


class DecaySweeper:
    """
    Periodic decay + prune of the memory store.

    Sweeps are idempotent bulk statements, so overlapping or missed runs
    only affect staleness. Errors are logged and the loop carries on.
    """

    def __init__(self, store: MemoryStore, config: Optional[MemoryConfig] = None):
        self.store = store
        self.config = config or MemoryConfig()
        self.task: Optional[asyncio.Task] = None
        self.runs = 0
        self.last_result: Optional[SweepResult] = None

    @property
    def running(self) -> bool:
        return self.task is not None and not self.task.done()

    def run_once(self) -> Optional[SweepResult]:
        """Single sweep; returns None if the store failed"""
        try:
            result = self.store.decay_sweep(
                self.config.decay_rate,
                self.config.min_salience,
                self.config.decay_grace_seconds
            )
        except Exception as e:
            logger.error(f"Decay sweep failed: {e}", exc_info=True)
            return None

        self.runs += 1
        self.last_result = result
        logger.info(
            f"Memory decay sweep complete "
            f"(decayed={result.decayed}, deleted={result.deleted})"
        )
        return result

    def start(self) -> asyncio.Task:
        """Start the background loop on the running event loop"""
        if self.running:
            return self.task

        self.task = asyncio.create_task(self._loop())
        logger.info(f"Decay sweeper started (every {self.config.sweep_interval_seconds:.0f}s)")
        return self.task

    async def stop(self):
        """Cancel the background loop and wait for it to exit"""
        if self.task is None:
            return

        self.task.cancel()
        try:
            await self.task
        except asyncio.CancelledError:
            pass
        self.task = None
        logger.info("Decay sweeper stopped")

    async def _loop(self):
        while True:
            self.run_once()
            await asyncio.sleep(self.config.sweep_interval_seconds)
