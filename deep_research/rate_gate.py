"""Run-scoped pacing: the Rate Gate and the context that carries it.

Firecrawl quotas are time-windowed (searches per minute), so capping
concurrency alone is not enough; every outbound search and every
recursive descent waits on the gate first.
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Optional

from .config import AppConfig
from .events import emit

logger = logging.getLogger(__name__)

CALL = "call"
DEEP_CALL = "deep-call"


class RateGate:
    """Enforce a minimum interval between the *starts* of successive calls.

    Two independent channels: ordinary search calls and deep calls (calls
    that open a new recursive subtree). Waiters on one channel queue behind
    each other, so spacing holds no matter how many branches are waiting.
    """

    def __init__(
        self,
        call_interval: float,
        deep_call_interval: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        run_id: Optional[str] = None,
    ):
        if call_interval < 0 or deep_call_interval < 0:
            raise ValueError("rate gate intervals must be non-negative")
        if deep_call_interval < call_interval:
            raise ValueError(
                f"deep call interval ({deep_call_interval}s) must be >= "
                f"call interval ({call_interval}s)"
            )
        self.intervals: Dict[str, float] = {CALL: call_interval, DEEP_CALL: deep_call_interval}
        self._clock = clock
        self.run_id = run_id
        self._sleep = sleep
        self._locks: Dict[str, asyncio.Lock] = {CALL: asyncio.Lock(), DEEP_CALL: asyncio.Lock()}
        self._last_start: Dict[str, Optional[float]] = {CALL: None, DEEP_CALL: None}

    async def wait_for_call(self) -> float:
        """Wait until a search call may start. Returns seconds waited."""
        return await self._wait(CALL)

    async def wait_for_deep_call(self) -> float:
        """Wait until a deeper recursive call may start. Returns seconds waited."""
        return await self._wait(DEEP_CALL)

    async def _wait(self, kind: str) -> float:
        async with self._locks[kind]:
            waited = 0.0
            last = self._last_start[kind]
            if last is not None:
                remaining = self.intervals[kind] - (self._clock() - last)
                if remaining > 0:
                    logger.debug("Rate gate (%s): waiting %.2fs", kind, remaining)
                    emit({"type": "rate-wait", "run_id": self.run_id, "kind": kind, "seconds": round(remaining, 2)})
                    await self._sleep(remaining)
                    waited = remaining
            self._last_start[kind] = self._clock()
            return waited


@dataclass
class ResearchContext:
    """Everything shared by one research run: config, limiter and gate.

    Built once per run and passed down through every recursive call, so
    the limiter and gate are shared across the whole tree but never
    across runs.
    """

    config: AppConfig
    semaphore: asyncio.Semaphore
    gate: RateGate
    run_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @classmethod
    def from_config(cls, config: AppConfig, run_id: Optional[str] = None) -> "ResearchContext":
        run_id = run_id or str(uuid.uuid4())
        return cls(
            config=config,
            semaphore=asyncio.Semaphore(max(1, config.concurrency_limit)),
            gate=RateGate(config.call_interval, config.deep_call_interval, run_id=run_id),
            run_id=run_id,
        )
