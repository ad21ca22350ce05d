from __future__ import annotations
import asyncio
import logging
import math
from typing import Callable, Optional

from config import COOKING_MINUTES, COOKING_POLL_SECONDS
from lifecycle import now_ms

logger = logging.getLogger(__name__)

STAGE_MESSAGES = [
    "Kneading the dough...",
    "Spreading the sauce...",
    "Adding the toppings...",
    "Lots of cheese...",
    "Into the oven...",
    "Baking to a golden crust...",
    "Almost done...",
    "Packing it up...",
    "Your order is ready! Enjoy!",
]


def _check_minutes(total_minutes: int) -> int:
    if total_minutes < 1:
        raise ValueError(f"Cooking time must be at least one minute, got {total_minutes}")
    return total_minutes


def cooking_stage(start_time: int, ready_override: bool = False, now: Optional[int] = None,
                  total_minutes: int = COOKING_MINUTES) -> int:
    """Stage in [0, total_minutes]; the last stage means ready."""
    if ready_override:
        return total_minutes
    current = now if now is not None else now_ms()
    elapsed = math.floor((current - start_time) / 60000)
    return max(0, min(elapsed, total_minutes))


def stage_message(stage: int, total_minutes: int = COOKING_MINUTES) -> str:
    _check_minutes(total_minutes)
    if stage >= total_minutes:
        return STAGE_MESSAGES[-1]
    # Stretch the fixed message list over a non-default stage count.
    index = stage * (len(STAGE_MESSAGES) - 1) // total_minutes
    return STAGE_MESSAGES[max(0, index)]


def progress_percent(stage: int, total_minutes: int = COOKING_MINUTES) -> float:
    _check_minutes(total_minutes)
    return round(100 * stage / total_minutes, 1)


class CookingTracker:
    """Polls `cooking_stage` on a fixed interval for one mounted view.

    Call stop() (or leave the `async with` block) when the view goes away so
    polling tasks do not pile up.
    """

    def __init__(self, start_time: int, ready_override: bool = False,
                 on_change: Optional[Callable[[int, str], None]] = None,
                 poll_interval: float = COOKING_POLL_SECONDS,
                 total_minutes: int = COOKING_MINUTES,
                 clock: Callable[[], int] = now_ms):
        self.start_time = start_time
        self.ready_override = ready_override
        self.on_change = on_change
        self.poll_interval = poll_interval
        self.total_minutes = _check_minutes(total_minutes)
        self.clock = clock
        self.stage: Optional[int] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def is_ready(self) -> bool:
        return self.stage is not None and self.stage >= self.total_minutes

    @property
    def message(self) -> str:
        return stage_message(self.stage or 0, self.total_minutes)

    def refresh(self) -> int:
        stage = cooking_stage(self.start_time, self.ready_override, now=self.clock(),
                              total_minutes=self.total_minutes)
        if stage != self.stage:
            self.stage = stage
            if self.on_change is not None:
                self.on_change(stage, stage_message(stage, self.total_minutes))
        return stage

    def mark_ready(self) -> None:
        self.ready_override = True
        self.refresh()

    async def _run(self) -> None:
        while True:
            self.refresh()
            await asyncio.sleep(self.poll_interval)

    def start(self) -> None:
        if self.running:
            return
        self.refresh()
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def __aenter__(self) -> "CookingTracker":
        self.start()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.stop()
