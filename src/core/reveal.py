"""
Typing reveal for streaming text.

The scheduler never owns the text: each revealed item is read through a
callable returning the authoritative string, and only the displayed length
and the cursor flag live here.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Hashable, Optional

from core.config import RevealConfig

logger = logging.getLogger(__name__)

RevealKey = tuple[str, int]


@dataclass
class _Reveal:
    source: Callable[[], str]
    displayed: int = 0
    cursor_visible: bool = True
    tasks: list[asyncio.Task] = field(default_factory=list)


@dataclass(frozen=True)
class RevealView:
    text: str
    cursor_visible: bool
    typing: bool


def step_for_gap(gap: int, thresholds: tuple[int, int]) -> int:
    low, high = thresholds
    if gap > high:
        return 3
    if gap > low:
        return 2
    return 1


class RevealScheduler:
    """
    Per-item reveal state keyed by (turn_id, item_index).

    With run_timers=True every started item gets a tick task and a cursor
    blink task on the running loop; with run_timers=False the caller drives
    tick() itself.
    """

    def __init__(self, config: Optional[RevealConfig] = None, run_timers: bool = True) -> None:
        self.config = config or RevealConfig()
        self.run_timers = run_timers
        self._reveals: dict[RevealKey, _Reveal] = {}

    async def __aenter__(self) -> "RevealScheduler":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    def __contains__(self, key: Hashable) -> bool:
        return key in self._reveals

    def active_keys(self) -> list[RevealKey]:
        return list(self._reveals)

    def start(self, key: RevealKey, source: Callable[[], str]) -> None:
        if key in self._reveals:
            return

        reveal = _Reveal(source=source)
        self._reveals[key] = reveal
        if self.run_timers:
            reveal.tasks = [
                asyncio.create_task(self._tick_loop(key), name=f"reveal-{key[0]}-{key[1]}"),
                asyncio.create_task(self._blink_loop(key), name=f"blink-{key[0]}-{key[1]}"),
            ]
        logger.debug("reveal started for %s", key)

    def tick(self, key: RevealKey) -> int:
        """Advance one step and return the new displayed length."""
        reveal = self._reveals.get(key)
        if reveal is None:
            raise KeyError(key)

        full = len(reveal.source())
        if reveal.displayed < full:
            step = step_for_gap(full - reveal.displayed, self.config.step_thresholds)
            reveal.displayed = min(full, reveal.displayed + step)
        return reveal.displayed

    def blink(self, key: RevealKey) -> bool:
        reveal = self._reveals[key]
        reveal.cursor_visible = not reveal.cursor_visible
        return reveal.cursor_visible

    def stop(self, key: RevealKey) -> None:
        """
        Snap to the full text and cancel the item's timers. Items that are not
        being revealed always display their full text.
        """
        reveal = self._reveals.pop(key, None)
        if reveal is None:
            return
        for task in reveal.tasks:
            task.cancel()
        logger.debug("reveal stopped for %s", key)

    def release_turn(self, turn_id: str) -> None:
        for key in [k for k in self._reveals if k[0] == turn_id]:
            self.stop(key)

    def shutdown(self) -> list[asyncio.Task]:
        tasks = [t for reveal in self._reveals.values() for t in reveal.tasks]
        for key in list(self._reveals):
            self.stop(key)
        return tasks

    async def aclose(self) -> None:
        tasks = self.shutdown()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def is_streaming(self, key: RevealKey) -> bool:
        return key in self._reveals

    def cursor_visible(self, key: RevealKey) -> bool:
        reveal = self._reveals.get(key)
        return reveal.cursor_visible if reveal else False

    def view(self, key: RevealKey, full: str) -> RevealView:
        reveal = self._reveals.get(key)
        if reveal is None:
            return RevealView(text=full, cursor_visible=False, typing=False)
        return RevealView(text=full[:reveal.displayed], cursor_visible=reveal.cursor_visible, typing=True)

    async def _tick_loop(self, key: RevealKey) -> None:
        while key in self._reveals:
            await asyncio.sleep(self.config.tick_seconds)
            if key in self._reveals:
                self.tick(key)

    async def _blink_loop(self, key: RevealKey) -> None:
        while key in self._reveals:
            await asyncio.sleep(self.config.blink_seconds)
            if key in self._reveals:
                self.blink(key)
