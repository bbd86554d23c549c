"""Tests for the typing reveal scheduler."""

import asyncio

import pytest

from core.config import RevealConfig
from core.reveal import RevealScheduler, step_for_gap


class Growing:
    """Stand-in for a streaming item: the text only ever grows."""

    def __init__(self, text=""):
        self.text = text

    def __call__(self):
        return self.text


@pytest.fixture
def scheduler():
    return RevealScheduler(RevealConfig(), run_timers=False)


class TestStepForGap:
    def test_steps(self):
        assert step_for_gap(1, (100, 200)) == 1
        assert step_for_gap(100, (100, 200)) == 1
        assert step_for_gap(101, (100, 200)) == 2
        assert step_for_gap(200, (100, 200)) == 2
        assert step_for_gap(201, (100, 200)) == 3

    def test_configurable_thresholds(self):
        assert step_for_gap(11, (10, 20)) == 2


class TestManualTicks:
    def test_starts_empty_and_types(self, scheduler):
        source = Growing("abc")
        scheduler.start(("t1", 0), source)
        assert scheduler.view(("t1", 0), source()).text == ""
        assert scheduler.tick(("t1", 0)) == 1
        assert scheduler.view(("t1", 0), source()).text == "a"

    def test_catches_up_faster_on_large_gap(self, scheduler):
        source = Growing("x" * 500)
        scheduler.start(("t1", 0), source)
        assert scheduler.tick(("t1", 0)) == 3
        source.text = "x" * 2
        # never shrinks even if asked about a shorter string
        assert scheduler.tick(("t1", 0)) == 3

    def test_displayed_is_monotonic_while_source_grows(self, scheduler):
        source = Growing()
        scheduler.start(("t1", 0), source)
        last = 0
        for n in range(60):
            source.text += "word " * (n % 7)
            shown = scheduler.tick(("t1", 0))
            assert shown >= last
            assert shown <= len(source.text)
            last = shown

    def test_does_not_overshoot(self, scheduler):
        source = Growing("ab")
        scheduler.start(("t1", 0), source)
        for _ in range(5):
            scheduler.tick(("t1", 0))
        assert scheduler.view(("t1", 0), source()).text == "ab"

    def test_stop_snaps_to_full_text(self, scheduler):
        source = Growing("hello world")
        scheduler.start(("t1", 0), source)
        scheduler.tick(("t1", 0))
        scheduler.stop(("t1", 0))

        view = scheduler.view(("t1", 0), source())
        assert view.text == "hello world"
        assert not view.typing
        assert not view.cursor_visible
        assert not scheduler.is_streaming(("t1", 0))

    def test_unknown_key(self, scheduler):
        with pytest.raises(KeyError):
            scheduler.tick(("t9", 0))
        assert scheduler.view(("t9", 0), "full").text == "full"

    def test_start_twice_keeps_progress(self, scheduler):
        source = Growing("abcdef")
        scheduler.start(("t1", 0), source)
        scheduler.tick(("t1", 0))
        scheduler.start(("t1", 0), source)
        assert scheduler.view(("t1", 0), source()).text == "a"

    def test_release_turn(self, scheduler):
        scheduler.start(("t1", 0), Growing("a"))
        scheduler.start(("t1", 1), Growing("b"))
        scheduler.start(("t2", 0), Growing("c"))
        scheduler.release_turn("t1")
        assert scheduler.active_keys() == [("t2", 0)]

    def test_blink_toggles(self, scheduler):
        scheduler.start(("t1", 0), Growing("a"))
        assert scheduler.cursor_visible(("t1", 0))
        assert scheduler.blink(("t1", 0)) is False
        assert scheduler.blink(("t1", 0)) is True


class TestTimers:
    @pytest.mark.asyncio
    async def test_timers_advance_and_cancel(self):
        config = RevealConfig(tick_seconds=0.001, blink_seconds=0.001)
        scheduler = RevealScheduler(config)
        source = Growing("streaming text")
        scheduler.start(("t1", 0), source)
        tasks = list(scheduler._reveals[("t1", 0)].tasks)

        await asyncio.sleep(0.05)
        assert len(scheduler.view(("t1", 0), source()).text) > 0

        scheduler.stop(("t1", 0))
        await asyncio.gather(*tasks, return_exceptions=True)
        assert all(t.done() for t in tasks)
        assert scheduler.view(("t1", 0), source()).text == "streaming text"

    @pytest.mark.asyncio
    async def test_context_manager_cancels_everything(self):
        config = RevealConfig(tick_seconds=10, blink_seconds=10)
        async with RevealScheduler(config) as scheduler:
            scheduler.start(("t1", 0), Growing("a"))
            scheduler.start(("t2", 0), Growing("b"))
            tasks = [t for r in scheduler._reveals.values() for t in r.tasks]
            assert len(tasks) == 4

        assert scheduler.active_keys() == []
        assert all(t.cancelled() for t in tasks)
