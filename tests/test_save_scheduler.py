"""
Tests for immediate vs debounced save scheduling.
"""

from artifact_studio.services.save_scheduler import SaveScheduler


def _scheduler(clock, debounce_seconds=2.0):
    writes = []

    def sink(raw, debounce):
        writes.append((raw, debounce))
        return True

    return SaveScheduler(sink, debounce_seconds=debounce_seconds, clock=clock), writes


class TestSaveScheduler:
    def test_immediate_write_goes_through(self, clock):
        scheduler, writes = _scheduler(clock)
        assert scheduler.submit("v1", debounce=False) is True
        assert writes == [("v1", False)]
        assert not scheduler.has_pending

    def test_debounced_write_waits_for_quiet_period(self, clock):
        scheduler, writes = _scheduler(clock)
        scheduler.submit("v1", debounce=True)
        assert scheduler.has_pending
        assert scheduler.due_at == clock() + 2.0

        clock.advance(1.5)
        assert scheduler.poll() is False
        assert writes == []

        clock.advance(0.5)
        assert scheduler.poll() is True
        assert writes == [("v1", True)]
        assert scheduler.poll() is False

    def test_burst_coalesces_to_last_value(self, clock):
        scheduler, writes = _scheduler(clock)
        for text in ("a", "ab", "abc"):
            scheduler.submit(text, debounce=True)
            clock.advance(1.0)
        assert scheduler.poll() is False
        clock.advance(1.0)
        scheduler.poll()
        assert writes == [("abc", True)]

    def test_immediate_supersedes_pending(self, clock):
        scheduler, writes = _scheduler(clock)
        scheduler.submit("typed", debounce=True)
        scheduler.submit("structural", debounce=False)
        clock.advance(10)
        scheduler.poll()
        assert writes == [("structural", False)]

    def test_flush_and_cancel(self, clock):
        scheduler, writes = _scheduler(clock)
        scheduler.submit("one", debounce=True)
        assert scheduler.flush() is True
        assert writes == [("one", True)]
        assert scheduler.flush() is False

        scheduler.submit("two", debounce=True)
        assert scheduler.cancel() is True
        assert scheduler.cancel() is False
        clock.advance(10)
        assert scheduler.poll() is False
        assert writes == [("one", True)]
