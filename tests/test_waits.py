# tests/test_waits.py

from deckscout.scraper.waits import StabilityDetector, wait_until
from tests.helpers import FakeClock


class TestWaitUntil:
    def test_returns_true_when_predicate_holds(self):
        clock = FakeClock()
        calls = {"n": 0}

        def ready():
            calls["n"] += 1
            return calls["n"] >= 3

        assert wait_until(ready, timeout=5, poll_interval=0.5, clock=clock, sleep=clock.sleep) is True
        assert clock.now == 1.0

    def test_times_out(self):
        clock = FakeClock()
        assert wait_until(lambda: False, timeout=2, poll_interval=0.5, clock=clock, sleep=clock.sleep) is False
        assert clock.now >= 2


class TestStabilityDetector:
    def _detector(self, counts, clock):
        sequence = iter(counts)
        last = {"value": counts[-1]}

        def count():
            try:
                last["value"] = next(sequence)
            except StopIteration:
                pass
            return last["value"]

        return StabilityDetector(count, clock=clock, sleep=clock.sleep)

    def test_unchanged_count_settles_after_quiet_period(self):
        clock = FakeClock()
        result = self._detector([10], clock).wait(baseline=10)
        assert result.changed is False
        assert result.count == 10
        assert result.timed_out is False
        assert 0.9 <= clock.now < 2.0

    def test_growth_then_quiet_reports_change(self):
        clock = FakeClock()
        result = self._detector([10, 12, 15, 15, 15, 15, 15], clock).wait(baseline=10)
        assert result.changed is True
        assert result.count == 15
        assert result.timed_out is False

    def test_never_stable_times_out(self):
        clock = FakeClock()
        counter = {"n": 0}

        def count():
            counter["n"] += 1
            return counter["n"]

        result = StabilityDetector(count, clock=clock, sleep=clock.sleep).wait(baseline=0)
        assert result.timed_out is True
        assert result.changed is True
        assert clock.now >= 8.0
        assert clock.now < 9.0
