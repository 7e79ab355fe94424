"""
Tests for the per-session accuracy tracker and the session registry that
serializes turns in arrival order.
"""

import asyncio

import pytest

from tutor_progress.engine import AccuracyResult, SessionAccuracyTracker, analyze
from tutor_progress.sessions import SessionRegistry

from conftest import GOOD_MESSAGE


def _result(overall: int, **scores) -> AccuracyResult:
    return AccuracyResult(overall=overall, **scores)


class TestRecordTurn:
    """Lifetime and rolling accuracy."""

    def test_scenario_three_scores(self):
        tracker = SessionAccuracyTracker()
        for score in (80, 60, 100):
            tracker.record_turn(score)
        assert tracker.current_accuracy == 80
        assert tracker.total_messages == 3
        assert tracker.quality_messages == 2

    def test_returns_lifetime_mean(self):
        tracker = SessionAccuracyTracker()
        assert tracker.record_turn(90) == 90
        assert tracker.record_turn(71) == 81  # 80.5 rounds half up

    def test_window_is_bounded_but_lifetime_is_not(self):
        tracker = SessionAccuracyTracker(window=20)
        for _ in range(10):
            tracker.record_turn(0)
        for _ in range(20):
            tracker.record_turn(100)
        assert len(tracker.historical_scores) == 20
        assert tracker.rolling_accuracy == 100
        assert tracker.current_accuracy == 67
        assert tracker.total_messages == 30

    def test_out_of_range_scores_are_clamped(self):
        """Contract violations are clamped, not raised."""
        tracker = SessionAccuracyTracker()
        tracker.record_turn(150)
        tracker.record_turn(-20)
        assert tracker.historical_scores == [100, 0]
        assert tracker.quality_messages == 1

    def test_empty_tracker(self):
        tracker = SessionAccuracyTracker()
        assert tracker.current_accuracy == 0
        assert tracker.rolling_accuracy == 0
        assert tracker.recent_trend() == 0.0


class TestResetAndState:
    def test_reset_clears_history_and_keeps_xp(self):
        tracker = SessionAccuracyTracker(total_xp=40)
        tracker.process_turn(_result(90), 60)
        tracker.reset()
        state = tracker.state()
        assert state.total_messages == 0
        assert state.quality_messages == 0
        assert state.historical_scores == ()
        assert state.current_accuracy == 0
        assert state.total_xp == 40 + 19

    def test_state_json_keys(self):
        tracker = SessionAccuracyTracker()
        tracker.record_turn(70)
        data = tracker.state().model_dump(by_alias=True)
        assert data["historicalScores"] == (70,)
        assert data["currentAccuracy"] == 70
        assert data["totalMessages"] == 1
        assert data["qualityMessages"] == 0


class TestProcessTurn:
    def test_xp_and_level(self):
        tracker = SessionAccuracyTracker()
        outcome = tracker.process_turn(_result(95), 60)
        assert outcome.xp_gained == 19
        assert outcome.current_accuracy == 95
        assert outcome.level_info.total_xp == 19
        assert not outcome.xp.leveled_up

    def test_level_up_detected(self):
        tracker = SessionAccuracyTracker(total_xp=490)
        outcome = tracker.process_turn(analyze(GOOD_MESSAGE), len(GOOD_MESSAGE))
        assert outcome.xp.leveled_up
        assert outcome.level_info.level == 2
        assert tracker.total_xp == 509

    def test_total_xp_never_decreases(self):
        tracker = SessionAccuracyTracker()
        seen = []
        for score in (0, 100, 20, 55, 0):
            tracker.process_turn(_result(score), 5)
            seen.append(tracker.total_xp)
        assert seen == sorted(seen)
        assert all(b > a for a, b in zip(seen, seen[1:]))

    def test_skill_breakdown_and_trend(self):
        tracker = SessionAccuracyTracker()
        for _ in range(5):
            tracker.process_turn(_result(50, grammar=40, vocabulary=60, spelling=80, fluency=20), 10)
        for _ in range(5):
            tracker.process_turn(_result(90, grammar=60, vocabulary=80, spelling=100, fluency=40), 10)
        assert tracker.recent_trend() == pytest.approx(40.0)
        assert tracker.skill_breakdown() == {"grammar": 50, "vocabulary": 70, "spelling": 90, "fluency": 30}


class TestSessionRegistry:
    """Turns are applied in reservation order whatever order they finish in."""

    def test_out_of_order_submissions_apply_in_arrival_order(self):
        registry = SessionRegistry()
        seqs = [registry.reserve("s1") for _ in range(3)]
        assert seqs == [0, 1, 2]

        async def run():
            await asyncio.gather(
                registry.submit("s1", 2, _result(30), 10),
                registry.submit("s1", 1, _result(20), 10),
                registry.submit("s1", 0, _result(10), 10),
            )

        asyncio.run(run())
        assert registry.get("s1").historical_scores == [10, 20, 30]

    def test_abandoned_slot_does_not_block(self):
        registry = SessionRegistry()
        first = registry.reserve("s1")
        second = registry.reserve("s1")

        async def run():
            waiting = asyncio.ensure_future(registry.submit("s1", second, _result(70), 10))
            await asyncio.sleep(0)
            assert not waiting.done()
            await registry.abandon("s1", first)
            return await waiting

        outcome = asyncio.run(run())
        assert outcome.current_accuracy == 70
        assert registry.get("s1").total_messages == 1

    def test_cancelled_wait_releases_its_turn(self):
        """A submit cancelled while waiting must not block the turns after it."""
        registry = SessionRegistry()
        first, second, third = (registry.reserve("s1") for _ in range(3))

        async def run():
            waiting = asyncio.ensure_future(registry.submit("s1", second, _result(50), 10))
            await asyncio.sleep(0)
            waiting.cancel()
            with pytest.raises(asyncio.CancelledError):
                await waiting
            await registry.submit("s1", first, _result(10), 10)
            return await asyncio.wait_for(registry.submit("s1", third, _result(30), 10), timeout=1.0)

        outcome = asyncio.run(run())
        assert outcome.current_accuracy == 20
        assert registry.get("s1").historical_scores == [10, 30]

    def test_idle_sessions_evicted_when_a_new_one_opens(self):
        now = [0.0]
        registry = SessionRegistry(idle_timeout=60, clock=lambda: now[0])
        for i in range(3):
            seq = registry.reserve(f"s{i}")
            asyncio.run(registry.submit(f"s{i}", seq, _result(80), 10))
        registry.reserve("busy")  # never submitted, so still pending

        now[0] = 50.0
        seq = registry.reserve("s0")
        asyncio.run(registry.submit("s0", seq, _result(90), 10))
        now[0] = 100.0
        registry.reserve("fresh")
        assert sorted(registry.session_ids()) == ["busy", "fresh", "s0"]

    def test_no_eviction_without_timeout(self):
        now = [0.0]
        registry = SessionRegistry(clock=lambda: now[0])
        registry.reserve("old")
        now[0] = 10 ** 6
        registry.reserve("new")
        assert sorted(registry.session_ids()) == ["new", "old"]

    def test_drop_returns_final_tracker(self):
        registry = SessionRegistry()
        seq = registry.reserve("s1")
        asyncio.run(registry.submit("s1", seq, _result(60), 10))
        tracker = registry.drop("s1")
        assert tracker.historical_scores == [60]
        assert registry.get("s1") is None
        assert registry.drop("s1") is None

    def test_unknown_sequence_rejected(self):
        registry = SessionRegistry()
        registry.reserve("s1")
        with pytest.raises(ValueError):
            asyncio.run(registry.submit("s1", 5, _result(10), 10))
        with pytest.raises(KeyError):
            asyncio.run(registry.submit("missing", 0, _result(10), 10))

    def test_sessions_are_independent(self):
        registry = SessionRegistry()
        a = registry.reserve("a")
        b = registry.reserve("b")

        async def run():
            await registry.submit("b", b, _result(40), 10)
            await registry.submit("a", a, _result(90), 10)

        asyncio.run(run())
        assert registry.get("a").historical_scores == [90]
        assert registry.get("b").historical_scores == [40]

    def test_persisted_xp_is_a_floor(self):
        registry = SessionRegistry()
        seq = registry.reserve("s1")
        outcome = asyncio.run(registry.submit("s1", seq, _result(95), 60, total_xp=1000))
        assert outcome.level_info.total_xp == 1019

    def test_reset(self):
        registry = SessionRegistry()
        seq = registry.reserve("s1")
        asyncio.run(registry.submit("s1", seq, _result(95), 60))
        assert registry.reset("s1")
        assert registry.get("s1").total_messages == 0
        assert not registry.reset("missing")
