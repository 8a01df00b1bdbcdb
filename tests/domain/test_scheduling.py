"""Tests for the scheduling policies."""

from datetime import timedelta

import pytest

from opdeck.domain.errors import UnsupportedGradeError
from opdeck.domain.models import Grade, ScheduleState
from opdeck.domain.scheduling import (
    EaseFactorPolicy,
    SimpleIntervalPolicy,
    build_policy,
)

ALL_POLICIES = [SimpleIntervalPolicy(), EaseFactorPolicy()]


def _replay(policy, grades, now):
    state = None
    for i, g in enumerate(grades):
        state = policy.next(state, g, now + timedelta(minutes=i))
    return state


class TestSimpleIntervalPolicy:
    def test_easy_schedules_easy_delay(self, now):
        policy = SimpleIntervalPolicy(easy_delay_hours=48)
        state = policy.next(None, Grade.EASY, now)

        assert state.interval == timedelta(hours=48)
        assert state.due_at == now + timedelta(hours=48)
        assert state.repetitions == 1
        assert state.attempts == 1
        assert state.successes == 1

    def test_hard_repeats_immediately(self, now):
        state = SimpleIntervalPolicy().next(None, Grade.HARD, now)

        assert state.interval == timedelta(0)
        assert state.due_at == now
        assert state.successes == 1
        assert state.repetitions == 1

    def test_again_resets_repetitions_and_relearns_in_ten_minutes(self, now):
        policy = SimpleIntervalPolicy()
        prior = ScheduleState(
            interval=timedelta(hours=48),
            repetitions=3,
            attempts=3,
            successes=3,
            due_at=now,
            ease=2.5,
        )
        state = policy.next(prior, Grade.AGAIN, now)

        assert state.repetitions == 0
        assert state.interval == timedelta(minutes=10)
        assert state.due_at == now + timedelta(minutes=10)
        assert state.attempts == 4
        assert state.successes == 3

    def test_good_is_not_a_simple_grade(self, now):
        with pytest.raises(UnsupportedGradeError):
            SimpleIntervalPolicy().next(None, Grade.GOOD, now)

    def test_accepts_grade_names(self, now):
        state = SimpleIntervalPolicy().next(None, "easy", now)
        assert state.repetitions == 1

    def test_rejects_unknown_grade_name(self, now):
        with pytest.raises(UnsupportedGradeError):
            SimpleIntervalPolicy().next(None, "perfect", now)

    def test_rejects_non_positive_delays(self):
        with pytest.raises(ValueError):
            SimpleIntervalPolicy(easy_delay_hours=0)
        with pytest.raises(ValueError):
            SimpleIntervalPolicy(relearn_minutes=0)


class TestEaseFactorPolicy:
    def test_good_steps_one_day_six_days_then_ease(self, now):
        policy = EaseFactorPolicy()
        first = policy.next(None, Grade.GOOD, now)
        second = policy.next(first, Grade.GOOD, now)
        third = policy.next(second, Grade.GOOD, now)

        assert first.interval == timedelta(days=1)
        assert second.interval == timedelta(days=6)
        assert third.interval == timedelta(days=6) * 2.5
        assert third.due_at == now + third.interval

    def test_easy_raises_ease_and_applies_bonus(self, now):
        state = EaseFactorPolicy().next(None, Grade.EASY, now)

        assert state.ease == pytest.approx(2.65)
        assert state.interval == timedelta(days=1) * 1.3

    def test_hard_lowers_ease_but_never_shrinks(self, now):
        policy = EaseFactorPolicy()
        good = policy.next(policy.next(None, Grade.GOOD, now), Grade.GOOD, now)
        hard = policy.next(good, Grade.HARD, now)

        assert hard.ease == pytest.approx(2.35)
        assert hard.interval >= good.interval

    def test_again_floors_ease(self, now):
        policy = EaseFactorPolicy()
        state = _replay(policy, [Grade.AGAIN] * 10, now)

        assert state.ease == pytest.approx(1.3)
        assert state.repetitions == 0
        assert state.interval == timedelta(minutes=10)


@pytest.mark.parametrize("policy", ALL_POLICIES, ids=lambda p: p.name)
class TestPolicyInvariants:
    SEQUENCES = [
        [Grade.AGAIN, Grade.HARD, Grade.EASY, Grade.EASY, Grade.AGAIN],
        [Grade.EASY] * 6,
        [Grade.HARD, Grade.AGAIN, Grade.AGAIN, Grade.HARD],
    ]

    def test_counters_track_every_grade(self, policy, now):
        for grades in self.SEQUENCES:
            state = _replay(policy, grades, now)
            assert state.attempts == len(grades)
            assert 0 <= state.successes <= state.attempts
            assert state.successes == sum(1 for g in grades if g is not Grade.AGAIN)

    def test_again_always_relearns_after_ten_minutes(self, policy, now):
        for grades in self.SEQUENCES:
            prior = _replay(policy, grades, now)
            state = policy.next(prior, Grade.AGAIN, now)
            assert state.repetitions == 0
            assert state.due_at == now + timedelta(minutes=10)

    def test_due_never_before_now(self, policy, now):
        state = None
        for g in [Grade.EASY, Grade.AGAIN, Grade.HARD, Grade.EASY]:
            state = policy.next(state, g, now)
            assert state.due_at >= now

    def test_first_success_outlasts_again(self, policy, now):
        again = policy.next(None, Grade.AGAIN, now)
        success = policy.next(None, Grade.EASY, now)
        assert success.interval > again.interval

    def test_repeated_easy_never_shortens_interval(self, policy, now):
        state = policy.next(None, Grade.EASY, now)
        for _ in range(5):
            following = policy.next(state, Grade.EASY, now)
            assert following.interval >= state.interval
            assert following.repetitions == state.repetitions + 1
            state = following

    def test_does_not_mutate_prior(self, policy, now):
        prior = policy.next(None, Grade.EASY, now)
        snapshot = (prior.attempts, prior.repetitions, prior.interval, prior.due_at)
        policy.next(prior, Grade.AGAIN, now)
        assert (prior.attempts, prior.repetitions, prior.interval, prior.due_at) == snapshot


def test_build_policy_by_name():
    simple = build_policy("simple", easy_delay_hours=12, relearn_minutes=5)
    assert isinstance(simple, SimpleIntervalPolicy)
    assert simple.easy_delay == timedelta(hours=12)
    assert simple.relearn_delay == timedelta(minutes=5)

    assert isinstance(build_policy("ease_factor"), EaseFactorPolicy)


def test_build_policy_unknown_name():
    with pytest.raises(ValueError, match="Unknown scheduler policy"):
        build_policy("fsrs")
