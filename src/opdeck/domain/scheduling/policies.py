"""
Spaced-repetition scheduling policies.

Each policy is a pure function of (prior state, grade, now): no hidden state,
no I/O. The active policy is chosen explicitly by name in the run settings.
"""

from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime, timedelta, timezone

from opdeck.domain.constants import (
    DEFAULT_EASY_DELAY_HOURS,
    EASE_STEP_AGAIN,
    EASE_STEP_EASY,
    EASE_STEP_HARD,
    EASY_BONUS,
    FIRST_INTERVAL_DAYS,
    HARD_MULTIPLIER,
    MIN_EASE,
    RELEARN_MINUTES,
    SECOND_INTERVAL_DAYS,
    STARTING_EASE,
)
from opdeck.domain.errors import UnsupportedGradeError
from opdeck.domain.models import Grade, ScheduleState


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SchedulerPolicy(ABC):
    """Maps a prior schedule state and a grade to the next state."""

    name: str = ""
    grades: frozenset[Grade] = frozenset()

    def __init__(self, relearn_minutes: int = RELEARN_MINUTES):
        if relearn_minutes <= 0:
            raise ValueError("relearn_minutes must be positive")
        self.relearn_delay = timedelta(minutes=relearn_minutes)

    def initial_state(self, now: datetime | None = None) -> ScheduleState:
        """Default state of a never-reviewed card: due immediately."""
        return ScheduleState.initial(now or utcnow(), ease=STARTING_EASE)

    def next(
        self, prior: ScheduleState | None, grade: Grade, now: datetime | None = None
    ) -> ScheduleState:
        """Apply ``grade`` to ``prior``. ``now`` is read once when not supplied."""
        try:
            grade = Grade(grade)
        except ValueError:
            raise UnsupportedGradeError(grade, self.name) from None
        if grade not in self.grades:
            raise UnsupportedGradeError(grade.value, self.name)

        now = now or utcnow()
        state = prior or self.initial_state(now)
        state = replace(state, attempts=state.attempts + 1)

        if grade is Grade.AGAIN:
            return self._relearn(state, now)

        state = replace(
            state,
            repetitions=state.repetitions + 1,
            successes=state.successes + 1,
        )
        return self._on_success(state, grade, now)

    def _relearn(self, state: ScheduleState, now: datetime) -> ScheduleState:
        return replace(
            state,
            repetitions=0,
            interval=self.relearn_delay,
            due_at=now + self.relearn_delay,
        )

    @abstractmethod
    def _on_success(self, state: ScheduleState, grade: Grade, now: datetime) -> ScheduleState:
        """Schedule a non-failing grade. ``state`` already has counters advanced."""
        pass


class SimpleIntervalPolicy(SchedulerPolicy):
    """
    Three-button fixed-interval policy.

    Easy waits ``easy_delay_hours``; Hard repeats immediately; Again
    relearns after ``relearn_minutes``.
    """

    name = "simple"
    grades = frozenset({Grade.AGAIN, Grade.HARD, Grade.EASY})

    def __init__(
        self,
        easy_delay_hours: int = DEFAULT_EASY_DELAY_HOURS,
        relearn_minutes: int = RELEARN_MINUTES,
    ):
        super().__init__(relearn_minutes=relearn_minutes)
        if easy_delay_hours <= 0:
            raise ValueError("easy_delay_hours must be positive")
        self.easy_delay = timedelta(hours=easy_delay_hours)

    def _on_success(self, state: ScheduleState, grade: Grade, now: datetime) -> ScheduleState:
        if grade is Grade.HARD:
            return replace(state, interval=timedelta(0), due_at=now)
        return replace(state, interval=self.easy_delay, due_at=now + self.easy_delay)


class EaseFactorPolicy(SchedulerPolicy):
    """
    Four-button SM-2 style policy.

    Successful reviews step through 1 day, 6 days, then ``interval * ease``.
    Hard lowers the ease and grows the interval by 1.2x; Easy raises the ease
    and applies a 1.3x bonus. A successful review never shortens the interval.
    """

    name = "ease_factor"
    grades = frozenset({Grade.AGAIN, Grade.HARD, Grade.GOOD, Grade.EASY})

    def _relearn(self, state: ScheduleState, now: datetime) -> ScheduleState:
        state = super()._relearn(state, now)
        return replace(state, ease=max(MIN_EASE, state.ease - EASE_STEP_AGAIN))

    def _on_success(self, state: ScheduleState, grade: Grade, now: datetime) -> ScheduleState:
        ease = state.ease
        if grade is Grade.HARD:
            ease = max(MIN_EASE, ease - EASE_STEP_HARD)
            interval = max(timedelta(days=FIRST_INTERVAL_DAYS), state.interval * HARD_MULTIPLIER)
        else:
            if grade is Grade.EASY:
                ease = ease + EASE_STEP_EASY
            interval = self._base_interval(state.repetitions, state.interval, ease)
            if grade is Grade.EASY:
                interval = interval * EASY_BONUS

        interval = max(interval, state.interval)
        return replace(state, ease=ease, interval=interval, due_at=now + interval)

    @staticmethod
    def _base_interval(repetitions: int, prior_interval: timedelta, ease: float) -> timedelta:
        if repetitions <= 1:
            return timedelta(days=FIRST_INTERVAL_DAYS)
        if repetitions == 2:
            return timedelta(days=SECOND_INTERVAL_DAYS)
        return prior_interval * ease


POLICIES: dict[str, type[SchedulerPolicy]] = {
    SimpleIntervalPolicy.name: SimpleIntervalPolicy,
    EaseFactorPolicy.name: EaseFactorPolicy,
}


def build_policy(
    name: str,
    easy_delay_hours: int = DEFAULT_EASY_DELAY_HOURS,
    relearn_minutes: int = RELEARN_MINUTES,
) -> SchedulerPolicy:
    """Instantiate the policy registered under ``name``."""
    if name == SimpleIntervalPolicy.name:
        return SimpleIntervalPolicy(
            easy_delay_hours=easy_delay_hours, relearn_minutes=relearn_minutes
        )
    if name == EaseFactorPolicy.name:
        return EaseFactorPolicy(relearn_minutes=relearn_minutes)
    raise ValueError(f"Unknown scheduler policy '{name}'. Choose from: {', '.join(POLICIES)}")
