"""
Review Service: application layer orchestrator for grading cards.

Applies the configured scheduling policy, persists the resulting state and
derives the due / later split the review surface shows.
"""

import logging
import random
from dataclasses import dataclass

from opdeck.domain.errors import UnknownCardError
from opdeck.domain.models import Card, Grade, ScheduleState
from opdeck.domain.scheduling import SchedulerPolicy
from opdeck.domain.scheduling.policies import utcnow
from opdeck.infrastructure.persistence import CardStore, ScheduleRepository

logger = logging.getLogger(__name__)


@dataclass
class DeckPartition:
    due: list[Card]
    later: list[Card]


@dataclass
class DeckStats:
    total_cards: int
    due_cards: int
    attempts: int
    successes: int

    @property
    def success_rate(self) -> int:
        """Percentage of successful reviews, 0 when nothing was reviewed."""
        if self.attempts == 0:
            return 0
        return round(100 * self.successes / self.attempts)


class ReviewService:
    """
    Grades cards and reads back their schedule.

    Depends on the SchedulerPolicy abstraction; which policy is active is
    decided by whoever builds the service.
    """

    def __init__(
        self,
        cards: CardStore,
        schedule: ScheduleRepository,
        policy: SchedulerPolicy,
        rng: random.Random | None = None,
    ):
        self._cards = cards
        self._schedule = schedule
        self.policy = policy
        self._rng = rng or random.Random()
        self._last_grade: tuple[str, ScheduleState | None] | None = None

    def state_for(self, card_id: str, now=None) -> ScheduleState:
        """Stored state, or the default (due now) for a never-reviewed card."""
        return self._schedule.get(card_id) or self.policy.initial_state(now)

    def grade(self, card_id: str, grade: Grade | str, now=None) -> ScheduleState:
        """
        Apply a grade to one card and persist the new state.

        Raises:
            UnknownCardError: If the card is not in the deck.
            UnsupportedGradeError: If the active policy doesn't accept the grade.
        """
        if card_id not in self._cards:
            raise UnknownCardError(card_id)

        prior = self._schedule.get(card_id)
        new_state = self.policy.next(prior, grade, now)
        self._schedule.set(card_id, new_state)
        self._last_grade = (card_id, prior)

        logger.debug(
            f"[review] {card_id} {grade} -> reps={new_state.repetitions} "
            f"due={new_state.due_at.isoformat()}"
        )
        return new_state

    def undo(self) -> str | None:
        """Restore the state the last graded card had before grading. Single level."""
        if self._last_grade is None:
            return None

        card_id, prior = self._last_grade
        if prior is None:
            self._schedule.delete(card_id)
        else:
            self._schedule.set(card_id, prior)
        self._last_grade = None
        logger.info(f"[review] Undid last grade on {card_id}")
        return card_id

    def reset(self) -> int:
        """Forget every review state; all cards become due. Returns how many were dropped."""
        count = len(self._schedule.all())
        self._schedule.clear()
        self._last_grade = None
        logger.info(f"[review] Reset {count} review state(s)")
        return count

    def partition(self, now=None, query: str | None = None) -> DeckPartition:
        now = now or utcnow()
        due, later = [], []
        for card in self._cards.all():
            if query and not card.matches(query):
                continue
            state = self._schedule.get(card.id)
            if state is None or state.is_due(now):
                due.append(card)
            else:
                later.append(card)
        return DeckPartition(due=due, later=later)

    def next_card(self, now=None) -> Card | None:
        """A random due card, else a random not-yet-due one, else None."""
        deck = self.partition(now)
        pool = deck.due or deck.later
        return self._rng.choice(pool) if pool else None

    def stats(self, now=None) -> DeckStats:
        deck = self.partition(now)
        attempts = successes = 0
        for card in deck.due + deck.later:
            state = self._schedule.get(card.id)
            if state:
                attempts += state.attempts
                successes += state.successes
        return DeckStats(
            total_cards=len(deck.due) + len(deck.later),
            due_cards=len(deck.due),
            attempts=attempts,
            successes=successes,
        )
