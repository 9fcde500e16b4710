"""
SM-2 Spaced Repetition Scheduler.

Implements:
- Graded rating policy (classic SM-2, quality 0-5)
- Binary rating policy (easy/hard, capped ease growth)
- Earliest-due-first card selection
- Bulk due-date shifting for previewing upcoming cards

SM-2 Grade Scale:
0 - Complete blackout, wrong response
1 - Incorrect, but upon seeing answer remembered
2 - Incorrect, but answer seemed easy to recall
3 - Correct, but with significant difficulty
4 - Correct, with some hesitation
5 - Correct, with perfect recall
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta

from loguru import logger

from .card import DEFAULT_EASE, MINIMUM_EASE, Card
from .clock import ONE_DAY, Clock, utc_now
from .errors import InvalidRatingError

# =============================================================================
# Configuration
# =============================================================================


@dataclass
class SchedulerConfig:
    """Tunable constants for both rating policies."""

    initial_ease: float = DEFAULT_EASE
    minimum_ease: float = MINIMUM_EASE
    maximum_ease: float = 2.5  # Binary policy only
    first_interval: int = 1  # Days after the first successful review
    graded_second_interval: int = 6
    binary_second_interval: int = 3
    passing_grade: int = 3
    hard_penalty: float = 0.15
    easy_bonus: float = 0.05


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


# =============================================================================
# Rating Policies
# =============================================================================


class RatingPolicy(ABC):
    """
    Strategy that turns a rating into new interval/repetitions/ease values.

    Policies never touch due_at; the scheduler derives it from the interval.
    """

    name: str = ""
    choices: tuple[str, ...] = ()

    def __init__(self, config: SchedulerConfig | None = None):
        self.config = config or SchedulerConfig()

    @abstractmethod
    def validate(self, rating: object) -> object:
        """Return the rating if it is in this policy's domain, else raise InvalidRatingError."""

    @abstractmethod
    def parse(self, text: str) -> object:
        """Parse user input (e.g. from a prompt) into a validated rating."""

    @abstractmethod
    def update(self, card: Card, rating: object) -> None:
        """Mutate the card's interval, repetitions and ease_factor."""

    def _grown_interval(self, card: Card, second_interval: int) -> int:
        if card.repetitions == 0:
            return self.config.first_interval
        if card.repetitions == 1:
            return second_interval
        return max(1, _round_half_up(card.interval * card.ease_factor))


class GradedPolicy(RatingPolicy):
    """Classic SM-2 with a 0-5 quality grade."""

    name = "graded"
    choices = ("0", "1", "2", "3", "4", "5")

    def validate(self, rating: object) -> int:
        if isinstance(rating, bool) or not isinstance(rating, int):
            raise InvalidRatingError(f"Graded rating must be an integer 0-5, got {rating!r}")
        if not 0 <= rating <= 5:
            raise InvalidRatingError(f"Graded rating must be between 0 and 5, got {rating}")
        return rating

    def parse(self, text: str) -> int:
        try:
            value = int(text.strip())
        except (TypeError, ValueError):
            raise InvalidRatingError(f"Not a grade: {text!r}") from None
        return self.validate(value)

    def update(self, card: Card, rating: int) -> None:
        if rating < self.config.passing_grade:
            # Failed - reset to beginning
            card.repetitions = 0
            card.interval = self.config.first_interval
            return

        card.interval = self._grown_interval(card, self.config.graded_second_interval)
        card.repetitions += 1

        # EF' = EF + (0.1 - (5 - q) * (0.08 + (5 - q) * 0.02))
        ef_delta = 0.1 - (5 - rating) * (0.08 + (5 - rating) * 0.02)
        card.ease_factor = max(self.config.minimum_ease, card.ease_factor + ef_delta)


class BinaryPolicy(RatingPolicy):
    """
    Two-button variant: easy (True) or hard (False).

    Ease shrinks by hard_penalty down to the floor on "hard" and grows by
    easy_bonus up to maximum_ease on "easy". Either way it ends up within
    [minimum_ease, maximum_ease].
    """

    name = "binary"
    choices = ("e", "h")

    _EASY = {"e", "easy", "y", "1", "true"}
    _HARD = {"h", "hard", "n", "0", "false"}

    def validate(self, rating: object) -> bool:
        if not isinstance(rating, bool):
            raise InvalidRatingError(f"Binary rating must be True (easy) or False (hard), got {rating!r}")
        return rating

    def parse(self, text: str) -> bool:
        word = (text or "").strip().lower()
        if word in self._EASY:
            return True
        if word in self._HARD:
            return False
        raise InvalidRatingError(f"Answer 'e' for easy or 'h' for hard, got {text!r}")

    def update(self, card: Card, rating: bool) -> None:
        if not rating:
            card.repetitions = 0
            card.interval = self.config.first_interval
            # Ease may arrive above the ceiling from an import or the graded model
            card.ease_factor = min(
                self.config.maximum_ease,
                max(self.config.minimum_ease, card.ease_factor - self.config.hard_penalty),
            )
            return

        card.interval = self._grown_interval(card, self.config.binary_second_interval)
        card.repetitions += 1
        card.ease_factor = min(card.ease_factor + self.config.easy_bonus, self.config.maximum_ease)


POLICIES: dict[str, type[RatingPolicy]] = {
    GradedPolicy.name: GradedPolicy,
    BinaryPolicy.name: BinaryPolicy,
}


def policy_for(model: str, config: SchedulerConfig | None = None) -> RatingPolicy:
    """
    Build the rating policy named by configuration.

    Args:
        model: "graded" or "binary"
        config: Shared scheduler constants

    Raises:
        ValueError: If the model name is unknown
    """
    try:
        return POLICIES[model](config)
    except KeyError:
        raise ValueError(f"Unknown rating model '{model}' (expected one of {sorted(POLICIES)})") from None


# =============================================================================
# Review Scheduler
# =============================================================================


class ReviewScheduler:
    """
    Applies a rating policy to cards and stamps their next due time.

    The rating is assumed valid; callers run policy.validate() first.
    """

    def __init__(self, policy: RatingPolicy | None = None, clock: Clock | None = None):
        self.policy = policy or GradedPolicy()
        self.clock = clock or utc_now

    def apply_rating(self, card: Card, rating: object) -> Card:
        """
        Update the card in place for the given rating.

        Args:
            card: Card to update
            rating: Policy-specific rating (grade or easy/hard)

        Returns:
            The same card, for chaining
        """
        now = self.clock()
        self.policy.update(card, rating)
        card.due_at = now + card.interval * ONE_DAY

        logger.debug(
            f"Rated {card.id} ({self.policy.name}={rating!r}): interval={card.interval}d, "
            f"reps={card.repetitions}, ef={card.ease_factor:.2f}, due={card.due_at.isoformat()}"
        )
        return card


# =============================================================================
# Due-card selection
# =============================================================================


def due_cards(cards: Iterable[Card], now: datetime) -> list[Card]:
    """Cards with due_at <= now, in collection order."""
    return [card for card in cards if card.is_due(now)]


def count_due(cards: Iterable[Card], now: datetime) -> int:
    return sum(1 for card in cards if card.is_due(now))


def select_next_due(cards: Sequence[Card], now: datetime) -> Card | None:
    """
    Pick the card to present next.

    Returns the due card with the earliest due_at; ties go to the card
    that comes first in the collection. None when nothing is due.
    """
    due = due_cards(cards, now)
    if not due:
        return None
    # min() keeps the first of equal keys
    return min(due, key=lambda card: card.due_at)


def next_due_at(cards: Iterable[Card]) -> datetime | None:
    """Earliest due time across the whole collection, or None if empty."""
    return min((card.due_at for card in cards), default=None)


def shift_due_dates(cards: Iterable[Card], days: int = 1) -> int:
    """
    Move every card's due_at back by the given number of days.

    Scheduling fields other than due_at are left alone.

    Returns:
        Number of cards shifted
    """
    delta = timedelta(days=days)
    shifted = 0
    for card in cards:
        card.due_at -= delta
        shifted += 1

    logger.debug(f"Shifted {shifted} cards back by {days} day(s)")
    return shifted
