"""
Study Session: the in-memory source of truth for one run of the app.

The session owns the card collection and the currently presented card.
Every mutation (add, edit, delete, rate, skip-day, import) is followed by
a fire-and-forget save through the CardStoreWriter and, where the due set
may have changed, a fresh earliest-due-first selection.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

from loguru import logger

from .card import KEEP_AUDIO, Card, create_card
from .card_store import CardStore, CardStoreWriter
from .clock import Clock, utc_now
from .errors import CardNotFoundError
from .scheduler import (
    ReviewScheduler,
    RatingPolicy,
    count_due,
    next_due_at,
    select_next_due,
    shift_due_dates,
)
from .transfer import export_cards, import_cards


class StudySession:
    """
    Owns the card collection and the current card.

    Persistence failures are tolerated: the session keeps working in
    memory and calls on_persistence_warning once, on the first failed save.
    """

    def __init__(
        self,
        cards: list[Card],
        policy: RatingPolicy,
        writer: CardStoreWriter | None = None,
        clock: Clock | None = None,
        on_persistence_warning: Callable[[str], None] | None = None,
    ):
        """
        Args:
            cards: Initial collection (owned by the session from now on)
            policy: Rating policy used for reviews
            writer: Background writer, or None for in-memory only
            clock: Time source (defaults to UTC wall clock)
            on_persistence_warning: Called once if saving fails
        """
        self.cards = cards
        self.clock = clock or utc_now
        self.scheduler = ReviewScheduler(policy, self.clock)
        self.writer = writer
        self.on_persistence_warning = on_persistence_warning
        self.current: Card | None = None
        self.persistence_ok = True
        self._warned = False

        if self.writer is not None:
            self.writer.on_failure = self._on_write_failure

    @classmethod
    def open(
        cls,
        store: CardStore,
        policy: RatingPolicy,
        clock: Clock | None = None,
        on_persistence_warning: Callable[[str], None] | None = None,
    ) -> StudySession:
        """
        Load all cards from the store and start a session over them.

        If the store could not be read, the session runs in memory only so
        the unread deck on disk is never replaced.
        """
        cards = store.load_all()
        if not store.last_load_ok:
            store.close()
            session = cls(
                cards, policy, clock=clock, on_persistence_warning=on_persistence_warning
            )
            session._warn_persistence(
                "Could not read saved cards; this session will not save changes."
            )
            return session

        logger.info(f"Session opened with {len(cards)} cards")
        return cls(
            cards,
            policy,
            writer=CardStoreWriter(store),
            clock=clock,
            on_persistence_warning=on_persistence_warning,
        )

    @property
    def policy(self) -> RatingPolicy:
        return self.scheduler.policy

    # =========================================================================
    # Persistence
    # =========================================================================

    def save(self) -> None:
        """Queue a save of the full collection."""
        if self.writer is not None:
            self.writer.submit(self.cards)

    def _on_write_failure(self) -> None:
        self._warn_persistence(
            "Could not save cards; changes are kept in memory for this session only."
        )

    def _warn_persistence(self, message: str) -> None:
        self.persistence_ok = False
        if self._warned:
            return
        self._warned = True
        logger.warning(message)
        if self.on_persistence_warning is not None:
            self.on_persistence_warning(message)

    def close(self) -> None:
        """Wait for pending saves and release the store."""
        if self.writer is not None:
            self.writer.close()

    # =========================================================================
    # Card lifecycle
    # =========================================================================

    def find(self, card_id: str) -> Card:
        """
        Look up a card by id.

        Raises:
            CardNotFoundError: If no card has this id
        """
        for card in self.cards:
            if card.id == card_id:
                return card
        raise CardNotFoundError(card_id)

    def add_card(self, prompt: str, answer: str, audio: str | None = None) -> Card:
        card = create_card(
            prompt,
            answer,
            now=self.clock(),
            audio=audio,
            initial_ease=self.policy.config.initial_ease,
        )
        self.cards.append(card)
        self.save()
        logger.info(f"Added card {card.id}")
        return card

    def update_card(
        self,
        card_id: str,
        prompt: str,
        answer: str,
        audio: object = KEEP_AUDIO,
    ) -> Card:
        """Edit a card's content; scheduling fields are not touched."""
        card = self.find(card_id)
        card.edit_content(prompt, answer, audio)
        self.save()
        return card

    def delete_card(self, card_id: str) -> Card:
        card = self.find(card_id)
        self.cards.remove(card)
        if self.current is card:
            self.current = None
        self.save()
        logger.info(f"Deleted card {card_id}")
        return card

    # =========================================================================
    # Study flow
    # =========================================================================

    def now(self) -> datetime:
        return self.clock()

    def due_count(self) -> int:
        return count_due(self.cards, self.clock())

    def next_due_at(self) -> datetime | None:
        return next_due_at(self.cards)

    def next_card(self) -> Card | None:
        """Select (and remember) the earliest-due card, or None if nothing is due."""
        self.current = select_next_due(self.cards, self.clock())
        return self.current

    def rate(self, rating: object) -> Card | None:
        """
        Rate the current card and move on to the next one.

        Args:
            rating: Raw rating; validated against the active policy

        Returns:
            The card that was rated, or None if no card was current

        Raises:
            InvalidRatingError: If the rating is outside the policy's domain
        """
        rating = self.policy.validate(rating)
        card = self.current
        if card is None:
            return None

        self.scheduler.apply_rating(card, rating)
        self.save()
        self.next_card()
        return card

    def skip_day(self, days: int = 1) -> int:
        """Pretend the given number of days passed, then reselect."""
        shifted = shift_due_dates(self.cards, days)
        self.save()
        self.next_card()
        return shifted

    # =========================================================================
    # Transfer
    # =========================================================================

    def export_json(self) -> str:
        return export_cards(self.cards)

    def import_json(self, payload: str | bytes) -> int:
        """
        Replace the whole collection with the cards in an export document.

        The payload is fully validated first; on InvalidImportError the
        current collection is left untouched.

        Returns:
            Number of cards imported
        """
        imported = import_cards(payload, now=self.clock())
        self.cards[:] = imported
        self.current = None
        self.save()
        logger.info(f"Imported {len(imported)} cards")
        return len(imported)
