"""
Card: the flashcard entity.

A card holds its study content (prompt, answer, optional audio) and the
SM-2 scheduling fields that the scheduler mutates on every rating.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime

from loguru import logger

from .errors import CardValidationError

DEFAULT_EASE = 2.5
MINIMUM_EASE = 1.3

# Marker for "keep the current audio" in edit_content
KEEP_AUDIO = object()


@dataclass
class Card:
    """
    A single reviewable flashcard.

    Scheduling fields:
    - interval: Days until next review (0 = never reviewed)
    - repetitions: Consecutive successful reviews since the last reset
    - ease_factor: Interval growth multiplier (floor 1.3)
    - due_at: UTC moment the card becomes eligible for review
    """

    id: str
    prompt: str
    answer: str
    due_at: datetime
    audio: str | None = None  # data: URI
    interval: int = 0
    repetitions: int = 0
    ease_factor: float = DEFAULT_EASE

    def is_due(self, now: datetime) -> bool:
        """Check if this card is due at the given moment."""
        return self.due_at <= now

    @property
    def has_audio(self) -> bool:
        return bool(self.audio)

    @property
    def is_new(self) -> bool:
        """True until the card has been rated at least once."""
        return self.interval == 0 and self.repetitions == 0

    def edit_content(self, prompt: str, answer: str, audio: object = KEEP_AUDIO) -> None:
        """
        Replace the card's study content, leaving scheduling untouched.

        Args:
            prompt: New prompt text
            answer: New answer text
            audio: New data URI, None to remove, or KEEP_AUDIO to leave as is
        """
        self.prompt, self.answer = _clean_content(prompt, answer)
        if audio is not KEEP_AUDIO:
            self.audio = audio  # type: ignore[assignment]
        logger.debug(f"Edited card {self.id}")


def _clean_content(prompt: str, answer: str) -> tuple[str, str]:
    prompt = (prompt or "").strip()
    answer = (answer or "").strip()
    if not prompt or not answer:
        raise CardValidationError("A card needs both a question and an answer")
    return prompt, answer


def new_card_id() -> str:
    return uuid.uuid4().hex


def create_card(
    prompt: str,
    answer: str,
    now: datetime,
    audio: str | None = None,
    initial_ease: float = DEFAULT_EASE,
) -> Card:
    """
    Create a never-reviewed card that is due immediately.

    Args:
        prompt: Text shown before reveal
        answer: Text shown after reveal
        now: Creation moment (becomes due_at)
        audio: Optional audio data URI
        initial_ease: Starting ease factor

    Returns:
        New Card

    Raises:
        CardValidationError: If prompt or answer is blank
    """
    prompt, answer = _clean_content(prompt, answer)
    return Card(
        id=new_card_id(),
        prompt=prompt,
        answer=answer,
        audio=audio,
        interval=0,
        repetitions=0,
        ease_factor=initial_ease,
        due_at=now,
    )
