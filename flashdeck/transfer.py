"""
JSON export/import of the card collection.

The file format is a JSON array of records using the field names of the
original browser app, so decks move freely between the two:

    [
      {
        "id": "lq3k9x2a7f",
        "question": "The train was late because of the snow.",
        "answer": "火車因為下雪而誤點了。",
        "audioData": "data:audio/mp3;base64,..." | null,
        "interval": 6,
        "repetitions": 2,
        "easeFactor": 2.6,
        "nextReview": 1718000000000
      }
    ]

"prompt" and "dueAt" are accepted as aliases on import.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path
from typing import Annotated

from loguru import logger
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StrictStr, ValidationError

from .card import DEFAULT_EASE, MINIMUM_EASE, Card
from .clock import MAX_EPOCH_MS, MIN_EPOCH_MS, from_epoch_ms, to_epoch_ms
from .errors import InvalidImportError


class CardRecord(BaseModel):
    """One card as it appears in an export file."""

    model_config = ConfigDict(extra="ignore")

    id: StrictStr
    question: StrictStr = Field(validation_alias=AliasChoices("question", "prompt"))
    answer: StrictStr
    audio_data: StrictStr | None = Field(
        default=None, validation_alias=AliasChoices("audioData", "audio")
    )
    interval: int = Field(default=0, ge=0)
    repetitions: int = Field(default=0, ge=0)
    ease_factor: float = Field(
        default=DEFAULT_EASE,
        ge=MINIMUM_EASE,
        allow_inf_nan=False,
        validation_alias=AliasChoices("easeFactor"),
    )
    # json.loads accepts NaN and Infinity; only representable datetimes pass
    next_review: Annotated[
        float, Field(ge=MIN_EPOCH_MS, le=MAX_EPOCH_MS, allow_inf_nan=False)
    ] | None = Field(default=None, validation_alias=AliasChoices("nextReview", "dueAt"))

    def to_card(self, now: datetime) -> Card:
        due_at = now if self.next_review is None else from_epoch_ms(self.next_review)
        return Card(
            id=self.id,
            prompt=self.question,
            answer=self.answer,
            audio=self.audio_data,
            interval=self.interval,
            repetitions=self.repetitions,
            ease_factor=self.ease_factor,
            due_at=due_at,
        )


def card_to_record(card: Card) -> dict:
    """Serialize a card to its export dictionary."""
    return {
        "id": card.id,
        "question": card.prompt,
        "answer": card.answer,
        "audioData": card.audio,
        "interval": card.interval,
        "repetitions": card.repetitions,
        "easeFactor": card.ease_factor,
        "nextReview": to_epoch_ms(card.due_at),
    }


def export_cards(cards: Sequence[Card]) -> str:
    """Render the collection as an export JSON document."""
    return json.dumps([card_to_record(card) for card in cards], indent=2, ensure_ascii=False)


def import_cards(payload: str | bytes, now: datetime) -> list[Card]:
    """
    Parse an export document into cards.

    Nothing is mutated here; callers swap the result in only after the
    whole payload validated.

    Args:
        payload: JSON text
        now: Due time for records without one

    Returns:
        Parsed cards in file order

    Raises:
        InvalidImportError: Not JSON, not an array, a bad record, or duplicate ids
    """
    try:
        data = json.loads(payload)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise InvalidImportError(f"Import file is not valid JSON: {e}") from e

    if not isinstance(data, list):
        raise InvalidImportError(
            f"Import file must contain a JSON array of cards, got {type(data).__name__}"
        )

    cards: list[Card] = []
    seen: set[str] = set()
    for index, item in enumerate(data):
        if not isinstance(item, dict):
            raise InvalidImportError(f"Card #{index} is not an object")
        try:
            record = CardRecord.model_validate(item)
        except ValidationError as e:
            raise InvalidImportError(f"Card #{index} is invalid: {e}") from e
        if record.id in seen:
            raise InvalidImportError(f"Card #{index} repeats id '{record.id}'")
        seen.add(record.id)
        try:
            cards.append(record.to_card(now))
        except (ValueError, OverflowError) as e:
            raise InvalidImportError(f"Card #{index} has an unusable review date: {e}") from e

    logger.debug(f"Parsed {len(cards)} cards from import payload")
    return cards


def export_to_file(cards: Sequence[Card], path: Path) -> int:
    """
    Write an export file.

    Returns:
        Number of cards written
    """
    path.write_text(export_cards(cards), encoding="utf-8")
    logger.info(f"Exported {len(cards)} cards to {path}")
    return len(cards)


def read_import_file(path: Path) -> str:
    """Read an import file, mapping I/O errors to InvalidImportError."""
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise InvalidImportError(f"Cannot read {path}: {e}") from e
