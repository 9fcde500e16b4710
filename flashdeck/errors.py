"""
Exception hierarchy for flashdeck.

Every error raised on purpose by the package derives from FlashdeckError,
so the CLI can catch one type and print a friendly message.
"""

from __future__ import annotations


class FlashdeckError(Exception):
    """Base class for flashdeck errors."""

    pass


class CardValidationError(FlashdeckError):
    """Raised when card content is missing or empty."""

    pass


class CardNotFoundError(FlashdeckError):
    """Raised when a card id does not exist in the collection."""

    def __init__(self, card_id: str):
        super().__init__(f"No card with id '{card_id}'")
        self.card_id = card_id


class InvalidRatingError(FlashdeckError):
    """Raised when a rating is outside the active policy's domain."""

    pass


class InvalidImportError(FlashdeckError):
    """Raised when an import payload is not a valid card array."""

    pass


class GenerationError(FlashdeckError):
    """Raised when the AI generation service fails or returns garbage."""

    pass
