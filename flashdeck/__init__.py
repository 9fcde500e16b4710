"""
flashdeck: Sentence flashcards with SM-2 spaced repetition.

A portable CLI for studying sentence/translation cards, with optional
AI help for writing, translating and voicing them.

Components:
- Card: The flashcard entity
- ReviewScheduler: Applies graded (0-5) or binary (easy/hard) ratings
- select_next_due / shift_due_dates: Due-card selection and time shifting
- CardStore / CardStoreWriter: SQLite persistence with serialized writes
- StudySession: Owns the collection and the current card
- CardGenerator: Sentence, translation and speech generation
"""

from .card import Card, create_card
from .card_store import CardStore, CardStoreWriter
from .errors import (
    CardNotFoundError,
    CardValidationError,
    FlashdeckError,
    GenerationError,
    InvalidImportError,
    InvalidRatingError,
)
from .scheduler import (
    BinaryPolicy,
    GradedPolicy,
    RatingPolicy,
    ReviewScheduler,
    SchedulerConfig,
    policy_for,
    select_next_due,
    shift_due_dates,
)
from .session import StudySession

__version__ = "1.0.0"

__all__ = [
    # Cards
    "Card",
    "create_card",
    # Persistence
    "CardStore",
    "CardStoreWriter",
    # Scheduling
    "SchedulerConfig",
    "RatingPolicy",
    "GradedPolicy",
    "BinaryPolicy",
    "ReviewScheduler",
    "policy_for",
    "select_next_due",
    "shift_due_dates",
    # Session
    "StudySession",
    # Errors
    "FlashdeckError",
    "CardValidationError",
    "CardNotFoundError",
    "InvalidRatingError",
    "InvalidImportError",
    "GenerationError",
]
