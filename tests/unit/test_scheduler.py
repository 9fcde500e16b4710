"""
Unit tests for the SM-2 review scheduler.

Covers:
- Graded (0-5) and binary (easy/hard) rating policies
- due_at stamping from the injected clock
- Earliest-due-first selection
- Bulk due-date shifting

Run: pytest tests/unit/test_scheduler.py -v
"""

from datetime import timedelta
from itertools import product

import pytest

from flashdeck.errors import InvalidRatingError
from flashdeck.scheduler import (
    BinaryPolicy,
    GradedPolicy,
    ReviewScheduler,
    SchedulerConfig,
    count_due,
    due_cards,
    next_due_at,
    policy_for,
    select_next_due,
    shift_due_dates,
)

ONE_DAY = timedelta(days=1)


@pytest.fixture
def graded(clock):
    return ReviewScheduler(GradedPolicy(), clock)


@pytest.fixture
def binary(clock):
    return ReviewScheduler(BinaryPolicy(), clock)


class TestGradedScheduling:
    """Classic SM-2 with quality 0-5."""

    def test_new_card_perfect_recall(self, graded, make_card, t0):
        card = make_card(due_at=t0)

        graded.apply_rating(card, 5)

        assert card.interval == 1
        assert card.repetitions == 1
        assert card.ease_factor == pytest.approx(2.6)
        assert card.due_at == t0 + ONE_DAY

    def test_second_success_jumps_to_six_days(self, graded, make_card, clock, t0):
        card = make_card(due_at=t0)
        graded.apply_rating(card, 5)

        clock.advance(days=1)
        graded.apply_rating(card, 5)

        assert card.interval == 6
        assert card.repetitions == 2
        assert card.due_at == t0 + ONE_DAY + 6 * ONE_DAY

    def test_third_success_multiplies_by_previous_ease(self, graded, make_card):
        card = make_card(interval=6, repetitions=2, ease_factor=2.5)

        graded.apply_rating(card, 4)

        assert card.interval == 15  # round(6 * 2.5), ease before update
        assert card.repetitions == 3
        assert card.ease_factor == pytest.approx(2.5)  # q=4 leaves EF unchanged

    def test_half_rounds_up(self, graded, make_card):
        card = make_card(interval=5, repetitions=3, ease_factor=1.3)

        graded.apply_rating(card, 5)

        assert card.interval == 7  # 6.5 -> 7

    @pytest.mark.parametrize("quality", [0, 1, 2])
    def test_failure_resets_regardless_of_state(self, graded, make_card, quality):
        card = make_card(interval=40, repetitions=7, ease_factor=2.1)

        graded.apply_rating(card, quality)

        assert card.repetitions == 0
        assert card.interval == 1
        assert card.ease_factor == pytest.approx(2.1)

    def test_ease_formula_for_quality_three(self, graded, make_card):
        card = make_card(interval=1, repetitions=1, ease_factor=2.5)

        graded.apply_rating(card, 3)

        # 2.5 + (0.1 - 2 * (0.08 + 2 * 0.02)) = 2.36
        assert card.ease_factor == pytest.approx(2.36)

    def test_ease_never_drops_below_floor(self, graded, make_card):
        card = make_card(interval=3, repetitions=2, ease_factor=1.35)

        graded.apply_rating(card, 3)

        assert card.ease_factor == pytest.approx(1.3)

    def test_zero_interval_with_repetitions_still_schedules_a_day(self, graded, make_card):
        card = make_card(interval=0, repetitions=3, ease_factor=2.5)

        graded.apply_rating(card, 5)

        assert card.interval >= 1


class TestBinaryScheduling:
    """Two-button easy/hard variant."""

    def test_easy_growth_capped_at_ceiling(self, binary, make_card):
        card = make_card(interval=6, repetitions=2, ease_factor=2.5)

        binary.apply_rating(card, True)

        assert card.interval == 15
        assert card.repetitions == 3
        assert card.ease_factor == pytest.approx(2.5)

    def test_easy_sequence_uses_three_day_second_step(self, binary, make_card, clock):
        card = make_card()

        binary.apply_rating(card, True)
        assert card.interval == 1

        clock.advance(days=1)
        binary.apply_rating(card, True)
        assert card.interval == 3
        assert card.repetitions == 2

    def test_easy_adds_bonus_below_ceiling(self, binary, make_card):
        card = make_card(interval=1, repetitions=1, ease_factor=2.0)

        binary.apply_rating(card, True)

        assert card.ease_factor == pytest.approx(2.05)

    def test_hard_resets_and_penalizes(self, binary, make_card):
        card = make_card(interval=15, repetitions=3, ease_factor=2.5)

        binary.apply_rating(card, False)

        assert card.repetitions == 0
        assert card.interval == 1
        assert card.ease_factor == pytest.approx(2.35)

    def test_hard_penalty_floored(self, binary, make_card):
        card = make_card(interval=2, repetitions=1, ease_factor=1.4)

        binary.apply_rating(card, False)

        assert card.ease_factor == pytest.approx(1.3)

    @pytest.mark.parametrize("ease, expected", [(2.6, 2.45), (2.8, 2.5), (3.5, 2.5)])
    def test_hard_brings_high_ease_under_ceiling(self, binary, make_card, ease, expected):
        card = make_card(interval=20, repetitions=4, ease_factor=ease)

        binary.apply_rating(card, False)

        assert card.ease_factor == pytest.approx(expected)
        assert (card.interval, card.repetitions) == (1, 0)

    def test_custom_ceiling(self, make_card, clock):
        scheduler = ReviewScheduler(BinaryPolicy(SchedulerConfig(maximum_ease=3.0)), clock)
        card = make_card(interval=6, repetitions=2, ease_factor=2.5)

        scheduler.apply_rating(card, True)

        assert card.ease_factor == pytest.approx(2.55)


class TestSchedulingInvariants:
    """Properties that hold after every rating."""

    STATES = [
        (0, 0, 2.5),
        (1, 1, 2.5),
        (6, 2, 1.3),
        (15, 3, 2.5),
        (3, 2, 1.31),
        (120, 9, 2.8),
    ]

    @pytest.mark.parametrize("quality", range(6))
    def test_graded_invariants(self, graded, make_card, clock, quality):
        for interval, reps, ease in self.STATES:
            card = make_card(interval=interval, repetitions=reps, ease_factor=ease)

            graded.apply_rating(card, quality)

            assert card.ease_factor >= 1.3
            assert card.interval >= 1
            assert card.due_at == clock() + card.interval * ONE_DAY

    def test_binary_invariants(self, binary, make_card, clock):
        for (interval, reps, ease), easy in product(self.STATES, (True, False)):
            card = make_card(interval=interval, repetitions=reps, ease_factor=ease)

            binary.apply_rating(card, easy)

            assert 1.3 <= card.ease_factor <= 2.5
            assert card.interval >= 1
            assert card.due_at == clock() + card.interval * ONE_DAY


class TestRatingValidation:
    """Policies validate and parse ratings for callers."""

    @pytest.mark.parametrize("rating", [0, 3, 5])
    def test_graded_accepts_range(self, rating):
        assert GradedPolicy().validate(rating) == rating

    @pytest.mark.parametrize("rating", [-1, 6, 2.5, "4", True, None])
    def test_graded_rejects_out_of_domain(self, rating):
        with pytest.raises(InvalidRatingError):
            GradedPolicy().validate(rating)

    def test_graded_parse(self):
        assert GradedPolicy().parse(" 4 ") == 4
        with pytest.raises(InvalidRatingError):
            GradedPolicy().parse("great")

    def test_binary_parse(self):
        policy = BinaryPolicy()
        assert policy.parse("e") is True
        assert policy.parse("Hard") is False
        with pytest.raises(InvalidRatingError):
            policy.parse("maybe")

    @pytest.mark.parametrize("rating", [1, 0, "easy", None])
    def test_binary_rejects_non_bool(self, rating):
        with pytest.raises(InvalidRatingError):
            BinaryPolicy().validate(rating)

    def test_policy_for(self):
        assert isinstance(policy_for("graded"), GradedPolicy)
        assert isinstance(policy_for("binary"), BinaryPolicy)
        with pytest.raises(ValueError):
            policy_for("fsrs")


class TestDueSelection:
    """Earliest-due-first selection."""

    def test_nothing_due_returns_none(self, make_card, t0):
        cards = [make_card(due_at=t0 + ONE_DAY), make_card(due_at=t0 + 2 * ONE_DAY)]

        assert select_next_due(cards, t0) is None
        assert select_next_due([], t0) is None

    def test_picks_earliest_due(self, make_card, t0):
        late = make_card(due_at=t0 - ONE_DAY)
        earliest = make_card(due_at=t0 - 3 * ONE_DAY)
        future = make_card(due_at=t0 + 5 * ONE_DAY)

        assert select_next_due([late, earliest, future], t0) is earliest

    def test_due_boundary_is_inclusive(self, make_card, t0):
        card = make_card(due_at=t0)

        assert select_next_due([card], t0) is card
        assert select_next_due([card], t0 - timedelta(milliseconds=1)) is None

    def test_ties_keep_collection_order(self, make_card, t0):
        first = make_card(due_at=t0 - ONE_DAY)
        second = make_card(due_at=t0 - ONE_DAY)

        assert select_next_due([first, second], t0) is first
        assert select_next_due([second, first], t0) is second

    def test_due_cards_and_count(self, make_card, t0):
        a = make_card(due_at=t0)
        b = make_card(due_at=t0 + ONE_DAY)
        c = make_card(due_at=t0 - ONE_DAY)

        assert due_cards([a, b, c], t0) == [a, c]
        assert count_due([a, b, c], t0) == 2

    def test_next_due_at(self, make_card, t0):
        assert next_due_at([]) is None
        cards = [make_card(due_at=t0 + 2 * ONE_DAY), make_card(due_at=t0 + ONE_DAY)]
        assert next_due_at(cards) == t0 + ONE_DAY


class TestShiftDueDates:
    """Bulk time-shift used to preview upcoming cards."""

    def test_twice_moves_back_two_days(self, make_card, t0):
        cards = [
            make_card(interval=6, repetitions=2, ease_factor=2.2, due_at=t0 + 6 * ONE_DAY),
            make_card(due_at=t0 - ONE_DAY),
        ]
        before = [(c.interval, c.repetitions, c.ease_factor, c.due_at) for c in cards]

        shift_due_dates(cards)
        shifted = shift_due_dates(cards)

        assert shifted == 2
        for card, (interval, reps, ease, due_at) in zip(cards, before):
            assert card.due_at == due_at - 2 * ONE_DAY
            assert (card.interval, card.repetitions, card.ease_factor) == (interval, reps, ease)

    def test_shift_makes_future_card_due(self, make_card, t0):
        card = make_card(due_at=t0 + ONE_DAY)

        shift_due_dates([card])

        assert select_next_due([card], t0) is card
