"""Tests for the quote lifecycle state machine (no database)."""
from datetime import datetime, timedelta

import pytest

from dispatch_quotes import lifecycle
from dispatch_quotes.errors import InvalidStateTransition
from dispatch_quotes.models import (
    ACTION_LABELS, Quote, QuoteActionType, QuoteOutcome, QuoteStatus,
)

NOW = datetime(2026, 3, 2, 9, 0, 0)


def _quote(**fields):
    quote = lifecycle.initialize(Quote(id="q-1", client_name="Test", service_type="Other"), NOW, 72)
    for key, value in fields.items():
        setattr(quote, key, value)
    return quote


def test_initialize_sets_window_and_pending():
    quote = _quote()
    assert quote.status == QuoteStatus.PENDING
    assert quote.expires_at == NOW + timedelta(hours=72)
    assert quote.outcome is None
    assert quote.action_count == 0


def test_every_action_type_has_a_label():
    assert set(ACTION_LABELS) == set(QuoteActionType)


class TestExpiry:
    def test_not_expired_inside_window(self):
        assert lifecycle.effective_status(_quote(), NOW + timedelta(hours=71)) == QuoteStatus.PENDING

    def test_expired_after_window(self):
        quote = _quote(status=QuoteStatus.FOLLOWING_UP)
        assert lifecycle.effective_status(quote, NOW + timedelta(hours=72)) == QuoteStatus.EXPIRED

    def test_outcome_is_never_overridden_by_expiry(self):
        quote = _quote()
        lifecycle.apply_outcome(quote, QuoteOutcome.WON, None, NOW)
        later = NOW + timedelta(days=30)
        assert not lifecycle.is_expired(quote, later)
        assert lifecycle.effective_status(quote, later) == QuoteStatus.CONVERTED


class TestFollowUp:
    @pytest.mark.parametrize("action_type", sorted(lifecycle.FOLLOW_UP_ACTIONS))
    def test_pending_moves_to_following_up(self, action_type):
        quote = lifecycle.apply_follow_up(_quote(), action_type, NOW)
        assert quote.status == QuoteStatus.FOLLOWING_UP

    def test_only_follow_up_type_counts_follow_ups(self):
        quote = lifecycle.apply_follow_up(_quote(), QuoteActionType.CALLED, NOW)
        assert quote.follow_up_count == 0
        assert quote.last_follow_up is None

        later = NOW + timedelta(hours=1)
        lifecycle.apply_follow_up(quote, QuoteActionType.FOLLOW_UP, later)
        assert quote.follow_up_count == 1
        assert quote.last_follow_up == later

    def test_next_follow_up_only_changes_when_given(self):
        scheduled = NOW + timedelta(days=1)
        quote = _quote(next_follow_up=scheduled)
        lifecycle.apply_follow_up(quote, QuoteActionType.TEXTED, NOW)
        assert quote.next_follow_up == scheduled

        moved = NOW + timedelta(days=2)
        lifecycle.apply_follow_up(quote, QuoteActionType.FOLLOW_UP, NOW, next_follow_up=moved)
        assert quote.next_follow_up == moved

    def test_rejects_non_follow_up_type(self):
        with pytest.raises(ValueError):
            lifecycle.apply_follow_up(_quote(), QuoteActionType.NOTE_ADDED, NOW)


class TestOutcome:
    @pytest.mark.parametrize("outcome, status", [
        (QuoteOutcome.WON, QuoteStatus.CONVERTED),
        (QuoteOutcome.LOST, QuoteStatus.LOST),
    ])
    def test_outcome_maps_to_terminal_status(self, outcome, status):
        quote = lifecycle.apply_outcome(_quote(), outcome, "reason", NOW)
        assert quote.status == status
        assert quote.outcome == outcome
        assert quote.outcome_at == NOW
        assert lifecycle.is_terminal(quote.status)

    def test_outcome_twice_is_rejected(self):
        quote = lifecycle.apply_outcome(_quote(), QuoteOutcome.LOST, None, NOW)
        with pytest.raises(InvalidStateTransition):
            lifecycle.ensure_outcome_allowed(quote, NOW)

    def test_outcome_after_expiry_is_rejected(self):
        with pytest.raises(InvalidStateTransition):
            lifecycle.ensure_outcome_allowed(_quote(), NOW + timedelta(hours=73))


@pytest.mark.parametrize("status", sorted(lifecycle.TERMINAL_STATUSES))
def test_terminal_quotes_refuse_follow_up(status):
    with pytest.raises(InvalidStateTransition):
        lifecycle.ensure_active(_quote(status=status), NOW, "record CALLED")
