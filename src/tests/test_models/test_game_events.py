"""
Tests for the game event schemas
"""

import pytest
from pydantic import ValidationError

from models import Direction, Outcome, OutcomeResult, Prediction
from models.events import (
    BalanceChangedEvent,
    CountdownEvent,
    GameEventType,
    PredictionMadeEvent,
    ResultEvent,
    RoundEndEvent,
    RoundStartEvent,
)


@pytest.fixture
def outcome():
    prediction = Prediction(direction=Direction.UP, amount=500.0, subject_id="player1", created_at=0, round_id=1)
    return Outcome(
        prediction=prediction,
        reference_price=150.0,
        settlement_price=153.0,
        result=OutcomeResult.WIN,
        payout=10.0,
        settled_at=60_000,
        round_id=1,
        actual_direction=Direction.UP,
        change_pct=2.0,
    )


class TestEventTypes:
    @pytest.mark.parametrize(
        "event,expected",
        [
            (RoundStartEvent(emitted_at=0, round_id=1, timestamp=0, price=150.0, closes_at=60_000), "round_start"),
            (
                PredictionMadeEvent(emitted_at=0, direction=Direction.UP, amount=1.0, price=150.0, subject_id="p"),
                "prediction_made",
            ),
            (CountdownEvent(emitted_at=0, remaining_seconds=59), "countdown"),
            (BalanceChangedEvent(emitted_at=0, new_balance=10.0, change=1.0), "balance_changed"),
            (RoundEndEvent(emitted_at=0, round_id=1, timestamp=0, settlement_price=150.0), "round_end"),
        ],
    )
    def test_type_is_set(self, event, expected):
        assert event.type == GameEventType(expected)
        assert event.type.value == expected

    def test_events_are_frozen(self):
        event = CountdownEvent(emitted_at=0, remaining_seconds=10)

        with pytest.raises(ValidationError):
            event.remaining_seconds = 5

    def test_type_cannot_be_overridden(self):
        with pytest.raises(ValidationError):
            CountdownEvent(type=GameEventType.RESULT, emitted_at=0, remaining_seconds=1)


class TestEventPayloads:
    def test_result_event_carries_outcome(self, outcome):
        event = ResultEvent(emitted_at=60_000, outcome=outcome, win_streak=1)

        assert event.outcome is outcome
        assert event.win_streak == 1

    def test_result_event_rejects_plain_dict(self, outcome):
        with pytest.raises(ValidationError):
            ResultEvent(emitted_at=0, outcome=outcome.to_dict(), win_streak=0)

    def test_round_end_outcomes(self, outcome):
        event = RoundEndEvent(
            emitted_at=60_000, round_id=1, timestamp=60_000, settlement_price=153.0, outcomes=[outcome]
        )

        assert event.outcomes == [outcome]

    def test_negative_countdown_rejected(self):
        with pytest.raises(ValidationError):
            CountdownEvent(emitted_at=0, remaining_seconds=-1)

    def test_direction_from_string(self):
        event = PredictionMadeEvent(emitted_at=0, direction="down", amount=1.0, price=150.0, subject_id="p")

        assert event.direction == Direction.DOWN

    def test_model_dump(self):
        data = CountdownEvent(emitted_at=5, remaining_seconds=3).model_dump(mode="json")

        assert data == {"type": "countdown", "emitted_at": 5, "remaining_seconds": 3}
