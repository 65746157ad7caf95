"""
Tests for data models
"""

import dataclasses

import pytest

from models import (
    Direction,
    Outcome,
    OutcomeResult,
    Prediction,
    PredictionMarker,
    PricePoint,
    Round,
    RoundState,
    SchedulerState,
    SessionState,
)


def make_outcome(result=OutcomeResult.WIN, payout=10.0, reference=150.0, settlement=153.0):
    prediction = Prediction(direction=Direction.UP, amount=500.0, subject_id="player1", created_at=0, round_id=1)
    return Outcome(
        prediction=prediction,
        reference_price=reference,
        settlement_price=settlement,
        result=result,
        payout=payout,
        settled_at=60_000,
        round_id=1,
        actual_direction=Direction.from_prices(reference, settlement),
        change_pct=abs(settlement - reference) / reference * 100,
    )


class TestDirection:
    """Tests for Direction enum"""

    @pytest.mark.parametrize(
        "reference,settlement,expected",
        [
            (150.0, 153.0, Direction.UP),
            (150.0, 147.0, Direction.DOWN),
            (150.0, 150.0, Direction.DOWN),
        ],
    )
    def test_from_prices(self, reference, settlement, expected):
        assert Direction.from_prices(reference, settlement) == expected

    def test_string_values(self):
        assert Direction("up") == Direction.UP
        assert Direction.DOWN.value == "down"

    def test_scheduler_running_states(self):
        assert not SchedulerState.is_running(SchedulerState.IDLE)
        assert SchedulerState.is_running(SchedulerState.SETTLING)


class TestPricePoint:
    """Tests for PricePoint and PredictionMarker"""

    def test_price_point_is_frozen(self):
        point = PricePoint(timestamp=1_000, price=150.0)

        with pytest.raises(dataclasses.FrozenInstanceError):
            point.price = 151.0

    def test_to_dict(self):
        assert PricePoint(1_000, 150.0).to_dict() == {"timestamp": 1_000, "price": 150.0}
        marker = PredictionMarker(timestamp=1_000, price=150.0, direction=Direction.DOWN)
        assert marker.to_dict()["direction"] == "down"


class TestPrediction:
    """Tests for Prediction"""

    def test_is_correct(self):
        prediction = Prediction(direction=Direction.UP, amount=100.0, subject_id="p", created_at=0)

        assert prediction.is_correct(Direction.UP)
        assert not prediction.is_correct(Direction.DOWN)

    def test_to_dict(self):
        prediction = Prediction(direction=Direction.DOWN, amount=100.0, subject_id="p", created_at=5, round_id=2)

        assert prediction.to_dict() == {
            "direction": "down",
            "amount": 100.0,
            "subject_id": "p",
            "created_at": 5,
            "round_id": 2,
        }


class TestRound:
    """Tests for Round"""

    def test_remaining_ms(self):
        round_ = Round(round_id=1, opened_at=0, closes_at=60_000, reference_price=150.0)

        assert round_.duration_ms == 60_000
        assert round_.remaining_ms(15_000) == 45_000
        assert round_.remaining_ms(90_000) == 0

    def test_snapshot_detaches_predictions(self, sample_round):
        snapshot = sample_round.snapshot()

        snapshot.predictions.clear()

        assert len(sample_round.predictions) == 2

    def test_to_dict(self, sample_round):
        data = sample_round.to_dict()

        assert data["state"] == "open"
        assert len(data["predictions"]) == 2
        assert data["reference_price"] == 150.0

    def test_is_open(self, sample_round):
        assert sample_round.is_open

        sample_round.state = RoundState.CLOSED

        assert not sample_round.is_open


class TestOutcome:
    """Tests for Outcome"""

    def test_is_win(self):
        assert make_outcome().is_win
        assert not make_outcome(OutcomeResult.LOSE, -10.0).is_win

    def test_signed_price_change(self):
        assert make_outcome(settlement=147.0).price_change_percentage() == pytest.approx(-2.0)

    def test_str(self):
        text = str(make_outcome())

        assert "Prediction: up" in text
        assert "Result: win" in text
        assert "$150.00 -> $153.00" in text
        assert "+2.00%" in text
        assert "Payout: 10" in text

    def test_to_dict(self):
        data = make_outcome().to_dict()

        assert data["result"] == "win"
        assert data["actual_direction"] == "up"
        assert data["prediction"]["amount"] == 500.0


class TestSessionState:
    """Tests for SessionState"""

    def test_win_increments_streak(self):
        state = SessionState(balance=10_000.0)

        change = state.apply_outcome(make_outcome())

        assert change == 10.0
        assert state.balance == 10_010.0
        assert state.win_streak == 1
        assert len(state.history) == 1

    def test_loss_resets_streak(self):
        state = SessionState(balance=10_000.0, win_streak=4)

        state.apply_outcome(make_outcome(OutcomeResult.LOSE, -10.0, settlement=147.0))

        assert state.balance == 9_990.0
        assert state.win_streak == 0

    def test_history_keeps_most_recent_outcomes(self):
        state = SessionState(balance=10_000.0, history_limit=2)

        for settlement in (151.0, 152.0, 153.0):
            state.apply_outcome(make_outcome(settlement=settlement))

        assert [o.settlement_price for o in state.history] == [152.0, 153.0]
        assert state.win_streak == 3
        assert state.balance == 10_030.0

    def test_non_positive_history_limit_rejected(self):
        with pytest.raises(ValueError):
            SessionState(balance=100.0, history_limit=0)

    def test_to_dict(self):
        state = SessionState(balance=100.0)
        state.apply_outcome(make_outcome())

        data = state.to_dict()

        assert data["balance"] == 110.0
        assert data["win_streak"] == 1
        assert len(data["history"]) == 1
