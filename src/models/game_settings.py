"""
Game Settings Model

Validated runtime options for a game session. Built from the sectioned
Config (see config.py) or directly in tests. Every option applies from the
next tick or scheduling cycle; nothing is recomputed retroactively.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator


class GameSettings(BaseModel):
    """Options recognised by GameSession, RoundScheduler and PriceFeed."""

    # Round timing
    round_duration_ms: int = Field(60_000, gt=0, description="Length of the betting window")
    round_interval_ms: int = Field(5_000, ge=0, description="Cooldown between rounds")
    countdown_interval_ms: int = Field(1_000, gt=0, description="Countdown event cadence")

    # Session
    initial_balance: float = Field(10_000.0, ge=0, description="Starting balance")
    subject_id: str = Field("player1", min_length=1, description="Player owning the session")
    history_limit: int = Field(1_000, gt=0, description="Settled outcomes kept by the ledger and the session history")

    # Price feed
    initial_price: float = Field(150.0, gt=0, description="Price before the first tick")
    volatility: float = Field(0.01, ge=0, description="Max relative move per tick")
    drift: float = Field(0.0, description="Relative trend per tick")
    price_tick_interval_ms: int = Field(1_000, gt=0, description="Tick cadence and time step")
    lookback_offset_ratio: float = Field(
        0.75, gt=0, le=1, description="Position of the bettor-facing price in the buffer"
    )
    max_price_points: int = Field(180, gt=0, description="Ring buffer capacity")
    price_floor: float = Field(0.01, gt=0, description="Lowest price the walk can produce")
    prefill_history: bool = Field(True, description="Seed the buffer with a full window")
    seed: int | None = Field(None, description="Random seed for reproducible walks")

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True
        extra = "forbid"

    @field_validator("drift")
    @classmethod
    def _drift_within_one(cls, v: float) -> float:
        if not -1.0 < v < 1.0:
            raise ValueError(f"drift must be in (-1, 1), got {v}")
        return v

    def merged(self, **changes: Any) -> GameSettings:
        """Return a validated copy with the given options replaced."""
        data = self.model_dump()
        data.update(changes)
        return GameSettings(**data)
