"""Request bodies for the JSON API."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, field_validator

SPORT_ID_PATTERN = r"^[a-z][a-z0-9_]{0,49}$"


class SubmitMatchRequest(BaseModel):
    sport: str = Field(pattern=SPORT_ID_PATTERN)
    opponent_id: int = Field(ge=1)
    player_score: int = Field(ge=0)
    opponent_score: int = Field(ge=0)


class EditMatchRequest(BaseModel):
    player1_score: Optional[int] = Field(default=None, ge=0)
    player2_score: Optional[int] = Field(default=None, ge=0)
    status: Optional[str] = None

    @field_validator("status")
    @classmethod
    def normalize_status(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().lower() if v is not None else None


class BanUserRequest(BaseModel):
    user_id: int = Field(ge=1)
    reason: str = Field(min_length=5, max_length=500)


class AdjustEloRequest(BaseModel):
    user_id: int = Field(ge=1)
    sport: str = Field(pattern=SPORT_ID_PATTERN)
    new_elo: int = Field(ge=0, le=5000)
    reason: str = Field(min_length=5, max_length=500)
