"""
Pydantic request/response schemas for the MonkeyBets API.

Requests are validated here, before any store or SMS call is made:
malformed phones, empty prop names, past expiry dates and non-positive
stakes are all rejected with a 422 naming the offending field.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from backend.core.lifecycle import utc_naive
from backend.core.phone import normalize_phone


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------

class SendCodeRequest(BaseModel):
    """Payload for POST /api/auth/send-code."""

    phone: str = Field(..., description='Any US format, e.g. "(555) 123-4567"')

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: str) -> str:
        return normalize_phone(v)


class VerifyCodeRequest(SendCodeRequest):
    """Payload for POST /api/auth/sign-in and /api/auth/sign-up."""

    code: str = Field(..., pattern=r"^\d{4,10}$", description="SMS verification code")

    model_config = {
        "json_schema_extra": {
            "example": {"phone": "555-123-4567", "code": "123456"}
        }
    }


class MonkeyResponse(BaseModel):
    id: str
    phone: str
    phone_verified: bool

    class Config:
        from_attributes = True


class AuthResponse(BaseModel):
    """Returned on sign-in / sign-up.  The client persists both fields."""
    token: str
    monkey: MonkeyResponse


# ---------------------------------------------------------------------------
# Props
# ---------------------------------------------------------------------------

class PropCreate(BaseModel):
    """Payload for POST /api/props."""

    name: str = Field(..., max_length=200, description="The yes/no proposition")
    expiry_date: datetime = Field(..., description="ISO-8601; naive values are UTC")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Prop name is required")
        return v

    @field_validator("expiry_date")
    @classmethod
    def validate_expiry(cls, v: datetime) -> datetime:
        v = utc_naive(v)
        if v <= datetime.utcnow():
            raise ValueError("Expiry date must be in the future")
        return v

    model_config = {
        "json_schema_extra": {
            "example": {
                "name": "Will the banana price increase by 20%?",
                "expiry_date": "2026-12-31T23:59:00Z",
            }
        }
    }


class ResultUpdate(BaseModel):
    """Payload for PUT /api/props/{prop_id}/result."""
    result: bool = Field(..., description='True = "Yes" happened')


class PropResponse(BaseModel):
    id: str
    name: str
    expiry_date: datetime
    creator_id: str
    result: Optional[bool]
    deleted_at: Optional[datetime]
    created_at: Optional[datetime]
    state: Literal["open", "expired_unresolved", "resolved"]
    is_deleted: bool


class PropSummary(BaseModel):
    """A prop on the dashboard, with American odds."""
    prop: PropResponse
    yes_odds: str
    no_odds: str
    share_url: str


class PublicPropResponse(BaseModel):
    """Shareable-link view; no authentication required."""
    id: str
    name: str
    expiry_date: datetime
    state: Literal["open", "expired_unresolved", "resolved"]
    result: Optional[bool]
    accepting_wagers: bool
    is_deleted: bool
    yes_odds: str
    no_odds: str


# ---------------------------------------------------------------------------
# Wagers
# ---------------------------------------------------------------------------

class WagerCreate(BaseModel):
    """Payload for POST /api/props/{prop_id}/wagers."""

    prediction: bool = Field(..., description='True = "Yes"')
    bananas: int = Field(..., gt=0, description="Whole bananas to stake")

    model_config = {
        "json_schema_extra": {"example": {"prediction": True, "bananas": 25}}
    }


class WagerResponse(BaseModel):
    id: str
    prop_id: str
    bettor_id: str
    prediction: bool
    bananas: int
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class MyWagerResponse(WagerResponse):
    """The viewer's own wager, with payout and settlement info."""
    outcome: Literal["won", "lost", "pending"]
    potential_payout: float


class ActiveWager(BaseModel):
    """A wager on the dashboard, joined to its open prop."""
    id: str
    prop_id: str
    prop_name: str
    expiry_date: datetime
    prediction: bool
    bananas: int
    your_odds: str


class PoolTotals(BaseModel):
    yes_bananas: int
    no_bananas: int
    total_bananas: int


class PropDetailResponse(BaseModel):
    prop: PropResponse
    totals: PoolTotals
    yes_odds: float
    no_odds: float
    yes_american: str
    no_american: str
    wagers: list[WagerResponse]
    my_wagers: list[MyWagerResponse]
    is_creator: bool
    can_wager: bool
    can_set_result: bool
    can_delete: bool
    share_url: str


class WagerDetailResponse(BaseModel):
    prop: PropResponse
    wager: Optional[MyWagerResponse]
    yes_odds: float
    no_odds: float
    can_wager: bool
    share_url: str


class DashboardResponse(BaseModel):
    created_props: list[PropSummary]
    active_wagers: list[ActiveWager]
