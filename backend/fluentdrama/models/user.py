"""User, subscription and usage models."""
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import Field

from fluentdrama.models.base import CamelModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SubscriptionTier(str, Enum):
    free = "free"
    starter = "starter"
    pro = "pro"
    premium = "premium"


class SubscriptionStatus(str, Enum):
    active = "active"
    inactive = "inactive"
    cancelled = "cancelled"


class UsageMetric(str, Enum):
    """Metered operations."""

    conversation = "conversation"
    image = "image"
    tts = "tts"

    @property
    def counter_field(self) -> str:
        """Name of the UsageCounter attribute that counts this metric."""
        return _COUNTER_FIELDS[self]


_COUNTER_FIELDS: dict[UsageMetric, str] = {
    UsageMetric.conversation: "conversation_count",
    UsageMetric.image: "image_generation_count",
    UsageMetric.tts: "tts_usage_count",
}


class UsageCounter(CamelModel):
    """Per-user metered counts for the current 30-day window."""

    conversation_count: int = Field(0, ge=0)
    image_generation_count: int = Field(0, ge=0)
    tts_usage_count: int = Field(0, ge=0)
    last_reset_at: datetime = Field(default_factory=utcnow)

    def count(self, metric: UsageMetric) -> int:
        return getattr(self, metric.counter_field)


class User(CamelModel):
    """Stored user record. Use UserPublic for anything sent to a client."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    email: str
    password_hash: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    google_id: Optional[str] = None
    profile_image_url: Optional[str] = None
    is_admin: bool = False
    subscription_tier: SubscriptionTier = SubscriptionTier.free
    subscription_status: SubscriptionStatus = SubscriptionStatus.active
    payment_provider: Optional[str] = None
    customer_id: Optional[str] = None
    subscription_id: Optional[str] = None
    subscription_expires_at: Optional[datetime] = None
    usage: UsageCounter = Field(default_factory=UsageCounter)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def public(self) -> "UserPublic":
        return UserPublic.model_validate(self.model_dump(exclude={"password_hash"}))


class UserPublic(CamelModel):
    """User as returned by the API (no password hash)."""

    id: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image_url: Optional[str] = None
    is_admin: bool = False
    subscription_tier: SubscriptionTier
    subscription_status: SubscriptionStatus
    payment_provider: Optional[str] = None
    subscription_expires_at: Optional[datetime] = None
    usage: UsageCounter
    created_at: datetime
    updated_at: datetime


class RegisterRequest(CamelModel):
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=1)
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class LoginRequest(CamelModel):
    email: str
    password: str


class QuotaStatus(CamelModel):
    """Result of a quota check for one metric."""

    allowed: bool
    current: int
    limit: int
    tier: SubscriptionTier = SubscriptionTier.free
    days_until_reset: int = 30


class CheckUsageResponse(CamelModel):
    can_use: bool
    current_usage: int
    limit: int
    tier: SubscriptionTier
    days_until_reset: int


class IncrementUsageResponse(CamelModel):
    success: bool = True
    new_usage: int


class SubscribeRequest(CamelModel):
    tier: SubscriptionTier
    provider: str


class AdminSubscriptionUpdate(CamelModel):
    tier: SubscriptionTier
