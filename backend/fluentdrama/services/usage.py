"""Per-user metering of conversation, image and speech usage."""
from datetime import datetime, timedelta
from typing import Iterable, Optional

from fluentdrama.core.errors import QuotaExceededError
from fluentdrama.core.logging import setup_logging
from fluentdrama.models.user import (
    QuotaStatus,
    SubscriptionTier,
    UsageMetric,
    User,
    utcnow,
)
from fluentdrama.services.storage import Storage

logger = setup_logging("usage")

RESET_WINDOW = timedelta(days=30)
ADMIN_LIMIT = 999999

LIMITS: dict[SubscriptionTier, dict[UsageMetric, int]] = {
    SubscriptionTier.free: {
        UsageMetric.conversation: 30,
        UsageMetric.image: 1,
        UsageMetric.tts: 60,
    },
    SubscriptionTier.starter: {
        UsageMetric.conversation: 300,
        UsageMetric.image: 15,
        UsageMetric.tts: 600,
    },
    SubscriptionTier.pro: {
        UsageMetric.conversation: 1000,
        UsageMetric.image: 25,
        UsageMetric.tts: 2000,
    },
    SubscriptionTier.premium: {
        UsageMetric.conversation: 5000,
        UsageMetric.image: 60,
        UsageMetric.tts: 10000,
    },
}

# Error codes returned as `type` in 429 bodies
QUOTA_TYPES: dict[UsageMetric, str] = {
    UsageMetric.conversation: "conversation_limit_exceeded",
    UsageMetric.image: "image_limit_exceeded",
    UsageMetric.tts: "tts_limit_exceeded",
}


def limit_for(tier: SubscriptionTier, metric: UsageMetric) -> int:
    return LIMITS.get(tier, LIMITS[SubscriptionTier.free])[metric]


def _days_until_reset(last_reset_at: datetime, now: datetime) -> int:
    remaining = RESET_WINDOW - (now - last_reset_at)
    return max(0, remaining.days)


class UsageLedger:
    """Checks and records metered usage against the subscription tier.

    Usage is charged after the metered operation succeeds; a failed call is
    never charged and a charged call is never refunded.
    """

    def __init__(self, storage: Storage, admin_emails: Iterable[str] = ()) -> None:
        self.storage = storage
        self.admin_emails = {email.lower() for email in admin_emails}

    def is_admin(self, user: User) -> bool:
        return user.is_admin or user.email.lower() in self.admin_emails

    def reset_if_due(self, user_id: str, now: Optional[datetime] = None) -> bool:
        """Zero the counters when the 30-day window has elapsed.

        Returns:
            True when a reset happened. A second call inside the same window
            returns False and changes nothing.
        """
        now = now or utcnow()
        user = self.storage.get_user(user_id)
        if user is None:
            return False
        if now - user.usage.last_reset_at < RESET_WINDOW:
            return False
        self.storage.reset_usage(user_id, now)
        logger.info("Usage window reset", extra={"user_id": user_id})
        return True

    def check_quota(
        self, user_id: str, metric: UsageMetric, now: Optional[datetime] = None
    ) -> QuotaStatus:
        """Report whether one more `metric` operation is allowed.

        Unknown users are denied with a zero limit.
        """
        now = now or utcnow()
        self.reset_if_due(user_id, now)
        user = self.storage.get_user(user_id)
        if user is None:
            logger.warning(
                "Quota check for unknown user",
                extra={"user_id": user_id, "metric": metric.value},
            )
            return QuotaStatus(allowed=False, current=0, limit=0, days_until_reset=0)

        days = _days_until_reset(user.usage.last_reset_at, now)
        if self.is_admin(user):
            return QuotaStatus(
                allowed=True,
                current=0,
                limit=ADMIN_LIMIT,
                tier=user.subscription_tier,
                days_until_reset=days,
            )

        current = user.usage.count(metric)
        limit = limit_for(user.subscription_tier, metric)
        return QuotaStatus(
            allowed=current < limit,
            current=current,
            limit=limit,
            tier=user.subscription_tier,
            days_until_reset=days,
        )

    def require(self, user_id: str, metric: UsageMetric) -> QuotaStatus:
        """check_quota that raises QuotaExceededError when denied."""
        status = self.check_quota(user_id, metric)
        if not status.allowed:
            raise QuotaExceededError(
                status.current,
                status.limit,
                quota_type=QUOTA_TYPES[metric],
            )
        return status

    def increment(self, user_id: str, metric: UsageMetric) -> int:
        """Record one successful operation and return the new count."""
        new_count = self.storage.increment_usage(user_id, metric)
        if new_count is None:
            logger.warning(
                "Usage increment for unknown user",
                extra={"user_id": user_id, "metric": metric.value},
            )
            return 0
        logger.debug(
            "Usage incremented to %d",
            new_count,
            extra={"user_id": user_id, "metric": metric.value},
        )
        return new_count

    def reset(self, user_id: str) -> None:
        """Unconditional reset (admin action)."""
        self.storage.reset_usage(user_id, utcnow())


class LedgerMeter:
    """Binds the ledger to one user for the dialogue orchestrator."""

    def __init__(self, ledger: UsageLedger, user_id: str) -> None:
        self.ledger = ledger
        self.user_id = user_id

    def check(self, metric: UsageMetric) -> QuotaStatus:
        return self.ledger.check_quota(self.user_id, metric)

    def require(self, metric: UsageMetric) -> None:
        self.ledger.require(self.user_id, metric)

    def increment(self, metric: UsageMetric) -> int:
        return self.ledger.increment(self.user_id, metric)
