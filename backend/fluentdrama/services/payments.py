"""Subscriptions billed through Paddle."""
import asyncio
from datetime import timedelta
from typing import Optional

import httpx

from fluentdrama.core.errors import NotFoundError, UpstreamError, ValidationFailedError
from fluentdrama.core.logging import setup_logging
from fluentdrama.models.user import SubscriptionStatus, SubscriptionTier, User, utcnow
from fluentdrama.services.storage import Storage

logger = setup_logging("payments")

SUBSCRIPTION_PERIOD = timedelta(days=30)


class PaddleClient:
    """Minimal Paddle Billing API client (transactions only)."""

    def __init__(
        self,
        api_key: str,
        api_url: str = "https://api.paddle.com",
        http: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ) -> None:
        self.api_key = api_key
        self.api_url = api_url.rstrip("/")
        self.http = http or httpx.AsyncClient(timeout=timeout)

    async def create_transaction(self, price_id: str, user_id: str, tier: str) -> dict:
        response = await self.http.post(
            f"{self.api_url}/transactions",
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
                "Paddle-Version": "1",
            },
            json={
                "items": [{"price_id": price_id, "quantity": 1}],
                "collection_mode": "automatic",
                "custom_data": {"user_id": user_id, "tier": tier},
            },
        )
        try:
            payload = response.json() if response.content else {}
        except ValueError:
            payload = {}
        if response.status_code >= 400:
            detail = payload.get("error", {}).get("detail") if isinstance(payload, dict) else None
            raise ValidationFailedError(
                "Payment was rejected", error=detail or f"HTTP {response.status_code}"
            )
        return payload.get("data", payload)

    async def aclose(self) -> None:
        await self.http.aclose()


class SubscriptionService:
    """Moves users between tiers."""

    def __init__(
        self,
        storage: Storage,
        paddle: Optional[PaddleClient] = None,
        price_ids: Optional[dict[str, str]] = None,
    ) -> None:
        self.storage = storage
        self.paddle = paddle
        self.price_ids = price_ids or {}

    async def subscribe(self, user: User, tier: SubscriptionTier, provider: str) -> tuple[User, dict]:
        """Charge through Paddle and activate the tier for 30 days.

        Returns:
            The updated user and Paddle's transaction data.
        """
        if provider != "paddle":
            raise ValidationFailedError("Unsupported payment provider")
        if self.paddle is None or not self.paddle.api_key:
            raise ValidationFailedError("Payment provider is not configured")
        price_id = self.price_ids.get(tier.value, f"pri_{tier.value}")
        try:
            transaction = await self.paddle.create_transaction(price_id, user.id, tier.value)
        except httpx.HTTPError as exc:
            logger.error(
                "Paddle request failed: %s",
                exc,
                extra={"user_id": user.id, "error_type": type(exc).__name__},
            )
            raise UpstreamError("Payment processing failed", error=str(exc)) from exc

        updated = await asyncio.to_thread(
            self.storage.update_user,
            user.id,
            {
                "subscription_tier": tier,
                "subscription_status": SubscriptionStatus.active,
                "payment_provider": "paddle",
                "customer_id": transaction.get("customer_id") or user.id,
                "subscription_id": transaction.get("id") or f"paddle_{int(utcnow().timestamp())}",
                "subscription_expires_at": utcnow() + SUBSCRIPTION_PERIOD,
            },
        )
        logger.info("Subscribed to %s", tier.value, extra={"user_id": user.id})
        return updated or user, transaction

    def cancel(self, user: User) -> User:
        updated = self.storage.update_user(
            user.id,
            {
                "subscription_tier": SubscriptionTier.free,
                "subscription_status": SubscriptionStatus.cancelled,
            },
        )
        logger.info("Subscription cancelled", extra={"user_id": user.id})
        return updated or user

    def admin_set_tier(self, user_id: str, tier: SubscriptionTier) -> User:
        if tier == SubscriptionTier.free:
            changes = {
                "subscription_tier": tier,
                "subscription_status": SubscriptionStatus.inactive,
                "payment_provider": None,
                "customer_id": None,
                "subscription_id": None,
                "subscription_expires_at": None,
            }
        else:
            changes = {
                "subscription_tier": tier,
                "subscription_status": SubscriptionStatus.active,
                "payment_provider": "admin",
                "customer_id": f"admin_{user_id}",
                "subscription_id": f"admin_sub_{int(utcnow().timestamp())}",
                "subscription_expires_at": utcnow() + SUBSCRIPTION_PERIOD,
            }
        updated = self.storage.update_user(user_id, changes)
        if updated is None:
            raise NotFoundError("User not found")
        return updated
