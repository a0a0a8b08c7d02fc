"""Tests for the error taxonomy and the best-effort call outcome."""
import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from fluentdrama.core.errors import (
    AuthenticationError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    ProviderNotConfiguredError,
    QuotaExceededError,
    ServiceUnavailableError,
    UpstreamError,
    ValidationFailedError,
    app_error_handler,
    unhandled_error_handler,
)
from fluentdrama.core.outcome import Degraded, DegradeCause, Ok, attempt


class TestErrorTaxonomy:
    @pytest.mark.parametrize(
        "error, status",
        [
            (AuthenticationError(), 401),
            (ForbiddenError(), 403),
            (NotFoundError(), 404),
            (ValidationFailedError(), 400),
            (InvalidTransitionError(), 409),
            (QuotaExceededError(3, 3), 429),
            (UpstreamError(), 500),
            (ProviderNotConfiguredError(), 500),
            (ServiceUnavailableError(), 503),
        ],
    )
    def test_status_codes(self, error, status: int) -> None:
        assert error.status_code == status

    def test_quota_body_has_usage_fields(self) -> None:
        body = QuotaExceededError(1, 1, quota_type="image_limit_exceeded").to_body()
        assert body["currentUsage"] == 1
        assert body["limit"] == 1
        assert body["type"] == "image_limit_exceeded"
        assert "message" in body

    def test_quota_body_omits_type_when_absent(self) -> None:
        assert "type" not in QuotaExceededError(30, 30).to_body()

    def test_upstream_body_carries_raw_error(self) -> None:
        body = UpstreamError("Failed", error="503: overloaded").to_body()
        assert body == {"message": "Failed", "error": "503: overloaded"}

    def test_transition_body_carries_state(self) -> None:
        body = InvalidTransitionError(state="processing").to_body()
        assert body["state"] == "processing"

    def test_provider_not_configured_is_upstream(self) -> None:
        assert isinstance(ProviderNotConfiguredError(), UpstreamError)


class TestHandlers:
    async def test_app_error_handler_renders_body(self) -> None:
        request = MagicMock()
        response = await app_error_handler(request, NotFoundError("Character not found"))
        assert response.status_code == 404
        assert json.loads(response.body) == {"message": "Character not found"}

    async def test_unhandled_error_handler_returns_500(self) -> None:
        request = MagicMock()
        response = await unhandled_error_handler(request, RuntimeError("boom"))
        assert response.status_code == 500
        assert json.loads(response.body)["error"] == "boom"


class TestAttempt:
    async def test_success_is_ok(self) -> None:
        outcome = await attempt(AsyncMock(return_value="value"), fallback="x", label="op")
        assert outcome == Ok("value")
        assert outcome.degraded is False

    async def test_non_transient_failure_degrades_without_retry(self) -> None:
        operation = AsyncMock(side_effect=UpstreamError(error="bad"))
        outcome = await attempt(operation, fallback="fallback", label="tts")
        assert isinstance(outcome, Degraded)
        assert outcome.value == "fallback"
        assert outcome.reason == "tts: UpstreamError"
        assert operation.await_count == 1

    async def test_transient_failure_retried_once(self) -> None:
        operation = AsyncMock(side_effect=[httpx.ConnectError("down"), "second"])
        outcome = await attempt(operation, fallback=None, label="op")
        assert outcome == Ok("second")
        assert operation.await_count == 2

    async def test_transient_failure_twice_degrades(self) -> None:
        operation = AsyncMock(side_effect=ConnectionError("down"))
        outcome = await attempt(operation, fallback=None, label="op")
        assert outcome.degraded is True
        assert outcome.reason == "op: ConnectionError"
        assert operation.await_count == 2

    async def test_timeout_degrades(self) -> None:
        async def slow() -> str:
            await asyncio.sleep(1)
            return "late"

        outcome = await attempt(slow, fallback="fallback", label="slow", timeout=0.01, retries=0)
        assert outcome.degraded is True
        assert outcome.value == "fallback"
        assert outcome.cause == DegradeCause.timeout
        assert outcome.quota_exceeded is False

    async def test_quota_exceeded_is_not_retried(self) -> None:
        operation = AsyncMock(side_effect=QuotaExceededError(30, 30))
        outcome = await attempt(operation, fallback="x", label="opening_line")
        assert outcome.reason == "opening_line: quota_exceeded"
        assert outcome.cause == DegradeCause.quota_exceeded
        assert outcome.quota_exceeded is True
        assert operation.await_count == 1

    async def test_provider_failure_is_not_a_quota_denial(self) -> None:
        ok = await attempt(AsyncMock(return_value="fine"), fallback="x", label="op")
        failed = await attempt(AsyncMock(side_effect=UpstreamError(error="bad")), fallback="x", label="op")
        assert ok.quota_exceeded is False
        assert failed.cause == DegradeCause.failed
        assert failed.quota_exceeded is False

    async def test_degraded_fallback_equal_to_success_value_is_distinguishable(self) -> None:
        ok = await attempt(AsyncMock(return_value="same"), fallback="same", label="op")
        degraded = await attempt(AsyncMock(side_effect=ValueError()), fallback="same", label="op")
        assert ok.value == degraded.value
        assert ok.degraded != degraded.degraded
