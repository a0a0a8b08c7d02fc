"""Shared access to the Google Gen AI client."""
from typing import Any, Optional

from google import genai
from google.genai import errors

from fluentdrama.core.errors import ProviderNotConfiguredError, UpstreamError


class GeminiBackedService:
    """Base for services that call Gemini with one API key.

    The client is created lazily so a missing key fails each call with the
    same error instead of failing application startup.
    """

    def __init__(self, api_key: str = "", client: Optional[Any] = None) -> None:
        self.api_key = api_key
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            if not self.api_key:
                raise ProviderNotConfiguredError()
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    async def _generate(self, **kwargs: Any) -> Any:
        """Call generate_content, mapping API errors to UpstreamError."""
        try:
            return await self.client.aio.models.generate_content(**kwargs)
        except errors.APIError as exc:
            raise UpstreamError(error=f"{exc.code}: {exc.message}") from exc


def first_inline_data(response: Any) -> bytes:
    """Return the first inline binary part of a generate_content response."""
    candidates = response.candidates
    if not candidates or candidates[0].content is None:
        raise UpstreamError(error="No candidates returned by Gemini")
    for part in candidates[0].content.parts or []:
        if getattr(part, "inline_data", None) is not None and part.inline_data.data:
            return bytes(part.inline_data.data)
    raise UpstreamError(error="No inline data returned by Gemini")
