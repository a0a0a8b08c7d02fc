"""Tests for CharacterImageService."""
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from fluentdrama.core.errors import ProviderNotConfiguredError, UpstreamError
from fluentdrama.models.character import BackgroundPrompt, GenerateImageRequest
from fluentdrama.services.image import CharacterImageService


@pytest.fixture
def images_dir(tmp_path: Path) -> Path:
    return tmp_path / "images"


@pytest.fixture
def service(images_dir: Path) -> CharacterImageService:
    return CharacterImageService(api_key="test-key", images_dir=images_dir, client=MagicMock())


def _request(**overrides) -> GenerateImageRequest:
    data = {"name": "Yuki", "gender": "female", "style": "cheerful"}
    data.update(overrides)
    return GenerateImageRequest(**data)


class TestBuildPrompt:
    def test_full_body_portrait(self, service: CharacterImageService) -> None:
        prompt = service.build_prompt(_request(scenario="restaurant"))
        assert "FULL LENGTH BODY SHOT" in prompt
        assert "female" in prompt

    def test_custom_text_used_for_background(self, service: CharacterImageService) -> None:
        prompt = service.build_prompt(_request(custom_scenario_text="a ramen stall at night"))
        assert "a ramen stall at night" in prompt

    def test_background_prompt_wins(self, service: CharacterImageService) -> None:
        prompt = service.build_prompt(
            _request(
                custom_scenario_text="ignored setting",
                background_prompt=BackgroundPrompt(
                    background_setting="a snowy shrine",
                    appropriate_outfit="winter coat",
                    atmosphere="quiet morning",
                ),
            )
        )
        assert "a snowy shrine" in prompt
        assert "winter coat" in prompt
        assert "quiet morning" in prompt

    def test_audience_fallback(self, service: CharacterImageService) -> None:
        assert "business level" in service.build_prompt(_request(audience="business"))


class TestGenerateImage:
    async def test_saves_png_under_images(
        self, service: CharacterImageService, images_dir: Path
    ) -> None:
        with patch.object(service, "_call_image_api", AsyncMock(return_value=b"png_data")):
            url = await service.generate_image(_request())
        assert url.startswith("/images/character_")
        assert url.endswith(".png")
        saved = images_dir / url.rsplit("/", 1)[1]
        assert saved.read_bytes() == b"png_data"

    async def test_retries_once(self, service: CharacterImageService) -> None:
        call = AsyncMock(side_effect=[UpstreamError(error="busy"), b"png"])
        with patch.object(service, "_call_image_api", call):
            url = await service.generate_image(_request())
        assert url is not None
        assert call.await_count == 2

    async def test_returns_none_after_two_failures(self, service: CharacterImageService) -> None:
        call = AsyncMock(side_effect=UpstreamError(error="busy"))
        with patch.object(service, "_call_image_api", call):
            assert await service.generate_image(_request()) is None
        assert call.await_count == 2

    async def test_missing_key_raises(self, images_dir: Path) -> None:
        service = CharacterImageService(api_key="", images_dir=images_dir)
        with pytest.raises(ProviderNotConfiguredError):
            await service.generate_image(_request())

    async def test_requests_portrait_aspect(self, service: CharacterImageService) -> None:
        part = MagicMock()
        part.inline_data.data = b"png"
        response = MagicMock()
        response.candidates = [MagicMock()]
        response.candidates[0].content.parts = [part]
        service.client.aio.models.generate_content = AsyncMock(return_value=response)
        assert await service._call_image_api("prompt") == b"png"
        config = service.client.aio.models.generate_content.call_args.kwargs["config"]
        assert config.image_config.aspect_ratio == "9:16"
        assert config.response_modalities == ["IMAGE"]
