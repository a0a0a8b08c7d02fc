"""Character portrait generation."""
from datetime import datetime
from pathlib import Path
from typing import Optional
from uuid import uuid4

from google.genai import types

from fluentdrama.core.errors import ProviderNotConfiguredError
from fluentdrama.core.logging import setup_logging
from fluentdrama.models.character import GenerateImageRequest, Style
from fluentdrama.services.genai_client import GeminiBackedService, first_inline_data

logger = setup_logging("image")

SCENARIO_BACKGROUNDS: dict[str, str] = {
    "restaurant": "elegant restaurant interior with dining tables and ambient lighting",
    "airport": "modern airport terminal with check-in counters and departure boards",
    "coffee_shop": "trendy coffee shop with espresso machines and cozy seating",
    "office": "professional corporate office with modern furniture",
    "school": "bright classroom with educational materials and whiteboards",
    "hotel": "luxurious hotel lobby with reception desk and elegant decor",
    "shopping_mall": "modern shopping center with stores and shoppers",
    "hospital": "clean medical facility with professional healthcare setting",
    "bank": "professional banking environment with teller counters",
    "library": "quiet library with bookshelves and study areas",
}

SCENARIO_OUTFITS: dict[str, str] = {
    "airport": "professional flight attendant uniform, name badge",
    "coffee_shop": "casual barista apron over comfortable clothing",
    "office": "professional business attire, suit or blazer",
    "business_meeting": "professional business attire, suit or blazer",
    "hotel": "elegant concierge uniform, professional appearance",
    "school": "professional teacher attire, educational setting appropriate",
    "cafeteria": "casual food service uniform, hair net, friendly demeanor",
    "club": "casual student clothing, club t-shirt or hoodie",
    "shopping_mall": "retail employee uniform or casual professional attire",
    "hospital": "medical professional attire, clean and professional",
    "bank": "formal business attire, professional banking appearance",
    "library": "librarian or academic professional attire",
}

STYLE_POSES: dict[Style, str] = {
    Style.cheerful: "standing confidently with warm welcoming gesture",
    Style.calm: "standing peacefully with relaxed, approachable posture",
    Style.strict: "standing professionally with confident, authoritative stance",
}

STYLE_EXPRESSIONS: dict[Style, str] = {
    Style.cheerful: "bright smile, friendly expression, energetic pose",
    Style.calm: "serene expression, gentle demeanor, relaxed posture",
    Style.strict: "serious expression, professional appearance, confident stance",
}


def _outfit(scenario: str, style: Style) -> str:
    if scenario == "restaurant":
        if style == Style.strict:
            return "formal server uniform, black apron"
        return "casual restaurant uniform, friendly smile"
    return SCENARIO_OUTFITS.get(scenario, "professional casual attire")


class CharacterImageService(GeminiBackedService):
    """Builds portrait prompts and generates images via the Gemini image model."""

    def __init__(
        self,
        api_key: str = "",
        model: str = "gemini-2.5-flash-image",
        images_dir: Optional[Path] = None,
        client=None,
    ) -> None:
        super().__init__(api_key=api_key, client=client)
        self.model = model
        self.images_dir = Path(images_dir) if images_dir is not None else Path("data/images")

    def build_prompt(self, request: GenerateImageRequest) -> str:
        """Full-body portrait prompt.

        A generated background prompt wins over custom scenario text, which
        wins over the preset scenario tables.
        """
        custom = (request.custom_scenario_text or "").strip()
        scenario = request.scenario or ""
        generated = request.background_prompt

        if generated and generated.background_setting:
            background = generated.background_setting
        elif custom:
            background = f"realistic setting based on: {custom}"
        elif scenario:
            background = SCENARIO_BACKGROUNDS.get(scenario, "professional indoor setting")
        else:
            background = (
                f"professional setting suitable for {request.audience.value} "
                "level Japanese learning"
            )

        if generated:
            outfit = generated.appropriate_outfit or _outfit(scenario or "restaurant", request.style)
            pose = generated.character_pose or STYLE_POSES[request.style]
        elif custom:
            outfit = f"appropriate attire for the situation: {custom}"
            pose = STYLE_POSES[request.style]
        else:
            outfit = _outfit(scenario or "restaurant", request.style)
            pose = STYLE_POSES[request.style]

        atmosphere = f" {generated.atmosphere}." if generated and generated.atmosphere else ""
        return (
            f"FULL LENGTH BODY SHOT: Professional photograph of a real human "
            f"{request.gender.value} person of Japanese/East Asian ethnicity, entire body "
            f"visible from head to feet, {pose}, wearing {outfit}, at {background}. "
            f"{STYLE_EXPRESSIONS[request.style]}.{atmosphere}\n"
            "Framing: complete figure visible, head in the top 20% of the image, feet in "
            "the bottom 10% showing footwear, vertical orientation, wide angle lens.\n"
            "Ultra photorealistic, natural skin texture, realistic proportions, soft "
            "natural light.\n"
            "Strictly no: waist-up or head-and-shoulders framing, cropped limbs, "
            "illustration, anime, 3D render, plastic skin, exaggerated eyes."
        )

    async def generate_image(self, request: GenerateImageRequest) -> Optional[str]:
        """Generate a portrait and save it under images_dir.

        Retries once on failure. A missing API key is raised immediately.

        Returns:
            URL path of the saved PNG, or None when both attempts fail.
        """
        prompt = self.build_prompt(request)
        for attempt in range(2):
            try:
                image_bytes = await self._call_image_api(prompt)
                return self._save_image(image_bytes, request.name)
            except ProviderNotConfiguredError:
                raise
            except Exception as exc:
                logger.error(
                    "Image generation failed (attempt %d/2): %s: %s",
                    attempt + 1,
                    type(exc).__name__,
                    exc,
                    extra={"error_type": type(exc).__name__, "attempt": attempt + 1},
                )
        return None

    async def _call_image_api(self, prompt: str) -> bytes:
        response = await self._generate(
            model=self.model,
            contents=prompt,
            config=types.GenerateContentConfig(
                response_modalities=["IMAGE"],
                image_config=types.ImageConfig(aspect_ratio="9:16"),
            ),
        )
        return first_inline_data(response)

    def _save_image(self, image_bytes: bytes, name: str) -> str:
        """Write the PNG and return its URL path under the /images mount.

        File name format: character_{YYYYMMDDHHMMSS}_{8 hex}.png
        """
        self.images_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d%H%M%S")
        filename = f"character_{timestamp}_{uuid4().hex[:8]}.png"
        (self.images_dir / filename).write_bytes(image_bytes)
        logger.info("Saved portrait for %s as %s", name, filename)
        return f"/images/{filename}"
