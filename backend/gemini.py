"""Google Gemini client for text and image generation (google-genai SDK)."""

import asyncio
import base64
import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from google import genai
from google.genai import types

from config import GEMINI_IMAGE_MODEL, GEMINI_TEXT_MODEL, GEMINI_TIMEOUT

logger = logging.getLogger(__name__)

QUALITY_SUFFIX = " [ULTRA-HIGH DEFINITION, PROFESSIONAL QUALITY, SHARP DETAILS, NO PIXELATION]"


class GeminiError(Exception):
    """Vendor failure. status_code is the HTTP status callers should report."""

    def __init__(self, message: str, status_code: int = 502):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class GeneratedImage:
    data: bytes
    mime_type: str = "image/png"
    seed: Optional[int] = None

    def to_dict(self):
        return {
            "data": base64.b64encode(self.data).decode(),
            "mimeType": self.mime_type,
            "seed": self.seed,
        }


@dataclass
class ImageGenerationResult:
    images: List[GeneratedImage] = field(default_factory=list)
    prompt: str = ""
    model: str = GEMINI_IMAGE_MODEL
    tokens_used: Optional[int] = None
    response_time: float = 0.0
    has_watermark: bool = True  # Gemini output always carries a SynthID watermark

    def to_dict(self):
        return {
            "images": [img.to_dict() for img in self.images],
            "prompt": self.prompt,
            "model": self.model,
            "tokensUsed": self.tokens_used,
            "responseTime": self.response_time,
            "hasWatermark": self.has_watermark,
        }


def enhance_image_prompt(
    prompt: str,
    aspect_ratio: Optional[str] = None,
    seed: Optional[int] = None,
    include_text: Optional[bool] = None,
) -> str:
    enhanced = f"HIGH-RESOLUTION, CRYSTAL CLEAR: {prompt}"
    if aspect_ratio:
        enhanced += f" [Aspect ratio: {aspect_ratio}]"
    if seed:
        enhanced += f" [Seed: {seed}]"
    if include_text is False:
        enhanced += " [No text in image]"
    return enhanced + QUALITY_SUFFIX


def extract_images(resp, seed: Optional[int] = None) -> List[GeneratedImage]:
    images = []
    for candidate in getattr(resp, "candidates", None) or []:
        content = getattr(candidate, "content", None)
        for part in getattr(content, "parts", None) or []:
            inline = getattr(part, "inline_data", None)
            if inline is not None and inline.data:
                images.append(GeneratedImage(
                    data=inline.data,
                    mime_type=inline.mime_type or "image/png",
                    seed=seed,
                ))
    return images


def _total_tokens(resp) -> Optional[int]:
    usage = getattr(resp, "usage_metadata", None)
    return getattr(usage, "total_token_count", None) if usage else None


class GeminiImageClient:
    def __init__(self, api_key: str, model: str = GEMINI_IMAGE_MODEL, text_model: str = GEMINI_TEXT_MODEL):
        self.api_key = api_key
        self.model = model
        self.text_model = text_model
        self._client: Optional[genai.Client] = None

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    @property
    def client(self) -> genai.Client:
        if not self.api_key:
            raise GeminiError("Google AI API key not configured on server", 500)
        if self._client is None:
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    async def generate_image(
        self,
        prompt: str,
        images: Sequence[Tuple[bytes, str]] = (),
        aspect_ratio: Optional[str] = None,
        seed: Optional[int] = None,
        include_text: Optional[bool] = None,
        timeout: float = GEMINI_TIMEOUT,
    ) -> ImageGenerationResult:
        """
        Generate an image from a prompt, optionally conditioned on input images.

        Args:
            prompt: Text prompt, enhanced with resolution and option hints
            images: (bytes, mime_type) pairs sent ahead of the prompt
            aspect_ratio: e.g. "4:3"
            seed: Included in the prompt as a hint; the model is not deterministic
            include_text: False asks the model to keep text out of the image
            timeout: Seconds before the call is abandoned

        Returns:
            ImageGenerationResult with at least one image
        """
        enhanced = enhance_image_prompt(prompt, aspect_ratio, seed, include_text)
        contents: list = [types.Part.from_bytes(data=data, mime_type=mime) for data, mime in images]
        contents.append(enhanced)

        start = time.time()
        try:
            resp = await asyncio.wait_for(
                self.client.aio.models.generate_content(
                    model=self.model,
                    contents=contents,
                    config=types.GenerateContentConfig(
                        temperature=0.2,
                        top_p=0.95,
                        top_k=40,
                        candidate_count=1,
                        response_modalities=["TEXT", "IMAGE"],
                    ),
                ),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            raise GeminiError(f"Image generation timed out after {int(timeout)} seconds")
        except GeminiError:
            raise
        except Exception as e:
            logger.warning("Gemini image generation failed: %s", e)
            raise GeminiError(str(e) or "Failed to generate image")

        generated = extract_images(resp, seed)
        if not generated:
            raise GeminiError("No images were generated from the prompt", 500)

        return ImageGenerationResult(
            images=generated,
            prompt=prompt,
            model=self.model,
            tokens_used=_total_tokens(resp),
            response_time=round((time.time() - start) * 1000),
        )

    async def generate_text(self, prompt: str, model: Optional[str] = None) -> dict:
        model = model or self.text_model
        try:
            resp = await asyncio.wait_for(
                self.client.aio.models.generate_content(model=model, contents=prompt),
                timeout=GEMINI_TIMEOUT,
            )
        except asyncio.TimeoutError:
            raise GeminiError("Text generation timed out")
        except GeminiError:
            raise
        except Exception as e:
            logger.warning("Gemini text generation failed: %s", e)
            raise GeminiError(str(e) or "Failed to generate content")
        return {"text": getattr(resp, "text", None) or "", "tokensUsed": _total_tokens(resp), "model": model}

    async def check_connection(self) -> dict:
        """Send a trivial prompt to verify the key works."""
        if not self.is_configured:
            return {"connected": False, "error": "Google AI API key not configured on server"}
        try:
            result = await self.generate_text("Reply with the single word: ok")
        except GeminiError as e:
            return {"connected": False, "error": str(e), "model": self.text_model}
        return {"connected": True, "model": result["model"], "imageModel": self.model}
