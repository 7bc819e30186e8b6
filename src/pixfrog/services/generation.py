"""
Image generation service.

Text-to-image runs on the standard or high-fidelity tier; a failed
high-tier call drops to the standard tier exactly once. Image-to-image
("remix") always uses the standard multimodal tier. Both return None when
the model answers without an image, and raise when the call itself fails.
"""

from typing import List, Optional, Sequence

from ..api.gemini_client import image_part
from ..api.retry import RetryPolicy
from ..config import GENERATION_RETRIES, IMAGE_MODEL_HIGH, IMAGE_MODEL_STANDARD
from ..core.models import GeneratedImage
from ..logging_utils import log_info, log_warning


class ImageGenerator:
    """
    Gemini image generation with quality-tier fallback.

    Args:
        client: Object exposing `async generate_image(parts, model, aspect_ratio)`.
        retry_policy: Base policy; its budget is replaced by `retries`.
        retries: Retry budget for each tier attempt.
    """

    def __init__(
        self,
        client,
        retry_policy: Optional[RetryPolicy] = None,
        retries: int = GENERATION_RETRIES,
        standard_model: str = IMAGE_MODEL_STANDARD,
        high_model: str = IMAGE_MODEL_HIGH,
    ):
        self.client = client
        self.retry_policy = (retry_policy or RetryPolicy()).with_retries(retries)
        self.standard_model = standard_model
        self.high_model = high_model

    async def _attempt(self, model: str, parts: List[dict], aspect_ratio: str) -> Optional[GeneratedImage]:
        async def operation() -> Optional[GeneratedImage]:
            return await self.client.generate_image(parts, model, aspect_ratio)

        return await self.retry_policy.run(operation, context=f"generate[{model}]")

    async def generate_from_text(
        self,
        prompt: str,
        aspect_ratio: str = "1:1",
        high_quality: bool = False,
    ) -> Optional[GeneratedImage]:
        """
        Generate an image from a text prompt.

        If the high tier fails for any reason, the standard tier is tried once;
        standard-tier failures propagate.
        """
        parts = [{"text": prompt}]

        if high_quality:
            try:
                return await self._attempt(self.high_model, parts, aspect_ratio)
            except Exception as e:
                log_warning(f"High quality model failed ({e}). Falling back to {self.standard_model}...")

        return await self._attempt(self.standard_model, parts, aspect_ratio)

    async def generate_from_images(
        self,
        reference_images: Sequence[str],
        prompt: str,
        aspect_ratio: str = "1:1",
    ) -> Optional[GeneratedImage]:
        """
        Generate an image conditioned on reference images (data URLs) plus a prompt.

        Images are sent first, in order, followed by the text part.
        """
        if not reference_images:
            raise ValueError("generate_from_images needs at least one reference image")

        parts = [image_part(url) for url in reference_images]
        parts.append({"text": prompt})
        log_info(f"Remix with {len(reference_images)} reference image(s)")
        return await self._attempt(self.standard_model, parts, aspect_ratio)
