#!/usr/bin/env python3
"""
session.py

Session orchestrator: the per-mode conversation state machine.

Each send runs refinement then generation for the mode that was active when
it was dispatched, records the exchange in that mode's history, and always
returns the mode to Idle. Failures never escape as exceptions; they become
assistant messages explaining what went wrong.

Flow (per message):
  - Append the user message and mark the mode Generating
  - Refine the prompt (falls back to the raw text on failure)
  - Substitute a mode fallback if the prompt is empty
  - Generate from text or from reference images
  - Append the result image, or a classified error message
  - Mark the mode Idle
"""

from dataclasses import replace
from typing import Dict, List, Optional, Sequence, Tuple

from .api.exceptions import ErrorKind, classify_error
from .config import (
    ASPECT_RATIOS,
    MODE_DEFAULTS,
    REFERENCE_FALLBACK_DEFAULT,
    REFERENCE_FALLBACK_PROMPTS,
    TEXT_FALLBACK_DEFAULT,
    TEXT_FALLBACK_PROMPTS,
)
from .core.models import (
    ChatMessage,
    GenerationConfig,
    GenerationState,
    MessageMetadata,
    Mode,
    Role,
)
from .logging_utils import (
    log_exception,
    log_generation_complete,
    log_generation_start,
    log_info,
    log_warning,
)
from .memory.style_memory import StyleMemory
from .services.generation import ImageGenerator
from .services.refinement import PromptRefiner


# =============================================================================
# User-facing messages
# =============================================================================

NO_IMAGE_MESSAGE = "Sorry, I couldn't generate an image this time. Please try again."

# ErrorKind -> (title, how to fix)
ERROR_GUIDANCE: Dict[ErrorKind, Tuple[str, str]] = {
    ErrorKind.ACCESS_DENIED: (
        "⚠️ **Access Denied (403)**",
        "**How to Fix:**\n"
        "1. **Enable API:** Go to Google Cloud Console > APIs & Services > Enable \"Google Generative AI API\".\n"
        "2. **Billing:** Ensure your Cloud Project has a Billing Account linked (Required for Image models).\n"
        "3. **Region:** Image generation might be restricted in your current region.\n"
        "4. **Key:** Verify your GEMINI_API_KEY is correct.",
    ),
    ErrorKind.QUOTA: (
        "⚠️ **Quota Exceeded (429)**",
        "**How to Fix:**\nYou have hit the rate limit. Please wait a minute before trying again "
        "or check your quota limits in Google Cloud Console.",
    ),
    ErrorKind.UNAVAILABLE: (
        "⚠️ **Service Unavailable (503)**",
        "**How to Fix:**\nThe image service is overloaded right now. Please try again in a few moments.",
    ),
    ErrorKind.SERVER: (
        "⚠️ **Server Error (500)**",
        "**How to Fix:**\nGoogle's servers are experiencing issues. Please try again in a few moments.",
    ),
    ErrorKind.SAFETY: (
        "⚠️ **Blocked by Safety Filters**",
        "**How to Fix:**\nThe request was rejected by the content policy. "
        "Please rephrase your prompt or use different reference images.",
    ),
    ErrorKind.UNKNOWN: (
        "⚠️ Generation Failed",
        "**How to Fix:**\nCheck your internet connection and ensure your API key is configured "
        "correctly in the environment variables.",
    ),
}


def format_error_message(error: BaseException) -> str:
    """Build the assistant reply for a failed generation."""
    title, how_to_fix = ERROR_GUIDANCE.get(classify_error(error), ERROR_GUIDANCE[ErrorKind.UNKNOWN])
    detail = str(error) or type(error).__name__
    return f"{title}\n\n**Error Details:** {detail}\n\n{how_to_fix}"


def default_config(mode: Mode) -> GenerationConfig:
    aspect_ratio, high_quality = MODE_DEFAULTS[mode]
    return GenerationConfig(aspect_ratio=aspect_ratio, high_quality=high_quality)


def fallback_prompt(mode: Mode, has_reference_images: bool) -> str:
    """Prompt used when refinement leaves nothing to generate from."""
    if has_reference_images:
        return REFERENCE_FALLBACK_PROMPTS.get(mode, REFERENCE_FALLBACK_DEFAULT)
    return TEXT_FALLBACK_PROMPTS.get(mode, TEXT_FALLBACK_DEFAULT)


# =============================================================================
# Session
# =============================================================================

class Session:
    """
    Owns per-mode histories, per-mode generation state and the active config.

    Args:
        refiner: Prompt refinement service.
        generator: Image generation service.
        memory: Style memory written on "like". None disables learning.
        mode: Initial active mode.
    """

    def __init__(
        self,
        refiner: PromptRefiner,
        generator: ImageGenerator,
        memory: Optional[StyleMemory] = None,
        mode: Mode = Mode.GENERAL,
    ):
        self.refiner = refiner
        self.generator = generator
        self.memory = memory
        self.active_mode = mode
        self.config = default_config(mode)

        self._histories: Dict[Mode, List[ChatMessage]] = {m: [] for m in Mode}
        self._states: Dict[Mode, GenerationState] = {m: GenerationState.IDLE for m in Mode}
        # Bumped on reset so in-flight sends know their history was cleared
        self._epochs: Dict[Mode, int] = {m: 0 for m in Mode}

    # -------------------------------------------------------------------------
    # State queries
    # -------------------------------------------------------------------------

    def history(self, mode: Optional[Mode] = None) -> List[ChatMessage]:
        """Messages for a mode (default: active mode), oldest first."""
        return list(self._histories[mode or self.active_mode])

    def state(self, mode: Optional[Mode] = None) -> GenerationState:
        return self._states[mode or self.active_mode]

    def is_generating(self, mode: Optional[Mode] = None) -> bool:
        return self.state(mode) is GenerationState.GENERATING

    # -------------------------------------------------------------------------
    # Mode and config
    # -------------------------------------------------------------------------

    def change_mode(self, mode: Mode) -> None:
        """Switch the active mode and reset the config to that mode's defaults."""
        self.active_mode = mode
        self.config = default_config(mode)
        log_info(
            f"Mode changed to {mode.value} "
            f"(aspect_ratio={self.config.aspect_ratio}, high_quality={self.config.high_quality})"
        )

    def set_aspect_ratio(self, aspect_ratio: str) -> None:
        if aspect_ratio not in ASPECT_RATIOS:
            raise ValueError(f"Unsupported aspect ratio {aspect_ratio!r}; choose from {', '.join(ASPECT_RATIOS)}")
        self.config.aspect_ratio = aspect_ratio

    def set_high_quality(self, high_quality: bool) -> None:
        self.config.high_quality = bool(high_quality)

    def reset(self, mode: Optional[Mode] = None) -> None:
        """Clear a mode's history (default: active mode) and force it Idle."""
        mode = mode or self.active_mode
        self._histories[mode].clear()
        self._states[mode] = GenerationState.IDLE
        self._epochs[mode] += 1
        log_info(f"History reset for {mode.value}")

    # -------------------------------------------------------------------------
    # Messaging
    # -------------------------------------------------------------------------

    async def send_message(
        self,
        text: str,
        reference_images: Optional[Sequence[str]] = None,
    ) -> Optional[ChatMessage]:
        """
        Run one refine -> generate exchange in the active mode.

        The mode and config are captured at dispatch, so switching modes while
        this runs does not affect it. Sending into a mode that is already
        generating is the caller's responsibility to prevent.

        Returns:
            The assistant message appended to the history, or None if the
            mode was reset while the exchange was in flight.
        """
        mode = self.active_mode
        config = replace(self.config)
        images = list(reference_images or [])

        self._histories[mode].append(ChatMessage(Role.USER, text, images))
        self._states[mode] = GenerationState.GENERATING
        epoch = self._epochs[mode]
        kind = "image-to-image" if images else "text-to-image"
        log_generation_start(kind, mode.value)

        try:
            try:
                reply = await self._run_exchange(mode, config, text, images)
            except Exception as e:
                log_exception(f"Generation error ({mode.value}): {e}")
                log_generation_complete(kind, False, classify_error(e).value)
                reply = ChatMessage(Role.ASSISTANT, format_error_message(e))

            if self._epochs[mode] != epoch:
                log_warning(f"Discarding result for {mode.value}: history was reset during generation")
                return None
            self._histories[mode].append(reply)
            return reply
        finally:
            if self._epochs[mode] == epoch:
                self._states[mode] = GenerationState.IDLE

    async def _run_exchange(
        self,
        mode: Mode,
        config: GenerationConfig,
        text: str,
        images: List[str],
    ) -> ChatMessage:
        has_images = bool(images)
        kind = "image-to-image" if has_images else "text-to-image"

        refined = await self.refiner.refine(text, mode, has_images) if text.strip() else ""
        final_prompt = refined.strip() or fallback_prompt(mode, has_images)

        if has_images:
            result = await self.generator.generate_from_images(images, final_prompt, config.aspect_ratio)
        else:
            result = await self.generator.generate_from_text(final_prompt, config.aspect_ratio, config.high_quality)

        if result is None:
            log_generation_complete(kind, False, ErrorKind.NO_IMAGE.value)
            return ChatMessage(Role.ASSISTANT, NO_IMAGE_MESSAGE)

        log_generation_complete(kind, True, f"{mode.value}, {len(result.data)} bytes")
        return ChatMessage(
            Role.ASSISTANT,
            f"Here is your {mode.value} design!",
            [result.to_data_url()],
            metadata=MessageMetadata(original_prompt=text, final_prompt=final_prompt),
        )

    def like_message(self, index: int, mode: Optional[Mode] = None) -> bool:
        """
        Teach the style memory from a liked result.

        The message at `index` must be an assistant reply with a final prompt,
        directly preceded by the user message that triggered it, and not
        already liked.

        Returns:
            True if the like was recorded.
        """
        mode = mode or self.active_mode
        history = self._histories[mode]
        if not 0 <= index < len(history):
            return False

        message = history[index]
        if message.role is not Role.ASSISTANT or message.metadata is None:
            return False
        if not message.metadata.final_prompt or message.metadata.liked:
            return False
        if index == 0 or history[index - 1].role is not Role.USER:
            return False

        if self.memory is not None:
            self.memory.learn(mode, history[index - 1].content, message.metadata.final_prompt)
        message.metadata.mark_liked()
        log_info(f"Liked message {index} in {mode.value}")
        return True
