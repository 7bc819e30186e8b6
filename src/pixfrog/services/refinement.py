"""
Prompt refinement service.

Turns a raw user request into a model-ready image prompt using the mode
strategy table and whatever style the user has taught the memory store.
Refinement is best-effort: any failure hands back the user's own text so
generation is never blocked.
"""

from typing import Optional

from ..api.prompt_builders import build_system_instruction, build_task_context
from ..api.retry import RetryPolicy
from ..config import REFINE_RETRIES, REFINE_TEMPERATURE, TEXT_MODEL
from ..core.models import Mode
from ..logging_utils import log_debug, log_warning
from ..memory.style_memory import StyleMemory


class PromptRefiner:
    """
    Mode-aware prompt refinement through the Gemini text model.

    Args:
        client: Object exposing `async generate_text(prompt, system_instruction, model, temperature)`.
        memory: Style memory to recall from. None disables recall.
        retry_policy: Base policy; its budget is replaced by `retries`.
        retries: Retry budget for the text call.
    """

    def __init__(
        self,
        client,
        memory: Optional[StyleMemory] = None,
        retry_policy: Optional[RetryPolicy] = None,
        retries: int = REFINE_RETRIES,
        model: str = TEXT_MODEL,
        temperature: float = REFINE_TEMPERATURE,
    ):
        self.client = client
        self.memory = memory
        self.retry_policy = (retry_policy or RetryPolicy()).with_retries(retries)
        self.model = model
        self.temperature = temperature

    def build_instructions(self, mode: Mode) -> str:
        """System instruction for a mode, including recalled style memory."""
        learned_context = self.memory.recall(mode) if self.memory else ""
        return build_system_instruction(learned_context)

    async def refine(self, user_input: str, mode: Mode, has_reference_images: bool = False) -> str:
        """
        Refine `user_input` for `mode`.

        Returns:
            The refined prompt, or `user_input` unchanged if refinement fails
            or comes back empty.
        """
        system_instruction = self.build_instructions(mode)
        task_context = build_task_context(user_input, mode, has_reference_images)

        async def operation() -> str:
            return await self.client.generate_text(
                task_context, system_instruction, self.model, self.temperature
            )

        try:
            refined = await self.retry_policy.run(operation, context=f"refine[{mode.slug}]")
        except Exception as e:
            log_warning(f"Prompt refinement skipped due to error, using raw input: {e}")
            return user_input

        refined = (refined or "").strip()
        if not refined:
            return user_input
        log_debug(f"Refined prompt ({mode.slug}): {refined}")
        return refined
