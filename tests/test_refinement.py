"""
Tests for pixfrog.services.refinement

Covers:
- Mode strategy and recalled memory in the system instruction
- Task context wording for text-only and image-to-image requests
- Fallback to the raw input on any failure or empty answer
"""

import pytest

from pixfrog.api.exceptions import GeminiAPIError, GeminiQuotaError
from pixfrog.core.models import Mode
from pixfrog.services.refinement import PromptRefiner


@pytest.fixture
def refiner(fake_client, memory, retry_policy):
    return PromptRefiner(fake_client, memory, retry_policy)


class TestInstructions:

    @pytest.mark.asyncio
    async def test_logo_request_carries_strategy_and_subject(self, refiner, fake_client):
        fake_client.queue_text("minimalist vector logo of a fox head, white background")
        result = await refiner.refine("a fox head", Mode.LOGO)

        assert result == "minimalist vector logo of a fox head, white background"
        call = fake_client.text_calls[0]
        assert "Vector art, minimalist" in call["system_instruction"]
        assert "LEARNED USER STYLES" not in call["system_instruction"]
        assert 'User Input: "a fox head"' in call["prompt"]
        assert "App Mode: Logo Design" in call["prompt"]
        assert "Task: Text-to-Image Prompt." in call["prompt"]
        assert call["temperature"] == 0.7

    @pytest.mark.asyncio
    async def test_text_rendering_rule_present(self, refiner, fake_client):
        await refiner.refine("sale banner", Mode.BANNER)
        assert 'text "SALE", in bold typography' in fake_client.text_calls[0]["system_instruction"]

    @pytest.mark.asyncio
    async def test_image_to_image_context(self, refiner, fake_client):
        await refiner.refine("remove background", Mode.BG_REMOVER, has_reference_images=True)
        assert "Task: Image-to-Image Prompt." in fake_client.text_calls[0]["prompt"]

    @pytest.mark.asyncio
    async def test_recalled_memory_appended_last(self, refiner, fake_client, memory):
        memory.learn(Mode.LOGO, "a bear", "flat geometric bear, teal palette")
        await refiner.refine("a fox head", Mode.LOGO)

        instruction = fake_client.text_calls[0]["system_instruction"]
        assert "flat geometric bear, teal palette" in instruction
        assert instruction.index("MODE STRATEGIES") < instruction.index("LEARNED USER STYLES")

    @pytest.mark.asyncio
    async def test_works_without_memory(self, fake_client, retry_policy):
        refiner = PromptRefiner(fake_client, None, retry_policy)
        assert await refiner.refine("a cat", Mode.GENERAL) == "a refined prompt"


class TestFallback:

    @pytest.mark.asyncio
    async def test_failure_returns_raw_input(self, refiner, fake_client, sleeper):
        fake_client.queue_text(GeminiAPIError("boom", 400))
        assert await refiner.refine("a fox head", Mode.LOGO) == "a fox head"
        assert len(fake_client.text_calls) == 1
        assert sleeper.delays == []

    @pytest.mark.asyncio
    async def test_quota_uses_single_retry_then_falls_back(self, refiner, fake_client, sleeper):
        fake_client.queue_text(GeminiQuotaError("quota", 429), GeminiQuotaError("quota", 429), "too late")
        assert await refiner.refine("a fox head", Mode.LOGO) == "a fox head"
        assert len(fake_client.text_calls) == 2
        assert sleeper.delays == [18.0]

    @pytest.mark.asyncio
    async def test_quota_recovers_within_budget(self, refiner, fake_client):
        fake_client.queue_text(GeminiQuotaError("quota", 429), "  glowing fox  ")
        assert await refiner.refine("a fox head", Mode.LOGO) == "glowing fox"

    @pytest.mark.asyncio
    async def test_blank_answer_returns_raw_input(self, refiner, fake_client):
        fake_client.queue_text("   ")
        assert await refiner.refine("a fox head", Mode.LOGO) == "a fox head"
