"""Tests for PromptEnhancementMiddleware."""

from __future__ import annotations

import json

from proxim8.core.pipeline.context import ContextKey, GenerationContext, MetaKey
from proxim8.core.providers.errors import RateLimitError
from proxim8.core.stages import (
    DEFAULT_STYLE,
    SYSTEM_INSTRUCTION,
    PromptEnhancementMiddleware,
    build_enhancement_request,
)
from tests.fixtures.generation import StubPromptModel


def _request_payload(request: str) -> dict:
    return json.loads(request.split("\n", 1)[1])


class TestBuildRequest:
    def test_includes_context(self):
        request = build_enhancement_request(
            "walk",
            nft_data={"name": "Agent"},
            lore_data={"era": "2089"},
            additional_context="rainy",
        )
        payload = _request_payload(request)

        assert payload["userPrompt"] == "walk"
        assert payload["nft"] == {"name": "Agent"}
        assert payload["lore"] == {"era": "2089"}
        assert payload["style"] == DEFAULT_STYLE
        assert payload["additionalContext"] == "rainy"
        assert "worldLore" not in payload

    def test_world_lore_included_when_set(self):
        payload = _request_payload(build_enhancement_request("walk", world_lore="The Oneirocom"))

        assert payload["worldLore"] == "The Oneirocom"

    def test_system_instruction_rules(self):
        assert "200 words" in SYSTEM_INSTRUCTION
        assert "not their appearance" in SYSTEM_INSTRUCTION


class TestEnhancement:
    async def test_success(self, context: GenerationContext):
        model = StubPromptModel(response="  The agent scales the tower  ")
        result = await PromptEnhancementMiddleware(model).execute(context)

        assert result.success
        assert result.output.enhanced_prompt == "The agent scales the tower"
        assert result.output.original_prompt == "infiltrate the tower at dawn"
        assert result.output.prompt_id

    async def test_style_from_context_overrides_default(self):
        model = StubPromptModel()
        ctx = GenerationContext.create(user_prompt="walk", style="Watercolor")
        await PromptEnhancementMiddleware(model, default_style="Noir").execute(ctx)

        assert _request_payload(model.requests[0])["style"] == "Watercolor"

    async def test_default_style_used(self):
        model = StubPromptModel()
        ctx = GenerationContext.create(user_prompt="walk")
        await PromptEnhancementMiddleware(model, default_style="Noir").execute(ctx)

        assert _request_payload(model.requests[0])["style"] == "Noir"

    async def test_provider_failure_is_not_fatal(self, context: GenerationContext):
        model = StubPromptModel(error=RateLimitError("Gemini quota exceeded", provider="gemini"))
        result = await PromptEnhancementMiddleware(model).execute(context)

        assert not result.success
        assert not result.fatal
        assert result.error == "Prompt enhancement failed: Gemini quota exceeded"
        assert result.output.enhanced_prompt == "infiltrate the tower at dawn"

    async def test_empty_response_falls_back(self, context: GenerationContext):
        result = await PromptEnhancementMiddleware(StubPromptModel(response="   ")).execute(context)

        assert not result.fatal
        assert result.output.enhanced_prompt == context.get(ContextKey.USER_PROMPT)

    async def test_missing_prompt(self):
        model = StubPromptModel()
        result = await PromptEnhancementMiddleware(model).execute(GenerationContext())

        assert not result.success
        assert not result.fatal
        assert result.output is None
        assert model.requests == []

    async def test_skipped_when_cache_has_all_media(self, context: GenerationContext):
        model = StubPromptModel()
        context.set_metadata(MetaKey.CACHE_HIT, True)
        context.set(ContextKey.IMAGE_URL, "https://img")
        context.set(ContextKey.VIDEO_URL, "https://vid")

        result = await PromptEnhancementMiddleware(model).execute(context)

        assert result.skipped
        assert model.requests == []

    async def test_runs_when_cache_has_image_only(self, context: GenerationContext):
        model = StubPromptModel()
        context.set_metadata(MetaKey.CACHE_HIT, True)
        context.set(ContextKey.IMAGE_URL, "https://img")

        result = await PromptEnhancementMiddleware(model).execute(context)

        assert not result.skipped
        assert len(model.requests) == 1
