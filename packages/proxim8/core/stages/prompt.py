"""Prompt enhancement stage.

Rewrites the user's terse request into a generation-ready scene description
using the NFT's traits and lore. Failure is never fatal: the run continues
with the user's own prompt.
"""

from __future__ import annotations

import json
import logging
from typing import Any
import uuid

from proxim8.core.pipeline.context import ContextKey, GenerationContext, MetaKey
from proxim8.core.pipeline.outputs import PromptOutput
from proxim8.core.pipeline.result import (
    StageResult,
    degraded_result,
    skipped_result,
    success_result,
)
from proxim8.core.pipeline.stage import StageId
from proxim8.core.providers.base import PromptModel, TextGenerationOptions
from proxim8.core.providers.errors import ProviderError

logger = logging.getLogger(__name__)

DEFAULT_STYLE = "Realistic, detailed, cinematic lighting"

SYSTEM_INSTRUCTION = """\
You are an expert prompt engineer for AI image and video generation.

Write a high-quality, concise prompt based on:
- The user's request (most important)
- The NFT character's key traits (personality, not appearance)
- Relevant world lore and background

Guidelines:
1. Focus on what the character is doing in the scene, not their appearance.
2. Describe the action, scene and environment.
3. The image model already receives the character's reference image.
4. Mention artistic style elements such as lighting, mood and composition.
5. Keep the prompt under 200 words.
6. Avoid violence, gore or explicit content, political or controversial themes,
   and copyrighted characters or references.

Return only the prompt text with no additional commentary.
"""


def build_enhancement_request(
    user_prompt: str,
    *,
    nft_data: dict[str, Any] | None = None,
    lore_data: Any = None,
    style: str | None = None,
    additional_context: str | None = None,
    world_lore: str = "",
) -> str:
    """Assemble the structured context sent alongside the system instruction."""
    context_data = {
        "userPrompt": user_prompt,
        "nft": nft_data or {},
        "lore": lore_data or {},
        "style": style or DEFAULT_STYLE,
        "additionalContext": additional_context or "",
    }
    if world_lore:
        context_data["worldLore"] = world_lore
    return "Context for prompt enhancement:\n" + json.dumps(context_data, indent=2, default=str)


class PromptEnhancementMiddleware:
    """Enhances the user prompt with a text model.

    Args:
        model: Injected prompt model (Gemini or OpenAI)
        options: Sampling options
        default_style: Style used when the request carries none
        world_lore: Background lore included in every request

    Example:
        >>> stage = PromptEnhancementMiddleware(GeminiPromptModel(api_key="..."))
        >>> result = await stage.execute(context)
        >>> result.output.enhanced_prompt
        'Under a bruised dawn sky, the agent scales the tower...'
    """

    def __init__(
        self,
        model: PromptModel,
        options: TextGenerationOptions | None = None,
        *,
        default_style: str = DEFAULT_STYLE,
        world_lore: str = "",
    ):
        self._model = model
        self._options = options or TextGenerationOptions()
        self._default_style = default_style
        self._world_lore = world_lore

    @property
    def stage_id(self) -> StageId:
        return StageId.PROMPT

    async def execute(self, context: GenerationContext) -> StageResult[PromptOutput]:
        if context.get_metadata(MetaKey.CACHE_HIT) and context.get(ContextKey.IMAGE_URL):
            has_video = context.get(ContextKey.VIDEO_URL) or context.get(
                ContextKey.VIDEO_OPERATION_NAME
            )
            if has_video:
                return skipped_result(StageId.PROMPT, "Media loaded from cache")

        user_prompt = context.get(ContextKey.USER_PROMPT)
        if not user_prompt:
            return degraded_result("User prompt is required for prompt enhancement", StageId.PROMPT)

        logger.debug(f"Enhancing prompt: {user_prompt[:30]}...")
        request = build_enhancement_request(
            user_prompt,
            nft_data=context.get(ContextKey.NFT_DATA),
            lore_data=context.get(ContextKey.LORE_DATA),
            style=context.get(ContextKey.STYLE) or self._default_style,
            additional_context=context.get(ContextKey.ADDITIONAL_CONTEXT),
            world_lore=self._world_lore,
        )

        fallback = PromptOutput(enhanced_prompt=user_prompt, original_prompt=user_prompt)
        try:
            enhanced = await self._model.generate_text(SYSTEM_INSTRUCTION, request, self._options)
        except ProviderError as e:
            logger.warning(f"Prompt enhancement failed, continuing with user prompt: {e}")
            return degraded_result(f"Prompt enhancement failed: {e.message}", StageId.PROMPT, fallback)

        enhanced = enhanced.strip()
        if not enhanced:
            return degraded_result("Prompt model returned an empty prompt", StageId.PROMPT, fallback)

        prompt_id = uuid.uuid4().hex
        logger.info(f"Enhanced prompt {prompt_id}: {enhanced[:100]}...")
        return success_result(
            PromptOutput(
                enhanced_prompt=enhanced, original_prompt=user_prompt, prompt_id=prompt_id
            ),
            StageId.PROMPT,
        )
