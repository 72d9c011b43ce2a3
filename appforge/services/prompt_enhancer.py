"""
Prompt enhancement: expands a short app idea into a detailed description.

Best-effort only. Any failure hands back the original prompt.
"""
import logging

from appforge.llm.provider import ModelClient
from appforge.llm.router import get_model_for_feature

logger = logging.getLogger(__name__)

ENHANCE_SYSTEM_PROMPT = """You are an expert app designer. Enhance the user's app description to include specific technical details, UI/UX requirements, and feature specifications that will help generate a better Flutter app.

Add details about:
- Specific screens and navigation flow
- UI components and layouts
- Color schemes and design style
- Data models and functionality
- User interactions and workflows

Return only the enhanced description."""


async def enhance_prompt(client: ModelClient, prompt: str) -> str:
    """
    Enhance a user prompt with one model call.
    
    Args:
        client: Model client
        prompt: Raw user prompt (non-empty)
        
    Returns:
        Enhanced description, or the original prompt if the call fails
    """
    try:
        response = await client.complete(
            ENHANCE_SYSTEM_PROMPT,
            prompt,
            model=get_model_for_feature("prompt_enhance"),
            temperature=0.7,
            max_tokens=1000,
        )
    except Exception as e:
        logger.warning(f"Prompt enhancement failed, using original prompt: {e}")
        return prompt

    enhanced = (response.content or "").strip()
    if not enhanced:
        logger.warning("Prompt enhancement returned empty text, using original prompt")
        return prompt

    logger.info(f"Prompt enhanced: input_len={len(prompt)}, output_len={len(enhanced)}")
    return enhanced
