"""
OpenAI model client implementation.
"""
import logging
from typing import Optional, Dict, Any

from openai import (
    AsyncOpenAI,
    APIError,
    APIStatusError,
    AuthenticationError,
    BadRequestError,
    PermissionDeniedError,
)

from appforge.core.config import OPENAI_API_KEY, OPENAI_IMAGE_MODEL, OPENAI_TIMEOUT_SECONDS
from appforge.core.errors import GenerationUnavailable
from appforge.llm.provider import LLMResponse, ModelClient, OfflineModelClient

logger = logging.getLogger(__name__)

# Model pricing per 1M tokens (input/output)
MODEL_PRICING = {
    "gpt-4o-mini": {"input": 0.15, "output": 0.60},
    "gpt-4o": {"input": 2.50, "output": 10.00},
    "gpt-4.1-mini": {"input": 0.40, "output": 1.60},
}

# 400/401/403 will fail the same way on every retry
CLIENT_ERRORS = (BadRequestError, AuthenticationError, PermissionDeniedError)


def _wrap_error(e: Exception, action: str) -> GenerationUnavailable:
    """Translate an SDK exception into GenerationUnavailable."""
    upstream_status = e.status_code if isinstance(e, APIStatusError) else None
    return GenerationUnavailable(
        f"Failed to {action}: {e}",
        cause=e,
        upstream_status=upstream_status,
        client_error=isinstance(e, CLIENT_ERRORS),
    )


class OpenAIModelClient(ModelClient):
    """OpenAI client using the official async SDK."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        client: Optional[AsyncOpenAI] = None,
        timeout: float = OPENAI_TIMEOUT_SECONDS,
        image_model: Optional[str] = OPENAI_IMAGE_MODEL,
    ):
        """Initialize OpenAI client."""
        if client is None:
            api_key = api_key or OPENAI_API_KEY
            if not api_key:
                raise ValueError("OPENAI_API_KEY not configured")
            # Retries are decided by the caller, not the SDK
            client = AsyncOpenAI(api_key=api_key, timeout=timeout, max_retries=0)
        self.client = client
        self.timeout = timeout
        self.image_model = image_model or None
        logger.info("OpenAI model client initialized")

    @property
    def supports_images(self) -> bool:
        return self.image_model is not None

    async def complete(
        self,
        system: str,
        user: str,
        model: str,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        json_mode: bool = False,
    ) -> LLMResponse:
        """Generate a chat completion."""
        kwargs: Dict[str, Any] = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        try:
            response = await self.client.chat.completions.create(
                model=model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
                temperature=temperature,
                max_tokens=max_tokens or 2000,
                timeout=self.timeout,
                **kwargs
            )
        except APIError as e:
            logger.error(f"OpenAI API error: {e}")
            raise _wrap_error(e, "complete request") from e
        except Exception as e:
            logger.error(f"OpenAI error: {type(e).__name__}: {e}", exc_info=True)
            raise _wrap_error(e, "complete request") from e

        if not response.choices:
            raise GenerationUnavailable("Model returned no choices")

        content = response.choices[0].message.content or ""
        usage = response.usage
        tokens_in = usage.prompt_tokens if usage else 0
        tokens_out = usage.completion_tokens if usage else 0
        return LLMResponse(
            content=content,
            tokens_in=tokens_in,
            tokens_out=tokens_out,
            model=model,
            cost_estimate=self.estimate_cost(tokens_in, tokens_out, model),
            metadata={"finish_reason": response.choices[0].finish_reason},
        )

    async def generate_image(self, prompt: str, size: str = "1024x1024") -> str:
        """Generate an image, returning its URL (or a PNG data URI)."""
        if not self.supports_images:
            raise GenerationUnavailable("Image generation is disabled", client_error=True)
        try:
            response = await self.client.images.generate(
                model=self.image_model,
                prompt=prompt,
                n=1,
                size=size,
                timeout=self.timeout,
            )
        except APIError as e:
            logger.error(f"OpenAI image API error: {e}")
            raise _wrap_error(e, "generate image") from e
        except Exception as e:
            logger.error(f"OpenAI image error: {type(e).__name__}: {e}", exc_info=True)
            raise _wrap_error(e, "generate image") from e

        image = response.data[0] if response.data else None
        if image is not None and image.url:
            return image.url
        if image is not None and image.b64_json:
            return f"data:image/png;base64,{image.b64_json}"
        raise GenerationUnavailable("Image response contained no image")

    def estimate_cost(self, tokens_in: int, tokens_out: int, model: str) -> float:
        """Estimate cost in USD."""
        pricing = MODEL_PRICING.get(model, MODEL_PRICING["gpt-4o-mini"])
        cost_input = (tokens_in / 1_000_000) * pricing["input"]
        cost_output = (tokens_out / 1_000_000) * pricing["output"]
        return cost_input + cost_output


def get_model_client() -> ModelClient:
    """Build the configured client, or the offline stand-in when no key is set."""
    try:
        return OpenAIModelClient()
    except ValueError:
        logger.warning("OPENAI_API_KEY not configured - using template fallbacks only")
        return OfflineModelClient()
