"""
Model client interface for abstracting LLM implementations.
"""
from abc import ABC, abstractmethod
from typing import Optional, Dict, Any
from dataclasses import dataclass

from appforge.core.errors import GenerationUnavailable
from appforge.llm.parsing import extract_json_object


@dataclass
class LLMResponse:
    """Standardized LLM response."""
    content: str
    tokens_in: int = 0
    tokens_out: int = 0
    model: str = ""
    cost_estimate: float = 0.0
    metadata: Dict[str, Any] = None

    def __post_init__(self):
        if self.metadata is None:
            self.metadata = {}


class ModelClient(ABC):
    """
    Uniform contract over a generative-AI provider.

    Implementations must raise GenerationUnavailable for every failure
    (network, auth, rate limit, malformed response) so callers only handle
    one error kind.
    """

    supports_images: bool = False

    @abstractmethod
    async def complete(
        self,
        system: str,
        user: str,
        model: str,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        json_mode: bool = False,
    ) -> LLMResponse:
        """
        Generate a chat completion.
        
        Args:
            system: System instructions
            user: User content
            model: Model identifier
            temperature: Sampling temperature
            max_tokens: Maximum tokens to generate
            json_mode: Ask the provider for a JSON object response
            
        Returns:
            LLMResponse with content and metadata
        """
        pass

    async def complete_structured(
        self,
        system: str,
        user: str,
        model: str,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Generate a completion and parse it as a JSON object.
        
        Raises:
            GenerationUnavailable: if the call fails or no JSON object can be parsed
        """
        response = await self.complete(
            system, user, model=model, temperature=temperature,
            max_tokens=max_tokens, json_mode=True,
        )
        try:
            return extract_json_object(response.content)
        except ValueError as e:
            raise GenerationUnavailable(f"Malformed model response: {e}", cause=e) from e

    async def generate_image(self, prompt: str, size: str = "1024x1024") -> str:
        """
        Generate an image and return its URL or data URI.
        
        Providers without image support raise GenerationUnavailable; callers
        must be ready for that.
        """
        raise GenerationUnavailable("Image generation is not supported by this provider")

    def estimate_cost(self, tokens_in: int, tokens_out: int, model: str) -> float:
        """Estimate cost in USD. Providers override with actual pricing."""
        return 0.0


class OfflineModelClient(ModelClient):
    """
    Stand-in used when no provider is configured.

    Every call fails as a client-side error, so the enhancer and icon steps
    degrade and the code synthesizer goes straight to its template.
    """

    async def complete(
        self,
        system: str,
        user: str,
        model: str,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        json_mode: bool = False,
    ) -> LLMResponse:
        raise GenerationUnavailable("No model provider configured", client_error=True)
