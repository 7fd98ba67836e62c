"""Abstract base class for text-generation service providers.

The core only needs one thing from a language model: given a model
identifier and a prompt, return a string or fail.  Model-assisted cleaning
transforms (structure repair, content normalization) are the only callers.
"""

from __future__ import annotations

# abstractmethod marks methods concrete providers MUST override; a class
# that forgets one raises TypeError on instantiation.
from abc import ABC, abstractmethod


# Concrete implementation: OllamaLLMProvider
# Located in: docvault/providers/llm/
class ILLMProvider(ABC):
    """Contract for text-generation services."""

    @abstractmethod
    async def generate(self, prompt: str, model: str | None = None) -> str:
        """Generate a continuation for *prompt*.

        Parameters
        ----------
        prompt:
            The full prompt text.
        model:
            Model identifier; ``None`` selects the provider's default model.

        Returns
        -------
        str
            The model's text response.

        Raises
        ------
        docvault.utils.errors.LLMError
            If the call fails, times out, or returns an empty response.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier, e.g. ``"ollama"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured."""
