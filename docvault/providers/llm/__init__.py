"""Text-generation provider implementations."""

from docvault.providers.llm.ollama_provider import OllamaLLMProvider

__all__ = ["OllamaLLMProvider"]
