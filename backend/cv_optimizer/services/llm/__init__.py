from cv_optimizer.services.llm.base import LLMProviderBase
from cv_optimizer.services.llm.factory import LLMProvider, create_llm_provider
from cv_optimizer.services.llm.claude import AnthropicProvider
from cv_optimizer.services.llm.openai_compatible import OpenAICompatibleProvider
from cv_optimizer.services.llm.gemini import GeminiProvider

__all__ = [
    "LLMProviderBase",
    "LLMProvider",
    "create_llm_provider",
    "AnthropicProvider",
    "OpenAICompatibleProvider",
    "GeminiProvider",
]
