from cv_optimizer.core.config import Settings
from cv_optimizer.services.llm.base import LLMProviderBase
from cv_optimizer.services.llm.claude import AnthropicProvider
from cv_optimizer.services.llm.openai_compatible import OpenAICompatibleProvider
from cv_optimizer.services.llm.gemini import GeminiProvider


class LLMProvider:
    """Supported LLM providers"""
    ANTHROPIC = "anthropic"
    GROQ = "groq"
    DEEPSEEK = "deepseek"
    OPENAI = "openai"
    GEMINI = "gemini"

    @classmethod
    def all(cls):
        return [cls.ANTHROPIC, cls.GROQ, cls.DEEPSEEK, cls.OPENAI, cls.GEMINI]

    @classmethod
    def info(cls):
        return {
            cls.ANTHROPIC: {"name": "Anthropic Claude", "base_url": None},
            cls.GROQ: {"name": "Groq", "base_url": "https://api.groq.com/openai/v1"},
            cls.DEEPSEEK: {"name": "DeepSeek", "base_url": "https://api.deepseek.com/v1"},
            cls.OPENAI: {"name": "OpenAI", "base_url": None},
            cls.GEMINI: {"name": "Google Gemini", "base_url": None},  # Uses Google SDK
        }


def create_llm_provider(settings: Settings) -> LLMProviderBase:
    """Factory function to create the configured LLM provider."""

    provider = settings.AI_PROVIDER.lower()
    info = LLMProvider.info().get(provider)

    if provider == LLMProvider.ANTHROPIC:
        return AnthropicProvider(
            api_key=settings.ANTHROPIC_API_KEY,
            model=settings.ANTHROPIC_MODEL,
        )
    elif provider == LLMProvider.GROQ:
        return OpenAICompatibleProvider(
            api_key=settings.GROQ_API_KEY,
            model=settings.GROQ_MODEL,
            base_url=info["base_url"],
        )
    elif provider == LLMProvider.DEEPSEEK:
        return OpenAICompatibleProvider(
            api_key=settings.DEEPSEEK_API_KEY,
            model=settings.DEEPSEEK_MODEL,
            base_url=info["base_url"],
        )
    elif provider == LLMProvider.OPENAI:
        return OpenAICompatibleProvider(
            api_key=settings.OPENAI_API_KEY,
            model=settings.OPENAI_MODEL,
            base_url=settings.OPENAI_BASE_URL,
        )
    elif provider == LLMProvider.GEMINI:
        return GeminiProvider(
            api_key=settings.GEMINI_API_KEY,
            model=settings.GEMINI_MODEL,
        )
    else:
        raise ValueError(f"Unsupported provider: {settings.AI_PROVIDER}. Must be one of: {LLMProvider.all()}")
