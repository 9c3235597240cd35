from abc import ABC, abstractmethod
from typing import Optional


class LLMProviderBase(ABC):
    """Base class for LLM providers.

    ``messages`` are OpenAI-style ``{"role": ..., "content": ...}`` dicts with
    roles ``user`` and ``assistant``; the system instruction is passed
    separately because providers disagree on where it goes.
    """

    def __init__(self, api_key: Optional[str], model: str, base_url: Optional[str] = None):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url

    @abstractmethod
    async def complete(
        self,
        messages: list[dict],
        system: Optional[str] = None,
        max_tokens: int = 4096,
    ) -> str:
        """Non-streaming chat completion returning the reply text."""
        pass
