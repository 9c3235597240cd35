from typing import Optional
from anthropic import AsyncAnthropic
from cv_optimizer.core.logging import get_logger
from cv_optimizer.services.llm.base import LLMProviderBase

logger = get_logger(__name__)


class AnthropicProvider(LLMProviderBase):
    """Anthropic Messages API provider."""

    def __init__(self, api_key: Optional[str], model: str = "claude-sonnet-4-20250514", base_url: Optional[str] = None):
        super().__init__(api_key, model, base_url)
        self.client = AsyncAnthropic(api_key=api_key, base_url=base_url)

    async def complete(
        self,
        messages: list[dict],
        system: Optional[str] = None,
        max_tokens: int = 4096,
    ) -> str:
        params = {
            "model": self.model,
            "max_tokens": max_tokens,
            "messages": messages,
        }
        if system:
            params["system"] = system

        response = await self.client.messages.create(**params)
        logger.info(
            f"tokens used: input={response.usage.input_tokens} output={response.usage.output_tokens}"
        )
        return "".join(block.text for block in response.content if block.type == "text")
