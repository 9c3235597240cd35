from typing import Optional
from openai import AsyncOpenAI
from cv_optimizer.core.logging import get_logger
from cv_optimizer.services.llm.base import LLMProviderBase

logger = get_logger(__name__)


class OpenAICompatibleProvider(LLMProviderBase):
    """Any API speaking the OpenAI chat-completions protocol (OpenAI, Groq, DeepSeek)."""

    def __init__(self, api_key: Optional[str], model: str, base_url: Optional[str] = None):
        super().__init__(api_key, model, base_url)
        self.client = AsyncOpenAI(api_key=api_key, base_url=self.base_url)

    async def complete(
        self,
        messages: list[dict],
        system: Optional[str] = None,
        max_tokens: int = 4096,
    ) -> str:
        chat_messages = []
        if system:
            chat_messages.append({"role": "system", "content": system})
        chat_messages.extend(messages)

        response = await self.client.chat.completions.create(
            model=self.model,
            messages=chat_messages,
            max_tokens=max_tokens,
        )
        if response.usage:
            logger.info(
                f"tokens used: prompt={response.usage.prompt_tokens} completion={response.usage.completion_tokens}"
            )
        return response.choices[0].message.content or ""
