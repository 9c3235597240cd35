from typing import Optional
import google.generativeai as genai
from cv_optimizer.services.llm.base import LLMProviderBase


class GeminiProvider(LLMProviderBase):
    """Google Gemini API provider."""

    def __init__(self, api_key: Optional[str], model: str = "gemini-2.0-flash", base_url: Optional[str] = None):
        super().__init__(api_key, model, base_url)
        genai.configure(api_key=api_key)
        self.model_instance = genai.GenerativeModel(model)

    def _convert_messages(self, messages: list[dict], system: Optional[str] = None) -> list[dict]:
        """Convert OpenAI-style messages to Gemini format."""
        gemini_messages = []
        system_content = system or ""

        for msg in messages:
            role = msg["role"]
            content = msg["content"]

            if role == "system":
                system_content = content
            elif role == "user":
                # Gemini chat has no system role; fold it into the first user turn
                if system_content:
                    content = f"{system_content}\n\n{content}"
                    system_content = ""
                gemini_messages.append({"role": "user", "parts": [content]})
            elif role == "assistant":
                gemini_messages.append({"role": "model", "parts": [content]})

        return gemini_messages

    async def complete(
        self,
        messages: list[dict],
        system: Optional[str] = None,
        max_tokens: int = 4096,
    ) -> str:
        gemini_messages = self._convert_messages(messages, system)

        if len(gemini_messages) > 1:
            chat = self.model_instance.start_chat(history=gemini_messages[:-1])
            last_message = gemini_messages[-1]["parts"][0]
        else:
            chat = self.model_instance.start_chat()
            last_message = gemini_messages[0]["parts"][0] if gemini_messages else ""

        response = await chat.send_message_async(
            last_message,
            generation_config=genai.GenerationConfig(max_output_tokens=max_tokens),
        )

        return response.text
