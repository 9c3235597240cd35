import asyncio
from typing import Optional
from cv_optimizer.core.logging import get_logger
from cv_optimizer.prompts import build_preference_classifier_prompt
from cv_optimizer.services.llm import LLMProviderBase
from cv_optimizer.services.storage import PreferenceStore

logger = get_logger(__name__)

NO_PREFERENCE = "NONE"
MIN_RULE_LENGTH = 5
MAX_RULE_LENGTH = 200


def accept_rule(answer: str) -> Optional[str]:
    """Return the classifier's answer if it looks like a usable rule."""
    answer = (answer or "").strip()
    if answer == NO_PREFERENCE:
        return None
    if not MIN_RULE_LENGTH < len(answer) < MAX_RULE_LENGTH:
        return None
    return answer


class PreferenceExtractor:
    """Best-effort classifier that learns style rules from refinement requests.

    Runs detached from the request that triggered it. Nothing it does can
    fail or slow down a turn: errors are logged and dropped, never retried.
    """

    def __init__(self, llm: LLMProviderBase, preferences: PreferenceStore, max_tokens: int = 200):
        self.llm = llm
        self.preferences = preferences
        self.max_tokens = max_tokens
        self._tasks: set[asyncio.Task] = set()

    async def extract(self, message: str, conversation_id: str) -> Optional[str]:
        try:
            existing = await self.preferences.load_all()
            prompt = build_preference_classifier_prompt(message, [p.rule for p in existing])
            answer = await self.llm.complete(
                [{"role": "user", "content": prompt}],
                max_tokens=self.max_tokens,
            )
            rule = accept_rule(answer)
            if rule is None:
                return None
            await self.preferences.add(rule, conversation_id)
            return rule
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Preference extraction failed (non-critical): {e}")
            return None

    def schedule(self, message: str, conversation_id: str) -> asyncio.Task:
        """Start ``extract`` without waiting for it."""
        task = asyncio.create_task(self.extract(message, conversation_id))
        # The event loop only keeps weak references to tasks
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every scheduled extraction to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await self.drain()
