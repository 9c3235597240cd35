"""Pytest configuration, fixtures and fake adapters."""

import os

os.environ.setdefault("AI_PROVIDER", "anthropic")
os.environ.setdefault("ANTHROPIC_API_KEY", "test-anthropic-key")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
import pytest_asyncio

from cv_optimizer.core.database import make_engine
from cv_optimizer.models.conversation import Conversation, Message, utcnow
from cv_optimizer.services.llm import LLMProviderBase
from cv_optimizer.services.storage import ConversationStore, PreferenceStore
from cv_optimizer.services.workflow import TurnOrchestrator

CLASSIFIER_MAX_TOKENS = 200

RESUME_TEXT = "Jane Doe\nSenior Python Engineer\nSkills: Python, FastAPI, PostgreSQL"
INITIAL_HTML = "<!DOCTYPE html><html><body><h1>Jane Doe</h1></body></html>"


def html_doc(label: str) -> str:
    return f"<!DOCTYPE html><html><body><p>{label}</p></body></html>"


def model_reply(explanation: str, document: str, preference: str = None) -> str:
    reply = f"{explanation}\n---HTML_START---\n{document}"
    if preference:
        reply += f"\n---PREFERENCE---\n{preference}"
    return reply


class FakeLLM(LLMProviderBase):
    """Returns queued replies for turn calls and a fixed answer for classifier calls."""

    def __init__(self, replies=None, classifier_reply="NONE", error=None):
        super().__init__(api_key=None, model="fake-model")
        self.replies = list(replies or [])
        self.classifier_reply = classifier_reply
        self.error = error
        self.calls = []

    async def complete(self, messages, system=None, max_tokens=4096):
        self.calls.append({"messages": messages, "system": system, "max_tokens": max_tokens})
        if max_tokens == CLASSIFIER_MAX_TOKENS:
            if isinstance(self.classifier_reply, Exception):
                raise self.classifier_reply
            return self.classifier_reply
        if self.error is not None:
            raise self.error
        return self.replies.pop(0)

    @property
    def turn_calls(self):
        return [c for c in self.calls if c["max_tokens"] != CLASSIFIER_MAX_TOKENS]

    @property
    def classifier_calls(self):
        return [c for c in self.calls if c["max_tokens"] == CLASSIFIER_MAX_TOKENS]


class FakeRenderer:
    """Records every HTML document it is asked to render."""

    def __init__(self, fail=False):
        self.rendered = []
        self.fail = fail
        self.closed = False

    async def render(self, html):
        if self.fail:
            raise RuntimeError("browser crashed")
        self.rendered.append(html)
        return f"%PDF-1.4 fake {len(self.rendered)}".encode()

    async def close(self):
        self.closed = True


def make_conversation(refinements: int = 0, conversation_id: str = "conv_1_abc") -> Conversation:
    """A stored-looking conversation with ``refinements`` exchanges after the seed pair."""
    now = utcnow()
    messages = [
        Message(role="user", content="Optimize my CV for this position."),
        Message(role="assistant", content="Initial explanation."),
    ]
    for i in range(1, refinements + 1):
        messages.append(Message(role="user", content=f"request {i}"))
        messages.append(Message(role="assistant", content=f"explanation {i}"))
    return Conversation(
        id=conversation_id,
        created_at=now,
        updated_at=now,
        job_position="Backend Engineer",
        company="Acme",
        job_description="Build APIs in Python.",
        original_resume_text=RESUME_TEXT,
        original_file_name="jane.pdf",
        current_html=html_doc(f"revision {refinements}") if refinements else INITIAL_HTML,
        initial_html=INITIAL_HTML,
        messages=messages,
    )


@pytest.fixture
def conversation_store(tmp_path):
    return ConversationStore(tmp_path / "conversations")


@pytest_asyncio.fixture
async def preference_store(tmp_path):
    engine = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'preferences.db'}")
    store = PreferenceStore(engine)
    await store.create_schema()
    yield store
    await engine.dispose()


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def fake_renderer():
    return FakeRenderer()


@pytest_asyncio.fixture
async def orchestrator(fake_llm, fake_renderer, conversation_store, preference_store):
    orch = TurnOrchestrator(
        llm=fake_llm,
        renderer=fake_renderer,
        conversations=conversation_store,
        preferences=preference_store,
        extract_text=lambda content: RESUME_TEXT,
    )
    yield orch
    await orch.preference_extractor.shutdown()
