import os
import re
import tempfile
import time
import uuid
from pathlib import Path
from typing import Optional
from pydantic import ValidationError as PydanticValidationError
from cv_optimizer.core.exceptions import CorruptStateError, NotFoundError
from cv_optimizer.core.logging import get_logger
from cv_optimizer.models.conversation import Conversation, ConversationSummary, Message, utcnow

logger = get_logger(__name__)

_UNSAFE_ID_CHARS = re.compile(r"[^a-zA-Z0-9_]")


def generate_conversation_id() -> str:
    return f"conv_{int(time.time() * 1000)}_{uuid.uuid4().hex[:16]}"


def sanitize_conversation_id(conversation_id: str) -> str:
    """Strip every character outside ``[A-Za-z0-9_]``.

    Distinct ids can map to the same key (``a-b`` and ``ab``). Generated ids
    never contain stripped characters, so only hand-crafted ids collide.
    """
    return _UNSAFE_ID_CHARS.sub("", conversation_id or "")


class ConversationStore:
    """One JSON record per conversation under a single directory."""

    def __init__(self, root: str | Path):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, conversation_id: str) -> Optional[Path]:
        key = sanitize_conversation_id(conversation_id)
        if not key:
            return None
        return self.root / f"{key}.json"

    def create(
        self,
        *,
        job_position: str,
        company: str,
        job_description: str,
        original_resume_text: str,
        original_file_name: str,
        current_html: str,
        messages: list[Message],
    ) -> Conversation:
        now = utcnow()
        conversation = Conversation(
            id=generate_conversation_id(),
            created_at=now,
            updated_at=now,
            job_position=job_position,
            company=company,
            job_description=job_description,
            original_resume_text=original_resume_text,
            original_file_name=original_file_name,
            current_html=current_html,
            initial_html=current_html,
            messages=messages,
        )
        self._write(conversation)
        logger.info(f"Conversation created: {conversation.id}")
        return conversation

    def load(self, conversation_id: str) -> Conversation:
        path = self.path_for(conversation_id)
        if path is None or not path.is_file():
            raise NotFoundError()
        try:
            return Conversation.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValueError, PydanticValidationError) as e:
            logger.warning(f"Unreadable conversation record {path.name}: {e}")
            raise CorruptStateError() from e

    def save(self, conversation: Conversation) -> Conversation:
        conversation.updated_at = utcnow()
        self._write(conversation)
        return conversation

    def list(self) -> list[ConversationSummary]:
        summaries = []
        for path in self.root.glob("*.json"):
            try:
                conversation = Conversation.model_validate_json(path.read_text(encoding="utf-8"))
            except (OSError, ValueError, PydanticValidationError) as e:
                logger.warning(f"Skipping unreadable conversation record {path.name}: {e}")
                continue
            summaries.append(ConversationSummary.from_conversation(conversation))
        summaries.sort(key=lambda s: s.updated_at, reverse=True)
        return summaries

    def delete(self, conversation_id: str) -> None:
        path = self.path_for(conversation_id)
        if path is None or not path.is_file():
            raise NotFoundError()
        path.unlink()
        logger.info(f"Conversation deleted: {path.stem}")

    def _write(self, conversation: Conversation) -> None:
        path = self.path_for(conversation.id)
        if path is None:
            raise ValueError(f"Invalid conversation id: {conversation.id!r}")
        payload = conversation.model_dump_json(by_alias=True, indent=2)
        fd, tmp_path = tempfile.mkstemp(dir=self.root, prefix=f".{path.stem}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise
