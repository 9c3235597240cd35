from datetime import datetime, timezone
from typing import Annotated, Literal, Optional
from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _assume_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


# Naive timestamps in hand-edited or older records are read as UTC
UtcDatetime = Annotated[datetime, AfterValidator(_assume_utc)]


class _Record(BaseModel):
    # camelCase on disk and over the wire, snake_case in Python
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Message(_Record):
    role: Literal["user", "assistant"]
    content: str
    timestamp: UtcDatetime = Field(default_factory=utcnow)


class Conversation(_Record):
    id: str
    created_at: UtcDatetime
    updated_at: UtcDatetime
    job_position: str
    company: str
    job_description: str
    original_resume_text: str
    original_file_name: str
    current_html: str
    # Document produced by the analyze turn; older records may lack it
    initial_html: Optional[str] = None
    messages: list[Message] = Field(default_factory=list)

    @property
    def anchor_html(self) -> str:
        return self.initial_html if self.initial_html is not None else self.current_html


class ConversationSummary(_Record):
    id: str
    created_at: UtcDatetime
    updated_at: UtcDatetime
    job_position: str
    company: str
    original_file_name: str
    message_count: int

    @classmethod
    def from_conversation(cls, conversation: Conversation) -> "ConversationSummary":
        return cls(
            id=conversation.id,
            created_at=conversation.created_at,
            updated_at=conversation.updated_at,
            job_position=conversation.job_position,
            company=conversation.company,
            original_file_name=conversation.original_file_name,
            message_count=len(conversation.messages),
        )
