from sqlalchemy import Column, Integer, String, DateTime, Text
from sqlalchemy.sql import func
from cv_optimizer.core.database import Base


class Preference(Base):
    """A learned formatting rule, shared by every conversation.

    Rows are only ever appended; ``id`` order is insertion order.
    """

    __tablename__ = "preferences"

    id = Column(Integer, primary_key=True, autoincrement=True)
    rule = Column(Text, nullable=False)
    rule_key = Column(Text, nullable=False, unique=True, index=True)  # lower-cased rule
    source_conversation_id = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
