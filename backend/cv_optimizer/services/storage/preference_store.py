from typing import Optional
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker
from cv_optimizer.core.database import Base
from cv_optimizer.core.logging import get_logger
from cv_optimizer.models.conversation import utcnow
from cv_optimizer.models.preference import Preference

logger = get_logger(__name__)

PREFERENCES_HEADER = "USER PREFERENCES (learned from past conversations - ALWAYS apply these):"


def _rule_key(rule: str) -> str:
    return rule.lower()


class PreferenceStore:
    """Global, append-only list of learned formatting rules.

    Duplicates are detected by case-insensitive exact match, backed by a
    unique index on the lower-cased rule.
    """

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self._session = async_sessionmaker(engine, expire_on_commit=False)

    async def create_schema(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all, tables=[Preference.__table__])

    async def load_all(self) -> list[Preference]:
        try:
            async with self._session() as db:
                result = await db.execute(select(Preference).order_by(Preference.id.asc()))
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.warning(f"Could not load preferences, treating as empty: {e}")
            return []

    async def add(self, rule: str, source_conversation_id: Optional[str]) -> bool:
        rule = (rule or "").strip()
        if not rule:
            return False

        async with self._session() as db:
            result = await db.execute(
                select(Preference.id).where(Preference.rule_key == _rule_key(rule)).limit(1)
            )
            if result.scalar_one_or_none() is not None:
                return False

            db.add(
                Preference(
                    rule=rule,
                    rule_key=_rule_key(rule),
                    source_conversation_id=source_conversation_id,
                    created_at=utcnow(),
                )
            )
            try:
                await db.commit()
            except IntegrityError:
                # Another writer inserted the same rule between our check and commit
                await db.rollback()
                return False

        logger.info(f"New preference saved: {rule}")
        return True

    async def render_as_prompt_block(self) -> str:
        preferences = await self.load_all()
        if not preferences:
            return ""
        rules = "\n".join(f"{i}. {p.rule}" for i, p in enumerate(preferences, start=1))
        return f"\n\n{PREFERENCES_HEADER}\n{rules}"
