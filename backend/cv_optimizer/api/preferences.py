from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from cv_optimizer.api.deps import get_orchestrator
from cv_optimizer.services.workflow import TurnOrchestrator


router = APIRouter(prefix="/preferences", tags=["Preferences"])


class PreferenceResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    rule: str
    source_conversation_id: Optional[str]
    created_at: Optional[datetime]


@router.get("", response_model=list[PreferenceResponse])
async def list_preferences(orchestrator: TurnOrchestrator = Depends(get_orchestrator)):
    """Learned formatting rules, oldest first."""
    preferences = await orchestrator.preferences.load_all()
    return [
        PreferenceResponse(
            rule=p.rule,
            source_conversation_id=p.source_conversation_id,
            created_at=p.created_at,
        )
        for p in preferences
    ]
