import asyncio
import base64
from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends
from fastapi.responses import Response
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from cv_optimizer.api.deps import get_orchestrator
from cv_optimizer.models.conversation import ConversationSummary, Message
from cv_optimizer.services.workflow import TurnOrchestrator


router = APIRouter(prefix="/conversations", tags=["Conversations"])


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ConversationDetail(_CamelModel):
    id: str
    created_at: datetime
    updated_at: datetime
    job_position: str
    company: str
    job_description: str
    original_file_name: str
    current_html: str
    messages: list[Message]


class MessageRequest(BaseModel):
    message: Optional[str] = None


class MessageResponse(_CamelModel):
    explanation: str
    pdf_base64: str


@router.get("", response_model=list[ConversationSummary])
async def list_conversations(orchestrator: TurnOrchestrator = Depends(get_orchestrator)):
    return await asyncio.to_thread(orchestrator.conversations.list)


@router.get("/{conversation_id}", response_model=ConversationDetail)
async def get_conversation(conversation_id: str, orchestrator: TurnOrchestrator = Depends(get_orchestrator)):
    conversation = await asyncio.to_thread(orchestrator.conversations.load, conversation_id)
    return ConversationDetail(
        id=conversation.id,
        created_at=conversation.created_at,
        updated_at=conversation.updated_at,
        job_position=conversation.job_position,
        company=conversation.company,
        job_description=conversation.job_description,
        original_file_name=conversation.original_file_name,
        current_html=conversation.current_html,
        messages=conversation.messages,
    )


@router.post("/{conversation_id}/message", response_model=MessageResponse)
async def send_message(
    conversation_id: str,
    request: MessageRequest,
    orchestrator: TurnOrchestrator = Depends(get_orchestrator),
):
    """Apply a refinement request to the conversation's current document."""
    result = await orchestrator.refine(conversation_id, request.message)
    return MessageResponse(
        explanation=result.explanation,
        pdf_base64=base64.b64encode(result.pdf).decode("ascii"),
    )


@router.get("/{conversation_id}/pdf")
async def download_pdf(conversation_id: str, orchestrator: TurnOrchestrator = Depends(get_orchestrator)):
    """Re-render the current document."""
    download = await orchestrator.render_current(conversation_id)
    return Response(
        content=download.pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{download.filename}"'},
    )


@router.delete("/{conversation_id}")
async def delete_conversation(conversation_id: str, orchestrator: TurnOrchestrator = Depends(get_orchestrator)):
    await asyncio.to_thread(orchestrator.conversations.delete, conversation_id)
    return {"success": True}
