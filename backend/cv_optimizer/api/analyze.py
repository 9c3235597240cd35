import base64
from typing import Optional
from fastapi import APIRouter, Depends, File, Form, UploadFile
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from cv_optimizer.api.deps import get_orchestrator
from cv_optimizer.services.workflow import TurnOrchestrator


router = APIRouter(tags=["Analyze"])


class AnalyzeResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    conversation_id: str
    explanation: str
    pdf_base64: str


@router.post("/analyze", response_model=AnalyzeResponse)
async def analyze_resume(
    resume: Optional[UploadFile] = File(None),
    job_position: str = Form(default="", alias="jobPosition"),
    company: str = Form(default=""),
    job_description: str = Form(default="", alias="jobDescription"),
    orchestrator: TurnOrchestrator = Depends(get_orchestrator),
):
    """Optimize an uploaded PDF résumé for a job posting and start a conversation."""
    file_content = await resume.read() if resume is not None else None

    result = await orchestrator.analyze(
        file_content=file_content,
        filename=resume.filename if resume is not None else None,
        content_type=resume.content_type if resume is not None else None,
        job_position=job_position,
        company=company,
        job_description=job_description,
    )

    return AnalyzeResponse(
        conversation_id=result.conversation_id,
        explanation=result.explanation,
        pdf_base64=base64.b64encode(result.pdf).decode("ascii"),
    )
