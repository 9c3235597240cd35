import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Protocol, TypeVar
from cv_optimizer.core.config import Settings, get_settings
from cv_optimizer.core.exceptions import CVOptimizerError, UpstreamError, ValidationError
from cv_optimizer.core.logging import get_logger, log_with_context
from cv_optimizer.models.conversation import Conversation, Message
from cv_optimizer.prompts import ANALYZE_REQUEST, build_analysis_prompt
from cv_optimizer.services.llm import LLMProviderBase
from cv_optimizer.services.pdf import extract_text_from_pdf
from cv_optimizer.services.storage import ConversationStore, PreferenceStore
from cv_optimizer.services.workflow.context import assemble_refinement_context
from cv_optimizer.services.workflow.preference_extractor import PreferenceExtractor
from cv_optimizer.services.workflow.response_parser import (
    parse_response,
    resolve_analysis,
    resolve_refinement,
)

logger = get_logger(__name__)

T = TypeVar("T")

PDF_CONTENT_TYPE = "application/pdf"

ANALYSIS_FAILED = "Analysis failed"
REFINEMENT_FAILED = "Refinement failed"
PDF_FAILED = "PDF generation failed"


class Renderer(Protocol):
    async def render(self, html: str) -> bytes: ...


@dataclass
class AnalyzeResult:
    conversation_id: str
    explanation: str
    pdf: bytes


@dataclass
class RefineResult:
    explanation: str
    pdf: bytes


@dataclass
class PdfDownload:
    filename: str
    pdf: bytes


def pdf_filename(job_position: str) -> str:
    # Content-Disposition headers must stay latin-1 and quote-free
    slug = re.sub(r"\s+", "-", job_position.strip()).lower()
    slug = re.sub(r"[^a-z0-9_.-]", "", slug)
    return f"optimized-cv-{slug}.pdf" if slug else "optimized-cv.pdf"


class TurnOrchestrator:
    """Drives analyze and refine turns.

    A turn either completes and persists both the new document and the
    messages that produced it, or raises and persists nothing. Validation
    and lookup failures are raised before any model, extractor or renderer
    call.
    """

    def __init__(
        self,
        llm: LLMProviderBase,
        renderer: Renderer,
        conversations: ConversationStore,
        preferences: PreferenceStore,
        preference_extractor: Optional[PreferenceExtractor] = None,
        extract_text: Callable[[bytes], str] = extract_text_from_pdf,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.llm = llm
        self.renderer = renderer
        self.conversations = conversations
        self.preferences = preferences
        self.preference_extractor = preference_extractor or PreferenceExtractor(
            llm, preferences, max_tokens=self.settings.PREFERENCE_MAX_TOKENS
        )
        self.extract_text = extract_text

    async def _upstream(self, prefix: str, stage: str, call: Awaitable[T]) -> T:
        try:
            return await call
        except CVOptimizerError:
            raise
        except Exception as e:
            logger.exception(f"{prefix}: {stage} failed: {e}")
            raise UpstreamError(prefix, stage) from e

    def _validate_upload(
        self,
        file_content: Optional[bytes],
        content_type: Optional[str],
        job_position: str,
        company: str,
        job_description: str,
    ) -> None:
        if file_content is None:
            raise ValidationError("Please upload a PDF resume")
        if content_type != PDF_CONTENT_TYPE:
            raise ValidationError("Only PDF files are allowed")
        if len(file_content) > self.settings.MAX_UPLOAD_BYTES:
            limit_mb = self.settings.MAX_UPLOAD_BYTES // (1024 * 1024)
            raise ValidationError(f"File is too large. Maximum size is {limit_mb} MB")
        if not job_position or not company or not job_description:
            raise ValidationError("Job position, company, and job description are required")

    async def analyze(
        self,
        *,
        file_content: Optional[bytes],
        filename: Optional[str],
        content_type: Optional[str],
        job_position: Optional[str],
        company: Optional[str],
        job_description: Optional[str],
    ) -> AnalyzeResult:
        job_position = (job_position or "").strip()
        company = (company or "").strip()
        job_description = (job_description or "").strip()
        self._validate_upload(file_content, content_type, job_position, company, job_description)

        logger.info(f"Analyze: file={filename} position={job_position!r} company={company!r}")

        resume_text = await self._upstream(
            ANALYSIS_FAILED, "PDF text extraction", asyncio.to_thread(self.extract_text, file_content)
        )
        if not resume_text.strip():
            raise ValidationError(
                "Could not extract text from the PDF. Make sure it is not scanned/image-based."
            )
        logger.info(f"PDF parsed, text length: {len(resume_text)}")

        preferences_block = await self.preferences.render_as_prompt_block()
        prompt = build_analysis_prompt(
            resume_text=resume_text,
            job_position=job_position,
            company=company,
            job_description=job_description,
            preferences_block=preferences_block,
        )

        raw = await self._upstream(
            ANALYSIS_FAILED,
            "language model request",
            self.llm.complete(
                [{"role": "user", "content": prompt}],
                max_tokens=self.settings.LLM_MAX_TOKENS,
            ),
        )
        parsed = resolve_analysis(parse_response(raw), raw)

        pdf = await self._upstream(ANALYSIS_FAILED, "PDF rendering", self.renderer.render(parsed.document))

        conversation = await asyncio.to_thread(
            self.conversations.create,
            job_position=job_position,
            company=company,
            job_description=job_description,
            original_resume_text=resume_text,
            original_file_name=filename or "resume.pdf",
            current_html=parsed.document,
            messages=[
                Message(role="user", content=ANALYZE_REQUEST),
                Message(role="assistant", content=parsed.explanation),
            ],
        )

        return AnalyzeResult(conversation_id=conversation.id, explanation=parsed.explanation, pdf=pdf)

    async def refine(self, conversation_id: str, message: Optional[str]) -> RefineResult:
        conversation = await asyncio.to_thread(self.conversations.load, conversation_id)

        request = (message or "").strip()
        if not request:
            raise ValidationError("Message is required")

        log_with_context(logger, logging.INFO, f"Refinement: {request[:80]!r}", conversation_id=conversation.id)

        preferences_block = await self.preferences.render_as_prompt_block()
        context = assemble_refinement_context(
            conversation,
            request,
            preferences_block=preferences_block,
            max_history_pairs=self.settings.MAX_HISTORY_PAIRS,
        )

        raw = await self._upstream(
            REFINEMENT_FAILED,
            "language model request",
            self.llm.complete(
                context.messages,
                system=context.system,
                max_tokens=self.settings.LLM_MAX_TOKENS,
            ),
        )
        parsed = resolve_refinement(parse_response(raw), conversation.current_html)

        if parsed.preference_rule:
            await self.preferences.add(parsed.preference_rule, conversation.id)

        pdf = await self._upstream(REFINEMENT_FAILED, "PDF rendering", self.renderer.render(parsed.document))

        self._apply_turn(conversation, request, parsed.explanation, parsed.document)
        await asyncio.to_thread(self.conversations.save, conversation)

        self.preference_extractor.schedule(request, conversation.id)

        return RefineResult(explanation=parsed.explanation, pdf=pdf)

    @staticmethod
    def _apply_turn(conversation: Conversation, request: str, explanation: str, document: str) -> None:
        conversation.current_html = document
        conversation.messages.append(Message(role="user", content=request))
        conversation.messages.append(Message(role="assistant", content=explanation))

    async def render_current(self, conversation_id: str) -> PdfDownload:
        conversation = await asyncio.to_thread(self.conversations.load, conversation_id)
        pdf = await self._upstream(PDF_FAILED, "PDF rendering", self.renderer.render(conversation.current_html))
        return PdfDownload(filename=pdf_filename(conversation.job_position), pdf=pdf)
