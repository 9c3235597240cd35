"""Tests for analyze/refine turns and their all-or-nothing persistence."""

import threading

import pytest

from cv_optimizer.core.exceptions import NotFoundError, UpstreamError, ValidationError
from cv_optimizer.services.workflow.orchestrator import pdf_filename
from cv_optimizer.services.workflow.response_parser import ANALYSIS_FALLBACK_EXPLANATION

from conftest import INITIAL_HTML, RESUME_TEXT, html_doc, make_conversation, model_reply

PDF_BYTES = b"%PDF-1.4 resume"


def analyze_kwargs(**overrides):
    kwargs = dict(
        file_content=PDF_BYTES,
        filename="jane.pdf",
        content_type="application/pdf",
        job_position="Backend Engineer",
        company="Acme",
        job_description="Build APIs in Python.",
    )
    kwargs.update(overrides)
    return kwargs


def _seed(conversation_store, refinements=0):
    conversation = make_conversation(refinements)
    conversation_store.save(conversation)
    return conversation


class TestAnalyze:
    @pytest.mark.asyncio
    async def test_success_persists_rendered_document(self, orchestrator, fake_llm, fake_renderer, conversation_store):
        fake_llm.replies = [model_reply("Reordered experience.", INITIAL_HTML)]

        result = await orchestrator.analyze(**analyze_kwargs())

        assert result.explanation == "Reordered experience."
        assert result.pdf == b"%PDF-1.4 fake 1"
        assert fake_renderer.rendered == [INITIAL_HTML]

        stored = conversation_store.load(result.conversation_id)
        assert stored.current_html == INITIAL_HTML
        assert stored.initial_html == INITIAL_HTML
        assert stored.original_resume_text == RESUME_TEXT
        assert stored.original_file_name == "jane.pdf"
        assert [(m.role, m.content) for m in stored.messages] == [
            ("user", "Optimize my CV for this position."),
            ("assistant", "Reordered experience."),
        ]

    @pytest.mark.asyncio
    async def test_prompt_carries_resume_job_and_preferences(self, orchestrator, fake_llm, preference_store):
        await preference_store.add("Use bold for job titles", "conv_0")
        fake_llm.replies = [model_reply("Done.", INITIAL_HTML)]

        await orchestrator.analyze(**analyze_kwargs())

        (call,) = fake_llm.turn_calls
        prompt = call["messages"][0]["content"]
        assert RESUME_TEXT in prompt
        assert "Backend Engineer" in prompt and "Acme" in prompt
        assert "1. Use bold for job titles" in prompt
        assert call["max_tokens"] == 4096

    @pytest.mark.asyncio
    async def test_form_fields_are_trimmed(self, orchestrator, fake_llm, conversation_store):
        fake_llm.replies = [model_reply("Done.", INITIAL_HTML)]

        result = await orchestrator.analyze(**analyze_kwargs(job_position="  Backend Engineer \n"))

        assert conversation_store.load(result.conversation_id).job_position == "Backend Engineer"

    @pytest.mark.asyncio
    async def test_unmarked_reply_is_stored_with_fallback_explanation(self, orchestrator, fake_llm, conversation_store):
        fake_llm.replies = ["Sure! <!DOCTYPE html><html><body>cv</body></html>"]

        result = await orchestrator.analyze(**analyze_kwargs())

        assert result.explanation == ANALYSIS_FALLBACK_EXPLANATION
        stored = conversation_store.load(result.conversation_id)
        assert stored.current_html == "<!DOCTYPE html><html><body>cv</body></html>"

    @pytest.mark.parametrize(
        "overrides, message",
        [
            ({"file_content": None}, "Please upload a PDF resume"),
            ({"content_type": "application/msword"}, "Only PDF files are allowed"),
            ({"file_content": b"x" * (10 * 1024 * 1024 + 1)}, "File is too large. Maximum size is 10 MB"),
            ({"job_position": ""}, "Job position, company, and job description are required"),
            ({"company": "   "}, "Job position, company, and job description are required"),
            ({"job_description": None}, "Job position, company, and job description are required"),
        ],
    )
    @pytest.mark.asyncio
    async def test_invalid_input_is_rejected_before_any_call(
        self, orchestrator, fake_llm, fake_renderer, conversation_store, overrides, message
    ):
        calls = []
        orchestrator.extract_text = lambda content: calls.append(content) or RESUME_TEXT

        with pytest.raises(ValidationError) as exc_info:
            await orchestrator.analyze(**analyze_kwargs(**overrides))

        assert exc_info.value.message == message
        assert calls == []
        assert fake_llm.calls == []
        assert fake_renderer.rendered == []
        assert conversation_store.list() == []

    @pytest.mark.asyncio
    async def test_scanned_pdf_is_a_validation_error(self, orchestrator, fake_llm, conversation_store):
        orchestrator.extract_text = lambda content: "  \n  "

        with pytest.raises(ValidationError, match="Could not extract text"):
            await orchestrator.analyze(**analyze_kwargs())

        assert fake_llm.calls == []
        assert conversation_store.list() == []

    @pytest.mark.asyncio
    async def test_extraction_failure_is_upstream_error(self, orchestrator, fake_llm, conversation_store):
        def broken(content):
            raise ValueError("EOF marker not found")

        orchestrator.extract_text = broken

        with pytest.raises(UpstreamError) as exc_info:
            await orchestrator.analyze(**analyze_kwargs())

        assert exc_info.value.message == "Analysis failed: PDF text extraction failed"
        assert "EOF marker" not in exc_info.value.message
        assert fake_llm.calls == []
        assert conversation_store.list() == []

    @pytest.mark.asyncio
    async def test_model_failure_persists_nothing(self, orchestrator, fake_llm, fake_renderer, conversation_store):
        fake_llm.error = RuntimeError("rate limited")

        with pytest.raises(UpstreamError, match="^Analysis failed: language model request failed$"):
            await orchestrator.analyze(**analyze_kwargs())

        assert fake_renderer.rendered == []
        assert conversation_store.list() == []

    @pytest.mark.asyncio
    async def test_render_failure_persists_nothing(self, orchestrator, fake_llm, fake_renderer, conversation_store):
        fake_llm.replies = [model_reply("Done.", INITIAL_HTML)]
        fake_renderer.fail = True

        with pytest.raises(UpstreamError, match="PDF rendering failed"):
            await orchestrator.analyze(**analyze_kwargs())

        assert conversation_store.list() == []

    @pytest.mark.asyncio
    async def test_analyze_does_not_learn_preferences(self, orchestrator, fake_llm, preference_store):
        fake_llm.replies = [model_reply("Done.", INITIAL_HTML, preference="Always use serif fonts")]

        await orchestrator.analyze(**analyze_kwargs())
        await orchestrator.preference_extractor.drain()

        assert fake_llm.classifier_calls == []
        assert await preference_store.load_all() == []


class TestRefine:
    @pytest.mark.asyncio
    async def test_success_updates_document_and_history(self, orchestrator, fake_llm, fake_renderer, conversation_store):
        conversation = _seed(conversation_store)
        new_doc = html_doc("bold titles")
        fake_llm.replies = [model_reply("Bolded the job titles.", new_doc)]

        result = await orchestrator.refine(conversation.id, "  Make job titles bold  ")

        assert result.explanation == "Bolded the job titles."
        assert fake_renderer.rendered == [new_doc]

        stored = conversation_store.load(conversation.id)
        assert stored.current_html == new_doc
        assert stored.initial_html == INITIAL_HTML
        assert len(stored.messages) == 4
        assert stored.messages[-2].content == "Make job titles bold"
        assert stored.messages[-1].content == "Bolded the job titles."

    @pytest.mark.asyncio
    async def test_model_receives_assembled_context(self, orchestrator, fake_llm, conversation_store, preference_store):
        conversation = _seed(conversation_store, refinements=7)
        await preference_store.add("Keep it to one page", "conv_0")
        fake_llm.replies = [model_reply("Done.", html_doc("x"))]

        await orchestrator.refine(conversation.id, "Shorter summary")

        (call,) = fake_llm.turn_calls
        assert len(call["messages"]) == 13
        assert call["messages"][-1]["content"].endswith("Please make the following change: Shorter summary")
        assert call["system"].endswith("1. Keep it to one page")

    @pytest.mark.asyncio
    async def test_unknown_conversation(self, orchestrator, fake_llm):
        with pytest.raises(NotFoundError):
            await orchestrator.refine("conv_missing", "anything")

        assert fake_llm.calls == []

    @pytest.mark.asyncio
    async def test_blank_message(self, orchestrator, fake_llm, conversation_store):
        conversation = _seed(conversation_store)

        with pytest.raises(ValidationError, match="Message is required"):
            await orchestrator.refine(conversation.id, "   ")

        assert fake_llm.calls == []
        assert len(conversation_store.load(conversation.id).messages) == 2

    @pytest.mark.asyncio
    async def test_model_failure_leaves_record_untouched(self, orchestrator, fake_llm, conversation_store):
        conversation = _seed(conversation_store, refinements=1)
        before = conversation_store.load(conversation.id)
        fake_llm.error = TimeoutError("upstream timeout")

        with pytest.raises(UpstreamError, match="^Refinement failed: language model request failed$"):
            await orchestrator.refine(conversation.id, "Make it blue")

        after = conversation_store.load(conversation.id)
        assert after.current_html == before.current_html
        assert len(after.messages) == len(before.messages)

    @pytest.mark.asyncio
    async def test_render_failure_leaves_record_untouched(self, orchestrator, fake_llm, fake_renderer, conversation_store):
        conversation = _seed(conversation_store)
        fake_llm.replies = [model_reply("Done.", html_doc("new"))]
        fake_renderer.fail = True

        with pytest.raises(UpstreamError, match="Refinement failed"):
            await orchestrator.refine(conversation.id, "Make it blue")

        stored = conversation_store.load(conversation.id)
        assert stored.current_html == INITIAL_HTML
        assert len(stored.messages) == 2
        assert orchestrator.preference_extractor.pending == 0

    @pytest.mark.asyncio
    async def test_unparseable_reply_keeps_previous_document(self, orchestrator, fake_llm, fake_renderer, conversation_store):
        conversation = _seed(conversation_store)
        fake_llm.replies = ["I can't make the CV longer than one page."]

        result = await orchestrator.refine(conversation.id, "Add ten more projects")

        assert result.explanation == "I can't make the CV longer than one page."
        assert fake_renderer.rendered == [INITIAL_HTML]
        stored = conversation_store.load(conversation.id)
        assert stored.current_html == INITIAL_HTML
        assert len(stored.messages) == 4

    @pytest.mark.asyncio
    async def test_inline_preference_is_saved(self, orchestrator, fake_llm, conversation_store, preference_store):
        conversation = _seed(conversation_store)
        fake_llm.replies = [model_reply("Done.", html_doc("x"), preference="Always make URLs clickable")]

        result = await orchestrator.refine(conversation.id, "Make the links clickable")

        assert result.explanation == "Done."
        rules = await preference_store.load_all()
        assert [(p.rule, p.source_conversation_id) for p in rules] == [
            ("Always make URLs clickable", conversation.id)
        ]

    @pytest.mark.asyncio
    async def test_background_classifier_learns_rule(self, orchestrator, fake_llm, conversation_store, preference_store):
        conversation = _seed(conversation_store)
        fake_llm.replies = [model_reply("Done.", html_doc("x"))]
        fake_llm.classifier_reply = "Use bold for job titles"

        await orchestrator.refine(conversation.id, "Make job titles bold")
        await orchestrator.preference_extractor.drain()

        (classifier_call,) = fake_llm.classifier_calls
        assert "Make job titles bold" in classifier_call["messages"][0]["content"]
        assert [p.rule for p in await preference_store.load_all()] == ["Use bold for job titles"]

    @pytest.mark.asyncio
    async def test_classifier_duplicate_of_inline_rule_is_dropped(
        self, orchestrator, fake_llm, conversation_store, preference_store
    ):
        conversation = _seed(conversation_store)
        fake_llm.replies = [model_reply("Done.", html_doc("x"), preference="Use bold for job titles")]
        fake_llm.classifier_reply = "use BOLD for job titles"

        await orchestrator.refine(conversation.id, "Make job titles bold")
        await orchestrator.preference_extractor.drain()

        assert [p.rule for p in await preference_store.load_all()] == ["Use bold for job titles"]

    @pytest.mark.asyncio
    async def test_classifier_failure_does_not_affect_turn(self, orchestrator, fake_llm, conversation_store, preference_store):
        conversation = _seed(conversation_store)
        fake_llm.replies = [model_reply("Done.", html_doc("x"))]
        fake_llm.classifier_reply = RuntimeError("classifier down")

        result = await orchestrator.refine(conversation.id, "Make job titles bold")
        await orchestrator.preference_extractor.drain()

        assert result.explanation == "Done."
        assert len(conversation_store.load(conversation.id).messages) == 4
        assert await preference_store.load_all() == []


class TestRenderCurrent:
    @pytest.mark.asyncio
    async def test_renders_current_document(self, orchestrator, fake_llm, fake_renderer, conversation_store):
        conversation = _seed(conversation_store, refinements=2)

        first = await orchestrator.render_current(conversation.id)
        second = await orchestrator.render_current(conversation.id)

        assert fake_renderer.rendered == [conversation.current_html, conversation.current_html]
        assert first.filename == "optimized-cv-backend-engineer.pdf"
        assert second.pdf.startswith(b"%PDF")
        assert fake_llm.calls == []

    @pytest.mark.asyncio
    async def test_record_io_runs_off_the_event_loop_thread(self, orchestrator, conversation_store):
        conversation = _seed(conversation_store)
        load = conversation_store.load
        threads = []

        def recording_load(conversation_id):
            threads.append(threading.get_ident())
            return load(conversation_id)

        conversation_store.load = recording_load

        await orchestrator.render_current(conversation.id)

        assert threads and threads[0] != threading.get_ident()

    @pytest.mark.asyncio
    async def test_unknown_conversation(self, orchestrator, fake_renderer):
        with pytest.raises(NotFoundError):
            await orchestrator.render_current("conv_missing")

        assert fake_renderer.rendered == []

    @pytest.mark.asyncio
    async def test_render_failure(self, orchestrator, fake_renderer, conversation_store):
        conversation = _seed(conversation_store)
        fake_renderer.fail = True

        with pytest.raises(UpstreamError, match="^PDF generation failed: PDF rendering failed$"):
            await orchestrator.render_current(conversation.id)


class TestPdfFilename:
    def test_slug(self):
        assert pdf_filename("Senior Backend Engineer") == "optimized-cv-senior-backend-engineer.pdf"

    def test_unsafe_characters_are_dropped(self):
        assert pdf_filename('Dev "Ops" / Lead') == "optimized-cv-dev-ops--lead.pdf"

    def test_non_latin_position_falls_back(self):
        assert pdf_filename("Инженер") == "optimized-cv.pdf"
