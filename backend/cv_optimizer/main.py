import asyncio
import os
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from cv_optimizer.core.config import Settings, settings as default_settings
from cv_optimizer.core.exceptions import CVOptimizerError
from cv_optimizer.core.logging import get_logger
from cv_optimizer.core.middleware import RequestLoggingMiddleware
from cv_optimizer.api import analyze_router, conversations_router, preferences_router
from cv_optimizer.services.workflow import TurnOrchestrator

logger = get_logger(__name__)


def build_orchestrator(settings: Settings) -> TurnOrchestrator:
    """Wire the production adapters from settings."""
    from cv_optimizer.core.database import engine
    from cv_optimizer.services.llm import create_llm_provider
    from cv_optimizer.services.pdf import PdfRenderer
    from cv_optimizer.services.storage import ConversationStore, PreferenceStore

    os.makedirs(settings.DATA_DIR, exist_ok=True)
    llm = create_llm_provider(settings)
    logger.info(f"AI Provider: {settings.AI_PROVIDER}")
    return TurnOrchestrator(
        llm=llm,
        renderer=PdfRenderer(page_format=settings.PDF_FORMAT, timeout_ms=settings.RENDER_TIMEOUT_MS),
        conversations=ConversationStore(settings.CONVERSATIONS_DIR),
        preferences=PreferenceStore(engine),
        settings=settings,
    )


def _log_loop_exception(loop: asyncio.AbstractEventLoop, context: dict) -> None:
    # Stray task errors are logged; the server keeps serving
    exc = context.get("exception")
    logger.error(f"Unhandled error in event loop: {context.get('message')}", exc_info=exc)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    asyncio.get_running_loop().set_exception_handler(_log_loop_exception)

    if app.state.orchestrator is None:
        app.state.orchestrator = build_orchestrator(app.state.settings)
    orchestrator: TurnOrchestrator = app.state.orchestrator

    await orchestrator.preferences.create_schema()
    yield

    # Cleanup on shutdown
    await orchestrator.preference_extractor.shutdown()
    close_renderer = getattr(orchestrator.renderer, "close", None)
    if close_renderer is not None:
        await close_renderer()
    await orchestrator.preferences.engine.dispose()


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(CVOptimizerError)
    async def handle_domain_error(request: Request, exc: CVOptimizerError):
        return _error(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        detail = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
        return _error(400, f"Invalid request: {detail}")

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
        return _error(500, "Internal server error")


def create_app(orchestrator: Optional[TurnOrchestrator] = None, settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or default_settings

    app = FastAPI(
        title=settings.APP_NAME,
        description="AI CV optimizer with iterative chat refinement",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.orchestrator = orchestrator

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Register routers
    app.include_router(analyze_router, prefix="/api")
    app.include_router(conversations_router, prefix="/api")
    app.include_router(preferences_router, prefix="/api")

    @app.get("/")
    async def root():
        return {
            "name": settings.APP_NAME,
            "version": "1.0.0",
            "docs": "/docs"
        }

    @app.get("/health")
    async def health():
        return {"status": "healthy"}

    return app


app = create_app()
