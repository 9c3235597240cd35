from cv_optimizer.api.analyze import router as analyze_router
from cv_optimizer.api.conversations import router as conversations_router
from cv_optimizer.api.preferences import router as preferences_router

__all__ = ["analyze_router", "conversations_router", "preferences_router"]
