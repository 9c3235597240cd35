from fastapi import Request
from cv_optimizer.services.workflow import TurnOrchestrator


def get_orchestrator(request: Request) -> TurnOrchestrator:
    return request.app.state.orchestrator
