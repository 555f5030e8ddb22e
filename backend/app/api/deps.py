"""
Shared route dependencies.
"""

from starlette.requests import Request

from app.services.background import BackgroundWorkerPool


def get_task_queue(request: Request) -> BackgroundWorkerPool | None:
    """Background pool started in the app lifespan; None when it is not running."""
    return getattr(request.app.state, "tasks", None)
