"""FastAPI dependencies for the comment API.

Provides dependency injection for:
- Comment, report and sensitive word services
- The acting user id (validated upstream, passed as a header)
- Error mapping
"""

from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status

from comment_engine.core.context import set_user_id
from comment_engine.moderation.service import SensitiveWordService
from comment_engine.ranking.scoring import ScoreEngine
from comment_engine.reports.service import ReportFoldEngine

from .exceptions import CommentError
from .service import CommentService


def _from_state(request: Request, name: str, label: str):
    service = getattr(request.app.state, name, None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Servico de {label} nao disponivel",
        )
    return service


async def get_comment_service(request: Request) -> CommentService:
    """Get comment service from app state."""
    return _from_state(request, "comment_service", "comentarios")


async def get_report_engine(request: Request) -> ReportFoldEngine:
    """Get report engine from app state."""
    return _from_state(request, "report_engine", "denuncias")


async def get_word_service(request: Request) -> SensitiveWordService:
    """Get sensitive word service from app state."""
    return _from_state(request, "word_service", "palavras sensiveis")


async def get_score_engine(request: Request) -> ScoreEngine:
    """Get score engine from app state."""
    return _from_state(request, "score_engine", "ranking")


async def get_actor_id(
    x_user_id: Annotated[int, Header(alias="X-User-Id", gt=0)],
) -> int:
    """Acting user id, as forwarded by the gateway."""
    set_user_id(x_user_id)
    return x_user_id


# Type aliases for dependency injection
CommentServiceDep = Annotated[CommentService, Depends(get_comment_service)]
ReportEngineDep = Annotated[ReportFoldEngine, Depends(get_report_engine)]
WordServiceDep = Annotated[SensitiveWordService, Depends(get_word_service)]
ScoreEngineDep = Annotated[ScoreEngine, Depends(get_score_engine)]
ActorId = Annotated[int, Depends(get_actor_id)]


def handle_comment_error(error: CommentError) -> HTTPException:
    """Convert comment errors to HTTP exceptions.

    Args:
        error: Comment error

    Returns:
        HTTPException with appropriate status code
    """
    status_map = {
        "not_found": status.HTTP_404_NOT_FOUND,
        "permission_denied": status.HTTP_403_FORBIDDEN,
        "validation_failed": status.HTTP_422_UNPROCESSABLE_ENTITY,
        "content_rejected": status.HTTP_422_UNPROCESSABLE_ENTITY,
        "conflict": status.HTTP_409_CONFLICT,
    }

    status_code = status_map.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR)

    return HTTPException(
        status_code=status_code,
        detail=error.message,
    )
