"""Comment system API endpoints.

Provides routes for:
- Root comments, replies and deletion
- Listings by target, parent, thread and user
- Likes and dislikes
- Pins, featured comments and author replies
- Reports, plus the moderator surface under /v1/admin/comments
"""

import structlog
from fastapi import APIRouter, HTTPException, Query, Request, status

from comment_engine.moderation.models import SensitiveWord
from comment_engine.reports.rules import FoldRule, InvalidRuleError

from .dependencies import (
    ActorId,
    CommentServiceDep,
    ReportEngineDep,
    ScoreEngineDep,
    WordServiceDep,
    handle_comment_error,
)
from .exceptions import CommentError
from .models import CommentTarget
from .schemas import (
    AuthorReplyRequest,
    AuthorReplyResponse,
    BatchCommentsRequest,
    BatchResultResponse,
    CommentListResponse,
    CommentResponse,
    CommentStatsResponse,
    CreateCommentRequest,
    CreateReplyRequest,
    CreateReportRequest,
    FloorBuildingResponse,
    FoldRuleRequest,
    FoldRuleResponse,
    HandleReportRequest,
    HotCommentResponse,
    MessageResponse,
    ReportListResponse,
    ReportOutcomeResponse,
    ReportResponse,
    SensitiveWordRequest,
    SensitiveWordResponse,
    ThreadResponse,
    UserCommentStatsResponse,
)
from .service import ClientInfo, NewComment


logger = structlog.get_logger(__name__)


router = APIRouter(prefix="/v1/comments", tags=["comments"])
admin_router = APIRouter(prefix="/v1/admin/comments", tags=["comments-admin"])


def _client_info(request: Request) -> ClientInfo:
    return ClientInfo(
        ip=request.client.host if request.client else "",
        device_type=request.headers.get("x-device-type", ""),
        user_agent=request.headers.get("user-agent", ""),
    )


def _new_comment(data: CreateCommentRequest | CreateReplyRequest, request: Request):
    return NewComment(
        content=data.content,
        content_kind=data.content_kind,
        images=data.images,
        mentioned_user_ids=data.mentioned_user_ids,
        client=_client_info(request),
    )


# ==============================================================================
# Creation and deletion
# ==============================================================================


@router.post(
    "",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create root comment",
)
async def create_comment(
    data: CreateCommentRequest,
    request: Request,
    comment_service: CommentServiceDep,
    actor_id: ActorId,
) -> CommentResponse:
    """Post a root comment under a target.

    Content is moderated; masked words are stored masked. Rejected content
    is recorded for audit and answered with 422.
    """
    try:
        comment = await comment_service.create_root(
            actor_id,
            data.target_type,
            data.target_id,
            _new_comment(data, request),
        )
        return CommentResponse.from_comment(comment)
    except CommentError as e:
        raise handle_comment_error(e) from e


@router.post(
    "/{comment_id}/replies",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Reply to comment",
)
async def create_reply(
    comment_id: int,
    data: CreateReplyRequest,
    request: Request,
    comment_service: CommentServiceDep,
    actor_id: ActorId,
) -> CommentResponse:
    """Reply to a comment; the reply inherits its floor number."""
    try:
        comment = await comment_service.create_reply(
            actor_id,
            comment_id,
            _new_comment(data, request),
            reply_to_comment_id=data.reply_to_comment_id,
        )
        return CommentResponse.from_comment(comment)
    except CommentError as e:
        raise handle_comment_error(e) from e


@router.delete(
    "/{comment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete comment",
)
async def delete_comment(
    comment_id: int,
    comment_service: CommentServiceDep,
    actor_id: ActorId,
) -> None:
    """Soft delete the caller's own comment."""
    try:
        await comment_service.delete_comment(comment_id, actor_id)
    except CommentError as e:
        raise handle_comment_error(e) from e


# ==============================================================================
# Listings
# ==============================================================================


@router.get(
    "/target/{target_type}/{target_id}",
    response_model=CommentListResponse,
    summary="List root comments of a target",
)
async def list_target_comments(
    target_type: int,
    target_id: int,
    comment_service: CommentServiceDep,
    page: int = Query(default=1, ge=1),
    size: int = Query(default=20, ge=1, le=100),
    sort: str = Query(default="time", pattern="^(time|floor|hot|like)$"),
) -> CommentListResponse:
    """Root comments, pinned first, then by the requested order."""
    try:
        result = await comment_service.list_roots(
            target_type, target_id, page=page, size=size, sort=sort
        )
        return CommentListResponse.from_page(result)
    except CommentError as e:
        raise handle_comment_error(e) from e


@router.get(
    "/target/{target_type}/{target_id}/hot",
    response_model=list[HotCommentResponse],
    summary="Hot comments of a target",
)
async def list_hot_comments(
    target_type: int,
    target_id: int,
    comment_service: CommentServiceDep,
    limit: int = Query(default=10, ge=1, le=50),
) -> list[HotCommentResponse]:
    entries = await comment_service.get_hot_comments(target_type, target_id, limit)
    return [HotCommentResponse.model_validate(e) for e in entries]


@router.get(
    "/target/{target_type}/{target_id}/stats",
    response_model=CommentStatsResponse,
    summary="Comment statistics of a target",
)
async def get_target_stats(
    target_type: int,
    target_id: int,
    comment_service: CommentServiceDep,
) -> CommentStatsResponse:
    stats = await comment_service.target_stats(target_type, target_id)
    return CommentStatsResponse.model_validate(stats)


@router.get(
    "/target/{target_type}/{target_id}/floor-building/{user_id}",
    response_model=FloorBuildingResponse,
    summary="Floor building record of a user under a target",
)
async def get_floor_building(
    target_type: int,
    target_id: int,
    user_id: int,
    comment_service: CommentServiceDep,
) -> FloorBuildingResponse:
    record = await comment_service.get_floor_building(target_type, target_id, user_id)
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Registro nao encontrado",
        )
    return FloorBuildingResponse.model_validate(record)


@router.get(
    "/user/{user_id}",
    response_model=CommentListResponse,
    summary="List comments by user",
)
async def list_user_comments(
    user_id: int,
    comment_service: CommentServiceDep,
    page: int = Query(default=1, ge=1),
    size: int = Query(default=20, ge=1, le=100),
) -> CommentListResponse:
    result = await comment_service.list_user_comments(user_id, page=page, size=size)
    return CommentListResponse.from_page(result)


@router.get(
    "/user/{user_id}/stats",
    response_model=UserCommentStatsResponse,
    summary="Comment statistics of a user",
)
async def get_user_stats(
    user_id: int,
    comment_service: CommentServiceDep,
) -> UserCommentStatsResponse:
    stats = await comment_service.user_stats(user_id)
    return UserCommentStatsResponse.model_validate(stats)


@router.get(
    "/{comment_id}",
    response_model=CommentResponse,
    summary="Get comment",
)
async def get_comment(
    comment_id: int,
    comment_service: CommentServiceDep,
) -> CommentResponse:
    try:
        comment = await comment_service.get_comment(comment_id)
        return CommentResponse.from_comment(comment)
    except CommentError as e:
        raise handle_comment_error(e) from e


@router.get(
    "/{comment_id}/replies",
    response_model=CommentListResponse,
    summary="Get comment replies",
)
async def list_replies(
    comment_id: int,
    comment_service: CommentServiceDep,
    page: int = Query(default=1, ge=1),
    size: int = Query(default=20, ge=1, le=100),
) -> CommentListResponse:
    """Direct replies only, in sub-floor order."""
    result = await comment_service.list_replies(comment_id, page=page, size=size)
    return CommentListResponse.from_page(result)


@router.get(
    "/{comment_id}/thread",
    response_model=ThreadResponse,
    summary="Get whole thread",
)
async def get_thread(
    comment_id: int,
    comment_service: CommentServiceDep,
) -> ThreadResponse:
    """Every visible comment under a root, depth first."""
    try:
        comments = await comment_service.get_thread(comment_id)
        return ThreadResponse(
            root_id=comment_id,
            items=[CommentResponse.from_comment(c) for c in comments],
        )
    except CommentError as e:
        raise handle_comment_error(e) from e


# ==============================================================================
# Interactions
# ==============================================================================


@router.post("/{comment_id}/like", response_model=CommentResponse)
async def like_comment(
    comment_id: int, comment_service: CommentServiceDep, actor_id: ActorId
) -> CommentResponse:
    try:
        return CommentResponse.from_comment(
            await comment_service.like(comment_id, actor_id)
        )
    except CommentError as e:
        raise handle_comment_error(e) from e


@router.delete("/{comment_id}/like", response_model=CommentResponse)
async def unlike_comment(
    comment_id: int, comment_service: CommentServiceDep, actor_id: ActorId
) -> CommentResponse:
    try:
        return CommentResponse.from_comment(
            await comment_service.unlike(comment_id, actor_id)
        )
    except CommentError as e:
        raise handle_comment_error(e) from e


@router.post("/{comment_id}/dislike", response_model=CommentResponse)
async def dislike_comment(
    comment_id: int, comment_service: CommentServiceDep, actor_id: ActorId
) -> CommentResponse:
    try:
        return CommentResponse.from_comment(
            await comment_service.dislike(comment_id, actor_id)
        )
    except CommentError as e:
        raise handle_comment_error(e) from e


@router.delete("/{comment_id}/dislike", response_model=CommentResponse)
async def undislike_comment(
    comment_id: int, comment_service: CommentServiceDep, actor_id: ActorId
) -> CommentResponse:
    try:
        return CommentResponse.from_comment(
            await comment_service.undislike(comment_id, actor_id)
        )
    except CommentError as e:
        raise handle_comment_error(e) from e


# ==============================================================================
# Owner actions
# ==============================================================================


@router.post("/{comment_id}/pin", response_model=CommentResponse)
async def pin_comment(
    comment_id: int, comment_service: CommentServiceDep, actor_id: ActorId
) -> CommentResponse:
    """Pin a root comment (target owner only)."""
    try:
        return CommentResponse.from_comment(
            await comment_service.set_pinned(comment_id, actor_id, True)
        )
    except CommentError as e:
        raise handle_comment_error(e) from e


@router.delete("/{comment_id}/pin", response_model=CommentResponse)
async def unpin_comment(
    comment_id: int, comment_service: CommentServiceDep, actor_id: ActorId
) -> CommentResponse:
    try:
        return CommentResponse.from_comment(
            await comment_service.set_pinned(comment_id, actor_id, False)
        )
    except CommentError as e:
        raise handle_comment_error(e) from e


@router.post("/{comment_id}/feature", response_model=CommentResponse)
async def feature_comment(
    comment_id: int, comment_service: CommentServiceDep, actor_id: ActorId
) -> CommentResponse:
    """Feature a comment (target owner only)."""
    try:
        return CommentResponse.from_comment(
            await comment_service.set_featured(comment_id, actor_id, True)
        )
    except CommentError as e:
        raise handle_comment_error(e) from e


@router.delete("/{comment_id}/feature", response_model=CommentResponse)
async def unfeature_comment(
    comment_id: int, comment_service: CommentServiceDep, actor_id: ActorId
) -> CommentResponse:
    try:
        return CommentResponse.from_comment(
            await comment_service.set_featured(comment_id, actor_id, False)
        )
    except CommentError as e:
        raise handle_comment_error(e) from e


@router.post(
    "/{comment_id}/author-replies",
    response_model=AuthorReplyResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add author reply",
)
async def create_author_reply(
    comment_id: int,
    data: AuthorReplyRequest,
    comment_service: CommentServiceDep,
    actor_id: ActorId,
) -> AuthorReplyResponse:
    try:
        reply = await comment_service.author_reply(comment_id, actor_id, data.content)
        return AuthorReplyResponse.model_validate(reply)
    except CommentError as e:
        raise handle_comment_error(e) from e


@router.get(
    "/{comment_id}/author-replies",
    response_model=list[AuthorReplyResponse],
    summary="List author replies",
)
async def list_author_replies(
    comment_id: int, comment_service: CommentServiceDep
) -> list[AuthorReplyResponse]:
    try:
        replies = await comment_service.list_author_replies(comment_id)
        return [AuthorReplyResponse.model_validate(r) for r in replies]
    except CommentError as e:
        raise handle_comment_error(e) from e


# ==============================================================================
# Reports
# ==============================================================================


@router.post(
    "/{comment_id}/reports",
    response_model=ReportOutcomeResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Report comment",
)
async def report_comment(
    comment_id: int,
    data: CreateReportRequest,
    report_engine: ReportEngineDep,
    actor_id: ActorId,
) -> ReportOutcomeResponse:
    """Report a comment; enough reports fold it automatically."""
    try:
        outcome = await report_engine.report(
            comment_id, actor_id, data.reason, data.description
        )
        return ReportOutcomeResponse(
            report=ReportResponse.model_validate(outcome.report),
            report_count=outcome.report_count,
            folded=outcome.folded,
        )
    except CommentError as e:
        raise handle_comment_error(e) from e


# ==============================================================================
# Moderator surface
# ==============================================================================


@admin_router.get(
    "/reports",
    response_model=ReportListResponse,
    summary="List pending reports",
)
async def list_pending_reports(
    report_engine: ReportEngineDep,
    _actor_id: ActorId,
    page: int = Query(default=1, ge=1),
    size: int = Query(default=20, ge=1, le=100),
) -> ReportListResponse:
    reports = await report_engine.pending_reports(page=page, size=size)
    return ReportListResponse(
        items=[ReportResponse.model_validate(r) for r in reports],
        page=page,
        size=size,
    )


@admin_router.post(
    "/reports/{report_id}/handle",
    response_model=ReportResponse,
    summary="Approve or reject a report",
)
async def handle_report(
    report_id: int,
    data: HandleReportRequest,
    report_engine: ReportEngineDep,
    actor_id: ActorId,
) -> ReportResponse:
    """Approving soft-deletes the reported comment. Both outcomes are final."""
    try:
        report = await report_engine.handle_report(
            report_id, actor_id, data.approved, data.result
        )
        return ReportResponse.model_validate(report)
    except CommentError as e:
        raise handle_comment_error(e) from e


@admin_router.post("/batch-delete", response_model=BatchResultResponse)
async def batch_delete_comments(
    data: BatchCommentsRequest,
    comment_service: CommentServiceDep,
    _actor_id: ActorId,
) -> BatchResultResponse:
    affected = await comment_service.batch_delete(data.comment_ids)
    return BatchResultResponse(requested=len(data.comment_ids), affected=affected)


@admin_router.post("/batch-fold", response_model=BatchResultResponse)
async def batch_fold_comments(
    data: BatchCommentsRequest,
    comment_service: CommentServiceDep,
    _actor_id: ActorId,
) -> BatchResultResponse:
    affected = await comment_service.batch_fold(data.comment_ids)
    return BatchResultResponse(requested=len(data.comment_ids), affected=affected)


@admin_router.delete(
    "/{comment_id}/purge",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Purge comment",
)
async def purge_comment(
    comment_id: int,
    comment_service: CommentServiceDep,
    _actor_id: ActorId,
) -> None:
    """Remove a comment record permanently."""
    try:
        await comment_service.purge_comment(comment_id)
    except CommentError as e:
        raise handle_comment_error(e) from e


@admin_router.get("/sensitive-words", response_model=list[SensitiveWordResponse])
async def list_sensitive_words(
    word_service: WordServiceDep,
    _actor_id: ActorId,
) -> list[SensitiveWordResponse]:
    words = await word_service.list_words()
    return [SensitiveWordResponse.model_validate(w) for w in words]


@admin_router.post(
    "/sensitive-words",
    response_model=SensitiveWordResponse,
    status_code=status.HTTP_201_CREATED,
)
async def save_sensitive_word(
    data: SensitiveWordRequest,
    word_service: WordServiceDep,
    _actor_id: ActorId,
) -> SensitiveWordResponse:
    """Add or update a word; it is active immediately."""
    saved: SensitiveWord = await word_service.add_word(
        data.word, data.level, data.action, data.replacement
    )
    return SensitiveWordResponse.model_validate(saved)


@admin_router.post("/sensitive-words/{word}/disable", response_model=MessageResponse)
async def disable_sensitive_word(
    word: str,
    word_service: WordServiceDep,
    _actor_id: ActorId,
) -> MessageResponse:
    if not await word_service.disable_word(word):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Palavra nao encontrada",
        )
    return MessageResponse(message="Palavra desativada")


@admin_router.delete("/sensitive-words/{word}", response_model=MessageResponse)
async def delete_sensitive_word(
    word: str,
    word_service: WordServiceDep,
    _actor_id: ActorId,
) -> MessageResponse:
    if not await word_service.remove_word(word):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Palavra nao encontrada",
        )
    return MessageResponse(message="Palavra removida")


@admin_router.post("/sensitive-words/reload", response_model=MessageResponse)
async def reload_sensitive_words(
    word_service: WordServiceDep,
    _actor_id: ActorId,
) -> MessageResponse:
    loaded = await word_service.reload()
    return MessageResponse(message=f"{loaded} palavras carregadas")


@admin_router.get("/fold-rules", response_model=list[FoldRuleResponse])
async def list_fold_rules(
    report_engine: ReportEngineDep,
    _actor_id: ActorId,
) -> list[FoldRuleResponse]:
    rules = await report_engine.list_rules()
    return [FoldRuleResponse.from_rule(r) for r in rules]


@admin_router.put("/fold-rules", response_model=FoldRuleResponse)
async def save_fold_rule(
    data: FoldRuleRequest,
    report_engine: ReportEngineDep,
    _actor_id: ActorId,
) -> FoldRuleResponse:
    try:
        rule = FoldRule.from_config(
            data.name, data.rule_type, data.config, data.enabled
        )
    except InvalidRuleError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        ) from e
    saved = await report_engine.save_rule(rule)
    return FoldRuleResponse.from_rule(saved)


@admin_router.post(
    "/hot/{target_type}/{target_id}/refresh",
    response_model=list[HotCommentResponse],
    summary="Rebuild a target's hot list now",
)
async def refresh_hot_list(
    target_type: int,
    target_id: int,
    score_engine: ScoreEngineDep,
    _actor_id: ActorId,
) -> list[HotCommentResponse]:
    entries = await score_engine.refresh_hot_list(
        CommentTarget(target_type, target_id)
    )
    logger.info(
        "hot_list_refreshed_manually", target_type=target_type, target_id=target_id
    )
    return [HotCommentResponse.model_validate(e) for e in entries]
