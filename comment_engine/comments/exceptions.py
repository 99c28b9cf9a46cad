"""Typed errors raised by the comment engine services."""

from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from .models import Comment


class CommentError(Exception):
    """Base comment error."""

    def __init__(self, message: str, code: str = "comment_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class NotFoundError(CommentError):
    """Comment, parent or report not found."""

    def __init__(self, message: str = "Comentario nao encontrado"):
        super().__init__(message, "not_found")


class PermissionDeniedError(CommentError):
    """Actor may not perform the operation."""

    def __init__(self, message: str = "Permissao negada"):
        super().__init__(message, "permission_denied")


class ValidationFailedError(CommentError):
    """Content empty or too long."""

    def __init__(self, message: str = "Conteudo invalido"):
        super().__init__(message, "validation_failed")


class ContentRejectedError(CommentError):
    """Moderation rejected the content.

    The comment has already been recorded with a rejected audit status and
    is available as ``comment``.
    """

    def __init__(
        self,
        message: str = "Comentario rejeitado pela moderacao",
        comment: "Comment | None" = None,
    ):
        super().__init__(message, "content_rejected")
        self.comment = comment


class ConflictError(CommentError):
    """Operation conflicts with current state."""

    def __init__(self, message: str = "Operacao em conflito com o estado atual"):
        super().__init__(message, "conflict")
