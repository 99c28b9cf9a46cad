"""Structural placement of new comments.

Computes floor / sub-floor numbers, depth, reply chain and root linkage.
Floor numbers come from the store's scoped atomic counters, so two
concurrent posts in the same scope never share a number.
"""

from dataclasses import dataclass

import structlog

from .exceptions import NotFoundError
from .models import Comment, CommentStatus, CommentTarget
from .store import CommentStore


logger = structlog.get_logger(__name__)


def thread_root_id(comment: Comment) -> int:
    """Id of the root comment of the thread ``comment`` belongs to."""
    return comment.id if comment.root_id in (0, comment.id) else comment.root_id


@dataclass(frozen=True)
class Placement:
    """Where a new comment sits in its thread.

    ``root_id`` is 0 for a root comment; the store sets it to the new id.
    """

    target: CommentTarget
    parent_id: int
    root_id: int
    floor_number: int
    sub_floor_number: int
    depth: int
    reply_chain: tuple[int, ...]
    parent: Comment | None = None

    @property
    def is_root(self) -> bool:
        return self.parent_id == 0

    def apply(self, comment: Comment) -> Comment:
        """Copy the placement onto ``comment``."""
        comment.target_type = self.target.target_type
        comment.target_id = self.target.target_id
        comment.parent_id = self.parent_id
        comment.root_id = self.root_id
        comment.floor_number = self.floor_number
        comment.sub_floor_number = self.sub_floor_number
        comment.depth = self.depth
        comment.reply_chain = list(self.reply_chain)
        return comment


class ThreadBuilder:
    """Assign structural positions to root comments and replies."""

    def __init__(self, store: CommentStore) -> None:
        self.store = store

    async def place_root(self, target: CommentTarget) -> Placement:
        floor = await self.store.next_floor_number(target)
        logger.debug("root_placed", target=target.key, floor_number=floor)
        return Placement(
            target=target,
            parent_id=0,
            root_id=0,
            floor_number=floor,
            sub_floor_number=0,
            depth=0,
            reply_chain=(),
        )

    async def require_parent(self, parent_id: int) -> Comment:
        """Load a parent that can still take replies.

        Raises:
            NotFoundError: the parent does not exist or was deleted.
        """
        parent = await self.store.get_comment(parent_id)
        if parent is None or parent.status == CommentStatus.DELETED:
            raise NotFoundError("Comentario pai nao encontrado")
        return parent

    async def place_reply(self, parent_id: int) -> Placement:
        """Place a reply under ``parent_id``.

        Raises:
            NotFoundError: the parent does not exist or was deleted.
        """
        return await self.place_under(await self.require_parent(parent_id))

    async def place_under(self, parent: Comment) -> Placement:
        """Place a reply under an already loaded ``parent``."""
        sub_floor = await self.store.next_sub_floor_number(parent.id)
        root_id = thread_root_id(parent)
        placement = Placement(
            target=parent.target,
            parent_id=parent.id,
            root_id=root_id,
            floor_number=parent.floor_number,
            sub_floor_number=sub_floor,
            depth=parent.depth + 1,
            reply_chain=(*parent.reply_chain, parent.id),
            parent=parent,
        )
        logger.debug(
            "reply_placed",
            parent_id=parent.id,
            root_id=root_id,
            sub_floor_number=sub_floor,
            depth=placement.depth,
        )
        return placement
