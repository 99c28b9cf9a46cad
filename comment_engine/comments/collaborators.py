"""External collaborators consumed by the comment engine.

User profiles, target ownership and notification delivery live outside
this package; the engine only depends on the small contracts below.
"""

import asyncio
import json
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Protocol

import structlog

from comment_engine.core.redis import notification_channel


if TYPE_CHECKING:
    from redis.asyncio import Redis


logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class UserProfile:
    """Display data denormalized onto comments."""

    id: int
    username: str
    avatar: str = ""


class UserDirectory(Protocol):
    async def find_by_id(self, user_id: int) -> UserProfile | None: ...


class TargetOwnership(Protocol):
    async def is_owner(
        self, target_type: int, target_id: int, user_id: int
    ) -> bool: ...


class NotificationEventType:
    """Notification event names."""

    COMMENT_REPLY = "comment_reply"
    COMMENT_MENTION = "comment_mention"
    COMMENT_FOLDED = "comment_folded"
    COMMENT_AUTHOR_REPLY = "comment_author_reply"


@dataclass
class NotificationEvent:
    """Something a user should hear about."""

    type: str
    recipient_id: int
    actor_id: int
    comment_id: int
    target_type: int
    target_id: int
    preview: str = ""
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["created_at"] = self.created_at.isoformat()
        return data


class NotificationSink(Protocol):
    async def dispatch(self, event: NotificationEvent) -> None: ...


class NullNotificationSink:
    """Discards every event."""

    async def dispatch(self, event: NotificationEvent) -> None:
        logger.debug(
            "notification_discarded", type=event.type, comment_id=event.comment_id
        )


class RedisNotificationSink:
    """Publishes events as JSON on the recipient's Pub/Sub channel."""

    def __init__(self, redis: "Redis") -> None:
        self.redis = redis

    async def dispatch(self, event: NotificationEvent) -> None:
        channel = notification_channel(event.recipient_id)
        payload = json.dumps(event.to_dict(), ensure_ascii=False)
        await self.redis.publish(channel, payload)
        logger.debug(
            "notification_published",
            channel=channel,
            type=event.type,
            comment_id=event.comment_id,
        )


class NotificationDispatcher:
    """Fire-and-forget delivery on background tasks.

    A failing sink is logged and never reaches the caller.
    """

    def __init__(self, sink: NotificationSink | None = None) -> None:
        self.sink: NotificationSink = sink or NullNotificationSink()
        self._tasks: set[asyncio.Task] = set()

    def notify(self, event: NotificationEvent) -> None:
        task = asyncio.create_task(self._deliver(event), name=f"notify:{event.type}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _deliver(self, event: NotificationEvent) -> None:
        try:
            await self.sink.dispatch(event)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception(
                "notification_dispatch_failed",
                type=event.type,
                recipient_id=event.recipient_id,
                comment_id=event.comment_id,
            )

    async def flush(self) -> None:
        """Wait for in-flight deliveries."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


class InMemoryUserDirectory:
    """Dictionary-backed user directory."""

    def __init__(self, users: dict[int, UserProfile] | None = None) -> None:
        self.users: dict[int, UserProfile] = dict(users or {})

    def add(self, user_id: int, username: str, avatar: str = "") -> UserProfile:
        profile = UserProfile(id=user_id, username=username, avatar=avatar)
        self.users[user_id] = profile
        return profile

    async def find_by_id(self, user_id: int) -> UserProfile | None:
        return self.users.get(user_id)


class InMemoryTargetOwnership:
    """Ownership table keyed by (target_type, target_id)."""

    def __init__(self, owners: dict[tuple[int, int], int] | None = None) -> None:
        self.owners: dict[tuple[int, int], int] = dict(owners or {})

    def set_owner(self, target_type: int, target_id: int, user_id: int) -> None:
        self.owners[(int(target_type), target_id)] = user_id

    async def is_owner(self, target_type: int, target_id: int, user_id: int) -> bool:
        return self.owners.get((int(target_type), target_id)) == user_id
