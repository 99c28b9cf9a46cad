"""Shared test fixtures."""

import os


os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("HOT_SWEEP_ENABLED", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from comment_engine.comments.collaborators import (  # noqa: E402
    InMemoryTargetOwnership,
    InMemoryUserDirectory,
    NotificationDispatcher,
    NotificationEvent,
)
from comment_engine.comments.models import TargetType  # noqa: E402
from comment_engine.comments.service import CommentService  # noqa: E402
from comment_engine.comments.store import InMemoryCommentStore  # noqa: E402
from comment_engine.moderation.matcher import WordMatcher  # noqa: E402
from comment_engine.moderation.models import (  # noqa: E402
    DEFAULT_SENSITIVE_WORDS,
    SensitiveWord,
    WordAction,
    WordLevel,
)
from comment_engine.moderation.pipeline import ModerationPipeline  # noqa: E402
from comment_engine.ranking.scoring import ScoreEngine  # noqa: E402


ARTICLE = TargetType.ARTICLE
ARTICLE_ID = 42
OWNER_ID = 99


class RecordingSink:
    """Notification sink that keeps every event."""

    def __init__(self) -> None:
        self.events: list[NotificationEvent] = []

    async def dispatch(self, event: NotificationEvent) -> None:
        self.events.append(event)


@pytest.fixture
def client() -> TestClient:
    """Test client with the application lifespan running."""
    from comment_engine.main import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def store() -> InMemoryCommentStore:
    return InMemoryCommentStore()


@pytest.fixture
def matcher() -> WordMatcher:
    """Matcher with the built-in list plus a few test words."""
    return WordMatcher(
        [
            *DEFAULT_SENSITIVE_WORDS,
            SensitiveWord("spam", WordLevel.SERIOUS, WordAction.BLOCK),
            SensitiveWord("xx", WordLevel.NORMAL, WordAction.REPLACE, "**"),
            SensitiveWord("promo", WordLevel.NORMAL, WordAction.REVIEW),
        ]
    )


@pytest.fixture
def users() -> InMemoryUserDirectory:
    directory = InMemoryUserDirectory()
    directory.add(1, "alice")
    directory.add(2, "bob")
    directory.add(3, "carol")
    directory.add(OWNER_ID, "owner")
    return directory


@pytest.fixture
def ownership() -> InMemoryTargetOwnership:
    table = InMemoryTargetOwnership()
    table.set_owner(ARTICLE, ARTICLE_ID, OWNER_ID)
    return table


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def dispatcher(sink: RecordingSink) -> NotificationDispatcher:
    return NotificationDispatcher(sink)


@pytest.fixture
def score_engine(store: InMemoryCommentStore) -> ScoreEngine:
    return ScoreEngine(store, hot_list_size=3)


@pytest.fixture
def comment_service(
    store: InMemoryCommentStore,
    users: InMemoryUserDirectory,
    ownership: InMemoryTargetOwnership,
    matcher: WordMatcher,
    score_engine: ScoreEngine,
    dispatcher: NotificationDispatcher,
) -> CommentService:
    """CommentService over the in-memory store."""
    return CommentService(
        store=store,
        users=users,
        ownership=ownership,
        pipeline=ModerationPipeline(matcher),
        score_engine=score_engine,
        notifications=dispatcher,
        max_length=200,
    )
