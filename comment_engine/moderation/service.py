"""Administrator surface for the sensitive word list.

Words are persisted first and then pushed into the live matcher, so a
crash between the two steps is repaired by the next ``reload``.
"""

from typing import TYPE_CHECKING

import structlog

from .matcher import WordMatcher, fold, get_default_matcher
from .models import DEFAULT_SENSITIVE_WORDS, SensitiveWord, WordAction, WordLevel


if TYPE_CHECKING:
    from comment_engine.comments.store import CommentStore


logger = structlog.get_logger(__name__)


class SensitiveWordService:
    """Manage persisted sensitive words and keep the matcher in sync."""

    def __init__(
        self,
        store: "CommentStore",
        matcher: WordMatcher | None = None,
        include_defaults: bool = True,
    ) -> None:
        self.store = store
        self.matcher = matcher if matcher is not None else get_default_matcher()
        self.include_defaults = include_defaults

    async def list_words(self, enabled_only: bool = False) -> list[SensitiveWord]:
        return await self.store.list_sensitive_words(enabled_only=enabled_only)

    async def add_word(
        self,
        word: str,
        level: int = WordLevel.NORMAL,
        action: int = WordAction.REPLACE,
        replacement: str = "",
    ) -> SensitiveWord:
        """Persist ``word`` (or update it) and make it active immediately."""
        word = word.strip()
        if not word:
            msg = "Sensitive word must not be blank"
            raise ValueError(msg)
        saved = await self.store.save_sensitive_word(
            SensitiveWord(
                word=word,
                level=WordLevel(int(level)),
                action=WordAction(int(action)),
                replacement=replacement,
            )
        )
        self.matcher.add_word(saved.word, saved.level, saved.action, saved.replacement)
        logger.info(
            "sensitive_word_saved",
            word_id=saved.id,
            level=int(saved.level),
            action=int(saved.action),
        )
        return saved

    async def disable_word(self, word: str) -> bool:
        """Keep ``word`` on file but stop matching it."""
        words = await self.store.list_sensitive_words(enabled_only=False)
        key = fold(word.strip())
        existing = next((w for w in words if fold(w.word) == key), None)
        if existing is None:
            return False
        existing.enabled = False
        await self.store.save_sensitive_word(existing)
        self.matcher.remove_word(existing.word)
        logger.info("sensitive_word_disabled", word_id=existing.id)
        return True

    async def remove_word(self, word: str) -> bool:
        deleted = await self.store.delete_sensitive_word(word)
        removed = self.matcher.remove_word(word)
        if deleted or removed:
            logger.info("sensitive_word_removed", persisted=deleted, live=removed)
        return deleted or removed

    async def reload(self) -> int:
        """Rebuild the matcher from the enabled persisted words.

        On failure the currently loaded words stay active. Returns the number
        of words loaded, or the current size when the reload failed.
        """
        try:
            words = await self.store.list_sensitive_words(enabled_only=True)
        except Exception as e:
            logger.warning("sensitive_words_reload_failed", error=str(e))
            return len(self.matcher)

        seed: list[SensitiveWord] = []
        if self.include_defaults:
            seed.extend(DEFAULT_SENSITIVE_WORDS)
        seed.extend(words)
        self.matcher.reload(seed)
        return len(self.matcher)
