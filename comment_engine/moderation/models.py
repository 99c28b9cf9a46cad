"""Moderation data model.

Sensitive words, their severity and the action taken when one is matched,
plus the audit vocabulary shared by the pipeline and the comment store.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import IntEnum
from typing import Any


class WordLevel(IntEnum):
    """Severity of a sensitive word."""

    NORMAL = 1
    SERIOUS = 2
    VERY_SERIOUS = 3


class WordAction(IntEnum):
    """What happens to text containing the word."""

    REPLACE = 1
    BLOCK = 2
    REVIEW = 3


class RiskLevel(IntEnum):
    """Risk level assigned by the moderation pipeline."""

    NORMAL = 0
    LOW = 1
    MEDIUM = 2
    HIGH = 3


class AuditStatus(IntEnum):
    """Audit outcome of a comment."""

    PENDING = 0
    APPROVED = 1
    REJECTED = 2


@dataclass(frozen=True)
class WordEntry:
    """Immutable payload stored on a terminal trie node."""

    word: str
    level: int
    action: int
    replacement: str = ""


@dataclass(frozen=True)
class MatchResult:
    """A single sensitive word occurrence.

    ``start``/``end`` are code point offsets into the scanned text, so
    ``text[start:end]`` is the surface form as the author typed it.
    """

    word: str
    start: int
    end: int
    level: int
    action: int
    replacement: str = ""


@dataclass
class SensitiveWord:
    """Administrator-managed sensitive word."""

    word: str
    level: int = WordLevel.NORMAL
    action: int = WordAction.REPLACE
    replacement: str = ""
    enabled: bool = True
    id: int = 0
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_row(cls, row: Any) -> "SensitiveWord":
        """Create SensitiveWord from Cassandra row."""
        return cls(
            id=row.id or 0,
            word=row.word,
            level=row.level or WordLevel.NORMAL,
            action=row.action or WordAction.REPLACE,
            replacement=row.replacement or "",
            enabled=bool(row.enabled) if row.enabled is not None else True,
            created_at=row.created_at or datetime.now(UTC),
            updated_at=row.updated_at or row.created_at or datetime.now(UTC),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "word": self.word,
            "level": int(self.level),
            "action": int(self.action),
            "replacement": self.replacement,
            "enabled": self.enabled,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass
class AuditVerdict:
    """Result of a moderation pass over a comment."""

    status: AuditStatus
    risk_level: RiskLevel
    matches: list[MatchResult] = field(default_factory=list)
    reasons: list[str] = field(default_factory=list)
    masked_content: str = ""

    @property
    def rejected(self) -> bool:
        return self.status == AuditStatus.REJECTED

    @property
    def reason_text(self) -> str:
        return "; ".join(self.reasons)


# Built-in starter list, mirrored from the production defaults
DEFAULT_SENSITIVE_WORDS: list[SensitiveWord] = [
    # Profanity: masked in place
    SensitiveWord("傻逼", WordLevel.VERY_SERIOUS, WordAction.REPLACE, "**"),
    SensitiveWord("傻b", WordLevel.VERY_SERIOUS, WordAction.REPLACE, "**"),
    SensitiveWord("fuck", WordLevel.VERY_SERIOUS, WordAction.REPLACE, "****"),
    SensitiveWord("shit", WordLevel.VERY_SERIOUS, WordAction.REPLACE, "****"),
    SensitiveWord("垃圾", WordLevel.SERIOUS, WordAction.REPLACE, "**"),
    SensitiveWord("白痴", WordLevel.SERIOUS, WordAction.REPLACE, "**"),
    SensitiveWord("智障", WordLevel.SERIOUS, WordAction.REPLACE, "**"),
    # Contact solicitation and fake orders: blocked
    SensitiveWord("加微信", WordLevel.SERIOUS, WordAction.BLOCK),
    SensitiveWord("加qq", WordLevel.SERIOUS, WordAction.BLOCK),
    SensitiveWord("刷单", WordLevel.SERIOUS, WordAction.BLOCK),
    # Agent and part-time solicitation: manual review
    SensitiveWord("代理", WordLevel.SERIOUS, WordAction.REVIEW),
    SensitiveWord("兼职", WordLevel.NORMAL, WordAction.REVIEW),
]
