"""Sensitive word matching and content moderation."""

from .matcher import (
    WordMatcher,
    get_default_matcher,
    init_default_matcher,
    reload_default_matcher,
    set_default_matcher,
)
from .models import (
    DEFAULT_SENSITIVE_WORDS,
    AuditStatus,
    AuditVerdict,
    MatchResult,
    RiskLevel,
    SensitiveWord,
    WordAction,
    WordLevel,
)
from .pipeline import ModerationPipeline
from .service import SensitiveWordService


__all__ = [
    "DEFAULT_SENSITIVE_WORDS",
    "AuditStatus",
    "AuditVerdict",
    "MatchResult",
    "ModerationPipeline",
    "RiskLevel",
    "SensitiveWord",
    "SensitiveWordService",
    "WordAction",
    "WordLevel",
    "WordMatcher",
    "get_default_matcher",
    "init_default_matcher",
    "reload_default_matcher",
    "set_default_matcher",
]
