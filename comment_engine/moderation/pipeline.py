"""Rule-based content risk pipeline.

Every check may raise the risk level; the verdict keeps the maximum across
checks. A serious or block-action word rejects the comment outright.
"""

import re
from collections.abc import Callable

import structlog

from .matcher import WordMatcher, get_default_matcher
from .models import (
    AuditStatus,
    AuditVerdict,
    MatchResult,
    RiskLevel,
    WordAction,
    WordLevel,
)


logger = structlog.get_logger(__name__)

REPEATED_RUN = 3
UPPERCASE_RATIO = 0.8
URL_PREFIXES = ("http://", "https://")

_REPEATED_PATTERN = re.compile(r"(.)\1{%d,}" % (REPEATED_RUN - 1), re.DOTALL)


def has_repeated_run(content: str) -> bool:
    """True if three or more identical code points appear consecutively."""
    return _REPEATED_PATTERN.search(content) is not None


def has_url(content: str) -> bool:
    lowered = content.lower()
    return any(prefix in lowered for prefix in URL_PREFIXES)


def is_shouting(content: str, ratio: float = UPPERCASE_RATIO) -> bool:
    """True if more than ``ratio`` of the cased letters are upper case."""
    letters = [c for c in content if c.isalpha() and (c.isupper() or c.islower())]
    if not letters:
        return False
    upper = sum(1 for c in letters if c.isupper())
    return upper / len(letters) > ratio


class ModerationPipeline:
    """Audit new comment content.

    Args:
        matcher: A WordMatcher or a callable returning one. Defaults to the
            process-wide matcher. If the provider fails, the word checks are
            skipped and the remaining heuristics still run.
        short_length: Content shorter than this is low risk.
    """

    def __init__(
        self,
        matcher: WordMatcher | Callable[[], WordMatcher] | None = None,
        short_length: int = 5,
    ) -> None:
        if matcher is None:
            self._provider: Callable[[], WordMatcher] = get_default_matcher
        elif isinstance(matcher, WordMatcher):
            self._provider = lambda: matcher
        else:
            self._provider = matcher
        self.short_length = short_length

    def _find_words(self, content: str) -> tuple[WordMatcher | None, list[MatchResult]]:
        try:
            matcher = self._provider()
            return matcher, matcher.find_all(content)
        except Exception as e:
            logger.warning("word_matcher_unavailable", error=str(e))
            return None, []

    def audit(self, content: str, is_author: bool = False) -> AuditVerdict:
        """Run all checks over ``content`` and return the verdict."""
        risk = RiskLevel.NORMAL
        status = AuditStatus.APPROVED
        reasons: list[str] = []

        def raise_to(level: RiskLevel, reason: str) -> None:
            nonlocal risk
            risk = max(risk, level)
            reasons.append(reason)

        if len(content) < self.short_length:
            raise_to(RiskLevel.LOW, "content_too_short")

        matcher, matches = self._find_words(content)
        masked = matcher.replace(content) if matcher is not None else content

        if matches:
            serious = any(
                m.level >= WordLevel.SERIOUS or m.action == WordAction.BLOCK
                for m in matches
            )
            if serious:
                raise_to(RiskLevel.HIGH, "sensitive_word_serious")
                verdict = AuditVerdict(
                    status=AuditStatus.REJECTED,
                    risk_level=risk,
                    matches=matches,
                    reasons=reasons,
                    masked_content=masked,
                )
                self._log(verdict, is_author)
                return verdict
            raise_to(RiskLevel.MEDIUM, "sensitive_word")
            if any(m.action == WordAction.REVIEW for m in matches):
                status = AuditStatus.PENDING
                reasons.append("manual_review")

        if has_repeated_run(content):
            raise_to(RiskLevel.MEDIUM, "repeated_characters")

        if has_url(content):
            raise_to(RiskLevel.MEDIUM, "contains_url")

        if is_shouting(content):
            raise_to(RiskLevel.LOW, "uppercase")

        verdict = AuditVerdict(
            status=status,
            risk_level=risk,
            matches=matches,
            reasons=reasons,
            masked_content=masked,
        )
        self._log(verdict, is_author)
        return verdict

    @staticmethod
    def _log(verdict: AuditVerdict, is_author: bool) -> None:
        logger.debug(
            "content_audited",
            status=verdict.status.name.lower(),
            risk_level=int(verdict.risk_level),
            matches=len(verdict.matches),
            reasons=verdict.reasons,
            is_author=is_author,
        )
