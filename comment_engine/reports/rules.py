"""Fold rule table.

Each rule carries a typed configuration variant. Only the report-count
variant is evaluated; the others are parsed and stored so administrators
can manage them, and evaluate as an explicit no-op.
"""

import json
from dataclasses import asdict, dataclass
from enum import IntEnum
from typing import Any

import structlog


logger = structlog.get_logger(__name__)


class FoldRuleType(IntEnum):
    """Kind of fold rule."""

    KEYWORD = 1
    LOW_LIKE = 2
    REPORT_COUNT = 3
    USER_LEVEL = 4


@dataclass(frozen=True)
class KeywordRule:
    keywords: tuple[str, ...] = ()


@dataclass(frozen=True)
class LowLikeRule:
    max_likes: int = 0
    min_age_hours: float = 24.0


@dataclass(frozen=True)
class ReportCountRule:
    threshold: int = 3


@dataclass(frozen=True)
class UserLevelRule:
    min_level: int = 1


RuleConfig = KeywordRule | LowLikeRule | ReportCountRule | UserLevelRule

_CONFIG_TYPES: dict[FoldRuleType, type] = {
    FoldRuleType.KEYWORD: KeywordRule,
    FoldRuleType.LOW_LIKE: LowLikeRule,
    FoldRuleType.REPORT_COUNT: ReportCountRule,
    FoldRuleType.USER_LEVEL: UserLevelRule,
}


class InvalidRuleError(ValueError):
    """Rule configuration cannot be parsed."""


def parse_rule_config(rule_type: int, raw: dict[str, Any] | str | None) -> RuleConfig:
    """Build the typed config for ``rule_type`` from its stored form."""
    try:
        kind = FoldRuleType(int(rule_type))
    except ValueError as e:
        msg = f"Unknown fold rule type: {rule_type}"
        raise InvalidRuleError(msg) from e

    if isinstance(raw, str):
        try:
            raw = json.loads(raw) if raw else {}
        except json.JSONDecodeError as e:
            msg = f"Fold rule config is not valid JSON: {e}"
            raise InvalidRuleError(msg) from e
    data = dict(raw or {})

    try:
        if kind == FoldRuleType.KEYWORD:
            keywords = data.get("keywords", [])
            return KeywordRule(keywords=tuple(str(k) for k in keywords))
        if kind == FoldRuleType.LOW_LIKE:
            return LowLikeRule(
                max_likes=int(data.get("max_likes", 0)),
                min_age_hours=float(data.get("min_age_hours", 24.0)),
            )
        if kind == FoldRuleType.REPORT_COUNT:
            threshold = int(data.get("threshold", 3))
            if threshold < 1:
                msg = "Report threshold must be positive"
                raise InvalidRuleError(msg)
            return ReportCountRule(threshold=threshold)
        return UserLevelRule(min_level=int(data.get("min_level", 1)))
    except InvalidRuleError:
        raise
    except (TypeError, ValueError) as e:
        msg = f"Invalid {kind.name.lower()} rule config: {e}"
        raise InvalidRuleError(msg) from e


@dataclass(frozen=True)
class FoldRule:
    """Named, switchable fold rule."""

    name: str
    config: RuleConfig
    enabled: bool = True

    @property
    def rule_type(self) -> FoldRuleType:
        for kind, config_type in _CONFIG_TYPES.items():
            if isinstance(self.config, config_type):
                return kind
        msg = f"Unsupported rule config: {type(self.config).__name__}"
        raise InvalidRuleError(msg)

    @classmethod
    def from_config(
        cls,
        name: str,
        rule_type: int,
        config: dict[str, Any] | str | None,
        enabled: bool = True,
    ) -> "FoldRule":
        return cls(
            name=name,
            config=parse_rule_config(rule_type, config),
            enabled=enabled,
        )

    @classmethod
    def from_row(cls, row: Any) -> "FoldRule":
        """Create FoldRule from Cassandra row."""
        return cls.from_config(row.name, row.rule_type, row.config, bool(row.enabled))

    def config_json(self) -> str:
        data = asdict(self.config)
        if isinstance(self.config, KeywordRule):
            data["keywords"] = list(self.config.keywords)
        return json.dumps(data, ensure_ascii=False)


class FoldRuleEvaluator:
    """Decide whether a comment should be folded given the active rules."""

    def __init__(
        self,
        rules: list[FoldRule] | None = None,
        default_threshold: int = 3,
    ) -> None:
        self.rules = [r for r in (rules or []) if r.enabled]
        self.default_threshold = default_threshold

    def report_threshold(self) -> int:
        """Lowest threshold among enabled report-count rules, else the default."""
        thresholds = [
            rule.config.threshold
            for rule in self.rules
            if isinstance(rule.config, ReportCountRule)
        ]
        return min(thresholds, default=self.default_threshold)

    def should_fold(self, report_count: int) -> bool:
        """True once any active rule asks for the comment to be folded."""
        if not any(isinstance(r.config, ReportCountRule) for r in self.rules):
            return report_count >= self.default_threshold
        return any(self._evaluate(rule, report_count) for rule in self.rules)

    @staticmethod
    def _evaluate(rule: FoldRule, report_count: int) -> bool:
        config = rule.config
        if isinstance(config, ReportCountRule):
            return report_count >= config.threshold
        if isinstance(config, KeywordRule | LowLikeRule | UserLevelRule):
            # Declared but not evaluated
            return False
        logger.warning("fold_rule_unknown_config", rule=rule.name)
        return False
