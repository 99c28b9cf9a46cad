"""Reports and report-driven folding.

Note: ReportFoldEngine is not exported here to avoid circular imports
with the comment store. Import it from comment_engine.reports.service.
"""

from .rules import (
    FoldRule,
    FoldRuleEvaluator,
    FoldRuleType,
    InvalidRuleError,
    KeywordRule,
    LowLikeRule,
    ReportCountRule,
    UserLevelRule,
)


__all__ = [
    "FoldRule",
    "FoldRuleEvaluator",
    "FoldRuleType",
    "InvalidRuleError",
    "KeywordRule",
    "LowLikeRule",
    "ReportCountRule",
    "UserLevelRule",
]
