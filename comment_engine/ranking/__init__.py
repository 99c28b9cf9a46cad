"""Comment popularity scoring and hot lists."""

from .scoring import ScoreEngine, calculate_hot_score, score_comment
from .sweeper import HotRankingSweeper, SweepResult


__all__ = [
    "HotRankingSweeper",
    "ScoreEngine",
    "SweepResult",
    "calculate_hot_score",
    "score_comment",
]
