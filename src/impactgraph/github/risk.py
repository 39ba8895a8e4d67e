"""Risk classification of an impact report."""

from __future__ import annotations

import logging
from enum import Enum

from impactgraph.github.diff_parser import ChangeRecord, is_comment_only
from impactgraph.graph.query import ImpactReport

logger = logging.getLogger("impactgraph.risk")

BASE_SCORE = 1.0
CRITICAL_MULTIPLIER = 3.0
CRITICAL_DEPTH = 3


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return _RANKS[self]

    @classmethod
    def from_score(cls, score: float) -> RiskLevel:
        if score <= 1.0:
            return cls.LOW
        if score <= 2.0:
            return cls.MEDIUM
        if score <= 3.5:
            return cls.HIGH
        return cls.CRITICAL


_RANKS = {RiskLevel.LOW: 0, RiskLevel.MEDIUM: 1, RiskLevel.HIGH: 2, RiskLevel.CRITICAL: 3}


def depth_multiplier(depth: int) -> float:
    if depth <= 1:
        return 1.0
    if depth == 2:
        return 1.5
    return 2.5


def affected_multiplier(affected: int) -> float:
    if affected <= 2:
        return 1.0
    if affected <= 5:
        return 1.5
    if affected <= 10:
        return 2.0
    return 2.5


def complexity_multiplier(avg_complexity: int) -> float:
    if avg_complexity <= 5:
        return 1.0
    if avg_complexity <= 15:
        return 1.5
    return 2.0


def average_complexity(report: ImpactReport) -> int:
    """Truncated mean of the complexity snapshot over changed ids, 0 when empty."""
    if not report.changed_ids:
        return 0
    total = sum(report.complexity.get(i, 0) for i in report.changed_ids)
    return total // len(report.changed_ids)


def has_critical_change(report: ImpactReport) -> bool:
    return any(
        any(m.is_critical for m in report.markers.get(i, ())) for i in report.changed_ids
    )


def apply_overrides(report: ImpactReport, changes: list[ChangeRecord]) -> ImpactReport:
    """Set the comment-only and critical-method flags on ``report`` in place.

    Comment-only holds when at least one change carries a patch and every
    patch only adds comments or blank lines; changes without a patch are not
    considered. Critical holds when any changed id carries a critical marker.
    """
    patches = [c.patch for c in changes if c.has_patch]
    report.comment_only_override = bool(patches) and all(is_comment_only(p) for p in patches)
    report.critical_method_override = has_critical_change(report)
    return report


class RiskScorer:
    """Classifies an impact report into a ``RiskLevel``.

    The overrides are evaluated first: comment-only changes are always LOW,
    and a critical changed entity with a propagation depth of at least three
    is always CRITICAL. Otherwise a multiplicative score over depth, affected
    count, average complexity and criticality is mapped to a level.
    """

    def breakdown(self, report: ImpactReport) -> dict:
        """The score and each factor contributing to it."""
        avg = average_complexity(report)
        factors = {
            "depth": depth_multiplier(report.depth),
            "affected": affected_multiplier(report.affected_count),
            "complexity": complexity_multiplier(avg),
            "critical": CRITICAL_MULTIPLIER if has_critical_change(report) else 1.0,
        }
        score = BASE_SCORE
        for value in factors.values():
            score *= value
        return {
            "score": score,
            "average_complexity": avg,
            "affected_count": report.affected_count,
            "depth": report.depth,
            "multipliers": factors,
        }

    def score(self, report: ImpactReport) -> RiskLevel:
        if report.comment_only_override:
            logger.info("Comment-only change, risk LOW")
            return RiskLevel.LOW
        if report.critical_method_override and report.depth >= CRITICAL_DEPTH:
            logger.info(f"Critical entity changed at depth {report.depth}, risk CRITICAL")
            return RiskLevel.CRITICAL

        details = self.breakdown(report)
        level = RiskLevel.from_score(details["score"])
        logger.info(f"Risk score {details['score']:.2f} -> {level.value}")
        return level
