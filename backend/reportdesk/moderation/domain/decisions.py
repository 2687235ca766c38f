"""Decision rules that derive a report's open/closed status.

Rules are evaluated in priority order and the first one that applies decides.
When nothing else applies the baseline rule answers, so every evaluation yields
exactly one named decision.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Iterable, Sequence

if TYPE_CHECKING:  # pragma: no cover - type-only imports
    from reportdesk.moderation.domain.reports import Report

BASELINE_RULE = "latestReviewUpdatedAtRules"
FILING_THRESHOLD_RULE = "filingThresholdRule"


@dataclass(frozen=True)
class Decision:
    closed: bool
    rule: str


@dataclass(frozen=True)
class DecisionRule:
    name: str
    applies: Callable[["Report"], bool]
    closed: Callable[["Report"], bool]

    def evaluate(self, report: "Report") -> Decision:
        return Decision(closed=bool(self.closed(report)), rule=self.name)


def _latest_review_closed(report: "Report") -> bool:
    if not report.reviews:
        return False
    latest = max(report.reviews, key=lambda review: review.updated_at)
    return latest.closed


latest_review_rule = DecisionRule(
    name=BASELINE_RULE,
    applies=lambda report: True,
    closed=_latest_review_closed,
)


def filing_threshold_rule(threshold: int) -> DecisionRule:
    """Close a report that has not been reviewed once it collects ``threshold`` filings."""

    if threshold < 1:
        raise ValueError("threshold must be positive")
    return DecisionRule(
        name=FILING_THRESHOLD_RULE,
        applies=lambda report: not report.reviews and len(report.filings) >= threshold,
        closed=lambda report: True,
    )


class DecisionEngine:
    def __init__(self, rules: Iterable[DecisionRule] = (), *, fallback: DecisionRule = latest_review_rule) -> None:
        self.rules: Sequence[DecisionRule] = tuple(rules)
        self.fallback = fallback

    def decide(self, report: "Report") -> Decision:
        for rule in self.rules:
            if rule.applies(report):
                return rule.evaluate(report)
        return self.fallback.evaluate(report)
