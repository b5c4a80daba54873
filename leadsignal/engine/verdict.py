"""
Verdict — runs detector → classifier → priority resolver for one lead's comments.
"""
from dataclasses import dataclass
from typing import Iterable, Optional

from leadsignal.engine.taxonomy import IssueCounts, detect_issues
from leadsignal.engine.classification import Classification, classify
from leadsignal.engine.priority import resolve_priority_tier


@dataclass
class Verdict:
    counts: IssueCounts
    classification: Classification
    priority_tier: str

    @property
    def score(self) -> int:
        return self.classification.score

    @property
    def label(self) -> str:
        return self.classification.label

    @property
    def has_issues(self) -> bool:
        return self.counts.total > 0


def evaluate(comments: Iterable[Optional[str]], sales_potential: Optional[str]) -> Verdict:
    """Classify a lead from its comment texts and sales-potential tier. Pure."""
    counts = detect_issues(comments)
    classification = classify(counts)
    return Verdict(
        counts=counts,
        classification=classification,
        priority_tier=resolve_priority_tier(classification.label, sales_potential),
    )
