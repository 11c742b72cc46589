"""Resolve the issue contributions carried by a questionnaire question."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Tuple

from schemas import Question

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IssueContribution:
    issue_id: str
    issue_name: str
    weight: float


class IssueWeightResolver:
    """Map questions to their ``(issue, weight)`` contributions.

    Resolutions are memoised per question id for the lifetime of the
    resolver, which is one assessment run.
    """

    def __init__(self) -> None:
        self._cache: Dict[str, Tuple[IssueContribution, ...]] = {}

    def resolve(self, question: Question) -> Tuple[IssueContribution, ...]:
        cached = self._cache.get(question.id)
        if cached is not None:
            return cached

        contributions: List[IssueContribution] = []
        seen: set[str] = set()
        for entry in question.issue_weightages:
            if entry.issue_id in seen:
                # Schema validation rejects duplicates; keep the first one if a
                # model was constructed without validation.
                logger.debug("Ignoring duplicate issue %s on question %s", entry.issue_id, question.id)
                continue
            seen.add(entry.issue_id)
            weight = min(100.0, max(0.0, float(entry.weightage)))
            contributions.append(IssueContribution(entry.issue_id, entry.issue_name, weight))

        resolved = tuple(contributions)
        self._cache[question.id] = resolved
        return resolved
