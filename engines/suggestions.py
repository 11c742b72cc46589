"""Rule-based study suggestions derived from the education trend analysis."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional, Sequence

from engines.education import DECLINING, IMPROVING, EducationTrendAnalyzer
from schemas import EducationAnalysis, EducationRecord, Suggestion
from scoring_config import EducationPolicy

PRIORITY_RANK = {"high": 3, "medium": 2, "low": 1}


def sort_by_priority(suggestions: Sequence[Suggestion]) -> List[Suggestion]:
    """Order ``high > medium > low``; ties keep their original order."""

    return sorted(suggestions, key=lambda item: PRIORITY_RANK[item.priority], reverse=True)


class SuggestionGenerator:
    """Evaluate every rule independently and collect all matches.

    Suggestions are regenerated wholesale on each call; all entries of one
    batch share the same ``created_at`` timestamp.
    """

    def __init__(self, policy: Optional[EducationPolicy] = None) -> None:
        self.policy = policy or EducationPolicy()
        self.analyzer = EducationTrendAnalyzer(self.policy)

    def generate(self, records: Sequence[EducationRecord], *, now: Optional[datetime] = None) -> List[Suggestion]:
        if not records:
            return []
        analysis = self.analyzer.analyze(records)
        return self.from_analysis(analysis, records[-1], now=now)

    def from_analysis(
        self,
        analysis: EducationAnalysis,
        latest: EducationRecord,
        *,
        now: Optional[datetime] = None,
    ) -> List[Suggestion]:
        created_at = now or datetime.now(timezone.utc)
        suggestions: List[Suggestion] = []

        def add(subject: str, text: str, priority: str, kind: str) -> None:
            suggestions.append(
                Suggestion(subject=subject, suggestion=text, priority=priority, type=kind, created_at=created_at)
            )

        for subject in analysis.subjects_needing_attention:
            add(
                subject,
                f"Focus on improving {subject}. Consider additional practice sessions and consulting with the teacher.",
                "high",
                "performance",
            )

        if analysis.trend == DECLINING:
            add(
                "Overall Performance",
                "Recent decline in overall performance detected. Consider reviewing study habits "
                "and time management strategies.",
                "high",
                "trend",
            )
        elif analysis.trend == IMPROVING:
            add(
                "Overall Performance",
                "Great progress! Keep up the good work and maintain your current study routine.",
                "low",
                "trend",
            )

        if analysis.consistency_score < self.policy.low_consistency_cutoff:
            add(
                "Study Balance",
                "High variation in subject performance. Try to balance study time across all subjects "
                "for more consistent results.",
                "medium",
                "consistency",
            )

        if analysis.subjects_needing_attention and analysis.top_performing_subjects:
            strengths = ", ".join(analysis.top_performing_subjects)
            add(
                "Strategic Planning",
                f"Leverage strengths in {strengths} to boost confidence while working on weaker areas.",
                "medium",
                "strategic",
            )

        if latest.subjects and all(grade.marks >= self.policy.advanced_cutoff for grade in latest.subjects):
            add(
                "Advanced Learning",
                "Excellent academic performance! Consider exploring advanced topics or competitive examinations.",
                "low",
                "strategic",
            )

        return sort_by_priority(suggestions)


def generate_suggestions(
    records: Sequence[EducationRecord],
    policy: Optional[EducationPolicy] = None,
    *,
    now: Optional[datetime] = None,
) -> List[Suggestion]:
    return SuggestionGenerator(policy).generate(records, now=now)
