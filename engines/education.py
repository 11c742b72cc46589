"""Academic performance trend analysis over ordered grade records."""

from __future__ import annotations

import statistics
from collections import OrderedDict
from typing import List, Optional, Sequence, Tuple

from engines.scoring import round_half_up
from schemas import EducationAnalysis, EducationRecord
from scoring_config import EducationPolicy

IMPROVING = "improving"
DECLINING = "declining"
STABLE = "stable"


def record_average(record: EducationRecord) -> float:
    if not record.subjects:
        return 0.0
    return sum(subject.marks for subject in record.subjects) / len(record.subjects)


def marks_to_gpa(marks: float) -> float:
    """Banded conversion of an average mark onto a 4.0 scale."""

    if marks >= 90:
        return 4.0
    if marks >= 80:
        return 3.0
    if marks >= 70:
        return 2.0
    if marks >= 60:
        return 1.0
    return 0.0


def detect_trend(averages: Sequence[float], epsilon: float) -> Tuple[str, float]:
    """Compare the earlier half of the record averages with the later half.

    With an odd number of records the middle record belongs to neither half.
    Returns the trend label and the absolute difference between the halves.
    """

    if len(averages) < 2:
        return STABLE, 0.0

    half = len(averages) // 2
    earlier = averages[:half]
    later = averages[len(averages) - half:]
    difference = statistics.fmean(later) - statistics.fmean(earlier)

    if difference > epsilon:
        return IMPROVING, abs(difference)
    if difference < -epsilon:
        return DECLINING, abs(difference)
    return STABLE, abs(difference)


def subject_history(records: Sequence[EducationRecord]) -> "OrderedDict[str, List[float]]":
    """Flatten all ``(subject, marks)`` pairs, keeping first-seen subject order."""

    history: "OrderedDict[str, List[float]]" = OrderedDict()
    for record in records:
        for grade in record.subjects:
            history.setdefault(grade.subject, []).append(grade.marks)
    return history


def consistency_score(record: EducationRecord) -> float:
    """``100 - population std dev`` of one record's marks, bounded to ``[0, 100]``."""

    marks = [subject.marks for subject in record.subjects]
    if not marks:
        return 0.0
    spread = statistics.pstdev(marks) if len(marks) > 1 else 0.0
    return min(100.0, max(0.0, 100.0 - spread))


class EducationTrendAnalyzer:
    def __init__(self, policy: Optional[EducationPolicy] = None) -> None:
        self.policy = policy or EducationPolicy()

    def classify_subjects(self, records: Sequence[EducationRecord]) -> Tuple[List[str], List[str]]:
        """Return ``(weak, strong)`` subject names.

        A subject is weak when its latest or its average marks fall below
        the weak cutoff, and strong when its latest marks reach the strong
        cutoff and it is not weak.
        """

        weak: List[str] = []
        strong: List[str] = []
        for subject, marks in subject_history(records).items():
            latest = marks[-1]
            average = statistics.fmean(marks)
            if latest < self.policy.weak_cutoff or average < self.policy.weak_cutoff:
                weak.append(subject)
            elif latest >= self.policy.strong_cutoff:
                strong.append(subject)

        cap = self.policy.max_flagged_subjects
        if cap is not None:
            weak, strong = weak[:cap], strong[:cap]
        return weak, strong

    def analyze(self, records: Sequence[EducationRecord]) -> EducationAnalysis:
        if not records:
            return EducationAnalysis()

        averages = [record_average(record) for record in records]
        trend, strength = detect_trend(averages, self.policy.trend_epsilon)
        weak, strong = self.classify_subjects(records)
        gpa = statistics.fmean(marks_to_gpa(average) for average in averages)

        return EducationAnalysis(
            current_average=round_half_up(averages[-1]),
            trend=trend,
            trend_strength=round_half_up(strength),
            subjects_needing_attention=weak,
            top_performing_subjects=strong,
            overall_gpa=round_half_up(gpa),
            consistency_score=round_half_up(consistency_score(records[-1])),
        )


def analyze_education(
    records: Sequence[EducationRecord],
    policy: Optional[EducationPolicy] = None,
) -> EducationAnalysis:
    return EducationTrendAnalyzer(policy).analyze(records)
