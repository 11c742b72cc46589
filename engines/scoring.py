"""Per-issue score aggregation for questionnaire assessments.

Three interchangeable methods are supported:

``weighted_average``
    ``sum(answer * weight) / sum(weight)``, clamped to ``[0, 100]``.
``t_score_non_weighted``
    Plain mean of the answers touching an issue, standardised against the
    issue statistics and mapped onto the T scale (``50 + 10 z``).
``t_score_weighted``
    As above but using a weight-scaled mean (weights divided by 100).

Questions missing from the lookup and answers that do not parse to a finite
number are skipped silently. Issues whose score overflows to a non-finite
value are dropped from the result.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, localcontext
from enum import Enum
from typing import Callable, Dict, Iterable, Iterator, Mapping, Optional, Tuple

from engines.issue_weights import IssueContribution, IssueWeightResolver
from engines.validation import InvalidMethodError
from schemas import AssessmentResponse, Question
from scoring_config import IssueStatistics, ScoringConfig

logger = logging.getLogger(__name__)


class ScoringMethod(str, Enum):
    WEIGHTED_AVERAGE = "weighted_average"
    T_SCORE_NON_WEIGHTED = "t_score_non_weighted"
    T_SCORE_WEIGHTED = "t_score_weighted"

    @property
    def threshold_family(self) -> str:
        """Threshold table key; both t-score methods share one family."""

        if self is ScoringMethod.WEIGHTED_AVERAGE:
            return "weighted_average"
        return "t_score"

    @classmethod
    def parse(cls, value: "ScoringMethod | str") -> "ScoringMethod":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise InvalidMethodError(f"Invalid assessment method: {value!r}") from None


@dataclass
class IssueScore:
    """Accumulator and derived scores for a single issue."""

    issue_id: str
    issue_name: str
    raw_score: float = 0.0
    total_weight: float = 0.0
    count: int = 0
    score: float = 0.0
    normalized_score: float = 0.0
    t_score: Optional[float] = None


def parse_answer(value: object) -> Optional[float]:
    """Return ``value`` as a finite float, or ``None`` when it cannot be scored."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return min(high, max(low, value))


def round_half_up(value: float, digits: int = 2) -> float:
    """Round with halves away from zero rather than to even."""

    if not math.isfinite(value):
        return value
    number = Decimal(str(value))
    quantum = Decimal(1).scaleb(-digits)
    with localcontext() as ctx:
        # quantize needs room for every integer digit plus the requested places
        ctx.prec = max(ctx.prec, number.adjusted() + digits + 2)
        return float(number.quantize(quantum, rounding=ROUND_HALF_UP))


def t_transform(mean_score: float, statistics: IssueStatistics) -> float:
    """Map a mean answer onto the T scale using the issue statistics."""

    if statistics.std_dev > 0:
        z_score = (mean_score - statistics.mean) / statistics.std_dev
    else:
        z_score = 0.0
    return 50.0 + 10.0 * z_score


def iter_contributions(
    responses: Iterable[AssessmentResponse],
    questions_by_id: Mapping[str, Question],
    resolver: Optional[IssueWeightResolver] = None,
) -> Iterator[Tuple[IssueContribution, float]]:
    """Yield ``(contribution, answer)`` pairs for every scoreable response."""

    resolver = resolver or IssueWeightResolver()
    for response in responses:
        question = questions_by_id.get(response.question_id)
        if question is None:
            logger.debug("Skipping response for unknown question %s", response.question_id)
            continue
        answer = parse_answer(response.answer)
        if answer is None:
            logger.debug("Dropping non-numeric answer for question %s", response.question_id)
            continue
        for contribution in resolver.resolve(question):
            yield contribution, answer


def _entry(scores: Dict[str, IssueScore], contribution: IssueContribution) -> IssueScore:
    entry = scores.get(contribution.issue_id)
    if entry is None:
        entry = IssueScore(contribution.issue_id, contribution.issue_name)
        scores[contribution.issue_id] = entry
    return entry


def _weighted_average(pairs, config: ScoringConfig) -> Dict[str, IssueScore]:
    scores: Dict[str, IssueScore] = {}
    for contribution, answer in pairs:
        entry = _entry(scores, contribution)
        entry.raw_score += answer * contribution.weight
        entry.total_weight += contribution.weight
        entry.count += 1

    for entry in scores.values():
        entry.score = entry.raw_score / entry.total_weight if entry.total_weight > 0 else 0.0
        entry.normalized_score = clamp(entry.score)
    return scores


def _t_score_non_weighted(pairs, config: ScoringConfig) -> Dict[str, IssueScore]:
    scores: Dict[str, IssueScore] = {}
    for contribution, answer in pairs:
        entry = _entry(scores, contribution)
        entry.raw_score += answer
        entry.count += 1

    for entry in scores.values():
        mean_score = entry.raw_score / entry.count if entry.count > 0 else 0.0
        entry.t_score = t_transform(mean_score, config.statistics_for(entry.issue_id))
        entry.score = entry.t_score
        entry.normalized_score = clamp(entry.t_score)
    return scores


def _t_score_weighted(pairs, config: ScoringConfig) -> Dict[str, IssueScore]:
    scores: Dict[str, IssueScore] = {}
    for contribution, answer in pairs:
        entry = _entry(scores, contribution)
        scaled_weight = contribution.weight / 100.0
        entry.raw_score += answer * scaled_weight
        entry.total_weight += scaled_weight
        entry.count += 1

    for entry in scores.values():
        weighted_mean = entry.raw_score / entry.total_weight if entry.total_weight > 0 else 0.0
        entry.t_score = t_transform(weighted_mean, config.statistics_for(entry.issue_id))
        entry.score = entry.t_score
        entry.normalized_score = clamp(entry.t_score)
    return scores


_STRATEGIES: Dict[ScoringMethod, Callable[..., Dict[str, IssueScore]]] = {
    ScoringMethod.WEIGHTED_AVERAGE: _weighted_average,
    ScoringMethod.T_SCORE_NON_WEIGHTED: _t_score_non_weighted,
    ScoringMethod.T_SCORE_WEIGHTED: _t_score_weighted,
}


class ScoreAggregator:
    """Accumulate per-issue scores across all responses of one assessment."""

    def __init__(self, config: ScoringConfig) -> None:
        self.config = config

    def aggregate(
        self,
        responses: Iterable[AssessmentResponse],
        questions_by_id: Mapping[str, Question],
        method: ScoringMethod | str,
    ) -> Dict[str, IssueScore]:
        """Return issue scores keyed by issue id, in first-seen order."""

        resolved = ScoringMethod.parse(method)
        pairs = iter_contributions(responses, questions_by_id, IssueWeightResolver())
        scores = _STRATEGIES[resolved](pairs, self.config)
        return {issue_id: entry for issue_id, entry in scores.items() if _is_scoreable(entry)}


def _is_scoreable(entry: IssueScore) -> bool:
    if math.isfinite(entry.score) and (entry.t_score is None or math.isfinite(entry.t_score)):
        return True
    logger.debug("Dropping issue %s with overflowing score", entry.issue_id)
    return False
