import pytest

from engines.scoring import ScoringMethod
from engines.severity import BORDERLINE, CLINICAL, NORMAL, SEVERITY_ORDER, SeverityClassifier, classify_severity
from engines.validation import InvalidMethodError
from scoring_config import DEFAULT_SCORING_CONFIG, IssueDefinition, ScoringConfig, SeverityThresholds


@pytest.mark.parametrize(
    "score, expected",
    [(0, NORMAL), (49.99, NORMAL), (50, BORDERLINE), (69.99, BORDERLINE), (70, CLINICAL), (1000, CLINICAL)],
)
def test_weighted_average_tiers_for_anxiety(score, expected):
    assert classify_severity("anxiety", score, "weighted_average") == expected


def test_t_score_methods_share_thresholds():
    for method in (ScoringMethod.T_SCORE_NON_WEIGHTED, ScoringMethod.T_SCORE_WEIGHTED):
        assert classify_severity("depression", 64.9, method) == NORMAL
        assert classify_severity("depression", 65, method) == BORDERLINE
        assert classify_severity("depression", 70, method) == CLINICAL


@pytest.mark.parametrize("method", list(ScoringMethod))
@pytest.mark.parametrize("issue_id", sorted(DEFAULT_SCORING_CONFIG.issues) + ["unconfigured"])
def test_classification_is_monotonic(issue_id, method):
    classifier = SeverityClassifier(DEFAULT_SCORING_CONFIG)
    ranks = [
        SEVERITY_ORDER.index(classifier.classify(issue_id, score / 2, method))
        for score in range(-20, 260)
    ]
    assert ranks == sorted(ranks)


def test_unconfigured_issue_is_normal():
    assert classify_severity("sleep_problems", 99, "weighted_average") == NORMAL


def test_missing_family_is_normal():
    config = ScoringConfig(
        issues={
            "anxiety": IssueDefinition(
                id="anxiety",
                name="Anxiety",
                thresholds={"weighted_average": SeverityThresholds(10, 20)},
            )
        }
    )
    assert classify_severity("anxiety", 25, "weighted_average", config) == CLINICAL
    assert classify_severity("anxiety", 95, "t_score_weighted", config) == NORMAL


def test_unknown_method_raises():
    with pytest.raises(InvalidMethodError):
        classify_severity("anxiety", 50, "z_score")
