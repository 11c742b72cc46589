"""Severity tier classification for issue scores."""

from __future__ import annotations

import logging
from typing import Optional

from engines.scoring import ScoringMethod
from scoring_config import DEFAULT_SCORING_CONFIG, ScoringConfig

logger = logging.getLogger(__name__)

NORMAL = "normal"
BORDERLINE = "borderline"
CLINICAL = "clinical"

SEVERITY_ORDER = (NORMAL, BORDERLINE, CLINICAL)


class SeverityClassifier:
    """Map a score to ``normal``/``borderline``/``clinical``.

    Thresholds are lower bounds only: anything at or above the clinical
    minimum is clinical, however far above. Issues without configuration,
    or without a threshold entry for the method family, are ``normal``.
    """

    def __init__(self, config: ScoringConfig = DEFAULT_SCORING_CONFIG) -> None:
        self.config = config

    def classify(self, issue_id: str, score: float, method: ScoringMethod | str) -> str:
        family = ScoringMethod.parse(method).threshold_family
        thresholds = self.config.thresholds_for(issue_id, family)
        if thresholds is None:
            logger.debug("No %s thresholds for issue %s; classifying as normal", family, issue_id)
            return NORMAL

        if score >= thresholds.clinical_min:
            return CLINICAL
        if score >= thresholds.borderline_min:
            return BORDERLINE
        return NORMAL


def classify_severity(
    issue_id: str,
    score: float,
    method: ScoringMethod | str,
    config: Optional[ScoringConfig] = None,
) -> str:
    return SeverityClassifier(config or DEFAULT_SCORING_CONFIG).classify(issue_id, score, method)
