"""Scoring configuration registry.

Psychometric constants (per-issue statistics and severity thresholds) and
the product-policy cutoffs used by the education and nutrition engines live
in a single immutable :class:`ScoringConfig`. Engines receive the
configuration explicitly; nothing reads module state at scoring time.

Missing entries are not errors. An issue without statistics scores against
``default_statistics`` and an issue without a threshold family is always
classified ``normal``, so newly added issues stay scoreable.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

logger = logging.getLogger(__name__)

THRESHOLD_FAMILIES = ("weighted_average", "t_score")


class ScoringConfigError(ValueError):
    """Raised when a scoring configuration document is structurally invalid."""


@dataclass(frozen=True)
class SeverityThresholds:
    """Lower bounds of the borderline and clinical tiers (no upper bound)."""

    borderline_min: float
    clinical_min: float


@dataclass(frozen=True)
class IssueStatistics:
    mean: float = 50.0
    std_dev: float = 10.0


@dataclass(frozen=True)
class ProfessionalContact:
    name: str
    phone: str = ""
    alternate_phone: str = ""
    email: str = ""
    address: str = ""


@dataclass(frozen=True)
class IssueDefinition:
    """Static configuration for one scored issue."""

    id: str
    name: str
    thresholds: Mapping[str, SeverityThresholds] = field(default_factory=dict)
    statistics: Optional[IssueStatistics] = None
    recommended_course_id: Optional[str] = None
    professional: Optional[ProfessionalContact] = None


@dataclass(frozen=True)
class EducationPolicy:
    weak_cutoff: float = 60.0
    strong_cutoff: float = 90.0
    advanced_cutoff: float = 90.0
    trend_epsilon: float = 5.0
    low_consistency_cutoff: float = 60.0
    max_flagged_subjects: Optional[int] = None


@dataclass(frozen=True)
class NutritionPolicy:
    underweight_below: float = 16.0
    overweight_from: float = 25.0
    obese_from: float = 30.0
    severe_underweight_below: float = 14.0
    healthy_bmi_baseline: float = 100.0
    unhealthy_bmi_baseline: float = 70.0
    excellent_habits_score: float = 85.0
    bmi_change_alert: float = 2.0


@dataclass(frozen=True)
class ScoringConfig:
    issues: Mapping[str, IssueDefinition] = field(default_factory=dict)
    default_statistics: IssueStatistics = field(default_factory=IssueStatistics)
    education: EducationPolicy = field(default_factory=EducationPolicy)
    nutrition: NutritionPolicy = field(default_factory=NutritionPolicy)

    # ------------------------------------------------------------------
    def issue(self, issue_id: str) -> Optional[IssueDefinition]:
        return self.issues.get(issue_id)

    def statistics_for(self, issue_id: str) -> IssueStatistics:
        """Return the t-score statistics for ``issue_id`` or the default."""

        definition = self.issues.get(issue_id)
        if definition is None or definition.statistics is None:
            logger.debug("No statistics configured for issue %s; using defaults", issue_id)
            return self.default_statistics
        return definition.statistics

    def thresholds_for(self, issue_id: str, family: str) -> Optional[SeverityThresholds]:
        definition = self.issues.get(issue_id)
        if definition is None:
            return None
        return definition.thresholds.get(family)


def _professional(name, phone, alternate_phone, email, address) -> ProfessionalContact:
    return ProfessionalContact(
        name=name,
        phone=phone,
        alternate_phone=alternate_phone,
        email=email,
        address=address,
    )


def _default_issue(
    issue_id: str,
    name: str,
    borderline_min: float,
    clinical_min: float,
    course_id: str,
    professional: ProfessionalContact,
) -> IssueDefinition:
    return IssueDefinition(
        id=issue_id,
        name=name,
        thresholds={
            "weighted_average": SeverityThresholds(borderline_min, clinical_min),
            "t_score": SeverityThresholds(65.0, 70.0),
        },
        statistics=IssueStatistics(mean=50.0, std_dev=10.0),
        recommended_course_id=course_id,
        professional=professional,
    )


DEFAULT_ISSUES: Dict[str, IssueDefinition] = {
    issue.id: issue
    for issue in (
        _default_issue(
            "anxiety",
            "Anxiety Disorder",
            50.0,
            70.0,
            "507f1f77bcf86cd799439021",
            _professional(
                "Dr. Sarah Johnson",
                "+1-555-0101",
                "+1-555-0102",
                "dr.johnson@mentalhealth.com",
                "123 Health Street, Mental Health Center, Suite 200",
            ),
        ),
        _default_issue(
            "depression",
            "Depression",
            45.0,
            65.0,
            "507f1f77bcf86cd799439022",
            _professional(
                "Dr. Michael Chen",
                "+1-555-0201",
                "+1-555-0202",
                "dr.chen@mentalhealth.com",
                "456 Wellness Ave, Behavioral Health Clinic, Floor 3",
            ),
        ),
        _default_issue(
            "adhd",
            "ADHD",
            55.0,
            75.0,
            "507f1f77bcf86cd799439023",
            _professional(
                "Dr. Emily Roberts",
                "+1-555-0301",
                "+1-555-0302",
                "dr.roberts@adhdcenter.com",
                "789 Focus Lane, ADHD Specialty Clinic",
            ),
        ),
        _default_issue(
            "ocd",
            "OCD",
            48.0,
            68.0,
            "507f1f77bcf86cd799439024",
            _professional(
                "Dr. David Martinez",
                "+1-555-0401",
                "+1-555-0402",
                "dr.martinez@ocdcenter.com",
                "321 Calm Street, OCD Treatment Center",
            ),
        ),
        _default_issue(
            "social_phobia",
            "Social Phobia",
            50.0,
            70.0,
            "507f1f77bcf86cd799439025",
            _professional(
                "Dr. Lisa Anderson",
                "+1-555-0501",
                "+1-555-0502",
                "dr.anderson@socialphobia.com",
                "654 Confidence Blvd, Social Anxiety Clinic",
            ),
        ),
    )
}

DEFAULT_SCORING_CONFIG = ScoringConfig(issues=DEFAULT_ISSUES)
"""Configuration used when no explicit configuration is supplied."""


# ---------------------------------------------------------------------------
# JSON (de)serialisation
# ---------------------------------------------------------------------------

def _number(value: Any, where: str) -> float:
    if isinstance(value, bool):
        raise ScoringConfigError(f"{where} must be numeric")
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ScoringConfigError(f"{where} must be numeric") from exc


def _require_mapping(value: Any, where: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ScoringConfigError(f"{where} must be a JSON object")
    return value


def _parse_thresholds(issue_id: str, raw: Any) -> Dict[str, SeverityThresholds]:
    if raw is None:
        return {}
    data = _require_mapping(raw, f"Issue {issue_id} thresholds")
    parsed: Dict[str, SeverityThresholds] = {}
    for family, entry in data.items():
        if family not in THRESHOLD_FAMILIES:
            raise ScoringConfigError(
                f"Issue {issue_id} has unknown threshold family '{family}'"
            )
        entry = _require_mapping(entry, f"Issue {issue_id} {family} thresholds")
        borderline = _number(entry.get("borderline_min"), f"Issue {issue_id} {family} borderline_min")
        clinical = _number(entry.get("clinical_min"), f"Issue {issue_id} {family} clinical_min")
        if clinical < borderline:
            raise ScoringConfigError(
                f"Issue {issue_id} {family} clinical_min must not be below borderline_min"
            )
        parsed[family] = SeverityThresholds(borderline, clinical)
    return parsed


def _parse_statistics(raw: Any, where: str) -> Optional[IssueStatistics]:
    if raw is None:
        return None
    data = _require_mapping(raw, where)
    return IssueStatistics(
        mean=_number(data.get("mean", 50.0), f"{where} mean"),
        std_dev=_number(data.get("std_dev", 10.0), f"{where} std_dev"),
    )


def _parse_issue(issue_id: str, raw: Any) -> IssueDefinition:
    data = _require_mapping(raw, f"Issue {issue_id}")
    name = str(data.get("name") or issue_id).strip()
    professional_raw = data.get("professional")
    professional = None
    if professional_raw is not None:
        contact = _require_mapping(professional_raw, f"Issue {issue_id} professional")
        if not str(contact.get("name", "")).strip():
            raise ScoringConfigError(f"Issue {issue_id} professional is missing a name")
        professional = ProfessionalContact(
            name=str(contact["name"]).strip(),
            phone=str(contact.get("phone", "")),
            alternate_phone=str(contact.get("alternate_phone", "")),
            email=str(contact.get("email", "")),
            address=str(contact.get("address", "")),
        )
    course_id = data.get("recommended_course_id")
    return IssueDefinition(
        id=issue_id,
        name=name,
        thresholds=_parse_thresholds(issue_id, data.get("thresholds")),
        statistics=_parse_statistics(data.get("statistics"), f"Issue {issue_id} statistics"),
        recommended_course_id=str(course_id) if course_id else None,
        professional=professional,
    )


def _parse_policy(cls, raw: Any, where: str):
    if raw is None:
        return cls()
    data = _require_mapping(raw, where)
    known = set(cls.__dataclass_fields__)
    unknown = set(data) - known
    if unknown:
        raise ScoringConfigError(f"{where} has unknown keys: {', '.join(sorted(unknown))}")
    values: Dict[str, Any] = {}
    for key, value in data.items():
        if key == "max_flagged_subjects" and value is None:
            values[key] = None
        elif key == "max_flagged_subjects":
            values[key] = int(_number(value, f"{where} {key}"))
        else:
            values[key] = _number(value, f"{where} {key}")
    return cls(**values)


def scoring_config_from_dict(raw: Any) -> ScoringConfig:
    """Build a :class:`ScoringConfig` from a decoded JSON document."""

    data = _require_mapping(raw, "Scoring configuration")
    issues_raw = _require_mapping(data.get("issues", {}), "issues")
    issues = {str(issue_id): _parse_issue(str(issue_id), entry) for issue_id, entry in issues_raw.items()}
    default_statistics = _parse_statistics(data.get("default_statistics"), "default_statistics")
    return ScoringConfig(
        issues=issues,
        default_statistics=default_statistics or IssueStatistics(),
        education=_parse_policy(EducationPolicy, data.get("education"), "education"),
        nutrition=_parse_policy(NutritionPolicy, data.get("nutrition"), "nutrition"),
    )


def scoring_config_to_dict(config: ScoringConfig) -> Dict[str, Any]:
    """Return a JSON-serialisable representation accepted by :func:`load_scoring_config`."""

    issues: Dict[str, Any] = {}
    for issue_id, issue in config.issues.items():
        entry: Dict[str, Any] = {
            "name": issue.name,
            "thresholds": {family: asdict(t) for family, t in issue.thresholds.items()},
        }
        if issue.statistics is not None:
            entry["statistics"] = asdict(issue.statistics)
        if issue.recommended_course_id:
            entry["recommended_course_id"] = issue.recommended_course_id
        if issue.professional is not None:
            entry["professional"] = asdict(issue.professional)
        issues[issue_id] = entry
    return {
        "issues": issues,
        "default_statistics": asdict(config.default_statistics),
        "education": asdict(config.education),
        "nutrition": asdict(config.nutrition),
    }


def _load_payload(path: Path) -> Any:
    suffix = path.suffix.lower()
    text = path.read_text(encoding="utf-8")
    if suffix in {".yml", ".yaml"}:
        try:
            return yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ScoringConfigError(f"Scoring configuration is not valid YAML: {exc}") from exc
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise ScoringConfigError(f"Scoring configuration is not valid JSON: {exc}") from exc


def load_scoring_config(path: str | Path) -> ScoringConfig:
    """Load a JSON (or, by suffix, YAML) configuration document."""

    path_obj = Path(path)
    if not path_obj.exists():
        raise FileNotFoundError(f"Scoring configuration not found: {path_obj}")
    return scoring_config_from_dict(_load_payload(path_obj))


@lru_cache(maxsize=1)
def get_scoring_config() -> ScoringConfig:
    """Return the process-wide configuration selected by ``SCORING_CONFIG_PATH``."""

    path = os.getenv("SCORING_CONFIG_PATH")
    if not path:
        return DEFAULT_SCORING_CONFIG
    config = load_scoring_config(path)
    logger.info("Loaded scoring configuration from %s (%d issues)", path, len(config.issues))
    return config
