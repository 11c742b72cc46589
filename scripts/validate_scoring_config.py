"""Validate a scoring configuration file and summarise its issues."""
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Dict, List, Sequence

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from scoring_config import (
    DEFAULT_SCORING_CONFIG,
    THRESHOLD_FAMILIES,
    ScoringConfig,
    ScoringConfigError,
    load_scoring_config,
)


def summarize_config(config: ScoringConfig) -> Dict[str, object]:
    """Build a JSON-serialisable per-issue summary of ``config``."""

    issues: Dict[str, Dict[str, object]] = {}
    for issue_id, issue in sorted(config.issues.items()):
        statistics = config.statistics_for(issue_id)
        missing_families: List[str] = [family for family in THRESHOLD_FAMILIES if family not in issue.thresholds]
        issues[issue_id] = {
            "name": issue.name,
            "thresholds": {
                family: [thresholds.borderline_min, thresholds.clinical_min]
                for family, thresholds in sorted(issue.thresholds.items())
            },
            "statistics": {"mean": statistics.mean, "std_dev": statistics.std_dev},
            "uses_default_statistics": issue.statistics is None,
            "missing_threshold_families": missing_families,
            "recommended_course_id": issue.recommended_course_id,
            "has_professional": issue.professional is not None,
        }
    return {
        "issue_count": len(issues),
        "issues": issues,
        "education": {
            "weak_cutoff": config.education.weak_cutoff,
            "strong_cutoff": config.education.strong_cutoff,
            "trend_epsilon": config.education.trend_epsilon,
        },
        "nutrition": {
            "underweight_below": config.nutrition.underweight_below,
            "overweight_from": config.nutrition.overweight_from,
            "obese_from": config.nutrition.obese_from,
        },
    }


def format_summary(summary: Dict[str, object]) -> str:
    lines = [f"{summary['issue_count']} issue(s) configured"]
    for issue_id, info in summary["issues"].items():
        families = ", ".join(
            f"{family} {low:g}/{high:g}" for family, (low, high) in info["thresholds"].items()
        ) or "no thresholds"
        lines.append(f"  {issue_id} ({info['name']}): {families}")
        if info["missing_threshold_families"]:
            lines.append(
                "    always normal for: " + ", ".join(info["missing_threshold_families"])
            )
        if info["uses_default_statistics"]:
            lines.append("    uses default statistics")
    return "\n".join(lines)


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "path",
        nargs="?",
        default=None,
        help="Path to a scoring configuration JSON file (default: built-in configuration)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the summary as JSON instead of text.",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    try:
        config = load_scoring_config(args.path) if args.path else DEFAULT_SCORING_CONFIG
    except (ScoringConfigError, FileNotFoundError) as exc:
        print(f"Invalid scoring configuration: {exc}", file=sys.stderr)
        return 1

    summary = summarize_config(config)
    if args.json:
        print(json.dumps(summary, indent=2, ensure_ascii=False))
    else:
        print(format_summary(summary))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
