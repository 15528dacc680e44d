"""
Report export for learning statistics and insights.

Flattens stats and insights into rows and writes them as CSV or JSON.
"""

import csv
import json
import os
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List

from .classify.run import mitigate_formula_injection
from .learning.keywords import format_pair
from .learning.models import LearningInsights, LearningStats

REPORT_FIELDS = ["section", "name", "value", "detail"]


def flatten_stats(stats: LearningStats) -> List[Dict[str, Any]]:
    """Turn LearningStats into section/name/value/detail rows."""
    rows = [
        {"section": "stats", "name": name, "value": getattr(stats, name), "detail": ""}
        for name in (
            "total_feedback",
            "total_corrections",
            "total_confirmations",
            "total_patterns",
            "total_updates",
            "auto_applied_updates",
            "pending_updates",
            "total_actions",
        )
    ]
    for action in stats.recent_actions:
        rows.append({
            "section": "recent_action",
            "name": action.type.value,
            "value": action.confidence,
            "detail": f"{action.category_id}: {action.description}",
        })
    return rows


def flatten_insights(insights: LearningInsights) -> List[Dict[str, Any]]:
    """Turn LearningInsights into section/name/value/detail rows."""
    rows = [
        {"section": "insights", "name": "total_feedback", "value": insights.total_feedback, "detail": ""},
        {"section": "insights", "name": "accuracy_improvement", "value": insights.accuracy_improvement, "detail": ""},
    ]

    for category_id, accuracy in insights.category_accuracy.items():
        rows.append({"section": "category_accuracy", "name": category_id, "value": accuracy, "detail": ""})

    for miss in insights.common_misclassifications:
        rows.append({
            "section": "misclassification",
            "name": f"{miss.from_category} -> {miss.to_category}",
            "value": miss.frequency,
            "detail": ", ".join(miss.common_keywords),
        })

    for suggestion in insights.suggested_keywords:
        rows.append({
            "section": "suggestion",
            "name": f"{suggestion.category_id}: {suggestion.term}",
            "value": suggestion.confidence,
            "detail": f"specificity {suggestion.specificity}, support {suggestion.support}",
        })

    for section, updates in (("applied_update", insights.applied_updates), ("pending_update", insights.pending_updates)):
        for update in updates:
            terms = (
                list(update.new_core_keywords)
                + list(update.new_support_keywords)
                + [format_pair(p) for p in update.new_context_pairs]
            )
            rows.append({
                "section": section,
                "name": update.category_id,
                "value": update.confidence,
                "detail": ", ".join(terms),
            })

    for issue in insights.issues:
        rows.append({"section": "issue", "name": "", "value": "", "detail": issue})

    return rows


def write_report_csv(rows: List[Dict[str, Any]], export_dir: str, prefix: str = "learning_report") -> str:
    """
    Write report rows to a timestamped CSV file.

    Args:
        rows: Rows from flatten_stats / flatten_insights
        export_dir: Output directory (created if missing)
        prefix: File name prefix

    Returns:
        Path to the CSV file
    """
    Path(export_dir).mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    csv_path = os.path.join(export_dir, f"{prefix}_{timestamp}.csv")

    with open(csv_path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=REPORT_FIELDS, quoting=csv.QUOTE_MINIMAL)
        writer.writeheader()
        for row in rows:
            writer.writerow({
                key: mitigate_formula_injection(value) if isinstance(value, str) else value
                for key, value in row.items()
            })

    print(f"[EXPORT] Report written to: {csv_path}")
    return csv_path


def write_report_json(
    stats: LearningStats,
    insights: LearningInsights,
    export_dir: str,
    prefix: str = "learning_report",
) -> str:
    """Write stats and insights as one JSON document; returns the path."""
    Path(export_dir).mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    json_path = os.path.join(export_dir, f"{prefix}_{timestamp}.json")

    report = {
        "generated_at": insights.generated_at,
        "stats": _jsonable(asdict(stats)),
        "insights": _jsonable(asdict(insights)),
    }

    with open(json_path, "w", encoding="utf-8") as f:
        json.dump(report, f, indent=2, ensure_ascii=False)

    print(f"[EXPORT] Report written to: {json_path}")
    return json_path


def _jsonable(value: Any) -> Any:
    # asdict keeps enums and tuples; JSON wants plain values and lists
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if hasattr(value, "value") and not isinstance(value, (str, int, float, bool)):
        return value.value
    return value
