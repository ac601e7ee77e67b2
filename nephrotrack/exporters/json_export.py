"""
JSON exporter for progression histories.

Exports a patient's progression summary as camelCase JSON, the shape the
dashboards consume.
"""

from __future__ import annotations

import json
from datetime import date, datetime
from pathlib import Path
from typing import Any

from nephrotrack.models import ProgressionSummary


class DateTimeEncoder(json.JSONEncoder):
    """JSON encoder that handles dates and datetimes."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        return super().default(obj)


def export_history_json(
    summary: ProgressionSummary,
    output_path: Path | None = None,
    indent: int = 2,
    include_nulls: bool = False,
) -> str:
    """
    Export a progression summary to JSON.

    Args:
        summary: The summary to export
        output_path: Optional path to write the JSON file
        indent: JSON indentation level
        include_nulls: Whether to include null values in output

    Returns:
        JSON string representation of the summary
    """
    data = summary.model_dump(mode="json", by_alias=True, exclude_none=not include_nulls)
    json_str = json.dumps(data, indent=indent, cls=DateTimeEncoder)

    if output_path:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(json_str)

    return json_str


def export_history_overview(summary: ProgressionSummary) -> dict[str, Any]:
    """
    Export a short overview of the history (useful for listings).
    """
    latest = summary.cycles[-1] if summary.cycles else None
    return {
        "patient_id": summary.patient_id,
        "progression_type": summary.profile.progression_type.value if summary.profile else None,
        "baseline_state": summary.baseline_state,
        "current_state": summary.current_state,
        "current_egfr": latest.egfr_value if latest else None,
        "current_uacr": latest.uacr_value if latest else None,
        "total_measurements": summary.total_measurements,
        "total_transitions": summary.total_transitions,
        "active_alerts": len(summary.active_alerts),
        "pending_recommendations": len(summary.pending_recommendations),
    }
