"""
Markdown exporter for progression histories.

Renders a patient's timeline, transitions, alerts and pending
recommendations as a readable report.
"""

from __future__ import annotations

from pathlib import Path

from nephrotrack.models import ProgressionSummary


def export_history_markdown(
    summary: ProgressionSummary,
    output_path: Path | None = None,
    include_alert_messages: bool = False,
) -> str:
    """
    Export a progression summary to Markdown.

    Args:
        summary: The summary to export
        output_path: Optional path to write the Markdown file
        include_alert_messages: Whether to include full alert message bodies

    Returns:
        Markdown string
    """
    lines = []

    lines.append(f"# Progression History: {summary.patient_id}")
    lines.append("")
    if summary.profile:
        lines.append(f"**Progression type:** {summary.profile.progression_type.value.title()}")
    lines.append(f"**Baseline state:** {summary.baseline_state or 'n/a'}")
    lines.append(f"**Current state:** {summary.current_state or 'n/a'}")
    lines.append(f"**Measurements:** {summary.total_measurements}")
    lines.append(f"**Transitions:** {summary.total_transitions}")
    lines.append("")

    # Timeline
    lines.append("## Timeline")
    lines.append("")
    lines.append("| Cycle | Date | eGFR | uACR | State | Risk |")
    lines.append("|------:|------|-----:|-----:|-------|------|")
    for cycle in summary.cycles:
        c = cycle.classification
        uacr = f"{cycle.uacr_value:.1f}" if cycle.uacr_value is not None else "-"
        lines.append(
            f"| {cycle.cycle_number} | {cycle.measured_at.strftime('%Y-%m-%d')} "
            f"| {cycle.egfr_value:.1f} | {uacr} | {c.health_state} | {c.risk_level.value} |"
        )
    lines.append("")

    if summary.transitions:
        lines.append("## Transitions")
        lines.append("")
        for t in summary.transitions:
            flag = f" **[{t.alert_severity.value.upper()}]**" if t.alert_severity else ""
            lines.append(
                f"- Cycle {t.from_cycle} → {t.to_cycle}: {t.from_health_state} → "
                f"{t.to_health_state} ({t.change_type.value}, eGFR {t.egfr_change:+.1f}){flag}"
            )
        lines.append("")

    if summary.active_alerts:
        lines.append("## Active Alerts")
        lines.append("")
        for alert in summary.active_alerts:
            lines.append(f"### {alert.title}")
            lines.append("")
            lines.append(f"- **Severity:** {alert.severity.value}")
            lines.append(f"- **Type:** {alert.alert_type}")
            for reason in alert.reasons:
                lines.append(f"- {reason.text}")
            if include_alert_messages:
                lines.append("")
                lines.append("```")
                lines.append(alert.message.rstrip())
                lines.append("```")
            lines.append("")

    if summary.pending_recommendations:
        lines.append("## Pending Recommendations")
        lines.append("")
        for rec in summary.pending_recommendations:
            lines.append(f"- **{rec.title}** (priority {rec.priority}, {rec.urgency.value}, {rec.timeframe})")
            lines.append(f"  {rec.description}")
        lines.append("")

    md = "\n".join(lines)

    if output_path:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(md)

    return md
