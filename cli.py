#!/usr/bin/env python3
"""
NephroTrack CLI

Command-line interface for KDIGO classification and synthetic CKD
progression monitoring.
"""

import functools
import random
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

console = Console()


def setup_paths():
    """Add the project root to sys.path for imports."""
    root = Path(__file__).parent
    if str(root) not in sys.path:
        sys.path.insert(0, str(root))


setup_paths()

RISK_STYLES = {
    "low": "green",
    "moderate": "yellow",
    "high": "dark_orange",
    "very_high": "red",
}

SEVERITY_STYLES = {
    "critical": "bold red",
    "warning": "yellow",
    "info": "cyan",
}


def handle_errors(func):
    """Print NephroTrack errors in red and exit with status 1."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        from nephrotrack.utils import NephroTrackError

        try:
            return func(*args, **kwargs)
        except NephroTrackError as e:
            console.print(f"[red]Error ({e.code}): {e.message}[/red]")
            sys.exit(1)

    return wrapper


def _risk(level: str) -> str:
    style = RISK_STYLES.get(level, "white")
    return f"[{style}]{level}[/{style}]"


def _open_storage(store: str):
    from nephrotrack.db import MemoryStorage, SupabaseStorage, get_config, is_configured

    if store == "memory":
        return MemoryStorage()
    if not is_configured():
        console.print("[red]Supabase is not configured (set SUPABASE_URL and SUPABASE_SERVICE_KEY)[/red]")
        sys.exit(1)
    return SupabaseStorage(use_admin=bool(get_config().service_key))


def _print_classification(c) -> None:
    uacr = f"{c.uacr_value:.1f} mg/g" if c.uacr_value is not None else "not measured"
    stage = f"Stage {c.ckd_stage}" if c.ckd_stage else "n/a"
    lines = [
        f"[bold]{c.health_state}[/bold]  ({_risk(c.risk_level.value)} risk)",
        "",
        f"eGFR: {c.gfr_value:.1f} mL/min/1.73m2 ({c.gfr_category.value}, {c.gfr_description})",
        f"uACR: {uacr} ({c.albuminuria_category.value}, {c.albuminuria_description})",
        f"CKD: {c.ckd_stage_name} [{stage}]",
        f"Monitoring: {c.monitoring_frequency}",
        f"Target BP: {c.target_bp}",
    ]

    flags = []
    if c.requires_nephrology_referral:
        flags.append("nephrology referral")
    if c.requires_dialysis_planning:
        flags.append("dialysis planning")
    if c.recommend_ras_inhibitor:
        flags.append("RAS inhibitor")
    if c.recommend_sglt2i:
        flags.append("SGLT2 inhibitor")
    if flags:
        lines.append(f"Actions: {', '.join(flags)}")

    console.print(Panel("\n".join(lines), title="KDIGO Classification", border_style=RISK_STYLES.get(c.risk_level.value, "blue")))


def _print_timeline(results) -> None:
    table = Table(title="Progression Timeline")
    table.add_column("Cycle", justify="right")
    table.add_column("eGFR", justify="right")
    table.add_column("uACR", justify="right")
    table.add_column("State", style="cyan")
    table.add_column("Risk")
    table.add_column("Transition")

    for r in results:
        transition = ""
        if r.transition_details:
            d = r.transition_details
            transition = f"{d.from_state} → {d.to_state} ({d.change_type.value})"
            if d.alert_severity:
                style = SEVERITY_STYLES[d.alert_severity.value]
                transition += f" [{style}]{d.alert_severity.value.upper()}[/{style}]"
        uacr = f"{r.uacr_value:.1f}" if r.uacr_value is not None else "-"
        table.add_row(
            str(r.cycle_number),
            f"{r.egfr_value:.1f}",
            uacr,
            r.classification.health_state,
            _risk(r.classification.risk_level.value),
            transition,
        )

    console.print(table)


def _print_summary(summary) -> None:
    from nephrotrack.exporters import export_history_overview

    overview = export_history_overview(summary)
    console.print(Panel(
        f"Progression type: {overview['progression_type'] or 'n/a'}\n"
        f"Baseline: {overview['baseline_state']}  →  Current: {overview['current_state']}\n"
        f"Measurements: {overview['total_measurements']}  "
        f"Transitions: {overview['total_transitions']}",
        title=f"Patient {summary.patient_id}",
        border_style="blue",
    ))

    if summary.active_alerts:
        table = Table(title="Active Alerts")
        table.add_column("Severity")
        table.add_column("Type")
        table.add_column("Title")
        for alert in summary.active_alerts:
            style = SEVERITY_STYLES[alert.severity.value]
            table.add_row(f"[{style}]{alert.severity.value}[/{style}]", alert.alert_type, alert.title)
        console.print(table)

    if summary.pending_recommendations:
        table = Table(title="Pending Recommendations")
        table.add_column("P", justify="right")
        table.add_column("Urgency")
        table.add_column("Recommendation")
        table.add_column("Timeframe")
        for rec in summary.pending_recommendations:
            table.add_row(str(rec.priority), rec.urgency.value, rec.title, rec.timeframe)
        console.print(table)


def _write_export(summary, output: str, fmt: str) -> None:
    from nephrotrack.exporters import export_history_json, export_history_markdown

    out_path = Path(output)
    if fmt == "markdown":
        export_history_markdown(summary, out_path, include_alert_messages=True)
    else:
        export_history_json(summary, out_path)
    console.print(f"[green]✓ Exported to {out_path}[/green]")


@click.group()
@click.version_option(version="0.1.0", prog_name="nephrotrack")
@click.option("--log-level", type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
              help="Log level (defaults to NEPHROTRACK_LOG_LEVEL or INFO)")
@click.option("--log-file", type=click.Path(), help="Also write logs to this file")
def cli(log_level: Optional[str], log_file: Optional[str]):
    """
    NephroTrack - CKD Progression Monitoring

    Classify kidney function by KDIGO, compare measurements, and simulate
    follow-up cycles with transition alerts and recommendations.
    """
    from nephrotrack.utils import setup_logging

    setup_logging(level=log_level, log_file=log_file)


@cli.command()
@click.argument("egfr", type=float)
@click.option("--uacr", type=float, help="Urine albumin-to-creatinine ratio (mg/g)")
@click.option("--json", "as_json", is_flag=True, help="Print the classification as JSON")
@handle_errors
def classify(egfr: float, uacr: Optional[float], as_json: bool):
    """
    Classify an eGFR (and optional uACR) measurement.

    Examples:

        nephrotrack classify 59.9 --uacr 31

        nephrotrack classify 12 --json
    """
    from nephrotrack.engines import classify_kdigo

    classification = classify_kdigo(egfr, uacr)
    if as_json:
        click.echo(classification.model_dump_json(by_alias=True, indent=2))
        return
    _print_classification(classification)


@cli.command()
@click.argument("egfr1", type=float)
@click.argument("egfr2", type=float)
@click.option("--uacr1", type=float, help="Previous uACR (mg/g)")
@click.option("--uacr2", type=float, help="Current uACR (mg/g)")
@handle_errors
def compare(egfr1: float, egfr2: float, uacr1: Optional[float], uacr2: Optional[float]):
    """
    Compare a previous measurement with a current one.

    Example:

        nephrotrack compare 62 58 --uacr1 10 --uacr2 10
    """
    from nephrotrack.engines import classify_kdigo, compare_health_states

    previous = classify_kdigo(egfr1, uacr1)
    current = classify_kdigo(egfr2, uacr2)
    comparison = compare_health_states(previous, current)

    uacr_change = f"{comparison.uacr_change:+.1f}" if comparison.uacr_change is not None else "n/a"
    console.print(Panel(
        f"{previous.health_state} → {current.health_state}\n\n"
        f"Change: [bold]{comparison.change_type.value}[/bold]\n"
        f"eGFR change: {comparison.gfr_change:+.1f} ({comparison.gfr_trend.value})\n"
        f"uACR change: {uacr_change} ({comparison.uacr_trend.value})\n"
        f"Risk: {_risk(previous.risk_level.value)} → {_risk(current.risk_level.value)}",
        title="State Comparison",
        border_style="blue",
    ))

    if not comparison.needs_alert:
        console.print("[green]No alert needed[/green]")
        return

    severity = comparison.alert_severity.value
    table = Table(title=f"Alert Reasons ({severity.upper()})")
    table.add_column("Severity")
    table.add_column("Reason")
    for reason in comparison.reasons:
        style = SEVERITY_STYLES[reason.severity.value]
        table.add_row(f"[{style}]{reason.severity.value}[/{style}]", reason.text)
    console.print(table)


@cli.command()
@click.argument("patient_id")
@click.option("--cycles", "-n", type=click.IntRange(min=0), default=12, help="Cycles to generate after baseline")
@click.option("--seed", type=int, help="Random seed for reproducibility")
@click.option("--egfr", type=float, help="Seed a real eGFR lab result (memory store only)")
@click.option("--uacr", type=float, help="Seed a real uACR lab result (memory store only)")
@click.option("--on-ras", is_flag=True, help="Patient already on a RAS inhibitor (memory store only)")
@click.option("--on-sglt2i", is_flag=True, help="Patient already on an SGLT2 inhibitor (memory store only)")
@click.option("--store", type=click.Choice(["memory", "supabase"]), default="memory",
              help="Where cycles are stored")
@click.option("--output", "-o", type=click.Path(), help="Export the resulting history to this file")
@click.option("--format", "fmt", type=click.Choice(["json", "markdown"]), default="json",
              help="Export format")
@handle_errors
def simulate(
    patient_id: str,
    cycles: int,
    seed: Optional[int],
    egfr: Optional[float],
    uacr: Optional[float],
    on_ras: bool,
    on_sglt2i: bool,
    store: str,
    output: Optional[str],
    fmt: str,
):
    """
    Simulate follow-up cycles for a patient.

    Examples:

        nephrotrack simulate patient-1 --cycles 24 --seed 7

        nephrotrack simulate patient-2 --egfr 35 --uacr 250 -o history.json
    """
    from nephrotrack.db import MemoryStorage
    from nephrotrack.engines import CycleGenerator, summarize_history

    storage = _open_storage(store)
    if isinstance(storage, MemoryStorage):
        storage.add_patient(patient_id)
        if egfr is not None or uacr is not None:
            storage.add_lab_result(patient_id, egfr, uacr)
        storage.set_treatment_context(patient_id, on_ras_inhibitor=on_ras, on_sglt2i=on_sglt2i)

    rng = random.Random(seed) if seed is not None else None
    generator = CycleGenerator(storage)

    with console.status(f"Simulating {cycles} cycles..."):
        results = generator.simulate(patient_id, cycles, rng=rng)

    _print_timeline(results)

    failures = sum(r.alert_failures for r in results)
    if failures:
        console.print(f"[yellow]{failures} alert/recommendation write(s) failed; see log[/yellow]")

    summary = summarize_history(storage, patient_id)
    _print_summary(summary)

    if output:
        _write_export(summary, output, fmt)


@cli.command()
@click.argument("patient_id")
@click.option("--output", "-o", type=click.Path(), help="Export the history to this file")
@click.option("--format", "fmt", type=click.Choice(["json", "markdown"]), default="json",
              help="Export format")
@handle_errors
def history(patient_id: str, output: Optional[str], fmt: str):
    """
    Show a patient's stored progression history (Supabase).

    Example:

        nephrotrack history patient-1 --format markdown -o patient-1.md
    """
    from nephrotrack.engines import summarize_history

    storage = _open_storage("supabase")
    summary = summarize_history(storage, patient_id)

    table = Table(title="Health State History")
    table.add_column("Cycle", justify="right")
    table.add_column("Date")
    table.add_column("eGFR", justify="right")
    table.add_column("uACR", justify="right")
    table.add_column("State", style="cyan")
    table.add_column("Risk")
    for cycle in summary.cycles:
        c = cycle.classification
        table.add_row(
            str(cycle.cycle_number),
            cycle.measured_at.strftime("%Y-%m-%d"),
            f"{cycle.egfr_value:.1f}",
            f"{cycle.uacr_value:.1f}" if cycle.uacr_value is not None else "-",
            c.health_state,
            _risk(c.risk_level.value),
        )
    console.print(table)

    _print_summary(summary)

    if output:
        _write_export(summary, output, fmt)


def main():
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
