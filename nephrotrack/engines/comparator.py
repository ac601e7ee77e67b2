"""
Health state comparator.

Compares two successive KDIGO classifications, decides whether the change
is meaningful, and collects the alert reasons it triggers. Each reason is
tagged with its severity at the point it fires; the overall alert severity
is the highest tag.
"""

from __future__ import annotations

from nephrotrack.knowledge import kdigo
from nephrotrack.models import (
    AlertReason,
    AlertSeverity,
    ChangeType,
    Classification,
    GFRTrend,
    StateComparison,
    UACRTrend,
)

# Trend thresholds (product policy)
GFR_TREND_THRESHOLD = 5.0    # mL/min/1.73m2
UACR_TREND_THRESHOLD = 10.0  # mg/g

# Rules whose firing means a hard clinical threshold was crossed
CRITICAL_THRESHOLD_CODES = frozenset({"egfr_below_30", "egfr_below_15", "uacr_above_300"})


def gfr_trend(gfr_change: float) -> GFRTrend:
    if gfr_change > GFR_TREND_THRESHOLD:
        return GFRTrend.IMPROVING
    if gfr_change < -GFR_TREND_THRESHOLD:
        return GFRTrend.DECLINING
    return GFRTrend.STABLE


def uacr_trend(uacr_change: float | None) -> UACRTrend:
    if uacr_change is None:
        return UACRTrend.UNKNOWN
    if uacr_change < -UACR_TREND_THRESHOLD:
        return UACRTrend.IMPROVING
    if uacr_change > UACR_TREND_THRESHOLD:
        return UACRTrend.WORSENING
    return UACRTrend.STABLE


def _crossed_below(previous: float, current: float, floor: float) -> bool:
    return previous >= floor and current < floor


def collect_alert_reasons(
    previous: Classification,
    current: Classification,
    egfr_trend: GFRTrend,
    albuminuria_trend: UACRTrend,
    risk_increased: bool,
) -> list[AlertReason]:
    """Evaluate every alert rule independently, in a fixed order."""
    reasons: list[AlertReason] = []
    below_30 = _crossed_below(previous.gfr_value, current.gfr_value, kdigo.EGFR_STAGE_4_FLOOR)
    below_15 = _crossed_below(previous.gfr_value, current.gfr_value, kdigo.EGFR_KIDNEY_FAILURE_FLOOR)

    if previous.gfr_category != current.gfr_category and egfr_trend == GFRTrend.DECLINING:
        reasons.append(AlertReason(
            code="gfr_category_declined",
            text=f"GFR declined from {previous.gfr_category.value} to {current.gfr_category.value}",
            severity=AlertSeverity.CRITICAL if (below_30 or below_15) else AlertSeverity.WARNING,
        ))

    if (
        previous.albuminuria_category != current.albuminuria_category
        and albuminuria_trend == UACRTrend.WORSENING
    ):
        reasons.append(AlertReason(
            code="albuminuria_category_increased",
            text=(
                f"Albuminuria increased from {previous.albuminuria_category.value} "
                f"to {current.albuminuria_category.value}"
            ),
            severity=AlertSeverity.WARNING,
        ))

    if risk_increased:
        reasons.append(AlertReason(
            code="risk_increased",
            text=f"Risk level increased from {previous.risk_level.value} to {current.risk_level.value}",
            severity=AlertSeverity.WARNING,
        ))

    if below_30:
        reasons.append(AlertReason(
            code="egfr_below_30",
            text="eGFR dropped below 30 - Stage 4 CKD",
            severity=AlertSeverity.CRITICAL,
        ))

    if below_15:
        reasons.append(AlertReason(
            code="egfr_below_15",
            text="eGFR dropped below 15 - Kidney failure (Stage 5)",
            severity=AlertSeverity.CRITICAL,
        ))

    if (
        current.uacr_value is not None
        and current.uacr_value > kdigo.ALBUMINURIA_A3_ABOVE
        and (previous.uacr_value is None or previous.uacr_value <= kdigo.ALBUMINURIA_A3_ABOVE)
    ):
        reasons.append(AlertReason(
            code="uacr_above_300",
            text="uACR exceeded 300 mg/g - Severe albuminuria",
            severity=AlertSeverity.CRITICAL,
        ))

    if not previous.requires_nephrology_referral and current.requires_nephrology_referral:
        reasons.append(AlertReason(
            code="nephrology_referral_required",
            text="Nephrology referral now recommended",
            severity=AlertSeverity.WARNING,
        ))

    return reasons


def compare_health_states(previous: Classification, current: Classification) -> StateComparison:
    """
    Compare two health states to detect progression or regression.

    Args:
        previous: Classification of the earlier cycle
        current: Classification of the later cycle

    Returns:
        The comparison, including whether it is a meaningful change and
        the severity-tagged alert reasons it triggers.
    """
    gfr_change = current.gfr_value - previous.gfr_value
    uacr_change = None
    if previous.uacr_value is not None and current.uacr_value is not None:
        uacr_change = current.uacr_value - previous.uacr_value

    egfr_trend = gfr_trend(gfr_change)
    albuminuria_trend = uacr_trend(uacr_change)

    category_changed = (
        previous.gfr_category != current.gfr_category
        or previous.albuminuria_category != current.albuminuria_category
    )
    risk_changed = previous.risk_level != current.risk_level
    risk_increased = current.risk_level.ordinal > previous.risk_level.ordinal

    # First matching rule wins
    if category_changed:
        if risk_increased or egfr_trend == GFRTrend.DECLINING:
            change_type = ChangeType.WORSENED
        else:
            change_type = ChangeType.IMPROVED
    elif egfr_trend == GFRTrend.DECLINING or albuminuria_trend == UACRTrend.WORSENING:
        change_type = ChangeType.WORSENED
    elif egfr_trend == GFRTrend.IMPROVING or albuminuria_trend == UACRTrend.IMPROVING:
        change_type = ChangeType.IMPROVED
    else:
        change_type = ChangeType.STABLE

    has_changed = (
        category_changed
        or abs(gfr_change) > GFR_TREND_THRESHOLD
        or (uacr_change is not None and abs(uacr_change) > UACR_TREND_THRESHOLD)
    )

    reasons = collect_alert_reasons(previous, current, egfr_trend, albuminuria_trend, risk_increased)

    return StateComparison(
        has_changed=has_changed,
        change_type=change_type,
        gfr_change=gfr_change,
        gfr_trend=egfr_trend,
        uacr_change=uacr_change,
        uacr_trend=albuminuria_trend,
        category_changed=category_changed,
        risk_changed=risk_changed,
        risk_increased=risk_increased,
        crossed_critical_threshold=any(r.code in CRITICAL_THRESHOLD_CODES for r in reasons),
        reasons=reasons,
    )
