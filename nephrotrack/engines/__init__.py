"""
Classification, comparison and progression engines.
"""

from .classifier import (
    classify_gfr,
    classify_albuminuria,
    classify_kdigo,
    determine_ckd_stage,
    determine_risk_level,
    get_blood_pressure_target,
    get_monitoring_frequency,
    requires_nephrology_referral,
)
from .comparator import compare_health_states, collect_alert_reasons
from .alerts import AlertEngine
from .policy import ProgressionPolicy, load_policy
from .progression import (
    CycleGenerator,
    ProgressionProfileStore,
    generate_next_cycle,
    get_generator,
    initialize_baseline,
)
from .summary import summarize_history

__all__ = [
    "classify_gfr",
    "classify_albuminuria",
    "classify_kdigo",
    "determine_ckd_stage",
    "determine_risk_level",
    "get_blood_pressure_target",
    "get_monitoring_frequency",
    "requires_nephrology_referral",
    "compare_health_states",
    "collect_alert_reasons",
    "AlertEngine",
    "ProgressionPolicy",
    "load_policy",
    "CycleGenerator",
    "ProgressionProfileStore",
    "generate_next_cycle",
    "get_generator",
    "initialize_baseline",
    "summarize_history",
]
