"""
Business-rule checks over a finished run.

Each rule reads the recorded history and yields at most one violation that
lists every offending day. CRITICAL violations make the run invalid.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np

from config import BUSINESS_RULES, DEFAULT_STRATEGY_PARAMS

CRITICAL = 'CRITICAL'
MAJOR = 'MAJOR'

@dataclass
class RuleViolation:
    rule: str
    severity: str
    message: str
    day: int
    value: float
    threshold: float
    days: List[int] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.__dict__)

@dataclass
class BusinessRulesReport:
    violations: List[RuleViolation] = field(default_factory=list)

    @property
    def critical_count(self) -> int:
        return sum(1 for v in self.violations if v.severity == CRITICAL)

    @property
    def major_count(self) -> int:
        return sum(1 for v in self.violations if v.severity == MAJOR)

    @property
    def valid(self) -> bool:
        return self.critical_count == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'valid': self.valid,
            'critical_count': self.critical_count,
            'major_count': self.major_count,
            'violations': [v.to_dict() for v in self.violations],
        }

def _series(history, name: str) -> np.ndarray:
    return np.asarray(history.values(name), dtype=float) if name in history.metric_names else np.zeros(0)

def _longest_run(flags) -> int:
    longest = current = 0
    for flag in flags:
        current = current + 1 if flag else 0
        longest = max(longest, current)
    return longest

def validate_business_rules(state, rules: Dict[str, float] = None,
                            target_delivery_days: Optional[float] = None) -> BusinessRulesReport:
    rules = dict(BUSINESS_RULES, **(rules or {}))
    if target_delivery_days is None:
        target_delivery_days = DEFAULT_STRATEGY_PARAMS['custom_target_delivery_days']
    history = state.history
    report = BusinessRulesReport()
    if not len(history):
        return report
    days = np.asarray(history.days)
    last_day = int(days[-1])
    n_days = len(days)

    def add(rule, severity, message, value, threshold, bad_days=None):
        bad_days = [int(d) for d in bad_days] if bad_days is not None else []
        day = bad_days[0] if bad_days else last_day
        report.violations.append(RuleViolation(rule, severity, message, day, float(value), float(threshold), bad_days))

    # --- Customer service ---
    delivery = _series(history, 'custom_delivery_time')
    late = delivery > rules['max_custom_delivery_days']
    if late.any():
        add('max_custom_delivery_days', CRITICAL,
            f"Custom delivery time exceeded {rules['max_custom_delivery_days']} days on {int(late.sum())} day(s)",
            delivery.max(), rules['max_custom_delivery_days'], days[late])
    shipping = delivery[delivery > 0]
    if len(shipping):
        service_level = float(np.mean(shipping <= target_delivery_days))
        if service_level < rules['min_custom_service_level']:
            add('min_custom_service_level', CRITICAL,
                f"Only {service_level:.1%} of shipping days met the {target_delivery_days}-day delivery target",
                service_level, rules['min_custom_service_level'])

    # --- Capacity and cash ---
    wip = _series(history, 'custom_wip')
    over = wip > rules['max_custom_wip']
    if over.any():
        add('max_custom_wip', CRITICAL, f"Custom WIP exceeded {rules['max_custom_wip']} orders on {int(over.sum())} day(s)",
            wip.max(), rules['max_custom_wip'], days[over])
    cash = _series(history, 'cash')
    short = cash < rules['min_cash']
    if short.any():
        add('min_cash', CRITICAL, f"Cash fell below ${rules['min_cash']:,.2f} on {int(short.sum())} day(s)",
            cash.min(), rules['min_cash'], days[short])

    # --- Inventory ---
    stockouts = np.diff(_series(history, 'stockout_days'), prepend=0.0) > 0
    streak = _longest_run(stockouts)
    if streak > rules['max_consecutive_stockout_days']:
        add('max_consecutive_stockout_days', MAJOR, f"{streak} consecutive stockout days",
            streak, rules['max_consecutive_stockout_days'], days[stockouts])
    per_100 = stockouts.sum() / n_days * 100
    if per_100 > rules['max_stockout_days_per_100']:
        add('max_stockout_days_per_100', MAJOR, f"{per_100:.1f} stockout days per 100 days",
            per_100, rules['max_stockout_days_per_100'], days[stockouts])
    rejected_per_100 = state.rejected_material_orders / n_days * 100
    if rejected_per_100 > rules['max_rejected_orders_per_100']:
        add('max_rejected_orders_per_100', MAJOR, f"{rejected_per_100:.1f} material orders rejected per 100 days",
            rejected_per_100, rules['max_rejected_orders_per_100'])

    # --- Product mix ---
    standard = _series(history, 'standard_production').sum()
    custom = _series(history, 'custom_production').sum()
    if standard + custom > 0:
        ratio = custom / (standard + custom)
        if ratio < rules['min_custom_production_ratio']:
            add('min_custom_production_ratio', MAJOR, f"Custom orders are only {ratio:.1%} of total output",
                ratio, rules['min_custom_production_ratio'])
    return report

def format_violations(report: BusinessRulesReport) -> str:
    if report.valid and not report.violations:
        return "All business rules passed"
    lines = [f"Business rules: {report.critical_count} critical, {report.major_count} major"]
    for v in report.violations:
        lines.append(f"  {v.severity}: {v.rule}: {v.message}")
    return "\n".join(lines)
