import pytest

from business_rules import format_violations, validate_business_rules
from main import SimulationConstraints, run_simulation
from strategy import Strategy

HEALTHY = {
    'cash': 10000.0,
    'custom_wip': 100,
    'custom_delivery_time': 4.0,
    'stockout_days': 0,
    'standard_production': 20,
    'custom_production': 10,
}


def record(state, days):
    """days: list of per-day overrides of HEALTHY, recorded from day 51 on."""
    state.rejected_material_orders = 0
    for i, changes in enumerate(days):
        state.history.record(51 + i, dict(HEALTHY, **changes))
    return state


def rules_of(report):
    return [v.rule for v in report.violations]


def test_healthy_run_passes(state):
    report = validate_business_rules(record(state, [{}] * 30))
    assert report.valid
    assert report.violations == []
    assert format_violations(report) == "All business rules passed"


def test_empty_history_passes(state):
    assert validate_business_rules(state).valid


def test_late_delivery_is_critical(state):
    days = [{}] * 30
    days[3] = {'custom_delivery_time': 9.0}
    report = validate_business_rules(record(state, days))
    assert not report.valid
    late = report.violations[0]
    assert late.rule == 'max_custom_delivery_days'
    assert (late.day, late.value, late.days) == (54, 9.0, [54])


def test_service_level_uses_target(state):
    days = [{'custom_delivery_time': 6.0}] * 5 + [{}] * 5
    report = validate_business_rules(record(state, days))
    assert rules_of(report) == ['min_custom_service_level']
    assert report.violations[0].value == pytest.approx(0.5)
    assert validate_business_rules(state, target_delivery_days=6).valid


def test_wip_ceiling_and_negative_cash(state):
    days = [{}] * 20
    days[5] = {'custom_wip': 361}
    days[7] = {'cash': -1.0}
    report = validate_business_rules(record(state, days))
    assert rules_of(report) == ['max_custom_wip', 'min_cash']
    assert report.critical_count == 2
    assert report.violations[1].days == [58]


def test_stockout_streak_is_major(state):
    # cumulative counter: stockouts on days 61, 62 and 63 of a 100-day run
    counts = [0] * 10 + [1, 2, 3] + [3] * 87
    report = validate_business_rules(record(state, [{'stockout_days': c} for c in counts]))
    assert rules_of(report) == ['max_consecutive_stockout_days']
    assert report.valid
    assert report.major_count == 1
    assert report.violations[0].days == [61, 62, 63]


def test_rejections_and_product_mix(state):
    record(state, [{'custom_production': 1, 'standard_production': 20}] * 10)
    state.rejected_material_orders = 2
    report = validate_business_rules(state)
    assert rules_of(report) == ['max_rejected_orders_per_100', 'min_custom_production_ratio']
    assert "2 major" in format_violations(report)


def test_rule_thresholds_can_be_overridden(state):
    record(state, [{'custom_wip': 200}] * 5)
    assert not validate_business_rules(state, rules={'max_custom_wip': 150}).valid


def test_report_on_a_real_run():
    result = run_simulation(Strategy(), SimulationConstraints(end_day=80), seed=3)
    report = validate_business_rules(result.state).to_dict()
    assert set(report) == {'valid', 'critical_count', 'major_count', 'violations'}
    assert all(v['severity'] in ('CRITICAL', 'MAJOR') for v in report['violations'])
