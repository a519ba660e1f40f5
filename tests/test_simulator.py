import math

import numpy as np
import pytest

from config import CUSTOM_LINE_MAX_WIP
from main import SimulationConstraints, run_simulation
from simulator import simulate_day
from state import initialize_state
from strategy import AdjustMCEAllocation, DEFAULT_STRATEGY, HireRookie, Policy, Strategy


@pytest.fixture(scope="module")
def default_run():
    return run_simulation(constraints=SimulationConstraints(end_day=140), seed=11)


def test_first_day_reorder_is_rejected_when_insolvent(state, policy, rng):
    simulate_day(state, policy, [], rng)
    assert state.rejected_material_orders == 1
    assert state.raw_material_inventory == 0
    assert state.pending_raw_material_orders == []
    assert state.events.of_type('material_order_rejected')[0]['day'] == 51
    assert state.current_day == 52


def test_first_day_reorder_when_affordable(rich_state, policy, rng):
    policy.reorder_point = 200
    simulate_day(rich_state, policy, [], rng)
    assert rich_state.rejected_material_orders == 0
    assert rich_state.pending_raw_material_orders[0].arrival_day == 55


def test_hired_rookies_promote_on_day_75():
    strategy = Strategy(timed_actions=(HireRookie(day=60, count=2),))
    state = initialize_state()
    policy = Policy.from_strategy(strategy)
    rng = np.random.default_rng(3)
    by_day = strategy.actions_by_day()
    while state.current_day <= 60:
        simulate_day(state, policy, by_day.get(state.current_day, []), rng)
    trainees = state.workforce.rookies_in_training
    assert [t.remaining_days for t in trainees] == [15, 15]
    assert all(t.hire_day == 60 for t in trainees)

    history = run_simulation(strategy, SimulationConstraints(end_day=76), seed=3).state.history
    assert history.value_on('rookies', 60) == history.value_on('rookies', 59) + 2
    assert history.value_on('experts', 74) == 1
    assert history.value_on('experts', 75) == 3
    assert history.value_on('rookies_in_training', 75) == 0


def test_full_custom_allocation_starves_standard_line():
    strategy = Strategy(timed_actions=(AdjustMCEAllocation(day=60, value=1.0),))
    history = run_simulation(strategy, SimulationConstraints(end_day=90), seed=5).state.history
    for day in range(61, 91):
        assert history.value_on('standard_mce_consumption', day) == 0
        assert history.value_on('arcp_standard_share', day) == 0
    assert min(history.values('arcp_standard_share')) >= 0


def test_allocation_of_one_from_the_start():
    strategy = DEFAULT_STRATEGY.with_overrides({'mce_allocation_custom': 1.0})
    history = run_simulation(strategy, SimulationConstraints(end_day=70), seed=5).state.history
    assert set(history.values('standard_mce_consumption')) == {0.0}
    assert set(history.values('arcp_standard_share')) == {0.0}


def test_arcp_split(default_run):
    history = default_run.state.history
    for day, row in history.iter_days():
        total = row['arcp_capacity']
        assert row['arcp_custom_share'] + row['arcp_standard_share'] == pytest.approx(total)
        assert row['arcp_custom_share'] == pytest.approx(total * 0.7)


def test_raw_material_conservation(default_run):
    history = default_run.state.history
    previous = 0.0
    for day, row in history.iter_days():
        available = previous + row['raw_material_arrivals']
        assert row['raw_material_consumed'] <= available
        assert row['raw_material'] == available - row['raw_material_consumed']
        previous = row['raw_material']


def test_counters_never_decrease(default_run):
    history = default_run.state.history
    for name in ('rejected_material_orders', 'stockout_days', 'lost_production_days'):
        series = history.values(name)
        assert all(b >= a for a, b in zip(series, series[1:])), name


def test_cash_and_debt_stay_finite(default_run):
    history = default_run.state.history
    assert all(math.isfinite(v) for v in history.values('cash'))
    assert all(d >= 0 for d in history.values('debt'))


def test_custom_wip_ceiling():
    strategy = DEFAULT_STRATEGY.with_overrides({'custom_demand_mean_1': 200, 'custom_demand_std_dev_1': 0})
    result = run_simulation(strategy, SimulationConstraints(end_day=60), seed=1)
    assert max(result.state.history.values('custom_wip')) <= CUSTOM_LINE_MAX_WIP
    assert result.state.dropped_custom_orders > 0
    assert result.state.events.of_type('custom_orders_dropped')


def test_standard_demand_follows_price(default_run):
    assert set(default_run.state.history.values('standard_demand')) == {312.0}


def test_same_seed_same_history():
    constraints = SimulationConstraints(end_day=100)
    first = run_simulation(constraints=constraints, seed=21).state.history.to_dict()
    second = run_simulation(constraints=constraints, seed=21).state.history.to_dict()
    assert first == second


def test_history_is_contiguous(default_run):
    assert default_run.state.history.days == list(range(51, 141))
    assert default_run.state.current_day == 141


def test_run_does_not_touch_initial_state():
    initial = initialize_state()
    run_simulation(constraints=SimulationConstraints(end_day=55), initial_state=initial)
    assert initial.current_day == 51
    assert len(initial.history) == 0


def test_end_day_before_start_is_rejected():
    with pytest.raises(ValueError):
        run_simulation(constraints=SimulationConstraints(end_day=10))


def test_unknown_initial_state():
    with pytest.raises(ValueError):
        initialize_state('utopia')
