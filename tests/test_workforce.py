import numpy as np
import pytest

from workforce import (
    arcp_capacity,
    hire_rookies,
    process_quit_risk,
    process_training,
    salary_cost,
    track_overtime,
)


def test_arcp_capacity(state):
    assert arcp_capacity(state.workforce) == pytest.approx(3 + 3 * 0.4)


def test_salary_and_overtime(state):
    cost = salary_cost(state.workforce)
    assert cost.total == 235
    cost = salary_cost(state.workforce, overtime_hours=2)
    assert cost.overtime == pytest.approx(2 * 1.5 * (150 / 8 + 85 / 8))


def test_training_promotes_after_fifteen_ticks(state):
    hire_rookies(state, 1)
    for _ in range(14):
        process_training(state)
    assert state.workforce.experts == 1
    promoted = process_training(state)
    assert len(promoted) == 1
    assert state.workforce.experts == 2
    assert state.workforce.rookies == 1
    assert state.events.of_type('rookie_promoted')


def test_quit_risk_waits_for_trigger(state, policy):
    policy.daily_quit_probability = 1.0
    rng = np.random.default_rng(0)
    for _ in range(policy.overtime_trigger_days - 1):
        track_overtime(state, True)
    assert process_quit_risk(state, policy, rng) == 0
    track_overtime(state, True)
    assert process_quit_risk(state, policy, rng) == 2
    assert state.workforce.experts == 0 and state.workforce.rookies == 0


def test_overtime_streak_resets(state):
    track_overtime(state, True)
    track_overtime(state, True)
    assert track_overtime(state, False) == 0
