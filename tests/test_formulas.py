import math

import pytest

from formulas import (
    analytical_recommendations,
    calculate_eoq,
    calculate_epq,
    calculate_npv,
    calculate_optimal_price,
    calculate_rop,
    mmc_model,
    price_elasticity,
    queue_wait_time,
    z_score,
)
from strategy import DEFAULT_STRATEGY


def test_eoq():
    result = calculate_eoq(1000, 100, 2)
    assert result["value"] == pytest.approx(math.sqrt(100000))
    assert "error" in calculate_eoq(1000, 100, 0)


def test_z_score_and_rop():
    assert z_score(0.95) == pytest.approx(1.6449, abs=1e-4)
    with pytest.raises(ValueError):
        z_score(1.0)
    rop = calculate_rop(300, 4, 50, 0.95)
    assert rop["value"] == pytest.approx(1200 + z_score(0.95) * 50 * 2)


def test_epq_requires_production_above_demand():
    assert "error" in calculate_epq(1000, 100, 2, 10, 10)
    ok = calculate_epq(3650, 100, 2, 10, 20)
    assert ok["value"] == pytest.approx(math.sqrt(2 * 3650 * 100 / (2 * 0.5)))


def test_single_server_queue_matches_mm1():
    result = mmc_model(2, 3, 1)
    assert result["Wq"] == pytest.approx(2 / 3)
    assert result["rho"] == pytest.approx(2 / 3)


def test_unstable_queue_waits_forever():
    assert "error" in mmc_model(10, 3, 2)
    assert math.isinf(queue_wait_time(10, 3, 2))
    assert queue_wait_time(0, 3, 2) == 0.0


def test_npv_without_discount():
    result = calculate_npv(500, 100, 10, 0.0)
    assert result["value"] == pytest.approx(500)
    assert result["payback_days"] == pytest.approx(5)


def test_optimal_price_for_linear_demand():
    result = calculate_optimal_price(500, -0.25, 100)
    assert result["value"] == pytest.approx(1050)
    assert "error" in calculate_optimal_price(500, 0.1, 100)
    assert price_elasticity(500, -0.25, 750) < 0


def test_recommendations_for_business_case(state):
    recs = analytical_recommendations(DEFAULT_STRATEGY.params, state, 415)
    for key in ("order_quantity", "reorder_point", "standard_price"):
        assert recs[key] > 0
    assert "arcp_wait_days" in recs
