import math
from typing import Any, Dict
import numpy as np
from scipy import stats
from config import (
    FORMULA_SEED_CONFIG,
    MACHINE_PRICES,
    RAW_MATERIAL_CONFIG,
    SIMULATION_END_DAY,
    STANDARD_LINE_CONFIG,
    WORKFORCE_CONFIG,
    MCE_UNITS_PER_MACHINE_PER_DAY,
)
def calculate_eoq(annual_demand: float, ordering_cost: float, holding_cost_per_unit: float) -> Dict[str, Any]:
    if annual_demand <= 0 or ordering_cost < 0 or holding_cost_per_unit <= 0:
        return {"error": "EOQ needs positive demand and holding cost"}
    eoq = math.sqrt((2 * annual_demand * ordering_cost) / holding_cost_per_unit)
    return {"value": eoq, "D": annual_demand, "S": ordering_cost, "H": holding_cost_per_unit,
            "orders_per_year": annual_demand / eoq if eoq else 0.0, "model": "EOQ"}
def z_score(service_level: float) -> float:
    if not 0 < service_level < 1:
        raise ValueError("Service level must be strictly between 0 and 1.")
    return float(stats.norm.ppf(service_level))
def calculate_rop(average_daily_demand: float, lead_time_days: float, demand_std_dev: float,
                  service_level: float = 0.95) -> Dict[str, Any]:
    if average_daily_demand < 0 or lead_time_days < 0 or demand_std_dev < 0:
        return {"error": "ROP inputs must be non-negative"}
    z = z_score(service_level)
    safety_stock = z * demand_std_dev * math.sqrt(lead_time_days)
    rop = average_daily_demand * lead_time_days + safety_stock
    return {"value": rop, "safety_stock": safety_stock, "z": z, "model": "ROP"}
def calculate_epq(annual_demand: float, setup_cost: float, holding_cost_per_unit: float,
                  daily_demand_rate: float, daily_production_rate: float) -> Dict[str, Any]:
    if daily_production_rate <= 0 or daily_demand_rate >= daily_production_rate:
        return {"error": "Production rate must exceed demand rate (d < p)"}
    if annual_demand <= 0 or holding_cost_per_unit <= 0:
        return {"error": "EPQ needs positive demand and holding cost"}
    ratio = 1 - daily_demand_rate / daily_production_rate
    epq = math.sqrt((2 * annual_demand * setup_cost) / (holding_cost_per_unit * ratio))
    return {"value": epq, "ratio": ratio, "model": "EPQ"}
def mmc_model(lam: float, mu: float, c: int) -> Dict[str, Any]:
    c = int(c)
    if c < 1 or mu <= 0:
        return {"error": "Need at least one server and a positive service rate"}
    if lam <= 0:
        return {"rho": 0.0, "Lq": 0.0, "Wq": 0.0, "L": 0.0, "W": 1 / mu, "C_c": 0.0, "model": f"M/M/{c}"}
    if lam >= c * mu:
        return {"error": "Arrival rate must be less than total service capacity (λ < c*μ)"}
    rho = lam / (c * mu)
    term1 = ((c * rho) ** c) / math.factorial(c)
    sum_term = sum([((c * rho) ** i) / math.factorial(i) for i in range(c)])
    C_c = term1 / (term1 + (1 - rho) * sum_term)
    Lq = C_c * (rho / (1 - rho))
    Wq = Lq / lam
    W = Wq + (1 / mu)
    L = lam * W
    return {"rho": rho, "Lq": Lq, "Wq": Wq, "L": L, "W": W, "C_c": C_c, "model": f"M/M/{c}"}
def queue_wait_time(arrival_rate: float, service_rate: float, num_servers: int) -> float:
    """Expected wait in queue (days) at the ARCP station, infinite when unstable."""
    result = mmc_model(arrival_rate, service_rate, num_servers)
    return math.inf if "error" in result else result["Wq"]
def calculate_npv(initial_investment: float, daily_cash_flow: float, days_remaining: int,
                  daily_discount_rate: float) -> Dict[str, Any]:
    days = np.arange(1, max(0, int(days_remaining)) + 1)
    discounted = daily_cash_flow / np.power(1 + daily_discount_rate, days)
    pv = float(discounted.sum())
    npv = pv - initial_investment
    payback = initial_investment / daily_cash_flow if daily_cash_flow > 0 else math.inf
    return {"value": npv, "present_value": pv, "payback_days": payback, "model": "NPV"}
def calculate_optimal_price(demand_intercept: float, price_slope: float, unit_cost: float) -> Dict[str, Any]:
    # Q = a + bP with b < 0; profit (P - c)Q peaks at (bc - a) / 2b
    if price_slope >= 0:
        return {"error": "Demand must slope downward (b < 0)"}
    price = (price_slope * unit_cost - demand_intercept) / (2 * price_slope)
    quantity = demand_intercept + price_slope * price
    return {"value": price, "quantity": quantity, "revenue": price * quantity,
            "profit": (price - unit_cost) * quantity, "model": "LinearDemandPrice"}
def price_elasticity(demand_intercept: float, price_slope: float, price: float) -> float:
    quantity = demand_intercept + price_slope * price
    if quantity <= 0:
        return -math.inf
    return price_slope * price / quantity
def analytical_recommendations(params: Dict[str, Any], state, end_day: int = SIMULATION_END_DAY) -> Dict[str, Any]:
    """
    Closed-form policy recommendations for the current state, used to seed the
    optimizer. Keys are only present when the underlying formula is defined.
    """
    cfg = FORMULA_SEED_CONFIG
    recs: Dict[str, Any] = {}
    # Inventory policy
    eoq = calculate_eoq(cfg['annual_material_demand'], RAW_MATERIAL_CONFIG['order_fee'], cfg['material_holding_cost'])
    if "error" not in eoq:
        recs['order_quantity'] = eoq['value']
    rop = calculate_rop(cfg['daily_material_demand'], RAW_MATERIAL_CONFIG['lead_time_days'],
                        cfg['material_demand_std_dev'], cfg['service_level'])
    if "error" not in rop:
        recs['reorder_point'] = rop['value']
    # Batch size from EPQ on the standard line
    standard_daily = max(0.0, params['standard_demand_intercept'] + params['standard_demand_slope'] * params['standard_price'])
    arcp_rate = state.workforce.experts * WORKFORCE_CONFIG['expert_productivity'] * (1 - params['mce_allocation_custom'])
    mce_rate = state.machines.MCE * MCE_UNITS_PER_MACHINE_PER_DAY * (1 - params['mce_allocation_custom'])
    production_rate = max(arcp_rate, mce_rate)
    demand_rate = min(standard_daily, production_rate * 0.9)
    epq = calculate_epq(demand_rate * 365, STANDARD_LINE_CONFIG['production_order_fee'],
                        params['standard_price'] * cfg['batch_holding_cost_fraction'],
                        demand_rate, production_rate)
    if "error" not in epq:
        recs['standard_batch_size'] = epq['value']
    # Hiring from ARCP queue wait
    arrival = params['custom_demand_mean_1'] * params['mce_allocation_custom'] + demand_rate
    mu = WORKFORCE_CONFIG['expert_productivity']
    servers = max(1, state.workforce.experts + int(state.workforce.rookies * WORKFORCE_CONFIG['rookie_productivity_factor']))
    wait = queue_wait_time(arrival, mu, servers)
    if wait > cfg['target_arcp_wait_days']:
        needed = math.ceil(arrival / (mu * cfg['target_utilization']))
        recs['hire_rookies'] = max(1, needed - servers)
    recs['arcp_wait_days'] = wait
    # Machine purchase from NPV of extra standard throughput
    days_left = max(0, end_day - state.current_day)
    unit_margin = params['standard_price'] - cfg['standard_unit_cost']
    npv = calculate_npv(MACHINE_PRICES['MCE']['buy'], unit_margin * cfg['machine_extra_units_per_day'],
                        days_left, cfg['npv_daily_discount_rate'])
    recs['machine_npv'] = npv['value']
    if npv['value'] > 0:
        recs['buy_machine'] = 'MCE'
    # Price
    price = calculate_optimal_price(params['standard_demand_intercept'], params['standard_demand_slope'],
                                    cfg['standard_unit_cost'])
    if "error" not in price:
        recs['standard_price'] = price['value']
    return recs
