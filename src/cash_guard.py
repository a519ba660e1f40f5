"""
Cash-safety guard.

A single forward pass over an action list that tracks *estimated* cash and
inserts a TAKE_LOAN right before any action that would push it under the
threshold. The real per-day accounting in finance.py is untouched.
"""
import math
from typing import Callable, Dict, List

from config import CASH_GUARD_CONFIG
from strategy import (
    BuyMachine,
    HireRookie,
    OrderMaterials,
    PayDebt,
    StrategyAction,
    TakeLoan,
)

_ESTIMATORS: Dict[type, Callable[[StrategyAction], float]] = {
    HireRookie: lambda a: -CASH_GUARD_CONFIG['hire_cost_per_worker'] * max(0, a.count),
    BuyMachine: lambda a: -CASH_GUARD_CONFIG['machine_cost_per_unit'] * max(0, a.count),
    OrderMaterials: lambda a: -CASH_GUARD_CONFIG['material_cost_per_unit'] * max(0, a.quantity),
    TakeLoan: lambda a: max(0.0, a.amount),
    PayDebt: lambda a: -max(0.0, a.amount),
}

def estimate_cash_impact(action: StrategyAction) -> float:
    estimator = _ESTIMATORS.get(type(action))
    return float(estimator(action)) if estimator else 0.0

def safety_loan_amount(shortfall: float, min_cash_threshold: float) -> float:
    rounding = CASH_GUARD_CONFIG['loan_rounding']
    needed = shortfall + CASH_GUARD_CONFIG['buffer_fraction'] * min_cash_threshold
    return float(math.ceil(needed / rounding) * rounding)

def ensure_sufficient_cash(actions: List[StrategyAction], starting_cash: float,
                           min_cash_threshold: float = CASH_GUARD_CONFIG['min_cash_threshold']) -> List[StrategyAction]:
    guarded: List[StrategyAction] = []
    projected = float(starting_cash)
    for i, action in enumerate(actions):
        delta = estimate_cash_impact(action)
        if delta < 0 and projected + delta < min_cash_threshold:
            shortfall = min_cash_threshold - (projected + delta)
            loan = TakeLoan(day=action.day, amount=safety_loan_amount(shortfall, min_cash_threshold))
            # identical same-day actions collapse in a Strategy; step the amount until it is distinct
            while loan in guarded or loan in actions[i + 1:]:
                loan = TakeLoan(day=loan.day, amount=loan.amount + CASH_GUARD_CONFIG['loan_rounding'])
            guarded.append(loan)
            projected += loan.amount
        guarded.append(action)
        projected += delta
    return guarded
