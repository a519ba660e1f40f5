"""
Action applier: turns a scheduled StrategyAction into a state/policy change.

Every action type has exactly one handler in _HANDLERS. Payloads are clamped
to valid bounds instead of being rejected, and purchases go through
finance.process_payment so a short cash balance is financed, never refused.
"""
import math
from typing import Callable, Dict, List

from config import MACHINE_PRICES, MACHINE_TYPES
from finance import pay_debt, process_payment, take_loan
from inventory_utils import place_material_order
from strategy import (
    AdjustBatchSize,
    AdjustMCEAllocation,
    AdjustPrice,
    BuyMachine,
    FireEmployee,
    HireRookie,
    OrderMaterials,
    PayDebt,
    SellMachine,
    SetOrderQuantity,
    SetReorderPoint,
    StrategyAction,
    TakeLoan,
)
from workforce import hire_rookies, remove_employees

def _count(value) -> int:
    if value is None or not math.isfinite(value):
        return 0
    return max(0, int(value))

def _amount(value) -> float:
    if value is None or not math.isfinite(value):
        return 0.0
    return max(0.0, float(value))

def _hire_rookie(state, policy, action: HireRookie):
    return {'hired': hire_rookies(state, _count(action.count))}

def _fire_employee(state, policy, action: FireEmployee):
    employee_type = 'expert' if action.employee_type == 'expert' else 'rookie'
    return {'fired': remove_employees(state, employee_type, _count(action.count))}

def _buy_machine(state, policy, action: BuyMachine):
    if action.machine_type not in MACHINE_TYPES:
        return {'bought': 0}
    count = _count(action.count)
    if count:
        process_payment(state, MACHINE_PRICES[action.machine_type]['buy'] * count,
                        description=f"buy {count} {action.machine_type}")
        state.machines.set_count(action.machine_type, state.machines.count(action.machine_type) + count)
    return {'bought': count}

def _sell_machine(state, policy, action: SellMachine):
    if action.machine_type not in MACHINE_TYPES:
        return {'sold': 0}
    # one machine of each type always stays
    sellable = state.machines.count(action.machine_type) - 1
    count = min(_count(action.count), sellable)
    if count > 0:
        state.machines.set_count(action.machine_type, state.machines.count(action.machine_type) - count)
        proceeds = MACHINE_PRICES[action.machine_type]['sell'] * count
        state.cash += proceeds
        state.ledger.revenue += proceeds
    return {'sold': max(0, count)}

def _set_order_quantity(state, policy, action: SetOrderQuantity):
    policy.order_quantity = _count(action.value)
    return {'order_quantity': policy.order_quantity}

def _set_reorder_point(state, policy, action: SetReorderPoint):
    policy.reorder_point = _count(action.value)
    return {'reorder_point': policy.reorder_point}

def _adjust_batch_size(state, policy, action: AdjustBatchSize):
    policy.standard_batch_size = max(1, _count(action.value))
    return {'standard_batch_size': policy.standard_batch_size}

def _adjust_price(state, policy, action: AdjustPrice):
    if action.product_type == 'custom':
        policy.custom_base_price = _amount(action.value)
        return {'custom_base_price': policy.custom_base_price}
    policy.standard_price = _amount(action.value)
    return {'standard_price': policy.standard_price}

def _adjust_mce_allocation(state, policy, action: AdjustMCEAllocation):
    value = action.value if action.value is not None and math.isfinite(action.value) else policy.mce_allocation_custom
    policy.mce_allocation_custom = min(1.0, max(0.0, float(value)))
    return {'mce_allocation_custom': policy.mce_allocation_custom}

def _take_loan(state, policy, action: TakeLoan):
    loan = take_loan(state, _amount(action.amount), is_salary_loan=False, description='scheduled loan')
    return {'borrowed': loan.amount}

def _pay_debt(state, policy, action: PayDebt):
    payment = pay_debt(state, _amount(action.amount))
    return {'repaid': payment.paid}

def _order_materials(state, policy, action: OrderMaterials):
    quantity = _count(action.quantity)
    if quantity:
        place_material_order(state, quantity)
    return {'ordered': quantity}

_HANDLERS: Dict[type, Callable] = {
    HireRookie: _hire_rookie,
    FireEmployee: _fire_employee,
    BuyMachine: _buy_machine,
    SellMachine: _sell_machine,
    SetOrderQuantity: _set_order_quantity,
    SetReorderPoint: _set_reorder_point,
    AdjustBatchSize: _adjust_batch_size,
    AdjustPrice: _adjust_price,
    AdjustMCEAllocation: _adjust_mce_allocation,
    TakeLoan: _take_loan,
    PayDebt: _pay_debt,
    OrderMaterials: _order_materials,
}

def apply_action(state, policy, action: StrategyAction) -> dict:
    handler = _HANDLERS.get(type(action))
    if handler is None:
        raise TypeError(f"No handler for action type {type(action).__name__}")
    outcome = handler(state, policy, action)
    state.history.record_action(state.current_day, action.to_dict())
    state.events.log('action_applied', state.current_day, action=action.action_type, **outcome)
    return outcome

def apply_actions_for_day(state, policy, actions: List[StrategyAction]) -> List[dict]:
    """Applies, in list order, the actions scheduled for the state's current day."""
    return [apply_action(state, policy, a) for a in actions if a.day == state.current_day]
