from typing import Dict, List
from config import RAW_MATERIAL_CONFIG
from finance import get_financial_health, process_payment, take_loan, covering_loan_amount
from state import RawMaterialOrder
def material_order_cost(quantity: int) -> float:
    if quantity <= 0:
        return 0.0
    return quantity * RAW_MATERIAL_CONFIG['unit_cost'] + RAW_MATERIAL_CONFIG['order_fee']
def _book_order(state, quantity: int, cost: float) -> RawMaterialOrder:
    order = RawMaterialOrder(
        order_day=state.current_day,
        quantity=quantity,
        arrival_day=state.current_day + RAW_MATERIAL_CONFIG['lead_time_days'],
        cost=cost,
    )
    state.pending_raw_material_orders.append(order)
    state.ledger.material_cost += cost
    state.ledger.material_orders_placed += 1
    state.events.log('material_order_placed', state.current_day, quantity=quantity, cost=cost,
                     arrival_day=order.arrival_day)
    return order
def place_material_order(state, quantity: int) -> RawMaterialOrder:
    quantity = max(0, int(quantity))
    cost = material_order_cost(quantity)
    process_payment(state, cost, description=f"raw material x{quantity}")
    return _book_order(state, quantity, cost)
def try_reorder(state, quantity: int):
    """
    Automatic reorder. Cash covers the order directly; otherwise a regular loan
    is attempted, which only a solvent business gets. Returns the order or None.
    """
    quantity = max(0, int(quantity))
    if quantity <= 0:
        return None
    cost = material_order_cost(quantity)
    if state.cash < cost:
        if not get_financial_health(state).is_solvent:
            state.rejected_material_orders += 1
            state.events.log('material_order_rejected', state.current_day, quantity=quantity, cost=cost, cash=state.cash)
            return None
        take_loan(state, covering_loan_amount(cost - state.cash, is_salary_loan=False),
                  is_salary_loan=False, description='material financing')
    state.cash -= cost
    state.ledger.expenses += cost
    return _book_order(state, quantity, cost)
def receive_arrivals(state) -> int:
    arrived: List[RawMaterialOrder] = [o for o in state.pending_raw_material_orders if o.arrival_day == state.current_day]
    if not arrived:
        return 0
    state.pending_raw_material_orders = [o for o in state.pending_raw_material_orders if o.arrival_day != state.current_day]
    units = sum(o.quantity for o in arrived)
    state.raw_material_inventory += units
    state.ledger.raw_material_arrivals += units
    state.events.log('material_arrived', state.current_day, quantity=units, orders=len(arrived))
    return units
def consume_material(state, parts: int) -> int:
    taken = min(max(0, int(parts)), state.raw_material_inventory)
    state.raw_material_inventory -= taken
    state.ledger.raw_material_consumed += taken
    return taken
def inventory_status(state) -> Dict[str, int]:
    pending = sum(o.quantity for o in state.pending_raw_material_orders)
    return {
        'on_hand': state.raw_material_inventory,
        'pending': pending,
        'position': state.raw_material_inventory + pending,
        'pending_orders': len(state.pending_raw_material_orders),
    }
