"""
Day-step simulator: advances a SimulationState by exactly one day.

The steps run in a fixed order because each one sees the contention outcome
of the ones before it:

     1. raw material arrivals
     2. automatic reorder
     3. rookie training tick
     4. demand
     5. MCE material consumption (custom first, then standard)
     6. custom pipeline (WMA pass 1 -> PUC -> WMA pass 2)
     7. standard pipeline batching
     8. ARCP allocation
     9. shipping
    10. finance (interest, payroll, overtime, quit risk, debt management)
    11. scheduled actions
    12. history

Shortfalls never raise; they end up in counters or in automatic financing.
"""
import math
from typing import Dict, List

import numpy as np

from actions import apply_actions_for_day
from config import (
    CUSTOM_LINE_CONFIG,
    CUSTOM_LINE_MAX_WIP,
    MCE_UNITS_PER_MACHINE_PER_DAY,
    RAW_MATERIAL_CONFIG,
    STANDARD_LINE_CONFIG,
    WORKFORCE_CONFIG,
)
from finance import (
    add_revenue,
    apply_cash_interest,
    apply_debt_interest,
    automated_debt_management,
    process_payment,
)
from forecasting import DemandGenerator, custom_price
from inventory_utils import consume_material, inventory_status, receive_arrivals, try_reorder
from state import CustomOrder, DailyLedger, WIPBatch
from workforce import arcp_capacity, process_quit_risk, process_training, salary_cost, track_overtime

EPS = 1e-9

def _split_mce_capacity(machines, allocation: float):
    total = machines.MCE * MCE_UNITS_PER_MACHINE_PER_DAY
    custom = int(math.floor(total * allocation + EPS))
    return custom, total - custom

def _take_units(queue: List[WIPBatch], units: int, eligible=lambda b: True) -> int:
    """Removes up to `units` from the front of a FIFO batch queue; returns units taken."""
    taken = 0
    while queue and taken < units and eligible(queue[0]):
        batch = queue[0]
        take = min(batch.units, units - taken)
        batch.units -= take
        taken += take
        if batch.units == 0:
            queue.pop(0)
    return taken

def _push_batches(queue: List[WIPBatch], units: int, day: int, target: int, days: int) -> None:
    while units > 0:
        size = min(target, units)
        queue.append(WIPBatch(units=size, start_day=day, batching_days_remaining=days))
        units -= size

# --- Steps ---

def _admit_custom_orders(state, count: int) -> None:
    wip = state.custom_line_wip
    room = max(0, CUSTOM_LINE_MAX_WIP - len(wip))
    admitted = min(count, room)
    for _ in range(admitted):
        wip.orders.append(CustomOrder(order_id=wip.next_order_id, start_day=state.current_day,
                                      current_station='WAITING', stage_entry_day=state.current_day))
        wip.next_order_id += 1
    dropped = count - admitted
    state.ledger.custom_admitted = admitted
    state.ledger.custom_dropped = dropped
    if dropped:
        state.dropped_custom_orders += dropped
        state.events.log('custom_orders_dropped', state.current_day, dropped=dropped, wip=len(wip))

def _consume_materials(state, policy) -> None:
    day = state.current_day
    custom_cap, standard_cap = _split_mce_capacity(state.machines, policy.mce_allocation_custom)
    shortage = False

    # custom line draws first
    parts_per_order = RAW_MATERIAL_CONFIG['parts_per_custom_order']
    waiting = sorted(state.custom_line_wip.at_stage('WAITING'), key=lambda o: (o.start_day, o.order_id))
    for order in waiting[:custom_cap]:
        if state.raw_material_inventory < parts_per_order:
            shortage = True
            break
        consume_material(state, parts_per_order)
        order.current_station = 'WMA_PASS1'
        order.stage_entry_day = day
        state.ledger.custom_mce_orders += 1

    # standard line: release a new batch when nothing is waiting for MCE
    wip = state.standard_line_wip
    if standard_cap > 0 and not wip.pre_station1:
        batch_size = max(1, int(policy.standard_batch_size))
        process_payment(state, STANDARD_LINE_CONFIG['production_order_fee'], description='standard production order')
        wip.pre_station1.append(WIPBatch(units=batch_size, start_day=day))
    parts_per_unit = RAW_MATERIAL_CONFIG['parts_per_standard_unit']
    queued = wip.queue_units('pre_station1')
    wanted = min(standard_cap, queued)
    possible = min(wanted, state.raw_material_inventory // parts_per_unit)
    if possible < wanted:
        shortage = True
    if possible > 0:
        consume_material(state, possible * parts_per_unit)
        moved = _take_units(wip.pre_station1, possible)
        wip.station1.append(WIPBatch(units=moved, start_day=day))
        state.ledger.standard_mce_units = moved

    if shortage:
        state.lost_production_days += 1

def _advance_custom_pipeline(state) -> None:
    day = state.current_day
    wma_left = state.machines.WMA * CUSTOM_LINE_CONFIG['wma_capacity_per_machine']
    puc_left = state.machines.PUC * CUSTOM_LINE_CONFIG['puc_capacity_per_machine']
    min_days = CUSTOM_LINE_CONFIG['stage_processing_days']

    def ready(stage):
        orders = [o for o in state.custom_line_wip.orders
                  if o.current_station == stage and day - o.stage_entry_day >= min_days]
        return sorted(orders, key=lambda o: (o.start_day, o.order_id))

    # downstream first so no order moves two stages in one day
    for order in ready('WMA_PASS2'):
        if wma_left <= 0:
            break
        order.current_station, order.stage_entry_day = 'ARCP', day
        wma_left -= 1
    for order in ready('PUC'):
        if puc_left <= 0:
            break
        order.current_station, order.stage_entry_day = 'WMA_PASS2', day
        puc_left -= 1
    for order in ready('WMA_PASS1'):
        if wma_left <= 0:
            break
        order.current_station, order.stage_entry_day = 'PUC', day
        wma_left -= 1

def _advance_standard_pipeline(state) -> None:
    day = state.current_day
    wip = state.standard_line_wip
    for batch in wip.station2 + wip.station3:
        if batch.batching_days_remaining > 0 and batch.start_day < day:
            batch.batching_days_remaining -= 1
    # final batching complete -> finished goods
    done = [b for b in wip.station3 if b.batching_days_remaining <= 0]
    wip.station3 = [b for b in wip.station3 if b.batching_days_remaining > 0]
    completed = sum(b.units for b in done)
    state.finished_goods.standard += completed
    state.ledger.standard_completed = completed
    # through MCE -> initial batching
    units = wip.queue_units('station1')
    wip.station1 = []
    _push_batches(wip.station2, units, day, STANDARD_LINE_CONFIG['initial_batch_target'],
                  STANDARD_LINE_CONFIG['initial_batch_days'])

def _allocate_arcp(state, policy) -> List[CustomOrder]:
    day = state.current_day
    wip = state.standard_line_wip
    alloc = policy.mce_allocation_custom
    custom_queue = sorted([o for o in state.custom_line_wip.orders
                           if o.current_station == 'ARCP' and o.stage_entry_day < day],
                          key=lambda o: (o.start_day, o.order_id))
    standard_ready = sum(b.units for b in wip.station2 if b.batching_days_remaining <= 0)

    capacity = arcp_capacity(state.workforce)
    overtime = 0.0
    if policy.daily_overtime_hours > 0 and len(custom_queue) + standard_ready > capacity:
        overtime = float(policy.daily_overtime_hours)
        capacity *= 1 + overtime / WORKFORCE_CONFIG['shift_hours']
    custom_share = capacity * alloc
    standard_share = max(0.0, capacity * (1 - alloc))
    state.ledger.arcp_capacity = capacity
    state.ledger.arcp_custom_share = custom_share
    state.ledger.arcp_standard_share = standard_share
    state.ledger.overtime_hours = overtime

    # custom orders, oldest first
    credit = state.arcp_credit_custom + custom_share
    n_custom = min(len(custom_queue), int(math.floor(credit + EPS)))
    finished = custom_queue[:n_custom]
    state.arcp_credit_custom = credit - n_custom if len(custom_queue) > n_custom else 0.0
    finished_ids = {o.order_id for o in finished}
    state.custom_line_wip.orders = [o for o in state.custom_line_wip.orders if o.order_id not in finished_ids]

    # standard units whose initial batching is done
    credit = state.arcp_credit_standard + standard_share
    n_standard = min(standard_ready, int(math.floor(credit + EPS)))
    moved = _take_units(wip.station2, n_standard, eligible=lambda b: b.batching_days_remaining <= 0)
    state.arcp_credit_standard = credit - moved if standard_ready > moved else 0.0
    _push_batches(wip.station3, moved, day, STANDARD_LINE_CONFIG['final_batch_target'],
                  STANDARD_LINE_CONFIG['final_batch_days'])
    return finished

def _ship(state, policy, demand: Dict[str, int], finished: List[CustomOrder]) -> None:
    day = state.current_day
    ledger = state.ledger
    for order in finished:
        delivery = day - order.start_day
        price = custom_price(policy, delivery)
        add_revenue(state, price, description=f"custom order {order.order_id}")
        ledger.custom_delivery_days.append(delivery)
        ledger.custom_prices.append(price)
    ledger.custom_shipped = len(finished)

    shipped = min(state.finished_goods.standard, demand['standard'])
    state.finished_goods.standard -= shipped
    ledger.standard_shipped = shipped
    if shipped:
        add_revenue(state, shipped * policy.standard_price, description='standard sales')
    if demand['standard'] > shipped:
        state.stockout_days += 1

def _settle_finances(state, policy, rng) -> None:
    apply_debt_interest(state)
    apply_cash_interest(state)
    overtime = state.ledger.overtime_hours
    wages = salary_cost(state.workforce, overtime)
    process_payment(state, wages.regular, description='salaries')
    state.ledger.salary_cost = wages.regular
    if wages.overtime > 0:
        process_payment(state, wages.overtime, description='overtime')
        state.ledger.overtime_cost = wages.overtime
    track_overtime(state, overtime > 0)
    state.ledger.quits = process_quit_risk(state, policy, rng)
    automated_debt_management(state, policy)

def _record_history(state, policy) -> None:
    ledger = state.ledger
    wip = state.standard_line_wip
    custom = state.custom_line_wip
    deliveries = ledger.custom_delivery_days
    state.history.record(state.current_day, {
        # finance
        'cash': state.cash,
        'debt': state.debt,
        'net_worth': state.net_worth,
        'revenue': ledger.revenue,
        'expenses': ledger.expenses,
        'interest_paid': ledger.interest_paid,
        'interest_earned': ledger.interest_earned,
        'loan_commissions': ledger.loan_commissions,
        'salary_cost': ledger.salary_cost + ledger.overtime_cost,
        # production
        'standard_production': ledger.standard_completed,
        'custom_production': ledger.custom_shipped,
        'standard_wip': wip.total_units(),
        'custom_wip': len(custom),
        'finished_standard': state.finished_goods.standard,
        'finished_custom': state.finished_goods.custom,
        'std_queue_pre_station1': wip.queue_units('pre_station1'),
        'std_queue_station2': wip.queue_units('station2'),
        'std_queue_station3': wip.queue_units('station3'),
        'custom_queue_waiting': len(custom.at_stage('WAITING')),
        'custom_queue_wma': len(custom.at_stage('WMA_PASS1')) + len(custom.at_stage('WMA_PASS2')),
        'custom_queue_puc': len(custom.at_stage('PUC')),
        'custom_queue_arcp': len(custom.at_stage('ARCP')),
        'standard_mce_consumption': ledger.standard_mce_units * RAW_MATERIAL_CONFIG['parts_per_standard_unit'],
        'custom_mce_consumption': ledger.custom_mce_orders * RAW_MATERIAL_CONFIG['parts_per_custom_order'],
        'arcp_capacity': ledger.arcp_capacity,
        'arcp_custom_share': ledger.arcp_custom_share,
        'arcp_standard_share': ledger.arcp_standard_share,
        # demand and sales
        'standard_demand': ledger.standard_demand,
        'standard_shipped': ledger.standard_shipped,
        'custom_demand': ledger.custom_demand,
        'custom_orders_dropped': ledger.custom_dropped,
        'custom_delivery_time': sum(deliveries) / len(deliveries) if deliveries else 0.0,
        'custom_price': sum(ledger.custom_prices) / len(ledger.custom_prices) if ledger.custom_prices else policy.custom_base_price,
        'standard_price': policy.standard_price,
        # inventory
        'raw_material': state.raw_material_inventory,
        'raw_material_arrivals': ledger.raw_material_arrivals,
        'raw_material_consumed': ledger.raw_material_consumed,
        'raw_material_orders_placed': ledger.material_orders_placed,
        'raw_material_cost': ledger.material_cost,
        'pending_material_orders': len(state.pending_raw_material_orders),
        'raw_material_position': inventory_status(state)['position'],
        # workforce and capital
        'experts': state.workforce.experts,
        'rookies': state.workforce.rookies,
        'rookies_in_training': len(state.workforce.rookies_in_training),
        'overtime_hours': ledger.overtime_hours,
        'mce_count': state.machines.MCE,
        'wma_count': state.machines.WMA,
        'puc_count': state.machines.PUC,
        # policy
        'reorder_point': policy.reorder_point,
        'order_quantity': policy.order_quantity,
        'standard_batch_size': policy.standard_batch_size,
        'mce_allocation_custom': policy.mce_allocation_custom,
        # penalty counters
        'rejected_material_orders': state.rejected_material_orders,
        'stockout_days': state.stockout_days,
        'lost_production_days': state.lost_production_days,
    })

def simulate_day(state, policy, actions, rng: np.random.Generator) -> None:
    """Runs the twelve steps for state.current_day and advances it by one."""
    state.ledger = DailyLedger()
    # 1-2
    receive_arrivals(state)
    if state.raw_material_inventory <= policy.reorder_point:
        try_reorder(state, policy.order_quantity)
    # 3
    state.ledger.promotions = len(process_training(state))
    # 4
    demand_gen = DemandGenerator(policy, rng)
    demand = {'standard': demand_gen.standard_demand(), 'custom': demand_gen.custom_demand(state.current_day)}
    state.ledger.standard_demand = demand['standard']
    state.ledger.custom_demand = demand['custom']
    _admit_custom_orders(state, demand['custom'])
    # 5-8
    _consume_materials(state, policy)
    _advance_custom_pipeline(state)
    _advance_standard_pipeline(state)
    finished = _allocate_arcp(state, policy)
    # 9-10
    _ship(state, policy, demand, finished)
    _settle_finances(state, policy, rng)
    # 11-12
    apply_actions_for_day(state, policy, actions)
    _record_history(state, policy)
    state.current_day += 1
