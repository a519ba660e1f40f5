"""
Simulation state: the mutable snapshot owned by exactly one run, plus the
append-only history it writes once per simulated day.
"""
import copy
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

from config import (
    CUSTOM_STAGES,
    DEFAULT_INITIAL_STATE,
    INITIAL_STATES,
    SIMULATION_START_DAY,
    STANDARD_LINE_CONFIG,
)
from logging_export import EventLog

@dataclass
class RawMaterialOrder:
    order_day: int
    quantity: int
    arrival_day: int
    cost: float

@dataclass
class WIPBatch:
    units: int
    start_day: int
    batching_days_remaining: int = 0

@dataclass
class StandardLineWIP:
    pre_station1: List[WIPBatch] = field(default_factory=list)  # released, waiting for MCE
    station1: List[WIPBatch] = field(default_factory=list)      # through MCE today
    station2: List[WIPBatch] = field(default_factory=list)      # initial batching, then ARCP queue
    station3: List[WIPBatch] = field(default_factory=list)      # final batching

    def queue_units(self, name: str) -> int:
        return sum(b.units for b in getattr(self, name))

    def total_units(self) -> int:
        return sum(self.queue_units(q) for q in ('pre_station1', 'station1', 'station2', 'station3'))

@dataclass
class CustomOrder:
    order_id: int
    start_day: int
    current_station: str = 'WAITING'
    stage_entry_day: int = 0

@dataclass
class CustomLineWIP:
    orders: List[CustomOrder] = field(default_factory=list)
    next_order_id: int = 1

    def at_stage(self, stage: str) -> List[CustomOrder]:
        return [o for o in self.orders if o.current_station == stage]

    def __len__(self):
        return len(self.orders)

@dataclass
class FinishedGoods:
    standard: int = 0
    custom: int = 0

@dataclass
class RookieInTraining:
    hire_day: int
    remaining_days: int

@dataclass
class Workforce:
    experts: int = 1
    rookies: int = 0
    rookies_in_training: List[RookieInTraining] = field(default_factory=list)
    consecutive_overtime_days: int = 0

@dataclass
class Machines:
    MCE: int = 1
    WMA: int = 1
    PUC: int = 1

    def count(self, machine_type: str) -> int:
        return getattr(self, machine_type)

    def set_count(self, machine_type: str, value: int) -> None:
        setattr(self, machine_type, max(1, int(value)))

@dataclass
class DailyLedger:
    """Flows of the current day. Reset at the start of every day-step."""
    revenue: float = 0.0
    expenses: float = 0.0
    interest_paid: float = 0.0
    interest_earned: float = 0.0
    loan_commissions: float = 0.0
    salary_cost: float = 0.0
    overtime_cost: float = 0.0
    material_cost: float = 0.0
    raw_material_arrivals: int = 0
    raw_material_consumed: int = 0
    material_orders_placed: int = 0
    custom_mce_orders: int = 0
    standard_mce_units: int = 0
    standard_demand: int = 0
    standard_shipped: int = 0
    standard_completed: int = 0
    custom_demand: int = 0
    custom_admitted: int = 0
    custom_dropped: int = 0
    custom_shipped: int = 0
    custom_delivery_days: List[int] = field(default_factory=list)
    custom_prices: List[float] = field(default_factory=list)
    arcp_capacity: float = 0.0
    arcp_custom_share: float = 0.0
    arcp_standard_share: float = 0.0
    overtime_hours: float = 0.0
    promotions: int = 0
    quits: int = 0

class SimulationHistory:
    """
    Append-only, day-indexed metric record. Each call to record() adds exactly
    one (day, value) entry to every metric; days must strictly increase.
    """
    def __init__(self):
        self.series: Dict[str, List[Tuple[int, float]]] = defaultdict(list)
        self.days: List[int] = []
        self.actions_performed: List[Dict[str, Any]] = []

    def record(self, day: int, metrics: Dict[str, float]) -> None:
        if self.days and day <= self.days[-1]:
            raise ValueError(f"History already holds day {self.days[-1]}; cannot record day {day}")
        if self.days and set(metrics) != set(self.series):
            missing = sorted(set(self.series) ^ set(metrics))
            raise ValueError(f"Metric set changed on day {day}: {missing}")
        self.days.append(day)
        for name, value in metrics.items():
            self.series[name].append((day, float(value)))

    def record_action(self, day: int, action_dict: Dict[str, Any]) -> None:
        self.actions_performed.append({'day': day, **action_dict})

    @property
    def metric_names(self) -> List[str]:
        return list(self.series.keys())

    def get(self, name: str) -> List[Tuple[int, float]]:
        return list(self.series.get(name, []))

    def values(self, name: str) -> List[float]:
        return [v for _, v in self.series.get(name, [])]

    def value_on(self, name: str, day: int) -> Optional[float]:
        if not self.days or day < self.days[0] or day > self.days[-1]:
            return None
        return self.series[name][day - self.days[0]][1]

    def iter_days(self) -> Iterator[Tuple[int, Dict[str, float]]]:
        for i, day in enumerate(self.days):
            yield day, {name: entries[i][1] for name, entries in self.series.items()}

    def to_dict(self) -> Dict[str, Any]:
        return {
            'days': list(self.days),
            'series': {name: [{'day': d, 'value': v} for d, v in entries] for name, entries in self.series.items()},
            'actions_performed': list(self.actions_performed),
        }

    def __len__(self):
        return len(self.days)

@dataclass
class SimulationState:
    current_day: int
    cash: float
    debt: float
    raw_material_inventory: int = 0
    pending_raw_material_orders: List[RawMaterialOrder] = field(default_factory=list)
    standard_line_wip: StandardLineWIP = field(default_factory=StandardLineWIP)
    custom_line_wip: CustomLineWIP = field(default_factory=CustomLineWIP)
    finished_goods: FinishedGoods = field(default_factory=FinishedGoods)
    workforce: Workforce = field(default_factory=Workforce)
    machines: Machines = field(default_factory=Machines)
    rejected_material_orders: int = 0
    stockout_days: int = 0
    lost_production_days: int = 0
    dropped_custom_orders: int = 0
    # fractional ARCP capacity carried while a line still has queued work
    arcp_credit_custom: float = 0.0
    arcp_credit_standard: float = 0.0
    loans: List[Any] = field(default_factory=list)
    ledger: DailyLedger = field(default_factory=DailyLedger)
    history: SimulationHistory = field(default_factory=SimulationHistory)
    events: EventLog = field(default_factory=EventLog)

    @property
    def net_worth(self) -> float:
        return self.cash - self.debt

def clone_state(state: SimulationState) -> SimulationState:
    return copy.deepcopy(state)

def _chunk(units: int, size: int) -> List[int]:
    chunks = []
    while units > 0:
        take = min(size, units)
        chunks.append(take)
        units -= take
    return chunks

def _layout_standard_wip(total: int, day: int) -> StandardLineWIP:
    # thirds: just through MCE, mid initial batching, in final batching
    target = STANDARD_LINE_CONFIG['initial_batch_target']
    final_target = STANDARD_LINE_CONFIG['final_batch_target']
    third, remainder = divmod(total, 3)
    wip = StandardLineWIP()
    wip.station1 = [WIPBatch(u, day - 1, 0) for u in _chunk(third, target)]
    wip.station2 = [WIPBatch(u, day - 3, 2) for u in _chunk(third, target)]
    wip.station3 = [WIPBatch(u, day - 4, 1) for u in _chunk(third + remainder, final_target)]
    return wip

def _layout_custom_wip(total: int, layout: Optional[Dict[str, int]], day: int) -> CustomLineWIP:
    wip = CustomLineWIP()
    if layout:
        stages = []
        for stage in CUSTOM_STAGES:
            stages.extend([stage] * layout.get(stage, 0))
    else:
        # spread over the last ten days of arrivals
        pattern = ['WAITING'] * 4 + ['WMA_PASS1'] * 2 + ['PUC'] * 2 + ['WMA_PASS2'] * 2
        stages = [pattern[i % 10] for i in range(total)]
    for i, stage in enumerate(stages[:total]):
        age = CUSTOM_STAGES.index(stage) + (i % 10 if stage == 'WAITING' else 0)
        wip.orders.append(CustomOrder(
            order_id=wip.next_order_id,
            start_day=day - 1 - age,
            current_station=stage,
            stage_entry_day=day - 1,
        ))
        wip.next_order_id += 1
    return wip

def initialize_state(name: str = DEFAULT_INITIAL_STATE,
                     start_day: int = SIMULATION_START_DAY) -> SimulationState:
    if name not in INITIAL_STATES:
        raise ValueError(f"Unknown initial state '{name}'. Valid options: {sorted(INITIAL_STATES)}")
    snapshot = INITIAL_STATES[name]
    return SimulationState(
        current_day=start_day,
        cash=float(snapshot['cash']),
        debt=float(snapshot['debt']),
        raw_material_inventory=int(snapshot['raw_material_inventory']),
        standard_line_wip=_layout_standard_wip(snapshot['standard_wip'], start_day),
        custom_line_wip=_layout_custom_wip(snapshot['custom_wip'], snapshot['custom_wip_layout'], start_day),
        workforce=Workforce(experts=snapshot['experts'], rookies=snapshot['rookies']),
        machines=Machines(**snapshot['machines']),
    )
