"""
Strategy definitions: the closed set of timed managerial actions and the
strategy that carries them together with its scalar policy parameters.

A Strategy is immutable. A run works on a Policy, a mutable copy of the
scalar parameters that actions such as SET_REORDER_POINT may change.
"""
import dataclasses
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Iterable, List, Optional, Tuple

from config import DEFAULT_STRATEGY_PARAMS, MACHINE_TYPES

EMPLOYEE_TYPES = ('rookie', 'expert')
PRODUCT_TYPES = ('standard', 'custom')

# --- Action variants ---

@dataclass(frozen=True)
class StrategyAction:
    day: int
    action_type: ClassVar[str] = ''
    numeric_field: ClassVar[str] = ''
    integer_payload: ClassVar[bool] = True

    @property
    def numeric_value(self) -> float:
        return getattr(self, self.numeric_field)

    def with_numeric_value(self, value):
        if self.integer_payload:
            value = int(round(value))
        return dataclasses.replace(self, **{self.numeric_field: value})

    def payload(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in dataclasses.fields(self) if f.name != 'day'}

    @property
    def action_id(self) -> str:
        parts = [f"{k}={v}" for k, v in self.payload().items()]
        return f"{self.action_type}@{self.day}:" + ",".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        out = {'type': self.action_type, 'day': self.day}
        out.update(self.payload())
        return out

@dataclass(frozen=True)
class HireRookie(StrategyAction):
    count: int
    action_type: ClassVar[str] = 'HIRE_ROOKIE'
    numeric_field: ClassVar[str] = 'count'

@dataclass(frozen=True)
class FireEmployee(StrategyAction):
    employee_type: str
    count: int
    action_type: ClassVar[str] = 'FIRE_EMPLOYEE'
    numeric_field: ClassVar[str] = 'count'

@dataclass(frozen=True)
class BuyMachine(StrategyAction):
    machine_type: str
    count: int
    action_type: ClassVar[str] = 'BUY_MACHINE'
    numeric_field: ClassVar[str] = 'count'

@dataclass(frozen=True)
class SellMachine(StrategyAction):
    machine_type: str
    count: int
    action_type: ClassVar[str] = 'SELL_MACHINE'
    numeric_field: ClassVar[str] = 'count'

@dataclass(frozen=True)
class SetOrderQuantity(StrategyAction):
    value: int
    action_type: ClassVar[str] = 'SET_ORDER_QUANTITY'
    numeric_field: ClassVar[str] = 'value'

@dataclass(frozen=True)
class SetReorderPoint(StrategyAction):
    value: int
    action_type: ClassVar[str] = 'SET_REORDER_POINT'
    numeric_field: ClassVar[str] = 'value'

@dataclass(frozen=True)
class AdjustBatchSize(StrategyAction):
    value: int
    action_type: ClassVar[str] = 'ADJUST_BATCH_SIZE'
    numeric_field: ClassVar[str] = 'value'

@dataclass(frozen=True)
class AdjustPrice(StrategyAction):
    product_type: str
    value: float
    action_type: ClassVar[str] = 'ADJUST_PRICE'
    numeric_field: ClassVar[str] = 'value'
    integer_payload: ClassVar[bool] = False

@dataclass(frozen=True)
class AdjustMCEAllocation(StrategyAction):
    value: float
    action_type: ClassVar[str] = 'ADJUST_MCE_ALLOCATION'
    numeric_field: ClassVar[str] = 'value'
    integer_payload: ClassVar[bool] = False

@dataclass(frozen=True)
class TakeLoan(StrategyAction):
    amount: float
    action_type: ClassVar[str] = 'TAKE_LOAN'
    numeric_field: ClassVar[str] = 'amount'
    integer_payload: ClassVar[bool] = False

@dataclass(frozen=True)
class PayDebt(StrategyAction):
    amount: float
    action_type: ClassVar[str] = 'PAY_DEBT'
    numeric_field: ClassVar[str] = 'amount'
    integer_payload: ClassVar[bool] = False

@dataclass(frozen=True)
class OrderMaterials(StrategyAction):
    quantity: int
    action_type: ClassVar[str] = 'ORDER_MATERIALS'
    numeric_field: ClassVar[str] = 'quantity'

ACTION_TYPES = {
    cls.action_type: cls for cls in (
        HireRookie, FireEmployee, BuyMachine, SellMachine, SetOrderQuantity,
        SetReorderPoint, AdjustBatchSize, AdjustPrice, AdjustMCEAllocation,
        TakeLoan, PayDebt, OrderMaterials,
    )
}

def action_from_dict(data: Dict[str, Any]) -> StrategyAction:
    data = dict(data)
    type_name = data.pop('type', None)
    cls = ACTION_TYPES.get(type_name)
    if cls is None:
        raise ValueError(f"Unknown action type '{type_name}'. Valid types: {sorted(ACTION_TYPES)}")
    if 'machine_type' in data and data['machine_type'] not in MACHINE_TYPES:
        raise ValueError(f"Unknown machine type '{data['machine_type']}'")
    return cls(**data)

def normalize_actions(actions: Iterable[StrategyAction]) -> Tuple[StrategyAction, ...]:
    """Stable sort by day and drop identical duplicates on the same day."""
    seen = set()
    out = []
    for action in sorted(actions, key=lambda a: a.day):
        if action in seen:
            continue
        seen.add(action)
        out.append(action)
    return tuple(out)

# --- Strategy ---

@dataclass(frozen=True)
class Strategy:
    params: Dict[str, Any] = field(default_factory=lambda: dict(DEFAULT_STRATEGY_PARAMS))
    timed_actions: Tuple[StrategyAction, ...] = ()

    def __post_init__(self):
        unknown = set(self.params) - set(DEFAULT_STRATEGY_PARAMS)
        if unknown:
            raise ValueError(f"Unknown strategy parameters: {sorted(unknown)}")
        merged = dict(DEFAULT_STRATEGY_PARAMS)
        merged.update(self.params)
        object.__setattr__(self, 'params', merged)
        object.__setattr__(self, 'timed_actions', normalize_actions(self.timed_actions))

    def with_overrides(self, overrides: Optional[Dict[str, Any]] = None) -> "Strategy":
        params = dict(self.params)
        params.update(overrides or {})
        return Strategy(params=params, timed_actions=self.timed_actions)

    def with_actions(self, actions: Iterable[StrategyAction]) -> "Strategy":
        return Strategy(params=dict(self.params), timed_actions=tuple(actions))

    def actions_by_day(self) -> Dict[int, List[StrategyAction]]:
        grouped: Dict[int, List[StrategyAction]] = {}
        for action in self.timed_actions:
            grouped.setdefault(action.day, []).append(action)
        return grouped

    def to_dict(self) -> Dict[str, Any]:
        return {
            'params': dict(self.params),
            'timed_actions': [a.to_dict() for a in self.timed_actions],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Strategy":
        actions = [action_from_dict(a) for a in data.get('timed_actions', [])]
        return cls(params=dict(data.get('params', {})), timed_actions=tuple(actions))

DEFAULT_STRATEGY = Strategy()

# --- Policy ---

@dataclass
class Policy:
    reorder_point: int
    order_quantity: int
    standard_batch_size: int
    mce_allocation_custom: float
    daily_overtime_hours: float
    standard_price: float
    custom_base_price: float
    custom_penalty_per_day: float
    custom_target_delivery_days: float
    custom_demand_mean_1: float
    custom_demand_std_dev_1: float
    custom_demand_mean_2: float
    custom_demand_std_dev_2: float
    standard_demand_intercept: float
    standard_demand_slope: float
    overtime_trigger_days: int
    daily_quit_probability: float
    auto_debt_management: bool
    min_cash_reserve_days: float
    debt_paydown_aggressiveness: float

    @classmethod
    def from_strategy(cls, strategy: Strategy) -> "Policy":
        policy = cls(**strategy.params)
        policy.mce_allocation_custom = min(1.0, max(0.0, float(policy.mce_allocation_custom)))
        return policy

    def snapshot(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)
