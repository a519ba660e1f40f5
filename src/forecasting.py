import math
import numpy as np
from config import DEMAND_PHASE_CHANGE_DAY
class DemandGenerator:
    def __init__(self, policy, rng: np.random.Generator):
        self.policy = policy
        self.rng = rng
    def standard_demand(self, price: float = None) -> int:
        p = self.policy
        price = p.standard_price if price is None else price
        return max(0, int(math.floor(p.standard_demand_intercept + p.standard_demand_slope * price)))
    def custom_parameters(self, day: int):
        p = self.policy
        if day < DEMAND_PHASE_CHANGE_DAY:
            return p.custom_demand_mean_1, p.custom_demand_std_dev_1
        return p.custom_demand_mean_2, p.custom_demand_std_dev_2
    def custom_demand(self, day: int) -> int:
        mean, std = self.custom_parameters(day)
        draw = self.rng.normal(mean, std) if std > 0 else mean
        return max(0, int(round(draw)))
def custom_price(policy, delivery_days: float) -> float:
    base = policy.custom_base_price
    late = max(0.0, delivery_days - policy.custom_target_delivery_days)
    return max(base * 0.5, base - late * policy.custom_penalty_per_day)
