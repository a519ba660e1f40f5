from dataclasses import dataclass, asdict
from typing import Dict
from config import FITNESS_PENALTIES


@dataclass
class FitnessBreakdown:
    net_worth: float
    penalties: Dict[str, float]

    @property
    def total_penalty(self) -> float:
        return sum(self.penalties.values())

    @property
    def fitness(self) -> float:
        return self.net_worth - self.total_penalty

    def to_dict(self):
        out = asdict(self)
        out['total_penalty'] = self.total_penalty
        out['fitness'] = self.fitness
        return out


def fitness_breakdown(state, penalties: Dict[str, float] = None) -> FitnessBreakdown:
    """Final net worth less a weighted charge for each penalty counter."""
    weights = FITNESS_PENALTIES if penalties is None else penalties
    charged = {name: getattr(state, name) * weight for name, weight in weights.items()}
    return FitnessBreakdown(net_worth=state.cash - state.debt, penalties=charged)


def calculate_fitness(state, penalties: Dict[str, float] = None) -> float:
    return fitness_breakdown(state, penalties).fitness
