#STANDARD IMPORTS

import os
import time
from dataclasses import dataclass
from typing import Dict, Optional
from pathlib import Path

# 3rd PARTY IMPORTS

import numpy as np
import simpy

#LOCAL IMPORTS

from cash_guard import ensure_sufficient_cash
from config import CASH_GUARD_CONFIG, RANDOM_SEED, SIMULATION_END_DAY, VERBOSE
from metrics import calculate_fitness
from simulator import simulate_day
from state import SimulationState, clone_state, initialize_state
from strategy import DEFAULT_STRATEGY, Policy, Strategy


@dataclass
class SimulationConstraints:
    """
    Run limits. `min_cash_threshold` switches on the cash-safety guard for the
    strategy's timed actions before the run starts.
    """
    end_day: int = SIMULATION_END_DAY
    min_cash_threshold: Optional[float] = None


@dataclass
class SimulationResult:
    final_cash: float
    final_debt: float
    final_net_worth: float
    fitness_score: float
    strategy: Strategy
    state: SimulationState
    peak_net_worth: float = 0.0
    seed: Optional[int] = None

    def summary(self) -> Dict[str, float]:
        return {
            'final_cash': self.final_cash,
            'final_debt': self.final_debt,
            'final_net_worth': self.final_net_worth,
            'fitness_score': self.fitness_score,
            'peak_net_worth': self.peak_net_worth,
            'rejected_material_orders': self.state.rejected_material_orders,
            'stockout_days': self.state.stockout_days,
            'lost_production_days': self.state.lost_production_days,
            'dropped_custom_orders': self.state.dropped_custom_orders,
        }


def prepare_strategy(strategy: Strategy, starting_cash: float, constraints: SimulationConstraints) -> Strategy:
    if constraints.min_cash_threshold is None:
        return strategy
    guarded = ensure_sufficient_cash(list(strategy.timed_actions), starting_cash, constraints.min_cash_threshold)
    return strategy.with_actions(guarded)


def run_simulation(strategy: Strategy = None,
                   constraints: SimulationConstraints = None,
                   initial_state: SimulationState = None,
                   seed: Optional[int] = RANDOM_SEED,
                   verbose: bool = VERBOSE) -> SimulationResult:
    strategy = strategy if strategy is not None else DEFAULT_STRATEGY
    constraints = constraints if constraints is not None else SimulationConstraints()
    state = clone_state(initial_state) if initial_state is not None else initialize_state()
    if constraints.end_day < state.current_day:
        raise ValueError(f"end_day {constraints.end_day} is before the start day {state.current_day}")
    strategy = prepare_strategy(strategy, state.cash, constraints)
    policy = Policy.from_strategy(strategy)
    rng = np.random.default_rng(seed)
    actions_by_day = strategy.actions_by_day()
    start_day = state.current_day
    if verbose:
        print(f"SIM: Running days {start_day}-{constraints.end_day} with {len(strategy.timed_actions)} timed actions (seed={seed})")
    started = time.time()

    # simpy keeps the day clock; each process step is one simulated day
    env = simpy.Environment(initial_time=start_day)

    def day_loop(env):
        while state.current_day <= constraints.end_day:
            simulate_day(state, policy, actions_by_day.get(state.current_day, []), rng)
            yield env.timeout(1)

    env.process(day_loop(env))
    env.run()

    net_worths = state.history.values('net_worth')
    result = SimulationResult(
        final_cash=state.cash,
        final_debt=state.debt,
        final_net_worth=state.net_worth,
        fitness_score=calculate_fitness(state),
        strategy=strategy,
        state=state,
        peak_net_worth=max(net_worths) if net_worths else state.net_worth,
        seed=seed,
    )
    if verbose:
        print(f"SIM: Finished {len(state.history)} days in {time.time() - started:.2f}s | "
              f"net worth {result.final_net_worth:,.2f} | fitness {result.fitness_score:,.2f}")
    return result


if __name__ == '__main__':
    from logging_export import export_all

    print("--- EXECUTING DIRECT RUN FROM MAIN.PY ---")
    script_dir = Path(__file__).parent
    outputdir = os.path.join(script_dir.parent, "data", "processed", f"direct_run-{int(time.time())}")
    print(f"Using default strategy. Outputs will be saved to: {outputdir}")
    try:
        result = run_simulation(
            constraints=SimulationConstraints(min_cash_threshold=CASH_GUARD_CONFIG['min_cash_threshold']),
            verbose=True,
        )
        export_all(outputdir, result)
        print("--- Direct Run Complete ---")
        print("KPI Summary:", result.summary())
    except Exception as e:
        print("--- DIRECT RUN FAILED ---")
        print(f"An error occurred: {e}")
