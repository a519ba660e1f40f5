"""
Genetic optimizer for timed strategy actions.

Each individual is a list of dated actions plus optional overrides of the
strategy's scalar parameters. Individuals are scored with a full simulation
run; the best fraction survives unchanged, the rest of every generation is
bred from them by single-point crossover and bounded multiplicative mutation.
"""
import math
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Tuple

import numpy as np

from config import (
    ACTION_BOUNDS,
    CASH_GUARD_CONFIG,
    FITNESS_FLOOR,
    FORMULA_JITTER,
    INITIAL_POPULATION_MIX,
    MACHINE_TYPES,
    MULTI_RUN_CONFIG,
    MUTATION_JITTER,
    OPTIMIZER_CONFIG,
    PARAMETER_BOUNDS,
    POLICY_ACTION_TYPES,
    RANDOM_ACTION_HORIZON_MARGIN,
    RANDOM_ACTIONS_PER_CANDIDATE,
    RANDOM_SEED,
    SIMULATION_END_DAY,
)
from formulas import analytical_recommendations
from main import SimulationConstraints, run_simulation
from state import SimulationState, initialize_state
from strategy import (
    ACTION_TYPES,
    EMPLOYEE_TYPES,
    AdjustBatchSize,
    AdjustPrice,
    BuyMachine,
    FireEmployee,
    HireRookie,
    SellMachine,
    SetOrderQuantity,
    SetReorderPoint,
    Strategy,
    StrategyAction,
    DEFAULT_STRATEGY,
)

# --- Configuration and result types ---

@dataclass
class OptimizationConfig:
    population_size: int = OPTIMIZER_CONFIG['population_size']
    generations: int = OPTIMIZER_CONFIG['generations']
    mutation_rate: float = OPTIMIZER_CONFIG['mutation_rate']
    elite_percentage: float = OPTIMIZER_CONFIG['elite_percentage']
    enable_early_stopping: bool = OPTIMIZER_CONFIG['enable_early_stopping']
    seed_with_analytical: bool = OPTIMIZER_CONFIG['seed_with_analytical']
    early_stopping_patience: int = OPTIMIZER_CONFIG['early_stopping_patience']
    early_stopping_tolerance: float = OPTIMIZER_CONFIG['early_stopping_tolerance']
    seed: Optional[int] = RANDOM_SEED
    evaluation_seed: Optional[int] = RANDOM_SEED
    decision_day: Optional[int] = None      # defaults to the initial state's day
    end_day: int = SIMULATION_END_DAY
    min_cash_threshold: Optional[float] = CASH_GUARD_CONFIG['min_cash_threshold']
    max_workers: int = OPTIMIZER_CONFIG['max_workers']
    keep_history: bool = False
    verbose: bool = True

    def validate(self) -> None:
        if int(self.population_size) < 1:
            raise ValueError(f"population_size must be at least 1, got {self.population_size}")
        if int(self.generations) < 1:
            raise ValueError(f"generations must be at least 1, got {self.generations}")
        if not 0.0 <= self.mutation_rate <= 1.0:
            raise ValueError(f"mutation_rate must be within [0, 1], got {self.mutation_rate}")
        if not 0.0 <= self.elite_percentage <= 1.0:
            raise ValueError(f"elite_percentage must be within [0, 1], got {self.elite_percentage}")
        if self.early_stopping_patience < 1:
            raise ValueError("early_stopping_patience must be at least 1")
        if self.max_workers < 1:
            raise ValueError("max_workers must be at least 1")

@dataclass(frozen=True)
class OptimizationConstraints:
    fixed_policies: FrozenSet[str] = frozenset()
    fixed_actions: FrozenSet[str] = frozenset()

    def __post_init__(self):
        object.__setattr__(self, 'fixed_policies', frozenset(self.fixed_policies))
        object.__setattr__(self, 'fixed_actions', frozenset(self.fixed_actions))
        unknown = self.fixed_policies - set(POLICY_ACTION_TYPES)
        if unknown:
            raise ValueError(f"Unknown policy fields in constraints: {sorted(unknown)}")

    def blocked_action_types(self) -> FrozenSet[str]:
        return frozenset(POLICY_ACTION_TYPES[p] for p in self.fixed_policies if POLICY_ACTION_TYPES[p])

@dataclass
class OptimizationCandidate:
    actions: List[StrategyAction]
    strategy_params: Dict[str, Any] = field(default_factory=dict)
    fitness: Optional[float] = None
    net_worth: Optional[float] = None
    error: Optional[str] = None
    history: Optional[Any] = None
    origin: str = 'random'
    generation: int = 0

    @property
    def evaluated(self) -> bool:
        return self.fitness is not None

@dataclass
class GenerationStats:
    generation: int
    best_fitness: float
    average_fitness: float
    worst_fitness: float
    best_net_worth: Optional[float]
    error_count: int
    evaluated: int

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.__dict__)

# --- Evaluation ---

def evaluate_candidate(job: Tuple) -> Tuple[float, Optional[float], Optional[str], Any]:
    """Runs one candidate. Module level so a process pool can pickle it."""
    actions, params, base_strategy, pinned, initial_state, constraints, seed, keep_history = job
    try:
        strategy = base_strategy.with_overrides(params).with_actions(list(pinned) + list(actions))
        result = run_simulation(strategy, constraints, initial_state=initial_state, seed=seed, verbose=False)
        if not math.isfinite(result.fitness_score):
            return FITNESS_FLOOR, None, "non-finite fitness", None
        return result.fitness_score, result.final_net_worth, None, result.state.history if keep_history else None
    except Exception as e:
        return FITNESS_FLOOR, None, f"{type(e).__name__}: {e}", None

# --- Gene helpers ---

def clamp_action(action: StrategyAction) -> StrategyAction:
    if isinstance(action, AdjustPrice) and action.product_type != 'standard':
        return action.with_numeric_value(max(0.01, action.numeric_value))
    low, high = ACTION_BOUNDS[action.action_type]
    return action.with_numeric_value(min(high, max(low, action.numeric_value)))

def clamp_parameter(name: str, value: float) -> float:
    low, high = PARAMETER_BOUNDS[name]
    value = min(high, max(low, value))
    return int(round(value)) if isinstance(high, int) and isinstance(low, int) and name != 'daily_overtime_hours' else float(value)

def random_action(action_type: str, day: int, rng: np.random.Generator) -> StrategyAction:
    cls = ACTION_TYPES[action_type]
    low, high = ACTION_BOUNDS[action_type]
    payload = {cls.numeric_field: float(rng.uniform(low, high))}
    if cls is FireEmployee:
        payload['employee_type'] = str(rng.choice(EMPLOYEE_TYPES))
    elif cls in (BuyMachine, SellMachine):
        payload['machine_type'] = str(rng.choice(MACHINE_TYPES))
    elif cls is AdjustPrice:
        payload['product_type'] = 'standard'
    if cls.integer_payload:
        payload[cls.numeric_field] = int(round(payload[cls.numeric_field]))
    return clamp_action(cls(day=day, **payload))

def mutate_genes(actions: List[StrategyAction], params: Dict[str, Any], rate: float,
                 rng: np.random.Generator, fixed_policies=frozenset(), blocked_types=frozenset()):
    mutated = []
    for action in actions:
        if action.action_type not in blocked_types and rng.random() < rate:
            factor = rng.uniform(1 - MUTATION_JITTER, 1 + MUTATION_JITTER)
            action = clamp_action(action.with_numeric_value(action.numeric_value * factor))
        mutated.append(action)
    new_params = {}
    for name, value in params.items():
        if name not in fixed_policies and name in PARAMETER_BOUNDS and rng.random() < rate:
            factor = rng.uniform(1 - MUTATION_JITTER, 1 + MUTATION_JITTER)
            value = clamp_parameter(name, value * factor)
        new_params[name] = value
    return mutated, new_params

def crossover_genes(parent1: OptimizationCandidate, parent2: OptimizationCandidate, rng: np.random.Generator):
    split = int(rng.integers(0, min(len(parent1.actions), len(parent2.actions)) + 1))
    actions = list(parent1.actions[:split]) + list(parent2.actions[split:])
    params = {}
    for name in sorted(set(parent1.strategy_params) | set(parent2.strategy_params)):
        donor = parent1 if rng.random() < 0.5 else parent2
        if name not in donor.strategy_params:
            donor = parent2 if donor is parent1 else parent1
        params[name] = donor.strategy_params[name]
    return actions, params

# --- Optimizer ---

class GeneticOptimizer:
    def __init__(self, base_strategy: Strategy = None, initial_state: SimulationState = None,
                 constraints: OptimizationConstraints = None):
        self.base_strategy = base_strategy if base_strategy is not None else DEFAULT_STRATEGY
        self.initial_state = initial_state if initial_state is not None else initialize_state()
        self.constraints = constraints if constraints is not None else OptimizationConstraints()
        blocked = self.constraints.blocked_action_types()
        self.pinned_actions = []
        self.base_genes = []
        for action in self.base_strategy.timed_actions:
            if action.action_id in self.constraints.fixed_actions or action.action_type in blocked:
                self.pinned_actions.append(action)
            else:
                self.base_genes.append(action)
        self.generation_stats: List[GenerationStats] = []
        self.evaluated_candidates: List[OptimizationCandidate] = []
        self.best_candidate: Optional[OptimizationCandidate] = None
        self.config: Optional[OptimizationConfig] = None
        self.rng: Optional[np.random.Generator] = None

    # --- Public API ---

    def optimize(self, config: OptimizationConfig = None,
                 on_generation: Callable[[int, GenerationStats], None] = None) -> OptimizationCandidate:
        config = config if config is not None else OptimizationConfig()
        config.validate()
        if config.end_day < self.initial_state.current_day:
            raise ValueError(f"end_day {config.end_day} is before the start day {self.initial_state.current_day}")
        self.config = config
        self.rng = np.random.default_rng(config.seed)
        self.generation_stats = []
        self.evaluated_candidates = []
        self.best_candidate = None
        if config.verbose:
            print(f"GA: Starting optimization | population={config.population_size} generations={config.generations} "
                  f"mutation={config.mutation_rate} elite={config.elite_percentage}")

        population = self.initial_population()
        for generation in range(config.generations):
            self._evaluate(population, generation)
            population.sort(key=lambda c: c.fitness, reverse=True)
            stats = self._record_stats(population, generation)
            if on_generation is not None:
                on_generation(generation, stats)
            if self._should_stop():
                if config.verbose:
                    print(f"GA: Early stopping after generation {generation + 1}: no improvement in "
                          f"{config.early_stopping_patience} generations")
                break
            if generation < config.generations - 1:
                population = self.next_generation(population, generation + 1)

        if config.verbose:
            print(f"GA: Done | best fitness {self.best_candidate.fitness:,.2f} | "
                  f"{len(self.evaluated_candidates)} evaluations")
        return self.best_candidate

    def strategy_for(self, candidate: OptimizationCandidate) -> Strategy:
        return self.base_strategy.with_overrides(candidate.strategy_params).with_actions(
            list(self.pinned_actions) + list(candidate.actions))

    def run_constraints(self) -> SimulationConstraints:
        return SimulationConstraints(end_day=self.config.end_day, min_cash_threshold=self.config.min_cash_threshold)

    # --- Population construction ---

    @property
    def decision_day(self) -> int:
        if self.config.decision_day is not None:
            return self.config.decision_day
        return self.initial_state.current_day

    def _allowed_action_types(self) -> List[str]:
        blocked = self.constraints.blocked_action_types()
        return [t for t in ACTION_TYPES if t not in blocked]

    def _allowed_params(self) -> List[str]:
        return [p for p in PARAMETER_BOUNDS if p not in self.constraints.fixed_policies]

    def formula_seed(self, jitter: float = FORMULA_JITTER) -> OptimizationCandidate:
        rng = self.rng
        fixed = self.constraints.fixed_policies
        day = self.decision_day
        params = self.base_strategy.params
        recs = analytical_recommendations(params, self.initial_state, self.config.end_day)

        def j(value):
            return value * rng.uniform(1 - jitter, 1 + jitter)

        genes: List[StrategyAction] = []
        if 'order_quantity' in recs and 'order_quantity' not in fixed:
            genes.append(clamp_action(SetOrderQuantity(day, int(round(j(recs['order_quantity']))))))
        if 'reorder_point' in recs and 'reorder_point' not in fixed:
            genes.append(clamp_action(SetReorderPoint(day, int(round(j(recs['reorder_point']))))))
        if 'standard_batch_size' in recs and 'standard_batch_size' not in fixed:
            genes.append(clamp_action(AdjustBatchSize(day, int(round(j(recs['standard_batch_size']))))))
        if 'standard_price' in recs and 'standard_price' not in fixed:
            genes.append(clamp_action(AdjustPrice(day, 'standard', round(j(recs['standard_price']), 2))))
        if 'hire_rookies' in recs:
            genes.append(clamp_action(HireRookie(day, int(round(j(recs['hire_rookies']))))))
        if 'buy_machine' in recs:
            genes.append(BuyMachine(day, recs['buy_machine'], 1))
        overrides = {}
        if 'mce_allocation_custom' not in fixed:
            overrides['mce_allocation_custom'] = clamp_parameter('mce_allocation_custom', j(params['mce_allocation_custom']))
        return OptimizationCandidate(actions=list(self.base_genes) + genes, strategy_params=overrides, origin='formula')

    def random_candidate(self) -> OptimizationCandidate:
        rng = self.rng
        types = self._allowed_action_types()
        low, high = RANDOM_ACTIONS_PER_CANDIDATE
        first = self.decision_day
        last = max(first, self.config.end_day - RANDOM_ACTION_HORIZON_MARGIN)
        genes = []
        for _ in range(int(rng.integers(low, high + 1))):
            action_type = types[int(rng.integers(0, len(types)))]
            genes.append(random_action(action_type, int(rng.integers(first, last + 1)), rng))
        genes.sort(key=lambda a: a.day)
        overrides = {}
        for name in self._allowed_params():
            if name == 'mce_allocation_custom' or rng.random() < 0.3:
                low_p, high_p = PARAMETER_BOUNDS[name]
                overrides[name] = clamp_parameter(name, rng.uniform(low_p, high_p))
        return OptimizationCandidate(actions=list(self.base_genes) + genes, strategy_params=overrides, origin='random')

    def initial_population(self) -> List[OptimizationCandidate]:
        size = int(self.config.population_size)
        if not self.config.seed_with_analytical:
            return [self.random_candidate() for _ in range(size)]
        n_formula = int(round(size * INITIAL_POPULATION_MIX['formula']))
        n_mutant = int(round(size * INITIAL_POPULATION_MIX['high_mutation']))
        n_formula = min(size, max(1, n_formula))
        n_mutant = min(size - n_formula, n_mutant)
        population = [self.formula_seed() for _ in range(n_formula)]
        for _ in range(n_mutant):
            seed = self.formula_seed()
            actions, params = mutate_genes(seed.actions, seed.strategy_params, 1.0, self.rng,
                                           self.constraints.fixed_policies, self.constraints.blocked_action_types())
            population.append(OptimizationCandidate(actions=actions, strategy_params=params, origin='high_mutation'))
        while len(population) < size:
            population.append(self.random_candidate())
        return population

    # --- Evolution ---

    def elite_count(self, size: int) -> int:
        if self.config.elite_percentage <= 0:
            return 0
        return min(size, max(1, int(round(size * self.config.elite_percentage))))

    def _select_parent(self, ranked: List[OptimizationCandidate]) -> OptimizationCandidate:
        n = len(ranked)
        weights = np.arange(n, 0, -1, dtype=float)
        return ranked[int(self.rng.choice(n, p=weights / weights.sum()))]

    def next_generation(self, ranked: List[OptimizationCandidate], generation: int) -> List[OptimizationCandidate]:
        """`ranked` must be sorted best first."""
        size = int(self.config.population_size)
        n_elite = self.elite_count(size)
        elites = ranked[:n_elite]
        pool = elites if elites else ranked
        children: List[OptimizationCandidate] = list(elites)
        while len(children) < size:
            parent1 = self._select_parent(pool)
            parent2 = self._select_parent(pool)
            actions, params = crossover_genes(parent1, parent2, self.rng)
            actions, params = mutate_genes(actions, params, self.config.mutation_rate, self.rng,
                                           self.constraints.fixed_policies, self.constraints.blocked_action_types())
            children.append(OptimizationCandidate(actions=actions, strategy_params=params,
                                                  origin='crossover', generation=generation))
        return children

    def _evaluate(self, population: List[OptimizationCandidate], generation: int) -> None:
        pending = [c for c in population if not c.evaluated]
        if not pending:
            return
        constraints = self.run_constraints()
        jobs = [(c.actions, c.strategy_params, self.base_strategy, self.pinned_actions, self.initial_state,
                 constraints, self.config.evaluation_seed, self.config.keep_history) for c in pending]
        if self.config.max_workers > 1 and len(jobs) > 1:
            with ProcessPoolExecutor(max_workers=self.config.max_workers) as pool:
                outcomes = list(pool.map(evaluate_candidate, jobs))
        else:
            outcomes = [evaluate_candidate(job) for job in jobs]
        for candidate, (fitness, net_worth, error, history) in zip(pending, outcomes):
            candidate.fitness = fitness
            candidate.net_worth = net_worth
            candidate.error = error
            candidate.history = history
            candidate.generation = generation
            if error and self.config.verbose:
                print(f"  ERROR: Candidate ({candidate.origin}) failed in generation {generation + 1}: {error}")
            self.evaluated_candidates.append(candidate)
            if self.best_candidate is None or candidate.fitness > self.best_candidate.fitness:
                self.best_candidate = candidate

    def _record_stats(self, ranked: List[OptimizationCandidate], generation: int) -> GenerationStats:
        fitness = [c.fitness for c in ranked]
        stats = GenerationStats(
            generation=generation,
            best_fitness=fitness[0],
            average_fitness=float(np.mean(fitness)),
            worst_fitness=fitness[-1],
            best_net_worth=ranked[0].net_worth,
            error_count=sum(1 for c in ranked if c.error),
            evaluated=len(self.evaluated_candidates),
        )
        self.generation_stats.append(stats)
        if self.config.verbose:
            print(f"GA: Generation {generation + 1}/{self.config.generations} | best {stats.best_fitness:,.2f} | "
                  f"avg {stats.average_fitness:,.2f} | worst {stats.worst_fitness:,.2f}")
        return stats

    def _should_stop(self) -> bool:
        cfg = self.config
        if not cfg.enable_early_stopping or len(self.generation_stats) <= cfg.early_stopping_patience:
            return False
        recent = self.generation_stats[-1].best_fitness
        before = self.generation_stats[-1 - cfg.early_stopping_patience].best_fitness
        return recent - before <= cfg.early_stopping_tolerance * max(1.0, abs(before))

# --- Independent restarts ---

@dataclass
class MultiRunResult:
    best_candidate: OptimizationCandidate
    best_strategy: Strategy
    best_run_index: int
    run_bests: List[OptimizationCandidate]
    run_stats: List[List[GenerationStats]]
    fitness_stats: Dict[str, float]

def multi_run_optimize(config: OptimizationConfig = None, runs: int = MULTI_RUN_CONFIG['runs'],
                       base_strategy: Strategy = None, initial_state: SimulationState = None,
                       constraints: OptimizationConstraints = None,
                       on_run: Callable[[int, OptimizationCandidate], None] = None) -> MultiRunResult:
    """
    Repeats the GA with a different generator seed per run and keeps the best
    result. Candidates are still scored under the same evaluation seed, so
    fitness is comparable across runs.
    """
    config = config if config is not None else OptimizationConfig()
    if runs < 1:
        raise ValueError(f"runs must be at least 1, got {runs}")
    config.validate()
    run_bests, run_stats, optimizers = [], [], []
    for k in range(runs):
        seed = None if config.seed is None else config.seed + k * MULTI_RUN_CONFIG['seed_step']
        optimizer = GeneticOptimizer(base_strategy, initial_state, constraints)
        if config.verbose:
            print(f"GA: Run {k + 1}/{runs} (seed {seed})")
        best = optimizer.optimize(replace(config, seed=seed))
        run_bests.append(best)
        run_stats.append(optimizer.generation_stats)
        optimizers.append(optimizer)
        if on_run is not None:
            on_run(k, best)

    fitness = np.array([c.fitness for c in run_bests], dtype=float)
    best_index = int(np.argmax(fitness))
    mean = float(fitness.mean())
    stats = {
        'mean': mean,
        'stdev': float(fitness.std()),
        'min': float(fitness.min()),
        'max': float(fitness.max()),
        'improvement_pct': (float(fitness.max()) - mean) / abs(mean) * 100 if mean > 0 else 0.0,
    }
    if config.verbose:
        print(f"GA: Multi-run done | best {stats['max']:,.2f} (run {best_index + 1}) | "
              f"mean {stats['mean']:,.2f} | stdev {stats['stdev']:,.2f} | range {stats['min']:,.2f} to {stats['max']:,.2f}")
    best = run_bests[best_index]
    return MultiRunResult(
        best_candidate=best,
        best_strategy=optimizers[best_index].strategy_for(best),
        best_run_index=best_index,
        run_bests=run_bests,
        run_stats=run_stats,
        fitness_stats=stats,
    )
