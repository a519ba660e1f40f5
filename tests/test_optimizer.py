import numpy as np
import pytest

from config import ACTION_BOUNDS, FITNESS_FLOOR
from main import SimulationConstraints
from optimizer import (
    GenerationStats,
    GeneticOptimizer,
    OptimizationCandidate,
    OptimizationConfig,
    OptimizationConstraints,
    crossover_genes,
    evaluate_candidate,
    multi_run_optimize,
    mutate_genes,
)
from strategy import DEFAULT_STRATEGY, HireRookie, SetOrderQuantity, SetReorderPoint, Strategy, TakeLoan


def small_config(**overrides):
    settings = dict(population_size=6, generations=2, mutation_rate=0.3, end_day=70,
                    enable_early_stopping=False, verbose=False)
    settings.update(overrides)
    return OptimizationConfig(**settings)


def test_elitism_without_mutation():
    seen = []
    optimizer = GeneticOptimizer()
    best = optimizer.optimize(small_config(population_size=10, generations=3, mutation_rate=0.0, end_day=90),
                              on_generation=lambda i, stats: seen.append((i, stats)))
    assert [i for i, _ in seen] == [0, 1, 2]
    bests = [stats.best_fitness for _, stats in seen]
    assert all(b >= a for a, b in zip(bests, bests[1:]))
    for i, stats in seen:
        ever = [c.fitness for c in optimizer.evaluated_candidates if c.generation <= i]
        assert stats.best_fitness == max(ever)
    assert best.fitness == bests[-1]


def test_elites_are_not_reevaluated():
    optimizer = GeneticOptimizer()
    optimizer.optimize(small_config(population_size=5, generations=3, elite_percentage=0.4))
    # two elites survive each of the two later generations
    assert len(optimizer.evaluated_candidates) == 5 + 3 + 3


@pytest.mark.parametrize("field, value", [
    ("population_size", 0),
    ("generations", 0),
    ("mutation_rate", 1.5),
    ("elite_percentage", -0.1),
])
def test_bad_config_fails_before_simulating(field, value):
    optimizer = GeneticOptimizer()
    with pytest.raises(ValueError):
        optimizer.optimize(small_config(**{field: value}))
    assert optimizer.evaluated_candidates == []


def test_failed_evaluation_gets_fitness_floor():
    job = ([], {'not_a_parameter': 1}, DEFAULT_STRATEGY, [], None, SimulationConstraints(end_day=55), 1, False)
    fitness, net_worth, error, history = evaluate_candidate(job)
    assert fitness == FITNESS_FLOOR
    assert net_worth is None
    assert "not_a_parameter" in error


def test_fixed_policies_are_left_alone():
    constraints = OptimizationConstraints(fixed_policies={'reorder_point', 'mce_allocation_custom'})
    optimizer = GeneticOptimizer(constraints=constraints)
    optimizer.optimize(small_config(mutation_rate=1.0))
    for candidate in optimizer.evaluated_candidates:
        assert not any(a.action_type in ('SET_REORDER_POINT', 'ADJUST_MCE_ALLOCATION') for a in candidate.actions)
        assert 'mce_allocation_custom' not in candidate.strategy_params
        assert 'reorder_point' not in candidate.strategy_params


def test_fixed_actions_are_pinned():
    pinned = HireRookie(day=55, count=1)
    base = Strategy(timed_actions=(pinned, TakeLoan(day=56, amount=20000.0)))
    optimizer = GeneticOptimizer(base_strategy=base,
                                 constraints=OptimizationConstraints(fixed_actions={pinned.action_id}))
    best = optimizer.optimize(small_config(mutation_rate=1.0))
    assert all(pinned not in c.actions for c in optimizer.evaluated_candidates)
    assert pinned in optimizer.strategy_for(best).timed_actions


def test_unknown_fixed_policy():
    with pytest.raises(ValueError):
        OptimizationConstraints(fixed_policies={'color'})


def test_mutation_respects_bounds():
    rng = np.random.default_rng(0)
    actions = [SetOrderQuantity(day=60, value=2000), SetReorderPoint(day=61, value=200)]
    params = {'mce_allocation_custom': 0.8}
    for _ in range(50):
        actions, params = mutate_genes(actions, params, 1.0, rng)
        low, high = ACTION_BOUNDS['SET_ORDER_QUANTITY']
        assert low <= actions[0].value <= high
        low, high = ACTION_BOUNDS['SET_REORDER_POINT']
        assert low <= actions[1].value <= high
        assert 0.2 <= params['mce_allocation_custom'] <= 0.8


def test_zero_rate_mutation_is_identity():
    rng = np.random.default_rng(0)
    actions = [SetOrderQuantity(day=60, value=700)]
    assert mutate_genes(actions, {'daily_overtime_hours': 2.0}, 0.0, rng) == (actions, {'daily_overtime_hours': 2.0})


def test_crossover_takes_prefix_and_suffix():
    rng = np.random.default_rng(1)
    p1 = OptimizationCandidate(actions=[HireRookie(day=60, count=1), HireRookie(day=61, count=1)],
                               strategy_params={'mce_allocation_custom': 0.3})
    p2 = OptimizationCandidate(actions=[TakeLoan(day=62, amount=10000.0)] * 3,
                               strategy_params={'mce_allocation_custom': 0.6})
    for _ in range(20):
        actions, params = crossover_genes(p1, p2, rng)
        split = sum(1 for a in actions if isinstance(a, HireRookie))
        assert actions == p1.actions[:split] + p2.actions[split:]
        assert params['mce_allocation_custom'] in (0.3, 0.6)


def test_generation_stats_are_exported_as_rows():
    optimizer = GeneticOptimizer()
    optimizer.optimize(small_config())
    rows = [s.to_dict() for s in optimizer.generation_stats]
    assert [r['generation'] for r in rows] == [0, 1]
    assert all(r['best_fitness'] >= r['average_fitness'] >= r['worst_fitness'] for r in rows)


def test_fixed_policy_keeps_base_strategy_value():
    base = Strategy(timed_actions=(SetOrderQuantity(day=55, value=500),))
    optimizer = GeneticOptimizer(base_strategy=base,
                                 constraints=OptimizationConstraints(fixed_policies={'order_quantity'}))
    optimizer.optimize(small_config(mutation_rate=1.0, generations=3))
    for candidate in optimizer.evaluated_candidates:
        values = [a.value for a in optimizer.strategy_for(candidate).timed_actions
                  if a.action_type == 'SET_ORDER_QUANTITY']
        assert values == [500]


def test_mutation_skips_blocked_types():
    rng = np.random.default_rng(3)
    actions = [SetOrderQuantity(day=60, value=700), SetReorderPoint(day=61, value=400)]
    for _ in range(20):
        actions, _ = mutate_genes(actions, {}, 1.0, rng, blocked_types=frozenset({'SET_ORDER_QUANTITY'}))
    assert actions[0] == SetOrderQuantity(day=60, value=700)


def test_initial_population_mix():
    optimizer = GeneticOptimizer()
    optimizer.config = small_config(population_size=10)
    optimizer.rng = np.random.default_rng(0)
    origins = [c.origin for c in optimizer.initial_population()]
    assert origins == ['formula'] * 4 + ['high_mutation'] * 3 + ['random'] * 3
    optimizer.config = small_config(population_size=10, seed_with_analytical=False)
    assert {c.origin for c in optimizer.initial_population()} == {'random'}


def _stats(best_values):
    return [GenerationStats(generation=i, best_fitness=b, average_fitness=b, worst_fitness=b,
                            best_net_worth=b, error_count=0, evaluated=0) for i, b in enumerate(best_values)]


@pytest.mark.parametrize("bests, patience, stop", [
    ([100.0, 100.0], 1, True),
    ([100.0, 100.0], 2, False),
    ([100.0, 150.0, 150.0], 2, False),
    ([100.0, 150.0, 150.0, 150.0], 2, True),
])
def test_should_stop(bests, patience, stop):
    optimizer = GeneticOptimizer()
    optimizer.config = small_config(enable_early_stopping=True, early_stopping_patience=patience,
                                    early_stopping_tolerance=0.0)
    optimizer.generation_stats = _stats(bests)
    assert optimizer._should_stop() is stop


def test_should_stop_within_tolerance():
    optimizer = GeneticOptimizer()
    optimizer.config = small_config(enable_early_stopping=True, early_stopping_patience=1,
                                    early_stopping_tolerance=0.01)
    optimizer.generation_stats = _stats([1000.0, 1005.0])
    assert optimizer._should_stop()
    optimizer.generation_stats = _stats([1000.0, 1020.0])
    assert not optimizer._should_stop()


def test_early_stopping_ends_the_run():
    seen = []
    optimizer = GeneticOptimizer()
    optimizer.optimize(small_config(generations=5, enable_early_stopping=True, early_stopping_patience=1,
                                    early_stopping_tolerance=1e6),
                       on_generation=lambda i, stats: seen.append(i))
    assert seen == [0, 1]


def test_parallel_evaluation_matches_serial():
    serial = GeneticOptimizer()
    serial.optimize(small_config(population_size=4, end_day=60))
    parallel = GeneticOptimizer()
    parallel.optimize(small_config(population_size=4, end_day=60, max_workers=2))
    assert [c.fitness for c in parallel.evaluated_candidates] == [c.fitness for c in serial.evaluated_candidates]


def test_multi_run_keeps_the_best_run():
    finished = []
    multi = multi_run_optimize(small_config(population_size=4), runs=3,
                               on_run=lambda k, best: finished.append(best.fitness))
    assert len(multi.run_bests) == len(multi.run_stats) == 3
    assert multi.best_candidate.fitness == max(finished)
    assert multi.run_bests[multi.best_run_index] is multi.best_candidate
    stats = multi.fitness_stats
    assert stats['min'] <= stats['mean'] <= stats['max'] == max(finished)
    assert stats['stdev'] == pytest.approx(float(np.std(finished)))
    assert isinstance(multi.best_strategy, Strategy)


def test_multi_run_rejects_zero_runs():
    with pytest.raises(ValueError):
        multi_run_optimize(small_config(), runs=0)
