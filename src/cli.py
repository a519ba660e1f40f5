import os
import sys
import json
import time
import argparse

import config as base_config
from experiment import ExperimentRunner
from logging_export import export_all, export_charts, write_json
from main import SimulationConstraints, run_simulation
from optimizer import GeneticOptimizer, OptimizationConfig, OptimizationConstraints, multi_run_optimize
from scenarios import ScenarioManager
from state import initialize_state
from strategy import Strategy


def _load_strategy(path):
    if not path:
        return Strategy()
    data = ScenarioManager().load(path)
    return Strategy.from_dict(data.get('strategy', data))


def _output_dir(args, label):
    root = args.output or str(base_config.OUTPUT_ROOT)
    return os.path.join(root, f"{label}_{time.strftime('%Y%m%d_%H%M%S')}")


def cmd_simulate(args):
    manager = ScenarioManager()
    if args.scenario:
        scenario = manager.load(args.scenario)
        outdir = _output_dir(args, scenario.get('name', 'scenario'))
        result = manager.run_once(scenario, args.seed, outdir, verbose=not args.quiet)
    else:
        outdir = _output_dir(args, 'simulation')
        result = run_simulation(
            strategy=_load_strategy(args.strategy),
            constraints=SimulationConstraints(end_day=args.end_day, min_cash_threshold=args.min_cash),
            initial_state=initialize_state(args.initial_state),
            seed=args.seed if args.seed is not None else base_config.RANDOM_SEED,
            verbose=not args.quiet,
        )
        export_all(outdir, result, verbose=not args.quiet)
    if args.charts:
        export_charts(outdir, result.state.history)
    print(json.dumps(result.summary(), indent=2))
    return 0


def cmd_optimize(args):
    cfg = OptimizationConfig(
        population_size=args.population,
        generations=args.generations,
        mutation_rate=args.mutation_rate,
        elite_percentage=args.elite,
        enable_early_stopping=not args.no_early_stopping,
        seed_with_analytical=not args.no_analytical,
        seed=args.seed,
        evaluation_seed=args.seed,
        end_day=args.end_day,
        max_workers=args.workers,
        verbose=not args.quiet,
    )
    constraints = OptimizationConstraints(fixed_policies=frozenset(args.fix_policy or []),
                                          fixed_actions=frozenset(args.fix_action or []))
    base_strategy, initial_state = _load_strategy(args.strategy), initialize_state(args.initial_state)
    if args.runs > 1:
        multi = multi_run_optimize(cfg, args.runs, base_strategy, initial_state, constraints)
        best, best_strategy = multi.best_candidate, multi.best_strategy
        generation_stats = multi.run_stats[multi.best_run_index]
    else:
        optimizer = GeneticOptimizer(base_strategy, initial_state, constraints)
        best = optimizer.optimize(cfg)
        best_strategy, generation_stats = optimizer.strategy_for(best), optimizer.generation_stats
    # re-run the winner to export its full history
    result = run_simulation(best_strategy, SimulationConstraints(end_day=cfg.end_day, min_cash_threshold=cfg.min_cash_threshold),
                            initial_state, seed=cfg.evaluation_seed, verbose=False)
    outdir = _output_dir(args, 'optimization')
    export_all(outdir, result, generation_stats=generation_stats, verbose=not args.quiet)
    write_json(os.path.join(outdir, 'best_strategy.json'), best_strategy.to_dict())
    if args.charts:
        export_charts(outdir, result.state.history, generation_stats)
    print(f"Best fitness: {best.fitness:,.2f} | net worth: {result.final_net_worth:,.2f}")
    return 0


def cmd_experiment(args):
    if not all(os.path.exists(f) for f in args.scenario_files):
        print("FATAL: One or more scenario files not found.")
        return 1
    runner = ExperimentRunner(ScenarioManager(), verbose=not args.quiet)
    runner.run_experiments(args.scenario_files, args.replications, args.output or "experiments",
                           export_runs=args.export_runs)
    return 0


def build_parser():
    parser = argparse.ArgumentParser(prog="factory-strategy", description="Factory strategy simulator and optimizer.")
    sub = parser.add_subparsers(dest="command", required=True)

    sim = sub.add_parser("simulate", help="Run one simulation and export its artifacts.")
    sim.add_argument("--scenario", type=str, help="Scenario YAML/JSON file.")
    sim.add_argument("--strategy", type=str, help="Strategy YAML/JSON file (ignored with --scenario).")
    sim.add_argument("--initial-state", default=base_config.DEFAULT_INITIAL_STATE,
                     choices=sorted(base_config.INITIAL_STATES))
    sim.add_argument("--end-day", type=int, default=base_config.SIMULATION_END_DAY)
    sim.add_argument("--seed", type=int, default=None)
    sim.add_argument("--min-cash", type=float, default=None, help="Enable the cash guard with this threshold.")
    sim.add_argument("-o", "--output", type=str, default=None)
    sim.add_argument("--charts", action="store_true")
    sim.add_argument("-q", "--quiet", action="store_true")
    sim.set_defaults(func=cmd_simulate)

    opt = sub.add_parser("optimize", help="Search for a strategy with the genetic optimizer.")
    defaults = base_config.OPTIMIZER_CONFIG
    opt.add_argument("--strategy", type=str, help="Base strategy YAML/JSON file.")
    opt.add_argument("--initial-state", default=base_config.DEFAULT_INITIAL_STATE,
                     choices=sorted(base_config.INITIAL_STATES))
    opt.add_argument("--population", type=int, default=defaults['population_size'])
    opt.add_argument("--generations", type=int, default=defaults['generations'])
    opt.add_argument("--mutation-rate", type=float, default=defaults['mutation_rate'])
    opt.add_argument("--elite", type=float, default=defaults['elite_percentage'])
    opt.add_argument("--no-early-stopping", action="store_true")
    opt.add_argument("--no-analytical", action="store_true", help="Start from random candidates only.")
    opt.add_argument("--fix-policy", action="append", help="Policy field the optimizer must not change.")
    opt.add_argument("--fix-action", action="append", help="action_id of a base-strategy action to pin.")
    opt.add_argument("--end-day", type=int, default=base_config.SIMULATION_END_DAY)
    opt.add_argument("--seed", type=int, default=base_config.RANDOM_SEED)
    opt.add_argument("--workers", type=int, default=defaults['max_workers'])
    opt.add_argument("--runs", type=int, default=1, help="Independent GA restarts; the best run wins.")
    opt.add_argument("-o", "--output", type=str, default=None)
    opt.add_argument("--charts", action="store_true")
    opt.add_argument("-q", "--quiet", action="store_true")
    opt.set_defaults(func=cmd_optimize)

    exp = sub.add_parser("experiment", help="Replicate scenarios over several seeds.")
    exp.add_argument("scenario_files", nargs="+", help="Paths to scenario config files.")
    exp.add_argument("-n", "--replications", type=int, default=10)
    exp.add_argument("-o", "--output", type=str, default=None)
    exp.add_argument("--export-runs", action="store_true", help="Export every replication's artifacts.")
    exp.add_argument("-q", "--quiet", action="store_true")
    exp.set_defaults(func=cmd_experiment)
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except ValueError as e:
        print(f"ERROR: {e}")
        return 2


if __name__ == "__main__":
    sys.exit(main())
