import os, json, time, copy
from contextlib import contextmanager
from typing import Dict, Any, List, Optional, Tuple
import numpy as np
import yaml
import config as base_config
from logging_export import export_all
from main import SimulationConstraints, SimulationResult, run_simulation
from state import SimulationState, initialize_state
from strategy import Strategy, action_from_dict
def _set_by_path(obj: Any, path: str, value: Any):
    parts = path.split('.')
    cur = obj
    for i, p in enumerate(parts[:-1]):
        if isinstance(cur, dict) and p in cur:
            cur = cur[p]
        elif hasattr(cur, p):
            cur = getattr(cur, p)
        else:
            bad_path = '.'.join(parts[:i+1])
            raise AttributeError(f"Error setting override: Cannot resolve path part '{p}' in '{bad_path}'.")
    last = parts[-1]
    if isinstance(cur, dict):
        cur[last] = value
    elif hasattr(cur, last):
        setattr(cur, last, copy.deepcopy(value))
    else:
        raise AttributeError(f"Error setting override: '{path}' does not name an existing field.")
def _override_config(cfg_module, overrides: Dict[str, Any], undo: List[Tuple[dict, str, Any]]):
    for key, value in (overrides or {}).items():
        parts = key.split('.')
        cur = getattr(cfg_module, parts[0], None)
        if len(parts) < 2 or not isinstance(cur, dict):
            raise ValueError(f"Config override '{key}' must name a key inside a dict section, "
                             f"e.g. FINANCIAL_CONFIG.daily_debt_interest_rate")
        for i, p in enumerate(parts[1:-1], start=1):
            if not isinstance(cur.get(p), dict):
                bad_path = '.'.join(parts[:i+1])
                raise AttributeError(f"Error setting config override: Cannot resolve path part '{p}' in '{bad_path}'.")
            cur = cur[p]
        last = parts[-1]
        if last not in cur:
            raise AttributeError(f"Error setting config override: '{key}' does not name an existing setting.")
        undo.append((cur, last, cur[last]))
        cur[last] = copy.deepcopy(value)
def _ensure_dir(p: str):
    os.makedirs(p, exist_ok=True)
def _load_json_or_yaml(path: str) -> Dict[str, Any]:
    with open(path, "r") as f:
        text = f.read()
    if path.lower().endswith((".yaml", ".yml")):
        return yaml.safe_load(text) or {}
    return json.loads(text)
def _derive_seeds(policy: str, base_seed: Optional[int], n: int) -> List[Optional[int]]:
    if policy == "fixed":
        return [base_seed] * n
    if policy == "increment":
        start = 0 if base_seed is None else base_seed
        return [start + i for i in range(n)]
    if policy == "random":
        rng = np.random.default_rng(base_seed)
        return [int(s) for s in rng.integers(1, 10**9, size=n)]
    raise ValueError(f"Unknown seed policy '{policy}'. Valid options: fixed, increment, random")
class ScenarioManager:
    """
    A scenario file names an initial state, a strategy (parameter overrides
    plus timed actions), dot-path overrides applied to the initial state, and
    run settings (seed, end day, cash guard threshold). `config_overrides`
    patches keys of the dict sections in config.py for the duration of a run.

        name: lean_inventory
        initial_state: business_case
        strategy:
          params: {reorder_point: 600}
          timed_actions:
            - {type: HIRE_ROOKIE, day: 60, count: 2}
        overrides:
          workforce.experts: 2
        config_overrides:
          FINANCIAL_CONFIG.daily_debt_interest_rate: 0.002
        run: {seed: 7, end_day: 200, seed_policy: increment}
    """
    def __init__(self, base_cfg_module=base_config):
        self.base_cfg_module = base_cfg_module
    def load(self, path: str) -> Dict[str, Any]:
        data = _load_json_or_yaml(path)
        return data or {}
    def build_strategy(self, scenario: Dict[str, Any]) -> Strategy:
        section = scenario.get("strategy", {}) or {}
        params = dict(section.get("params", {}))
        params.update(scenario.get("strategy_params", {}) or {})
        actions = [action_from_dict(a) for a in section.get("timed_actions", [])]
        actions += [action_from_dict(a) for a in scenario.get("timed_actions", [])]
        return Strategy(params=params, timed_actions=tuple(actions))
    def build_initial_state(self, scenario: Dict[str, Any]) -> SimulationState:
        run = scenario.get("run") or {}
        name = scenario.get("initial_state", self.base_cfg_module.DEFAULT_INITIAL_STATE)
        start_day = run.get("start_day", self.base_cfg_module.SIMULATION_START_DAY)
        state = initialize_state(name, start_day)
        for key, value in (scenario.get("overrides") or {}).items():
            try:
                _set_by_path(state, key, value)
            except Exception as e:
                print(f"ERROR applying dot-key override '{key}': {e}")
                raise
        return state
    def build_constraints(self, scenario: Dict[str, Any]) -> SimulationConstraints:
        run = scenario.get("run") or {}
        return SimulationConstraints(
            end_day=run.get("end_day", self.base_cfg_module.SIMULATION_END_DAY),
            min_cash_threshold=run.get("min_cash_threshold"),
        )
    @contextmanager
    def applied_config(self, scenario: Dict[str, Any]):
        undo = []
        try:
            _override_config(self.base_cfg_module, scenario.get("config_overrides"), undo)
            yield self.base_cfg_module
        finally:
            for container, key, old in reversed(undo):
                container[key] = old
    def run_once(self, scenario: Dict[str, Any], seed: Optional[int] = None, output_dir: Optional[str] = None,
                 label: Optional[str] = None, verbose: bool = False) -> SimulationResult:
        label = label or scenario.get("name", "scenario")
        if seed is None:
            seed = (scenario.get("run") or {}).get("seed", self.base_cfg_module.RANDOM_SEED)
        with self.applied_config(scenario):
            result = run_simulation(
                strategy=self.build_strategy(scenario),
                constraints=self.build_constraints(scenario),
                initial_state=self.build_initial_state(scenario),
                seed=seed,
                verbose=verbose,
            )
            if output_dir:
                _ensure_dir(output_dir)
                export_all(output_dir, result, verbose=verbose)
        if output_dir:
            if verbose:
                print(f"Scenario '{label}' (seed {seed}) exported to {output_dir}")
        return result
    def replication_seeds(self, scenario: Dict[str, Any], replications: int) -> List[Optional[int]]:
        run = scenario.get("run") or {}
        base_seed = run.get("base_seed", run.get("seed", self.base_cfg_module.RANDOM_SEED))
        return _derive_seeds(run.get("seed_policy", "increment"), base_seed, replications)
    def run_batch(self, scenarios: List[Dict[str, Any]], out_root: str) -> List[Dict[str, Any]]:
        results = []
        timestamp = time.strftime("%Y%m%d_%H%M%S")
        batch_root = os.path.join(out_root, f"batch_{timestamp}")
        _ensure_dir(batch_root)
        for i, sc in enumerate(scenarios):
            label = sc.get("name", f"scenario_{i+1}")
            outdir = os.path.join(batch_root, label)
            result = self.run_once(sc, None, outdir, label)
            results.append({"label": label, "seed": result.seed, "output_dir": outdir, "summary": result.summary()})
        with open(os.path.join(batch_root, "index.json"), "w") as f:
            json.dump(results, f, indent=2)
        return results
