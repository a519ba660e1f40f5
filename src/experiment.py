import os
import json
import datetime
import statistics
import math
from typing import Any, Dict, List, Optional
import numpy as np
from scipy import stats
from scenarios import ScenarioManager
class ExperimentRunner:
    """Replicates scenarios over several seeds and aggregates their KPIs."""
    def __init__(self, scenario_manager: Optional[ScenarioManager] = None, verbose: bool = True):
        self.sm = scenario_manager if scenario_manager is not None else ScenarioManager()
        self.verbose = verbose
    def run_replications(self, scenario: Dict[str, Any], replications: int,
                         output_dir: Optional[str] = None) -> List[Dict[str, Any]]:
        if replications < 1:
            raise ValueError(f"replications must be at least 1, got {replications}")
        scenario_name = scenario.get('name', 'scenario')
        results = []
        for i, seed in enumerate(self.sm.replication_seeds(scenario, replications)):
            rep_num = i + 1
            label = f"{scenario_name}_rep{rep_num:03d}"
            rep_dir = os.path.join(output_dir, label) if output_dir else None
            if self.verbose:
                print(f"  Running replication {rep_num}/{replications} (Seed: {seed})...")
            try:
                result = self.sm.run_once(scenario, seed, rep_dir, label)
                results.append(result.summary())
            except Exception as e:
                print(f"  ERROR: Replication {rep_num} for '{scenario_name}' failed: {e}")
                results.append({"error": str(e)})
        return results
    def run_experiments(self, scenario_files: List[str], replications: int,
                        output_root: str = "experiments", export_runs: bool = False) -> Dict[str, Any]:
        timestamp = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
        experiment_dir = os.path.join(output_root, f"experiment_{timestamp}")
        os.makedirs(experiment_dir, exist_ok=True)
        print(f"--- Starting Experiment Run ---")
        print(f"Saving all outputs to: {experiment_dir}")
        all_scenario_results = {}
        for scenario_file in scenario_files:
            scenario = self.sm.load(scenario_file)
            scenario_name = scenario.get('name', os.path.basename(scenario_file).split('.')[0])
            scenario.setdefault('name', scenario_name)
            print(f"\nProcessing Scenario: '{scenario_name}' for {replications} replications...")
            all_scenario_results[scenario_name] = self.run_replications(
                scenario, replications, experiment_dir if export_runs else None)
        print("\n--- Experiment Complete. Analyzing results... ---")
        aggregated_stats = aggregate_results(all_scenario_results)
        summary_path = os.path.join(experiment_dir, "experiment_summary.json")
        with open(summary_path, "w") as f:
            json.dump(aggregated_stats, f, indent=4, cls=NumpyEncoder)
        print(f"\nFinal aggregated results saved to: {summary_path}")
        print_summary_table(aggregated_stats)
        return aggregated_stats
def summarize(values: List[float]) -> Dict[str, float]:
    """Mean, sample stdev, n and the 95% Student-t half-width."""
    valid_values = [float(v) for v in values if v is not None and not np.isnan(v)]
    n = len(valid_values)
    if n > 1:
        mean = statistics.mean(valid_values)
        stdev = statistics.stdev(valid_values)
        ci95_half_width = float(stats.t.ppf(0.975, df=n-1) * (stdev / math.sqrt(n)))
    elif n == 1:
        mean, stdev, ci95_half_width = valid_values[0], 0.0, 0.0
    else:
        mean, stdev, ci95_half_width = 0.0, 0.0, 0.0
    return {"mean": mean, "stdev": stdev, "n": n, "ci95_half_width": ci95_half_width}
def aggregate_results(all_results: Dict[str, List[Dict[str, Any]]]) -> Dict[str, Any]:
    analysis_summary = {}
    for scenario_name, results_list in all_results.items():
        valid = [r for r in results_list if r and 'error' not in r]
        if not valid:
            analysis_summary[scenario_name] = {"error": "No valid results found."}
            continue
        kpi_keys = valid[0].keys()
        analysis_summary[scenario_name] = {
            key: summarize([r.get(key, np.nan) for r in valid]) for key in kpi_keys
        }
        failures = len(results_list) - len(valid)
        if failures:
            analysis_summary[scenario_name]["failed_replications"] = failures
    return analysis_summary
def print_summary_table(aggregated_stats: dict):
    print("\n" + "="*80 + "\nSTATISTICAL EXPERIMENT SUMMARY\n" + "="*80)
    scenarios_list = list(aggregated_stats.keys())
    if not scenarios_list: return
    kpi_names = sorted(set(k for s in scenarios_list for k, v in aggregated_stats.get(s, {}).items() if isinstance(v, dict)))
    header = f"{'KPI':<25}" + "".join(f" | {name:<28}" for name in scenarios_list)
    print(header + "\n" + "-" * len(header))
    for kpi in kpi_names:
        row = f"{kpi:<25}"
        for name in scenarios_list:
            s = aggregated_stats.get(name, {}).get(kpi)
            val_str = f"{s['mean']:.2f} +/- {s['ci95_half_width']:.2f}" if isinstance(s, dict) and "mean" in s else "N/A"
            row += f" | {val_str:<28}"
        print(row)
    print("="*80)
class NumpyEncoder(json.JSONEncoder):
    def default(self, o):
        if isinstance(o, np.integer): return int(o)
        if isinstance(o, np.floating): return float(o)
        if isinstance(o, np.ndarray): return o.tolist()
        return super().default(o)
