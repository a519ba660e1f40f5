import os
import csv
import json
from typing import Dict, List, Any, Iterable, Optional
import pandas as pd
class EventLog:
    def __init__(self) -> None:
        self.events: List[Dict[str, Any]] = []
        self._eid: int = 0
    def clear(self) -> None:
        self.events.clear()
        self._eid = 0
    def __len__(self) -> int:
        return len(self.events)
    def log(self, event_type: str, day: int, **fields: Any) -> None:
        self._eid += 1
        row = {
            'event_id': self._eid,
            'event_type': event_type,
            'day': day,
        }
        row.update(fields)
        self.events.append(row)
    def of_type(self, event_type: str) -> List[Dict[str, Any]]:
        return [e for e in self.events if e['event_type'] == event_type]
def _ensure_dir(path: str) -> None:
    os.makedirs(path, exist_ok=True)
def _write_csv(path: str, rows: Iterable[Dict[str, Any]], fieldnames: Optional[List[str]] = None) -> None:
    _ensure_dir(os.path.dirname(path) or ".")
    rows = list(rows)
    if not rows and not fieldnames:
        open(path, 'w').close()
        return
    if fieldnames is None:
        all_keys = set()
        for r in rows:
            all_keys.update(r.keys())
        preferred_order = ['event_id', 'event_type', 'day', 'type', 'amount', 'commission', 'net_amount']
        final_fieldnames = [k for k in preferred_order if k in all_keys]
        remaining_keys = sorted([k for k in all_keys if k not in preferred_order])
        final_fieldnames.extend(remaining_keys)
    else:
        final_fieldnames = fieldnames
    with open(path, 'w', newline='') as f:
        writer = csv.DictWriter(f, fieldnames=final_fieldnames, extrasaction='ignore')
        writer.writeheader()
        if rows:
            writer.writerows(rows)
def write_json(path: str, obj: Any) -> None:
    _ensure_dir(os.path.dirname(path) or ".")
    with open(path, 'w') as f:
        json.dump(obj, f, indent=2)
def history_to_frame(history) -> pd.DataFrame:
    """One row per simulated day, one column per tracked metric."""
    if not len(history):
        return pd.DataFrame()
    frame = pd.DataFrame({name: history.values(name) for name in history.metric_names}, index=history.days)
    frame.index.name = 'day'
    return frame
def export_all(output_dir: str, result, generation_stats=None, verbose: bool = True) -> Dict[str, str]:
    from financial_analysis import FinancialAnalysis
    _ensure_dir(output_dir)
    state = result.state
    paths = {
        'history': os.path.join(output_dir, 'history.csv'),
        'actions': os.path.join(output_dir, 'actions.csv'),
        'loans': os.path.join(output_dir, 'loans.csv'),
        'events': os.path.join(output_dir, 'events.csv'),
        'kpis': os.path.join(output_dir, 'kpis.json'),
        'strategy': os.path.join(output_dir, 'strategy.json'),
        'business_rules': os.path.join(output_dir, 'business_rules.json'),
    }
    history_to_frame(state.history).to_csv(paths['history'])
    _write_csv(paths['actions'], state.history.actions_performed)
    _write_csv(paths['loans'], [loan.to_dict() for loan in state.loans])
    _write_csv(paths['events'], state.events.events)
    analysis = FinancialAnalysis(result).calculate_all_metrics()
    write_json(paths['kpis'], analysis)
    write_json(paths['strategy'], result.strategy.to_dict())
    write_json(paths['business_rules'], analysis['business_rules'])
    if verbose and not analysis['business_rules']['valid']:
        print(f"WARNING: Run violates {analysis['business_rules']['critical_count']} critical business rule(s), see {paths['business_rules']}")
    if generation_stats:
        paths['generations'] = os.path.join(output_dir, 'generations.csv')
        export_generation_stats(paths['generations'], generation_stats)
    if verbose:
        print(f"SUCCESS: Simulation artifacts exported to '{output_dir}'.")
    return paths
def export_generation_stats(path: str, generation_stats) -> None:
    frame = pd.DataFrame([s.to_dict() for s in generation_stats])
    _ensure_dir(os.path.dirname(path) or ".")
    frame.to_csv(path, index=False)
def export_charts(output_dir: str, history, generation_stats=None) -> List[str]:
    """Renders the finance and production trajectories (and GA progress) to PNG."""
    import matplotlib
    matplotlib.use("Agg")
    import matplotlib.pyplot as plt
    _ensure_dir(output_dir)
    frame = history_to_frame(history)
    written = []
    if not frame.empty:
        fig, (ax_fin, ax_prod) = plt.subplots(2, 1, figsize=(10, 8), sharex=True)
        frame[['cash', 'debt', 'net_worth']].plot(ax=ax_fin)
        ax_fin.set_ylabel('$')
        ax_fin.set_title('Cash, debt and net worth')
        frame[['standard_production', 'custom_production', 'standard_wip', 'custom_wip']].plot(ax=ax_prod)
        ax_prod.set_ylabel('units / orders')
        ax_prod.set_title('Production and WIP')
        path = os.path.join(output_dir, 'trajectory.png')
        fig.tight_layout()
        fig.savefig(path)
        plt.close(fig)
        written.append(path)
    if generation_stats:
        stats_frame = pd.DataFrame([s.to_dict() for s in generation_stats]).set_index('generation')
        fig, ax = plt.subplots(figsize=(8, 4))
        stats_frame[['best_fitness', 'average_fitness', 'worst_fitness']].plot(ax=ax)
        ax.set_title('Fitness by generation')
        path = os.path.join(output_dir, 'generations.png')
        fig.tight_layout()
        fig.savefig(path)
        plt.close(fig)
        written.append(path)
    return written
