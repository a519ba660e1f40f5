import json
import math

import pytest
import yaml

from experiment import ExperimentRunner, aggregate_results, summarize


def test_summary_statistics():
    s = summarize([1.0, 2.0, 3.0])
    assert s['mean'] == 2.0
    assert s['stdev'] == 1.0
    assert s['n'] == 3
    assert s['ci95_half_width'] == pytest.approx(4.302653 / math.sqrt(3), rel=1e-5)
    assert summarize([7.0]) == {'mean': 7.0, 'stdev': 0.0, 'n': 1, 'ci95_half_width': 0.0}


def test_failed_replications_are_counted():
    stats = aggregate_results({
        'a': [{'final_cash': 10.0}, {'error': 'boom'}, {'final_cash': 20.0}],
        'b': [{'error': 'boom'}],
    })
    assert stats['a']['final_cash']['mean'] == 15.0
    assert stats['a']['failed_replications'] == 1
    assert stats['b'] == {'error': 'No valid results found.'}


def test_replications_use_distinct_seeds():
    scenario = {'name': 'short', 'run': {'end_day': 56, 'base_seed': 100, 'seed_policy': 'increment'}}
    rows = ExperimentRunner(verbose=False).run_replications(scenario, 3)
    assert len(rows) == 3
    assert all('final_net_worth' in r for r in rows)


def test_bad_replication_is_recorded():
    scenario = {'name': 'broken', 'initial_state': 'nowhere', 'run': {'end_day': 56}}
    rows = ExperimentRunner(verbose=False).run_replications(scenario, 2)
    assert all('error' in r for r in rows)


def test_run_experiments_writes_summary(tmp_path):
    path = tmp_path / 'short.yaml'
    path.write_text(yaml.safe_dump({'name': 'short', 'run': {'end_day': 55, 'base_seed': 1}}))
    stats = ExperimentRunner(verbose=False).run_experiments([str(path)], 2, str(tmp_path / 'exp'))
    assert stats['short']['final_net_worth']['n'] == 2
    summaries = list((tmp_path / 'exp').glob('experiment_*/experiment_summary.json'))
    assert len(summaries) == 1
    assert 'short' in json.loads(summaries[0].read_text())
