import copy
import json

import pytest
import yaml

import config
from scenarios import ScenarioManager, _derive_seeds
from strategy import HireRookie

SCENARIO = {
    'name': 'two_hires',
    'initial_state': 'historical',
    'strategy': {
        'params': {'reorder_point': 600},
        'timed_actions': [{'type': 'HIRE_ROOKIE', 'day': 53, 'count': 2}],
    },
    'overrides': {'workforce.experts': 4, 'cash': 1000000.0},
    'run': {'seed': 9, 'end_day': 60},
}


@pytest.fixture
def scenario_file(tmp_path):
    path = tmp_path / 'two_hires.yaml'
    path.write_text(yaml.safe_dump(SCENARIO))
    return str(path)


def test_yaml_and_json_load_the_same(tmp_path, scenario_file):
    json_path = tmp_path / 'two_hires.json'
    json_path.write_text(json.dumps(SCENARIO))
    manager = ScenarioManager()
    assert manager.load(scenario_file) == manager.load(str(json_path)) == SCENARIO


def test_build_strategy(scenario_file):
    manager = ScenarioManager()
    strategy = manager.build_strategy(manager.load(scenario_file))
    assert strategy.params['reorder_point'] == 600
    assert strategy.timed_actions == (HireRookie(day=53, count=2),)


def test_dot_path_overrides_reach_nested_state(scenario_file):
    manager = ScenarioManager()
    state = manager.build_initial_state(manager.load(scenario_file))
    assert state.workforce.experts == 4
    assert state.cash == 1000000.0
    assert state.machines.WMA == 2


def test_bad_override_path_raises():
    scenario = dict(SCENARIO, overrides={'workforce.wizards': 1})
    with pytest.raises(AttributeError):
        ScenarioManager().build_initial_state(scenario)


def test_unknown_action_type_raises():
    scenario = dict(SCENARIO, timed_actions=[{'type': 'TELEPORT', 'day': 60}])
    with pytest.raises(ValueError):
        ScenarioManager().build_strategy(scenario)


def test_run_once_uses_run_settings(scenario_file, tmp_path):
    manager = ScenarioManager()
    result = manager.run_once(manager.load(scenario_file), output_dir=str(tmp_path / 'out'))
    assert result.seed == 9
    assert result.state.history.days[-1] == 60
    assert result.state.workforce.rookies == 2
    assert (tmp_path / 'out' / 'history.csv').exists()


def test_seed_policies():
    assert _derive_seeds('fixed', 5, 3) == [5, 5, 5]
    assert _derive_seeds('increment', 5, 3) == [5, 6, 7]
    assert _derive_seeds('random', 5, 4) == _derive_seeds('random', 5, 4)
    with pytest.raises(ValueError):
        _derive_seeds('lunar', 5, 2)


def test_batch_writes_index(tmp_path):
    short = {'name': 'short', 'run': {'end_day': 53}}
    results = ScenarioManager().run_batch([short, dict(short, name='other')], str(tmp_path))
    assert [r['label'] for r in results] == ['short', 'other']
    assert len(list(tmp_path.glob('batch_*/index.json'))) == 1


def test_bare_run_key_uses_defaults():
    scenario = yaml.safe_load("name: bare\nrun:\n")
    manager = ScenarioManager()
    assert manager.build_constraints(scenario).end_day == config.SIMULATION_END_DAY
    assert manager.build_initial_state(scenario).current_day == config.SIMULATION_START_DAY
    assert manager.replication_seeds(scenario, 2) == [config.RANDOM_SEED, config.RANDOM_SEED + 1]


def test_config_overrides_apply_for_one_run():
    rate = config.FINANCIAL_CONFIG['daily_debt_interest_rate']
    scenario = {'name': 'no_interest', 'run': {'end_day': 55},
                'config_overrides': {'FINANCIAL_CONFIG.daily_debt_interest_rate': 0.0}}
    manager = ScenarioManager()
    with manager.applied_config(scenario):
        assert config.FINANCIAL_CONFIG['daily_debt_interest_rate'] == 0.0
    assert config.FINANCIAL_CONFIG['daily_debt_interest_rate'] == rate
    free = manager.run_once(scenario)
    charged = manager.run_once(dict(scenario, config_overrides={}))
    assert sum(free.state.history.values('interest_paid')) == 0.0
    assert sum(charged.state.history.values('interest_paid')) > 0.0
    assert config.FINANCIAL_CONFIG['daily_debt_interest_rate'] == rate


@pytest.mark.parametrize("key, error", [
    ('SIMULATION_END_DAY', ValueError),
    ('FINANCIAL_CONFIG.no_such_rate', AttributeError),
    ('MACHINE_PRICES.LASER.buy', AttributeError),
])
def test_bad_config_override_restores_config(key, error):
    before = copy.deepcopy(config.FINANCIAL_CONFIG)
    scenario = {'config_overrides': {'FINANCIAL_CONFIG.daily_cash_interest_rate': 0.5, key: 1}}
    with pytest.raises(error):
        with ScenarioManager().applied_config(scenario):
            pass
    assert config.FINANCIAL_CONFIG == before
