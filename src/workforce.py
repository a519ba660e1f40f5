from dataclasses import dataclass
from typing import List

from config import WORKFORCE_CONFIG
from state import RookieInTraining

@dataclass
class SalaryCost:
    regular: float
    overtime: float

    @property
    def total(self) -> float:
        return self.regular + self.overtime

def hire_rookies(state, count: int) -> int:
    count = max(0, int(count))
    for _ in range(count):
        state.workforce.rookies += 1
        state.workforce.rookies_in_training.append(
            RookieInTraining(hire_day=state.current_day, remaining_days=WORKFORCE_CONFIG['rookie_training_days'])
        )
    return count

def _trim_training(workforce) -> None:
    # rookies leaving are taken from the most recent hires
    excess = len(workforce.rookies_in_training) - workforce.rookies
    if excess > 0:
        del workforce.rookies_in_training[-excess:]

def remove_employees(state, employee_type: str, count: int) -> int:
    wf = state.workforce
    count = max(0, int(count))
    if employee_type == 'expert':
        removed = min(count, wf.experts)
        wf.experts -= removed
    else:
        removed = min(count, wf.rookies)
        wf.rookies -= removed
        _trim_training(wf)
    return removed

def process_training(state) -> List[RookieInTraining]:
    wf = state.workforce
    promoted, still_training = [], []
    for trainee in wf.rookies_in_training:
        trainee.remaining_days -= 1
        if trainee.remaining_days <= 0:
            promoted.append(trainee)
        else:
            still_training.append(trainee)
    wf.rookies_in_training = still_training
    wf.rookies -= len(promoted)
    wf.experts += len(promoted)
    for trainee in promoted:
        state.events.log('rookie_promoted', state.current_day, hire_day=trainee.hire_day)
    return promoted

def arcp_capacity(workforce) -> float:
    expert = WORKFORCE_CONFIG['expert_productivity']
    return workforce.experts * expert + workforce.rookies * expert * WORKFORCE_CONFIG['rookie_productivity_factor']

def salary_cost(workforce, overtime_hours: float = 0.0) -> SalaryCost:
    cfg = WORKFORCE_CONFIG
    regular = workforce.experts * cfg['expert_salary'] + workforce.rookies * cfg['rookie_salary']
    overtime = 0.0
    if overtime_hours > 0:
        hourly = workforce.experts * cfg['expert_salary'] / cfg['shift_hours'] \
            + workforce.rookies * cfg['rookie_salary'] / cfg['shift_hours']
        overtime = overtime_hours * cfg['overtime_multiplier'] * hourly
    return SalaryCost(regular=regular, overtime=overtime)

def track_overtime(state, worked_overtime: bool) -> int:
    wf = state.workforce
    wf.consecutive_overtime_days = wf.consecutive_overtime_days + 1 if worked_overtime else 0
    return wf.consecutive_overtime_days

def process_quit_risk(state, policy, rng) -> int:
    """Each worker past the overtime trigger quits independently with the daily probability."""
    wf = state.workforce
    if wf.consecutive_overtime_days < policy.overtime_trigger_days or policy.daily_quit_probability <= 0:
        return 0
    p = min(1.0, float(policy.daily_quit_probability))
    expert_quits = int(rng.binomial(wf.experts, p)) if wf.experts else 0
    rookie_quits = int(rng.binomial(wf.rookies, p)) if wf.rookies else 0
    remove_employees(state, 'expert', expert_quits)
    remove_employees(state, 'rookie', rookie_quits)
    total = expert_quits + rookie_quits
    if total:
        state.events.log('worker_quit', state.current_day, experts=expert_quits, rookies=rookie_quits)
    return total
