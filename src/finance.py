"""
Finance primitives: interest, loans, debt repayment and payments.

Every operation takes the run's state, mutates it in place and returns a
transaction record. Payments never fail: a cash shortfall is covered by an
automatic salary loan, which is the engine's backpressure mechanism.
"""
import math
from dataclasses import dataclass, asdict
from typing import Optional

from config import DEBT_MANAGEMENT_CONFIG, FINANCIAL_CONFIG, RAW_MATERIAL_CONFIG, WORKFORCE_CONFIG

@dataclass
class InterestTransaction:
    kind: str
    amount: float
    cash_after: float
    debt_after: float

@dataclass
class LoanTransaction:
    day: int
    amount: float
    commission: float
    net_amount: float
    is_salary_loan: bool
    description: str = ''

    def to_dict(self):
        return asdict(self)

@dataclass
class DebtPayment:
    requested: float
    paid: float
    success: bool

@dataclass
class Payment:
    amount: float
    description: str
    cash_before: float
    loan: Optional[LoanTransaction] = None

    @property
    def financed(self) -> bool:
        return self.loan is not None

@dataclass
class FinancialHealth:
    cash: float
    debt: float
    net_worth: float
    debt_to_asset_ratio: float
    daily_debt_cost: float
    is_solvent: bool

# --- Interest ---

def apply_debt_interest(state) -> InterestTransaction:
    amount = 0.0
    if state.debt > 0:
        amount = state.debt * FINANCIAL_CONFIG['daily_debt_interest_rate']
        state.debt += amount
        state.cash -= amount
        state.ledger.interest_paid += amount
        state.ledger.expenses += amount
    return InterestTransaction('debt_interest', amount, state.cash, state.debt)

def apply_cash_interest(state) -> InterestTransaction:
    amount = 0.0
    if state.cash > 0:
        amount = state.cash * FINANCIAL_CONFIG['daily_cash_interest_rate']
        state.cash += amount
        state.ledger.interest_earned += amount
    return InterestTransaction('cash_interest', amount, state.cash, state.debt)

# --- Loans and repayment ---

def take_loan(state, amount: float, is_salary_loan: bool = False, description: str = '') -> LoanTransaction:
    amount = max(0.0, float(amount)) if math.isfinite(amount) else 0.0
    rate = FINANCIAL_CONFIG['salary_loan_commission' if is_salary_loan else 'normal_loan_commission']
    commission = amount * rate
    loan = LoanTransaction(
        day=state.current_day,
        amount=amount,
        commission=commission,
        net_amount=amount - commission,
        is_salary_loan=is_salary_loan,
        description=description,
    )
    if amount > 0:
        state.cash += loan.net_amount
        state.debt += amount
        state.ledger.loan_commissions += commission
        state.ledger.expenses += commission
        state.loans.append(loan)
        state.events.log('loan_taken', state.current_day, amount=amount, commission=commission,
                         salary_loan=is_salary_loan, description=description)
    return loan

def pay_debt(state, amount: float) -> DebtPayment:
    requested = float(amount) if math.isfinite(amount) else 0.0
    actual = min(requested, state.debt, state.cash)
    if actual <= 0:
        return DebtPayment(requested, 0.0, False)
    state.cash -= actual
    state.debt -= actual
    return DebtPayment(requested, actual, True)

def covering_loan_amount(shortfall: float, is_salary_loan: bool = True) -> float:
    # gross amount whose net after commission covers the shortfall, up to the next cent
    rate = FINANCIAL_CONFIG['salary_loan_commission' if is_salary_loan else 'normal_loan_commission']
    return math.ceil(shortfall / (1 - rate) * 100) / 100 + 0.01

def process_payment(state, amount: float, description: str = '') -> Payment:
    amount = max(0.0, float(amount)) if math.isfinite(amount) else 0.0
    payment = Payment(amount=amount, description=description, cash_before=state.cash)
    if amount <= 0:
        return payment
    if state.cash < amount:
        shortfall = amount - state.cash
        payment.loan = take_loan(state, covering_loan_amount(shortfall), is_salary_loan=True,
                                 description=f"automatic: {description}")
    state.cash -= amount
    state.ledger.expenses += amount
    return payment

def add_revenue(state, amount: float, description: str = '') -> float:
    if amount <= 0:
        return 0.0
    state.cash += amount
    state.ledger.revenue += amount
    return amount

def get_financial_health(state) -> FinancialHealth:
    net_worth = state.cash - state.debt
    ratio = state.debt / state.cash if state.cash > 0 else math.inf
    return FinancialHealth(
        cash=state.cash,
        debt=state.debt,
        net_worth=net_worth,
        debt_to_asset_ratio=ratio,
        daily_debt_cost=state.debt * FINANCIAL_CONFIG['daily_debt_interest_rate'],
        is_solvent=net_worth > 0,
    )

# --- Automated debt management ---

def daily_payroll(state) -> float:
    wf = state.workforce
    return wf.experts * WORKFORCE_CONFIG['expert_salary'] + wf.rookies * WORKFORCE_CONFIG['rookie_salary']

def calculate_min_cash_reserve(state, policy) -> float:
    """Reserve = (salaries + overtime + amortized material spend) x reserve days."""
    salaries = daily_payroll(state)
    overtime = 0.0
    if policy.daily_overtime_hours > 0:
        overtime = salaries * policy.daily_overtime_hours / WORKFORCE_CONFIG['shift_hours'] * WORKFORCE_CONFIG['overtime_multiplier']
    material = (RAW_MATERIAL_CONFIG['order_fee'] + policy.order_quantity * RAW_MATERIAL_CONFIG['unit_cost']) \
        / DEBT_MANAGEMENT_CONFIG['material_amortization_days']
    return (salaries + overtime + material) * policy.min_cash_reserve_days

def prevent_wage_advance(state, policy) -> Optional[LoanTransaction]:
    # regular loan sized so the next payroll buffer is covered before salaries are paid
    needed = daily_payroll(state) * DEBT_MANAGEMENT_CONFIG['payroll_buffer_days']
    if state.cash >= needed:
        return None
    return take_loan(state, covering_loan_amount(needed - state.cash, is_salary_loan=False),
                     is_salary_loan=False, description='preemptive payroll loan')

def execute_debt_paydown(state, policy) -> DebtPayment:
    if state.debt <= 0:
        return DebtPayment(0.0, 0.0, False)
    excess = state.cash - calculate_min_cash_reserve(state, policy)
    if excess <= 0:
        return DebtPayment(0.0, 0.0, False)
    return pay_debt(state, excess * policy.debt_paydown_aggressiveness)

def automated_debt_management(state, policy):
    if not policy.auto_debt_management:
        return None, None
    loan = prevent_wage_advance(state, policy)
    payment = execute_debt_paydown(state, policy)
    return loan, payment
