import math

import pytest

from finance import (
    add_revenue,
    apply_cash_interest,
    apply_debt_interest,
    automated_debt_management,
    calculate_min_cash_reserve,
    covering_loan_amount,
    get_financial_health,
    pay_debt,
    prevent_wage_advance,
    process_payment,
    take_loan,
)


def test_debt_interest_moves_cash_into_debt(state):
    tx = apply_debt_interest(state)
    assert tx.amount == pytest.approx(70.0)
    assert state.debt == pytest.approx(70070.0)
    assert state.cash == pytest.approx(8206.12 - 70.0)


def test_debt_interest_is_noop_without_debt(rich_state):
    cash = rich_state.cash
    assert apply_debt_interest(rich_state).amount == 0.0
    assert rich_state.cash == cash


def test_cash_interest_only_on_positive_cash(state):
    apply_cash_interest(state)
    assert state.cash == pytest.approx(8206.12 * 1.0005)
    state.cash = -100.0
    assert apply_cash_interest(state).amount == 0.0
    assert state.cash == -100.0


@pytest.mark.parametrize("salary, rate", [(False, 0.02), (True, 0.05)])
def test_take_loan_books_full_amount_as_debt(state, salary, rate):
    loan = take_loan(state, 10000, is_salary_loan=salary)
    assert loan.commission == pytest.approx(10000 * rate)
    assert state.cash == pytest.approx(8206.12 + 10000 * (1 - rate))
    assert state.debt == pytest.approx(80000.0)
    assert state.loans[-1] is loan
    assert state.events.of_type('loan_taken')


def test_pay_debt_is_limited_by_cash_and_debt(state):
    result = pay_debt(state, 50000)
    assert result.success
    assert result.paid == pytest.approx(8206.12)
    assert state.cash == pytest.approx(0.0)
    assert state.debt == pytest.approx(70000 - 8206.12)


def test_pay_debt_without_debt_changes_nothing(rich_state):
    cash = rich_state.cash
    result = pay_debt(rich_state, 1000)
    assert not result.success
    assert rich_state.cash == cash and rich_state.debt == 0


def test_payment_within_cash_takes_no_loan(state):
    payment = process_payment(state, 1000, 'rent')
    assert not payment.financed
    assert state.cash == pytest.approx(7206.12)
    assert state.debt == 70000


@pytest.mark.parametrize("amount", [0.01, 8206.12, 8206.13, 21000, 123456.78])
def test_payment_always_covered(state, amount):
    payment = process_payment(state, amount, 'bill')
    net = payment.loan.net_amount if payment.financed else 0.0
    assert payment.cash_before + net >= amount
    assert state.cash >= 0


def test_payment_shortfall_uses_salary_loan(state):
    payment = process_payment(state, 21000, 'materials')
    assert payment.loan.is_salary_loan
    assert payment.loan.amount == pytest.approx(covering_loan_amount(21000 - 8206.12))


def test_financial_health(state):
    health = get_financial_health(state)
    assert health.net_worth == pytest.approx(8206.12 - 70000)
    assert not health.is_solvent
    assert health.daily_debt_cost == pytest.approx(70.0)
    state.cash = 0
    assert math.isinf(get_financial_health(state).debt_to_asset_ratio)


def test_add_revenue_ignores_non_positive(state):
    assert add_revenue(state, -5) == 0.0
    add_revenue(state, 500)
    assert state.ledger.revenue == 500
    assert state.cash == pytest.approx(8706.12)


def test_debt_management_disabled_by_default(state, policy):
    assert automated_debt_management(state, policy) == (None, None)
    assert state.debt == 70000


def test_debt_management_pays_down_excess_cash(rich_state, policy):
    rich_state.debt = 100000.0
    policy.auto_debt_management = True
    loan, payment = automated_debt_management(rich_state, policy)
    assert loan is None
    assert payment.paid == pytest.approx(100000.0)
    assert rich_state.debt == 0
    assert rich_state.cash > calculate_min_cash_reserve(rich_state, policy)


def test_preemptive_loan_covers_payroll(state, policy):
    state.cash = 0.0
    loan = prevent_wage_advance(state, policy)
    assert loan is not None and not loan.is_salary_loan
    assert state.cash >= 150 + 85
