from typing import Dict, Any

from business_rules import validate_business_rules
from metrics import fitness_breakdown


class FinancialAnalysis:
    """
    Tiered KPIs for a finished simulation run.
    Tier 1 covers the operating picture (revenue, costs, service), tier 2 the
    strategic one (net worth trajectory, financing, fitness breakdown).
    """
    def __init__(self, result):
        self.result = result
        self.state = result.state
        self.history = result.state.history
        self.days = max(1, len(self.history))

    def _total(self, metric: str) -> float:
        if metric not in self.history.metric_names:
            return 0.0
        return float(sum(self.history.values(metric)))

    def calculate_all_metrics(self) -> Dict[str, Any]:
        metrics = {"tier1": {}, "tier2": {}}

        # --- Tier 1: Operating metrics ---
        revenue = self._total('revenue')
        expenses = self._total('expenses')
        metrics['tier1']['total_revenue'] = {"label": "Total Revenue", "value": revenue, "unit": "$"}
        metrics['tier1']['total_expenses'] = {"label": "Total Expenses", "value": expenses, "unit": "$"}
        metrics['tier1']['operating_margin'] = {
            "label": "Operating Margin",
            "value": (revenue - expenses) / revenue * 100 if revenue else 0,
            "unit": "%"
        }
        metrics['tier1']['salary_cost'] = {"label": "Salary Cost (incl. overtime)", "value": self._total('salary_cost'), "unit": "$"}
        metrics['tier1']['material_cost'] = {"label": "Raw Material Cost", "value": self._total('raw_material_cost'), "unit": "$"}

        standard_units = self._total('standard_shipped')
        custom_units = self._total('custom_production')
        metrics['tier1']['standard_units_shipped'] = {"label": "Standard Units Shipped", "value": standard_units, "unit": "units"}
        metrics['tier1']['custom_orders_shipped'] = {"label": "Custom Orders Shipped", "value": custom_units, "unit": "orders"}

        # Delivery time weighted by the number of orders shipped each day
        shipped = self.history.values('custom_production') if len(self.history) else []
        delivery = self.history.values('custom_delivery_time') if len(self.history) else []
        weighted = sum(s * d for s, d in zip(shipped, delivery))
        metrics['tier1']['avg_custom_delivery_days'] = {
            "label": "Avg. Custom Delivery Time",
            "value": weighted / custom_units if custom_units else 0,
            "unit": "days"
        }

        demand = self._total('standard_demand')
        metrics['tier1']['standard_service_level'] = {
            "label": "Standard Fill Rate",
            "value": standard_units / demand * 100 if demand else 100.0,
            "unit": "%"
        }
        metrics['tier1']['stockout_rate'] = {
            "label": "Stockout Day Rate",
            "value": self.state.stockout_days / self.days * 100,
            "unit": "%"
        }
        metrics['tier1']['custom_orders_dropped'] = {
            "label": "Custom Orders Dropped (WIP ceiling)",
            "value": self.state.dropped_custom_orders,
            "unit": "orders"
        }

        # --- Tier 2: Strategic metrics ---
        metrics['tier2']['final_net_worth'] = {"label": "Final Net Worth", "value": self.result.final_net_worth, "unit": "$"}
        metrics['tier2']['peak_net_worth'] = {"label": "Peak Net Worth", "value": self.result.peak_net_worth, "unit": "$"}
        metrics['tier2']['final_debt'] = {"label": "Final Debt", "value": self.result.final_debt, "unit": "$"}
        metrics['tier2']['interest_paid'] = {"label": "Debt Interest Paid", "value": self._total('interest_paid'), "unit": "$"}
        metrics['tier2']['interest_earned'] = {"label": "Cash Interest Earned", "value": self._total('interest_earned'), "unit": "$"}
        metrics['tier2']['loan_commissions'] = {"label": "Loan Commissions", "value": self._total('loan_commissions'), "unit": "$"}
        metrics['tier2']['loans_taken'] = {
            "label": "Loans Taken",
            "value": len(self.state.loans),
            "unit": "",
            "breakdown": {
                "salary": sum(1 for loan in self.state.loans if loan.is_salary_loan),
                "normal": sum(1 for loan in self.state.loans if not loan.is_salary_loan),
            }
        }

        breakdown = fitness_breakdown(self.state)
        metrics['tier2']['fitness'] = {
            "label": "Fitness Score",
            "value": breakdown.fitness,
            "unit": "$",
            "breakdown": breakdown.to_dict()
        }

        # --- Business rules ---
        target = self.result.strategy.params.get('custom_target_delivery_days')
        metrics['business_rules'] = validate_business_rules(self.state, target_delivery_days=target).to_dict()
        return metrics
