# ======================================================================================
# MASTER CONFIGURATION FILE for the Factory Strategy Simulation
# ======================================================================================
# This file centralizes all parameters for the day-stepping factory simulation and the
# genetic strategy optimizer. Scenario files override keys of the dict sections by dot
# path (`config_overrides`, see scenarios.py); the engine reads those dicts at call time.
#
# Each section is documented with the modules that read it.
# ======================================================================================

# IMPORTS
from pathlib import Path

# --------------------------------------------------------------------------------------
# 1. CORE SIMULATION CONTROL
# --------------------------------------------------------------------------------------
# Horizon and reproducibility.
# Used by: main.py run_simulation(), optimizer.py
# --------------------------------------------------------------------------------------

SIMULATION_START_DAY = 51
SIMULATION_END_DAY = 415    # inclusive, 365 managed days
RANDOM_SEED = 42
VERBOSE = False             # console prints from runner/optimizer
DEMAND_PHASE_CHANGE_DAY = 173   # custom demand steps up 30% from this day on

BASE_DIR = Path(__file__).resolve().parents[1]
OUTPUT_ROOT = BASE_DIR / "data" / "processed"

# --------------------------------------------------------------------------------------
# 2. FINANCE
# --------------------------------------------------------------------------------------
# Used by: finance.py
# --------------------------------------------------------------------------------------

FINANCIAL_CONFIG = {
    'daily_debt_interest_rate': 0.001,
    'daily_cash_interest_rate': 0.0005,
    'normal_loan_commission': 0.02,
    'salary_loan_commission': 0.05,     # automatic loans taken to cover a payment
}

# Automated debt management, only active when a strategy enables it
DEBT_MANAGEMENT_CONFIG = {
    'material_amortization_days': 7,    # spread one material order over a week of reserve
    'payroll_buffer_days': 1,
}

# --------------------------------------------------------------------------------------
# 3. RAW MATERIAL
# --------------------------------------------------------------------------------------
# Used by: inventory_utils.py, simulator.py
# --------------------------------------------------------------------------------------

RAW_MATERIAL_CONFIG = {
    'unit_cost': 50,
    'order_fee': 1000,
    'lead_time_days': 4,
    'parts_per_standard_unit': 2,
    'parts_per_custom_order': 1,
}

# --------------------------------------------------------------------------------------
# 4. PRODUCTION LINES
# --------------------------------------------------------------------------------------
# Standard line: MCE -> batch (4 days) -> ARCP -> batch (1 day) -> finished goods
# Custom line:   MCE -> WMA pass 1 -> PUC -> WMA pass 2 -> ARCP -> ship
# Used by: simulator.py
# --------------------------------------------------------------------------------------

MCE_UNITS_PER_MACHINE_PER_DAY = 30

STANDARD_LINE_CONFIG = {
    'production_order_fee': 100,    # charged per released batch
    'initial_batch_days': 4,
    'initial_batch_target': 60,
    'final_batch_days': 1,
    'final_batch_target': 12,
}

CUSTOM_LINE_MAX_WIP = 360

CUSTOM_LINE_CONFIG = {
    'max_wip': CUSTOM_LINE_MAX_WIP,
    'wma_capacity_per_machine': 6,  # shared by both WMA passes
    'puc_capacity_per_machine': 6,
    'stage_processing_days': 1,
}

# Ordered custom pipeline stages
CUSTOM_STAGES = ['WAITING', 'WMA_PASS1', 'PUC', 'WMA_PASS2', 'ARCP']

# --------------------------------------------------------------------------------------
# 5. WORKFORCE (ARCP STATION)
# --------------------------------------------------------------------------------------
# Used by: workforce.py, simulator.py
# --------------------------------------------------------------------------------------

WORKFORCE_CONFIG = {
    'expert_salary': 150,           # per day
    'rookie_salary': 85,            # per day
    'overtime_multiplier': 1.5,
    'shift_hours': 8,
    'expert_productivity': 3,       # ARCP units per expert per day
    'rookie_productivity_factor': 0.4,
    'rookie_training_days': 15,
}

# --------------------------------------------------------------------------------------
# 6. MACHINES
# --------------------------------------------------------------------------------------
# Used by: actions.py, formulas.py
# --------------------------------------------------------------------------------------

MACHINE_TYPES = ['MCE', 'WMA', 'PUC']

MACHINE_PRICES = {
    'MCE': {'buy': 20000, 'sell': 10000},
    'WMA': {'buy': 15000, 'sell': 7500},
    'PUC': {'buy': 12000, 'sell': 4000},
}

# --------------------------------------------------------------------------------------
# 7. INITIAL STATES
# --------------------------------------------------------------------------------------
# Named starting snapshots for day 51. WIP is laid out deterministically by
# state.initialize_state().
#   'business_case': reference guide values
#   'historical':    state after the first 50 days of a recorded run
# Used by: state.py, scenarios.py
# --------------------------------------------------------------------------------------

INITIAL_STATES = {
    'business_case': {
        'cash': 8206.12,
        'debt': 70000.0,
        'raw_material_inventory': 0,
        'experts': 1,
        'rookies': 1,
        'machines': {'MCE': 1, 'WMA': 1, 'PUC': 1},
        'standard_wip': 120,
        # custom WIP spread across the pipeline by initialize_state()
        'custom_wip': 295,
        'custom_wip_layout': None,
    },
    'historical': {
        'cash': 383919.70,
        'debt': 0.0,
        'raw_material_inventory': 164,
        'experts': 1,
        'rookies': 0,
        'machines': {'MCE': 1, 'WMA': 2, 'PUC': 2},
        'standard_wip': 414,
        'custom_wip': 300,
        'custom_wip_layout': {'WAITING': 264, 'WMA_PASS1': 12, 'PUC': 12, 'WMA_PASS2': 12},
    },
}

DEFAULT_INITIAL_STATE = 'business_case'

# --------------------------------------------------------------------------------------
# 8. STRATEGY DEFAULTS
# --------------------------------------------------------------------------------------
# Scalar policy parameters of DEFAULT_STRATEGY. Timed actions start empty.
# Used by: strategy.py
# --------------------------------------------------------------------------------------

DEFAULT_STRATEGY_PARAMS = {
    # Inventory policy
    'reorder_point': 200,
    'order_quantity': 400,
    # Production policy
    'standard_batch_size': 60,
    'mce_allocation_custom': 0.7,
    'daily_overtime_hours': 0,
    # Pricing
    'standard_price': 750,
    'custom_base_price': 106.56,
    'custom_penalty_per_day': 0.27,
    'custom_target_delivery_days': 5,
    # Demand model
    'custom_demand_mean_1': 25,
    'custom_demand_std_dev_1': 5,
    'custom_demand_mean_2': 32.5,
    'custom_demand_std_dev_2': 6.5,
    'standard_demand_intercept': 500,
    'standard_demand_slope': -0.25,
    # Quit risk
    'overtime_trigger_days': 5,
    'daily_quit_probability': 0.10,
    # Automated debt management (off unless enabled)
    'auto_debt_management': False,
    'min_cash_reserve_days': 7,
    'debt_paydown_aggressiveness': 0.8,
}

# --------------------------------------------------------------------------------------
# 9. FITNESS
# --------------------------------------------------------------------------------------
# fitness = final net worth - sum(counter x weight)
# Used by: metrics.py, optimizer.py
# --------------------------------------------------------------------------------------

FITNESS_PENALTIES = {
    'stockout_days': 1000,
    'rejected_material_orders': 2000,
    'lost_production_days': 500,
}

FITNESS_FLOOR = -1.0e12     # assigned to candidates whose evaluation failed

# --------------------------------------------------------------------------------------
# 10. CASH-SAFETY GUARD
# --------------------------------------------------------------------------------------
# Estimated immediate cash impact of actions (negative = spend).
# Used by: cash_guard.py
# --------------------------------------------------------------------------------------

CASH_GUARD_CONFIG = {
    'min_cash_threshold': 50000,
    'hire_cost_per_worker': 5000,
    'machine_cost_per_unit': 20000,
    'material_cost_per_unit': 50,
    'loan_rounding': 10000,
    'buffer_fraction': 0.75,
}

# --------------------------------------------------------------------------------------
# 11. GENETIC OPTIMIZER
# --------------------------------------------------------------------------------------
# Used by: optimizer.py, cli.py
# --------------------------------------------------------------------------------------

OPTIMIZER_CONFIG = {
    'population_size': 30,
    'generations': 20,
    'mutation_rate': 0.2,
    'elite_percentage': 0.2,
    'enable_early_stopping': True,
    'seed_with_analytical': True,
    'early_stopping_patience': 5,
    'early_stopping_tolerance': 1e-6,
    'max_workers': 1,
}

# Share of the initial population per source, must sum to 1
INITIAL_POPULATION_MIX = {
    'formula': 0.4,
    'high_mutation': 0.3,
    'random': 0.3,
}

FORMULA_JITTER = 0.2        # +-20% on formula seeds
MUTATION_JITTER = 0.3       # +-30% multiplicative mutation
RANDOM_ACTIONS_PER_CANDIDATE = (1, 5)
RANDOM_ACTION_HORIZON_MARGIN = 30   # no random actions in the last N days

# Valid range of each action's numeric payload, used for random generation and mutation
ACTION_BOUNDS = {
    'HIRE_ROOKIE': (1, 5),
    'FIRE_EMPLOYEE': (1, 3),
    'BUY_MACHINE': (1, 3),
    'SELL_MACHINE': (1, 2),
    'SET_ORDER_QUANTITY': (100, 2000),
    'SET_REORDER_POINT': (200, 1000),
    'ADJUST_BATCH_SIZE': (50, 500),
    'ADJUST_PRICE': (400, 1200),
    'ADJUST_MCE_ALLOCATION': (0.2, 0.8),
    'TAKE_LOAN': (10000, 200000),
    'PAY_DEBT': (5000, 200000),
    'ORDER_MATERIALS': (100, 2000),
}

# Valid range of strategy-parameter overrides
PARAMETER_BOUNDS = {
    'mce_allocation_custom': (0.2, 0.8),
    'daily_overtime_hours': (0, 4),
    'reorder_point': (200, 1000),
    'order_quantity': (100, 2000),
    'standard_batch_size': (50, 500),
    'standard_price': (400, 1200),
}

# Inputs of the closed-form seeds
FORMULA_SEED_CONFIG = {
    'annual_material_demand': 100000,
    'material_holding_cost': 10,
    'daily_material_demand': 300,
    'material_demand_std_dev': 50,
    'service_level': 0.95,
    'batch_holding_cost_fraction': 0.2,     # of standard price, per unit per year
    'standard_unit_cost': 200,
    'target_arcp_wait_days': 1.0,
    'target_utilization': 0.85,
    'npv_daily_discount_rate': 0.0005,
    'machine_extra_units_per_day': 3,
}

# Policy fields that a constraint can fix, and the action type that sets each
POLICY_ACTION_TYPES = {
    'reorder_point': 'SET_REORDER_POINT',
    'order_quantity': 'SET_ORDER_QUANTITY',
    'standard_batch_size': 'ADJUST_BATCH_SIZE',
    'standard_price': 'ADJUST_PRICE',
    'mce_allocation_custom': 'ADJUST_MCE_ALLOCATION',
    'daily_overtime_hours': None,
}

# Independent GA restarts (optimizer.multi_run_optimize)
MULTI_RUN_CONFIG = {
    'runs': 5,
    'seed_step': 1000,      # run k uses seed + k * seed_step for the GA's own generator
}

# --------------------------------------------------------------------------------------
# 12. BUSINESS RULES
# --------------------------------------------------------------------------------------
# Post-run checks of a finished trajectory. A run with any CRITICAL violation is
# reported as invalid; MAJOR violations are reported only.
# Used by: business_rules.py, financial_analysis.py, logging_export.py
# --------------------------------------------------------------------------------------

BUSINESS_RULES = {
    'max_custom_delivery_days': 7,          # CRITICAL, any single day
    'min_custom_service_level': 0.90,       # CRITICAL, share of shipping days on target
    'max_custom_wip': CUSTOM_LINE_MAX_WIP,  # CRITICAL, any single day
    'min_cash': 0.0,                        # CRITICAL, cash below this on any day
    'max_consecutive_stockout_days': 2,     # MAJOR
    'max_stockout_days_per_100': 5,         # MAJOR
    'max_rejected_orders_per_100': 10,      # MAJOR
    'min_custom_production_ratio': 0.15,    # MAJOR, custom share of total output
}
