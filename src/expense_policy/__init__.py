"""Expense Policy Engine - Validate expenses against a reimbursement policy."""

from .batch import (
    Anomaly,
    AnomalyCode,
    AnomalyScanner,
    BatchAnalyzer,
    BatchReport,
    CsvRow,
    RowFailure,
    read_expense_csv,
)
from .config import Settings, load_settings
from .fx import CurrencyNotFoundError, ExchangeRates, convert_currency
from .models import (
    Alert,
    AlertCode,
    Employee,
    Expense,
    ExpenseCategory,
    ExpenseStatus,
    ValidationResult,
)
from .policy import AgeLimit, CategoryLimit, CostCenterRule, Policy, default_policy
from .rates import DailyRatesCache, OpenExchangeRatesClient, RateFetchError
from .report import render_analysis, translate_alert
from .rules import RuleContext, RuleOutcome
from .validator import (
    ExchangeRatesRequiredError,
    ExpenseValidator,
    escalate_conversion_failure,
    most_restrictive,
    validate_expense,
)

__all__ = [
    "AgeLimit",
    "Alert",
    "AlertCode",
    "Anomaly",
    "AnomalyCode",
    "AnomalyScanner",
    "BatchAnalyzer",
    "BatchReport",
    "CategoryLimit",
    "CostCenterRule",
    "CsvRow",
    "CurrencyNotFoundError",
    "DailyRatesCache",
    "Employee",
    "ExchangeRates",
    "ExchangeRatesRequiredError",
    "Expense",
    "ExpenseCategory",
    "ExpenseStatus",
    "ExpenseValidator",
    "OpenExchangeRatesClient",
    "Policy",
    "RateFetchError",
    "RowFailure",
    "RuleContext",
    "RuleOutcome",
    "Settings",
    "ValidationResult",
    "convert_currency",
    "default_policy",
    "escalate_conversion_failure",
    "load_settings",
    "most_restrictive",
    "read_expense_csv",
    "render_analysis",
    "translate_alert",
    "validate_expense",
    "__version__",
]
__version__ = "0.1.0"
