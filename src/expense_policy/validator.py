"""Validate expenses against a reimbursement policy.

The validator rejects non-positive amounts outright, converts foreign
currency amounts into the policy base currency, runs every rule, and
resolves the rule statuses into one decision. All alerts raised along the
way are kept in the result.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import UTC, date, datetime
from decimal import Decimal
from pathlib import Path

from .fx import CurrencyNotFoundError, ExchangeRates, convert_currency
from .models import (
    Alert,
    AlertCode,
    Employee,
    Expense,
    ExpenseStatus,
    ValidationResult,
)
from .policy import Policy
from .rules import DEFAULT_RULES, Rule, RuleContext


class ExchangeRatesRequiredError(ValueError):
    """Raised when a foreign-currency expense is validated without rates."""


def most_restrictive(statuses: Iterable[ExpenseStatus]) -> ExpenseStatus:
    """Return the most restrictive status; APPROVED when there are none."""

    return max(statuses, key=lambda status: status.severity, default=ExpenseStatus.APPROVED)


def escalate_conversion_failure(
    status: ExpenseStatus, alerts: Sequence[Alert]
) -> ExpenseStatus:
    """Raise APPROVED to PENDING when a currency conversion failed."""

    conversion_failed = any(
        alert.code == AlertCode.CURRENCY_CONVERSION_ERROR for alert in alerts
    )
    if conversion_failed and status == ExpenseStatus.APPROVED:
        return ExpenseStatus.PENDING
    return status


def _normalize_amount(
    expense: Expense, policy: Policy, rates: ExchangeRates | None
) -> tuple[Decimal, Alert | None]:
    if expense.currency == policy.base_currency:
        return expense.amount, None
    if rates is None:
        raise ExchangeRatesRequiredError(
            f"Exchange rates are required to convert {expense.currency} -> {policy.base_currency}"
        )

    try:
        converted = convert_currency(
            expense.amount, expense.currency, policy.base_currency, rates
        )
    except (CurrencyNotFoundError, ArithmeticError) as exc:
        return expense.amount, Alert(
            code=AlertCode.CURRENCY_CONVERSION_ERROR,
            message=(
                f"Failed to convert {expense.amount:.2f} {expense.currency} to "
                f"{policy.base_currency}: {exc}. Manual review required."
            ),
        )
    return converted, Alert(
        code=AlertCode.CURRENCY_MISMATCH,
        message=(
            f"Converting {expense.amount:.2f} {expense.currency} --> "
            f"{converted:.2f} {policy.base_currency}."
        ),
    )


def validate_expense(
    expense: Expense,
    employee: Employee,
    policy: Policy,
    rates: ExchangeRates | None = None,
    *,
    as_of: datetime | date | None = None,
    rules: Sequence[Rule] = DEFAULT_RULES,
) -> ValidationResult:
    """Validate an expense and return the decision with its alerts.

    Raises:
        ExchangeRatesRequiredError: If the expense currency differs from the
            policy base currency and no ``rates`` were supplied.
    """

    if expense.amount <= 0:
        return ValidationResult(
            expense_id=expense.id,
            status=ExpenseStatus.REJECTED,
            alerts=(
                Alert(
                    code=AlertCode.NEGATIVE_AMOUNT,
                    message=f"Expense has non-positive amount ({expense.amount}).",
                ),
            ),
        )

    amount_to_check, conversion_alert = _normalize_amount(expense, policy, rates)
    alerts: list[Alert] = [conversion_alert] if conversion_alert is not None else []

    context = RuleContext(
        expense=expense,
        employee=employee,
        policy=policy,
        amount_to_check=amount_to_check,
        as_of=as_of or datetime.now(UTC),
    )
    outcomes = [rule(context) for rule in rules]
    for outcome in outcomes:
        alerts.extend(outcome.alerts)

    status = most_restrictive(outcome.status for outcome in outcomes)
    status = escalate_conversion_failure(status, alerts)

    return ValidationResult(expense_id=expense.id, status=status, alerts=tuple(alerts))


class ExpenseValidator:
    """Validate expenses against one configured policy."""

    def __init__(self, policy: Policy, rules: Iterable[Rule] = DEFAULT_RULES):
        self.policy = policy
        self.rules = tuple(rules)

    @classmethod
    def from_yaml(cls, content: str) -> ExpenseValidator:
        return cls(Policy.from_yaml(content))

    @classmethod
    def from_file(cls, path: str | Path | None = None) -> ExpenseValidator:
        return cls(Policy.from_file(path))

    @classmethod
    def from_environment(cls, env_var: str = "POLICY_CONFIG") -> ExpenseValidator:
        return cls(Policy.from_environment(env_var))

    def validate(
        self,
        expense: Expense,
        employee: Employee,
        rates: ExchangeRates | None = None,
        *,
        as_of: datetime | date | None = None,
    ) -> ValidationResult:
        return validate_expense(
            expense, employee, self.policy, rates, as_of=as_of, rules=self.rules
        )

    def requires_rates(self, expense: Expense) -> bool:
        """Return True when validating the expense needs an exchange-rate table."""

        return expense.amount > 0 and expense.currency != self.policy.base_currency
