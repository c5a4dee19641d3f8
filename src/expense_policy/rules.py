"""Policy rules evaluated for every expense.

Each rule is a plain function that receives a :class:`RuleContext` and
returns a :class:`RuleOutcome` holding the status it would assign and the
alerts it raised. Rules never mutate the context and never see each other's
results; combining them is the validator's job.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from .dates import days_between
from .models import Alert, AlertCode, Employee, Expense, ExpenseStatus
from .policy import Policy


@dataclass(frozen=True)
class RuleContext:
    """Inputs shared by every rule during one evaluation."""

    expense: Expense
    employee: Employee
    policy: Policy
    amount_to_check: Decimal
    as_of: datetime | date


@dataclass(frozen=True)
class RuleOutcome:
    """Status suggested by a single rule plus the alerts it raised."""

    status: ExpenseStatus
    alerts: tuple[Alert, ...] = ()

    @classmethod
    def approved(cls) -> RuleOutcome:
        return cls(status=ExpenseStatus.APPROVED)

    @classmethod
    def flagged(cls, status: ExpenseStatus, code: AlertCode, message: str) -> RuleOutcome:
        return cls(status=status, alerts=(Alert(code=code, message=message),))


Rule = Callable[[RuleContext], RuleOutcome]


def check_age(context: RuleContext) -> RuleOutcome:
    days_old = max(0, days_between(context.expense.expense_date, context.as_of))
    limit = context.policy.age_limit

    if days_old > limit.rejected_after_days:
        return RuleOutcome.flagged(
            ExpenseStatus.REJECTED,
            AlertCode.AGE_LIMIT,
            f"Expense is {days_old} days old (Limit: {limit.rejected_after_days}).",
        )
    if days_old > limit.pending_after_days:
        return RuleOutcome.flagged(
            ExpenseStatus.PENDING,
            AlertCode.AGE_LIMIT,
            f"Expense is {days_old} days old; requires review.",
        )
    return RuleOutcome.approved()


def check_category_limit(context: RuleContext) -> RuleOutcome:
    category = context.expense.category
    limit = context.policy.limit_for(category)
    if limit is None:
        return RuleOutcome.approved()

    amount = context.amount_to_check
    if amount > limit.pending_up_to:
        return RuleOutcome.flagged(
            ExpenseStatus.REJECTED,
            AlertCode.CATEGORY_LIMIT,
            f"${amount:.2f} exceeds maximum allowed (${limit.pending_up_to:.2f}) for {category.value}.",
        )
    if amount > limit.approved_up_to:
        return RuleOutcome.flagged(
            ExpenseStatus.PENDING,
            AlertCode.CATEGORY_LIMIT,
            f"${amount:.2f} exceeds auto-approval limit (${limit.approved_up_to:.2f}), requires review.",
        )
    return RuleOutcome.approved()


def check_cost_center(context: RuleContext) -> RuleOutcome:
    cost_center_id = context.employee.cost_center_id
    category = context.expense.category
    violation = next(
        (
            rule
            for rule in context.policy.cost_center_rules
            if rule.cost_center_id == cost_center_id and rule.forbidden_category == category
        ),
        None,
    )
    if violation is None:
        return RuleOutcome.approved()

    return RuleOutcome.flagged(
        ExpenseStatus.REJECTED,
        AlertCode.COST_CENTER_POLICY,
        f"Cost center '{violation.cost_center_id}' is not allowed to expense '{category.value}'.",
    )


# Evaluated in this order for every expense; alert order follows it.
DEFAULT_RULES: tuple[Rule, ...] = (check_age, check_category_limit, check_cost_center)


__all__ = [
    "DEFAULT_RULES",
    "Rule",
    "RuleContext",
    "RuleOutcome",
    "check_age",
    "check_category_limit",
    "check_cost_center",
]
