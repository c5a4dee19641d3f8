"""Test configuration for adding src to the import path."""

from __future__ import annotations

import sys
from collections.abc import Callable
from datetime import UTC, date, datetime
from decimal import Decimal
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[2]
SRC_PATH = ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from expense_policy import (
    AgeLimit,
    CategoryLimit,
    CostCenterRule,
    Employee,
    Expense,
    ExpenseCategory,
    Policy,
)

AS_OF = datetime(2025, 1, 31, 12, 0, tzinfo=UTC)


@pytest.fixture()
def as_of() -> datetime:
    return AS_OF


@pytest.fixture()
def expense_factory() -> Callable[..., Expense]:
    def _factory(**overrides: object) -> Expense:
        data = {
            "id": "g_1",
            "amount": Decimal("10"),
            "currency": "USD",
            "category": ExpenseCategory.OTHER,
            "expense_date": date(2025, 1, 21),
        }
        data.update(overrides)
        return Expense(**data)

    return _factory


@pytest.fixture()
def employee_factory() -> Callable[..., Employee]:
    def _factory(**overrides: object) -> Employee:
        data = {
            "id": "e_1",
            "first_name": "Ada",
            "last_name": "Lovelace",
            "cost_center_id": "sales_team",
        }
        data.update(overrides)
        return Employee(**data)

    return _factory


@pytest.fixture()
def policy_factory() -> Callable[..., Policy]:
    def _factory(**overrides: object) -> Policy:
        data = {
            "base_currency": "USD",
            "age_limit": AgeLimit(pending_after_days=30, rejected_after_days=60),
            "category_limits": {},
            "cost_center_rules": [],
        }
        data.update(overrides)
        return Policy(**data)

    return _factory


@pytest.fixture()
def food_limit() -> dict[ExpenseCategory, CategoryLimit]:
    return {
        ExpenseCategory.FOOD: CategoryLimit(
            approved_up_to=Decimal("100"), pending_up_to=Decimal("150")
        )
    }


@pytest.fixture()
def no_food_for_engineering() -> list[CostCenterRule]:
    return [
        CostCenterRule(
            cost_center_id="core_engineering", forbidden_category=ExpenseCategory.FOOD
        )
    ]
