"""Core models for expenses, employees, and validation results."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ExpenseCategory(str, Enum):
    """Categories for expense records."""

    FOOD = "FOOD"
    TRANSPORT = "TRANSPORT"
    SOFTWARE = "SOFTWARE"
    LODGING = "LODGING"
    OTHER = "OTHER"

    @classmethod
    def from_text(cls, raw: str) -> ExpenseCategory:
        """Normalize free text to a category, defaulting to OTHER."""

        normalized = raw.strip().upper()
        try:
            return cls(normalized)
        except ValueError:
            return cls.OTHER


class ExpenseStatus(str, Enum):
    """Decision for a validated expense."""

    APPROVED = "APPROVED"
    PENDING = "PENDING"
    REJECTED = "REJECTED"

    @property
    def severity(self) -> int:
        """Rank used to pick the most restrictive status."""

        return _STATUS_SEVERITY[self]


_STATUS_SEVERITY = {
    ExpenseStatus.APPROVED: 0,
    ExpenseStatus.PENDING: 1,
    ExpenseStatus.REJECTED: 2,
}


class AlertCode(str, Enum):
    """Stable identifiers for alerts raised during validation."""

    NEGATIVE_AMOUNT = "NEGATIVE_AMOUNT"
    CURRENCY_MISMATCH = "CURRENCY_MISMATCH"
    CURRENCY_CONVERSION_ERROR = "CURRENCY_CONVERSION_ERROR"
    AGE_LIMIT = "AGE_LIMIT"
    CATEGORY_LIMIT = "CATEGORY_LIMIT"
    COST_CENTER_POLICY = "COST_CENTER_POLICY"


class Employee(BaseModel):
    """The employee reporting an expense."""

    id: str = Field(..., description="Unique identifier for the employee")
    first_name: str = Field(default="", description="Given name")
    last_name: str = Field(default="", description="Family name")
    cost_center_id: str = Field(..., description="Cost center the employee reports to")

    model_config = ConfigDict(frozen=True)


class Expense(BaseModel):
    """A single expense submitted for reimbursement."""

    id: str = Field(..., description="Unique identifier for the expense")
    amount: Decimal = Field(..., description="Signed amount in the expense currency")
    currency: str = Field(..., min_length=1, description="ISO currency code")
    category: ExpenseCategory = Field(..., description="Category of the expense")
    expense_date: datetime | date = Field(
        ..., description="Transaction date; compared at UTC day granularity"
    )

    model_config = ConfigDict(frozen=True)

    @field_validator("currency", mode="before")
    @classmethod
    def _normalize_currency(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().upper()
        return value


class Alert(BaseModel):
    """Explanation attached to a validation decision."""

    code: AlertCode = Field(..., description="Stable alert code")
    message: str = Field(..., description="Human-readable explanation")

    model_config = ConfigDict(frozen=True)


class ValidationResult(BaseModel):
    """Outcome of validating one expense against a policy."""

    expense_id: str = Field(..., description="Expense that was validated")
    status: ExpenseStatus = Field(..., description="Final decision")
    alerts: tuple[Alert, ...] = Field(
        default_factory=tuple, description="Alerts in the order they were raised"
    )

    model_config = ConfigDict(frozen=True)

    @property
    def alert_codes(self) -> list[AlertCode]:
        return [alert.code for alert in self.alerts]

    def has_alert(self, code: AlertCode) -> bool:
        """Return True when an alert with the given code was raised."""

        return any(alert.code == code for alert in self.alerts)
