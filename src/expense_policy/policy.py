"""Reimbursement policy configuration.

A policy fixes the base currency that every threshold is expressed in, the
age limits for expenses, optional per-category spending limits, and an
ordered list of cost-center restrictions. Policies are loaded from YAML and
validated on construction so that the rules never see inconsistent limits.
"""

from __future__ import annotations

import os
from decimal import Decimal
from pathlib import Path
from typing import Annotated

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .models import ExpenseCategory


def _coerce_category(value: object) -> object:
    if isinstance(value, str):
        return value.strip().upper()
    return value


class AgeLimit(BaseModel):
    """Age thresholds, in days, for expense submission."""

    pending_after_days: Annotated[int, Field(ge=0)] = Field(
        ..., description="Expenses older than this require review"
    )
    rejected_after_days: Annotated[int, Field(ge=0)] = Field(
        ..., description="Expenses older than this are rejected"
    )

    model_config = ConfigDict(frozen=True, extra="forbid")

    @model_validator(mode="after")
    def _validate_order(self) -> AgeLimit:
        if self.pending_after_days > self.rejected_after_days:
            msg = "pending_after_days must be less than or equal to rejected_after_days"
            raise ValueError(msg)
        return self


class CategoryLimit(BaseModel):
    """Spending tiers for a category, in the policy base currency."""

    approved_up_to: Annotated[Decimal, Field(ge=0)] = Field(
        ..., description="Highest amount approved automatically"
    )
    pending_up_to: Annotated[Decimal, Field(ge=0)] = Field(
        ..., description="Highest amount accepted for manual review"
    )

    model_config = ConfigDict(frozen=True, extra="forbid")

    @model_validator(mode="after")
    def _validate_order(self) -> CategoryLimit:
        if self.approved_up_to > self.pending_up_to:
            msg = "approved_up_to must be less than or equal to pending_up_to"
            raise ValueError(msg)
        return self


class CostCenterRule(BaseModel):
    """A category a cost center may not expense."""

    cost_center_id: str = Field(..., description="Cost center the rule applies to")
    forbidden_category: ExpenseCategory = Field(
        ..., description="Category the cost center cannot report"
    )

    model_config = ConfigDict(frozen=True, extra="forbid")

    @field_validator("forbidden_category", mode="before")
    @classmethod
    def _normalize_category(cls, value: object) -> object:
        return _coerce_category(value)


class Policy(BaseModel):
    """Reimbursement policy applied to each expense."""

    base_currency: str = Field(
        default="USD", min_length=1, description="Currency all thresholds use"
    )
    age_limit: AgeLimit = Field(..., description="Age thresholds in days")
    category_limits: dict[ExpenseCategory, CategoryLimit] = Field(
        default_factory=dict,
        description="Spending tiers per category; missing categories are unlimited",
    )
    cost_center_rules: list[CostCenterRule] = Field(
        default_factory=list,
        description="Ordered cost-center restrictions; the first match is reported",
    )

    model_config = ConfigDict(frozen=True, extra="forbid")

    @field_validator("base_currency", mode="before")
    @classmethod
    def _normalize_currency(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator("category_limits", mode="before")
    @classmethod
    def _coerce_category_keys(cls, value: object) -> object:
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise TypeError("category_limits must be a mapping")
        return {_coerce_category(key): limit for key, limit in value.items()}

    @field_validator("cost_center_rules", mode="before")
    @classmethod
    def _coerce_rules(cls, value: object) -> object:
        if value is None:
            return []
        return value

    def limit_for(self, category: ExpenseCategory) -> CategoryLimit | None:
        """Return the spending tiers for a category, if any are configured."""

        return self.category_limits.get(category)

    @classmethod
    def from_yaml(cls, content: str) -> Policy:
        data = yaml.safe_load(content) or {}
        if not isinstance(data, dict):
            raise ValueError("Policy configuration must be a mapping")
        raw_policy = data.get("policy", data)
        if not isinstance(raw_policy, dict) or "age_limit" not in raw_policy:
            raise ValueError("Policy configuration must include an 'age_limit' section")
        return cls.model_validate(raw_policy)

    @classmethod
    def from_file(cls, path: str | Path | None = None) -> Policy:
        target_path = _resolve_path(path)
        return cls.from_yaml(target_path.read_text(encoding="utf-8"))

    @classmethod
    def from_environment(cls, env_var: str = "POLICY_CONFIG") -> Policy:
        content = os.getenv(env_var)
        if not content:
            raise ValueError(f"Environment variable '{env_var}' is not set or empty")
        return cls.from_yaml(content)


def _default_policy_path() -> Path | None:
    for parent in Path(__file__).resolve().parents:
        candidate = parent / "config" / "policy.yaml"
        if candidate.exists():
            return candidate
    return None


def _resolve_path(path: str | Path | None) -> Path:
    if path is None:
        default_path = _default_policy_path()
        if default_path is None:
            raise FileNotFoundError("No policy.yaml file found")
        return default_path

    candidate = Path(path)
    if candidate.is_absolute() or candidate.exists():
        return candidate

    for parent in Path(__file__).resolve().parents:
        relative_candidate = parent / candidate
        if relative_candidate.exists():
            return relative_candidate
    return candidate


def default_policy() -> Policy:
    """Return the built-in reimbursement policy."""

    return Policy(
        base_currency="USD",
        age_limit=AgeLimit(pending_after_days=30, rejected_after_days=60),
        category_limits={
            ExpenseCategory.FOOD: CategoryLimit(
                approved_up_to=Decimal("100"), pending_up_to=Decimal("150")
            ),
            ExpenseCategory.TRANSPORT: CategoryLimit(
                approved_up_to=Decimal("200"), pending_up_to=Decimal("200")
            ),
        },
        cost_center_rules=[
            CostCenterRule(
                cost_center_id="core_engineering",
                forbidden_category=ExpenseCategory.FOOD,
            )
        ],
    )
