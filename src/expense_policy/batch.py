"""Batch analysis of historical expenses from CSV.

Rows are decoded and validated before they reach the validator; invalid rows
are counted and skipped. Each valid row is scanned for anomalies (negative
amounts and exact duplicates) and then validated against the policy, with
exchange rates fetched once per transaction date.
"""

from __future__ import annotations

import csv
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .dates import utc_date
from .fx import ExchangeRates
from .models import Employee, Expense, ExpenseCategory, ExpenseStatus, ValidationResult
from .policy import Policy
from .rates import DailyRatesCache, RateFetchError
from .validator import ExchangeRatesRequiredError, validate_expense

logger = logging.getLogger(__name__)

CSV_COLUMNS = (
    "gasto_id",
    "empleado_id",
    "empleado_nombre",
    "empleado_apellido",
    "empleado_cost_center",
    "categoria",
    "monto",
    "moneda",
    "fecha",
)


class CsvRow(BaseModel):
    """A decoded row of the historical expenses CSV."""

    gasto_id: str
    empleado_id: str
    empleado_nombre: str
    empleado_apellido: str
    empleado_cost_center: str
    categoria: str
    monto: Decimal = Field(..., allow_inf_nan=False)
    moneda: str = Field(..., min_length=1)
    fecha: date

    model_config = ConfigDict(str_strip_whitespace=True)

    @field_validator("fecha", mode="before")
    @classmethod
    def _parse_iso_date(cls, value: object) -> object:
        if isinstance(value, str):
            try:
                return date.fromisoformat(value.strip())
            except ValueError as exc:
                raise ValueError("Fecha inválida, debe ser YYYY-MM-DD") from exc
        return value

    def to_expense(self) -> Expense:
        return Expense(
            id=self.gasto_id,
            amount=self.monto,
            currency=self.moneda.upper(),
            category=ExpenseCategory.from_text(self.categoria),
            expense_date=self.fecha,
        )

    def to_employee(self) -> Employee:
        return Employee(
            id=self.empleado_id,
            first_name=self.empleado_nombre,
            last_name=self.empleado_apellido,
            cost_center_id=self.empleado_cost_center,
        )


@dataclass(frozen=True)
class InvalidRow:
    """A CSV row that failed schema validation."""

    raw: dict[str, str | None]
    error: str


@dataclass
class CsvReadResult:
    rows: list[CsvRow] = field(default_factory=list)
    invalid_rows: list[InvalidRow] = field(default_factory=list)


def _describe_errors(exc: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in error['loc']) or 'row'}: {error['msg']}"
        for error in exc.errors()
    )


def parse_rows(records: Iterable[Mapping[str, str | None]]) -> CsvReadResult:
    """Validate raw CSV records, separating valid rows from invalid ones."""

    result = CsvReadResult()
    for record in records:
        raw = dict(record)
        try:
            result.rows.append(CsvRow.model_validate(raw))
        except ValidationError as exc:
            result.invalid_rows.append(InvalidRow(raw=raw, error=_describe_errors(exc)))
    if result.invalid_rows:
        logger.info("Skipped %d invalid CSV row(s)", len(result.invalid_rows))
    return result


def read_expense_csv(path: str | Path) -> CsvReadResult:
    """Read and validate the historical expenses CSV at ``path``."""

    with Path(path).open(newline="", encoding="utf-8") as handle:
        reader = csv.DictReader(handle)
        missing = [column for column in CSV_COLUMNS if column not in (reader.fieldnames or [])]
        if missing:
            raise ValueError(f"CSV is missing required columns: {', '.join(missing)}")
        return parse_rows(reader)


class AnomalyCode(str, Enum):
    """Anomalies detected in batch input, separate from validation alerts."""

    NEGATIVE_AMOUNT = "NEGATIVE_AMOUNT"
    DUPLICATE = "DUPLICATE"


@dataclass(frozen=True)
class Anomaly:
    """An anomaly found while scanning batch input."""

    code: AnomalyCode
    expense_id: str
    amount: Decimal
    currency: str | None = None
    date: str | None = None
    first_expense_id: str | None = None


class AnomalyScanner:
    """Flag negative amounts and exact duplicates across a batch.

    Two expenses are duplicates when amount, currency, date, category, and
    employee all match. Only later occurrences are flagged; each one points
    back to the first expense seen with the same key.
    """

    def __init__(self) -> None:
        self._seen: dict[tuple[Decimal, str, str, ExpenseCategory, str], str] = {}

    def observe(self, expense: Expense, employee: Employee) -> list[Anomaly]:
        anomalies: list[Anomaly] = []
        if expense.amount < 0:
            anomalies.append(
                Anomaly(
                    code=AnomalyCode.NEGATIVE_AMOUNT,
                    expense_id=expense.id,
                    amount=expense.amount,
                )
            )

        iso_date = expense.expense_date.isoformat()
        key = (expense.amount, expense.currency, iso_date, expense.category, employee.id)
        first_id = self._seen.get(key)
        if first_id is None:
            self._seen[key] = expense.id
        else:
            anomalies.append(
                Anomaly(
                    code=AnomalyCode.DUPLICATE,
                    expense_id=expense.id,
                    amount=expense.amount,
                    currency=expense.currency,
                    date=iso_date,
                    first_expense_id=first_id,
                )
            )
        return anomalies


@dataclass(frozen=True)
class RowFailure:
    """A row that could not be validated."""

    expense_id: str
    error: str


@dataclass
class BatchReport:
    """Aggregated outcome of a batch run."""

    counts: dict[ExpenseStatus, int] = field(
        default_factory=lambda: {status: 0 for status in ExpenseStatus}
    )
    results: list[ValidationResult] = field(default_factory=list)
    anomalies: list[Anomaly] = field(default_factory=list)
    failures: list[RowFailure] = field(default_factory=list)
    invalid_rows: list[InvalidRow] = field(default_factory=list)

    def anomalies_with(self, code: AnomalyCode) -> list[Anomaly]:
        return [anomaly for anomaly in self.anomalies if anomaly.code == code]

    @property
    def total_processed(self) -> int:
        return sum(self.counts.values())


class BatchAnalyzer:
    """Validate a batch of rows, isolating failures to the row that caused them."""

    def __init__(
        self,
        policy: Policy,
        rates_cache: DailyRatesCache,
        *,
        as_of: datetime | date | None = None,
    ) -> None:
        self.policy = policy
        self.rates_cache = rates_cache
        self.as_of = as_of

    def _rates_for(self, expense: Expense) -> ExchangeRates | None:
        if expense.amount <= 0 or expense.currency == self.policy.base_currency:
            return None
        return self.rates_cache.get(utc_date(expense.expense_date))

    def analyze(
        self,
        rows: Iterable[CsvRow],
        *,
        invalid_rows: Iterable[InvalidRow] = (),
    ) -> BatchReport:
        report = BatchReport(invalid_rows=list(invalid_rows))
        scanner = AnomalyScanner()

        for row in rows:
            expense = row.to_expense()
            employee = row.to_employee()
            report.anomalies.extend(scanner.observe(expense, employee))

            try:
                result = validate_expense(
                    expense,
                    employee,
                    self.policy,
                    self._rates_for(expense),
                    as_of=self.as_of,
                )
            except (RateFetchError, ExchangeRatesRequiredError) as exc:
                logger.warning("Could not validate expense %s: %s", expense.id, exc)
                report.failures.append(RowFailure(expense_id=expense.id, error=str(exc)))
                continue

            report.counts[result.status] += 1
            report.results.append(result)

        logger.info(
            "Processed %d expense(s): %d failed, %d anomaly(ies)",
            report.total_processed,
            len(report.failures),
            len(report.anomalies),
        )
        return report

    def analyze_csv(self, path: str | Path) -> BatchReport:
        parsed = read_expense_csv(path)
        return self.analyze(parsed.rows, invalid_rows=parsed.invalid_rows)
