"""Tests for batch CSV analysis and anomaly detection."""

from __future__ import annotations

from datetime import UTC, date, datetime
from decimal import Decimal
from pathlib import Path

import pytest

from expense_policy.batch import (
    AnomalyCode,
    AnomalyScanner,
    BatchAnalyzer,
    CsvRow,
    parse_rows,
    read_expense_csv,
)
from expense_policy.fx import ExchangeRates
from expense_policy.models import AlertCode, ExpenseCategory, ExpenseStatus
from expense_policy.policy import default_policy
from expense_policy.rates import DailyRatesCache, RateFetchError

AS_OF = datetime(2025, 1, 31, 12, 0, tzinfo=UTC)

HEADER = "gasto_id,empleado_id,empleado_nombre,empleado_apellido,empleado_cost_center,categoria,monto,moneda,fecha"


def _row(**overrides: str) -> dict[str, str]:
    data = {
        "gasto_id": "g_1",
        "empleado_id": "e_1",
        "empleado_nombre": "Ada",
        "empleado_apellido": "Lovelace",
        "empleado_cost_center": "sales_team",
        "categoria": "food",
        "monto": "50",
        "moneda": "USD",
        "fecha": "2025-01-20",
    }
    data.update(overrides)
    return data


def _write_csv(path: Path, lines: list[str]) -> Path:
    path.write_text("\n".join([HEADER, *lines]) + "\n", encoding="utf-8")
    return path


class RecordingFetcher:
    def __init__(self, rates: ExchangeRates | None = None, error: str | None = None) -> None:
        self.rates = rates
        self.error = error
        self.requested: list[date] = []

    def __call__(self, day: date) -> ExchangeRates:
        self.requested.append(day)
        if self.error is not None:
            raise RateFetchError(self.error)
        assert self.rates is not None
        return self.rates


class TestCsvDecoding:
    def test_valid_row_maps_to_expense_and_employee(self) -> None:
        row = CsvRow.model_validate(_row(categoria=" Software ", moneda="clp", monto="-12.5"))

        expense = row.to_expense()
        employee = row.to_employee()

        assert expense.category == ExpenseCategory.SOFTWARE
        assert expense.currency == "CLP"
        assert expense.amount == Decimal("-12.5")
        assert expense.expense_date == date(2025, 1, 20)
        assert employee.cost_center_id == "sales_team"
        assert employee.first_name == "Ada"

    def test_unknown_category_defaults_to_other(self) -> None:
        row = CsvRow.model_validate(_row(categoria="office supplies"))

        assert row.to_expense().category == ExpenseCategory.OTHER

    @pytest.mark.parametrize(
        ("overrides", "field"),
        [
            ({"monto": "abc"}, "monto"),
            ({"monto": "NaN"}, "monto"),
            ({"moneda": ""}, "moneda"),
            ({"fecha": "20/01/2025"}, "fecha"),
        ],
    )
    def test_invalid_rows_are_collected(self, overrides: dict[str, str], field: str) -> None:
        result = parse_rows([_row(), _row(gasto_id="bad", **overrides)])

        assert [row.gasto_id for row in result.rows] == ["g_1"]
        assert len(result.invalid_rows) == 1
        assert result.invalid_rows[0].raw["gasto_id"] == "bad"
        assert field in result.invalid_rows[0].error

    def test_read_expense_csv(self, tmp_path: Path) -> None:
        path = _write_csv(
            tmp_path / "gastos.csv",
            [
                "g_1,e_1,Ada,Lovelace,sales_team,food,50,USD,2025-01-20",
                "g_2,e_2,Alan,Turing,core_engineering,transport,not-a-number,USD,2025-01-21",
            ],
        )

        result = read_expense_csv(path)

        assert [row.gasto_id for row in result.rows] == ["g_1"]
        assert len(result.invalid_rows) == 1

    def test_missing_columns_raise(self, tmp_path: Path) -> None:
        path = tmp_path / "gastos.csv"
        path.write_text("gasto_id,monto\ng_1,10\n", encoding="utf-8")

        with pytest.raises(ValueError, match="missing required columns"):
            read_expense_csv(path)


class TestAnomalyScanner:
    def test_negative_amounts_are_flagged(self) -> None:
        scanner = AnomalyScanner()
        row = CsvRow.model_validate(_row(monto="-20"))

        anomalies = scanner.observe(row.to_expense(), row.to_employee())

        assert [anomaly.code for anomaly in anomalies] == [AnomalyCode.NEGATIVE_AMOUNT]
        assert anomalies[0].amount == Decimal("-20")

    def test_zero_amount_is_not_an_anomaly(self) -> None:
        row = CsvRow.model_validate(_row(monto="0"))

        assert AnomalyScanner().observe(row.to_expense(), row.to_employee()) == []

    def test_duplicates_reference_first_occurrence(self) -> None:
        scanner = AnomalyScanner()
        rows = [
            CsvRow.model_validate(_row(gasto_id="g_1")),
            CsvRow.model_validate(_row(gasto_id="g_2")),
            CsvRow.model_validate(_row(gasto_id="g_3")),
        ]

        found = [scanner.observe(row.to_expense(), row.to_employee()) for row in rows]

        assert found[0] == []
        assert [anomaly.first_expense_id for anomaly in found[1] + found[2]] == ["g_1", "g_1"]
        assert found[1][0].code == AnomalyCode.DUPLICATE
        assert found[1][0].date == "2025-01-20"
        assert found[1][0].currency == "USD"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"monto": "51"},
            {"moneda": "EUR"},
            {"fecha": "2025-01-21"},
            {"categoria": "transport"},
            {"empleado_id": "e_2"},
        ],
    )
    def test_any_key_difference_is_not_a_duplicate(self, overrides: dict[str, str]) -> None:
        scanner = AnomalyScanner()
        first = CsvRow.model_validate(_row(gasto_id="g_1"))
        second = CsvRow.model_validate(_row(gasto_id="g_2", **overrides))

        scanner.observe(first.to_expense(), first.to_employee())

        assert scanner.observe(second.to_expense(), second.to_employee()) == []


class TestBatchAnalyzer:
    def test_counts_statuses_and_caches_rates_per_date(self) -> None:
        fetcher = RecordingFetcher(ExchangeRates(base="USD", rates={"CLP": Decimal("1000")}))
        analyzer = BatchAnalyzer(default_policy(), DailyRatesCache(fetcher), as_of=AS_OF)
        rows = parse_rows(
            [
                _row(gasto_id="g_1", monto="50"),
                _row(gasto_id="g_2", monto="120"),
                _row(gasto_id="g_3", monto="50000", moneda="CLP", fecha="2025-01-15"),
                _row(gasto_id="g_4", monto="120000", moneda="CLP", fecha="2025-01-15"),
                _row(gasto_id="g_5", monto="-5"),
                _row(gasto_id="g_6", empleado_cost_center="core_engineering", monto="10"),
            ]
        ).rows

        report = analyzer.analyze(rows)

        assert fetcher.requested == [date(2025, 1, 15)]
        assert report.counts == {
            ExpenseStatus.APPROVED: 2,
            ExpenseStatus.PENDING: 2,
            ExpenseStatus.REJECTED: 2,
        }
        assert report.total_processed == 6
        assert [result.expense_id for result in report.results] == [
            "g_1",
            "g_2",
            "g_3",
            "g_4",
            "g_5",
            "g_6",
        ]
        assert report.results[3].alert_codes == [
            AlertCode.CURRENCY_MISMATCH,
            AlertCode.CATEGORY_LIMIT,
        ]
        assert [anomaly.code for anomaly in report.anomalies] == [AnomalyCode.NEGATIVE_AMOUNT]

    def test_rate_failures_only_affect_their_rows(self) -> None:
        fetcher = RecordingFetcher(error="Exchange rate API returned 500 (2025-01-15): Server Error")
        analyzer = BatchAnalyzer(default_policy(), DailyRatesCache(fetcher), as_of=AS_OF)
        rows = parse_rows(
            [
                _row(gasto_id="g_1", moneda="CLP", fecha="2025-01-15", monto="1000"),
                _row(gasto_id="g_2", moneda="CLP", fecha="2025-01-15", monto="1000"),
                _row(gasto_id="g_3"),
                _row(gasto_id="g_4", moneda="CLP", monto="-1"),
            ]
        ).rows

        report = analyzer.analyze(rows)

        assert fetcher.requested == [date(2025, 1, 15)]
        assert [failure.expense_id for failure in report.failures] == ["g_1", "g_2"]
        assert "returned 500" in report.failures[0].error
        assert [anomaly.code for anomaly in report.anomalies] == [
            AnomalyCode.DUPLICATE,
            AnomalyCode.NEGATIVE_AMOUNT,
        ]
        assert [result.expense_id for result in report.results] == ["g_3", "g_4"]
        assert report.results[1].status == ExpenseStatus.REJECTED

    def test_analyze_csv_carries_invalid_rows(self, tmp_path: Path) -> None:
        path = _write_csv(
            tmp_path / "gastos.csv",
            [
                "g_1,e_1,Ada,Lovelace,sales_team,food,50,USD,2025-01-20",
                "g_2,e_1,Ada,Lovelace,sales_team,food,50,USD,not-a-date",
            ],
        )
        analyzer = BatchAnalyzer(
            default_policy(), DailyRatesCache(RecordingFetcher()), as_of=AS_OF
        )

        report = analyzer.analyze_csv(path)

        assert report.total_processed == 1
        assert len(report.invalid_rows) == 1
