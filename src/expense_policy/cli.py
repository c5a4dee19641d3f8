"""Command-line interface for validating expenses against the policy."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from .batch import BatchAnalyzer
from .config import Settings, load_settings
from .fx import ExchangeRates
from .models import Employee, Expense
from .policy import Policy, default_policy
from .rates import DailyRatesCache, OpenExchangeRatesClient, RateFetchError
from .report import render_analysis, status_summary_lines
from .validator import ExpenseValidator

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="expense-policy",
        description="Validate expenses against the reimbursement policy.",
    )
    parser.add_argument(
        "--policy", type=Path, default=None, help="Path to a policy YAML file."
    )
    parser.add_argument(
        "--env-file", type=Path, default=None, help="Path to a .env file to load."
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    validate_parser = subparsers.add_parser(
        "validate", help="Validate a single expense from a JSON file."
    )
    validate_parser.add_argument(
        "input_json",
        type=Path,
        help="Path to a JSON object with 'expense' and 'employee' entries.",
    )

    analyze_parser = subparsers.add_parser(
        "analyze", help="Analyze a CSV of historical expenses."
    )
    analyze_parser.add_argument("csv_path", type=Path, help="Path to the expenses CSV.")
    analyze_parser.add_argument(
        "--output",
        type=Path,
        default=Path("ANALISIS.md"),
        help="Where to write the analysis report.",
    )
    return parser


def _load_policy(path: Path | None) -> Policy:
    if path is not None:
        return Policy.from_file(path)
    try:
        return Policy.from_file()
    except FileNotFoundError:
        logger.info("No policy.yaml found; using the built-in policy")
        return default_policy()


def _load_json(path: Path) -> dict[str, Any]:
    try:
        raw_data = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        msg = f"Input file not found: {path}"
        raise FileNotFoundError(msg) from exc

    try:
        payload = json.loads(raw_data)
    except json.JSONDecodeError as exc:
        msg = f"Invalid JSON in input file: {path}"
        raise ValueError(msg) from exc
    if not isinstance(payload, dict):
        raise ValueError(f"Input file must contain a JSON object: {path}")
    return payload


def _run_validate(args: argparse.Namespace, policy: Policy, settings: Settings) -> int:
    payload = _load_json(args.input_json)
    expense = Expense.model_validate(payload.get("expense"))
    employee = Employee.model_validate(payload.get("employee"))
    validator = ExpenseValidator(policy)

    rates = None
    if validator.requires_rates(expense):
        rates = OpenExchangeRatesClient.from_settings(settings).fetch_latest()

    result = validator.validate(expense, employee, rates, as_of=settings.as_of)
    print(json.dumps(result.model_dump(mode="json"), indent=2, ensure_ascii=False))
    return 0


def _missing_app_id(day: date) -> ExchangeRates:
    raise RateFetchError(
        f"Exchange rates for {day.isoformat()} unavailable: OPEN_EXCHANGE_RATES_APP_ID is not configured"
    )


def _run_analyze(args: argparse.Namespace, policy: Policy, settings: Settings) -> int:
    if not args.csv_path.exists():
        raise FileNotFoundError(f"CSV not found at {args.csv_path}")

    if settings.oxr_app_id:
        fetch_rates = OpenExchangeRatesClient.from_settings(settings).fetch_for_date
    else:
        logger.warning(
            "OPEN_EXCHANGE_RATES_APP_ID is not set; non-%s expenses will not be processed",
            policy.base_currency,
        )
        fetch_rates = _missing_app_id

    analyzer = BatchAnalyzer(
        policy,
        DailyRatesCache(fetch_rates),
        as_of=settings.as_of or datetime.now(UTC),
    )
    report = analyzer.analyze_csv(args.csv_path)

    args.output.write_text(render_analysis(report), encoding="utf-8")
    print("\n".join(status_summary_lines(report)))
    print(f"Analysis written to {args.output}")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        settings = load_settings(args.env_file)
        policy = _load_policy(args.policy)
        if args.command == "validate":
            return _run_validate(args, policy, settings)
        return _run_analyze(args, policy, settings)
    except ValidationError as exc:
        print("Error: input validation failed.", file=sys.stderr)
        print(str(exc), file=sys.stderr)
        return 1
    except RateFetchError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except (ValueError, OSError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
