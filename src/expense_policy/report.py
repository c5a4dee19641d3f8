"""Spanish-language rendering of batch results for ANALISIS.md."""

from __future__ import annotations

import json
import re
from collections.abc import Callable

from .batch import AnomalyCode, BatchReport
from .models import Alert, AlertCode, ExpenseStatus

MAX_INVALID_ROWS_SHOWN = 5

_CONVERSION_PATTERN = re.compile(r"Converting ([\d.]+) (\w+) --> ([\d.]+) (\w+)")
_AGE_LIMIT_PATTERN = re.compile(r"(\d+) days old.*Limit: (\d+)")
_AGE_REVIEW_PATTERN = re.compile(r"(\d+) days old")
_CATEGORY_MAX_PATTERN = re.compile(r"\$([\d.]+) exceeds maximum.*\$([\d.]+).*for (\w+)")
_CATEGORY_REVIEW_PATTERN = re.compile(r"\$([\d.]+) exceeds auto-approval.*\$([\d.]+)")
_COST_CENTER_PATTERN = re.compile(r"Cost center '([^']+)'.*expense '([^']+)'")


def _negative_amount(message: str) -> str:
    return "Monto no positivo"


def _currency_mismatch(message: str) -> str:
    match = _CONVERSION_PATTERN.search(message)
    if match:
        return f"Conversión: {match[1]} {match[2]} → {match[3]} {match[4]}"
    return "Conversión de moneda aplicada"


def _conversion_error(message: str) -> str:
    return "Error de conversión de moneda, requiere revisión manual"


def _age_limit(message: str) -> str:
    match = _AGE_LIMIT_PATTERN.search(message)
    if match:
        return f"Antigüedad: {match[1]} días (límite: {match[2]})"
    match = _AGE_REVIEW_PATTERN.search(message)
    if match:
        return f"Antigüedad: {match[1]} días, requiere revisión"
    return "Excede límite de antigüedad"


def _category_limit(message: str) -> str:
    if "exceeds maximum" in message:
        match = _CATEGORY_MAX_PATTERN.search(message)
        if match:
            return f"${match[1]} excede máximo permitido (${match[2]}) para {match[3]}"
    if "exceeds auto-approval" in message:
        match = _CATEGORY_REVIEW_PATTERN.search(message)
        if match:
            return f"${match[1]} excede auto-aprobación (${match[2]}), requiere revisión"
    return "Excede límite de categoría"


def _cost_center(message: str) -> str:
    match = _COST_CENTER_PATTERN.search(message)
    if match:
        return f"Centro de costo '{match[1]}' no puede reportar '{match[2]}'"
    return "Política de centro de costo violada"


_TRANSLATORS: dict[AlertCode, Callable[[str], str]] = {
    AlertCode.NEGATIVE_AMOUNT: _negative_amount,
    AlertCode.CURRENCY_MISMATCH: _currency_mismatch,
    AlertCode.CURRENCY_CONVERSION_ERROR: _conversion_error,
    AlertCode.AGE_LIMIT: _age_limit,
    AlertCode.CATEGORY_LIMIT: _category_limit,
    AlertCode.COST_CENTER_POLICY: _cost_center,
}

_STATUS_LABELS = {
    ExpenseStatus.APPROVED: "APROBADO",
    ExpenseStatus.PENDING: "PENDIENTE",
    ExpenseStatus.REJECTED: "RECHAZADO",
}


def translate_alert(alert: Alert) -> str:
    """Render an alert as ``[CODE] <texto en español>``."""

    translator = _TRANSLATORS.get(alert.code)
    text = translator(alert.message) if translator else alert.message
    return f"[{alert.code.value}] {text}"


def status_summary_lines(report: BatchReport) -> list[str]:
    lines = ["## Estado de los gastos"]
    for status, label in _STATUS_LABELS.items():
        lines.append(f"- {label}: {report.counts.get(status, 0)}")
    return lines


def render_analysis(report: BatchReport) -> str:
    """Render the ANALISIS.md document for a batch run."""

    negatives = report.anomalies_with(AnomalyCode.NEGATIVE_AMOUNT)
    duplicates = report.anomalies_with(AnomalyCode.DUPLICATE)

    lines = ["# ANALISIS", "", *status_summary_lines(report), ""]
    lines += [
        "## Anomalias detectadas",
        f"- Montos negativos: {len(negatives)}",
        f"- Duplicados exactos: {len(duplicates)}",
        "",
        "### Desglose de anomalias",
    ]
    for anomaly in report.anomalies:
        if anomaly.code == AnomalyCode.NEGATIVE_AMOUNT:
            lines.append(
                f"- NEGATIVE_AMOUNT: gasto {anomaly.expense_id}, monto {anomaly.amount}"
            )
        else:
            lines.append(
                f"- DUPLICATE: gasto {anomaly.expense_id} duplica {anomaly.first_expense_id} "
                f"({anomaly.amount} {anomaly.currency} en {anomaly.date})"
            )

    if report.invalid_rows:
        lines += ["", "## Filas inválidas omitidas", f"- Total: {len(report.invalid_rows)}"]
        for index, invalid in enumerate(report.invalid_rows[:MAX_INVALID_ROWS_SHOWN], start=1):
            raw = json.dumps(invalid.raw, ensure_ascii=False, default=str)
            lines.append(f"- ROW_{index}: {invalid.error}; raw={raw}")
        remaining = len(report.invalid_rows) - MAX_INVALID_ROWS_SHOWN
        if remaining > 0:
            lines.append(f"- ... {remaining} más omitidas")

    if report.failures:
        lines += ["", "## Gastos sin procesar", f"- Total: {len(report.failures)}"]
        lines += [f"- {failure.expense_id}: {failure.error}" for failure in report.failures]

    alerts_by_expense = [
        f"- {result.expense_id}: " + "\n".join(translate_alert(alert) for alert in result.alerts)
        for result in report.results
        if result.alerts
    ]
    if alerts_by_expense:
        lines += ["", "## Alertas por gasto", *alerts_by_expense]

    return "\n".join(lines)
