from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from clinic_bas.core import HUNDRED, ZERO, first_amount, parse_entry_date, utc_now
from clinic_bas.models import (
    BasCategoryConfig,
    BasReport,
    BucketTotals,
    ExpenseEntityConfig,
    ExpenseEntityTotals,
    IncomeCategoryTotals,
    QuarterRange,
    ReportTotals,
)
from clinic_bas.periods import resolve_quarter

logger = logging.getLogger(__name__)

TOTAL_INCOME_KEY = "totalIncome"

# Stored calculations name the same quantity differently depending on the
# method that produced them; the first non-zero field wins.
INCOME_TOTAL_FIELDS = ("totalAmount", "grossPatientFee", "totalIncome")
INCOME_GST_FIELDS = ("gstAmount", "bas1A", "gstOnCommission", "gstOnIncome")
EXPENSE_GROSS_FIELDS = ("totalAmount", "grossAmount", "amount")
EXPENSE_GST_FIELDS = ("gstAmount", "gstCredit", "gst")
NET_FIELDS = ("netAmount",)

Record = Mapping[str, Any]


def filter_records_by_period(records: Iterable[Record], period: QuarterRange) -> List[Record]:
    selected: List[Record] = []
    for record in records:
        entry_date = parse_entry_date(record.get("entryDate"))
        if entry_date is None:
            logger.debug("Skipping record %s with unreadable entry date", record.get("id"))
            continue
        if period.contains(entry_date):
            selected.append(record)
    return selected


def _calculations(record: Record) -> Optional[Mapping[str, Any]]:
    calc = record.get("calculations")
    if not isinstance(calc, Mapping) or not calc:
        logger.debug("Skipping record %s without calculations", record.get("id"))
        return None
    return calc


def income_amounts(calc: Mapping[str, Any]) -> BucketTotals:
    total = first_amount(calc, INCOME_TOTAL_FIELDS)
    gst = first_amount(calc, INCOME_GST_FIELDS)
    net = first_amount(calc, NET_FIELDS) or total - gst
    return BucketTotals(gross=total, gst=gst, net=net)


def is_gst_free_income(calc: Mapping[str, Any], amounts: BucketTotals) -> bool:
    return amounts.gst == 0 or bool(calc.get("isGstFree"))


def is_gst_income(calc: Mapping[str, Any], amounts: BucketTotals) -> bool:
    return amounts.gst > 0 and not calc.get("isGstFree")


def income_category_totals(records: Iterable[Record], category_key: str) -> BucketTotals:
    """Sum the income records that belong in ``category_key``.

    ``*GstFree`` keys take records with no GST component or an ``isGstFree``
    flag, ``*Gst`` keys take records carrying positive GST, and ``totalIncome``
    takes everything. A record with negative GST lands in neither bucket.
    """
    if category_key == TOTAL_INCOME_KEY:
        wants = "all"
    elif category_key.endswith("GstFree"):
        wants = "gst_free"
    elif category_key.endswith("Gst"):
        wants = "gst"
    else:
        logger.debug("Income category %r has no bucketing rule", category_key)
        return BucketTotals()

    totals = BucketTotals()
    for record in records:
        calc = _calculations(record)
        if calc is None:
            continue
        amounts = income_amounts(calc)
        if wants == "all":
            totals += amounts
        elif wants == "gst_free" and is_gst_free_income(calc, amounts):
            totals += BucketTotals(gross=amounts.gross, gst=ZERO, net=amounts.gross)
        elif wants == "gst" and is_gst_income(calc, amounts):
            totals += amounts
    return totals


def record_entity_id(record: Record) -> Optional[str]:
    entity_id = record.get("entityId") or record.get("expenseEntityId")
    if entity_id:
        return str(entity_id)
    selected = record.get("selectedEntity")
    if isinstance(selected, Mapping) and selected.get("id"):
        return str(selected["id"])
    return None


def expense_entity_totals(records: Iterable[Record], entity: ExpenseEntityConfig) -> BucketTotals:
    """Sum an entity's expense records, scaled by its business-use percentage."""
    factor = entity.business_use_percent / HUNDRED
    totals = BucketTotals()
    for record in records:
        if record_entity_id(record) != entity.entity_id:
            continue
        calc = _calculations(record)
        if calc is None:
            continue
        gross = first_amount(calc, EXPENSE_GROSS_FIELDS)
        gst = first_amount(calc, EXPENSE_GST_FIELDS)
        net = first_amount(calc, NET_FIELDS) or gross - gst
        totals += BucketTotals(gross=gross, gst=gst, net=net).scaled(factor)
    return totals


def gst_position(income_gst: Decimal, expense_gst: Decimal) -> Tuple[Decimal, Decimal, Decimal]:
    """Return ``(gst_payable, gst_refund, net_gst_position)``."""
    net_position = income_gst - expense_gst
    return max(ZERO, net_position), max(ZERO, -net_position), net_position


class BasAggregator:
    """Builds quarterly BAS reports from income and expense transaction logs.

    Holds no state between calls and never mutates the logs it reads.
    """

    def generate_report(
        self,
        quarter: str,
        year: int,
        config: Union[BasCategoryConfig, Mapping[str, Any]],
        income_log: Iterable[Record],
        expense_log: Iterable[Record],
    ) -> Optional[BasReport]:
        if not isinstance(config, BasCategoryConfig):
            config = BasCategoryConfig.from_record(config)

        period = resolve_quarter(quarter, year, config.financial_year_start)
        if period is None:
            return None

        income = filter_records_by_period(income_log, period)
        expenses = filter_records_by_period(expense_log, period)
        logger.debug(
            "Generating BAS %s: %d income and %d expense records in range",
            period.label(),
            len(income),
            len(expenses),
        )

        income_buckets: Dict[str, IncomeCategoryTotals] = {}
        total_income = BucketTotals()
        for key, category in config.income_categories.items():
            if not category.enabled:
                continue
            # Buckets are rounded to the cent before they are totalled.
            totals = income_category_totals(income, key).rounded()
            income_buckets[key] = IncomeCategoryTotals(key=key, bas_code=category.bas_code, totals=totals)
            if key != TOTAL_INCOME_KEY:
                total_income += totals

        # The all-records category replaces the per-category sum when enabled.
        if TOTAL_INCOME_KEY in income_buckets:
            total_income = income_buckets[TOTAL_INCOME_KEY].totals

        expense_buckets: Dict[str, ExpenseEntityTotals] = {}
        total_expenses = BucketTotals()
        for entity_id, entity in config.expense_entities.items():
            if not entity.enabled:
                continue
            totals = expense_entity_totals(expenses, entity).rounded()
            expense_buckets[entity_id] = ExpenseEntityTotals(
                entity_id=entity_id,
                bas_code=entity.bas_code,
                business_use=entity.business_use_percent,
                totals=totals,
                name=entity.name,
                type=entity.type,
                head_id=entity.head_id,
            )
            total_expenses += totals

        payable, refund, net_position = gst_position(total_income.gst, total_expenses.gst)
        return BasReport(
            period=period,
            income=income_buckets,
            expense_entities=expense_buckets,
            totals=ReportTotals(
                total_income=total_income,
                total_expenses=total_expenses,
                gst_payable=payable,
                gst_refund=refund,
                net_gst_position=net_position,
            ),
        )


def generate_report(
    quarter: str,
    year: int,
    config: Union[BasCategoryConfig, Mapping[str, Any]],
    income_log: Iterable[Record],
    expense_log: Iterable[Record],
) -> Optional[BasReport]:
    return BasAggregator().generate_report(quarter, year, config, income_log, expense_log)


def format_report_for_export(report: BasReport, clinic: Mapping[str, Any]) -> Dict[str, Any]:
    report_data = report.to_dict()
    totals = report_data["totals"]
    return {
        "clinicName": clinic.get("practiceName") or clinic.get("name") or "",
        "abn": clinic.get("abn") or clinic.get("abnNumber") or "Not provided",
        "quarter": report.period.quarter,
        "year": report.period.year,
        "generatedAt": utc_now(),
        "reportData": report_data,
        "summary": {
            "totalIncome": totals["totalIncome"],
            "totalExpenses": totals["totalExpenses"],
            "gstPosition": {
                "gstPayable": totals["gstPayable"],
                "gstRefund": totals["gstRefund"],
                "netPosition": totals["netGstPosition"],
            },
        },
    }
