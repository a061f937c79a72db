"""Totals over lists of stored income and expense records."""

from __future__ import annotations

from collections import Counter
from decimal import Decimal
from typing import Any, Dict, Iterable, Mapping

from clinic_bas.core import ZERO, money_str, to_decimal

UNKNOWN_ENTITY = "Unknown Entity"
UNKNOWN_HEAD = "Unknown Head"


def _section(record: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = record.get(key)
    return value if isinstance(value, Mapping) else {}


def summarize_income(records: Iterable[Mapping[str, Any]]) -> Dict[str, Any]:
    total_entries = 0
    gross = ZERO
    payable = ZERO
    refund = ZERO
    methods: Counter = Counter()
    for record in records:
        total_entries += 1
        gross += to_decimal(_section(record, "inputs").get("grossPatientFee"))
        payable += to_decimal(record.get("dentistPayable"))
        refund += to_decimal(record.get("basRefund"))
        methods[str(record.get("method") or "unknown")] += 1

    return {
        "totalEntries": total_entries,
        "totalGrossIncome": money_str(gross),
        "totalDentistPayable": money_str(payable),
        "totalBasRefund": money_str(refund),
        "methods": dict(methods),
    }


def summarize_expenses(records: Iterable[Mapping[str, Any]]) -> Dict[str, Any]:
    """Sum expense records overall and per entity.

    Entities are grouped by their display name, taken from the record's
    ``selectedEntity`` when present and otherwise from ``entityId``.
    """
    total_entries = 0
    total = ZERO
    credits = ZERO
    net = ZERO
    entities: Dict[str, Dict[str, Any]] = {}
    for record in records:
        total_entries += 1
        calc = _section(record, "calculations")
        amount = to_decimal(calc.get("totalAmount"))
        credit = to_decimal(calc.get("gstCredit"))
        total += amount
        credits += credit
        net += to_decimal(calc.get("netAmount"))

        selected = _section(record, "selectedEntity")
        name = selected.get("name") or record.get("entityId") or UNKNOWN_ENTITY
        bucket = entities.setdefault(
            str(name),
            {
                "count": 0,
                "totalAmount": ZERO,
                "gstCredit": ZERO,
                "headName": selected.get("headName") or UNKNOWN_HEAD,
            },
        )
        bucket["count"] += 1
        bucket["totalAmount"] += amount
        bucket["gstCredit"] += credit

    return {
        "totalEntries": total_entries,
        "totalExpenses": money_str(total),
        "totalGstCredits": money_str(credits),
        "totalNetExpenses": money_str(net),
        "entities": {name: _entity_payload(bucket) for name, bucket in entities.items()},
    }


def _entity_payload(bucket: Dict[str, Any]) -> Dict[str, Any]:
    total_amount: Decimal = bucket["totalAmount"]
    gst_credit: Decimal = bucket["gstCredit"]
    return {
        "count": bucket["count"],
        "totalAmount": money_str(total_amount),
        "gstCredit": money_str(gst_credit),
        "headName": bucket["headName"],
    }
