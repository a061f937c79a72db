from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Optional
from uuid import uuid4

from clinic_bas.core import ZERO, money_str, parse_entry_date, rate_from_percent, to_decimal, utc_now


@dataclass(frozen=True)
class ExpenseGstBreakdown:
    net_amount: Decimal
    gst_amount: Decimal
    total_amount: Decimal
    gst_credit: Decimal
    bas_g10: Decimal
    bas_g11: Decimal
    bas_1b: Decimal

    def to_calculations(self) -> Dict[str, str]:
        return {
            "netAmount": money_str(self.net_amount),
            "gstAmount": money_str(self.gst_amount),
            "totalAmount": money_str(self.total_amount),
            "gstCredit": money_str(self.gst_credit),
            "basG10": money_str(self.bas_g10),
            "basG11": money_str(self.bas_g11),
            "bas1B": money_str(self.bas_1b),
        }


def calculate_expense_gst(amount: Any, gst_percent: Any) -> ExpenseGstBreakdown:
    """Split a GST-inclusive expense amount into net, GST and credit.

    The amount is always treated as GST-inclusive; there is no exclusive,
    GST-free or input-taxed treatment.
    """
    total = to_decimal(amount)
    rate = rate_from_percent(gst_percent)
    divisor = Decimal("1") + rate
    gst = ZERO if rate == 0 or divisor == 0 else total / divisor * rate
    net = total - gst
    return ExpenseGstBreakdown(
        net_amount=net,
        gst_amount=gst,
        total_amount=total,
        gst_credit=gst,
        bas_g10=total,
        bas_g11=net,
        bas_1b=gst,
    )


def build_expense_record(
    clinic_id: str,
    entity_id: str,
    amount: Any,
    gst_percent: Any,
    *,
    description: str = "",
    entry_date: Any = None,
    record_id: Optional[str] = None,
) -> Dict[str, Any]:
    breakdown = calculate_expense_gst(amount, gst_percent)
    resolved_date = parse_entry_date(entry_date) or date.today()
    return {
        "id": record_id or str(uuid4()),
        "clinicId": clinic_id,
        "entityId": entity_id,
        "entryDate": resolved_date.isoformat(),
        "description": description,
        "inputs": {"amount": money_str(to_decimal(amount))},
        "calculations": breakdown.to_calculations(),
        "gstPercent": float(to_decimal(gst_percent)),
        "createdAt": utc_now(),
    }
