from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional
from uuid import uuid4

from clinic_bas.core import ZERO, money, parse_entry_date, utc_now
from clinic_bas.methods import (
    METHOD_LABELS,
    CalculationMethod,
    GrossBasic,
    GrossLabGst,
    GrossMerchantBank,
    GrossOutwork,
    GrossPatientGst,
    NetWithoutSuper,
    NetWithSuper,
    select_method,
)
from clinic_bas.models import CalculationResult, FinancialArrangement, TransactionInput

logger = logging.getLogger(__name__)

RULE_VERSION = "AU_DENTAL_FEE_SPLIT_V1"

# Commission under super holding already includes a 12% super loading.
SUPER_RATE = Decimal("0.12")
SUPER_LOADING_DIVISOR = 1 + SUPER_RATE

ONE = Decimal("1")


class _Breakdown:
    """Collects named intermediates and their formula lines in order."""

    def __init__(self) -> None:
        self.amounts: Dict[str, Decimal] = {}
        self.steps: List[str] = []

    def add(self, letter: str, name: str, label: str, value: Decimal, formula: Optional[str] = None) -> Decimal:
        self.amounts[name] = value
        if formula:
            self.steps.append(f"{letter} = {formula} = {money(value)} ({label})")
        else:
            self.steps.append(f"{letter} = {money(value)} ({label})")
        return value

    def result(
        self,
        method: CalculationMethod,
        dentist_payable: Decimal,
        bas_refund: Decimal,
        bas: Dict[str, Decimal],
    ) -> CalculationResult:
        return CalculationResult(
            method=method.method_id,
            label=METHOD_LABELS[method.method_id],
            amounts=MappingProxyType(dict(self.amounts)),
            dentist_payable=dentist_payable,
            bas_refund=bas_refund,
            bas=MappingProxyType(dict(bas)),
            steps=tuple(self.steps),
        )


def _pct(rate: Decimal) -> str:
    return f"{(rate * 100).normalize():f}%"


def gst_component(amount_inc_gst: Decimal, rate: Decimal) -> Decimal:
    """Extract the GST share of a GST-inclusive amount, ``amount * r / (1 + r)``."""
    if rate == 0 or rate == -ONE:
        return ZERO
    return amount_inc_gst * rate / (ONE + rate)


def calculate_net_without_super(data: TransactionInput, method: NetWithoutSuper) -> CalculationResult:
    b = _Breakdown()
    a = b.add("A", "grossPatientFee", "Gross Patient Fee", data.gross_patient_fee)
    lab = b.add("B", "labFee", "Lab Fee", data.lab_fee)
    if method.deduct_lab_fee:
        c = b.add("C", "netPatientFee", "Net Patient Fee", a - lab, "A - B")
    else:
        c = b.add("C", "netPatientFee", "Net Patient Fee", a, "A")
    d = b.add("D", "dentistCommission", "Dentist Commission", c * method.commission_rate, f"C x {_pct(method.commission_rate)}")
    e = b.add("E", "gstOnCommission", "GST on Commission", d * method.gst_rate, f"D x {_pct(method.gst_rate)}")
    f = b.add("F", "totalPayable", "Total Commission Payable", d + e, "D + E")
    return b.result(method, dentist_payable=f, bas_refund=ZERO, bas={"basG1": f, "basG3": c, "bas1A": e})


def calculate_net_with_super(data: TransactionInput, method: NetWithSuper) -> CalculationResult:
    b = _Breakdown()
    a = b.add("A", "grossPatientFee", "Gross Patient Fee", data.gross_patient_fee)
    lab = b.add("B", "labFee", "Lab Fee", data.lab_fee)
    if method.deduct_lab_fee:
        c = b.add("C", "netPatientFee", "Net Patient Fee", a - lab, "A - B")
    else:
        c = b.add("C", "netPatientFee", "Net Patient Fee", a, "A")
    d = b.add("D", "dentistCommission", "Dentist Commission", c * method.commission_rate, f"C x {_pct(method.commission_rate)}")
    f = b.add("F", "commissionComponent", "Commission Component", d / SUPER_LOADING_DIVISOR, "D / 1.12")
    e = b.add(
        "E",
        "superComponent",
        "Super Component - Paid by Clinic",
        f * SUPER_RATE,
        f"F x {_pct(SUPER_RATE)}",
    )
    g = b.add("G", "gstOnCommission", "GST on Commission", f * method.gst_rate, f"F x {_pct(method.gst_rate)}")
    h = b.add("H", "totalPayable", "Total Received by Dentist", f + g, "F + G")
    b.add("I", "totalForReconciliation", "Total for Reconciliation", e + f, "E + F")
    return b.result(method, dentist_payable=h, bas_refund=ZERO, bas={"basG1": h, "basG3": c, "bas1A": g})


def calculate_gross_basic(data: TransactionInput, method: GrossBasic) -> CalculationResult:
    b = _Breakdown()
    a = b.add("A", "grossPatientFee", "Gross Patient Fee", data.gross_patient_fee)
    lab = b.add("B", "labFee", "Lab Fee", data.lab_fee)
    c = b.add("C", "netPatientFee", "Net Patient Fee", a - lab, "A - B")
    d = b.add("D", "serviceFacilityFee", "Service & Facility Fee", c * method.service_fee_rate, f"C x {_pct(method.service_fee_rate)}")
    e = b.add("E", "gstOnServiceFee", "GST on Service & Facility Fee", d * method.service_fee_gst_rate, f"D x {_pct(method.service_fee_gst_rate)}")
    f = b.add("F", "totalServiceFee", "Total Service & Facility Fee", d + e, "D + E")
    g = b.add("G", "amountRemittedToDentist", "Amount Remitted to Dentist", c - f, "C - F")
    b.add("T", "total", "Remittance plus BAS Refund", g + e, "G + E")
    return b.result(
        method,
        dentist_payable=g,
        bas_refund=e,
        bas={"basG1": a, "basG3": c, "basG11": lab + f, "bas1B": e},
    )


def calculate_gross_lab_gst(data: TransactionInput, method: GrossLabGst) -> CalculationResult:
    b = _Breakdown()
    a = b.add("A", "grossPatientFee", "Gross Patient Fee", data.gross_patient_fee)
    lab = b.add("B", "labFee", "Lab Fee", data.lab_fee)
    c = b.add("C", "netPatientFee", "Net Patient Fee", a - lab, "A - B")
    d = b.add("D", "serviceFacilityFee", "Service & Facility Fee", c * method.service_fee_rate, f"C x {_pct(method.service_fee_rate)}")
    e = b.add("E", "gstOnServiceFee", "GST on Service & Facility Fee", d * method.service_fee_gst_rate, f"D x {_pct(method.service_fee_gst_rate)}")
    f = b.add("F", "totalServiceFee", "Total Service & Facility Fee", d + e, "D + E")
    g = b.add("G", "gstOnLabFee", "GST on Lab Fee", lab * method.lab_gst_rate, f"B x {_pct(method.lab_gst_rate)}")
    h = b.add("H", "amountRemittedToDentist", "Amount Remitted to Dentist", c - f - g, "C - F - G")
    b.add("T", "total", "Remittance plus BAS Refund", h + e, "H + E")
    return b.result(
        method,
        dentist_payable=h,
        bas_refund=e,
        bas={"basG1": a, "basG3": c, "basG11": lab + f, "bas1B": e + g},
    )


def calculate_gross_merchant_bank(data: TransactionInput, method: GrossMerchantBank) -> CalculationResult:
    b = _Breakdown()
    a = b.add("A", "grossPatientFee", "Gross Patient Fee", data.gross_patient_fee)
    lab = b.add("B", "labFee", "Lab Fee", data.lab_fee)
    merchant = b.add("C", "merchantFeeWithGst", "Merchant Fee inc GST", data.merchant_fee_with_gst)
    bank = b.add("D", "bankFee", "Bank Fee", data.bank_fee)
    e = b.add("E", "netPatientFee", "Net Patient Fee", a - lab, "A - B")
    f = b.add("F", "serviceFacilityFee", "Service & Facility Fee", e * method.service_fee_rate, f"E x {_pct(method.service_fee_rate)}")
    g = b.add("G", "gstOnServiceFee", "GST on Service & Facility Fee", f * method.service_fee_gst_rate, f"F x {_pct(method.service_fee_gst_rate)}")
    h = b.add("H", "totalServiceFee", "Total Service & Facility Fee", f + g, "F + G")
    rate = method.merchant_gst_rate
    i = b.add(
        "I",
        "merchantFeeGstComponent",
        "Merchant Fee GST Component",
        gst_component(merchant, rate),
        f"C x {_pct(rate)} / (1 + {_pct(rate)})",
    )
    b.add("J", "netMerchantFee", "Net Merchant Fee", merchant - i, "C - I")
    k = b.add("K", "amountRemittedToDentist", "Amount Remitted to Dentist", e - h - merchant - bank, "E - H - C - D")
    refund = b.add("L", "basRefundTotal", "BAS Refund", g + i, "G + I")
    b.add("T", "total", "Remittance plus BAS Refund", k + refund, "K + L")
    return b.result(
        method,
        dentist_payable=k,
        bas_refund=refund,
        bas={"basG1": a, "basG3": e, "basG11": h + merchant + bank, "bas1B": refund},
    )


def calculate_gross_patient_gst(data: TransactionInput, method: GrossPatientGst) -> CalculationResult:
    b = _Breakdown()
    a = b.add("A", "grossPatientFee", "Gross Patient Fee", data.gross_patient_fee)
    lab = b.add("B", "labFee", "Lab Fee", data.lab_fee)
    patient_gst = b.add("C", "gstOnPatientFee", "GST on Patient Fee", data.gst_on_patient_fee)
    d = b.add("D", "patientFeeExclGst", "Patient Fee excl GST", a - patient_gst, "A - C")
    e = b.add("E", "netPatientFee", "Net Patient Fee", d - lab, "D - B")
    f = b.add("F", "serviceFacilityFee", "Service & Facility Fee", e * method.service_fee_rate, f"E x {_pct(method.service_fee_rate)}")
    g = b.add("G", "gstOnServiceFee", "GST on Service & Facility Fee", f * method.service_fee_gst_rate, f"F x {_pct(method.service_fee_gst_rate)}")
    h = b.add("H", "totalServiceFee", "Total Service & Facility Fee", f + g, "F + G")
    i = b.add("I", "labFeePaidByDentist", "Lab Fee Paid by Dentist", lab, "B")
    j = b.add("J", "amountRemittedToDentist", "Amount Remitted to Dentist", e - h + i, "E - H + I")
    b.add("T", "total", "Remittance plus BAS Refund", j + g, "J + G")
    return b.result(
        method,
        dentist_payable=j,
        bas_refund=g,
        bas={"basG1": a, "basG11": h + i, "bas1A": patient_gst, "bas1B": g},
    )


def calculate_gross_outwork(data: TransactionInput, method: GrossOutwork) -> CalculationResult:
    b = _Breakdown()
    a = b.add("A", "grossPatientFee", "Gross Patient Fee", data.gross_patient_fee)
    lab = b.add("B", "labFee", "Lab Fee", data.lab_fee)
    merchant = b.add("C", "merchantFeeCost", "Merchant Fee Cost", data.merchant_fee_cost)
    d = b.add("D", "gstOnLabFee", "GST on Lab Fee", lab * method.lab_gst_rate, f"B x {_pct(method.lab_gst_rate)}")
    e = b.add("E", "totalOutworkCost", "Total Outwork Cost", lab + merchant + d, "B + C + D")
    f = b.add("F", "netPatientFee", "Net Patient Fee", a - e, "A - E")
    g = b.add("G", "serviceFacilityFee", "Service & Facility Fee", f * method.service_fee_rate, f"F x {_pct(method.service_fee_rate)}")
    h = b.add("H", "labFeeOtherCostCharge", "Lab Fee and Other Cost Charge", f * method.outwork_rate, f"F x {_pct(method.outwork_rate)}")
    i = b.add("I", "totalServiceFeeOtherCost", "Total Service Fee + Other Cost", g + h, "G + H")
    j = b.add("J", "gstOnServiceFee", "GST on Service & Facility Fee", i * method.service_fee_gst_rate, f"I x {_pct(method.service_fee_gst_rate)}")
    k = b.add("K", "totalServiceFeeIncGst", "Total Service & Facility Fee inc GST", i + j, "I + J")
    payable = b.add("L", "netPayableToDentist", "Net Payable to Dentist", a - k, "A - K")
    return b.result(
        method,
        dentist_payable=payable,
        bas_refund=ZERO,
        bas={"basG1": a, "basG3": f, "basG11": k, "bas1B": j},
    )


_CALCULATORS: Dict[type, Callable[[TransactionInput, Any], CalculationResult]] = {
    NetWithoutSuper: calculate_net_without_super,
    NetWithSuper: calculate_net_with_super,
    GrossBasic: calculate_gross_basic,
    GrossLabGst: calculate_gross_lab_gst,
    GrossMerchantBank: calculate_gross_merchant_bank,
    GrossPatientGst: calculate_gross_patient_gst,
    GrossOutwork: calculate_gross_outwork,
}


def calculate_with_method(data: TransactionInput, method: CalculationMethod) -> CalculationResult:
    return _CALCULATORS[type(method)](data, method)


def calculate(data: TransactionInput, arrangement: FinancialArrangement) -> Optional[CalculationResult]:
    """Run the arrangement's active calculator, or return ``None`` if none applies."""
    method = select_method(arrangement)
    if method is None:
        return None
    return calculate_with_method(data, method)


class IncomeCalculationService:
    """Turns raw entered figures into income transaction records."""

    rule_version = RULE_VERSION

    def calculate(
        self,
        raw_inputs: Mapping[str, Any],
        arrangement: FinancialArrangement,
    ) -> Optional[CalculationResult]:
        return calculate(TransactionInput.from_raw(raw_inputs), arrangement)

    def build_record(
        self,
        clinic_id: str,
        raw_inputs: Mapping[str, Any],
        arrangement: FinancialArrangement,
        *,
        entry_date: Any = None,
        record_id: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Calculate one income event and return a record suitable for storage.

        The record keeps ``ruleVersion`` so stored breakdowns can be traced to
        the rules that produced them.
        """
        data = TransactionInput.from_raw(raw_inputs)
        result = calculate(data, arrangement)
        if result is None:
            logger.warning("Income record for clinic %s not built: no calculation method", clinic_id)
            return None

        resolved_date = parse_entry_date(entry_date) or date.today()
        calculations = result.to_calculations()
        return {
            "id": record_id or str(uuid4()),
            "clinicId": clinic_id,
            "entryDate": resolved_date.isoformat(),
            "inputs": data.to_record(),
            "calculations": calculations,
            "calculationSteps": list(result.steps),
            "method": result.method,
            "methodLabel": result.label,
            "ruleVersion": self.rule_version,
            "gstPercent": float(arrangement.gst_percent),
            "commissionPercent": float(arrangement.commission_percent),
            "dentistPayable": calculations["dentistPayable"],
            "basRefund": calculations["basRefund"],
            "createdAt": utc_now(),
        }


__all__ = [
    "RULE_VERSION",
    "IncomeCalculationService",
    "calculate",
    "calculate_with_method",
    "calculate_net_without_super",
    "calculate_net_with_super",
    "calculate_gross_basic",
    "calculate_gross_lab_gst",
    "calculate_gross_merchant_bank",
    "calculate_gross_patient_gst",
    "calculate_gross_outwork",
    "gst_component",
]
