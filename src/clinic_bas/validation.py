"""Save-time checks for arrangement records and entered transaction figures.

Problems are reported as blockers rather than raised; the calculators
themselves accept any input and substitute zero for what is missing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, List, Mapping, Optional

from clinic_bas.core import HUNDRED, ZERO, to_decimal
from clinic_bas.methods import GROSS_VARIANTS, CalculationMethod, required_fields
from clinic_bas.models import INPUT_FIELD_BY_KEY, raw_value

# Gross variant -> (field, message) of the percentage it must carry.
_VARIANT_PERCENT_RULES = {
    "labGst": ("gstLabFeePercent", "GST on Lab Fee percentage must be between 0 and 100"),
    "patientGst": ("gstPatientFeePercent", "GST on Patient Fee percentage must be between 0 and 100"),
    "outwork": ("labFeeChargePercent", "Lab Fee Charge percentage must be between 0 and 100"),
}


@dataclass(frozen=True)
class ValidationResult:
    ready: bool
    blockers: List[str] = field(default_factory=list)


def _section(record: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = record.get(key)
    return value if isinstance(value, Mapping) else {}


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _percent_ok(value: Any) -> bool:
    # A zero or missing percentage is rejected along with out-of-range values.
    if _is_blank(value):
        return False
    amount = to_decimal(value)
    return ZERO < amount <= HUNDRED


def validate_arrangement(record: Mapping[str, Any]) -> ValidationResult:
    """Check a stored arrangement record before it is saved."""
    blockers: List[str] = []
    commission = _section(record, "commissionSplitting")
    net = _section(record, "netMethod")
    gross = _section(record, "grossMethod")

    if not _percent_ok(commission.get("commissionPercent")):
        blockers.append("commissionSplitting.commissionPercent: Commission percentage must be between 0 and 100")

    gst_on_commission = bool(commission.get("gstOnCommission", False))
    if gst_on_commission:
        if not _percent_ok(commission.get("gstPercent")):
            blockers.append("commissionSplitting.gstPercent: GST percentage must be between 0 and 100")
        if net.get("withSuperHolding") and not _percent_ok(net.get("superComponentPercent")):
            blockers.append(
                "netMethod.superComponentPercent: Super component percentage must be between 0 and 100"
            )
        return ValidationResult(ready=not blockers, blockers=blockers)

    variant = gross.get("selectedMethod")
    if variant not in GROSS_VARIANTS:
        blockers.append(f"grossMethod.selectedMethod: Unknown gross calculation method {variant!r}")
    elif variant == "basic":
        if gross.get("gstOnServiceFacilityFee", True) and not _percent_ok(
            gross.get("gstOnServiceFacilityFeePercent")
        ):
            blockers.append(
                "grossMethod.gstOnServiceFacilityFeePercent: "
                "GST on Service and Facility Fee percentage must be between 0 and 100"
            )
    elif variant == "merchantBank":
        fee = gross.get("merchantBankFeeWithGst")
        if _is_blank(fee) or to_decimal(fee) <= 0:
            blockers.append("grossMethod.merchantBankFeeWithGst: Merchant + Bank Fee must be a positive number")
    elif variant in _VARIANT_PERCENT_RULES:
        field_name, message = _VARIANT_PERCENT_RULES[variant]
        if not _percent_ok(gross.get(field_name)):
            blockers.append(f"grossMethod.{field_name}: {message}")

    return ValidationResult(ready=not blockers, blockers=blockers)


def validate_transaction_inputs(
    method: Optional[CalculationMethod],
    raw: Mapping[str, Any],
) -> ValidationResult:
    """Check the figures entered for one income event against its method."""
    if method is None:
        return ValidationResult(ready=False, blockers=["No calculation method is configured for this clinic"])

    blockers: List[str] = []
    gross_fee: Decimal = to_decimal(raw_value(raw, "gross_patient_fee"))
    if gross_fee <= 0:
        blockers.append("grossPatientFee: Gross patient fee is required and must be greater than zero")

    missing = [
        name
        for name in required_fields(method)
        if name != "grossPatientFee" and raw_value(raw, INPUT_FIELD_BY_KEY[name]) is None
    ]
    if missing:
        blockers.append(f"Missing mandatory fields: {', '.join(missing)}")

    if to_decimal(raw_value(raw, "lab_fee")) < 0:
        blockers.append("labFee: Lab fee cannot be negative")

    return ValidationResult(ready=not blockers, blockers=blockers)


__all__ = ["ValidationResult", "validate_arrangement", "validate_transaction_inputs"]
