"""Calculation methods and their selection from a clinic's arrangement.

Exactly one method is active per arrangement. It is derived, never chosen
directly: ``gstOnCommission`` picks the Net or Gross family, then
``withSuperHolding`` or the gross ``selectedMethod`` picks the variant.
Each variant carries only the rates its calculator reads.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import ClassVar, Dict, Optional, Tuple, Union

from clinic_bas.core import ZERO, rate_from_percent
from clinic_bas.models import FinancialArrangement

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class NetWithoutSuper:
    commission_rate: Decimal
    gst_rate: Decimal
    deduct_lab_fee: bool = True

    method_id: ClassVar[str] = "net-without-super"


@dataclass(frozen=True)
class NetWithSuper:
    commission_rate: Decimal
    gst_rate: Decimal
    deduct_lab_fee: bool = True

    method_id: ClassVar[str] = "net-with-super"


@dataclass(frozen=True)
class GrossBasic:
    service_fee_rate: Decimal
    service_fee_gst_rate: Decimal

    method_id: ClassVar[str] = "gross-basic"


@dataclass(frozen=True)
class GrossLabGst:
    service_fee_rate: Decimal
    service_fee_gst_rate: Decimal
    lab_gst_rate: Decimal

    method_id: ClassVar[str] = "gross-lab-gst"


@dataclass(frozen=True)
class GrossMerchantBank:
    service_fee_rate: Decimal
    service_fee_gst_rate: Decimal
    merchant_gst_rate: Decimal

    method_id: ClassVar[str] = "gross-merchant-bank"


@dataclass(frozen=True)
class GrossPatientGst:
    service_fee_rate: Decimal
    service_fee_gst_rate: Decimal

    method_id: ClassVar[str] = "gross-patient-gst"


@dataclass(frozen=True)
class GrossOutwork:
    service_fee_rate: Decimal
    service_fee_gst_rate: Decimal
    outwork_rate: Decimal
    lab_gst_rate: Decimal

    method_id: ClassVar[str] = "gross-outwork"


CalculationMethod = Union[
    NetWithoutSuper,
    NetWithSuper,
    GrossBasic,
    GrossLabGst,
    GrossMerchantBank,
    GrossPatientGst,
    GrossOutwork,
]

METHOD_LABELS: Dict[str, str] = {
    NetWithoutSuper.method_id: "Net Method - Without Super Holding (Independent Contractor)",
    NetWithSuper.method_id: "Net Method - With Super Holding (Independent Contractor)",
    GrossBasic.method_id: "Gross Method - Service & Facility Fee with GST",
    GrossLabGst.method_id: "Gross Method - S&F Fee with GST on Lab Fee Charged by Clinic",
    GrossMerchantBank.method_id: "Gross Method - S&F Fee with Merchant/Bank Fee Charged to Dentist",
    GrossPatientGst.method_id: "Gross Method - S&F Fee with GST on Lab Fee Paid by Dentist + GST on Patient Fee",
    GrossOutwork.method_id: "Gross Method - Service & Facility with Outwork Charge Rate",
}

REQUIRED_FIELDS: Dict[str, Tuple[str, ...]] = {
    NetWithoutSuper.method_id: ("grossPatientFee", "labFee"),
    NetWithSuper.method_id: ("grossPatientFee", "labFee"),
    GrossBasic.method_id: ("grossPatientFee", "labFee"),
    GrossLabGst.method_id: ("grossPatientFee", "labFee"),
    GrossMerchantBank.method_id: ("grossPatientFee", "labFee", "merchantFeeWithGst", "bankFee"),
    GrossPatientGst.method_id: ("grossPatientFee", "labFee", "gstOnPatientFee"),
    GrossOutwork.method_id: ("grossPatientFee", "labFee", "merchantFeeCost"),
}

GROSS_VARIANTS = ("basic", "labGst", "merchantBank", "patientGst", "outwork")


def required_fields(method: CalculationMethod) -> Tuple[str, ...]:
    return REQUIRED_FIELDS[method.method_id]


def select_method(arrangement: FinancialArrangement) -> Optional[CalculationMethod]:
    """Map an arrangement to its single active calculation method.

    Returns ``None`` when the gross variant is not one of ``GROSS_VARIANTS``.
    """
    commission_rate = rate_from_percent(arrangement.commission_percent)
    gst_rate = rate_from_percent(arrangement.gst_percent)

    if arrangement.gst_on_commission:
        deduct_lab_fee = arrangement.lab_fee_paid_by_clinic
        if arrangement.with_super_holding:
            return NetWithSuper(
                commission_rate=commission_rate,
                gst_rate=gst_rate,
                deduct_lab_fee=deduct_lab_fee,
            )
        return NetWithoutSuper(
            commission_rate=commission_rate,
            gst_rate=gst_rate,
            deduct_lab_fee=deduct_lab_fee,
        )

    variant = arrangement.gross_variant
    service_fee_gst_rate = _service_fee_gst_rate(arrangement, gst_rate)
    if variant == "basic":
        return GrossBasic(commission_rate, service_fee_gst_rate)
    if variant == "labGst":
        return GrossLabGst(commission_rate, service_fee_gst_rate, _derived_lab_gst_rate(arrangement))
    if variant == "merchantBank":
        return GrossMerchantBank(commission_rate, service_fee_gst_rate, merchant_gst_rate=gst_rate)
    if variant == "patientGst":
        return GrossPatientGst(commission_rate, service_fee_gst_rate)
    if variant == "outwork":
        return GrossOutwork(
            commission_rate,
            service_fee_gst_rate,
            outwork_rate=gst_rate,
            lab_gst_rate=_derived_lab_gst_rate(arrangement),
        )

    logger.warning("No calculation method for gross variant %r", variant)
    return None


def _service_fee_gst_rate(arrangement: FinancialArrangement, gst_rate: Decimal) -> Decimal:
    if not arrangement.gst_on_service_facility_fee:
        return ZERO
    if arrangement.gst_on_service_facility_fee_percent is None:
        return gst_rate
    return rate_from_percent(arrangement.gst_on_service_facility_fee_percent)


def _derived_lab_gst_rate(arrangement: FinancialArrangement) -> Decimal:
    # Gated on the selected variant alone; the outwork variant therefore
    # always derives zero GST on the lab fee.
    if arrangement.gross_variant == "labGst":
        return rate_from_percent(arrangement.gst_lab_fee_percent)
    return ZERO
