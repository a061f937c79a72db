from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Literal, Mapping, Optional, Tuple

from clinic_bas.core import ZERO, money, money_str, to_decimal

LabFeePayer = Literal["Clinic", "Dentist"]
GrossVariant = Literal["basic", "labGst", "merchantBank", "patientGst", "outwork"]

CAPITAL_PURCHASES = "Capital Purchases"


def _section(record: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = record.get(key)
    return value if isinstance(value, Mapping) else {}


def _optional_decimal(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    return to_decimal(value)


@dataclass(frozen=True)
class FinancialArrangement:
    """A clinic's calculation arrangement, immutable for one calculation.

    Percentages are kept on the 0-100 scale they are stored with.
    """

    commission_percent: Decimal = ZERO
    gst_on_commission: bool = False
    gst_percent: Decimal = ZERO
    lab_fee_enabled: bool = True
    lab_fee_paid_by: LabFeePayer = "Clinic"
    with_super_holding: bool = False
    super_component_percent: Optional[Decimal] = None
    gross_variant: Optional[str] = None
    service_facility_fee: bool = True
    gst_on_service_facility_fee: bool = True
    gst_on_service_facility_fee_percent: Optional[Decimal] = None
    gst_lab_fee_percent: Decimal = ZERO
    merchant_bank_fee_with_gst: Decimal = ZERO
    gst_patient_fee_percent: Decimal = ZERO
    lab_fee_charge_percent: Decimal = ZERO

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "FinancialArrangement":
        commission = _section(record, "commissionSplitting")
        lab_fee = _section(record, "labFee")
        net = _section(record, "netMethod")
        gross = _section(record, "grossMethod")
        paid_by = "Dentist" if str(lab_fee.get("payBy", "Clinic")).lower() == "dentist" else "Clinic"
        variant = gross.get("selectedMethod")
        return cls(
            commission_percent=to_decimal(commission.get("commissionPercent")),
            gst_on_commission=bool(commission.get("gstOnCommission", False)),
            gst_percent=to_decimal(commission.get("gstPercent")),
            lab_fee_enabled=bool(lab_fee.get("enabled", True)),
            lab_fee_paid_by=paid_by,
            with_super_holding=bool(net.get("withSuperHolding", False)),
            super_component_percent=_optional_decimal(net.get("superComponentPercent")),
            gross_variant=str(variant) if variant else None,
            service_facility_fee=bool(gross.get("serviceFacilityFee", True)),
            gst_on_service_facility_fee=bool(gross.get("gstOnServiceFacilityFee", True)),
            gst_on_service_facility_fee_percent=_optional_decimal(
                gross.get("gstOnServiceFacilityFeePercent")
            ),
            gst_lab_fee_percent=to_decimal(gross.get("gstLabFeePercent")),
            merchant_bank_fee_with_gst=to_decimal(gross.get("merchantBankFeeWithGst")),
            gst_patient_fee_percent=to_decimal(gross.get("gstPatientFeePercent")),
            lab_fee_charge_percent=to_decimal(gross.get("labFeeChargePercent")),
        )

    def to_record(self) -> Dict[str, Any]:
        def number(value: Optional[Decimal]) -> Optional[float]:
            return None if value is None else float(value)

        return {
            "commissionSplitting": {
                "commissionPercent": number(self.commission_percent),
                "gstOnCommission": self.gst_on_commission,
                "gstPercent": number(self.gst_percent),
            },
            "labFee": {"enabled": self.lab_fee_enabled, "payBy": self.lab_fee_paid_by},
            "netMethod": {
                "enabled": self.gst_on_commission,
                "withSuperHolding": self.with_super_holding,
                "superComponentPercent": number(self.super_component_percent),
            },
            "grossMethod": {
                "enabled": not self.gst_on_commission,
                "selectedMethod": self.gross_variant,
                "serviceFacilityFee": self.service_facility_fee,
                "gstOnServiceFacilityFee": self.gst_on_service_facility_fee,
                "gstOnServiceFacilityFeePercent": number(self.gst_on_service_facility_fee_percent),
                "gstLabFeePercent": number(self.gst_lab_fee_percent),
                "merchantBankFeeWithGst": number(self.merchant_bank_fee_with_gst),
                "gstPatientFeePercent": number(self.gst_patient_fee_percent),
                "labFeeChargePercent": number(self.lab_fee_charge_percent),
            },
        }

    @property
    def lab_fee_paid_by_clinic(self) -> bool:
        return self.lab_fee_paid_by == "Clinic"


# Raw field name -> accepted spellings in stored or posted inputs.
_INPUT_ALIASES: Dict[str, Tuple[str, ...]] = {
    "gross_patient_fee": ("grossPatientFee", "gross_patient_fee"),
    "lab_fee": ("labFee", "lab_fee"),
    "gst_on_lab_fee": ("gstOnLabFee", "gst_on_lab_fee"),
    "merchant_fee_with_gst": ("merchantFeeWithGst", "merchantFeeIncGst", "merchant_fee_with_gst"),
    "bank_fee": ("bankFee", "bank_fee"),
    "gst_on_patient_fee": ("gstOnPatientFee", "gst_on_patient_fee"),
    "merchant_fee_cost": ("merchantFeeCost", "merchantFee", "merchant_fee_cost"),
}

# Stored camelCase key -> field name.
INPUT_FIELD_BY_KEY: Dict[str, str] = {aliases[0]: name for name, aliases in _INPUT_ALIASES.items()}


def raw_value(raw: Mapping[str, Any], field_name: str) -> Any:
    """Return the first non-blank value stored under any spelling of ``field_name``."""
    for alias in _INPUT_ALIASES[field_name]:
        value = raw.get(alias)
        if value is None or (isinstance(value, str) and not value.strip()):
            continue
        return value
    return None


@dataclass(frozen=True)
class TransactionInput:
    """Raw figures entered for one income event, fully populated."""

    gross_patient_fee: Decimal = ZERO
    lab_fee: Decimal = ZERO
    gst_on_lab_fee: Decimal = ZERO
    merchant_fee_with_gst: Decimal = ZERO
    bank_fee: Decimal = ZERO
    gst_on_patient_fee: Decimal = ZERO
    merchant_fee_cost: Decimal = ZERO

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "TransactionInput":
        return cls(**{name: to_decimal(raw_value(raw, name)) for name in _INPUT_ALIASES})

    def to_record(self) -> Dict[str, str]:
        return {aliases[0]: money_str(getattr(self, name)) for name, aliases in _INPUT_ALIASES.items()}


@dataclass(frozen=True)
class CalculationResult:
    """Breakdown produced by one calculator for one transaction.

    ``amounts`` keeps every named intermediate in formula order, keyed by the
    stored field name (``netPatientFee``, ``serviceFacilityFee`` ...). ``bas``
    maps BAS keys (``basG1``, ``bas1A`` ...) to their amounts. Both are read-only views.
    """

    method: str
    label: str
    amounts: Mapping[str, Decimal]
    dentist_payable: Decimal
    bas_refund: Decimal
    bas: Mapping[str, Decimal]
    steps: Tuple[str, ...] = ()

    def __getitem__(self, name: str) -> Decimal:
        return self.amounts[name]

    def to_calculations(self) -> Dict[str, str]:
        payload = {name: money_str(value) for name, value in self.amounts.items()}
        payload.update({key: money_str(value) for key, value in self.bas.items()})
        payload["dentistPayable"] = money_str(self.dentist_payable)
        payload["basRefund"] = money_str(self.bas_refund)
        return payload


@dataclass(frozen=True)
class IncomeCategory:
    key: str
    enabled: bool = True
    label: str = ""
    bas_code: str = ""

    def to_record(self) -> Dict[str, Any]:
        return {"enabled": self.enabled, "label": self.label, "basCode": self.bas_code}


@dataclass(frozen=True)
class ExpenseEntityConfig:
    entity_id: str
    enabled: bool = True
    bas_code: str = "G11"
    business_use: Optional[Decimal] = None
    name: str = ""
    type: str = ""
    head_id: Optional[str] = None

    @property
    def business_use_percent(self) -> Decimal:
        return Decimal("100") if self.business_use is None else self.business_use

    def to_record(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "basCode": self.bas_code,
            "businessUse": None if self.business_use is None else float(self.business_use),
            "name": self.name,
            "type": self.type,
            "headId": self.head_id,
        }


@dataclass(frozen=True)
class BasCategoryConfig:
    income_categories: Dict[str, IncomeCategory] = field(default_factory=dict)
    expense_entities: Dict[str, ExpenseEntityConfig] = field(default_factory=dict)
    financial_year_start: str = "July"
    reporting_period: str = "Quarterly"

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "BasCategoryConfig":
        income: Dict[str, IncomeCategory] = {}
        for key, raw in _section(record, "incomeCategories").items():
            raw = raw if isinstance(raw, Mapping) else {}
            income[key] = IncomeCategory(
                key=key,
                enabled=bool(raw.get("enabled", False)),
                label=str(raw.get("label") or ""),
                bas_code=str(raw.get("basCode") or ""),
            )

        entities: Dict[str, ExpenseEntityConfig] = {}
        for entity_id, raw in _section(record, "expenseEntities").items():
            raw = raw if isinstance(raw, Mapping) else {}
            entities[entity_id] = ExpenseEntityConfig(
                entity_id=entity_id,
                enabled=bool(raw.get("enabled", False)),
                bas_code=str(raw.get("basCode") or ""),
                business_use=_optional_decimal(raw.get("businessUse")),
                name=str(raw.get("name") or ""),
                type=str(raw.get("type") or ""),
                head_id=raw.get("headId"),
            )

        quarterly = _section(record, "quarterlySettings")
        return cls(
            income_categories=income,
            expense_entities=entities,
            financial_year_start=str(quarterly.get("financialYearStart") or "July"),
            reporting_period=str(quarterly.get("reportingPeriod") or "Quarterly"),
        )

    def to_record(self) -> Dict[str, Any]:
        return {
            "incomeCategories": {key: c.to_record() for key, c in self.income_categories.items()},
            "expenseEntities": {key: e.to_record() for key, e in self.expense_entities.items()},
            "quarterlySettings": {
                "financialYearStart": self.financial_year_start,
                "reportingPeriod": self.reporting_period,
            },
        }


@dataclass(frozen=True)
class QuarterRange:
    quarter: str
    year: int
    start: date
    end: date
    months: Tuple[int, int, int]

    def contains(self, target: date) -> bool:
        return self.start <= target <= self.end

    def label(self) -> str:
        return f"{self.quarter} {self.year} ({self.start.isoformat()} to {self.end.isoformat()})"


@dataclass(frozen=True)
class BucketTotals:
    gross: Decimal = ZERO
    gst: Decimal = ZERO
    net: Decimal = ZERO

    def __add__(self, other: "BucketTotals") -> "BucketTotals":
        return BucketTotals(
            gross=self.gross + other.gross,
            gst=self.gst + other.gst,
            net=self.net + other.net,
        )

    def scaled(self, factor: Decimal) -> "BucketTotals":
        return BucketTotals(gross=self.gross * factor, gst=self.gst * factor, net=self.net * factor)

    def rounded(self) -> "BucketTotals":
        return BucketTotals(gross=money(self.gross), gst=money(self.gst), net=money(self.net))

    def to_dict(self) -> Dict[str, str]:
        return {"gross": money_str(self.gross), "gst": money_str(self.gst), "net": money_str(self.net)}


@dataclass(frozen=True)
class IncomeCategoryTotals:
    key: str
    bas_code: str
    totals: BucketTotals

    def to_dict(self) -> Dict[str, str]:
        return {**self.totals.to_dict(), "basCode": self.bas_code}


@dataclass(frozen=True)
class ExpenseEntityTotals:
    entity_id: str
    bas_code: str
    business_use: Decimal
    totals: BucketTotals
    name: str = ""
    type: str = ""
    head_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            **self.totals.to_dict(),
            "basCode": self.bas_code,
            "businessUse": str(self.business_use),
            "name": self.name,
            "type": self.type,
            "headId": self.head_id,
        }


@dataclass(frozen=True)
class ReportTotals:
    total_income: BucketTotals
    total_expenses: BucketTotals
    gst_payable: Decimal
    gst_refund: Decimal
    net_gst_position: Decimal

    @property
    def is_payable(self) -> bool:
        return self.net_gst_position >= 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalIncome": self.total_income.to_dict(),
            "totalExpenses": self.total_expenses.to_dict(),
            "gstPayable": money_str(self.gst_payable),
            "gstRefund": money_str(self.gst_refund),
            "netGstPosition": money_str(self.net_gst_position),
        }


@dataclass(frozen=True)
class BasReport:
    period: QuarterRange
    income: Dict[str, IncomeCategoryTotals]
    expense_entities: Dict[str, ExpenseEntityTotals]
    totals: ReportTotals

    def to_dict(self) -> Dict[str, Any]:
        return {
            "quarter": self.period.quarter,
            "year": self.period.year,
            "startDate": self.period.start.isoformat(),
            "endDate": self.period.end.isoformat(),
            "income": {key: bucket.to_dict() for key, bucket in self.income.items()},
            "expenseEntities": {key: bucket.to_dict() for key, bucket in self.expense_entities.items()},
            "totals": self.totals.to_dict(),
        }
