from decimal import Decimal
import logging

import pytest

from clinic_bas.calculators import RULE_VERSION, IncomeCalculationService, calculate, gst_component
from clinic_bas.core import money
from clinic_bas.methods import GrossOutwork, NetWithSuper, select_method
from clinic_bas.models import FinancialArrangement, TransactionInput


def net_arrangement(**net_method):
    return FinancialArrangement.from_record(
        {
            "commissionSplitting": {"commissionPercent": 40, "gstOnCommission": True, "gstPercent": 10},
            "labFee": {"enabled": True, "payBy": net_method.pop("pay_by", "Clinic")},
            "netMethod": {"enabled": True, **net_method},
        }
    )


def gross_arrangement(variant, gst_percent=10, **gross_method):
    return FinancialArrangement.from_record(
        {
            "commissionSplitting": {"commissionPercent": 40, "gstOnCommission": False, "gstPercent": gst_percent},
            "grossMethod": {
                "enabled": True,
                "selectedMethod": variant,
                "gstOnServiceFacilityFee": True,
                "gstOnServiceFacilityFeePercent": 10,
                **gross_method,
            },
        }
    )


def inputs(**values):
    return TransactionInput.from_raw({"grossPatientFee": 11000, "labFee": 1000, **values})


def test_net_method_without_super_worked_example():
    result = calculate(inputs(), net_arrangement())

    assert result.method == "net-without-super"
    assert result["netPatientFee"] == Decimal("10000")
    assert result["dentistCommission"] == Decimal("4000")
    assert result["gstOnCommission"] == Decimal("400")
    assert result["totalPayable"] == Decimal("4400")
    assert result.dentist_payable == Decimal("4400")
    assert result.bas_refund == 0
    assert result.bas == {"basG1": Decimal("4400"), "basG3": Decimal("10000"), "bas1A": Decimal("400")}
    assert result.steps[2] == "C = A - B = 10000.00 (Net Patient Fee)"
    assert result.steps[3] == "D = C x 40% = 4000.00 (Dentist Commission)"


def test_net_method_keeps_lab_fee_when_dentist_pays_it():
    result = calculate(inputs(), net_arrangement(pay_by="Dentist"))

    assert result["netPatientFee"] == Decimal("11000")
    assert money(result.dentist_payable) == Decimal("4840.00")


def test_net_method_with_super_divides_out_loading():
    result = calculate(inputs(), net_arrangement(withSuperHolding=True, superComponentPercent=12))

    assert result.method == "net-with-super"
    assert money(result["commissionComponent"]) == Decimal("3571.43")
    assert money(result["superComponent"]) == Decimal("428.57")
    assert money(result["gstOnCommission"]) == Decimal("357.14")
    assert money(result["totalPayable"]) == Decimal("3928.57")
    assert money(result["totalForReconciliation"]) == Decimal("4000.00")
    assert money(result.bas["bas1A"]) == Decimal("357.14")


def test_super_component_is_always_twelve_percent():
    arrangement = net_arrangement(withSuperHolding=True, superComponentPercent=15)
    result = calculate(inputs(), arrangement)

    assert isinstance(select_method(arrangement), NetWithSuper)
    assert money(result["superComponent"]) == Decimal("428.57")
    assert money(result["totalForReconciliation"]) == Decimal("4000.00")
    assert result.steps[5] == "E = F x 12% = 428.57 (Super Component - Paid by Clinic)"


def test_gross_basic():
    result = calculate(inputs(), gross_arrangement("basic"))

    assert result.method == "gross-basic"
    assert result["serviceFacilityFee"] == Decimal("4000")
    assert result["gstOnServiceFee"] == Decimal("400")
    assert result["totalServiceFee"] == Decimal("4400")
    assert result.dentist_payable == Decimal("5600")
    assert result["total"] == Decimal("6000")
    assert result.bas_refund == Decimal("400")
    assert result.bas == {
        "basG1": Decimal("11000"),
        "basG3": Decimal("10000"),
        "basG11": Decimal("5400"),
        "bas1B": Decimal("400"),
    }


def test_gross_basic_without_gst_on_service_fee():
    result = calculate(inputs(), gross_arrangement("basic", gstOnServiceFacilityFee=False))

    assert result["gstOnServiceFee"] == 0
    assert result.dentist_payable == Decimal("6000")


def test_service_fee_gst_falls_back_to_general_rate_when_unset():
    arrangement = gross_arrangement("basic", gstOnServiceFacilityFeePercent=None)

    assert calculate(inputs(), arrangement)["gstOnServiceFee"] == Decimal("400")


def test_gross_lab_gst():
    result = calculate(inputs(), gross_arrangement("labGst", gstLabFeePercent=10))

    assert result.method == "gross-lab-gst"
    assert result["gstOnLabFee"] == Decimal("100")
    assert result.dentist_payable == Decimal("5500")
    assert result.bas_refund == Decimal("400")
    assert result.bas["bas1B"] == Decimal("500")
    assert result.bas["basG11"] == Decimal("5400")


def test_gross_merchant_bank():
    result = calculate(inputs(merchantFeeWithGst=110, bankFee=20), gross_arrangement("merchantBank"))

    assert result.method == "gross-merchant-bank"
    assert result["merchantFeeGstComponent"] == Decimal("10")
    assert result["netMerchantFee"] == Decimal("100")
    assert result.dentist_payable == Decimal("5470")
    assert result.bas_refund == Decimal("410")
    assert result.bas["basG11"] == Decimal("4530")
    assert result.bas["bas1B"] == Decimal("410")


def test_gross_merchant_bank_without_gst_has_no_merchant_gst_component():
    arrangement = gross_arrangement("merchantBank", gst_percent=0)
    result = calculate(inputs(merchantFeeWithGst=110, bankFee=20), arrangement)

    assert result["merchantFeeGstComponent"] == 0
    assert result["netMerchantFee"] == Decimal("110")
    assert money(result.dentist_payable) == Decimal("5470.00")
    assert result.bas_refund == Decimal("400")


@pytest.mark.parametrize("rate", [Decimal("0"), Decimal("-1")])
def test_gst_component_is_zero_for_degenerate_rates(rate):
    assert gst_component(Decimal("110"), rate) == 0


def test_merchant_fee_alias_is_used_when_primary_key_is_blank():
    data = inputs(merchantFeeWithGst=None, merchantFeeIncGst=110)

    assert data.merchant_fee_with_gst == Decimal("110")
    assert inputs(merchantFeeWithGst="  ", merchantFeeIncGst="55").merchant_fee_with_gst == Decimal("55")


def test_result_breakdowns_are_read_only():
    result = calculate(inputs(), net_arrangement())

    with pytest.raises(TypeError):
        result.amounts["totalPayable"] = Decimal("0")
    with pytest.raises(TypeError):
        result.bas["basG1"] = Decimal("0")


def test_gross_patient_gst_adds_lab_fee_back():
    result = calculate(inputs(gstOnPatientFee=1000), gross_arrangement("patientGst"))

    assert result.method == "gross-patient-gst"
    assert result["patientFeeExclGst"] == Decimal("10000")
    assert result["netPatientFee"] == Decimal("9000")
    assert result["totalServiceFee"] == Decimal("3960")
    assert result.dentist_payable == Decimal("6040")
    assert result.bas_refund == Decimal("360")
    assert "basG3" not in result.bas
    assert result.bas["bas1A"] == Decimal("1000")
    assert result.bas["basG11"] == Decimal("4960")


def test_gross_outwork():
    arrangement = gross_arrangement("outwork", gstLabFeePercent=10)
    method = select_method(arrangement)
    result = calculate(inputs(merchantFeeCost=100), arrangement)

    assert isinstance(method, GrossOutwork)
    assert method.lab_gst_rate == 0
    assert result["totalOutworkCost"] == Decimal("1100")
    assert result["netPatientFee"] == Decimal("9900")
    assert result["labFeeOtherCostCharge"] == Decimal("990")
    assert result["totalServiceFeeIncGst"] == Decimal("5445")
    assert result.dentist_payable == Decimal("5555")
    assert result.bas_refund == 0
    assert result.bas["basG3"] == Decimal("9900")


def test_unknown_gross_variant_gives_no_result(caplog):
    with caplog.at_level(logging.WARNING, logger="clinic_bas.methods"):
        result = calculate(inputs(), gross_arrangement("mystery"))

    assert result is None
    assert "mystery" in caplog.text


def test_empty_inputs_calculate_to_zero():
    result = calculate(TransactionInput.from_raw({"grossPatientFee": "", "labFee": None}), net_arrangement())

    assert result.dentist_payable == 0
    assert all(value == 0 for value in result.amounts.values())


@pytest.mark.parametrize("raw", ["abc", float("nan"), True, "1,100"])
def test_junk_inputs_do_not_raise(raw):
    result = calculate(TransactionInput.from_raw({"grossPatientFee": raw}), net_arrangement())

    assert result is not None


def test_build_record_stores_money_strings_and_rule_version():
    record = IncomeCalculationService().build_record(
        "clinic-1",
        {"grossPatientFee": 11000, "labFee": 1000},
        net_arrangement(),
        entry_date="2024-08-14T09:30:00Z",
        record_id="income-1",
    )

    assert record["id"] == "income-1"
    assert record["entryDate"] == "2024-08-14"
    assert record["method"] == "net-without-super"
    assert record["ruleVersion"] == RULE_VERSION
    assert record["calculations"]["totalPayable"] == "4400.00"
    assert record["calculations"]["bas1A"] == "400.00"
    assert record["dentistPayable"] == "4400.00"
    assert record["inputs"]["grossPatientFee"] == "11000.00"
    assert record["gstPercent"] == 10.0
    assert len(record["calculationSteps"]) == 6


def test_build_record_returns_none_without_method():
    record = IncomeCalculationService().build_record("clinic-1", {"grossPatientFee": 100}, gross_arrangement(None))

    assert record is None
