import pytest

from clinic_bas.methods import select_method
from clinic_bas.models import FinancialArrangement
from clinic_bas.validation import validate_arrangement, validate_transaction_inputs


def arrangement_record(gst_on_commission=True, commission=40, gst=10, net=None, gross=None):
    return {
        "commissionSplitting": {
            "commissionPercent": commission,
            "gstOnCommission": gst_on_commission,
            "gstPercent": gst,
        },
        "netMethod": net or {"enabled": gst_on_commission, "withSuperHolding": False},
        "grossMethod": gross or {"enabled": not gst_on_commission},
    }


def test_valid_net_arrangement_is_ready():
    result = validate_arrangement(arrangement_record())

    assert result.ready
    assert result.blockers == []


@pytest.mark.parametrize("commission", [None, "", 0, -5, 150])
def test_commission_must_be_a_percentage(commission):
    result = validate_arrangement(arrangement_record(commission=commission))

    assert not result.ready
    assert result.blockers[0].startswith("commissionSplitting.commissionPercent")


def test_gst_required_with_gst_on_commission():
    result = validate_arrangement(arrangement_record(gst=None))

    assert result.blockers == ["commissionSplitting.gstPercent: GST percentage must be between 0 and 100"]


def test_super_component_required_with_super_holding():
    record = arrangement_record(net={"enabled": True, "withSuperHolding": True})

    result = validate_arrangement(record)

    assert not result.ready
    assert "netMethod.superComponentPercent" in result.blockers[0]


def test_unknown_gross_variant_blocks():
    record = arrangement_record(gst_on_commission=False, gross={"enabled": True, "selectedMethod": "barter"})

    result = validate_arrangement(record)

    assert not result.ready
    assert "barter" in result.blockers[0]


@pytest.mark.parametrize(
    "gross, field",
    [
        ({"selectedMethod": "basic", "gstOnServiceFacilityFee": True}, "gstOnServiceFacilityFeePercent"),
        ({"selectedMethod": "labGst"}, "gstLabFeePercent"),
        ({"selectedMethod": "merchantBank", "merchantBankFeeWithGst": 0}, "merchantBankFeeWithGst"),
        ({"selectedMethod": "patientGst", "gstPatientFeePercent": 101}, "gstPatientFeePercent"),
        ({"selectedMethod": "outwork"}, "labFeeChargePercent"),
    ],
)
def test_gross_variant_rates(gross, field):
    result = validate_arrangement(arrangement_record(gst_on_commission=False, gross=gross))

    assert len(result.blockers) == 1
    assert result.blockers[0].startswith(f"grossMethod.{field}")


def test_basic_without_service_fee_gst_needs_no_rate():
    gross = {"selectedMethod": "basic", "gstOnServiceFacilityFee": False}

    assert validate_arrangement(arrangement_record(gst_on_commission=False, gross=gross)).ready


def test_transaction_inputs_for_merchant_bank():
    arrangement = FinancialArrangement.from_record(
        arrangement_record(gst_on_commission=False, gross={"selectedMethod": "merchantBank"})
    )
    method = select_method(arrangement)

    result = validate_transaction_inputs(method, {"grossPatientFee": 1000, "labFee": 0, "bankFee": 5})

    assert not result.ready
    assert result.blockers == ["Missing mandatory fields: merchantFeeWithGst"]


def test_transaction_inputs_reject_zero_fee_and_negative_lab_fee():
    method = select_method(FinancialArrangement.from_record(arrangement_record()))

    result = validate_transaction_inputs(method, {"grossPatientFee": 0, "labFee": -10})

    assert len(result.blockers) == 2
    assert result.blockers[0].startswith("grossPatientFee")
    assert result.blockers[1].startswith("labFee")


def test_transaction_inputs_without_method():
    result = validate_transaction_inputs(None, {"grossPatientFee": 100, "labFee": 0})

    assert not result.ready


def test_transaction_inputs_accept_merchant_fee_spellings():
    arrangement = FinancialArrangement.from_record(
        arrangement_record(gst_on_commission=False, gross={"selectedMethod": "merchantBank"})
    )
    method = select_method(arrangement)

    result = validate_transaction_inputs(
        method,
        {"grossPatientFee": 1000, "labFee": 0, "merchantFeeWithGst": "", "merchantFeeIncGst": 22, "bankFee": 5},
    )

    assert result.ready
    assert result.blockers == []
