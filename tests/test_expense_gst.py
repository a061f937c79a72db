from decimal import Decimal

from clinic_bas.expense_gst import build_expense_record, calculate_expense_gst


def test_gst_inclusive_expense_is_split():
    breakdown = calculate_expense_gst(550, 10)

    assert breakdown.gst_amount == Decimal("50")
    assert breakdown.net_amount == Decimal("500")
    assert breakdown.gst_credit == breakdown.gst_amount
    assert breakdown.bas_g10 == Decimal("550")
    assert breakdown.bas_g11 == Decimal("500")
    assert breakdown.bas_1b == Decimal("50")


def test_zero_rate_means_no_gst():
    breakdown = calculate_expense_gst("123.45", 0)

    assert breakdown.gst_amount == 0
    assert breakdown.net_amount == Decimal("123.45")


def test_blank_amount_is_zero():
    breakdown = calculate_expense_gst("", 10)

    assert breakdown.total_amount == 0
    assert breakdown.gst_amount == 0


def test_expense_record_carries_entity_and_breakdown():
    record = build_expense_record(
        "clinic-1",
        "rent",
        550,
        10,
        description="Rooms",
        entry_date="2024-07-10",
        record_id="expense-1",
    )

    assert record["id"] == "expense-1"
    assert record["entityId"] == "rent"
    assert record["entryDate"] == "2024-07-10"
    assert record["calculations"] == {
        "netAmount": "500.00",
        "gstAmount": "50.00",
        "totalAmount": "550.00",
        "gstCredit": "50.00",
        "basG10": "550.00",
        "basG11": "500.00",
        "bas1B": "50.00",
    }
