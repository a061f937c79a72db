from clinic_bas.summary import summarize_expenses, summarize_income


def test_income_summary_totals_and_method_counts():
    records = [
        {"method": "net-without-super", "inputs": {"grossPatientFee": "11000.00"}, "dentistPayable": "4400.00", "basRefund": "0.00"},
        {"method": "gross-basic", "inputs": {"grossPatientFee": "11000.00"}, "dentistPayable": "5600.00", "basRefund": "400.00"},
        {"method": "gross-basic", "inputs": {}, "dentistPayable": None},
    ]

    summary = summarize_income(records)

    assert summary["totalEntries"] == 3
    assert summary["totalGrossIncome"] == "22000.00"
    assert summary["totalDentistPayable"] == "10000.00"
    assert summary["totalBasRefund"] == "400.00"
    assert summary["methods"] == {"net-without-super": 1, "gross-basic": 2}


def test_expense_summary_groups_by_entity_name():
    records = [
        {
            "selectedEntity": {"id": "rent", "name": "Rent", "headName": "Premises"},
            "calculations": {"totalAmount": "550.00", "gstCredit": "50.00", "netAmount": "500.00"},
        },
        {
            "selectedEntity": {"id": "rent", "name": "Rent", "headName": "Premises"},
            "calculations": {"totalAmount": "110.00", "gstCredit": "10.00", "netAmount": "100.00"},
        },
        {"calculations": {"totalAmount": "20.00"}},
    ]

    summary = summarize_expenses(records)

    assert summary["totalEntries"] == 3
    assert summary["totalExpenses"] == "680.00"
    assert summary["totalGstCredits"] == "60.00"
    assert summary["totalNetExpenses"] == "600.00"
    assert summary["entities"]["Rent"] == {
        "count": 2,
        "totalAmount": "660.00",
        "gstCredit": "60.00",
        "headName": "Premises",
    }
    assert summary["entities"]["Unknown Entity"]["headName"] == "Unknown Head"


def test_empty_summaries():
    assert summarize_income([])["totalGrossIncome"] == "0.00"
    assert summarize_expenses([])["entities"] == {}
