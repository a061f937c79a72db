from pathlib import Path

import pytest

from backend.services.excel_export import BasExcelExportService, read_cells, read_rows
from clinic_bas.bas import format_report_for_export, generate_report
from clinic_bas.settings import InvalidConfigurationError


def sample_payload():
    config = {
        "incomeCategories": {
            "incomeGst": {"enabled": True, "basCode": "G1"},
            "incomeGstFree": {"enabled": True, "basCode": "G3"},
        },
        "expenseEntities": {"rent": {"enabled": True, "basCode": "G11", "businessUse": 100, "name": "Rent"}},
        "quarterlySettings": {"financialYearStart": "July"},
    }
    income = [
        {"entryDate": "2024-08-01", "calculations": {"totalAmount": "1100.00", "gstAmount": "100.00"}},
        {"entryDate": "2024-08-05", "calculations": {"totalAmount": "300.00"}},
    ]
    expenses = [
        {"entityId": "rent", "entryDate": "2024-07-10", "calculations": {"totalAmount": "330.00", "gstAmount": "30.00"}},
    ]
    report = generate_report("Q1", 2024, config, income, expenses)
    return format_report_for_export(report, {"practiceName": "Harbour Dental", "abn": "12 345 678 901"})


def test_export_writes_all_mandatory_rows(tmp_path):
    service = BasExcelExportService()
    output = service.generate_export(sample_payload(), tmp_path / "nested" / "bas.xlsx")

    rows = read_rows(output, service.sheet_name)

    assert output.exists()
    assert all(label in rows for label in service.get_mandatory_rows())
    assert rows["Clinic"][0] == "Harbour Dental"
    assert rows["ABN"][0] == "12 345 678 901"
    assert rows["incomeGst"][:4] == ["G1", 1100.0, 100.0, 1000.0]
    assert rows["Rent"][:4] == ["G11", 330.0, 30.0, 300.0]
    assert rows["Total Income"][1:4] == [1400.0, 100.0, 1300.0]
    assert rows["GST Payable"][2] == 70.0
    assert rows["GST Refund"][2] == 0.0


def test_title_cell(tmp_path):
    service = BasExcelExportService()
    output = service.generate_export(sample_payload(), tmp_path / "bas.xlsx")

    assert read_cells(output, ["A1"], service.sheet_name) == {"A1": "Business Activity Statement"}


def test_layout_must_be_a_mapping(tmp_path):
    layout = tmp_path / "layout.yaml"
    layout.write_text("- not\n- a mapping\n", encoding="utf-8")

    with pytest.raises(InvalidConfigurationError):
        BasExcelExportService(layout_path=layout)


def test_layout_missing_sections_is_rejected(tmp_path):
    layout = tmp_path / "layout.yaml"
    layout.write_text("workbook:\n  sheet_name: BAS\n", encoding="utf-8")

    with pytest.raises(InvalidConfigurationError, match="meta"):
        BasExcelExportService(layout_path=Path(layout))
