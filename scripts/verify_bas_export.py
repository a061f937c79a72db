from __future__ import annotations

from dataclasses import replace
from pathlib import Path

from backend.services.excel_export import BasExcelExportService, read_rows
from clinic_bas import (
    FinancialArrangement,
    IncomeCalculationService,
    build_expense_record,
    format_report_for_export,
    generate_report,
)
from clinic_bas.settings import default_expense_entity_config, load_default_bas_config


def sample_logs() -> tuple[list[dict], list[dict]]:
    """Two quarters of demo activity for a net-method clinic."""
    arrangement = FinancialArrangement.from_record(
        {
            "commissionSplitting": {"commissionPercent": 40, "gstOnCommission": True, "gstPercent": 10},
            "labFee": {"enabled": True, "payBy": "Clinic"},
            "netMethod": {"enabled": True, "withSuperHolding": False},
        }
    )
    service = IncomeCalculationService()
    income = [
        service.build_record(
            "clinic-demo",
            {"grossPatientFee": 11000, "labFee": 1000},
            arrangement,
            entry_date="2024-08-14",
        ),
        service.build_record(
            "clinic-demo",
            {"grossPatientFee": 5500, "labFee": 0},
            arrangement,
            entry_date="2024-09-30",
        ),
        # Falls in Q2 and must not appear in the Q1 export.
        service.build_record(
            "clinic-demo",
            {"grossPatientFee": 2200, "labFee": 200},
            arrangement,
            entry_date="2024-10-01",
        ),
    ]
    expenses = [
        build_expense_record("clinic-demo", "rent", 3300, 10, description="Rooms", entry_date="2024-07-01"),
        build_expense_record("clinic-demo", "equipment", 550, 10, description="Autoclave", entry_date="2024-09-02"),
    ]
    return income, expenses


def main() -> int:
    service = BasExcelExportService()
    entities = [
        {"id": "rent", "name": "Rent", "type": "Operating Expenses"},
        {"id": "equipment", "name": "Equipment", "type": "Capital Purchases"},
    ]
    config = replace(
        load_default_bas_config(),
        expense_entities={entity["id"]: default_expense_entity_config(entity) for entity in entities},
    )

    income, expenses = sample_logs()
    report = generate_report("Q1", 2024, config, income, expenses)
    if report is None:
        print("Verification failed. Q1 2024 could not be resolved.")
        return 1

    payload = format_report_for_export(report, {"practiceName": "Demo Dental", "abn": "12 345 678 901"})
    output_path = Path("artifacts/sample_bas_export.xlsx")
    service.generate_export(payload, output_path)

    rows = read_rows(output_path, service.sheet_name)
    missing = [label for label in service.get_mandatory_rows() if label not in rows]

    if missing:
        print("Verification failed. Missing mandatory rows:", ", ".join(missing))
        return 1

    print(f"Verification passed. Export generated at {output_path}")
    print(f"Net GST position: {payload['summary']['gstPosition']['netPosition']}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
