from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from openpyxl import Workbook, load_workbook
from openpyxl.styles import Font
from openpyxl.worksheet.worksheet import Worksheet

from clinic_bas.core import to_decimal
from clinic_bas.settings import InvalidConfigurationError

DEFAULT_LAYOUT_PATH = Path(__file__).resolve().parent.parent / "config" / "bas_excel_layout.yaml"

REQUIRED_LAYOUT_KEYS = ("workbook", "meta", "columns", "sections", "verification")


@dataclass
class BasExcelExportService:
    """Write a BAS export payload into a single-sheet workbook."""

    layout_path: Path = DEFAULT_LAYOUT_PATH

    def __post_init__(self) -> None:
        self.layout = self._load_layout(Path(self.layout_path))

    @staticmethod
    def _load_layout(layout_path: Path) -> dict[str, Any]:
        with layout_path.open("r", encoding="utf-8") as layout_file:
            loaded = yaml.safe_load(layout_file)

        if not isinstance(loaded, dict):
            msg = f"Layout file must contain a dictionary at root: {layout_path}"
            raise InvalidConfigurationError(msg)

        missing = [key for key in REQUIRED_LAYOUT_KEYS if key not in loaded]
        if missing:
            msg = f"Layout file {layout_path} is missing sections: {', '.join(missing)}"
            raise InvalidConfigurationError(msg)

        return loaded

    @property
    def sheet_name(self) -> str:
        return self.layout["workbook"]["sheet_name"]

    def generate_export(self, payload: dict[str, Any], output_path: Path | str) -> Path:
        """Fill a new workbook from ``format_report_for_export`` output and save it."""
        workbook = Workbook()
        sheet = workbook.active
        sheet.title = self.sheet_name

        sheet["A1"] = self.layout["workbook"].get("title", "")
        sheet["A1"].font = Font(bold=True, size=14)

        row = self._map_meta(sheet, payload, start_row=2)
        report = payload.get("reportData", {})
        row = self._map_header(sheet, row + 1)
        row = self._map_income(sheet, report.get("income", {}), row)
        row = self._map_expenses(sheet, report.get("expenseEntities", {}), row)
        self._map_totals(sheet, report.get("totals", {}), row)

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        workbook.save(output_path)

        return output_path

    def _map_meta(self, sheet: Worksheet, payload: dict[str, Any], start_row: int) -> int:
        row = start_row
        for label, key in self.layout["meta"].items():
            sheet.cell(row=row, column=1, value=label)
            sheet.cell(row=row, column=2, value=payload.get(key))
            row += 1
        return row

    def _map_header(self, sheet: Worksheet, row: int) -> int:
        for column, title in enumerate(self.layout["columns"], start=1):
            sheet.cell(row=row, column=column, value=title).font = Font(bold=True)
        return row + 1

    def _section_title(self, sheet: Worksheet, section: str, row: int) -> int:
        sheet.cell(row=row, column=1, value=self.layout["sections"][section]).font = Font(bold=True)
        return row + 1

    def _amount_row(self, sheet: Worksheet, row: int, label: str, bas_code: str, bucket: dict[str, Any]) -> int:
        sheet.cell(row=row, column=1, value=label)
        sheet.cell(row=row, column=2, value=bas_code)
        for column, key in enumerate(("gross", "gst", "net"), start=3):
            self._amount_cell(sheet, row, column, bucket.get(key))
        return row + 1

    def _amount_cell(self, sheet: Worksheet, row: int, column: int, value: Any) -> None:
        cell = sheet.cell(row=row, column=column, value=float(to_decimal(value)))
        cell.number_format = self.layout["workbook"]["number_format"]

    def _map_income(self, sheet: Worksheet, income: dict[str, Any], row: int) -> int:
        row = self._section_title(sheet, "income", row)
        for key, bucket in income.items():
            row = self._amount_row(sheet, row, key, bucket.get("basCode", ""), bucket)
        return row

    def _map_expenses(self, sheet: Worksheet, entities: dict[str, Any], row: int) -> int:
        row = self._section_title(sheet, "expenses", row)
        for entity_id, bucket in entities.items():
            label = bucket.get("name") or entity_id
            row = self._amount_row(sheet, row, label, bucket.get("basCode", ""), bucket)
        return row

    def _map_totals(self, sheet: Worksheet, totals: dict[str, Any], row: int) -> int:
        row = self._section_title(sheet, "totals", row)
        row = self._amount_row(sheet, row, "Total Income", "", totals.get("totalIncome", {}))
        row = self._amount_row(sheet, row, "Total Expenses", "", totals.get("totalExpenses", {}))
        for label, key in (
            ("GST Payable", "gstPayable"),
            ("GST Refund", "gstRefund"),
            ("Net GST Position", "netGstPosition"),
        ):
            sheet.cell(row=row, column=1, value=label)
            self._amount_cell(sheet, row, 4, totals.get(key))
            row += 1
        return row

    def get_mandatory_rows(self) -> list[str]:
        verification = self.layout.get("verification", {})
        mandatory_rows = verification.get("mandatory_rows", [])
        if not isinstance(mandatory_rows, list):
            msg = "verification.mandatory_rows must be a list of row labels"
            raise InvalidConfigurationError(msg)
        return mandatory_rows


def read_rows(path: Path | str, sheet_name: str) -> dict[str, list[Any]]:
    """Utility for validation/testing: map each labelled row to its remaining cell values."""
    workbook = load_workbook(path, data_only=True)
    sheet = workbook[sheet_name]
    rows: dict[str, list[Any]] = {}
    for values in sheet.iter_rows(values_only=True):
        label = values[0] if values else None
        if label in (None, ""):
            continue
        rows[str(label)] = list(values[1:])
    return rows


def read_cells(path: Path | str, cells: list[str], sheet_name: str) -> dict[str, Any]:
    """Utility for validation/testing: read exact cell values from an exported workbook."""
    workbook = load_workbook(path, data_only=False)
    sheet = workbook[sheet_name]
    return {cell: sheet[cell].value for cell in cells}
