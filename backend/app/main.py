from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from pathlib import Path
from typing import Any, Optional

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from backend.services.excel_export import BasExcelExportService
from clinic_bas import (
    BasCategoryConfig,
    FinancialArrangement,
    IncomeCalculationService,
    build_expense_record,
    calculate_expense_gst,
    format_report_for_export,
    generate_report,
    resolve_quarter,
    select_method,
    validate_arrangement,
    validate_transaction_inputs,
)
from clinic_bas.calculators import RULE_VERSION
from clinic_bas.logging_config import setup_logging
from clinic_bas.settings import Settings, default_expense_entity_config, get_settings, load_default_bas_config

setup_logging(get_settings().log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Clinic BAS API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

income_service = IncomeCalculationService()


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CalculationRequest(ApiModel):
    arrangement: dict[str, Any]
    inputs: dict[str, Any] = Field(default_factory=dict)


class IncomeRecordRequest(CalculationRequest):
    clinic_id: str
    entry_date: Optional[date] = None


class ExpenseGstRequest(ApiModel):
    amount: float
    gst_percent: Optional[float] = None


class ExpenseRecordRequest(ExpenseGstRequest):
    clinic_id: str
    entity_id: str
    description: str = ""
    entry_date: Optional[date] = None


class BasReportRequest(ApiModel):
    quarter: str
    year: int
    config: Optional[dict[str, Any]] = None
    expense_entities: list[dict[str, Any]] = Field(default_factory=list)
    income_records: list[dict[str, Any]] = Field(default_factory=list)
    expense_records: list[dict[str, Any]] = Field(default_factory=list)
    clinic: dict[str, Any] = Field(default_factory=dict)


def _gst_percent(requested: Optional[float], settings: Settings) -> float:
    return settings.default_gst_percent if requested is None else requested


def _bas_config(payload: BasReportRequest, settings: Settings) -> BasCategoryConfig:
    if payload.config is not None:
        return BasCategoryConfig.from_record(payload.config)

    defaults = load_default_bas_config()
    entities = {}
    for entity in payload.expense_entities:
        entry = default_expense_entity_config(entity)
        entities[entry.entity_id] = entry
    return replace(defaults, expense_entities=entities, financial_year_start=settings.financial_year_start)


def _export_payload(payload: BasReportRequest, settings: Settings) -> dict[str, Any]:
    report = generate_report(
        payload.quarter,
        payload.year,
        _bas_config(payload, settings),
        payload.income_records,
        payload.expense_records,
    )
    if report is None:
        raise HTTPException(status_code=422, detail=f"Unknown quarter {payload.quarter!r}")
    return format_report_for_export(report, payload.clinic)


@app.post("/calculations")
def run_calculation(payload: CalculationRequest):
    arrangement = FinancialArrangement.from_record(payload.arrangement)
    result = income_service.calculate(payload.inputs, arrangement)
    if result is None:
        raise HTTPException(status_code=422, detail="No calculation method applies to this arrangement")

    return {
        "method": result.method,
        "methodLabel": result.label,
        "ruleVersion": RULE_VERSION,
        "calculations": result.to_calculations(),
        "calculationSteps": list(result.steps),
    }


@app.post("/income-records")
def create_income_record(payload: IncomeRecordRequest):
    arrangement_check = validate_arrangement(payload.arrangement)
    if not arrangement_check.ready:
        raise HTTPException(status_code=400, detail={"blockers": arrangement_check.blockers})

    arrangement = FinancialArrangement.from_record(payload.arrangement)
    method = select_method(arrangement)
    if method is None:
        raise HTTPException(status_code=422, detail="No calculation method applies to this arrangement")

    input_check = validate_transaction_inputs(method, payload.inputs)
    if not input_check.ready:
        raise HTTPException(status_code=400, detail={"blockers": input_check.blockers})

    record = income_service.build_record(
        payload.clinic_id,
        payload.inputs,
        arrangement,
        entry_date=payload.entry_date,
    )
    logger.info("Built income record %s for clinic %s", record["id"], payload.clinic_id)
    return record


@app.post("/expenses/gst")
def expense_gst(payload: ExpenseGstRequest, settings: Settings = Depends(get_settings)):
    breakdown = calculate_expense_gst(payload.amount, _gst_percent(payload.gst_percent, settings))
    return breakdown.to_calculations()


@app.post("/expense-records")
def create_expense_record(payload: ExpenseRecordRequest, settings: Settings = Depends(get_settings)):
    if payload.amount <= 0:
        raise HTTPException(status_code=400, detail={"blockers": ["amount: Expense amount must be greater than zero"]})

    record = build_expense_record(
        payload.clinic_id,
        payload.entity_id,
        payload.amount,
        _gst_percent(payload.gst_percent, settings),
        description=payload.description,
        entry_date=payload.entry_date,
    )
    logger.info("Built expense record %s for clinic %s", record["id"], payload.clinic_id)
    return record


@app.get("/bas/quarters/{quarter}")
def quarter_range(
    quarter: str,
    year: int,
    financial_year_start: Optional[str] = Query(default=None, alias="financialYearStart"),
    settings: Settings = Depends(get_settings),
):
    period = resolve_quarter(quarter, year, financial_year_start or settings.financial_year_start)
    if period is None:
        raise HTTPException(status_code=422, detail=f"Unknown quarter {quarter!r}")

    return {
        "quarter": period.quarter,
        "year": period.year,
        "startDate": period.start.isoformat(),
        "endDate": period.end.isoformat(),
        "months": list(period.months),
    }


@app.post("/bas/reports")
def create_bas_report(payload: BasReportRequest, settings: Settings = Depends(get_settings)):
    return _export_payload(payload, settings)


@app.post("/bas/reports/export.xlsx")
def export_bas_report(payload: BasReportRequest, settings: Settings = Depends(get_settings)):
    export = _export_payload(payload, settings)

    export_dir = Path(settings.export_dir)
    export_dir.mkdir(parents=True, exist_ok=True)
    filename = f"bas-{export['quarter']}-{export['year']}.xlsx"
    export_path = BasExcelExportService().generate_export(export, export_dir / filename)
    logger.info("Exported BAS workbook %s", export_path)

    return FileResponse(export_path, media_type=XLSX_MEDIA_TYPE, filename=filename)


@app.get("/health")
def health():
    return {"status": "ok", "ruleVersion": RULE_VERSION}
