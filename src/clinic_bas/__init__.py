from .bas import BasAggregator, format_report_for_export, generate_report
from .calculators import IncomeCalculationService, calculate
from .expense_gst import ExpenseGstBreakdown, build_expense_record, calculate_expense_gst
from .methods import METHOD_LABELS, CalculationMethod, select_method
from .models import (
    BasCategoryConfig,
    BasReport,
    CalculationResult,
    ExpenseEntityConfig,
    FinancialArrangement,
    IncomeCategory,
    QuarterRange,
    TransactionInput,
)
from .periods import iter_quarters, resolve_quarter
from .summary import summarize_expenses, summarize_income
from .validation import ValidationResult, validate_arrangement, validate_transaction_inputs

__all__ = [
    "BasAggregator",
    "BasCategoryConfig",
    "BasReport",
    "CalculationMethod",
    "CalculationResult",
    "ExpenseEntityConfig",
    "ExpenseGstBreakdown",
    "FinancialArrangement",
    "IncomeCalculationService",
    "IncomeCategory",
    "METHOD_LABELS",
    "QuarterRange",
    "TransactionInput",
    "ValidationResult",
    "build_expense_record",
    "calculate",
    "calculate_expense_gst",
    "format_report_for_export",
    "generate_report",
    "iter_quarters",
    "resolve_quarter",
    "select_method",
    "summarize_expenses",
    "summarize_income",
    "validate_arrangement",
    "validate_transaction_inputs",
]
