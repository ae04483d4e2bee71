"""
Extraction - prompts, model-output parsing and typed results.
"""

from .models import (
    ClassifiedExpense,
    ExpenseClassification,
    ExpenseSummary,
    ExtractedDocument,
    IrsRequirements,
    TaxEmailFinding,
    Transaction,
)
from .parser import clean_model_output, extract_json_payload, parse_model_output
from .pipeline import ExtractionPipeline, UploadedFile

__all__ = [
    "ClassifiedExpense",
    "ExpenseClassification",
    "ExpenseSummary",
    "ExtractedDocument",
    "IrsRequirements",
    "TaxEmailFinding",
    "Transaction",
    "clean_model_output",
    "extract_json_payload",
    "parse_model_output",
    "ExtractionPipeline",
    "UploadedFile",
]
