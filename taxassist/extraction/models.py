"""
Typed records produced from model output.

Field aliases follow the camelCase keys the prompts ask for; both the
alias and the Python name are accepted on input.
"""

import json
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

DOCUMENT_TYPES = ("W2", "1099-MISC", "1099-NEC", "1099-K", "1099-INT", "1099-DIV", "Other")

EXPENSE_CATEGORIES = (
    "Business Services", "Office Supplies", "Travel", "Meals", "Utilities",
    "Rent", "Software", "Hardware", "Marketing", "Other",
)


def _normalize_document_type(v) -> str:
    if not v:
        return "Other"
    compact = str(v).strip().upper().replace(" ", "").replace("-", "")
    for doc_type in DOCUMENT_TYPES:
        if compact == doc_type.upper().replace("-", ""):
            return doc_type
    return "Other"


class _Record(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class TaxEmailFinding(_Record):
    id: str
    type: str = "Other"
    sender: str = ""
    date: str = ""
    subject: str = ""
    preview: str = ""

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        if v is None or str(v).strip() == "":
            raise ValueError("id is required")
        return str(v)

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, v):
        return _normalize_document_type(v)

    @field_validator("sender", "date", "subject", "preview", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return "" if v is None else str(v)


class ExtractedDocument(_Record):
    document_type: str = Field(default="Other", alias="documentType")
    issuer: str = ""
    tax_year: str = Field(default="", alias="taxYear")
    financial_data: Dict[str, str] = Field(default_factory=dict, alias="financialData")

    @field_validator("document_type", mode="before")
    @classmethod
    def normalize_type(cls, v):
        return _normalize_document_type(v)

    @field_validator("issuer", "tax_year", mode="before")
    @classmethod
    def to_text(cls, v):
        return "" if v is None else str(v)

    @field_validator("financial_data", mode="before")
    @classmethod
    def stringify_values(cls, v):
        if v is None:
            return {}
        if not isinstance(v, dict):
            raise ValueError("financialData must be an object")
        return {str(k): "" if val is None else str(val) for k, val in v.items()}


class Transaction(_Record):
    date: str
    description: str
    amount: float

    @field_validator("amount", mode="before")
    @classmethod
    def parse_amount(cls, v):
        # "$1,234.50" and "(12.00)" show up in bank exports
        if isinstance(v, str):
            s = v.strip().replace("$", "").replace(",", "")
            if s.startswith("(") and s.endswith(")"):
                s = "-" + s[1:-1]
            return s
        return v


class ClassifiedExpense(Transaction):
    id: str
    category: str = "Other"
    deductible: bool = False
    confidence: float = 0.0

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        return str(v)

    @field_validator("category", mode="before")
    @classmethod
    def normalize_category(cls, v):
        for category in EXPENSE_CATEGORIES:
            if str(v or "").strip().lower() == category.lower():
                return category
        return "Other"

    @field_validator("confidence", mode="before")
    @classmethod
    def clamp_confidence(cls, v):
        try:
            value = float(v)
        except (TypeError, ValueError):
            return 0.0
        return min(max(value, 0.0), 1.0)


class ExpenseSummary(_Record):
    total_expenses: float = Field(default=0.0, alias="totalExpenses")
    total_deductible: float = Field(default=0.0, alias="totalDeductible")
    category_counts: Dict[str, int] = Field(default_factory=dict, alias="categoryCounts")

    @classmethod
    def from_expenses(cls, expenses: List[ClassifiedExpense]) -> "ExpenseSummary":
        counts: Dict[str, int] = {}
        for e in expenses:
            counts[e.category] = counts.get(e.category, 0) + 1
        return cls(
            total_expenses=round(sum(e.amount for e in expenses), 2),
            total_deductible=round(sum(e.amount for e in expenses if e.deductible), 2),
            category_counts=counts,
        )


class ExpenseClassification(_Record):
    expenses: List[ClassifiedExpense] = Field(default_factory=list)
    summary: ExpenseSummary = Field(default_factory=ExpenseSummary)


class IrsRequirements(_Record):
    must_file: bool = Field(alias="mustFile")
    filing_requirement_reason: str = Field(default="", alias="filingRequirementReason")
    required_federal_forms: List[str] = Field(default_factory=list, alias="requiredFederalForms")
    required_state_forms: List[str] = Field(default_factory=list, alias="requiredStateForms")
    tax_rates: str = Field(default="", alias="taxRates")
    deadlines: str = ""
    source_excerpt: str = Field(default="", alias="sourceExcerpt")
    source_url: Optional[str] = Field(default=None, alias="sourceUrl")

    @field_validator("tax_rates", "deadlines", "filing_requirement_reason", "source_excerpt", mode="before")
    @classmethod
    def flatten_text(cls, v):
        if v is None:
            return ""
        if isinstance(v, (dict, list)):
            return json.dumps(v)
        return str(v)
