"""
Extraction Pipeline - model-backed document understanding.

Each operation renders a prompt, sends it through the injected LLM client,
and passes the answer through ``parse_model_output`` so callers only ever
receive validated records or a typed error. Nothing here touches storage.
"""

import base64
import csv
import io
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

from taxassist.errors import InvalidInput, MissingParameter
from taxassist.llm.base import BaseLLMClient
from taxassist.models import EmailRecord
from . import prompts
from .models import (
    EXPENSE_CATEGORIES,
    ExpenseClassification,
    ExpenseSummary,
    ExtractedDocument,
    IrsRequirements,
    TaxEmailFinding,
    Transaction,
)
from .parser import parse_model_output

logger = logging.getLogger(__name__)

# Upper bound on document text placed in a prompt
MAX_CONTENT_CHARS = 20000

PDF_TYPES = ("application/pdf",)
CSV_TYPES = ("text/csv", "application/csv")
EXCEL_SUFFIXES = (".xlsx", ".xls")


@dataclass
class UploadedFile:
    file_name: str
    content_type: str
    data: bytes


def document_content(data: bytes) -> Tuple[str, str]:
    """Return (encoding label, prompt-ready content) for raw file bytes.

    Text files are passed as text; binary files as a base64 excerpt.
    """
    try:
        text = data.decode("utf-8")
        encoding = "text"
    except UnicodeDecodeError:
        text = base64.b64encode(data).decode("ascii")
        encoding = "base64"
    if len(text) > MAX_CONTENT_CHARS:
        text = text[:MAX_CONTENT_CHARS]
        encoding += ", truncated"
    return encoding, text


def parse_csv_rows(text: str) -> List[Dict[str, str]]:
    """Split CSV text into header-keyed rows, skipping blank lines."""
    reader = csv.DictReader(io.StringIO(text.lstrip("\ufeff")))
    if not reader.fieldnames:
        return []
    rows = []
    for row in reader:
        cleaned = {
            (k or "").strip(): (v or "").strip()
            for k, v in row.items()
            if k is not None
        }
        if any(cleaned.values()):
            rows.append(cleaned)
    return rows


class ExtractionPipeline:

    def __init__(self, llm_client: BaseLLMClient):
        self.llm_client = llm_client

    async def _call_llm(self, prompt: str, max_tokens: int = 4096) -> str:
        response = await self.llm_client.chat_completion(
            messages=[{"role": "user", "content": prompt}],
            temperature=0.1,
            max_tokens=max_tokens,
        )
        return response.content or ""

    # ----------------------------------------------------------------------
    # Email scan
    # ----------------------------------------------------------------------

    async def scan_emails(self, emails: List[EmailRecord]) -> List[TaxEmailFinding]:
        """Identify emails that likely carry a tax document."""
        if not emails:
            raise InvalidInput("No emails found. Please connect your email first.")

        emails_json = json.dumps([
            {
                "id": e.id,
                "from": e.from_address,
                "subject": e.subject,
                "date": e.date,
                "preview": e.preview,
            }
            for e in emails
        ])
        text = await self._call_llm(prompts.SCAN_EMAILS_PROMPT.format(emails=emails_json))
        findings = parse_model_output(text, List[TaxEmailFinding])

        # Drop ids the model made up
        known = {e.id for e in emails}
        kept = [f for f in findings if f.id in known]
        if len(kept) != len(findings):
            logger.warning(f"Discarded {len(findings) - len(kept)} finding(s) with unknown ids")
        logger.info(f"Scan found {len(kept)} tax email(s) in {len(emails)}")
        return kept

    # ----------------------------------------------------------------------
    # Document extraction
    # ----------------------------------------------------------------------

    async def extract_document(self, upload: UploadedFile) -> ExtractedDocument:
        if not upload.data:
            raise InvalidInput(f"File {upload.file_name} is empty")
        encoding, content = document_content(upload.data)
        prompt = prompts.EXTRACT_DOCUMENT_PROMPT.format(
            file_name=upload.file_name,
            content_type=upload.content_type or "application/octet-stream",
            encoding=encoding,
            content=content,
        )
        return parse_model_output(await self._call_llm(prompt), ExtractedDocument)

    async def extract_email_content(self, content: str) -> ExtractedDocument:
        if not content or not content.strip():
            raise InvalidInput("No email content provided")
        prompt = prompts.EXTRACT_EMAIL_PROMPT.format(content=content[:MAX_CONTENT_CHARS])
        return parse_model_output(await self._call_llm(prompt), ExtractedDocument)

    # ----------------------------------------------------------------------
    # Transactions and expense classification
    # ----------------------------------------------------------------------

    async def extract_transactions(self, upload: UploadedFile) -> List[Transaction]:
        """Dispatch a statement file to the PDF or CSV path by type or suffix."""
        name = (upload.file_name or "").lower()
        content_type = (upload.content_type or "").lower()

        if content_type in PDF_TYPES or name.endswith(".pdf"):
            return await self.extract_transactions_from_pdf(upload)
        if content_type in CSV_TYPES or name.endswith(".csv"):
            try:
                text = upload.data.decode("utf-8")
            except UnicodeDecodeError as e:
                raise InvalidInput("CSV file must be UTF-8 encoded") from e
            return await self.standardize_csv_transactions(parse_csv_rows(text))
        if "excel" in content_type or "spreadsheet" in content_type or name.endswith(EXCEL_SUFFIXES):
            raise InvalidInput("Excel files are not supported. Please export the statement as CSV.")
        raise InvalidInput("Unsupported file type")

    async def extract_transactions_from_pdf(self, upload: UploadedFile) -> List[Transaction]:
        encoding, content = document_content(upload.data)
        prompt = prompts.PDF_TRANSACTIONS_PROMPT.format(
            file_name=upload.file_name, encoding=encoding, content=content,
        )
        return parse_model_output(await self._call_llm(prompt), List[Transaction])

    async def standardize_csv_transactions(self, rows: List[Dict[str, Any]]) -> List[Transaction]:
        if not rows:
            raise InvalidInput("The CSV file has no transaction rows")
        prompt = prompts.CSV_TRANSACTIONS_PROMPT.format(rows=json.dumps(rows, indent=2))
        return parse_model_output(await self._call_llm(prompt), List[Transaction])

    async def classify_expenses(self, transactions: List[Transaction]) -> ExpenseClassification:
        """Categorize transactions; the summary is computed from the result."""
        if not transactions:
            return ExpenseClassification()

        prompt = prompts.CLASSIFY_EXPENSES_PROMPT.format(
            transactions=json.dumps([t.model_dump() for t in transactions], indent=2),
            categories=", ".join(EXPENSE_CATEGORIES),
        )
        result = parse_model_output(await self._call_llm(prompt), ExpenseClassification)
        result.summary = ExpenseSummary.from_expenses(result.expenses)
        return result

    # ----------------------------------------------------------------------
    # Filing requirements
    # ----------------------------------------------------------------------

    async def check_irs_requirements(
        self,
        state: str,
        age: int,
        income: float,
        filing_status: str,
    ) -> IrsRequirements:
        if not state or not filing_status:
            raise MissingParameter("State and filing status are required")
        if age < 0 or income < 0:
            raise InvalidInput("Age and income must not be negative")

        prompt = prompts.IRS_REQUIREMENTS_PROMPT.format(
            age=age,
            income=float(income),
            filing_status=prompts.filing_status_label(filing_status),
            state=prompts.state_full_name(state),
        )
        return parse_model_output(await self._call_llm(prompt), IrsRequirements)
