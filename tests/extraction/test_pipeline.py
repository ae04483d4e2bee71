"""Tests for taxassist.extraction.pipeline: prompts in, typed records out"""

import json

import pytest

from conftest import StubLLMClient
from taxassist.errors import InvalidInput, MalformedResponse, MissingParameter, RateLimited
from taxassist.extraction.pipeline import (
    ExtractionPipeline,
    UploadedFile,
    document_content,
    parse_csv_rows,
)
from taxassist.extraction.models import Transaction
from taxassist.models import EmailRecord


def _emails():
    return [
        EmailRecord(id="m1", from_address="payroll@acme.com", subject="Your 2024 W-2 is ready",
                    date="2025-01-28T10:00:00+00:00", preview="Your W-2 form is available"),
        EmailRecord(id="m2", from_address="news@shop.com", subject="Big sale",
                    date="2025-01-27T10:00:00+00:00", preview="50% off"),
    ]


# =========================================================================
# Helpers
# =========================================================================


class TestDocumentContent:

    def test_text_passed_through(self):
        assert document_content(b"Box 1 wages 50000") == ("text", "Box 1 wages 50000")

    def test_binary_becomes_base64(self):
        encoding, content = document_content(b"\x89PDF\xff\xfe")
        assert encoding == "base64"
        assert content == "iVBERv/+"

    def test_long_content_truncated(self):
        encoding, content = document_content(b"a" * 30000)
        assert encoding == "text, truncated"
        assert len(content) == 20000


class TestParseCsvRows:

    def test_rows_keyed_by_header(self):
        rows = parse_csv_rows("Date, Description ,Amount\n2024-01-02,Coffee,-4.50\n\n2024-01-03,Deposit,100\n")
        assert rows == [
            {"Date": "2024-01-02", "Description": "Coffee", "Amount": "-4.50"},
            {"Date": "2024-01-03", "Description": "Deposit", "Amount": "100"},
        ]

    def test_quoted_commas_kept(self):
        rows = parse_csv_rows('date,description,amount\n2024-01-02,"Smith, Jones LLP",-300\n')
        assert rows[0]["description"] == "Smith, Jones LLP"

    def test_bom_stripped(self):
        rows = parse_csv_rows("\ufeffdate,amount\n2024-01-02,1\n")
        assert list(rows[0].keys()) == ["date", "amount"]

    def test_empty(self):
        assert parse_csv_rows("") == []


# =========================================================================
# scan_emails
# =========================================================================


class TestScanEmails:

    @pytest.mark.asyncio
    async def test_returns_findings_for_known_ids(self):
        reply = '```json\n[{"id": "m1", "type": "W2", "sender": "payroll@acme.com", ' \
                '"date": "2025-01-28", "subject": "Your 2024 W-2 is ready", "preview": "..."}]\n```'
        llm = StubLLMClient(reply)
        findings = await ExtractionPipeline(llm).scan_emails(_emails())

        assert [f.id for f in findings] == ["m1"]
        assert findings[0].type == "W2"
        assert '"id": "m1"' in llm.prompts[0]
        assert "payroll@acme.com" in llm.prompts[0]

    @pytest.mark.asyncio
    async def test_unknown_ids_dropped(self):
        llm = StubLLMClient('[{"id": "m1", "type": "W2"}, {"id": "made-up", "type": "1099-K"}]')
        findings = await ExtractionPipeline(llm).scan_emails(_emails())
        assert [f.id for f in findings] == ["m1"]

    @pytest.mark.asyncio
    async def test_no_emails_raises_without_calling_model(self):
        llm = StubLLMClient("[]")
        with pytest.raises(InvalidInput, match="No emails found"):
            await ExtractionPipeline(llm).scan_emails([])
        assert llm.prompts == []

    @pytest.mark.asyncio
    async def test_malformed_reply(self):
        llm = StubLLMClient("I could not find any tax documents.")
        with pytest.raises(MalformedResponse):
            await ExtractionPipeline(llm).scan_emails(_emails())

    @pytest.mark.asyncio
    async def test_upstream_error_propagates(self):
        llm = StubLLMClient(RateLimited())
        with pytest.raises(RateLimited):
            await ExtractionPipeline(llm).scan_emails(_emails())


# =========================================================================
# Document extraction
# =========================================================================


DOC_REPLY = json.dumps({
    "documentType": "1099-INT",
    "issuer": "First Bank",
    "taxYear": "2024",
    "financialData": {"interestIncome": "312.40"},
})


class TestExtractDocument:

    @pytest.mark.asyncio
    async def test_prompt_carries_name_type_and_content(self):
        llm = StubLLMClient(DOC_REPLY)
        upload = UploadedFile("int.txt", "text/plain", b"Interest income 312.40")
        doc = await ExtractionPipeline(llm).extract_document(upload)

        assert doc.document_type == "1099-INT"
        assert doc.financial_data == {"interestIncome": "312.40"}
        assert '"int.txt"' in llm.prompts[0]
        assert "Interest income 312.40" in llm.prompts[0]

    @pytest.mark.asyncio
    async def test_empty_file_rejected(self):
        with pytest.raises(InvalidInput):
            await ExtractionPipeline(StubLLMClient(DOC_REPLY)).extract_document(
                UploadedFile("empty.pdf", "application/pdf", b""),
            )

    @pytest.mark.asyncio
    async def test_email_content(self):
        llm = StubLLMClient("```json\n" + DOC_REPLY + "\n```")
        doc = await ExtractionPipeline(llm).extract_email_content("Your 1099-INT from First Bank")
        assert doc.issuer == "First Bank"
        assert "Your 1099-INT from First Bank" in llm.prompts[0]

    @pytest.mark.asyncio
    async def test_blank_email_content_rejected(self):
        with pytest.raises(InvalidInput, match="No email content provided"):
            await ExtractionPipeline(StubLLMClient(DOC_REPLY)).extract_email_content("   ")


# =========================================================================
# Transactions and classification
# =========================================================================


TX_REPLY = json.dumps([
    {"date": "2024-01-02", "description": "Coffee", "amount": -4.5},
    {"date": "2024-01-03", "description": "Adobe", "amount": -54.99},
])

CLASSIFY_REPLY = json.dumps({
    "expenses": [
        {"id": "1", "date": "2024-01-02", "description": "Coffee", "amount": 4.5,
         "category": "Meals", "deductible": False, "confidence": 0.8},
        {"id": "2", "date": "2024-01-03", "description": "Adobe", "amount": 54.99,
         "category": "Software", "deductible": True, "confidence": 0.95},
    ],
    "summary": {"totalExpenses": 1, "totalDeductible": 1, "categoryCounts": {}},
})


class TestExtractTransactions:

    @pytest.mark.asyncio
    async def test_csv_rows_sent_to_model(self):
        llm = StubLLMClient(TX_REPLY)
        upload = UploadedFile("jan.csv", "text/csv", b"Date,Memo,Debit\n2024-01-02,Coffee,4.50\n")
        transactions = await ExtractionPipeline(llm).extract_transactions(upload)

        assert [t.description for t in transactions] == ["Coffee", "Adobe"]
        assert "CSV parser" in llm.prompts[0]
        assert '"Memo": "Coffee"' in llm.prompts[0]

    @pytest.mark.asyncio
    async def test_pdf_by_suffix(self):
        llm = StubLLMClient(TX_REPLY)
        upload = UploadedFile("statement.PDF", "application/octet-stream", b"%PDF-1.4 ...")
        await ExtractionPipeline(llm).extract_transactions(upload)
        assert "PDF parser" in llm.prompts[0]
        assert '"statement.PDF"' in llm.prompts[0]

    @pytest.mark.asyncio
    async def test_excel_rejected(self):
        llm = StubLLMClient(TX_REPLY)
        upload = UploadedFile("book.xlsx", "application/vnd.ms-excel", b"PK\x03\x04")
        with pytest.raises(InvalidInput, match="Excel"):
            await ExtractionPipeline(llm).extract_transactions(upload)
        assert llm.prompts == []

    @pytest.mark.asyncio
    async def test_unknown_type_rejected(self):
        with pytest.raises(InvalidInput, match="Unsupported file type"):
            await ExtractionPipeline(StubLLMClient(TX_REPLY)).extract_transactions(
                UploadedFile("photo.png", "image/png", b"\x89PNG"),
            )

    @pytest.mark.asyncio
    async def test_header_only_csv_rejected(self):
        with pytest.raises(InvalidInput):
            await ExtractionPipeline(StubLLMClient(TX_REPLY)).extract_transactions(
                UploadedFile("empty.csv", "text/csv", b"date,description,amount\n"),
            )


class TestClassifyExpenses:

    @pytest.mark.asyncio
    async def test_summary_computed_from_expenses(self):
        llm = StubLLMClient(CLASSIFY_REPLY)
        transactions = [
            Transaction(date="2024-01-02", description="Coffee", amount=-4.5),
            Transaction(date="2024-01-03", description="Adobe", amount=-54.99),
        ]
        result = await ExtractionPipeline(llm).classify_expenses(transactions)

        assert len(result.expenses) == 2
        assert result.summary.total_expenses == 59.49
        assert result.summary.total_deductible == 54.99
        assert result.summary.category_counts == {"Meals": 1, "Software": 1}
        assert "Business Services" in llm.prompts[0]

    @pytest.mark.asyncio
    async def test_no_transactions_skips_model(self):
        llm = StubLLMClient(CLASSIFY_REPLY)
        result = await ExtractionPipeline(llm).classify_expenses([])
        assert result.expenses == []
        assert llm.prompts == []


# =========================================================================
# check_irs_requirements
# =========================================================================


IRS_REPLY = json.dumps({
    "mustFile": True,
    "filingRequirementReason": "Gross income exceeds the standard deduction.",
    "requiredFederalForms": ["Form 1040"],
    "requiredStateForms": ["Form 540"],
    "taxRates": "12% federal bracket",
    "deadlines": "April 15",
    "sourceExcerpt": "You must file if...",
    "sourceUrl": "https://www.irs.gov/filing",
})


class TestCheckIrsRequirements:

    @pytest.mark.asyncio
    async def test_codes_expanded_in_prompt(self):
        llm = StubLLMClient(IRS_REPLY)
        result = await ExtractionPipeline(llm).check_irs_requirements("ca", 34, 58000, "married_joint")

        assert result.must_file is True
        assert result.required_federal_forms == ["Form 1040"]
        prompt = llm.prompts[0]
        assert "State of Residence: California" in prompt
        assert "Filing Status: Married Filing Jointly" in prompt
        assert "Annual Income: $58,000" in prompt

    @pytest.mark.asyncio
    async def test_unknown_codes_passed_through(self):
        llm = StubLLMClient(IRS_REPLY)
        await ExtractionPipeline(llm).check_irs_requirements("PR", 30, 1000, "other")
        assert "State of Residence: PR" in llm.prompts[0]
        assert "Filing Status: other" in llm.prompts[0]

    @pytest.mark.asyncio
    async def test_missing_state(self):
        with pytest.raises(MissingParameter):
            await ExtractionPipeline(StubLLMClient(IRS_REPLY)).check_irs_requirements("", 30, 1000, "single")

    @pytest.mark.asyncio
    async def test_negative_income(self):
        with pytest.raises(InvalidInput):
            await ExtractionPipeline(StubLLMClient(IRS_REPLY)).check_irs_requirements("NY", 30, -1, "single")
