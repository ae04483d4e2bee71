"""
Prompt templates for the extraction pipeline.

Templates use ``str.format``; literal JSON braces are doubled.
"""

# =============================================================================
# Lookup tables
# =============================================================================

STATE_NAMES = {
    "AL": "Alabama", "AK": "Alaska", "AZ": "Arizona", "AR": "Arkansas",
    "CA": "California", "CO": "Colorado", "CT": "Connecticut", "DE": "Delaware",
    "FL": "Florida", "GA": "Georgia", "HI": "Hawaii", "ID": "Idaho",
    "IL": "Illinois", "IN": "Indiana", "IA": "Iowa", "KS": "Kansas",
    "KY": "Kentucky", "LA": "Louisiana", "ME": "Maine", "MD": "Maryland",
    "MA": "Massachusetts", "MI": "Michigan", "MN": "Minnesota", "MS": "Mississippi",
    "MO": "Missouri", "MT": "Montana", "NE": "Nebraska", "NV": "Nevada",
    "NH": "New Hampshire", "NJ": "New Jersey", "NM": "New Mexico", "NY": "New York",
    "NC": "North Carolina", "ND": "North Dakota", "OH": "Ohio", "OK": "Oklahoma",
    "OR": "Oregon", "PA": "Pennsylvania", "RI": "Rhode Island", "SC": "South Carolina",
    "SD": "South Dakota", "TN": "Tennessee", "TX": "Texas", "UT": "Utah",
    "VT": "Vermont", "VA": "Virginia", "WA": "Washington", "WV": "West Virginia",
    "WI": "Wisconsin", "WY": "Wyoming", "DC": "District of Columbia",
}

FILING_STATUSES = {
    "single": "Single",
    "married_joint": "Married Filing Jointly",
    "married_separate": "Married Filing Separately",
    "head_household": "Head of Household",
    "qualifying_widow": "Qualifying Widow(er) with Dependent Child",
}


def state_full_name(code: str) -> str:
    return STATE_NAMES.get((code or "").strip().upper(), code)


def filing_status_label(status: str) -> str:
    return FILING_STATUSES.get(status, status)


# =============================================================================
# Email scan
# =============================================================================

SCAN_EMAILS_PROMPT = """You are an expert at identifying tax documents in emails.

Analyze these emails and identify any that likely contain tax documents like W2s, 1099s, etc.

Emails:
{emails}

For each email that likely contains a tax document, provide:
1. The email ID
2. The type of tax document (W2, 1099-MISC, 1099-NEC, 1099-K, 1099-INT, 1099-DIV, or Other)
3. The sender
4. The date
5. The subject
6. The preview text

Format your response as a JSON array of objects with these fields:
[
  {{
    "id": "string",
    "type": "DocumentType",
    "sender": "email@example.com",
    "date": "YYYY-MM-DD",
    "subject": "Subject line",
    "preview": "Preview text"
  }}
]

If no email contains a tax document, return [].
Return ONLY the JSON array with no markdown formatting, no code blocks, and no additional text."""


# =============================================================================
# Document extraction
# =============================================================================

_DOCUMENT_FIELDS = """Extract the following information:
- Document type (W2, 1099-MISC, 1099-NEC, 1099-K, 1099-INT, 1099-DIV, or Other)
- Issuer/Sender name
- Tax year
- Key financial figures (income, withholding, etc.)

Format your response as a JSON object with these fields:
{{
  "documentType": "string",
  "issuer": "string",
  "taxYear": "string",
  "financialData": {{
    "key1": "value1",
    "key2": "value2"
  }}
}}"""

EXTRACT_DOCUMENT_PROMPT = """You are a tax document analyzer. Extract key information from this tax document.

The document is named "{file_name}" and is of type "{content_type}".

Document content ({encoding}):
{content}

""" + _DOCUMENT_FIELDS + """

Return ONLY the JSON object with no markdown formatting, no code blocks, and no additional text."""

EXTRACT_EMAIL_PROMPT = """You are a tax document analyzer. Extract key information from this email content that appears to contain tax information.

Here is the email content:
{content}

""" + _DOCUMENT_FIELDS + """

If the email doesn't appear to contain tax document information, make your best guess about what type of document it might be and extract any relevant financial information.

Return ONLY the JSON object with no markdown formatting, no code blocks, and no additional text."""


# =============================================================================
# Transactions and expense classification
# =============================================================================

_TRANSACTION_FIELDS = """- date: transaction date in YYYY-MM-DD format
- description: merchant name or transaction description
- amount: transaction amount as a number (positive for deposits, negative for withdrawals)"""

PDF_TRANSACTIONS_PROMPT = """You are a PDF parser specialized in financial documents.
Extract transaction data from this bank statement.

The statement is named "{file_name}". Its content ({encoding}):
{content}

Extract and format the transactions as a JSON array with these fields:
""" + _TRANSACTION_FIELDS + """

Return ONLY the JSON array with no markdown formatting, no code blocks, and no additional text."""

CSV_TRANSACTIONS_PROMPT = """You are a CSV parser specialized in financial documents.
Standardize this transaction data from a CSV file.

Here's the parsed CSV data:
{rows}

Convert this data to a standardized format with these fields:
""" + _TRANSACTION_FIELDS + """

Return ONLY the JSON array with no markdown formatting, no code blocks, and no additional text."""

CLASSIFY_EXPENSES_PROMPT = """You are a tax expert specializing in expense classification.

Classify these transactions for tax purposes:
{transactions}

For each transaction:
1. Assign a business category ({categories})
2. Determine if it's tax deductible (true/false)
3. Assign a confidence score (0.0-1.0) for your classification
4. Assign a unique ID

Format your response as a JSON object with this structure:
{{
  "expenses": [
    {{
      "id": "string",
      "date": "YYYY-MM-DD",
      "description": "string",
      "amount": number,
      "category": "string",
      "deductible": boolean,
      "confidence": number
    }}
  ]
}}

Return ONLY the JSON object with no markdown formatting, no code blocks, and no additional text."""


# =============================================================================
# Filing requirements
# =============================================================================

IRS_REQUIREMENTS_PROMPT = """You are a tax expert with access to the latest IRS and state tax authority information.

Research and provide accurate, up-to-date information about tax filing requirements for a person with the following details:
- Age: {age}
- Annual Income: ${income:,.0f}
- Filing Status: {filing_status}
- State of Residence: {state}

Determine if this person is required to file federal and/or state taxes based on their situation.

Include the following information:
1. Whether they MUST file taxes (true/false)
2. A clear explanation of why they must or don't need to file
3. Required federal tax forms if they need to file (or should file even if not required)
4. Required state tax forms specific to {state} (if applicable)
5. Federal and state tax rates that would apply to their income level
6. Important tax filing deadlines they should be aware of
7. An excerpt from the IRS or {state} state tax authority website that contains this information
8. Include the source URL where this information was found

Format your response as a JSON object with the following structure:
{{
  "mustFile": boolean,
  "filingRequirementReason": "Clear explanation of why they must or don't need to file",
  "requiredFederalForms": ["Form 1", "Form 2"],
  "requiredStateForms": ["Form 1", "Form 2"],
  "taxRates": "Description of tax rates that apply to this person",
  "deadlines": "Important tax filing deadlines",
  "sourceExcerpt": "Direct quote from IRS or state tax authority",
  "sourceUrl": "URL of the source"
}}

Return ONLY the JSON object with no markdown formatting, no code blocks, and no additional text."""
