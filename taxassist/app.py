"""
TaxAssist Application - Single entry point for the tax assistance backend.

Usage:
    from taxassist import TaxAssist

    app = TaxAssist("config.yaml")

    url = await app.connect_email_provider("user-1", "me@gmail.com")
    emails = await app.sync_emails("user-1")
    findings = await app.scan_emails("user-1")
"""

import asyncio
import logging
import os
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .errors import (
    InternalError,
    InvalidInput,
    NotConfigured,
    NotFound,
    TaxAssistError,
    Unauthenticated,
)
from .extraction.models import ExpenseClassification, ExtractedDocument, IrsRequirements, TaxEmailFinding
from .extraction.pipeline import UploadedFile
from .models import EmailRecord, TokenRecord

logger = logging.getLogger(__name__)

GMAIL_PROVIDER = "gmail"
PASTED_EMAIL_NAME = "Pasted Email Content"


def _load_config(path: str) -> dict:
    """Read YAML config file with ${VAR} and ${VAR:-default} substitution."""
    import yaml

    with open(path, "r", encoding="utf-8") as f:
        raw = f.read()

    def _replace_env(match):
        var_name, default = match.group(1), match.group(2)
        value = os.environ.get(var_name)
        if value is None:
            if default is not None:
                return default
            raise ValueError(
                f"Environment variable '{var_name}' not set "
                f"(referenced in config file '{path}')"
            )
        return value

    resolved = re.sub(r"\$\{(\w+)(?::-([^}]*))?\}", _replace_env, raw)
    return yaml.safe_load(resolved) or {}


@dataclass
class DocumentResult:
    """Outcome of extracting one document; exactly one of data/error is set."""
    file_name: str
    file_type: str
    extracted_data: Optional[ExtractedDocument] = None
    document_id: Optional[str] = None
    error: Optional[TaxAssistError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "fileName": self.file_name,
            "fileType": self.file_type,
            "success": self.ok,
        }
        if self.extracted_data is not None:
            result["extractedData"] = self.extracted_data.model_dump(by_alias=True)
            result["documentId"] = self.document_id
        if self.error is not None:
            result["error"] = self.error.message
        return result


class TaxAssist:
    """
    TaxAssist Application entry point.

    The constructor reads and validates config. Clients (database pool,
    OAuth client, LLM client) are built on first use and injected into the
    components that need them.

    Args:
        config: Path to YAML configuration file.
    """

    def __init__(self, config: str):
        self._config = _load_config(config)
        self._initialized = False
        self._init_lock = asyncio.Lock()

        if not self._config.get("database"):
            raise ValueError("Missing required config field: 'database'")
        llm_cfg = self._config.get("llm") or {}
        if not llm_cfg.get("provider") or not llm_cfg.get("model"):
            raise ValueError("Missing required config fields: 'llm.provider' and 'llm.model'")

        self.app_url = str(self._config.get("app_url") or "http://localhost:3000").rstrip("/")
        scan_cfg = self._config.get("scan") or {}
        self.max_results = int(scan_cfg.get("max_results", 100))

        # Will be set during lazy initialization
        self._database = None
        self._llm_client = None
        self._gmail_oauth = None
        self._gmail_transport = None  # httpx transport override for the Gmail API
        self._state_store = None
        self._token_store = None
        self._connector = None
        self._emails = None
        self._documents = None
        self._pipeline = None

    @property
    def config(self) -> dict:
        """Return a copy of the raw configuration dict."""
        return dict(self._config)

    @property
    def redirect_uri(self) -> str:
        return f"{self.app_url}/api/auth/callback/{GMAIL_PROVIDER}"

    def _gmail_settings(self) -> Dict[str, Any]:
        return ((self._config.get("oauth") or {}).get(GMAIL_PROVIDER)) or {}

    async def _ensure_initialized(self) -> None:
        """Lazy initialization; runs once on first use."""
        if self._initialized:
            return
        async with self._init_lock:
            if self._initialized:
                return
            await self._initialize()
            self._initialized = True

    async def _initialize(self) -> None:
        cfg = self._config
        llm_cfg = cfg["llm"]

        # 1. LLM client
        from .llm import LiteLLMClient, LLMConfig
        llm_config = LLMConfig(
            model=llm_cfg["model"],
            api_key=llm_cfg.get("api_key") or None,
            base_url=llm_cfg.get("base_url"),
            timeout=int(llm_cfg.get("timeout", 60)),
        )
        self._llm_client = LiteLLMClient(config=llm_config, provider_name=llm_cfg["provider"])

        # 2. Database + schema
        from .db import Database, ensure_schema
        self._database = Database(dsn=cfg["database"])
        await self._database.initialize()
        await ensure_schema(self._database)

        # 3. Stores and repositories
        from .credentials import AuthStateStore, TokenStore
        from .storage import EmailRepository, TaxDocumentRepository
        ttl = int((cfg.get("oauth") or {}).get("state_ttl_minutes", 10))
        self._state_store = AuthStateStore(self._database, ttl_minutes=ttl)
        self._token_store = TokenStore(self._database)
        self._emails = EmailRepository(self._database)
        self._documents = TaxDocumentRepository(self._database)

        # 4. OAuth
        from .oauth import EmailConnector, GoogleOAuth
        gmail = self._gmail_settings()
        self._gmail_oauth = GoogleOAuth(
            client_id=gmail.get("client_id"),
            client_secret=gmail.get("client_secret"),
            redirect_uri=self.redirect_uri,
        )
        self._connector = EmailConnector(
            self._state_store, self._token_store, {GMAIL_PROVIDER: self._gmail_oauth},
        )

        # 5. Extraction
        from .extraction import ExtractionPipeline
        self._pipeline = ExtractionPipeline(self._llm_client)

        logger.info(
            f"TaxAssist initialized: llm={llm_cfg['provider']}/{llm_cfg['model']}, "
            f"app_url={self.app_url}"
        )

    async def shutdown(self) -> None:
        """Close the database pool."""
        if not self._initialized:
            return
        try:
            if self._database:
                await self._database.close()
        finally:
            self._initialized = False
            self._database = None
            logger.info("TaxAssist shut down")

    def _require_llm(self) -> None:
        if not self._llm_client.is_configured:
            from .llm.litellm_client import MISSING_API_KEY_MESSAGE
            raise NotConfigured(MISSING_API_KEY_MESSAGE)

    # ── Email connection ──

    async def connect_email_provider(self, user_id: str, email: str, provider: str = GMAIL_PROVIDER) -> str:
        """Start OAuth consent. Returns the authorization URL."""
        await self._ensure_initialized()
        return await self._connector.connect(user_id, email, provider)

    async def handle_oauth_callback(self, code: Optional[str], state: Optional[str]) -> TokenRecord:
        """Complete OAuth consent and store the mailbox tokens."""
        await self._ensure_initialized()
        return await self._connector.complete(code, state)

    def oauth_settings_status(self) -> Dict[str, bool]:
        """Which Gmail OAuth settings are present. Never returns values."""
        gmail = self._gmail_settings()
        return {
            "hasClientId": bool(gmail.get("client_id")),
            "hasClientSecret": bool(gmail.get("client_secret")),
            "hasAppUrl": bool(self._config.get("app_url")),
        }

    async def _persist_refreshed_token(self, token: TokenRecord) -> None:
        await self._token_store.update_access_token(
            token.user_id, token.provider, token.email,
            token.access_token, token.expires_at,
        )

    # ── Emails ──

    async def sync_emails(self, user_id: str, email: Optional[str] = None) -> List[EmailRecord]:
        """Fetch recent Gmail messages and store their metadata."""
        await self._ensure_initialized()
        token = await self._token_store.get(user_id, GMAIL_PROVIDER, email)
        if token is None:
            raise Unauthenticated("Email not connected. Please connect your email first.")

        from .providers.email import GmailProvider
        provider = GmailProvider(
            token, self._gmail_oauth, on_token_refreshed=self._persist_refreshed_token,
            transport=self._gmail_transport,
        )
        records = await provider.list_recent_messages(max_results=self.max_results)
        await self._emails.save_many(user_id, records)
        return records

    async def list_emails(self, user_id: str) -> List[EmailRecord]:
        await self._ensure_initialized()
        return await self._emails.list_for_user(user_id)

    async def update_email(
        self,
        user_id: str,
        email_id: str,
        read: Optional[bool] = None,
        starred: Optional[bool] = None,
    ) -> EmailRecord:
        await self._ensure_initialized()
        if read is None and starred is None:
            raise InvalidInput("Nothing to update")
        updated = await self._emails.update_flags(user_id, email_id, read=read, starred=starred)
        if updated is None:
            raise NotFound("Email not found")
        return updated

    async def delete_emails(self, user_id: str, email_ids: List[str]) -> int:
        await self._ensure_initialized()
        return await self._emails.delete_many(user_id, email_ids)

    async def scan_emails(self, user_id: str) -> List[TaxEmailFinding]:
        """Ask the model which stored emails carry tax documents, and flag them."""
        await self._ensure_initialized()
        self._require_llm()
        emails = await self._emails.list_for_user(user_id)
        findings = await self._pipeline.scan_emails(emails)
        await self._emails.mark_tax_documents(user_id, {f.id: f.type for f in findings})
        return findings

    # ── Tax documents ──

    async def _extract_and_save(self, user_id: str, upload: UploadedFile) -> DocumentResult:
        document = await self._pipeline.extract_document(upload)
        row = await self._documents.save(user_id, document)
        return DocumentResult(
            file_name=upload.file_name,
            file_type=upload.content_type,
            extracted_data=document,
            document_id=str(row["id"]) if row else None,
        )

    async def process_tax_documents(self, user_id: str, files: List[UploadedFile]) -> List[DocumentResult]:
        """Extract and store each file independently; one failure does not fail the batch."""
        await self._ensure_initialized()
        if not files:
            raise InvalidInput("No files uploaded")
        self._require_llm()

        outcomes = await asyncio.gather(
            *[self._extract_and_save(user_id, f) for f in files],
            return_exceptions=True,
        )

        results = []
        for upload, outcome in zip(files, outcomes):
            if isinstance(outcome, DocumentResult):
                results.append(outcome)
                continue
            if isinstance(outcome, TaxAssistError):
                error = outcome
            elif isinstance(outcome, Exception):
                logger.error(f"Extraction failed for {upload.file_name}: {outcome}", exc_info=outcome)
                error = InternalError()
            else:
                raise outcome
            logger.warning(f"Document {upload.file_name} failed: {error.kind}")
            results.append(DocumentResult(
                file_name=upload.file_name, file_type=upload.content_type, error=error,
            ))
        return results

    async def analyze_email_content(
        self,
        user_id: str,
        content: str,
        source_email_id: Optional[str] = None,
    ) -> DocumentResult:
        """Extract a tax document from pasted email text and store it."""
        await self._ensure_initialized()
        self._require_llm()
        document = await self._pipeline.extract_email_content(content)
        row = await self._documents.save(user_id, document, source_email_id=source_email_id)
        return DocumentResult(
            file_name=PASTED_EMAIL_NAME,
            file_type="text/plain",
            extracted_data=document,
            document_id=str(row["id"]) if row else None,
        )

    async def list_tax_documents(self, user_id: str) -> List[dict]:
        await self._ensure_initialized()
        return await self._documents.list_for_user(user_id)

    # ── Expenses and filing requirements ──

    async def classify_expenses(self, upload: UploadedFile) -> ExpenseClassification:
        await self._ensure_initialized()
        if upload is None or not upload.data:
            raise InvalidInput("No file provided")
        self._require_llm()
        transactions = await self._pipeline.extract_transactions(upload)
        return await self._pipeline.classify_expenses(transactions)

    async def check_irs_requirements(
        self,
        state: str,
        age: int,
        income: float,
        filing_status: str,
    ) -> IrsRequirements:
        await self._ensure_initialized()
        self._require_llm()
        return await self._pipeline.check_irs_requirements(state, age, income, filing_status)
