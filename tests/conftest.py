"""Shared fixtures: in-memory stores, a stub LLM client and an app builder."""

import json
import secrets
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Union

import httpx
import pytest

from taxassist.app import TaxAssist
from taxassist.extraction import ExtractionPipeline
from taxassist.extraction.models import ExtractedDocument
from taxassist.llm.base import BaseLLMClient, LLMResponse
from taxassist.models import AuthState, EmailRecord, TokenRecord
from taxassist.oauth import EmailConnector, GoogleOAuth


# ── In-memory stores (same interface as the asyncpg-backed ones) ──


class MemoryStateStore:

    def __init__(self, ttl_minutes: int = 10):
        self.ttl_minutes = ttl_minutes
        self.rows: Dict[str, AuthState] = {}

    async def create(self, user_id, provider, email):
        now = datetime.now(timezone.utc)
        state = AuthState(
            state=secrets.token_urlsafe(32),
            user_id=user_id,
            provider=provider,
            email=email,
            created_at=now,
            expires_at=now + timedelta(minutes=self.ttl_minutes),
        )
        self.rows[state.state] = state
        for key in [k for k, v in self.rows.items() if v.is_expired()]:
            del self.rows[key]
        return state

    async def peek(self, state):
        row = self.rows.get(state)
        if row is None or row.is_expired():
            return None
        return row

    async def consume(self, state):
        row = self.rows.pop(state, None)
        if row is None or row.is_expired():
            return None
        return row


class MemoryTokenStore:

    def __init__(self):
        self.rows: Dict[tuple, TokenRecord] = {}
        self.upsert_calls = 0
        self.update_calls = 0

    async def upsert(self, record):
        self.upsert_calls += 1
        key = (record.user_id, record.provider, record.email)
        existing = self.rows.get(key)
        if existing and not record.refresh_token:
            record.refresh_token = existing.refresh_token
        self.rows[key] = record

    async def get(self, user_id, provider, email=None):
        for (uid, prov, mail), record in self.rows.items():
            if uid == user_id and prov == provider and (email is None or mail == email):
                # Copies, so only update_access_token changes what is stored
                return replace(record)
        return None

    async def update_access_token(self, user_id, provider, email, access_token, expires_at):
        self.update_calls += 1
        record = self.rows[(user_id, provider, email)]
        record.access_token = access_token
        record.expires_at = expires_at


class MemoryEmailRepository:

    def __init__(self):
        self.rows: Dict[tuple, EmailRecord] = {}

    async def save_many(self, user_id, emails):
        for e in emails:
            self.rows[(user_id, e.id)] = e
        return len(emails)

    async def list_for_user(self, user_id, limit=None):
        records = [e for (uid, _), e in self.rows.items() if uid == user_id]
        return sorted(records, key=lambda e: e.date, reverse=True)

    async def update_flags(self, user_id, email_id, read=None, starred=None):
        record = self.rows.get((user_id, email_id))
        if record is None:
            return None
        if read is not None:
            record.read = read
        if starred is not None:
            record.starred = starred
        return record

    async def mark_tax_documents(self, user_id, findings):
        for email_id, doc_type in findings.items():
            record = self.rows.get((user_id, email_id))
            if record:
                record.has_tax_document = True
                record.document_type = doc_type
        return len(findings)

    async def delete_many(self, user_id, email_ids):
        deleted = 0
        for email_id in email_ids:
            if self.rows.pop((user_id, email_id), None) is not None:
                deleted += 1
        return deleted


class MemoryDocumentRepository:

    def __init__(self):
        self.rows: List[dict] = []

    async def save(self, user_id, document: ExtractedDocument, source_email_id=None):
        row = {
            "id": f"doc-{len(self.rows) + 1}",
            "user_id": user_id,
            "document_type": document.document_type,
            "issuer": document.issuer,
            "tax_year": document.tax_year,
            "financial_data": document.financial_data,
            "source_email_id": source_email_id,
            "created_at": datetime.now(timezone.utc),
        }
        self.rows.append(row)
        return row

    async def list_for_user(self, user_id, limit=None):
        return [r for r in reversed(self.rows) if r["user_id"] == user_id]


# ── Stub LLM client ──


Reply = Union[str, Exception]


class StubLLMClient(BaseLLMClient):
    """Answers every prompt through ``responder``; records prompts sent."""

    provider = "stub"

    def __init__(self, responder: Union[Reply, Callable[[str], Reply]] = "[]"):
        super().__init__(model="stub-model")
        self.responder = responder
        self.prompts: List[str] = []

    async def _call_api(self, messages, **kwargs):
        prompt = messages[-1]["content"]
        self.prompts.append(prompt)
        reply = self.responder(prompt) if callable(self.responder) else self.responder
        if isinstance(reply, Exception):
            raise reply
        return LLMResponse(content=reply)


# ── Google token endpoint ──


def google_token_handler(
    access_token: str = "ya29.access",
    refresh_token: str = "1//refresh",
    status_code: int = 200,
    calls: Optional[list] = None,
):
    """httpx.MockTransport handler imitating https://oauth2.googleapis.com/token."""

    def handler(request: httpx.Request) -> httpx.Response:
        form = dict(httpx.QueryParams(request.content.decode()))
        if calls is not None:
            calls.append(form)
        if status_code != 200:
            return httpx.Response(status_code, json={"error": "invalid_grant"})
        body = {"access_token": access_token, "expires_in": 3599, "scope": "gmail.readonly"}
        if form.get("grant_type") == "authorization_code":
            body["refresh_token"] = refresh_token
        return httpx.Response(200, json=body)

    return handler


# ── App builder ──


CONFIG_YAML = """
database: postgresql://localhost/taxassist_test
app_url: http://localhost:3000
llm:
  provider: openai
  model: gpt-4o
  api_key: sk-test
oauth:
  gmail:
    client_id: test-client-id
    client_secret: test-client-secret
"""


def build_app(
    tmp_path,
    llm_responder: Union[Reply, Callable[[str], Reply]] = "[]",
    token_handler=None,
    gmail_handler=None,
) -> TaxAssist:
    """A TaxAssist wired to in-memory stores, a stub model and a mocked token endpoint."""
    config_file = tmp_path / "config.yaml"
    config_file.write_text(CONFIG_YAML)
    app = TaxAssist(str(config_file))

    app._llm_client = StubLLMClient(llm_responder)
    app._state_store = MemoryStateStore()
    app._token_store = MemoryTokenStore()
    app._emails = MemoryEmailRepository()
    app._documents = MemoryDocumentRepository()
    app._gmail_oauth = GoogleOAuth(
        client_id="test-client-id",
        client_secret="test-client-secret",
        redirect_uri=app.redirect_uri,
        transport=httpx.MockTransport(token_handler or google_token_handler()),
    )
    app._connector = EmailConnector(
        app._state_store, app._token_store, {"gmail": app._gmail_oauth},
    )
    app._pipeline = ExtractionPipeline(app._llm_client)
    if gmail_handler is not None:
        app._gmail_transport = httpx.MockTransport(gmail_handler)
    app._initialized = True
    return app


@pytest.fixture
def app(tmp_path):
    return build_app(tmp_path)


def as_json(obj) -> str:
    return json.dumps(obj)
