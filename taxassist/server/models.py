"""Pydantic request models for the TaxAssist API."""

from typing import List, Optional

from pydantic import BaseModel, Field


class ConnectEmailRequest(BaseModel):
    email: str
    provider: str = "gmail"


class SyncEmailsRequest(BaseModel):
    email: Optional[str] = None


class EmailUpdateRequest(BaseModel):
    read: Optional[bool] = None
    starred: Optional[bool] = None


class DeleteEmailsRequest(BaseModel):
    ids: List[str] = Field(default_factory=list)


class AnalyzeEmailRequest(BaseModel):
    content: str = ""
    email_id: Optional[str] = None


class IrsRequirementsRequest(BaseModel):
    state: str
    age: int = Field(ge=0, le=130)
    income: float = Field(ge=0)
    filing_status: str = Field(alias="filingStatus")

    model_config = {"populate_by_name": True}
