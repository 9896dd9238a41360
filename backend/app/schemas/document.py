"""Markdown document publishing schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ExtractedHeading(BaseModel):
    level: int = Field(default=2, ge=1, le=6)
    text: str


class ExtractedTable(BaseModel):
    html: str


class ExtractedContent(BaseModel):
    """Structured page content produced by the extraction collaborator."""

    title: str = ""
    headings: list[ExtractedHeading] = Field(default_factory=list)
    body: str = ""
    lists: list[str] = Field(default_factory=list)
    tables: list[ExtractedTable] = Field(default_factory=list)

    @field_validator("tables", mode="before")
    @classmethod
    def accept_bare_tables(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [{"html": item} if isinstance(item, str) else item for item in value]
        return value


class RenderRequest(BaseModel):
    domain: str = Field(min_length=1, max_length=255)
    source_url: str = Field(min_length=1)
    extracted_content: ExtractedContent
    content_hash: str | None = Field(default=None, max_length=128)


class DocumentKeyRequest(BaseModel):
    domain: str = Field(min_length=1, max_length=255)
    path: str = Field(min_length=1, max_length=1024)
    content_hash: str = Field(min_length=1, max_length=128)


class ActivateByIdRequest(BaseModel):
    version_id: int = Field(ge=1)


class DocumentVersionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    domain: str
    path: str
    source_url: str | None
    content_hash: str
    is_active: bool
    created_at: datetime
    updated_at: datetime
    generated_at: datetime


class VersionOutcomeRead(BaseModel):
    status: str
    version: DocumentVersionRead | None = None
    error: str | None = None


class RenderResult(BaseModel):
    status: str
    domain: str
    path: str
    content_hash: str
    is_active: bool
    rendered_markdown: str | None = None


class VersionListRead(BaseModel):
    domain: str
    path: str
    versions: list[DocumentVersionRead]
    total: int
    active_count: int
