"""Pydantic models for the studyaid API."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from studyaid.config import get_settings


class FileMetadata(BaseModel):
    file_name: str
    file_size: int = Field(..., ge=0, description="Size of the upload in bytes")
    file_type: str = Field(..., description="Declared MIME type of the upload")


class ExtractResponse(BaseModel):
    text: str
    page_count: int = Field(..., ge=0, description="Best-effort page count")
    strategy: str = Field(..., description="Extraction strategy that produced the text")
    warning: Optional[str] = None
    metadata: FileMetadata


class SummarizeRequest(BaseModel):
    text: str = Field(..., min_length=1, description="Document text to summarize")
    num_summaries: int = Field(
        default=get_settings().summary_count,
        ge=1,
        le=get_settings().summary_max_count,
        description="Number of summary sections to request",
    )


class SummarizeResponse(BaseModel):
    summaries: List[str]
    decode_strategy: str
    truncated: bool
    warning: Optional[str] = None


class ProcessResponse(BaseModel):
    document_id: Optional[str] = Field(default=None, description="Identifier the result was stored under")
    extracted_text: str = Field(..., description="Leading part of the extracted text")
    summaries: List[str]
    embedding: Optional[List[float]] = None
    strategy: str
    page_count: int
    warning: Optional[str] = None


class SearchRequest(BaseModel):
    query: str = Field(..., min_length=1, description="Free-text search query")
    limit: int = Field(default=5, ge=1, le=50, description="Maximum number of documents to return")


class DocumentModel(BaseModel):
    document_id: str
    file_name: str
    content: str
    summaries: List[str]
    strategy: str
    score: Optional[float] = None


class SearchResponse(BaseModel):
    results: List[DocumentModel]
    count: int
