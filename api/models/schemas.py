"""
API Request and Response Schemas
Pydantic models for FastAPI endpoints
"""
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List, Dict
from datetime import datetime
from enum import Enum


# Enums
class QueryStatusEnum(str, Enum):
    """Query outcome"""
    OK = "ok"
    NO_CANDIDATES = "no_candidates"
    NO_RELEVANT_CONTENT = "no_relevant_content"
    COMPRESSION_UNAVAILABLE = "compression_unavailable"


class IngestionStatusEnum(str, Enum):
    """Ingestion outcome"""
    SUCCESS = "success"
    PARTIAL = "partial"
    ERROR = "error"


class VerdictEnum(str, Enum):
    """Compression verdict of a returned passage"""
    FULL = "full"
    EXCERPT = "excerpt"


# Request Models
class IngestRequest(BaseModel):
    """
    Request model for ingest endpoint

    Attributes:
        urls: Web pages to load, chunk and index
    """
    urls: List[str] = Field(..., min_length=1, max_length=100, description="Page URLs")

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "urls": ["https://lilianweng.github.io/posts/2023-03-15-prompt-engineering/"]
        }
    })

    @field_validator("urls")
    @classmethod
    def check_http_urls(cls, urls: List[str]) -> List[str]:
        for url in urls:
            if not url.startswith(("http://", "https://")):
                raise ValueError(f"not an http(s) URL: {url}")
        return urls


class QueryRequest(BaseModel):
    """
    Request model for query endpoint

    Attributes:
        query: User query text
        k_parents: Number of parent passages to compress
    """
    query: str = Field(..., min_length=1, max_length=2000, description="User query")
    k_parents: int = Field(3, ge=1, le=20, description="Parent passages to compress")

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "query": "Types of prompt engineering",
            "k_parents": 3
        }
    })

    @field_validator("query")
    @classmethod
    def check_not_blank(cls, query: str) -> str:
        if not query.strip():
            raise ValueError("query must not be blank")
        return query


# Response Models
class PassageModel(BaseModel):
    """Passage that survived relevance compression"""
    chunk_id: str = Field(..., description="Parent chunk id")
    text: str = Field(..., description="Verbatim passage or extracted excerpt")
    verdict: VerdictEnum = Field(..., description="Compression verdict")
    score: float = Field(..., description="Parent similarity to the query")
    original_url: str = Field("", description="Page the passage came from")


class TimingsModel(BaseModel):
    """Per-stage timings"""
    total_ms: float = Field(..., ge=0.0)
    retrieval_ms: float = Field(..., ge=0.0)
    compression_ms: float = Field(..., ge=0.0)


class QueryResponse(BaseModel):
    """Response model for query endpoint"""
    query: str = Field(..., description="Original query")
    status: QueryStatusEnum = Field(..., description="Query outcome")
    passages: List[PassageModel] = Field(default_factory=list)
    parent_ids: List[str] = Field(default_factory=list, description="Candidate parents from child search")
    failed_chunk_ids: List[str] = Field(default_factory=list, description="Parents whose compression failed")
    timings: TimingsModel


class IngestResponse(BaseModel):
    """Response model for ingest endpoint"""
    status: IngestionStatusEnum
    documents_loaded: int = Field(..., ge=0)
    parent_chunks: int = Field(..., ge=0)
    child_chunks: int = Field(..., ge=0)
    written: int = Field(..., ge=0)
    failed_urls: Dict[str, str] = Field(default_factory=dict)
    failed_chunk_ids: List[str] = Field(default_factory=list)
    error_message: Optional[str] = None
    processing_time_seconds: float = Field(0.0, ge=0.0)


class ErrorResponse(BaseModel):
    """Error response"""
    error: str = Field(..., description="Error type")
    detail: Optional[str] = Field(None, description="Error details")
    error_code: Optional[str] = Field(None, description="Error code")

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "error": "Retrieval failed",
            "detail": "Child search failed: connection refused",
            "error_code": "RETRIEVAL_ERROR"
        }
    })


class HealthCheckResponse(BaseModel):
    """Health check response"""
    status: str = Field(..., description="Overall health status")
    version: str = Field(..., description="API version")
    components: Dict[str, str] = Field(..., description="Component health")
    timestamp: datetime = Field(default_factory=datetime.utcnow)
