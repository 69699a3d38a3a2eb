"""
API Models and Schemas
"""
from api.models.schemas import (
    # Enums
    QueryStatusEnum,
    IngestionStatusEnum,
    VerdictEnum,

    # Request models
    IngestRequest,
    QueryRequest,

    # Response models
    QueryResponse,
    IngestResponse,
    ErrorResponse,
    HealthCheckResponse,

    # Component models
    PassageModel,
    TimingsModel
)

__all__ = [
    # Enums
    "QueryStatusEnum",
    "IngestionStatusEnum",
    "VerdictEnum",

    # Request models
    "IngestRequest",
    "QueryRequest",

    # Response models
    "QueryResponse",
    "IngestResponse",
    "ErrorResponse",
    "HealthCheckResponse",

    # Component models
    "PassageModel",
    "TimingsModel"
]
