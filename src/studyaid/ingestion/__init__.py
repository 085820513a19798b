"""Document ingestion pipeline."""

from .service import (
    ExtractionFailure,
    IngestionConfig,
    IngestionError,
    IngestionPipeline,
    PipelineCapabilities,
    UploadRejected,
    build_pipeline,
    validate_document,
)

__all__ = [
    "ExtractionFailure",
    "IngestionConfig",
    "IngestionError",
    "IngestionPipeline",
    "PipelineCapabilities",
    "UploadRejected",
    "build_pipeline",
    "validate_document",
]
