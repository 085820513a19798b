"""FastAPI application exposing the studyaid ingestion pipeline."""

from __future__ import annotations

import asyncio
import hmac
import time
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Callable, Deque
from uuid import uuid4

import chromadb
from fastapi import Depends, FastAPI, File, Form, HTTPException, Request, UploadFile, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from studyaid.api.schemas import (
    DocumentModel,
    ExtractResponse,
    FileMetadata,
    ProcessResponse,
    SearchRequest,
    SearchResponse,
    SummarizeRequest,
    SummarizeResponse,
)
from studyaid.config import Settings, get_settings
from studyaid.embeddings import ChromaDocumentStore, DocumentStore, build_embedding_backend
from studyaid.ingestion import (
    ExtractionFailure,
    IngestionError,
    IngestionPipeline,
    PipelineCapabilities,
    build_pipeline,
)
from studyaid.metrics.observability import bind_correlation_id, clear_correlation_id, configure_logging, get_logger
from studyaid.models import RawDocument, StoredDocument
from studyaid.services.generation import build_generator

READ_BLOCK_SIZE = 1024 * 1024


@dataclass(frozen=True)
class AppDependencies:
    pipeline: IngestionPipeline
    store: DocumentStore


def _build_dependencies(settings: Settings) -> AppDependencies:
    embedder = build_embedding_backend(settings)
    capabilities = PipelineCapabilities(generator=build_generator(settings), embedder=embedder)
    pipeline = build_pipeline(settings, capabilities)
    chroma_client = None
    if settings.chroma_host:
        chroma_client = chromadb.HttpClient(
            host=settings.chroma_host,
            port=settings.chroma_port or 8000,
            ssl=settings.chroma_ssl,
        )
    store = ChromaDocumentStore(
        embedder,
        collection_name=settings.chroma_collection,
        client=chroma_client,
        persist_directory=None if chroma_client else settings.chroma_persist_dir,
    )
    return AppDependencies(pipeline=pipeline, store=store)


class SlidingWindowLimiter:
    """Per-client, per-route request limiter over a sliding time window.

    Keys whose hits have all aged out of the window are dropped on a sweep
    that runs at most once per window, so memory follows the number of
    recently active clients.
    """

    def __init__(self, requests: int, window_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self._limit = max(1, requests)
        self._window = window_seconds
        self._clock = clock
        self._hits: dict[str, Deque[float]] = defaultdict(deque)
        self._last_sweep = clock()

    def __len__(self) -> int:
        return len(self._hits)

    def __call__(self, request: Request) -> None:
        forwarded = request.headers.get("x-forwarded-for", "")
        client = forwarded.split(",")[0].strip() or (request.client.host if request.client else "-")
        self.hit(f"{client}:{request.url.path}")

    def hit(self, key: str) -> None:
        now = self._clock()
        if now - self._last_sweep > self._window:
            self._sweep(now)
        hits = self._hits[key]
        while hits and now - hits[0] > self._window:
            hits.popleft()
        if len(hits) >= self._limit:
            raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail="Rate limit exceeded")
        hits.append(now)

    def _sweep(self, now: float) -> None:
        stale = [key for key, hits in self._hits.items() if not hits or now - hits[-1] > self._window]
        for key in stale:
            del self._hits[key]
        self._last_sweep = now


def _document_model(document: StoredDocument) -> DocumentModel:
    return DocumentModel(
        document_id=document.document_id,
        file_name=document.file_name,
        content=document.content,
        summaries=list(document.summaries),
        strategy=document.strategy_used,
        score=document.score,
    )


def create_app(*, settings: Settings | None = None, dependencies: AppDependencies | None = None) -> FastAPI:
    settings = settings or get_settings()
    deps = dependencies or _build_dependencies(settings)

    configure_logging(settings.log_level, json_logs=settings.log_json, force=True)
    logger = get_logger("api")
    app = FastAPI(title="studyaid API", version="0.1.0")
    app.state.dependencies = deps
    ingestion_slots = asyncio.Semaphore(max(1, settings.max_concurrent_ingestions))

    # Optional CORS
    if settings.cors_allow_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(settings.cors_allow_origins),
            allow_credentials=settings.cors_allow_credentials,
            allow_methods=list(settings.cors_allow_methods),
            allow_headers=list(settings.cors_allow_headers),
        )

    @app.middleware("http")
    async def bind_request_context(request: Request, call_next):  # type: ignore[override]
        correlation_id = request.headers.get("X-Request-ID") or request.headers.get("X-Correlation-ID") or uuid4().hex
        request.state.correlation_id = correlation_id
        bind_correlation_id(correlation_id)
        started = time.perf_counter()
        try:
            response = await call_next(request)
            logger.info(
                "request.complete",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
            )
        finally:
            clear_correlation_id()
        response.headers["X-Correlation-ID"] = correlation_id
        return response

    def require_api_key(request: Request) -> None:
        if not settings.api_key:
            return
        if not hmac.compare_digest(request.headers.get("X-API-Key", ""), settings.api_key):
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")

    rate_limiter = SlidingWindowLimiter(settings.rate_limit_requests, settings.rate_limit_window_seconds)

    def _error_response(request: Request, status_code: int, detail: str) -> JSONResponse:
        correlation_id = getattr(request.state, "correlation_id", uuid4().hex)
        return JSONResponse(status_code=status_code, content={"detail": detail, "correlation_id": correlation_id})

    @app.exception_handler(ExtractionFailure)
    async def handle_extraction_failure(request: Request, exc: ExtractionFailure) -> JSONResponse:
        logger.warning("extraction.failure", file_name=exc.file_name, page_count=exc.page_count, detail=str(exc))
        return _error_response(request, status.HTTP_422_UNPROCESSABLE_ENTITY, str(exc))

    @app.exception_handler(IngestionError)
    async def handle_ingestion_error(request: Request, exc: IngestionError) -> JSONResponse:
        logger.error("ingestion.error", detail=str(exc))
        return _error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc))

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.error("unhandled.error", detail=str(exc), error_type=type(exc).__name__)
        return _error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal Server Error")

    def get_dependencies(request: Request) -> AppDependencies:
        return request.app.state.dependencies

    def get_pipeline(dep: AppDependencies = Depends(get_dependencies)) -> IngestionPipeline:
        return dep.pipeline

    def get_store(dep: AppDependencies = Depends(get_dependencies)) -> DocumentStore:
        return dep.store

    async def read_upload(upload: UploadFile) -> RawDocument:
        filename = upload.filename or f"upload-{uuid4().hex}.pdf"
        mime_type = upload.content_type or ""
        if "pdf" not in mime_type.lower():
            await upload.close()
            raise HTTPException(status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE, detail="File must be a PDF")
        buffer = bytearray()
        try:
            while True:
                block = await upload.read(READ_BLOCK_SIZE)
                if not block:
                    break
                buffer.extend(block)
                if len(buffer) > settings.max_upload_bytes:
                    raise HTTPException(
                        status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                        detail=f"File too large. Maximum size is {settings.max_upload_size_mb}MB",
                    )
        finally:
            await upload.close()
        if not buffer:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"File is empty: {filename}")
        return RawDocument(data=bytes(buffer), mime_type=mime_type, file_name=filename)

    async def run_pipeline_call(func, *args):
        async with ingestion_slots:
            return await asyncio.to_thread(func, *args)

    @app.post("/pdf/extract", response_model=ExtractResponse)
    async def extract_pdf(
        file: UploadFile = File(...),
        pipeline: IngestionPipeline = Depends(get_pipeline),
        _auth: None = Depends(require_api_key),
        _rl: None = Depends(rate_limiter),
    ) -> ExtractResponse:
        document = await read_upload(file)
        extracted = await run_pipeline_call(pipeline.extractor.extract_document, document)
        return ExtractResponse(
            text=extracted.text,
            page_count=extracted.page_count,
            strategy=extracted.strategy.value,
            warning=extracted.warning,
            metadata=FileMetadata(file_name=document.file_name, file_size=document.size, file_type=document.mime_type),
        )

    @app.post("/pdf/summarize", response_model=SummarizeResponse)
    async def summarize_text(
        payload: SummarizeRequest,
        pipeline: IngestionPipeline = Depends(get_pipeline),
        _auth: None = Depends(require_api_key),
        _rl: None = Depends(rate_limiter),
    ) -> SummarizeResponse:
        outcome = await run_pipeline_call(pipeline.summarizer.summarize, payload.text, payload.num_summaries)
        return SummarizeResponse(
            summaries=list(outcome.sections),
            decode_strategy=outcome.decode_strategy,
            truncated=outcome.truncated,
            warning=outcome.warning,
        )

    @app.post("/pdf/process", response_model=ProcessResponse)
    async def process_pdf(
        file: UploadFile = File(...),
        flashcard_count: int = Form(default=settings.summary_count),
        document_id: str | None = Form(default=None),
        pipeline: IngestionPipeline = Depends(get_pipeline),
        store: DocumentStore = Depends(get_store),
        _auth: None = Depends(require_api_key),
        _rl: None = Depends(rate_limiter),
    ) -> ProcessResponse:
        if not 1 <= flashcard_count <= settings.summary_max_count:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"flashcard_count must be between 1 and {settings.summary_max_count}",
            )
        document = await read_upload(file)
        result = await run_pipeline_call(pipeline.ingest, document, flashcard_count)
        stored_id = (document_id or "").strip() or None
        if stored_id:
            await asyncio.to_thread(store.save, stored_id, result)
            logger.info("document.stored", document_id=stored_id, summaries_count=len(result.summary_sections))
        return ProcessResponse(
            document_id=stored_id,
            extracted_text=result.extracted_text_prefix[: settings.response_text_chars],
            summaries=list(result.summary_sections),
            embedding=list(result.embedding_vector) if result.embedding_vector is not None else None,
            strategy=result.strategy_used.value,
            page_count=result.page_count,
            warning=result.warning,
        )

    @app.post("/documents/search", response_model=SearchResponse)
    async def search_documents(
        payload: SearchRequest,
        store: DocumentStore = Depends(get_store),
        _auth: None = Depends(require_api_key),
        _rl: None = Depends(rate_limiter),
    ) -> SearchResponse:
        found = await asyncio.to_thread(store.similarity_search, payload.query, top_k=payload.limit)
        results = [_document_model(document) for document in found]
        return SearchResponse(results=results, count=len(results))

    @app.get("/documents/{document_id}", response_model=DocumentModel)
    async def get_document(
        document_id: str,
        store: DocumentStore = Depends(get_store),
        _auth: None = Depends(require_api_key),
    ) -> DocumentModel:
        document = await asyncio.to_thread(store.get, document_id)
        if document is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found")
        return _document_model(document)

    @app.delete("/documents/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
    async def delete_document(
        document_id: str,
        store: DocumentStore = Depends(get_store),
        _auth: None = Depends(require_api_key),
    ) -> Response:
        await asyncio.to_thread(store.delete, document_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.get("/metrics")
    async def metrics() -> Response:
        payload = generate_latest()
        return Response(content=payload, media_type=CONTENT_TYPE_LATEST)

    @app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        from studyaid import __version__

        return {"status": "ok", "version": __version__, "environment": settings.environment}

    @app.head("/healthz")
    async def healthcheck_head() -> Response:
        return Response(status_code=status.HTTP_200_OK)

    @app.get("/livez")
    async def liveness() -> dict[str, str]:
        return {"status": "alive"}

    @app.get("/healthz/ready")
    async def readiness(store: DocumentStore = Depends(get_store)) -> JSONResponse:
        try:
            documents = await asyncio.to_thread(store.count)
        except Exception as exc:  # noqa: BLE001 - reported to the readiness check instead of raised
            logger.warning("readiness.store_unavailable", error=str(exc))
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content={"status": "unavailable", "detail": str(exc)},
            )
        return JSONResponse(content={"status": "ready", "documents": documents})

    return app


app = create_app()
