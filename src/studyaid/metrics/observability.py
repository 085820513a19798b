"""Observability helpers for studyaid."""

from __future__ import annotations

import logging
import sys
import time
from contextvars import ContextVar

import structlog
from prometheus_client import Counter, Histogram

_logger_configured = False
_correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="-")


def configure_logging(level: int | str = logging.INFO, *, json_logs: bool = True, force: bool = False) -> None:
    """Route structlog through stdlib logging on stderr.

    The first call wins unless ``force`` is set; entry points force their own
    level and renderer once settings are loaded.
    """

    global _logger_configured  # noqa: PLW0603 - module-level guard
    if _logger_configured and not force:
        return
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logging.basicConfig(level=level, format="%(message)s", stream=sys.stderr)
    logging.getLogger().setLevel(level)
    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer(colors=False)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )
    _logger_configured = True


def bind_correlation_id(correlation_id: str) -> None:
    structlog.contextvars.bind_contextvars(correlation_id=correlation_id)
    _correlation_id_var.set(correlation_id)


def clear_correlation_id() -> None:
    structlog.contextvars.clear_contextvars()
    _correlation_id_var.set("-")


def get_correlation_id() -> str:
    return _correlation_id_var.get()


def get_logger(name: str = "studyaid") -> structlog.BoundLogger:
    configure_logging()
    return structlog.get_logger(name)


class PipelineMetrics:
    """Prometheus metrics for ingestion stages."""

    extraction_latency = Histogram(
        "studyaid_extraction_duration_seconds",
        "Time spent extracting text from a document.",
        buckets=(0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0),
    )
    extracted_characters = Histogram(
        "studyaid_extracted_characters",
        "Characters of text recovered per document.",
        buckets=(0, 100, 1000, 5000, 20000, 100000, 500000),
    )
    extraction_strategy = Counter(
        "studyaid_extraction_strategy_total",
        "Documents by the extraction strategy that produced their text.",
        ["strategy"],
    )
    summarization_latency = Histogram(
        "studyaid_summarization_duration_seconds",
        "Time spent generating and decoding summaries.",
        buckets=(0.05, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0),
    )
    summary_sections = Histogram(
        "studyaid_summary_section_count",
        "Summary sections returned per document.",
        buckets=(1, 2, 3, 5, 8, 10),
    )
    decode_strategy = Counter(
        "studyaid_decode_strategy_total",
        "Summaries by the decode strategy that accepted the backend output.",
        ["strategy"],
    )
    embedding_latency = Histogram(
        "studyaid_embedding_duration_seconds",
        "Time spent computing document embeddings.",
        buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0),
    )
    stage_failures = Counter(
        "studyaid_stage_failures_total",
        "Failures per pipeline stage.",
        ["stage"],
    )

    @classmethod
    def observe_extraction(cls, duration_seconds: float, characters: int, strategy: str) -> None:
        cls.extraction_latency.observe(duration_seconds)
        cls.extracted_characters.observe(characters)
        cls.extraction_strategy.labels(strategy=strategy).inc()

    @classmethod
    def observe_summarization(cls, duration_seconds: float, section_count: int, strategy: str) -> None:
        cls.summarization_latency.observe(duration_seconds)
        cls.summary_sections.observe(section_count)
        cls.decode_strategy.labels(strategy=strategy).inc()

    @classmethod
    def observe_embedding(cls, duration_seconds: float) -> None:
        cls.embedding_latency.observe(duration_seconds)

    @classmethod
    def record_failure(cls, stage: str) -> None:
        cls.stage_failures.labels(stage=stage).inc()


class TimedSection:
    """Context manager capturing elapsed time for metrics."""

    def __init__(self, callback=None) -> None:
        self._callback = callback
        self._start = 0.0
        self.duration = 0.0

    def __enter__(self) -> "TimedSection":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: D401
        self.duration = time.perf_counter() - self._start
        if self._callback is not None:
            self._callback(self.duration)


__all__ = [
    "PipelineMetrics",
    "TimedSection",
    "bind_correlation_id",
    "clear_correlation_id",
    "configure_logging",
    "get_correlation_id",
    "get_logger",
]
