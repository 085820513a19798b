"""Command-line entry point for ingesting a PDF without the HTTP service."""

from __future__ import annotations

import argparse
import json
import mimetypes
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Sequence

from studyaid.config import Settings, get_settings
from studyaid.ingestion import ExtractionFailure, UploadRejected, build_pipeline, validate_document
from studyaid.metrics.observability import configure_logging
from studyaid.models import IngestionResult, RawDocument


def result_to_dict(result: IngestionResult, *, include_embedding: bool = False) -> dict:
    payload = asdict(result)
    payload["strategy_used"] = result.strategy_used.value
    payload["summary_sections"] = list(result.summary_sections)
    if include_embedding and result.embedding_vector is not None:
        payload["embedding_vector"] = list(result.embedding_vector)
    else:
        payload["embedding_vector"] = None
        payload["embedding_dim"] = len(result.embedding_vector) if result.embedding_vector is not None else 0
    return payload


def load_document(path: Path) -> RawDocument:
    mime_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    return RawDocument(data=path.read_bytes(), mime_type=mime_type, file_name=path.name)


def run_ingestion(
    path: Path,
    *,
    summary_count: int | None = None,
    settings: Settings | None = None,
    json_out: Path | None = None,
    include_embedding: bool = False,
) -> dict:
    settings = settings or get_settings()
    document = load_document(path)
    validate_document(document, settings.max_upload_bytes)
    pipeline = build_pipeline(settings)
    result = pipeline.ingest(document, summary_count)
    payload = result_to_dict(result, include_embedding=include_embedding)
    if json_out:
        json_out.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    return payload


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Extract, summarize and embed a PDF document.")
    parser.add_argument("path", type=Path, help="PDF file to ingest")
    parser.add_argument("--summaries", type=int, default=None, help="Number of summary sections to request")
    parser.add_argument("--json-out", type=Path, default=None, help="Optional path to write the JSON result")
    parser.add_argument("--log-level", default=None, help="Log level for pipeline diagnostics on stderr")
    parser.add_argument(
        "--include-embedding",
        action="store_true",
        help="Include the full embedding vector in the output",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv if argv is not None else sys.argv[1:])
    settings = get_settings()
    configure_logging(args.log_level or settings.log_level, json_logs=False, force=True)
    if not args.path.is_file():
        print(f"File not found: {args.path}", file=sys.stderr)
        return 2
    try:
        payload = run_ingestion(
            args.path,
            summary_count=args.summaries,
            settings=settings,
            json_out=args.json_out,
            include_embedding=args.include_embedding,
        )
    except (UploadRejected, ExtractionFailure, ValueError) as exc:
        print(f"Ingestion failed: {exc}", file=sys.stderr)
        return 1
    print(json.dumps(payload, indent=2))
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    sys.exit(main())
