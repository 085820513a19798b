"""Summary section generation on top of a text-generation backend."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

from langchain_core.output_parsers import JsonOutputParser
from langchain_core.prompts import PromptTemplate
from pydantic import BaseModel, Field

from studyaid.metrics.observability import PipelineMetrics, TimedSection, get_logger
from studyaid.models import SummaryOutcome
from studyaid.services.decoding import FALLBACK, NO_SUMMARY_MESSAGE, decode_summaries
from studyaid.services.generation import DOCUMENT_HEADER, FORMAT_HEADER, GenerationBackend
from studyaid.services.splitter import TextChunker

TRUNCATION_MARKER = "..."
UNAVAILABLE = "unavailable"

SUMMARY_PROMPT = PromptTemplate.from_template(
    "You are an expert at summarizing complex documents, especially scientific papers.\n\n"
    "Create {num_sections} comprehensive summary sections from the text content below.\n"
    "Each section should cover a major topic or theme from the document.\n"
    "Each section should be 100-150 words long, start with a topic sentence, and be "
    "detailed enough to understand the key concepts on its own.\n\n"
    "Very important: your response MUST be a valid JSON object with a 'summaries' field "
    "containing an array of exactly {num_sections} strings, one string per section. "
    "Do not include any explanations, just the JSON object.\n\n"
    "{document_header}\n{text}\n\n"
    "{format_instructions}"
)


class SummaryPayload(BaseModel):
    """Shape of the object the backend is asked to return."""

    summaries: List[str] = Field(description="One string per summary section, 100-150 words each, in document order.")


FORMAT_INSTRUCTIONS = (
    f"{FORMAT_HEADER} the JSON object only.\n\n"
    + JsonOutputParser(pydantic_object=SummaryPayload).get_format_instructions()
)


@dataclass(frozen=True)
class SummarizerConfig:
    """Configuration for summary generation."""

    target_count: int = 5
    input_limit: int = 12000


class Summarizer:
    """Turn document text into an ordered, bounded list of summary sections."""

    def __init__(
        self,
        generator: GenerationBackend,
        config: SummarizerConfig | None = None,
        chunker: TextChunker | None = None,
    ) -> None:
        self._generator = generator
        self._config = config or SummarizerConfig()
        self._chunker = chunker or TextChunker()
        self._logger = get_logger("summarizer")

    def build_prompt(self, text: str, target_count: int) -> str:
        return SUMMARY_PROMPT.format(
            num_sections=target_count,
            document_header=DOCUMENT_HEADER,
            text=text,
            format_instructions=FORMAT_INSTRUCTIONS,
        )

    def summarize(self, text: str, target_count: int | None = None) -> SummaryOutcome:
        count = self._config.target_count if target_count is None else target_count
        if count < 1:
            raise ValueError("target_count must be at least 1.")
        with TimedSection() as timer:
            outcome = self._summarize(text, count)
        PipelineMetrics.observe_summarization(timer.duration, len(outcome.sections), outcome.decode_strategy)
        self._logger.info(
            "summarize.complete",
            section_count=len(outcome.sections),
            target_count=count,
            decode_strategy=outcome.decode_strategy,
            truncated=outcome.truncated,
            chunk_count=outcome.chunk_count,
            duration_seconds=timer.duration,
        )
        return outcome

    def _summarize(self, text: str, count: int) -> SummaryOutcome:
        prepared, truncated = self._prepare(text)
        if not prepared.strip():
            return SummaryOutcome(
                sections=(NO_SUMMARY_MESSAGE,),
                decode_strategy=FALLBACK,
                truncated=truncated,
                warning="No text was available to summarize.",
            )
        chunk_count = len(self._chunker.split(prepared))
        try:
            content = self._generator.generate(self.build_prompt(prepared, count))
        except Exception as exc:  # noqa: BLE001 - backend failures degrade to the placeholder summary
            PipelineMetrics.record_failure("summarization")
            self._logger.error("summarize.generation_failed", error=str(exc), error_type=type(exc).__name__)
            return SummaryOutcome(
                sections=(NO_SUMMARY_MESSAGE,),
                decode_strategy=UNAVAILABLE,
                truncated=truncated,
                chunk_count=chunk_count,
                warning=f"Summary generation unavailable: {exc}",
            )
        decoded = decode_summaries(content, count)
        warning = None
        if decoded.strategy == FALLBACK:
            warning = "Summary output could not be decoded; using placeholder summary."
            self._logger.warning("summarize.decode_failed", preview=(content or "")[:200])
        elif decoded.degraded:
            warning = f"Summary output recovered with the {decoded.strategy} decoder."
            self._logger.warning("summarize.decode_degraded", decode_strategy=decoded.strategy)
        return SummaryOutcome(
            sections=decoded.sections[:count],
            decode_strategy=decoded.strategy,
            truncated=truncated,
            chunk_count=chunk_count,
            warning=warning,
        )

    def _prepare(self, text: str) -> tuple[str, bool]:
        limit = self._config.input_limit
        if len(text) <= limit:
            return text, False
        return text[:limit] + TRUNCATION_MARKER, True
