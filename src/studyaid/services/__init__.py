"""Summarization services: chunking, generation backends and output decoding."""

from .decoding import DecodedSummaries, NO_SUMMARY_MESSAGE, decode_summaries
from .generation import (
    ChatOpenAIGenerator,
    GenerationBackend,
    GenerationConfig,
    GenerationUnavailable,
    QwenGenerator,
    TemplateGenerator,
    build_generator,
)
from .splitter import ChunkerConfig, TextChunker
from .summarizer import Summarizer, SummarizerConfig

__all__ = [
    "ChatOpenAIGenerator",
    "ChunkerConfig",
    "DecodedSummaries",
    "GenerationBackend",
    "GenerationConfig",
    "GenerationUnavailable",
    "NO_SUMMARY_MESSAGE",
    "QwenGenerator",
    "Summarizer",
    "SummarizerConfig",
    "TemplateGenerator",
    "TextChunker",
    "build_generator",
    "decode_summaries",
]
