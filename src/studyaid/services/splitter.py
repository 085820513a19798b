"""Overlapping text chunking for model input limits."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

from langchain_text_splitters import RecursiveCharacterTextSplitter

from studyaid.models import TextChunk


@dataclass(frozen=True)
class ChunkerConfig:
    """Configuration for text chunking."""

    chunk_size: int = 4000
    chunk_overlap: int = 200


class TextChunker:
    """Split text into ordered chunks that overlap by at most ``chunk_overlap``."""

    def __init__(self, config: ChunkerConfig | None = None) -> None:
        self._config = config or ChunkerConfig()
        if self._config.chunk_size <= 0:
            raise ValueError("chunk_size must be positive.")
        if not 0 <= self._config.chunk_overlap < self._config.chunk_size:
            raise ValueError("chunk_overlap must be >= 0 and smaller than chunk_size.")
        self._splitter = RecursiveCharacterTextSplitter(
            chunk_size=self._config.chunk_size,
            chunk_overlap=self._config.chunk_overlap,
            separators=["\n\n", "\n", " ", ""],
            strip_whitespace=False,
            add_start_index=True,
        )

    @property
    def config(self) -> ChunkerConfig:
        return self._config

    def split(self, text: str) -> List[TextChunk]:
        if len(text) <= self._config.chunk_size:
            return [TextChunk(text=text, start=0)]
        documents = self._splitter.create_documents([text])
        return [
            TextChunk(text=document.page_content, start=int(document.metadata["start_index"]))
            for document in documents
        ]
