"""Text-generation backends used for summarization."""

from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import dataclass
from typing import Protocol

from langchain_core.language_models import BaseChatModel
from langchain_openai import ChatOpenAI

from studyaid.config import Settings

LOGGER = logging.getLogger(__name__)

DOCUMENT_HEADER = "Text content:"
FORMAT_HEADER = "Respond with"

_SECTION_COUNT = re.compile(r"Create (\d+) comprehensive summary sections")
_SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+")


class GenerationUnavailable(RuntimeError):
    """Raised when a generation or embedding backend cannot serve a request."""


@dataclass(frozen=True)
class GenerationConfig:
    """Configuration for text generation."""

    model: str = "gpt-4o"
    temperature: float = 0.2
    max_new_tokens: int = 1024
    timeout_seconds: float = 60.0
    api_key: str | None = None
    device: str | None = None


class GenerationBackend(Protocol):
    """Protocol describing generation behaviour."""

    def generate(self, prompt: str) -> str:
        """Return the backend's free-text completion for ``prompt``."""


class TemplateGenerator:
    """Deterministic generator used for tests and offline environments.

    Reads the document text that follows the prompt's ``Text content:`` header
    and answers with its leading sentences grouped into a ``summaries`` JSON
    object, mimicking the contract a hosted model is asked to honour.
    """

    def __init__(self, default_sections: int = 5) -> None:
        self._default_sections = default_sections

    def generate(self, prompt: str) -> str:
        match = _SECTION_COUNT.search(prompt)
        count = int(match.group(1)) if match else self._default_sections
        document = prompt.rsplit(DOCUMENT_HEADER, 1)[-1]
        document = document.split(FORMAT_HEADER, 1)[0]
        sentences = [s.strip() for s in _SENTENCE_BOUNDARY.split(" ".join(document.split())) if s.strip()]
        if not sentences:
            return json.dumps({"summaries": []})
        size = max(1, math.ceil(len(sentences) / max(count, 1)))
        sections = [" ".join(sentences[i : i + size]) for i in range(0, len(sentences), size)]
        return json.dumps({"summaries": sections[:count]})


class ChatOpenAIGenerator:
    """Generator that calls an OpenAI chat model through LangChain."""

    def __init__(self, config: GenerationConfig | None = None, client: BaseChatModel | None = None) -> None:
        self._config = config or GenerationConfig()
        self._client = client
        if self._client is not None:
            return
        kwargs = {"api_key": self._config.api_key} if self._config.api_key else {}
        try:
            self._client = ChatOpenAI(
                model=self._config.model,
                temperature=self._config.temperature,
                max_tokens=self._config.max_new_tokens,
                timeout=self._config.timeout_seconds,
                **kwargs,
            )
            LOGGER.info("Configured chat model %s", self._config.model)
        except Exception as exc:  # pragma: no cover - missing key or client misconfiguration
            LOGGER.warning("Chat model unavailable: %s", exc)
            self._client = None

    def generate(self, prompt: str) -> str:
        if self._client is None:
            raise GenerationUnavailable("Chat model is not configured")
        try:
            response = self._client.invoke(prompt)
        except Exception as exc:
            raise GenerationUnavailable(f"Chat completion failed: {exc}") from exc
        content = response.content
        if isinstance(content, str):
            return content
        return json.dumps(content)


class QwenGenerator:
    """Generator that optionally calls into local Qwen models via Transformers."""

    _SYSTEM_PROMPT = (
        "You are an expert at summarizing study material. Follow the output format "
        "instructions exactly and return only the requested JSON object."
    )

    def __init__(self, config: GenerationConfig | None = None, fallback: GenerationBackend | None = None) -> None:
        self._config = config or GenerationConfig(model="Qwen/Qwen2.5-1.8B-Instruct")
        self._fallback = fallback
        self._tokenizer = None
        self._model = None
        try:
            from transformers import AutoModelForCausalLM, AutoTokenizer

            self._tokenizer = AutoTokenizer.from_pretrained(self._config.model, trust_remote_code=True)
            self._model = AutoModelForCausalLM.from_pretrained(self._config.model, trust_remote_code=True)
            if self._tokenizer.pad_token is None and self._tokenizer.eos_token is not None:
                self._tokenizer.pad_token = self._tokenizer.eos_token
            if getattr(self._model.config, "pad_token_id", None) is None and self._tokenizer.pad_token_id is not None:
                self._model.config.pad_token_id = self._tokenizer.pad_token_id
            if self._config.device:
                self._model.to(self._config.device)
            LOGGER.info("Loaded generation model %s", self._config.model)
        except Exception as exc:  # pragma: no cover - optional heavy dependency
            LOGGER.warning("Local generation model unavailable: %s", exc)
            self._tokenizer = None
            self._model = None

    def generate(self, prompt: str) -> str:
        if self._tokenizer is None or self._model is None:
            if self._fallback is None:
                raise GenerationUnavailable(f"Local model {self._config.model} is not loaded")
            return self._fallback.generate(prompt)
        try:
            return self._generate_local(prompt)
        except Exception as exc:  # pragma: no cover - runtime model errors
            raise GenerationUnavailable(f"Local generation failed: {exc}") from exc

    def _generate_local(self, prompt: str) -> str:  # pragma: no cover - requires model weights
        import torch

        messages = [
            {"role": "system", "content": self._SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ]
        if hasattr(self._tokenizer, "apply_chat_template"):
            rendered = self._tokenizer.apply_chat_template(messages, tokenize=False, add_generation_prompt=True)
        else:
            rendered = f"{self._SYSTEM_PROMPT}\n\n{prompt}"
        tokenized = self._tokenizer(rendered, return_tensors="pt", padding=True)
        input_ids = tokenized.input_ids
        attention_mask = tokenized.attention_mask
        prompt_length = input_ids.shape[1]
        if self._config.device:
            input_ids = input_ids.to(self._config.device)
            attention_mask = attention_mask.to(self._config.device)
        with torch.no_grad():
            output = self._model.generate(
                input_ids,
                attention_mask=attention_mask,
                max_new_tokens=self._config.max_new_tokens,
                temperature=self._config.temperature,
            )
        generated_tokens = output[0][prompt_length:]
        return self._tokenizer.decode(generated_tokens, skip_special_tokens=True).strip()


def build_generator(settings: Settings) -> GenerationBackend:
    """Construct the generation backend selected by ``generator_provider``."""

    if settings.generator_provider == "openai":
        return ChatOpenAIGenerator(
            GenerationConfig(
                model=settings.generator_model,
                temperature=settings.generator_temperature,
                max_new_tokens=settings.generator_max_new_tokens,
                timeout_seconds=settings.generator_timeout_seconds,
                api_key=settings.openai_api_key,
            ),
        )
    if settings.generator_provider == "qwen":
        return QwenGenerator(
            GenerationConfig(
                model=settings.qwen_model,
                temperature=settings.generator_temperature,
                max_new_tokens=settings.generator_max_new_tokens,
            ),
            fallback=TemplateGenerator(settings.summary_count),
        )
    return TemplateGenerator(settings.summary_count)
