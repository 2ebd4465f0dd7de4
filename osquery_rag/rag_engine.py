"""
RAG Engine: question in, four-platform osquery SQL bundle out.

The engine composes two capabilities:

- a ``Retriever`` turning the question into ranked schema passages
  (normally :class:`osquery_rag.vector_index.VectorIndex`), and
- a ``Generator`` turning a prompt into raw text
  (normally :class:`osquery_rag.generator.OpenAIGenerator`).

Usage:
    engine = RAGEngine.from_settings(Settings.from_env())
    bundle = engine.answer_question("Which hosts have Chrome installed?")
    engine.close()
"""

from __future__ import annotations

import logging
from typing import List, Optional, Protocol

from osquery_rag.config import Settings
from osquery_rag.corpus import load_documents
from osquery_rag.errors import MalformedOutputError
from osquery_rag.generator import OpenAIGenerator
from osquery_rag.models import SQLBundle
from osquery_rag.prompts import FORMAT_PROMPT, SYSTEM_PROMPT, build_grounded_prompt, compose
from osquery_rag.validation import validate_sql_bundle
from osquery_rag.vector_index import Passage, VectorIndex

logger = logging.getLogger(__name__)


class Retriever(Protocol):
    def retrieve(self, text: str, top_k: int = 3) -> List[Passage]:
        ...


class Generator(Protocol):
    def generate(self, prompt: str) -> str:
        ...


class RAGEngine:
    """Orchestrates retrieval, prompt construction, generation and validation.

    The engine holds no per-request state, so one instance serves every
    request concurrently.
    """

    def __init__(
        self,
        retriever: Retriever,
        generator: Generator,
        top_k: int = 3,
        max_ctx_chars: int = 12000,
    ):
        self.retriever = retriever
        self.generator = generator
        self.top_k = top_k
        self.max_ctx_chars = max_ctx_chars

    @classmethod
    def from_settings(cls, settings: Settings, encoder=None) -> "RAGEngine":
        """Load the corpus, build the index and wire up the generator.

        Raises ``CorpusLoadError`` or ``IndexBuildError``; both are fatal at
        startup.
        """
        logger.info("Loading documents from %s", settings.data_dir)
        documents = load_documents(settings.data_dir)
        index = VectorIndex.build(
            documents,
            embedding_model_name=settings.embedding_model,
            chunk_size=settings.chunk_size,
            chunk_overlap=settings.chunk_overlap,
            encoder=encoder,
        )
        generator = OpenAIGenerator(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            base_url=settings.openai_base_url,
            temperature=settings.temperature,
            timeout_sec=settings.request_timeout,
        )
        return cls(index, generator, top_k=settings.top_k, max_ctx_chars=settings.max_context_chars)

    def build_prompt(self, question: str, passages: List[Passage]) -> str:
        composed = compose(SYSTEM_PROMPT, FORMAT_PROMPT, question)
        return build_grounded_prompt(composed, [p.text for p in passages], self.max_ctx_chars)

    def answer_question(self, question: str, top_k: Optional[int] = None) -> SQLBundle:
        passages = self.retriever.retrieve(question, top_k or self.top_k)
        logger.info(
            "Retrieved %d passages from %s",
            len(passages),
            sorted({p.source for p in passages}),
        )

        prompt = self.build_prompt(question, passages)
        logger.debug("Prompt sent to model:\n%s", prompt)
        raw = self.generator.generate(prompt)

        try:
            return validate_sql_bundle(raw)
        except MalformedOutputError as exc:
            logger.error("Rejected model output (%s): %r", exc.violation, exc.raw_output)
            raise

    def close(self) -> None:
        for part in (self.retriever, self.generator):
            close = getattr(part, "close", None)
            if callable(close):
                close()
