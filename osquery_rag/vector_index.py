"""
Retrieval index (SentenceTransformers + FAISS).

- Splits documents into overlapping word windows
- Embeds the chunks (all-MiniLM-L6-v2 by default)
- Stores them in a flat L2 FAISS index

Usage:
    index = VectorIndex.build(documents)
    passages = index.retrieve("which hosts run docker?", top_k=3)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

# ---- FAISS ----
try:
    import faiss  # type: ignore
except ImportError as e:
    raise RuntimeError("faiss is required. Install 'faiss-cpu' via pip.") from e

# ---- Sentence Transformers ----
try:
    from sentence_transformers import SentenceTransformer  # type: ignore
except ImportError as e:
    raise RuntimeError("sentence-transformers is required. Install via pip.") from e

from osquery_rag.corpus import Document
from osquery_rag.errors import IndexBuildError

logger = logging.getLogger(__name__)

DEFAULT_EMBEDDING_MODEL = "sentence-transformers/all-MiniLM-L6-v2"


@dataclass(frozen=True)
class Passage:
    """A retrieved chunk with the document it came from and its L2 distance."""

    source: str
    text: str
    score: float


def chunk_words(text: str, chunk_size: int, chunk_overlap: int) -> List[str]:
    words = text.split()
    if not words:
        return []
    step = max(1, chunk_size - chunk_overlap)
    chunks: List[str] = []
    for start in range(0, len(words), step):
        chunks.append(" ".join(words[start:start + chunk_size]))
        if start + chunk_size >= len(words):
            break
    return chunks


class VectorIndex:
    """Read-only nearest-neighbour index over the corpus chunks.

    Instances are built once with :meth:`build` and then shared by every
    request; nothing mutates them until :meth:`close` is called on shutdown.
    """

    def __init__(self, encoder, index, chunks: List[str], chunk_sources: List[str]):
        self.encoder = encoder
        self.index = index
        self.chunks = chunks
        self.chunk_sources = chunk_sources

    @classmethod
    def build(
        cls,
        documents: Sequence[Document],
        embedding_model_name: str = DEFAULT_EMBEDDING_MODEL,
        chunk_size: int = 500,
        chunk_overlap: int = 50,
        encoder=None,
    ) -> "VectorIndex":
        """Chunk, embed and index ``documents``.

        ``encoder`` may be any object exposing
        ``encode(texts, convert_to_numpy=True)``; when omitted a
        ``SentenceTransformer`` is loaded from ``embedding_model_name``.

        Raises:
            IndexBuildError: if there is nothing to index or the embedding
                model cannot be loaded or run.
        """
        if not documents:
            raise IndexBuildError("Cannot build an index from an empty document set")

        chunks: List[str] = []
        chunk_sources: List[str] = []
        for doc in documents:
            for chunk in chunk_words(doc.text, chunk_size, chunk_overlap):
                chunks.append(chunk)
                chunk_sources.append(doc.source)
        if not chunks:
            raise IndexBuildError("Documents produced no chunks to index")
        logger.info("Created %d chunks from %d documents", len(chunks), len(documents))

        if encoder is None:
            try:
                encoder = SentenceTransformer(embedding_model_name)
            except Exception as exc:
                raise IndexBuildError(
                    f"Could not load embedding model {embedding_model_name!r}: {exc}"
                ) from exc

        try:
            embeddings = np.asarray(
                encoder.encode(chunks, convert_to_numpy=True), dtype=np.float32
            )
        except Exception as exc:
            raise IndexBuildError(f"Embedding the corpus failed: {exc}") from exc
        if embeddings.ndim != 2 or embeddings.shape[0] != len(chunks):
            raise IndexBuildError(
                f"Embedding model returned shape {embeddings.shape} for {len(chunks)} chunks"
            )
        logger.info("Created embeddings of shape %s", embeddings.shape)

        index = faiss.IndexFlatL2(int(embeddings.shape[1]))
        index.add(embeddings)
        logger.info("Built FAISS index with %d vectors", index.ntotal)
        return cls(encoder, index, chunks, chunk_sources)

    def __len__(self) -> int:
        return len(self.chunks)

    def retrieve(self, text: str, top_k: int = 3) -> List[Passage]:
        """Return up to ``top_k`` passages closest to ``text``, nearest first."""
        if self.index is None or self.encoder is None:
            raise IndexBuildError("The index has been closed")
        if top_k < 1:
            raise ValueError("top_k must be at least 1")
        k = min(top_k, len(self.chunks))

        try:
            q = np.asarray(
                self.encoder.encode([text], convert_to_numpy=True), dtype=np.float32
            )
        except Exception as exc:
            raise IndexBuildError(f"Embedding the query failed: {exc}") from exc
        D, I = self.index.search(q, k)

        passages: List[Passage] = []
        for dist, idx in zip(D[0], I[0]):
            if 0 <= idx < len(self.chunks):
                passages.append(
                    Passage(source=self.chunk_sources[idx], text=self.chunks[idx], score=float(dist))
                )
        return passages

    def close(self) -> None:
        """Drop the FAISS index and the embedding model."""
        self.index = None
        self.encoder = None
