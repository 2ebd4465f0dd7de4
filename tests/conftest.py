"""
Shared fixtures for the osquery_rag test suite.

Nothing here touches the network or downloads a model: retrieval and
generation are replaced by stubs, and index tests use a small
bag-of-words encoder instead of sentence-transformers.
"""

import json

import numpy as np
import pytest

from osquery_rag.main import create_app
from osquery_rag.rag_engine import RAGEngine
from osquery_rag.vector_index import Passage


VALID_BUNDLE = {
    "macOSQuery": "SELECT name FROM apps WHERE name LIKE '%Chrome%';",
    "windowsQuery": "SELECT name FROM programs WHERE name LIKE '%Chrome%';",
    "linuxQuery": "SELECT name FROM deb_packages WHERE name LIKE '%chrome%';",
    "chromeOSQuery": "",
}


class StubRetriever:
    """Returns the same passages for every question and records calls."""

    def __init__(self, passages=None):
        self.passages = passages if passages is not None else [
            Passage(source="apps.table", text="apps table: name, bundle_identifier", score=0.1),
            Passage(source="programs.table", text="programs table: name, version", score=0.2),
        ]
        self.calls = []

    def retrieve(self, text, top_k=3):
        self.calls.append((text, top_k))
        return list(self.passages[:top_k])


class CapturingGenerator:
    """Records every prompt and answers with a canned response."""

    def __init__(self, response=None, error=None):
        self.response = json.dumps(VALID_BUNDLE) if response is None else response
        self.error = error
        self.prompts = []
        self.closed = False

    def generate(self, prompt):
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.response

    def close(self):
        self.closed = True


class FakeEncoder:
    """Deterministic bag-of-words encoder over a fixed vocabulary.

    Rows are L2-normalized so that FAISS L2 distance ranks like cosine
    similarity.
    """

    def __init__(self, vocabulary):
        self.vocabulary = {word: i for i, word in enumerate(vocabulary)}

    def encode(self, texts, convert_to_numpy=True):
        vecs = np.zeros((len(texts), len(self.vocabulary)), dtype=np.float32)
        for row, text in enumerate(texts):
            for word in text.lower().split():
                col = self.vocabulary.get(word.strip(".,?:;"))
                if col is not None:
                    vecs[row, col] += 1.0
            norm = np.linalg.norm(vecs[row])
            if norm:
                vecs[row] /= norm
        return vecs


@pytest.fixture
def retriever():
    return StubRetriever()


@pytest.fixture
def generator():
    return CapturingGenerator()


@pytest.fixture
def engine(retriever, generator):
    return RAGEngine(retriever, generator, top_k=2)


@pytest.fixture
def client(engine):
    app = create_app(engine)
    app.config["TESTING"] = True
    return app.test_client()


@pytest.fixture
def fake_encoder():
    return FakeEncoder(
        ["processes", "running", "pid", "users", "accounts", "uid", "username", "local", "table"]
    )
