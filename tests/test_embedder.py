"""Tests for the embedder's prompt prefixes (model is stubbed)."""

import numpy as np

from snapsight.embeddings.embedder import Embedder


class StubModel:
    def __init__(self):
        self.seen = []

    def encode(self, text):
        self.seen.append(text)
        return np.array([0.5, 0.25])


def test_e5_prefixes():
    embedder = Embedder({"embedding_model": "intfloat/e5-large-v2"})
    embedder._model = StubModel()

    assert embedder.embed_passage("a cat") == [0.5, 0.25]
    embedder.embed_query("cats")
    assert embedder._model.seen == ["passage: a cat", "query: cats"]


def test_other_models_get_raw_text():
    embedder = Embedder({"embedding_model": "sentence-transformers/all-MiniLM-L6-v2"})
    embedder._model = StubModel()
    embedder.embed_passage("a cat")
    assert embedder._model.seen == ["a cat"]
