"""Text embedding using sentence-transformers."""

from typing import Any


class Embedder:
    """Turns analysis summaries into vectors for the similarity index."""

    def __init__(self, config: dict[str, Any]):
        self.model_name = config.get("embedding_model", "intfloat/e5-large-v2")
        self._model = None

    @property
    def model(self):
        """Lazy-load the embedding model."""
        if self._model is None:
            from sentence_transformers import SentenceTransformer
            self._model = SentenceTransformer(self.model_name)
        return self._model

    @property
    def _uses_e5_prefixes(self) -> bool:
        return "e5" in self.model_name.lower()

    def _encode(self, text: str) -> list[float]:
        return self.model.encode(text).tolist()

    def embed_passage(self, text: str) -> list[float]:
        """Embed a stored summary."""
        # e5 models need "passage: " prefix for documents
        if self._uses_e5_prefixes:
            text = f"passage: {text}"
        return self._encode(text)

    def embed_query(self, text: str) -> list[float]:
        """Embed free text used to look up similar analyses."""
        if self._uses_e5_prefixes:
            text = f"query: {text}"
        return self._encode(text)
