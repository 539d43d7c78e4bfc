"""Append-only JSON vector store with cosine-similarity lookup."""

import logging
from pathlib import Path
from typing import Any, Sequence

import numpy as np

from ..models import SimilarityResult, VectorEntry
from .base import JsonFileStore

logger = logging.getLogger(__name__)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """dot(a, b) / (|a| * |b|), or 0.0 when either vector has zero magnitude."""
    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.dot(va, vb) / (norm_a * norm_b))


def _is_entry(item: Any) -> bool:
    return (
        isinstance(item, dict)
        and bool(item.get("id"))
        and isinstance(item.get("embedding") or [], list)
    )


class SimilarityIndex(JsonFileStore):
    """Persists VectorEntries as a JSON array and ranks them by cosine similarity.

    Queries are a linear scan over every stored entry, which is fine for a
    local collection of a few thousand images.

    If ``dimension`` is given, ``add`` rejects embeddings of any other
    length. Either way, ``query`` skips entries whose length differs from
    the query vector.
    """

    def __init__(self, store_path: str | Path, dimension: int | None = None):
        super().__init__(store_path)
        self.dimension = dimension

    def empty(self) -> list[dict[str, Any]]:
        return []

    def validate(self, data: Any) -> bool:
        return isinstance(data, list)

    def entries(self) -> list[VectorEntry]:
        raw = self.read()
        entries = [VectorEntry.from_dict(e) for e in raw if _is_entry(e)]
        skipped = len(raw) - len(entries)
        if skipped:
            logger.warning(f"Skipped {skipped} malformed vector entries in {self.path}")
        return entries

    def count(self) -> int:
        return len(self.entries())

    def __len__(self) -> int:
        return self.count()

    def add(self, entry: VectorEntry) -> VectorEntry:
        """Append an entry. Entries sharing an id are all kept."""
        if self.dimension is not None and len(entry.embedding) != self.dimension:
            raise ValueError(
                f"Embedding has {len(entry.embedding)} dimensions, index expects {self.dimension}"
            )

        def apply(data: list[dict[str, Any]]) -> tuple[None, bool]:
            data.append(entry.to_dict())
            return None, True

        self.update(apply)
        return entry

    def query(
        self, vector: Sequence[float], top_k: int = 3, exclude_id: str | None = None
    ) -> list[SimilarityResult]:
        """Top ``top_k`` entries by cosine similarity to ``vector``, best first.

        Ties keep their stored order. Entries whose id equals ``exclude_id``
        are left out before the cut, so they never take a slot.
        """
        if top_k <= 0:
            return []
        entries = [e for e in self.entries() if exclude_id is None or e.id != exclude_id]
        if not entries:
            return []

        dim = len(vector)
        comparable = [e for e in entries if len(e.embedding) == dim]
        skipped = len(entries) - len(comparable)
        if skipped:
            logger.warning(
                f"Skipped {skipped} vector(s) in {self.path} whose dimension differs from the query ({dim})"
            )

        scored = [(cosine_similarity(vector, e.embedding), e) for e in comparable]
        scored.sort(key=lambda s: s[0], reverse=True)
        return [
            SimilarityResult(id=e.id, summary=e.summary, score=score, ts=e.ts)
            for score, e in scored[:top_k]
        ]
