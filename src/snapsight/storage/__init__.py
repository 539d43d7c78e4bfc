"""JSON file stores for analyses and embeddings."""

from .base import StorageUnavailableError
from .records import RecordStore
from .vectors import SimilarityIndex, cosine_similarity

__all__ = [
    "RecordStore",
    "SimilarityIndex",
    "StorageUnavailableError",
    "cosine_similarity",
    "get_record_store",
    "get_similarity_index",
]


def get_record_store(config: dict) -> RecordStore:
    """Factory: the analysis record store at ``config["db_path"]``."""
    return RecordStore(config["db_path"])


def get_similarity_index(config: dict) -> SimilarityIndex:
    """Factory: the vector index at ``config["vector_store_path"]``."""
    return SimilarityIndex(config["vector_store_path"], dimension=config.get("vector_dimension"))
