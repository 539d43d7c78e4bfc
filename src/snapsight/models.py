"""Data models used throughout SnapSight."""

import random
import string
import time
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from typing import Any

_ID_ALPHABET = string.digits + string.ascii_lowercase

# Attribute name -> key used in the persisted JSON document.
RECORD_KEYS = {
    "id": "id",
    "image_hash": "imageHash",
    "timestamp": "timestamp",
    "filename": "filename",
    "image_summary": "imageSummary",
    "detected_elements": "detectedElements",
    "detailed_explanation": "detailedExplanation",
    "real_world_applications": "realWorldApplications",
    "educational_insight": "educationalInsight",
    "confidence_level": "confidenceLevel",
    "domain": "domain",
    "extracted_text": "extractedText",
    "caption": "caption",
    "raw_vision": "rawVision",
    "related": "related",
    "embedding": "embedding",
    "metadata": "metadata",
}


def utc_timestamp() -> str:
    """Current time as an ISO-8601 UTC string, e.g. "2026-01-05T10:00:00.123456Z"."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="microseconds").replace("+00:00", "Z")


def parse_timestamp(value: str | None) -> datetime:
    """Parse an ISO-8601 timestamp; unparseable values sort as the oldest."""
    if not value or not isinstance(value, str):
        return datetime.min.replace(tzinfo=timezone.utc)
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return datetime.min.replace(tzinfo=timezone.utc)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def generate_analysis_id() -> str:
    """Time-based id with a random suffix: analysis_<epoch ms>_<9 chars>."""
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"analysis_{int(time.time() * 1000)}_{suffix}"


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class AnalysisRecord:
    """One stored image analysis, keyed by the processed image's content hash."""
    id: str
    image_hash: str
    timestamp: str = field(default_factory=utc_timestamp)
    filename: str = "unknown"
    image_summary: str = ""
    detected_elements: list[str] = field(default_factory=list)
    detailed_explanation: str = ""
    real_world_applications: str = ""
    educational_insight: str = ""
    confidence_level: str = "Medium"
    domain: str = "Unknown"
    extracted_text: str = ""
    caption: str = ""
    raw_vision: str = ""
    related: list[dict[str, Any]] = field(default_factory=list)
    embedding: list[float] | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Serialize using the persisted (camelCase) keys."""
        return {RECORD_KEYS[k]: v for k, v in asdict(self).items()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AnalysisRecord":
        """Build from a persisted dict. Unknown keys are ignored."""
        kwargs = {}
        for attr, key in RECORD_KEYS.items():
            if key in data:
                kwargs[attr] = data[key]
            elif attr in data:
                kwargs[attr] = data[attr]
        kwargs.setdefault("id", kwargs.get("image_hash") or generate_analysis_id())
        kwargs.setdefault("image_hash", kwargs["id"])
        return cls(**kwargs)

    @classmethod
    def field_names(cls) -> set[str]:
        return {f.name for f in fields(cls)}


@dataclass
class SimilarityResult:
    """A ranked hit from a similarity query. Never persisted on its own."""
    id: str
    summary: str
    score: float
    ts: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class VectorEntry:
    """An embedding stored in the similarity index."""
    id: str
    summary: str
    embedding: list[float]
    ts: int = field(default_factory=now_ms)
    meta: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "VectorEntry":
        return cls(
            id=data["id"],
            summary=data.get("summary") or "",
            embedding=list(data.get("embedding") or []),
            ts=data.get("ts") if data.get("ts") is not None else now_ms(),
            meta=data.get("meta") or {},
        )
