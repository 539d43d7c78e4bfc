"""Flat-file JSON store for image analyses, keyed by content hash."""

import logging
from collections import Counter
from pathlib import Path
from typing import Any

from ..models import AnalysisRecord, generate_analysis_id, parse_timestamp, utc_timestamp
from .base import JsonFileStore

logger = logging.getLogger(__name__)

SEARCH_FIELDS = ("image_summary", "detailed_explanation", "domain", "extracted_text", "filename")
RECENT_LIMIT = 10
SUMMARY_PREVIEW_CHARS = 100


def _is_record(item: Any) -> bool:
    return isinstance(item, dict) and bool(item.get("id") or item.get("imageHash"))


class RecordStore(JsonFileStore):
    """Stores AnalysisRecords in one JSON document.

    Layout: ``{"analyses": [...], "metadata": {"createdAt", "totalAnalyses"}}``.
    Every call re-reads the file; nothing is cached between calls. A corrupt
    file reads as an empty store (with a logged warning), while a failed
    write raises StorageUnavailableError.
    """

    def __init__(self, db_path: str | Path):
        super().__init__(db_path)
        self.ensure_exists()

    def empty(self) -> dict[str, Any]:
        return {
            "analyses": [],
            "metadata": {"createdAt": utc_timestamp(), "totalAnalyses": 0},
        }

    def validate(self, data: Any) -> bool:
        return isinstance(data, dict) and isinstance(data.get("analyses", []), list)

    def _records(self) -> list[AnalysisRecord]:
        analyses = self.read().get("analyses", [])
        records = [AnalysisRecord.from_dict(a) for a in analyses if _is_record(a)]
        skipped = len(analyses) - len(records)
        if skipped:
            logger.warning(f"Skipped {skipped} malformed analysis entries in {self.path}")
        return records

    def save(self, fields: dict[str, Any]) -> AnalysisRecord:
        """Insert or update the record for ``fields["image_hash"]``.

        Missing fields take their defaults on insert. On update, only the
        given fields overwrite the stored ones and the record keeps its
        position. ``timestamp`` is always refreshed.
        """
        unknown = set(fields) - AnalysisRecord.field_names()
        if unknown:
            raise TypeError(f"Unknown analysis field(s): {', '.join(sorted(unknown))}")

        changes = {k: v for k, v in fields.items() if k != "timestamp"}
        changes["timestamp"] = utc_timestamp()

        def apply(data: dict[str, Any]) -> tuple[AnalysisRecord, bool]:
            analyses = data.setdefault("analyses", [])
            metadata = data.setdefault("metadata", {})
            image_hash = changes.get("image_hash") or changes.get("id")

            for i, existing in enumerate(analyses):
                if image_hash is not None and _is_record(existing) and existing.get("imageHash") == image_hash:
                    merged = AnalysisRecord.from_dict(existing)
                    for k, v in changes.items():
                        setattr(merged, k, v)
                    merged.image_hash = image_hash
                    analyses[i] = {**existing, **merged.to_dict()}
                    return merged, True

            record_id = changes.get("id") or generate_analysis_id()
            record = AnalysisRecord(
                **{**changes, "id": record_id, "image_hash": image_hash or record_id}
            )
            analyses.append(record.to_dict())
            metadata["totalAnalyses"] = len(analyses)
            return record, True

        record = self.update(apply)
        logger.debug(f"Saved analysis {record.id} ({record.image_hash})")
        return record

    def get_by_id(self, record_id: str) -> AnalysisRecord | None:
        """First record whose id or image hash equals ``record_id``."""
        for record in self._records():
            if record.id == record_id or record.image_hash == record_id:
                return record
        return None

    def get_by_hash(self, image_hash: str) -> AnalysisRecord | None:
        for record in self._records():
            if record.image_hash == image_hash:
                return record
        return None

    def search(self, query: str) -> list[AnalysisRecord]:
        """Case-insensitive substring search over the text fields and detected elements."""
        needle = query.lower()
        matches = []
        for record in self._records():
            haystacks = [getattr(record, f) or "" for f in SEARCH_FIELDS]
            haystacks.extend(record.detected_elements or [])
            if any(needle in str(h).lower() for h in haystacks):
                matches.append(record)
        return matches

    def delete(self, record_id: str) -> bool:
        """Remove every record whose id or image hash equals ``record_id``."""

        def apply(data: dict[str, Any]) -> tuple[bool, bool]:
            analyses = data.get("analyses", [])
            kept = [
                a for a in analyses
                if not _is_record(a) or record_id not in (a.get("id"), a.get("imageHash"))
            ]
            removed = len(kept) < len(analyses)
            if removed:
                data["analyses"] = kept
                data.setdefault("metadata", {})["totalAnalyses"] = len(kept)
            return removed, removed

        removed = self.update(apply)
        if removed:
            logger.debug(f"Deleted analysis {record_id}")
        return removed

    def count(self) -> int:
        return len(self._records())

    def __len__(self) -> int:
        return self.count()

    def stats(self) -> dict[str, Any]:
        """Totals, per-domain and per-confidence counts, and the 10 newest records.

        Keys follow the persisted camelCase layout.
        """
        records = self._records()
        domains = Counter(r.domain or "Unknown" for r in records)
        confidence = Counter(r.confidence_level or "Medium" for r in records)

        newest = sorted(records, key=lambda r: parse_timestamp(r.timestamp), reverse=True)
        recent = [
            {
                "id": r.id,
                "timestamp": r.timestamp,
                "domain": r.domain,
                "imageSummary": (r.image_summary or "")[:SUMMARY_PREVIEW_CHARS] + "...",
            }
            for r in newest[:RECENT_LIMIT]
        ]

        return {
            "totalAnalyses": len(records),
            "domains": dict(domains),
            "confidenceLevels": dict(confidence),
            "recentAnalyses": recent,
        }

    # Kept last so the method name does not shadow the builtin in annotations above.
    def list(self, limit: int | None = None, offset: int = 0) -> list[AnalysisRecord]:
        """Records newest first. Equal timestamps keep their stored order."""
        records = sorted(
            self._records(), key=lambda r: parse_timestamp(r.timestamp), reverse=True
        )
        if limit:
            return records[offset:offset + limit]
        return records
