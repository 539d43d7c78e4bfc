"""Tests for the analysis record store."""

import json
import tempfile
import threading
from pathlib import Path

import pytest

from snapsight.storage import RecordStore, StorageUnavailableError
from snapsight.storage.base import JsonFileStore


def _store(tmpdir) -> RecordStore:
    return RecordStore(Path(tmpdir) / "analyses-db.json")


def _write_db(path: Path, analyses: list[dict]) -> None:
    path.write_text(json.dumps({
        "analyses": analyses,
        "metadata": {"createdAt": "2026-01-01T00:00:00.000Z", "totalAnalyses": len(analyses)},
    }))


def test_store_initialized_on_creation():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = _store(tmpdir)
        data = json.loads(store.path.read_text())
        assert data["analyses"] == []
        assert data["metadata"]["totalAnalyses"] == 0
        assert "createdAt" in data["metadata"]


def test_save_applies_defaults():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = _store(tmpdir)
        record = store.save({"image_hash": "h1"})
        assert record.id.startswith("analysis_")
        assert record.image_hash == "h1"
        assert record.filename == "unknown"
        assert record.domain == "Unknown"
        assert record.confidence_level == "Medium"
        assert record.detected_elements == []
        assert record.embedding is None
        assert record.metadata == {}
        assert record.timestamp.endswith("Z")


def test_save_persists_camelcase_layout():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = _store(tmpdir)
        store.save({"image_hash": "h1", "detected_elements": ["Cat"], "confidence_level": "High"})
        data = json.loads(store.path.read_text())
        saved = data["analyses"][0]
        assert saved["imageHash"] == "h1"
        assert saved["detectedElements"] == ["Cat"]
        assert saved["confidenceLevel"] == "High"
        assert data["metadata"]["totalAnalyses"] == 1


def test_save_same_hash_merges_instead_of_duplicating():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = _store(tmpdir)
        first = store.save({"image_hash": "h1", "domain": "Medical", "filename": "xray.png"})
        store.save({"image_hash": "h1", "confidence_level": "High"})
        last = store.save({"image_hash": "h1", "domain": "Education"})

        assert store.count() == 1
        assert last.id == first.id
        assert last.domain == "Education"
        assert last.confidence_level == "High"
        assert last.filename == "xray.png"


def test_merge_keeps_position():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = _store(tmpdir)
        store.save({"image_hash": "a"})
        store.save({"image_hash": "b"})
        store.save({"image_hash": "a", "domain": "Art"})
        data = json.loads(store.path.read_text())
        assert [a["imageHash"] for a in data["analyses"]] == ["a", "b"]


def test_get_by_hash_matches_save_result():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = _store(tmpdir)
        saved = store.save({
            "image_hash": "h1",
            "detected_elements": ["Red Apple", "Table"],
            "embedding": [0.1, 0.2, 0.3],
            "metadata": {"file_size": 1234},
        })
        assert store.get_by_hash("h1") == saved


def test_get_by_id_accepts_id_or_hash():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = _store(tmpdir)
        saved = store.save({"image_hash": "h1"})
        assert store.get_by_id(saved.id) == saved
        assert store.get_by_id("h1") == saved
        assert store.get_by_id("missing") is None
        assert store.get_by_hash(saved.id) is None


def test_save_rejects_unknown_fields():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = _store(tmpdir)
        with pytest.raises(TypeError):
            store.save({"image_hash": "h1", "colour": "red"})


def test_delete():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = _store(tmpdir)
        saved = store.save({"image_hash": "h1"})
        store.save({"image_hash": "h2"})

        assert store.delete(saved.id) is True
        assert store.get_by_id(saved.id) is None
        assert store.count() == 1
        assert json.loads(store.path.read_text())["metadata"]["totalAnalyses"] == 1


def test_delete_missing_returns_false():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = _store(tmpdir)
        store.save({"image_hash": "h1"})
        assert store.delete("nope") is False
        assert store.count() == 1


def test_delete_by_hash_removes_all_matches():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "analyses-db.json"
        _write_db(path, [
            {"id": "x1", "imageHash": "dup", "timestamp": "2026-01-01T00:00:00.000Z"},
            {"id": "x2", "imageHash": "dup", "timestamp": "2026-01-02T00:00:00.000Z"},
            {"id": "x3", "imageHash": "other", "timestamp": "2026-01-03T00:00:00.000Z"},
        ])
        store = RecordStore(path)
        assert store.delete("dup") is True
        assert [r.id for r in store.list()] == ["x3"]


def test_list_newest_first_with_pagination():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "analyses-db.json"
        _write_db(path, [
            {"id": f"r{day}", "imageHash": f"h{day}", "timestamp": f"2026-01-0{day}T12:00:00.000Z"}
            for day in (3, 1, 5, 2, 4)
        ])
        store = RecordStore(path)

        assert [r.id for r in store.list(limit=2, offset=0)] == ["r5", "r4"]
        assert [r.id for r in store.list(limit=2, offset=2)] == ["r3", "r2"]
        assert [r.id for r in store.list()] == ["r5", "r4", "r3", "r2", "r1"]


def test_list_ties_keep_stored_order():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "analyses-db.json"
        same = "2026-01-01T00:00:00.000Z"
        _write_db(path, [
            {"id": "first", "imageHash": "a", "timestamp": same},
            {"id": "second", "imageHash": "b", "timestamp": same},
        ])
        assert [r.id for r in RecordStore(path).list()] == ["first", "second"]


def test_list_after_saves_is_newest_first():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = _store(tmpdir)
        for h in ("a", "b", "c"):
            store.save({"image_hash": h})
        assert [r.image_hash for r in store.list(limit=2)] == ["c", "b"]


def test_search_is_case_insensitive_over_elements():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = _store(tmpdir)
        store.save({"image_hash": "fruit", "detected_elements": ["Red Apple", "Bowl"]})
        store.save({"image_hash": "car", "image_summary": "A blue car", "detected_elements": ["Wheel"]})

        results = store.search("apple")
        assert [r.image_hash for r in results] == ["fruit"]


def test_search_covers_text_fields():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = _store(tmpdir)
        store.save({"image_hash": "a", "filename": "Receipt.JPG"})
        store.save({"image_hash": "b", "extracted_text": "TOTAL $12.50 receipt"})
        store.save({"image_hash": "c", "domain": "Nature"})
        store.save({"image_hash": "d", "detailed_explanation": "A forest at dawn."})

        assert [r.image_hash for r in store.search("RECEIPT")] == ["a", "b"]
        assert [r.image_hash for r in store.search("nature")] == ["c"]
        assert [r.image_hash for r in store.search("forest")] == ["d"]
        assert store.search("submarine") == []


def test_stats_scenario():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = _store(tmpdir)
        store.save({"image_hash": "h1", "domain": "Medical", "confidence_level": "High"})
        s = store.stats()
        assert s["totalAnalyses"] == 1
        assert s["domains"] == {"Medical": 1}
        assert s["confidenceLevels"] == {"High": 1}


def test_stats_recent_is_truncated_and_capped():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "analyses-db.json"
        _write_db(path, [
            {
                "id": f"r{i:02d}",
                "imageHash": f"h{i}",
                "timestamp": f"2026-01-{i:02d}T00:00:00.000Z",
                "imageSummary": "x" * 150,
                "domain": "Food" if i % 2 else "Art",
            }
            for i in range(1, 13)
        ])
        s = RecordStore(path).stats()
        assert s["totalAnalyses"] == 12
        assert s["domains"] == {"Food": 6, "Art": 6}
        assert s["confidenceLevels"] == {"Medium": 12}
        assert len(s["recentAnalyses"]) == 10
        assert s["recentAnalyses"][0]["id"] == "r12"
        assert s["recentAnalyses"][0]["imageSummary"] == "x" * 100 + "..."


def test_corrupt_file_reads_as_empty(caplog):
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "analyses-db.json"
        path.write_text("{not json")
        store = RecordStore(path)
        assert store.list() == []
        assert store.get_by_id("anything") is None
        assert "Corrupt store file" in caplog.text


def test_save_recovers_corrupt_file():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "analyses-db.json"
        path.write_text("garbage")
        store = RecordStore(path)
        store.save({"image_hash": "h1"})
        assert store.count() == 1


def test_write_failure_raises(monkeypatch):
    with tempfile.TemporaryDirectory() as tmpdir:
        store = _store(tmpdir)

        def fail(*args, **kwargs):
            raise PermissionError("read-only disk")

        monkeypatch.setattr("snapsight.storage.base.os.replace", fail)
        with pytest.raises(StorageUnavailableError):
            store.save({"image_hash": "h1"})
        assert list(Path(tmpdir).glob("*.tmp")) == []


def test_concurrent_saves_lose_nothing():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = _store(tmpdir)

        def worker(n):
            for i in range(10):
                store.save({"image_hash": f"h{n}-{i}"})

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert store.count() == 40
        assert _store(tmpdir).count() == 40


def test_malformed_entries_are_skipped(caplog):
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "analyses-db.json"
        _write_db(path, [1, "junk", {"domain": "No id"}, {"id": "a1", "imageHash": "h1"}])
        store = RecordStore(path)

        assert [r.id for r in store.list()] == ["a1"]
        assert store.count() == 1
        assert store.stats()["totalAnalyses"] == 1
        assert "malformed analysis entries" in caplog.text

        store.save({"image_hash": "h2"})
        assert store.delete("h1")
        assert [r.image_hash for r in store.list()] == ["h2"]


def test_base_store_requires_empty_document():
    with tempfile.TemporaryDirectory() as tmpdir:
        with pytest.raises(TypeError):
            JsonFileStore(Path(tmpdir) / "plain.json")
