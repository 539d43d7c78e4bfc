"""Shared fixtures."""

import io

import pytest
from PIL import Image


def make_image_bytes(size=(64, 48), color=(200, 30, 30), fmt="PNG", mode="RGB") -> bytes:
    img = Image.new(mode, size, color)
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def image_bytes():
    return make_image_bytes()


@pytest.fixture
def config(tmp_path):
    """A mock-mode config pointing every path into a temp dir."""
    return {
        "data_path": str(tmp_path),
        "db_path": str(tmp_path / "analyses-db.json"),
        "vector_store_path": str(tmp_path / "vector-store.json"),
        "inbox_path": str(tmp_path / "inbox"),
        "claude_model": "claude-test",
        "max_similar": 3,
        "use_mock_data": True,
        "vector_dimension": None,
        "image": {"max_size": 1024, "jpeg_quality": 90},
    }


@pytest.fixture
def make_image():
    """Factory for in-memory test images: make_image(size=..., fmt=..., mode=...)."""
    return make_image_bytes
