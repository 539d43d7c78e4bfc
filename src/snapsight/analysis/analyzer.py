"""Image analysis pipeline: Claude vision -> embedding -> related lookup -> record store."""

import json
import logging
import re
from pathlib import Path
from typing import Any

from ..config import use_mock
from ..embeddings.embedder import Embedder
from ..models import AnalysisRecord, SimilarityResult, VectorEntry
from ..storage import RecordStore, SimilarityIndex, get_record_store, get_similarity_index
from .imaging import PreparedImage, prepare_image
from .prompts import FORMATTING_PROMPT, MOCK_ANALYSIS, VISION_PROMPT

logger = logging.getLogger(__name__)

CONFIDENCE_LEVELS = ("High", "Medium", "Low")
CAPTION_CHARS = 150
SUMMARY_ANALYSIS_CHARS = 1000

FORMATTING_SYSTEM = (
    "You are an expert assistant that extracts maximum information from image descriptions. "
    "Always return valid JSON without any markdown formatting, code blocks, or extra text."
)

_TEXT_MENTION = re.compile(r"\b(?:text found|extracted text|ocr|text)\s*:\s*([^\n]+)", re.IGNORECASE)


def _load_object(text: str) -> dict[str, Any] | None:
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


def parse_json_response(text: str) -> dict[str, Any] | None:
    """Extract a JSON object from a model response, handling markdown code blocks.

    Returns None if no object can be recovered.
    """
    text = text.strip()
    parsed = _load_object(text)
    if parsed is not None:
        return parsed

    # Try extracting from ```json ... ``` or ``` ... ```
    match = re.search(r"```(?:json)?\s*\n?(.*?)\n?\s*```", text, re.DOTALL)
    if match:
        parsed = _load_object(match.group(1).strip())
        if parsed is not None:
            return parsed

    # Try finding first { ... } block
    match = re.search(r"\{.*\}", text, re.DOTALL)
    if match:
        return _load_object(match.group(0))
    return None


def extract_text_mentions(vision_text: str) -> str:
    """Pull "Text found: ..." style OCR lines out of free-form vision output."""
    found = []
    for m in _TEXT_MENTION.finditer(vision_text):
        value = m.group(1).strip().strip('"')
        if value and not value.lower().startswith("no text"):
            found.append(value)
    return " ".join(found)


def make_caption(vision_text: str) -> str:
    first_line = vision_text.strip().split("\n")[0].strip() if vision_text.strip() else ""
    return first_line[:CAPTION_CHARS] or "Image analysis"


def normalize_analysis(
    parsed: dict[str, Any] | None,
    caption: str,
    vision_text: str,
    raw_response: str = "",
) -> dict[str, Any]:
    """Coerce the formatting response into record fields, filling gaps.

    Returns snake_case keys: the AnalysisRecord text fields plus ``colors``,
    ``environment``, ``people`` and ``technical_details``.
    """
    if parsed is None:
        parsed = {"detailedExplanation": raw_response or vision_text[:500]}

    def text(key: str, fallback: str) -> str:
        value = parsed.get(key)
        return value if isinstance(value, str) and value else fallback

    elements = parsed.get("detectedElements")
    confidence = parsed.get("confidenceLevel")
    extracted = text("extractedText", "").strip() or extract_text_mentions(vision_text)

    return {
        "image_summary": text("imageSummary", caption or "Image analysis completed"),
        "detected_elements": [str(e) for e in elements] if isinstance(elements, list) else [],
        "detailed_explanation": text("detailedExplanation", vision_text[:500]),
        "real_world_applications": text("realWorldApplications", "Analysis available"),
        "educational_insight": text("educationalInsight", "See detailed explanation above"),
        "confidence_level": confidence if confidence in CONFIDENCE_LEVELS else "Medium",
        "domain": text("domain", "Unknown"),
        "extracted_text": extracted,
        "colors": text("colors", "Not specified"),
        "environment": text("environment", "Not specified"),
        "people": text("people", "Not specified"),
        "technical_details": text("technicalDetails", "Not specified"),
    }


def _mock_vision_text() -> str:
    mock = MOCK_ANALYSIS
    return (
        f"Mock Analysis:\n\n{mock['imageSummary']}\n\n{mock['detailedExplanation']}\n\n"
        f"Detected Elements: {', '.join(mock['detectedElements'])}\n\n"
        f"Colors: {mock['colors']}\n\nEnvironment: {mock['environment']}\n\nDomain: {mock['domain']}"
    )


def _related_text(related: list[SimilarityResult]) -> str:
    if not related:
        return "None"
    return "\n".join(f"- {r.summary} (similarity: {r.score:.3f})" for r in related)


class ImageAnalyzer:
    """Analyzes images with Claude and records the results.

    Without an API key (or with ``use_mock_data``) the analyzer runs in mock
    mode: no API or embedding calls are made, and a placeholder analysis is
    stored so the rest of the tooling still works.
    """

    def __init__(
        self,
        config: dict[str, Any],
        records: RecordStore | None = None,
        index: SimilarityIndex | None = None,
        embedder: Embedder | None = None,
        client: Any = None,
    ):
        self.config = config
        self.mock = use_mock(config)
        self.records = records if records is not None else get_record_store(config)
        self.index = index if index is not None else get_similarity_index(config)
        self._embedder = embedder
        self.model = config.get("claude_model", "claude-sonnet-4-20250514")
        self.max_similar = int(config.get("max_similar", 3))

        image_cfg = config.get("image", {})
        self.max_size = image_cfg.get("max_size", 1024)
        self.jpeg_quality = image_cfg.get("jpeg_quality", 90)

        self.client = client
        if self.client is None and not self.mock:
            import anthropic
            self.client = anthropic.Anthropic(api_key=config["claude_api_key"])

    @property
    def embedder(self) -> Embedder:
        if self._embedder is None:
            self._embedder = Embedder(self.config)
        return self._embedder

    def analyze(self, source: str | Path | bytes, filename: str | None = None) -> AnalysisRecord:
        """Analyze one image (a path or raw bytes) and return the stored record."""
        if isinstance(source, bytes):
            data = source
            filename = filename or "upload"
        else:
            path = Path(source)
            data = path.read_bytes()
            filename = filename or path.name

        prepared = prepare_image(data, max_size=self.max_size, quality=self.jpeg_quality)
        logger.info(f"Analyzing {filename} ({prepared.hash[:12]})")

        vision_text, mock = self._describe(prepared)
        caption = make_caption(vision_text)

        embedding = None
        related: list[SimilarityResult] = []
        if not mock:
            summary = f"{caption} -- Analysis: {vision_text[:SUMMARY_ANALYSIS_CHARS]}"
            embedding, related = self._embed_and_relate(prepared.hash, summary, filename)

        parsed, raw_response, format_mock = self._format(vision_text, related, mock)
        mock = mock or format_mock
        fields = normalize_analysis(parsed, caption, vision_text, raw_response)

        metadata = {
            key: fields.pop(key) for key in ("colors", "environment", "people", "technical_details")
        }
        metadata.update({
            "file_size": prepared.original_size,
            "is_mock": mock,
            "image": prepared.properties,
        })
        if not mock:
            metadata["model"] = self.model

        return self.records.save({
            "id": prepared.hash,
            "image_hash": prepared.hash,
            "filename": filename,
            "caption": caption,
            "raw_vision": vision_text,
            "related": [r.to_dict() for r in related],
            "embedding": embedding,
            "metadata": metadata,
            **fields,
        })

    def _describe(self, prepared: PreparedImage) -> tuple[str, bool]:
        """Vision pass. Returns (text, used_mock)."""
        if self.mock:
            return _mock_vision_text(), True

        import anthropic
        prompt = VISION_PROMPT.format(**prepared.properties)
        try:
            response = self.client.messages.create(
                model=self.model,
                max_tokens=2000,
                temperature=0.1,
                messages=[{
                    "role": "user",
                    "content": [
                        {
                            "type": "image",
                            "source": {"type": "base64", "media_type": "image/jpeg", "data": prepared.base64},
                        },
                        {"type": "text", "text": prompt},
                    ],
                }],
            )
        except anthropic.APIError as e:
            logger.warning(f"Vision request failed, falling back to mock analysis: {e}")
            return _mock_vision_text(), True
        return response.content[0].text, False

    def _embed_and_relate(
        self, image_hash: str, summary: str, filename: str
    ) -> tuple[list[float] | None, list[SimilarityResult]]:
        """Embed the summary, find related past images, then index this one."""
        try:
            embedding = self.embedder.embed_passage(summary)
        except Exception as e:
            logger.warning(f"Embedding failed for {filename}, skipping similarity lookup: {e}")
            return None, []

        # Query before adding so the image never comes back as its own match.
        related = self.index.query(embedding, self.max_similar, exclude_id=image_hash)

        self.index.add(VectorEntry(id=image_hash, summary=summary, embedding=embedding, meta={"filename": filename}))
        return embedding, related

    def _format(
        self, vision_text: str, related: list[SimilarityResult], mock: bool
    ) -> tuple[dict[str, Any] | None, str, bool]:
        """Formatting pass. Returns (parsed JSON or None, raw response text, used_mock)."""
        if mock:
            return dict(MOCK_ANALYSIS), "", True

        import anthropic
        prompt = FORMATTING_PROMPT.format(vision=vision_text, related=_related_text(related))
        try:
            response = self.client.messages.create(
                model=self.model,
                max_tokens=3000,
                temperature=0.2,
                system=FORMATTING_SYSTEM,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.APIError as e:
            logger.warning(f"Formatting request failed, using mock fields: {e}")
            return dict(MOCK_ANALYSIS), "", True

        raw = response.content[0].text
        parsed = parse_json_response(raw)
        if parsed is None:
            logger.warning(f"Could not parse formatting response as JSON: {raw[:200]!r}")
        return parsed, raw, False
