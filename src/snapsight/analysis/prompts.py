"""Prompt templates for Claude image analysis."""

VISION_PROMPT = """You are an expert image analyst. Describe EXACTLY what this image contains, in detail.

IMAGE PROPERTIES:
- Dimensions: {width}x{height} pixels
- Format: {format}
- File Size: {file_size_mb} MB
- Color Mode: {mode}
- Has Transparency: {has_alpha}

Cover all of the following:
1. **Main Subject**: the primary subject or focus
2. **Objects & Elements**: every visible object, item, device, structure or natural element
3. **People**: how many, appearance, actions. If none, say "No people detected"
4. **Text (OCR)**: copy ALL visible text exactly, formatted as "Text found: <text>". If none, say "No text detected in image"
5. **Colors**: dominant colors and palette
6. **Environment**: indoor/outdoor, background, lighting, time of day
7. **Domain**: e.g. medical, education, product, document, diagram, nature, food, architecture, technology
8. **Process / Product**: if a diagram or product is shown, explain the steps or how it works
9. **Technical Details**: image quality, focus, lighting
10. **Context**: the likely purpose or meaning of the image

Start with a single-line caption, then give the full description."""

FORMATTING_PROMPT = """Below is a detailed vision analysis of an image. Turn it into structured data.

VISION ANALYSIS:
{vision}

RELATED PAST IMAGES (for context):
{related}

Respond with ONLY a JSON object in this exact shape:
{{
  "imageSummary": "3-5 sentence summary of exactly what the image shows",
  "detectedElements": ["every", "object", "item", "person", "or", "symbol", "visible"],
  "detailedExplanation": "10-20 sentences describing the image content specifically",
  "realWorldApplications": "3-5 sentences on practical relevance",
  "educationalInsight": "3-5 sentences on what someone can learn from it",
  "confidenceLevel": "High|Medium|Low",
  "domain": "the specific domain or category",
  "extractedText": "ALL text found in the image, exactly as written, or an empty string",
  "colors": "dominant colors and color scheme",
  "environment": "setting and surroundings",
  "people": "people present, or \\"No people detected\\"",
  "technicalDetails": "quality, lighting, composition"
}}

Only use information from the vision analysis. Do not wrap the JSON in markdown."""

MOCK_ANALYSIS = {
    "imageSummary": "Mock image analysis (no API key configured).",
    "detectedElements": ["Sample object 1", "Sample object 2", "Text or labels", "Background elements"],
    "detailedExplanation": (
        "This is a mock analysis generated without calling the vision API. "
        "Set ANTHROPIC_API_KEY to get a real description of the image."
    ),
    "realWorldApplications": "Demonstrates the structure of a stored analysis.",
    "educationalInsight": "Shows which fields a real analysis fills in.",
    "confidenceLevel": "Medium",
    "domain": "General",
    "extractedText": "",
    "colors": "Unknown",
    "environment": "Unknown",
    "people": "No people detected",
    "technicalDetails": "Mock mode active.",
}
