"""Prompt writer for the image generator."""

from typing import Mapping, Optional

IMAGE_CRITERIA = (
    ("subject", "Main Subject"),
    ("style", "Artistic Style"),
    ("environment", "Environment"),
    ("genre", "Genre"),
    ("timePeriod", "Time Period"),
    ("artMedium", "Art Medium"),
    ("mood", "Mood"),
    ("lighting", "Lighting"),
    ("colorPalette", "Color Palette"),
    ("composition", "Composition"),
)

IMAGE_PROMPT_WRITER = """
You are an expert prompt writer for an AI image generation model.
Your task is to generate a single paragraph, plain text prompt based on the following user-provided criteria.
Do not use any bold, italic, or any other special formatting.
The prompt should be descriptive, detailed, and evocative to help the AI generate a high-quality image.

User Criteria:
{criteria}

Based on these criteria, generate a creative and detailed prompt.
"""


def _value(criteria: Mapping[str, Optional[str]], key: str, default: str) -> str:
    raw = criteria.get(key)
    if raw is None:
        return default
    cleaned = str(raw).strip()
    return cleaned or default


def build_image_prompt(criteria: Mapping[str, Optional[str]]) -> str:
    lines = [f"- {label}: {_value(criteria, key, 'not specified')}" for key, label in IMAGE_CRITERIA]
    lines.append(f"- Additional Details: {_value(criteria, 'customDetails', 'none')}")
    return IMAGE_PROMPT_WRITER.format(criteria="\n".join(lines))
