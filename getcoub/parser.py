import json
from dataclasses import dataclass
from typing import Any, Dict, Optional

from bs4 import BeautifulSoup, SoupStrainer

from .errors import ParseError

COUB_JSON_ELEMENT_ID = "coubPageCoubJson"
QUALITY_PREFERENCE = ("high", "med", "low")
THUMBNAIL_VERSION = "small"


@dataclass
class CoubSources:
    video_url: str
    audio_url: str
    thumbnail_url: Optional[str] = None


def pick_highest_quality(versions: Optional[Dict[str, Any]]) -> Optional[str]:
    """URL of the best variant available: high, then med, then low."""
    if not isinstance(versions, dict):
        return None
    for quality in QUALITY_PREFERENCE:
        variant = versions.get(quality)
        if isinstance(variant, dict) and variant.get("url"):
            return variant["url"]
    return None


def extract_coub_json(html: str) -> Dict[str, Any]:
    """Pull the embedded coub description out of a coub page."""
    soup = BeautifulSoup(html, "lxml", parse_only=SoupStrainer("script"))
    script = soup.find("script", id=COUB_JSON_ELEMENT_ID)
    if script is None:
        raise ParseError(f"#{COUB_JSON_ELEMENT_ID} not found on page")
    try:
        data = json.loads(script.get_text())
    except json.JSONDecodeError as e:
        raise ParseError(f"Invalid coub JSON: {e}") from e
    if not isinstance(data, dict):
        raise ParseError("Coub JSON is not an object")
    return data


def parse_coub_page(html: str) -> CoubSources:
    """
    Normalize a coub page into the three media URLs.

    Raises:
        ParseError: If the page lacks the coub JSON or a video/audio track
    """
    data = extract_coub_json(html)
    try:
        html5 = data["file_versions"]["html5"]
    except (KeyError, TypeError) as e:
        raise ParseError(f"Coub JSON has no html5 file versions: {e}") from e
    if not isinstance(html5, dict):
        raise ParseError("Coub JSON html5 file versions are malformed")

    video_url = pick_highest_quality(html5.get("video"))
    if not video_url:
        raise ParseError("No video variant available")
    audio_url = pick_highest_quality(html5.get("audio"))
    if not audio_url:
        raise ParseError("No audio variant available")

    thumbnail_url = None
    template = (data.get("image_versions") or {}).get("template")
    if template:
        thumbnail_url = template.replace("%{version}", THUMBNAIL_VERSION)

    return CoubSources(
        video_url=video_url, audio_url=audio_url, thumbnail_url=thumbnail_url
    )
