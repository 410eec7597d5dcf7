"""Cut and caption suggestions from Gemini video understanding."""

import logging
import re
from pathlib import Path

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from clipcast.config import GeminiConfig
from clipcast.errors import ExternalCallError, ValidationError
from clipcast.models import TimeRange

logger = logging.getLogger(__name__)

# Inline request payloads are capped by the API; larger clips are rejected
MAX_INLINE_BYTES = 100 * 1024 * 1024

_CUT_RE = re.compile(r"(\d+):(\d+)\s*-\s*(\d+):(\d+)")
_TITLE_RE = re.compile(r"^\s*(?:\*\*)?(?:Title|Título)(?:\*\*)?\s*:\s*(?:\*\*)?\s*", re.IGNORECASE)
_BULLET_RE = re.compile(r"^\s*(?:[-•*]|\d+\.)\s*")


def parse_cut_suggestions(text: str) -> list[TimeRange]:
    """Read ``M:SS-M:SS`` pairs from free text, in order of appearance.

    Text without any such pair yields no suggestions.
    """
    suggestions: list[TimeRange] = []
    for m in _CUT_RE.finditer(text or ""):
        start = int(m.group(1)) * 60 + int(m.group(2))
        end = int(m.group(3)) * 60 + int(m.group(4))
        suggestions.append(TimeRange(start=float(start), end=float(end)))
    return suggestions


def parse_title_and_captions(text: str) -> tuple[str, list[str]]:
    """Split a model answer into a title line and bullet-point captions."""
    title = ""
    captions: list[str] = []
    for line in (text or "").splitlines():
        if _TITLE_RE.match(line):
            title = _TITLE_RE.sub("", line).strip().strip("*").strip()
        elif _BULLET_RE.match(line):
            caption = _BULLET_RE.sub("", line).strip()
            if caption:
                captions.append(caption)
    return title, captions


class GeminiAnalyzer:
    """Sends video clips to Gemini and parses the free-text answers."""

    def __init__(self, config: GeminiConfig, client: genai.Client | None = None):
        self.config = config
        self.client = client or genai.Client(api_key=config.api_key)

    def _generate(self, model: str, video_path: Path, prompt: str) -> str:
        size = video_path.stat().st_size
        if size > MAX_INLINE_BYTES:
            raise ValidationError(f"File too large for analysis: {size} bytes")

        video = types.Part.from_bytes(data=video_path.read_bytes(), mime_type="video/mp4")
        try:
            response = self.client.models.generate_content(
                model=model,
                contents=[prompt, video],
            )
        except genai_errors.APIError as exc:
            raise ExternalCallError(f"Gemini {model} request failed: {exc}") from exc
        return response.text or ""

    def suggest_cuts(self, window_path: Path) -> list[TimeRange]:
        """Ask the flash model for cut suggestions within one window."""
        logger.info("Analyzing %s for cuts", window_path.name)
        text = self._generate(self.config.flash_model, window_path, self.config.cut_analysis_prompt)
        suggestions = parse_cut_suggestions(text)
        logger.info("Cut suggestions for %s: %d", window_path.name, len(suggestions))
        return suggestions

    def suggest_title_and_captions(self, clip_path: Path) -> tuple[str, list[str]]:
        logger.info("Generating title and captions for %s", clip_path.name)
        text = self._generate(self.config.pro_model, clip_path, self.config.title_prompt)
        title, captions = parse_title_and_captions(text)
        logger.info("Generated title %r with %d captions", title, len(captions))
        return title, captions
