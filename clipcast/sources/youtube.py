"""YouTube channel lookup and video download."""

import json
import logging
import re
from pathlib import Path

import yt_dlp
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from yt_dlp.utils import DownloadError

from clipcast.config import YouTubeConfig
from clipcast.errors import SourceError, SourceErrorKind, source_error

logger = logging.getLogger(__name__)

QUOTA_REASONS = {"quotaExceeded", "dailyLimitExceeded"}
NOT_FOUND_REASONS = {"invalid_channel", "invalidChannelId", "channelNotFound", "notFound"}

_VIDEO_ID_PATTERNS = [
    re.compile(r"(?:youtube\.com/watch\?(?:.*&)?v=|youtu\.be/|youtube\.com/(?:embed|shorts)/)([\w-]{11})"),
    re.compile(r"^([\w-]{11})$"),
]


def extract_video_id(ref: str) -> str | None:
    """Return the 11-character video id from a URL or bare id."""
    ref = ref.strip()
    for pattern in _VIDEO_ID_PATTERNS:
        m = pattern.search(ref)
        if m:
            return m.group(1)
    return None


def _error_reason(exc: HttpError) -> str | None:
    try:
        data = json.loads(exc.content.decode("utf-8"))
    except (ValueError, AttributeError, UnicodeDecodeError):
        return None
    errors = (data.get("error") or {}).get("errors") or []
    return errors[0].get("reason") if errors else None


def classify_http_error(exc: HttpError) -> SourceErrorKind:
    """Map a YouTube Data API error onto the poller's error kinds."""
    status = int(exc.resp.status)
    reason = _error_reason(exc)
    if status == 403 and reason in QUOTA_REASONS:
        return SourceErrorKind.QUOTA_EXCEEDED
    if status == 404 or (status == 400 and reason in NOT_FOUND_REASONS):
        return SourceErrorKind.NOT_FOUND
    return SourceErrorKind.TRANSIENT


class YouTubeSource:
    """Newest-upload lookup per channel via the YouTube Data API."""

    def __init__(self, config: YouTubeConfig, service=None):
        self.config = config
        self._service = service

    @property
    def service(self):
        if self._service is None:
            self._service = build(
                "youtube", "v3", developerKey=self.config.api_key, cache_discovery=False
            )
        return self._service

    def latest_item(self, channel_id: str) -> str | None:
        """Return the id of the channel's most recent video, if any."""
        try:
            response = self.service.search().list(
                part="snippet",
                channelId=channel_id,
                order="date",
                type="video",
                maxResults=1,
            ).execute()
        except HttpError as exc:
            kind = classify_http_error(exc)
            raise source_error(kind, f"YouTube lookup for {channel_id} failed: {exc}") from exc
        except OSError as exc:
            raise SourceError(f"YouTube lookup for {channel_id} failed: {exc}") from exc

        items = response.get("items") or []
        if not items:
            return None
        video_id = (items[0].get("id") or {}).get("videoId")
        logger.debug("Latest video on %s: %s", channel_id, video_id)
        return video_id

    def download(self, video_id: str, output_path: Path) -> Path:
        """Download *video_id* as mp4 to *output_path*."""
        output_path.parent.mkdir(parents=True, exist_ok=True)
        ydl_opts = {
            "format": "bv*[ext=mp4]+ba[ext=m4a]/b[ext=mp4]/b",
            "merge_output_format": "mp4",
            "outtmpl": str(output_path),
            "quiet": True,
            "no_warnings": True,
            "noprogress": True,
        }
        url = f"https://www.youtube.com/watch?v={video_id}"
        try:
            with yt_dlp.YoutubeDL(ydl_opts) as ydl:
                ydl.download([url])
        except DownloadError as exc:
            raise SourceError(f"Download of {video_id} failed: {exc}") from exc
        logger.info("Video downloaded: %s", output_path)
        return output_path
