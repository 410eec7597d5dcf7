"""TikTok direct-post upload with access-token bookkeeping."""

import json
import logging
import mimetypes
from pathlib import Path

import requests

from clipcast.config import TikTokConfig
from clipcast.errors import PublishAuthExpired, PublishError
from clipcast.models import PublishReceipt

logger = logging.getLogger(__name__)

API_BASE = "https://open.tiktokapis.com"
TOKEN_URL = f"{API_BASE}/v2/oauth/token/"
INIT_URL = f"{API_BASE}/v2/post/publish/video/init/"

DESC_LIMIT = 2200
MAX_ATTEMPTS = 3

# TikTok validates chunk sizes against these exact decimal values
CHUNK_SIZE = 10_000_000
MAX_SINGLE = 64_000_000


def chunk_plan(video_size: int, chunk_size: int = CHUNK_SIZE) -> tuple[int, int]:
    """Return ``(declared_chunk_size, total_chunk_count)`` for an upload.

    Files up to 64 MB go up in a single chunk. Larger files use
    ``floor(size / chunk_size)`` chunks, the last one absorbing the remainder.
    """
    if video_size <= MAX_SINGLE:
        return video_size, 1
    return chunk_size, video_size // chunk_size


def build_description(title: str, captions: list[str], hashtags: list[str]) -> str:
    parts = [title] if title else []
    if captions:
        parts.append("\n".join(captions))
    if hashtags:
        parts.append(" ".join(hashtags))
    return "\n\n".join(parts)[:DESC_LIMIT]


class TikTokPublisher:
    """Publishes final cuts to TikTok.

    A 401 from the API drops the cached token, fetches a fresh one and tries
    again, for at most ``MAX_ATTEMPTS`` attempts in total.
    """

    def __init__(self, config: TikTokConfig, session: requests.Session | None = None):
        self.config = config
        self.session = session or requests.Session()
        self.access_token: str | None = None
        self.refresh_token_value: str | None = None
        self._load_tokens()

    def _load_tokens(self) -> None:
        path = self.config.tokens_file
        if path is None or not path.exists():
            return
        data = json.loads(path.read_text(encoding="utf-8"))
        self.access_token = data.get("access_token")
        self.refresh_token_value = data.get("refresh_token")

    def _save_tokens(self, payload: dict) -> None:
        path = self.config.tokens_file
        if path is None:
            return
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    def refresh_token(self) -> str:
        """Obtain a new access token, preferring a stored refresh token."""
        body = {
            "client_key": self.config.client_key,
            "client_secret": self.config.client_secret,
        }
        if self.refresh_token_value:
            body.update(grant_type="refresh_token", refresh_token=self.refresh_token_value)
        else:
            body["grant_type"] = "client_credentials"

        try:
            resp = self.session.post(
                TOKEN_URL,
                data=body,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=30,
            )
            payload = resp.json()
        except (requests.RequestException, ValueError) as exc:
            raise PublishError(f"TikTok token request failed: {exc}") from exc

        # TikTok reports token errors in the body, sometimes with HTTP 200
        if resp.status_code != 200 or payload.get("error") or "access_token" not in payload:
            # Never log the payload itself; it can contain tokens
            raise PublishError(f"TikTok token request failed (status {resp.status_code})")

        self.access_token = payload["access_token"]
        self.refresh_token_value = payload.get("refresh_token", self.refresh_token_value)
        self._save_tokens(payload)
        logger.info("Obtained TikTok access token")
        return self.access_token

    def publish(self, video_path: Path, title: str, captions: list[str]) -> PublishReceipt:
        description = build_description(title, captions, self.config.hashtags)
        attempt = 1
        while True:
            if self.access_token is None:
                self.refresh_token()
            try:
                publish_id = self._upload(video_path, description)
            except PublishAuthExpired:
                self.access_token = None
                if attempt >= MAX_ATTEMPTS:
                    raise
                logger.warning("TikTok token expired, refreshing (attempt %d/%d)", attempt, MAX_ATTEMPTS)
                attempt += 1
                continue
            logger.info("Video uploaded to TikTok: %s", publish_id)
            return PublishReceipt(publish_id=publish_id, attempts=attempt)

    def _upload(self, video_path: Path, description: str) -> str:
        logger.info("Uploading video to TikTok: %s", video_path)
        publish_id, upload_url = self._init_post(video_path.stat().st_size, description)
        self._put_video(upload_url, video_path)
        return publish_id

    def _init_post(self, video_size: int, description: str) -> tuple[str, str]:
        declared_chunk_size, total_chunk_count = chunk_plan(video_size)
        body = {
            "post_info": {
                "title": description,
                "privacy_level": self.config.privacy_level,
                "disable_duet": False,
                "disable_comment": False,
                "disable_stitch": False,
            },
            "source_info": {
                "source": "FILE_UPLOAD",
                "video_size": video_size,
                "chunk_size": declared_chunk_size,
                "total_chunk_count": total_chunk_count,
            },
        }
        headers = {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json; charset=UTF-8",
        }
        try:
            resp = self.session.post(INIT_URL, headers=headers, json=body, timeout=60)
        except requests.RequestException as exc:
            raise PublishError(f"TikTok init failed: {exc}") from exc

        if resp.status_code == 401:
            raise PublishAuthExpired("TikTok rejected the access token")
        try:
            data = resp.json()
        except ValueError as exc:
            raise PublishError(f"TikTok init returned invalid JSON (status {resp.status_code})") from exc

        err = data.get("error") or {}
        if err.get("code") == "access_token_invalid":
            raise PublishAuthExpired("TikTok rejected the access token")
        if resp.status_code >= 400 or err.get("code") != "ok":
            raise PublishError(f"TikTok init failed: {err or resp.status_code}")
        return data["data"]["publish_id"], data["data"]["upload_url"]

    def _put_video(self, upload_url: str, video_path: Path) -> None:
        total = video_path.stat().st_size
        mime = mimetypes.guess_type(str(video_path))[0] or "video/mp4"
        declared_chunk_size, total_chunk_count = chunk_plan(total)

        with video_path.open("rb") as f:
            for index in range(total_chunk_count):
                start = index * declared_chunk_size
                last = index == total_chunk_count - 1
                blob = f.read() if last else f.read(declared_chunk_size)
                end_inclusive = start + len(blob) - 1
                headers = {
                    "Content-Type": mime,
                    "Content-Length": str(len(blob)),
                    "Content-Range": f"bytes {start}-{end_inclusive}/{total}",
                }
                try:
                    r = self.session.put(upload_url, headers=headers, data=blob, timeout=180)
                except requests.RequestException as exc:
                    raise PublishError(f"TikTok chunk upload failed: {exc}") from exc
                if r.status_code == 401:
                    raise PublishAuthExpired("TikTok rejected the access token")
                if r.status_code not in (200, 201, 204, 206):
                    raise PublishError(
                        f"TikTok chunk upload failed ({r.status_code}): {r.text[:400]}"
                    )
