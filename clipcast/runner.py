"""Wires the source, poller, pipeline and publisher together."""

import logging
import re
from pathlib import Path

from clipcast.analyzers.gemini import GeminiAnalyzer
from clipcast.config import Config
from clipcast.engine import EngineResult, process
from clipcast.poller import Poller
from clipcast.publishers.tiktok import TikTokPublisher
from clipcast.sources.youtube import YouTubeSource, extract_video_id
from clipcast.watch_state import WatchState

logger = logging.getLogger(__name__)


def build_collaborators(config: Config) -> tuple[YouTubeSource, GeminiAnalyzer, TikTokPublisher]:
    return (
        YouTubeSource(config.youtube),
        GeminiAnalyzer(config.gemini),
        TikTokPublisher(config.tiktok),
    )


def run_key(source_id: str, item_id: str) -> str:
    """Scratch namespace for one source item; safe as a directory name."""
    return re.sub(r"[^\w-]", "_", f"{source_id}_{item_id}")


class Automation:
    """Runs the pipeline for test videos and for new uploads on watched channels."""

    def __init__(self, config: Config, source=None, analyzer=None, publisher=None):
        self.config = config
        if source is None or analyzer is None or publisher is None:
            built = build_collaborators(config)
            source = source or built[0]
            analyzer = analyzer or built[1]
            publisher = publisher or built[2]
        self.source = source
        self.analyzer = analyzer
        self.publisher = publisher
        self.poller: Poller | None = None

    def process_item(self, item_id: str, key: str) -> EngineResult:
        download_path = self.config.paths.temp_dir / f"{key}.mp4"
        self.source.download(item_id, download_path)
        return process(
            download_path,
            self.config,
            self.analyzer,
            self.publisher,
            run_id=key,
            own_source=True,
        )

    def handle_new_item(self, source_id: str, item_id: str) -> None:
        """Poller callback: download and process one new upload."""
        logger.info("New video %s on %s, starting processing", item_id, source_id)
        result = self.process_item(item_id, run_key(source_id, item_id))
        logger.info("Published %s as %s", item_id, result.receipt.publish_id if result.receipt else "-")

    def process_test_videos(self) -> list[EngineResult]:
        """Process each configured test video once; failures are logged and skipped."""
        results: list[EngineResult] = []
        for ref in self.config.youtube.test_videos:
            video_id = extract_video_id(ref)
            if video_id is None:
                logger.warning("Skipping unrecognized test video reference %r", ref)
                continue
            logger.info("Processing test video: %s", video_id)
            try:
                results.append(self.process_item(video_id, run_key("test", video_id)))
            except Exception as exc:
                logger.error("Error processing test video %s: %s", video_id, exc)
        return results

    def start(self) -> Poller | None:
        """Run according to the operation mode; returns the poller if monitoring."""
        mode = self.config.automation.operation_mode
        logger.info("Operation mode: %s", mode)

        if mode in ("test", "both"):
            if self.config.automation.process_test_videos_first:
                self.process_test_videos()
            elif mode == "test":
                logger.info("Test mode enabled but process_test_videos_first is disabled. Nothing to do.")

        if mode not in ("monitor", "both"):
            logger.info("Monitoring disabled by operation mode configuration.")
            return None

        if not self.config.youtube.channels:
            logger.warning("No channels configured; nothing to monitor")
            return None

        state = WatchState.load(self.config.paths.watch_state_file)
        self.poller = Poller.from_config(self.config.youtube, self.source, state, self.handle_new_item)
        self.poller.start()
        return self.poller

    def stop(self) -> None:
        if self.poller is not None:
            self.poller.stop()


def ensure_dirs(config: Config) -> None:
    for path in (config.paths.temp_dir, config.paths.output_dir):
        Path(path).mkdir(parents=True, exist_ok=True)
