"""Configuration schema — JSON file sections plus environment overrides."""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from clipcast.errors import ValidationError

CUT_ANALYSIS_PROMPT = (
    "Analyze this video and suggest cuts of at most 1 minute covering high "
    "engagement moments such as action peaks or humor. Give exact timestamps "
    "for each suggestion in the form M:SS-M:SS, one per line."
)

TITLE_AND_CAPTIONS_PROMPT = (
    "Write a viral title and creative captions for this video clip, focused "
    "on TikTok engagement. Put the title on one line starting with 'Title:' "
    "and the captions as a list of short phrases, one per line starting with '-'."
)


@dataclass
class SilenceCutConfig:
    """Configuration for silence detection and removal."""

    threshold_db: float = -30.0
    min_duration: float = 0.5


@dataclass
class ProcessingConfig:
    """Speed-up, downscale, windowing and clip selection parameters."""

    acceleration_factor: float = 1.25
    target_resolution: str = "1280x720"
    window_parts: int = 10
    window_step_percent: float = 10.0
    max_clips: int = 3


@dataclass
class YouTubeConfig:
    api_key: str | None = None
    channels: list[str] = field(default_factory=list)
    test_videos: list[str] = field(default_factory=list)
    monitoring_interval_minutes: float = 5.0
    max_interval_minutes: float = 60.0
    min_api_interval: float = 1.0
    failure_threshold: int = 3


@dataclass
class GeminiConfig:
    api_key: str | None = None
    flash_model: str = "gemini-2.5-flash"
    pro_model: str = "gemini-2.5-pro"
    cut_analysis_prompt: str = CUT_ANALYSIS_PROMPT
    title_prompt: str = TITLE_AND_CAPTIONS_PROMPT


@dataclass
class TikTokConfig:
    client_key: str | None = None
    client_secret: str | None = None
    privacy_level: str = "SELF_ONLY"
    hashtags: list[str] = field(default_factory=lambda: ["#viral", "#tiktok", "#video"])
    tokens_file: Path | None = None


@dataclass
class PathsConfig:
    temp_dir: Path = Path("tmp")
    output_dir: Path = Path("output")
    watch_state_file: Path = Path("watch_state.json")


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file: Path | None = None
    quiet: bool = False


@dataclass
class AutomationConfig:
    operation_mode: str = "monitor"
    process_test_videos_first: bool = False


@dataclass
class Config:
    """Top-level clipcast configuration."""

    version: str = "1"
    silence_cut: SilenceCutConfig = field(default_factory=SilenceCutConfig)
    processing: ProcessingConfig = field(default_factory=ProcessingConfig)
    youtube: YouTubeConfig = field(default_factory=YouTubeConfig)
    gemini: GeminiConfig = field(default_factory=GeminiConfig)
    tiktok: TikTokConfig = field(default_factory=TikTokConfig)
    paths: PathsConfig = field(default_factory=PathsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    automation: AutomationConfig = field(default_factory=AutomationConfig)


OPERATION_MODES = ("monitor", "test", "both")

_PATH_FIELDS = {
    "paths": ("temp_dir", "output_dir", "watch_state_file"),
    "logging": ("file",),
    "tiktok": ("tokens_file",),
}


def _section(cls, data: dict, name: str):
    values = dict(data.get(name, {}))
    for key in _PATH_FIELDS.get(name, ()):
        if values.get(key) is not None:
            values[key] = Path(values[key])
    return cls(**values)


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes")


def _env_list(value: str) -> list[str]:
    return [v.strip() for v in value.split(",") if v.strip()]


def apply_env_overrides(config: Config, env: dict[str, str] | None = None) -> Config:
    """Overlay well-known environment variables onto *config* in place."""
    env = os.environ if env is None else env

    if "YOUTUBE_API_KEY" in env:
        config.youtube.api_key = env["YOUTUBE_API_KEY"]
    if "YOUTUBE_CHANNELS" in env:
        config.youtube.channels = _env_list(env["YOUTUBE_CHANNELS"])
    if env.get("YOUTUBE_CHANNEL_ID") and env["YOUTUBE_CHANNEL_ID"] not in config.youtube.channels:
        config.youtube.channels.insert(0, env["YOUTUBE_CHANNEL_ID"])
    if "MONITORING_INTERVAL_MINUTES" in env:
        config.youtube.monitoring_interval_minutes = float(env["MONITORING_INTERVAL_MINUTES"])
    if "GEMINI_API_KEY" in env:
        config.gemini.api_key = env["GEMINI_API_KEY"]
    if "TIKTOK_CLIENT_KEY" in env:
        config.tiktok.client_key = env["TIKTOK_CLIENT_KEY"]
    if "TIKTOK_CLIENT_SECRET" in env:
        config.tiktok.client_secret = env["TIKTOK_CLIENT_SECRET"]
    if "TEMP_DIR" in env:
        config.paths.temp_dir = Path(env["TEMP_DIR"])
    if "OUTPUT_DIR" in env:
        config.paths.output_dir = Path(env["OUTPUT_DIR"])
    if "SILENCE_THRESHOLD" in env:
        # Accept both "-30" and ffmpeg's "-30dB" spelling
        config.silence_cut.threshold_db = float(env["SILENCE_THRESHOLD"].lower().removesuffix("db"))
    if "ACCELERATION_FACTOR" in env:
        config.processing.acceleration_factor = float(env["ACCELERATION_FACTOR"])
    if "TARGET_RESOLUTION" in env:
        config.processing.target_resolution = env["TARGET_RESOLUTION"]
    if "SLIDING_WINDOW_PARTS" in env:
        config.processing.window_parts = int(env["SLIDING_WINDOW_PARTS"])
    if "SLIDING_WINDOW_STEP_PERCENT" in env:
        config.processing.window_step_percent = float(env["SLIDING_WINDOW_STEP_PERCENT"])
    if "LOG_LEVEL" in env:
        config.logging.level = env["LOG_LEVEL"]
    if "LOG_FILE" in env:
        config.logging.file = Path(env["LOG_FILE"])
    if "LOG_QUIET" in env:
        config.logging.quiet = _env_bool(env["LOG_QUIET"])
    if "OPERATION_MODE" in env:
        config.automation.operation_mode = env["OPERATION_MODE"]
    if "PROCESS_TEST_VIDEOS_FIRST" in env:
        config.automation.process_test_videos_first = _env_bool(env["PROCESS_TEST_VIDEOS_FIRST"])
    return config


def validate_config(config: Config) -> Config:
    """Raise ValidationError for values the pipeline cannot run with."""
    p = config.processing
    if p.acceleration_factor <= 0:
        raise ValidationError("acceleration_factor must be positive")
    if p.window_parts < 1:
        raise ValidationError("window_parts must be at least 1")
    if not 0 <= p.window_step_percent <= 100:
        raise ValidationError("window_step_percent must be between 0 and 100")
    if p.max_clips < 1:
        raise ValidationError("max_clips must be at least 1")
    if config.automation.operation_mode not in OPERATION_MODES:
        raise ValidationError(
            f"operation_mode must be one of {', '.join(OPERATION_MODES)}"
        )
    if config.youtube.monitoring_interval_minutes <= 0:
        raise ValidationError("monitoring_interval_minutes must be positive")
    return config


def load_config(path: str | Path | None = None, env_file: str | Path | None = ".env") -> Config:
    """Build a Config from an optional JSON file and the environment."""
    if env_file is not None:
        load_dotenv(env_file)

    if path is None:
        config = Config()
    else:
        data = json.loads(Path(path).read_text())
        config = Config(
            version=data.get("version", "1"),
            silence_cut=_section(SilenceCutConfig, data, "silence_cut"),
            processing=_section(ProcessingConfig, data, "processing"),
            youtube=_section(YouTubeConfig, data, "youtube"),
            gemini=_section(GeminiConfig, data, "gemini"),
            tiktok=_section(TikTokConfig, data, "tiktok"),
            paths=_section(PathsConfig, data, "paths"),
            logging=_section(LoggingConfig, data, "logging"),
            automation=_section(AutomationConfig, data, "automation"),
        )

    return validate_config(apply_env_overrides(config))
