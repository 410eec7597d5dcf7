"""Thin CLI entry point — loads configuration and starts the pipeline."""

import argparse
import logging
import sys
from pathlib import Path

from clipcast.config import load_config
from clipcast.engine import process
from clipcast.errors import ClipcastError
from clipcast.logs import setup_logging
from clipcast.poller import PollerStatus
from clipcast.runner import Automation, build_collaborators, ensure_dirs

logger = logging.getLogger(__name__)


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="clipcast",
        description="clipcast — turn new long-form uploads into published short clips.",
    )
    parser.add_argument("--config", "-c", type=Path, help="Path to a JSON config file")
    sub = parser.add_subparsers(dest="command")

    proc = sub.add_parser("process", help="Run the pipeline on a local video file")
    proc.add_argument("video", type=Path, help="Input video file")

    sub.add_parser("watch", help="Process test videos and/or monitor channels per operation mode")

    serve = sub.add_parser("serve", help="Launch the web UI")
    serve.add_argument("--port", type=int, default=8321, help="Port to listen on")
    serve.add_argument("--host", type=str, default="127.0.0.1", help="Host to bind to")

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    try:
        config = load_config(args.config)
    except (ClipcastError, ValueError, TypeError, OSError) as e:
        print(f"Error: invalid configuration: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config.logging)
    ensure_dirs(config)

    if args.command == "serve":
        from clipcast.web import create_app
        app = create_app(config)
        print(f"clipcast web UI: http://{args.host}:{args.port}")
        app.run(host=args.host, port=args.port, debug=False)
        return

    if args.command == "process":
        _, analyzer, publisher = build_collaborators(config)

        def on_progress(stage: str, frac: float) -> None:
            print(f"  [{frac:3.0%}] {stage}")

        try:
            result = process(args.video, config, analyzer, publisher, on_progress=on_progress)
        except ClipcastError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)

        print()
        print(f"Done! Output: {result.output_path}")
        print(f"  Duration: {result.duration_original:.1f}s -> {result.duration_final:.1f}s")
        print(f"  Silence removed: {result.silence_removed:.1f}s")
        print(f"  Title: {result.title}")
        print(f"  Clips: {result.clips_selected} of {result.suggestions} suggestions")
        if result.receipt:
            print(f"  Published: {result.receipt.publish_id}")
        return

    logger.info("Starting YouTube to TikTok automation...")
    automation = Automation(config)
    poller = automation.start()
    if poller is None:
        return
    try:
        poller.wait()
    except KeyboardInterrupt:
        automation.stop()
    if poller.context.status is PollerStatus.FATAL:
        sys.exit(2)
