"""Flask application factory for the clipcast web UI."""

import tempfile
from pathlib import Path

from flask import Flask, jsonify

from clipcast.config import Config


def create_app(config: Config | None = None, work_dir: Path | None = None) -> Flask:
    app = Flask(__name__)
    app.config["CLIPCAST"] = config or Config()
    app.config["WORK_DIR"] = work_dir or Path(tempfile.mkdtemp(prefix="clipcast_"))
    app.config["MAX_CONTENT_LENGTH"] = 10 * 1024 * 1024 * 1024  # 10 GB

    from clipcast.web.routes import bp
    app.register_blueprint(bp)

    @app.errorhandler(413)
    def request_entity_too_large(error):
        return jsonify({"error": "File too large"}), 413

    return app
