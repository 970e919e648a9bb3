import os
import secrets
from datetime import timedelta
from pathlib import Path

from flask import Flask

# Results live at the project root under ``data`` unless DATA_DIR says otherwise.
DEFAULT_DATA_DIR = Path(__file__).resolve().parent.parent / "data"


def _split_emails(raw):
    return [e.strip() for e in (raw or "").split(",") if e.strip()]


def create_app(test_config=None):
    app = Flask(__name__)

    try:
        session_hours = int(os.environ.get("SESSION_MAX_AGE_HOURS", "24"))
    except ValueError:
        session_hours = 24

    app.config.from_mapping(
        DATA_DIR=os.environ.get("DATA_DIR") or str(DEFAULT_DATA_DIR),
        SECRET_KEY=os.environ.get("SECRET_KEY"),
        ALLOWED_ADMIN_EMAILS=_split_emails(os.environ.get("ALLOWED_ADMIN_EMAILS")),
        ADMIN_EMAIL_HEADER=os.environ.get("ADMIN_EMAIL_HEADER") or None,
        ADMIN_AUTHORIZER=None,
        PERMANENT_SESSION_LIFETIME=timedelta(hours=session_hours),
    )
    if test_config:
        app.config.update(test_config)

    if not app.config["SECRET_KEY"]:
        # Sessions will not survive a restart; fine for local use only.
        app.logger.warning("SECRET_KEY is not set; using a random per-process key")
        app.config["SECRET_KEY"] = secrets.token_hex(32)
    if not app.config["ALLOWED_ADMIN_EMAILS"] and app.config["ADMIN_AUTHORIZER"] is None:
        app.logger.warning("ALLOWED_ADMIN_EMAILS is empty; the admin area is locked")

    # Japanese names and labels are returned as-is rather than \u-escaped.
    app.json.ensure_ascii = False

    from . import routes
    app.register_blueprint(routes.bp)

    from .cli import persons_cli, seiseki_cli
    app.cli.add_command(persons_cli)
    app.cli.add_command(seiseki_cli)

    app.logger.info("Serving results from %s", app.config["DATA_DIR"])
    return app


if __name__ == '__main__':
    port = int(os.environ.get('PORT', 5000))
    create_app().run(host='0.0.0.0', port=port)
