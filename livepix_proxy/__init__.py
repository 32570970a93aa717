"""
LivePix Proxy – donation API gateway

This package houses the Flask application that sits between the browser and
the LivePix donation platform.  The browser never sees the OAuth client
secret nor talks to LivePix directly; instead it calls the two routes below:

* ``POST /api/livepix/token``   – client-credentials token exchange
* ``GET  /api/livepix/messages`` – every donation message across pages,
  optionally restricted to ``startDate``/``endDate`` and de-duplicated.
"""

from typing import Any, Mapping, Optional

import os

from flask import Flask, current_app, jsonify, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from livepix_proxy import cloud_logging as logging
from livepix_proxy.helper_functions import parse_bearer_token, resolve_client_credentials
from livepix_proxy.inputs import livepix
from livepix_proxy.pipeline import InvalidDateRange, aggregate_messages

__all__ = ["create_app", "limiter"]

DEFAULT_RATE_LIMITS = "200 per day;50 per hour"

# Settings seeded into ``app.config`` from the environment when the app is
# created; a ``config`` mapping passed to :pyfunc:`create_app` wins.
_ENV_DEFAULTS = {
    "LIVEPIX_CLIENT_ID": None,
    "LIVEPIX_CLIENT_SECRET": None,
    "LIVEPIX_SECRET_PROJECT": None,
    "LIVEPIX_OAUTH_URL": livepix.DEFAULT_OAUTH_URL,
    "LIVEPIX_API_URL": livepix.DEFAULT_API_URL,
    "LIVEPIX_TIMEOUT": livepix.DEFAULT_TIMEOUT,
    "CORS_ORIGINS": "*",
    "RATELIMIT_DEFAULT": DEFAULT_RATE_LIMITS,
}

# ---------------------------------------------------------------------------
# Rate limiter – instantiated at module level to avoid circular imports.
# The default limit is resolved per request from the serving app's config.
# ---------------------------------------------------------------------------

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[lambda: current_app.config["RATELIMIT_DEFAULT"]],
    storage_uri="memory://",
)


def _cors_origins(raw: Optional[str]) -> Any:
    if not raw or raw.strip() == "*":
        return "*"
    return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app(logger: Any = None, *, config: Optional[Mapping[str, Any]] = None) -> Flask:
    """Create and configure the Flask application instance.

    ``logger`` is an optional Google Cloud logger (anything exposing
    ``log_text``); when given, every module's log output is routed to it.
    Settings are read from the environment here, once; ``config`` entries
    override them.
    """
    if logger is not None and hasattr(logger, "log_text"):
        logging.use_cloud_logger(logger)

    app = Flask(__name__)
    for key, default in _ENV_DEFAULTS.items():
        app.config[key] = os.getenv(key) or default
    if config:
        app.config.update(config)

    limiter.init_app(app)
    CORS(
        app,
        resources={r"/api/*": {"origins": _cors_origins(app.config["CORS_ORIGINS"])}},
        methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    # ---------------------------------------------------------------------
    # Health check route – required by Cloud Run / load-balancers
    # ---------------------------------------------------------------------
    @app.route("/", methods=["GET"])
    @limiter.exempt
    def health_check():  # type: ignore[return-value]
        """Light-weight liveness probe endpoint."""
        return (
            jsonify({
                "status": "ok",
                "message": "LivePix proxy is online. "
                "Use /api/livepix/token and /api/livepix/messages.",
            }),
            200,
        )

    # ---------------------------------------------------------------------
    # Token exchange
    # ---------------------------------------------------------------------
    @app.route("/api/livepix/token", methods=["POST"])
    def token():  # type: ignore[return-value]
        payload = request.get_json(silent=True)
        if payload is None:
            payload = request.form.to_dict()

        try:
            client_id, client_secret = resolve_client_credentials(payload, app.config)
            if not client_id or not client_secret:
                return (
                    jsonify({
                        "error": "Client ID and client secret are required "
                        "(LIVEPIX_CLIENT_ID / LIVEPIX_CLIENT_SECRET).",
                    }),
                    400,
                )
            result = livepix.request_token(
                client_id,
                client_secret,
                oauth_url=app.config["LIVEPIX_OAUTH_URL"],
                timeout=float(app.config["LIVEPIX_TIMEOUT"]),
            )
        except livepix.UpstreamError as exc:
            return jsonify(exc.body), exc.status_code
        except Exception as exc:  # transport, Secret Manager, malformed upstream JSON …
            logging.log_text(f"Proxy failed to obtain token: {exc!r}", severity="ERROR")
            return jsonify({"error": "Internal server error while requesting token."}), 500

        return jsonify(result), 200

    # ---------------------------------------------------------------------
    # Aggregated messages
    # ---------------------------------------------------------------------
    @app.route("/api/livepix/messages", methods=["GET"])
    def messages():  # type: ignore[return-value]
        access_token = parse_bearer_token(request.headers.get("Authorization"))
        if access_token is None:
            return jsonify({"error": "Access token missing or invalid."}), 401

        try:
            result = aggregate_messages(
                livepix.page_fetcher(
                    access_token,
                    api_url=app.config["LIVEPIX_API_URL"],
                    timeout=float(app.config["LIVEPIX_TIMEOUT"]),
                ),
                request.args.get("startDate"),
                request.args.get("endDate"),
            )
        except InvalidDateRange as exc:
            return jsonify({"error": str(exc)}), 400
        except livepix.UpstreamError as exc:
            return jsonify(exc.body), exc.status_code
        except Exception as exc:  # transport, malformed upstream JSON …
            logging.log_text(f"Proxy failed to fetch messages: {exc!r}", severity="ERROR")
            return jsonify({"error": "Internal server error while fetching messages."}), 500

        return jsonify(result), 200

    # ---------------------------------------------------------------------
    # Rate-limit error handler – converts 429 into JSON response & structured log
    # ---------------------------------------------------------------------
    @app.errorhandler(429)  # type: ignore[arg-type]
    def _ratelimit_handler(error):
        client_ip = request.remote_addr or "unknown"
        user_agent = request.headers.get("User-Agent", "Unknown")
        logging.log_text(
            f"Rate limit exceeded: {error} – IP: {client_ip}, User-Agent: {user_agent}",
            severity="WARNING",
        )
        return (
            jsonify({
                "status": "error",
                "message": "Rate limit exceeded. Please try again later.",
            }),
            429,
        )

    logging.log_text("Flask application initialised", severity="INFO")
    return app
