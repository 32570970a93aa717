from livepix_proxy import create_app
from livepix_proxy import cloud_logging
import os
import sys
import logging as pylogging


# Set up logging
logger = cloud_logging.build_cloud_logger()

# ---------------------------------------------------------------------------
# Google Cloud Logging – centralised configuration
# ---------------------------------------------------------------------------

class CloudLoggingHandler(pylogging.Handler):
    """Stdlib logging handler that forwards records to Google Cloud Logging."""

    def __init__(self, gcp_logger):
        super().__init__()
        self._gcp_logger = gcp_logger

    def emit(self, record: pylogging.LogRecord) -> None:
        try:
            msg = self.format(record)
            severity = record.levelname.upper()
            self._gcp_logger.log_text(msg, severity=severity)
        except Exception:  # pragma: no cover – never let logging crash the app
            super().handleError(record)

# ---------------------------------------------------------------------
# Attach Cloud Logging handler to *root* logger so that third-party
# libraries using the stdlib ``logging`` API (Flask, requests, gunicorn)
# are transparently forwarded to GCP.  Without Cloud Logging the root
# logger simply writes to stderr.
# ---------------------------------------------------------------------

root_logger = pylogging.getLogger()
root_logger.setLevel(pylogging.INFO)
if logger is not None:
    _handler = CloudLoggingHandler(logger)
    _handler.setFormatter(
        pylogging.Formatter("%(asctime)s %(levelname)s %(name)s – %(message)s")
    )
    root_logger.addHandler(_handler)
else:
    pylogging.basicConfig(
        level=pylogging.INFO,
        format="%(asctime)s %(levelname)s %(name)s – %(message)s",
    )

FLASK_ENV = os.getenv("FLASK_ENV", "development").lower()
PORT = int(os.getenv("PORT", 3001))

# Pass the Google Cloud logger to the Flask factory
app = create_app(logger)

cloud_logging.log_text(f"Proxy starting in {FLASK_ENV} mode on port {PORT}", severity="INFO")
if not os.getenv("LIVEPIX_CLIENT_ID") or not os.getenv("LIVEPIX_CLIENT_SECRET"):
    cloud_logging.log_text(
        "LIVEPIX_CLIENT_ID / LIVEPIX_CLIENT_SECRET not set – token requests must "
        "carry credentials or LIVEPIX_SECRET_PROJECT must be configured.",
        severity="WARNING",
    )


def run_server() -> None:
    """
    Run the appropriate web server based on the environment configuration.

    Environment Variables
    --------------------
    FLASK_ENV : str
        "production" starts Gunicorn; anything else starts the Flask
        development server with debug enabled.
    PORT : int
        Port to bind, defaults to 3001.

    Notes
    -----
    A single aggregated messages request can chain up to 20 upstream calls,
    hence the generous 120-second worker timeout in production.
    """

    if FLASK_ENV == "production":
        from gunicorn.app.wsgiapp import run

        sys.argv = [
            "gunicorn",
            "main_driver:app",  # The WSGI entrypoint (module:variable)
            "--bind",
            f"0.0.0.0:{PORT}",
            "--workers",
            "2",
            "--timeout",
            "120",
        ]
        run()  # This will block until Gunicorn exits
    else:
        app.run(host="0.0.0.0", port=PORT, debug=True)


if __name__ == "__main__":
    run_server()
