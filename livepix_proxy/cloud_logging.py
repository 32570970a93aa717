"""cloud_logging.py – Google Cloud Logging facade

Every module in the proxy logs through :pyfunc:`log_text` so that call-sites
read the same way regardless of where the process runs::

    from livepix_proxy import cloud_logging as logging
    logging.log_text("Fetched page 3", severity="DEBUG")

When a Google Cloud logger has been installed (see :pyfunc:`use_cloud_logger`,
called by ``main_driver`` and :pyfunc:`livepix_proxy.create_app`) messages are
forwarded to it.  Otherwise they go to the stdlib root logger, which keeps
tests and local runs free of any GCP credentials.
"""

from __future__ import annotations

from typing import Any, Optional
import logging as pylogging
import os

from google.cloud import logging as gcp_logging

__all__ = [
    "build_cloud_logger",
    "current_cloud_logger",
    "log_text",
    "use_cloud_logger",
]

_gcp_logger: Optional[Any] = None

# Cloud Logging severities that have no stdlib counterpart fold into INFO.
_STDLIB_LEVELS = {
    "DEBUG": pylogging.DEBUG,
    "INFO": pylogging.INFO,
    "NOTICE": pylogging.INFO,
    "WARNING": pylogging.WARNING,
    "ERROR": pylogging.ERROR,
    "CRITICAL": pylogging.CRITICAL,
}


def log_name() -> str:
    """Return the Cloud Logging log name for the current environment."""
    return f"{os.getenv('ENV_NAME', 'dev')}_livepix_proxy"


def build_cloud_logger() -> Optional[Any]:  # pragma: no cover – needs GCP credentials
    """Return a Google Cloud logger, or ``None`` when the client cannot be built."""
    try:
        client = gcp_logging.Client()
    except Exception as exc:  # missing ADC, no project, offline …
        pylogging.getLogger(__name__).warning(
            "Google Cloud Logging unavailable, using stdlib logging: %s", exc
        )
        return None
    return client.logger(log_name())


def use_cloud_logger(gcp_logger: Optional[Any]) -> None:
    """Route :pyfunc:`log_text` to ``gcp_logger`` (``None`` restores stdlib)."""
    global _gcp_logger  # noqa: PLW0603 – process-wide logging target
    if gcp_logger is not None and not hasattr(gcp_logger, "log_text"):
        raise TypeError("gcp_logger must expose a log_text(text, severity=...) method")
    _gcp_logger = gcp_logger


def current_cloud_logger() -> Optional[Any]:
    return _gcp_logger


def log_text(message: str, *, severity: str = "INFO") -> None:
    """Emit ``message`` with the given Cloud Logging ``severity``."""
    level = severity.upper()
    if _gcp_logger is not None:
        _gcp_logger.log_text(message, severity=level)
        return
    pylogging.getLogger("livepix_proxy").log(_STDLIB_LEVELS.get(level, pylogging.INFO), message)
