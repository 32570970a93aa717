import sys
from pathlib import Path

import pytest

# Ensure the repository root (parent directory of this file) is on the import path.
# This allows test modules to do `import livepix_proxy...` even when pytest is executed
# from a sub-directory or when the working directory is not the project root.
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from livepix_proxy import cloud_logging  # noqa: E402


class RecordingLogger:
    """Stand-in for a Google Cloud logger that keeps every entry in memory."""

    def __init__(self):
        self.records: list[tuple[str, str]] = []

    def log_text(self, text: str, *, severity: str = "INFO"):
        self.records.append((text, severity))


@pytest.fixture(autouse=True)
def _reset_cloud_logger():
    """Make sure no test leaks an installed Cloud logger into the next one."""
    yield
    cloud_logging.use_cloud_logger(None)


@pytest.fixture
def gcp_logger() -> RecordingLogger:
    logger = RecordingLogger()
    cloud_logging.use_cloud_logger(logger)
    return logger


@pytest.fixture(autouse=True)
def _clean_livepix_env(monkeypatch: pytest.MonkeyPatch):
    for var in (
        "LIVEPIX_CLIENT_ID",
        "LIVEPIX_CLIENT_SECRET",
        "LIVEPIX_SECRET_PROJECT",
        "LIVEPIX_OAUTH_URL",
        "LIVEPIX_API_URL",
        "LIVEPIX_TIMEOUT",
        "LIVEPIX_PROXY_URL",
        "LIVEPIX_ACCESS_TOKEN",
    ):
        monkeypatch.delenv(var, raising=False)
