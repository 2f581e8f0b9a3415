"""Shared pytest fixtures and configuration."""

import pytest

from reelbatch.core.config import Settings
from reelbatch.core.logging_config import get_logger


@pytest.fixture
def settings(tmp_path):
    """Create test settings rooted in a temporary work directory."""
    return Settings(
        work_dir=str(tmp_path / "storage"),
        google_config=None,
        google_credentials_file=None,
        google_client_secrets_file=None,
        spreadsheet_id=None,
        sheet_name=None,
        drive_folder_id=None,
        ffmpeg_binary="ffmpeg",
        publisher_mode="local",
        row_source_mode="public",
        public_base_url="http://testserver",
        publish_retry_delay_seconds=0,
        max_parallel_downloads=1,
        _env_file=None,
    )


@pytest.fixture
def logger():
    """Create test logger instance."""
    return get_logger(__name__)
