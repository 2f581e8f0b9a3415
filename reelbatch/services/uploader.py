"""Uploader - publishes rendered videos and returns a shareable URL."""

import mimetypes
import shutil
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional

from googleapiclient.http import MediaFileUpload

from reelbatch.core.config import Settings
from reelbatch.core.exceptions import PublishError
from reelbatch.services.google_auth import build_google_service, load_credentials

DRIVE_VIEW_URL = "https://drive.google.com/file/d/{file_id}/view"


class Uploader(ABC):
    """Publishes a local file and makes it readable by anyone with the link."""

    @abstractmethod
    def publish(self, local_path: Path, desired_name: str, folder_id: Optional[str] = None) -> str:
        """
        Publish a rendered file.

        Args:
            local_path: Rendered file
            desired_name: Name of the published artifact
            folder_id: Optional destination override

        Returns:
            Published URL

        Raises:
            PublishError: On any transport failure
        """


class DriveUploader(Uploader):
    """Uploads to Google Drive (v3) and grants anyone-with-link read access."""

    def __init__(self, settings: Settings, logger: Any, service: Any = None):
        """
        Initialize Drive uploader.

        Args:
            settings: Application settings
            logger: Logger instance
            service: Optional prebuilt Drive client
        """
        self.settings = settings
        self.logger = logger
        self._drive_service = service

    def publish(self, local_path: Path, desired_name: str, folder_id: Optional[str] = None) -> str:
        local_path = Path(local_path)
        if not local_path.exists():
            raise PublishError(f"Rendered file not found: {local_path}")

        folder_id = folder_id or self.settings.drive_folder_id
        max_attempts = max(1, self.settings.publish_max_attempts)

        self.logger.info(f"Uploading {local_path.name} to Google Drive as {desired_name} (folder: {folder_id or 'root'})")

        for attempt in range(1, max_attempts + 1):
            if attempt > 1:
                delay = self.settings.publish_retry_delay_seconds * (attempt - 1)
                self.logger.info(f"Waiting {delay:.0f}s before retry attempt {attempt}/{max_attempts}...")
                time.sleep(delay)
            try:
                url = self._upload(local_path, desired_name, folder_id)
            except Exception as e:
                self.logger.warning(f"Drive upload attempt {attempt}/{max_attempts} failed: {e}")
                if attempt == max_attempts:
                    raise PublishError(f"Drive upload failed after {max_attempts} attempts: {e}") from e
                continue

            if not self.settings.keep_rendered_output:
                local_path.unlink(missing_ok=True)
            return url

    def _upload(self, local_path: Path, desired_name: str, folder_id: Optional[str]) -> str:
        drive = self._get_drive_service()

        metadata: dict[str, Any] = {"name": desired_name}
        if folder_id:
            metadata["parents"] = [folder_id]
        mime_type = mimetypes.guess_type(desired_name)[0] or "video/mp4"

        created = drive.files().create(
            body=metadata,
            media_body=MediaFileUpload(str(local_path), mimetype=mime_type, resumable=True),
            fields="id,name,webViewLink",
            supportsAllDrives=True,
        ).execute()
        file_id = created["id"]

        drive.permissions().create(
            fileId=file_id,
            body={"type": "anyone", "role": "reader"},
            supportsAllDrives=True,
        ).execute()

        url = created.get("webViewLink") or DRIVE_VIEW_URL.format(file_id=file_id)
        self.logger.info(f"Drive upload complete: {url}")
        return url

    def _get_drive_service(self) -> Any:
        if self._drive_service is None:
            credentials = load_credentials(self.settings, self.logger)
            self._drive_service = build_google_service("drive", "v3", credentials)
        return self._drive_service


class LocalPublisher(Uploader):
    """Keeps videos in the output directory and links them under ``/output``."""

    def __init__(self, settings: Settings, logger: Any):
        self.settings = settings
        self.logger = logger
        self.output_dir = settings.output_path

    def publish(self, local_path: Path, desired_name: str, folder_id: Optional[str] = None) -> str:
        local_path = Path(local_path)
        if not local_path.exists():
            raise PublishError(f"Rendered file not found: {local_path}")

        target = self.output_dir / desired_name
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            if local_path.resolve() != target.resolve():
                shutil.copyfile(local_path, target)
        except OSError as e:
            raise PublishError(f"Could not publish {desired_name} locally: {e}") from e

        url = f"{self.settings.public_base_url.rstrip('/')}/output/{desired_name}"
        self.logger.info(f"Published locally: {url}")
        return url


def create_uploader(settings: Settings, logger: Any) -> Uploader:
    """
    Select the uploader for ``publisher_mode``.

    Raises:
        ValueError: For an unknown mode
    """
    mode = settings.publisher_mode.lower()
    if mode == "drive":
        return DriveUploader(settings, logger)
    if mode == "local":
        return LocalPublisher(settings, logger)
    raise ValueError(f"Unknown PUBLISHER_MODE '{settings.publisher_mode}' (expected drive or local)")
