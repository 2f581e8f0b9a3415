"""Asset Fetcher - downloads publicly shared Google Drive files."""

import re
from pathlib import Path
from typing import Any, NamedTuple, Optional
from urllib.parse import unquote

import requests
from urllib3.exceptions import ReadTimeoutError

from reelbatch.core.config import Settings
from reelbatch.core.exceptions import AccessDenied, FetchError, FetchTimeout, NotFound, UnresolvableReference
from reelbatch.models.schemas import FetchedAsset, FetchFailure, FetchManyResult, FetchRequest
from reelbatch.utils.parallel_executor import ParallelExecutor

# Tried in order; the first match wins
FILE_ID_PATTERNS = (
    re.compile(r"/file/d/([a-zA-Z0-9_-]+)"),
    re.compile(r"/folders/([a-zA-Z0-9_-]+)"),
    re.compile(r"id=([a-zA-Z0-9_-]+)"),
    re.compile(r"/d/([a-zA-Z0-9_-]+)"),
    re.compile(r"^([a-zA-Z0-9_-]+)$"),
)

DIRECT_DOWNLOAD_URL = "https://drive.google.com/uc?export=download&id={file_id}"
CONFIRM_DOWNLOAD_URL = "https://drive.google.com/uc?export=download&confirm=t&id={file_id}"

_DISPOSITION_UTF8 = re.compile(r"filename\*\s*=\s*(?:UTF-8|utf-8)''([^;]+)")
_DISPOSITION_PLAIN = re.compile(r'filename\s*=\s*"?([^";]+)"?')


class DownloadUrls(NamedTuple):
    file_id: str
    direct_url: str
    confirm_url: str


class _NeedsConfirmation(Exception):
    """The direct URL answered with an HTML interstitial or a 403."""


def _is_read_timeout(error: requests.exceptions.RequestException) -> bool:
    """A stall while streaming the body surfaces as ConnectionError wrapping ReadTimeoutError."""
    return isinstance(error, requests.exceptions.ConnectionError) and any(
        isinstance(arg, ReadTimeoutError) for arg in error.args
    )


def extract_file_id(reference: str) -> str:
    """
    Extract a Drive file id from a share link or bare id.

    Raises:
        UnresolvableReference: If no pattern matches
    """
    decoded = unquote(reference.strip())
    for pattern in FILE_ID_PATTERNS:
        match = pattern.search(decoded)
        if match:
            return match.group(1)
    raise UnresolvableReference(f"Could not extract a file id from: {reference}", reference=reference)


def build_download_urls(reference: str) -> DownloadUrls:
    """Resolve a reference into its direct and confirm download URLs."""
    file_id = extract_file_id(reference)
    return DownloadUrls(
        file_id=file_id,
        direct_url=DIRECT_DOWNLOAD_URL.format(file_id=file_id),
        confirm_url=CONFIRM_DOWNLOAD_URL.format(file_id=file_id),
    )


def filename_from_disposition(header: Optional[str]) -> Optional[str]:
    """Extract the file name from a Content-Disposition header, if any."""
    if not header:
        return None
    match = _DISPOSITION_UTF8.search(header) or _DISPOSITION_PLAIN.search(header)
    if not match:
        return None
    name = Path(unquote(match.group(1).strip())).name
    return name or None


class AssetFetcher:
    """Downloads remote media references to local files."""

    def __init__(self, settings: Settings, logger: Any, session: Optional[requests.Session] = None):
        """
        Initialize asset fetcher.

        Args:
            settings: Application settings
            logger: Logger instance
            session: Optional requests session (one is created when omitted)
        """
        self.settings = settings
        self.logger = logger
        self.session = session or requests.Session()
        self.parallel_executor = ParallelExecutor(settings, logger)

    def fetch(self, remote_ref: str, output_path: Path) -> FetchedAsset:
        """
        Download one reference.

        The direct download URL is tried first. If it returns an HTML page
        (Drive's large-file confirmation) or a 403, the confirm URL is tried.
        When the response names the file, its extension replaces the one of
        ``output_path``.

        Args:
            remote_ref: Share link or bare file id
            output_path: Preferred local destination

        Returns:
            FetchedAsset with the actual local path and original file name

        Raises:
            UnresolvableReference, NotFound, AccessDenied, FetchTimeout, FetchError
        """
        urls = build_download_urls(remote_ref)
        self.logger.info(f"Downloading {remote_ref} (file id: {urls.file_id})")

        try:
            try:
                return self._download(urls.direct_url, remote_ref, output_path, allow_confirm=True)
            except _NeedsConfirmation:
                self.logger.warning(f"Confirmation page detected for {urls.file_id}, retrying with confirm URL...")
                return self._download(urls.confirm_url, remote_ref, output_path, allow_confirm=False)
        except requests.exceptions.Timeout as e:
            raise FetchTimeout(f"Download timed out: {remote_ref}", reference=remote_ref) from e
        except requests.exceptions.RequestException as e:
            if _is_read_timeout(e):
                raise FetchTimeout(f"Download stalled: {remote_ref}", reference=remote_ref) from e
            raise FetchError(f"Download failed: {remote_ref}: {e}", reference=remote_ref) from e

    def _download(self, url: str, remote_ref: str, output_path: Path, allow_confirm: bool) -> FetchedAsset:
        response = self.session.get(
            url,
            stream=True,
            timeout=self.settings.download_timeout_seconds,
            allow_redirects=True,
            headers={"User-Agent": self.settings.download_user_agent},
        )
        try:
            if response.status_code == 404:
                raise NotFound(f"File not found. Check the link: {remote_ref}", reference=remote_ref)
            if response.status_code == 403:
                if allow_confirm:
                    raise _NeedsConfirmation()
                raise AccessDenied(
                    f"Access denied. Share the file with 'Anyone with the link': {remote_ref}",
                    reference=remote_ref,
                )
            response.raise_for_status()

            content_type = response.headers.get("Content-Type", "")
            if "text/html" in content_type.lower():
                if allow_confirm:
                    raise _NeedsConfirmation()
                raise AccessDenied(
                    f"Received an HTML page instead of file content; check sharing settings: {remote_ref}",
                    reference=remote_ref,
                )

            remote_name = filename_from_disposition(response.headers.get("Content-Disposition"))
            if remote_name and Path(remote_name).suffix:
                output_path = output_path.with_suffix(Path(remote_name).suffix.lower())

            self._save_stream(response, output_path)
        finally:
            response.close()

        size = output_path.stat().st_size
        self.logger.info(f"Download complete: {output_path.name} ({size} bytes)")
        return FetchedAsset(url=remote_ref, path=output_path, original_file_name=remote_name or output_path.name)

    def _save_stream(self, response: requests.Response, output_path: Path) -> None:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with open(output_path, "wb") as f:
                for chunk in response.iter_content(chunk_size=self.settings.download_chunk_size):
                    if chunk:
                        f.write(chunk)
        except BaseException:
            output_path.unlink(missing_ok=True)
            raise

    def fetch_many(self, fetch_requests: list[FetchRequest], context: Optional[str] = None) -> FetchManyResult:
        """
        Download several references independently.

        Never raises for individual failures; they are reported in ``failed``.

        Args:
            fetch_requests: Assets to download
            context: Optional log prefix

        Returns:
            FetchManyResult with successes and failures in request order
        """
        tasks = [
            (lambda request=request: self.fetch(request.url, request.output_path))
            for request in fetch_requests
        ]
        names = [f"{request.label}_download" for request in fetch_requests]
        outcomes = self.parallel_executor.execute(tasks, task_names=names, context=context)

        result = FetchManyResult()
        for request, (asset, error) in zip(fetch_requests, outcomes):
            if error is None:
                result.succeeded.append(asset)
            else:
                result.failed.append(
                    FetchFailure(url=request.url, error=str(error), error_type=type(error).__name__)
                )
        self.logger.info(f"Download results: {len(result.succeeded)} succeeded, {len(result.failed)} failed")
        return result
