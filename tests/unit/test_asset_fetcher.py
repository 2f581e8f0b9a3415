"""Tests for Drive reference resolution and downloads."""

from unittest.mock import MagicMock

import pytest
import requests
from urllib3.exceptions import ReadTimeoutError

from reelbatch.core.exceptions import AccessDenied, FetchError, FetchTimeout, NotFound, UnresolvableReference
from reelbatch.models.schemas import FetchRequest
from reelbatch.services.asset_fetcher import (
    AssetFetcher,
    build_download_urls,
    extract_file_id,
    filename_from_disposition,
)


def make_response(status_code=200, content_type="application/octet-stream", body=b"data", disposition=None):
    response = MagicMock()
    response.status_code = status_code
    headers = {"Content-Type": content_type}
    if disposition:
        headers["Content-Disposition"] = disposition
    response.headers = headers
    response.iter_content.return_value = [body]
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(f"{status_code} error")
    return response


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def fetcher(settings, logger, session):
    return AssetFetcher(settings, logger, session=session)


@pytest.mark.parametrize(
    "reference, file_id",
    [
        ("https://drive.google.com/file/d/1AbC_d-9/view?usp=sharing", "1AbC_d-9"),
        ("https://drive.google.com/drive/folders/FOLDER123", "FOLDER123"),
        ("https://drive.google.com/open?id=XYZ789", "XYZ789"),
        ("https://docs.google.com/document/d/DOC42/edit", "DOC42"),
        ("rawFileId_123", "rawFileId_123"),
        ("https%3A%2F%2Fdrive.google.com%2Ffile%2Fd%2FENC1%2Fview", "ENC1"),
    ],
)
def test_extract_file_id(reference, file_id):
    """Test the ordered file id patterns."""
    assert extract_file_id(reference) == file_id


def test_extract_file_id_unresolvable():
    with pytest.raises(UnresolvableReference):
        extract_file_id("https://example.com/not a drive link")


def test_build_download_urls():
    urls = build_download_urls("https://drive.google.com/file/d/ABC/view")
    assert urls.direct_url == "https://drive.google.com/uc?export=download&id=ABC"
    assert urls.confirm_url == "https://drive.google.com/uc?export=download&confirm=t&id=ABC"


def test_filename_from_disposition():
    assert filename_from_disposition('attachment; filename="clip.MOV"') == "clip.MOV"
    assert filename_from_disposition("attachment; filename*=UTF-8''%E5%8B%95%E7%94%BB.mp4") == "動画.mp4"
    assert filename_from_disposition(None) is None
    assert filename_from_disposition("inline") is None


def test_fetch_writes_file(fetcher, session, tmp_path):
    session.get.return_value = make_response(body=b"video bytes")

    asset = fetcher.fetch("https://drive.google.com/file/d/ABC/view", tmp_path / "x_video.mp4")

    assert asset.path.read_bytes() == b"video bytes"
    assert session.get.call_count == 1
    assert session.get.call_args[0][0].endswith("id=ABC")


def test_fetch_uses_remote_extension(fetcher, session, tmp_path):
    """Test that a Content-Disposition name decides the local extension."""
    session.get.return_value = make_response(disposition='attachment; filename="overlay.png"')

    asset = fetcher.fetch("ABC", tmp_path / "x_image.jpg")

    assert asset.path.suffix == ".png"
    assert asset.original_file_name == "overlay.png"


def test_fetch_retries_confirm_url_on_html(fetcher, session, tmp_path):
    """Test the confirmation-page retry."""
    session.get.side_effect = [
        make_response(content_type="text/html; charset=utf-8"),
        make_response(body=b"real content"),
    ]

    asset = fetcher.fetch("ABC", tmp_path / "x_video.mp4")

    assert asset.path.read_bytes() == b"real content"
    assert "confirm=t" in session.get.call_args_list[1][0][0]


def test_fetch_retries_confirm_url_on_403(fetcher, session, tmp_path):
    session.get.side_effect = [make_response(status_code=403), make_response(body=b"ok")]
    assert fetcher.fetch("ABC", tmp_path / "x.mp4").path.read_bytes() == b"ok"


def test_fetch_access_denied_after_confirm(fetcher, session, tmp_path):
    session.get.side_effect = [
        make_response(content_type="text/html"),
        make_response(content_type="text/html"),
    ]
    with pytest.raises(AccessDenied):
        fetcher.fetch("ABC", tmp_path / "x.mp4")


def test_fetch_not_found(fetcher, session, tmp_path):
    session.get.return_value = make_response(status_code=404)
    with pytest.raises(NotFound):
        fetcher.fetch("ABC", tmp_path / "x.mp4")


def test_fetch_timeout(fetcher, session, tmp_path):
    session.get.side_effect = requests.exceptions.ReadTimeout("slow")
    with pytest.raises(FetchTimeout):
        fetcher.fetch("ABC", tmp_path / "x.mp4")


def test_fetch_stall_while_streaming_is_timeout(fetcher, session, tmp_path):
    """Test that a read timeout raised from iter_content maps to FetchTimeout."""
    response = make_response()
    response.iter_content.side_effect = requests.exceptions.ConnectionError(
        ReadTimeoutError(None, None, "Read timed out.")
    )
    session.get.return_value = response

    with pytest.raises(FetchTimeout):
        fetcher.fetch("ABC", tmp_path / "x.mp4")
    assert not (tmp_path / "x.mp4").exists()


def test_fetch_removes_partial_file(fetcher, session, tmp_path):
    response = make_response()
    response.iter_content.side_effect = requests.exceptions.ChunkedEncodingError("broken")
    session.get.return_value = response

    with pytest.raises(FetchError):
        fetcher.fetch("ABC", tmp_path / "x.mp4")
    assert not (tmp_path / "x.mp4").exists()


def test_fetch_many_reports_partial_success(fetcher, session, tmp_path):
    """Test that one failure does not prevent the other downloads."""
    session.get.side_effect = [make_response(body=b"one"), make_response(status_code=404)]

    result = fetcher.fetch_many(
        [
            FetchRequest(url="GOOD", output_path=tmp_path / "a.mp4", label="video"),
            FetchRequest(url="MISSING", output_path=tmp_path / "b.mp3", label="audio"),
        ]
    )

    assert [asset.url for asset in result.succeeded] == ["GOOD"]
    assert [failure.url for failure in result.failed] == ["MISSING"]
    assert result.failed[0].error_type == "NotFound"


def test_fetch_many_unresolvable_does_not_raise(fetcher, tmp_path):
    result = fetcher.fetch_many([FetchRequest(url="not a link!", output_path=tmp_path / "a.mp4")])
    assert result.succeeded == []
    assert result.failed[0].error_type == "UnresolvableReference"
