"""Tests for Google credential loading."""

import base64
import json
from unittest.mock import MagicMock, patch

import pytest

from reelbatch.services.google_auth import (
    GOOGLE_SCOPES,
    load_credentials,
    load_service_account_credentials,
    parse_service_account_info,
)

SERVICE_ACCOUNT = {"type": "service_account", "client_email": "bot@example.iam.gserviceaccount.com"}


def test_parse_raw_json():
    assert parse_service_account_info(json.dumps(SERVICE_ACCOUNT)) == SERVICE_ACCOUNT


def test_parse_base64_json():
    encoded = base64.b64encode(json.dumps(SERVICE_ACCOUNT).encode()).decode()
    assert parse_service_account_info(encoded) == SERVICE_ACCOUNT


@pytest.mark.parametrize("raw", ["not base64 !!", json.dumps({"foo": "bar"})])
def test_parse_rejects_invalid(raw):
    with pytest.raises(ValueError):
        parse_service_account_info(raw)


@patch("reelbatch.services.google_auth.service_account.Credentials")
def test_service_account_from_config(mock_credentials, settings, logger):
    settings = settings.model_copy(update={"google_config": json.dumps(SERVICE_ACCOUNT)})

    load_service_account_credentials(settings, logger)

    mock_credentials.from_service_account_info.assert_called_once_with(SERVICE_ACCOUNT, scopes=GOOGLE_SCOPES)


def test_service_account_absent(settings, logger):
    assert load_service_account_credentials(settings, logger) is None


def test_load_credentials_requires_a_source(settings, logger):
    with pytest.raises(ValueError):
        load_credentials(settings, logger)


@patch("reelbatch.services.google_auth.Credentials")
def test_oauth_mode_uses_saved_token(mock_credentials, settings, logger, tmp_path):
    token_file = tmp_path / "token.json"
    token_file.write_text("{}")
    creds = MagicMock()
    creds.valid = True
    mock_credentials.from_authorized_user_file.return_value = creds
    settings = settings.model_copy(update={"row_source_mode": "oauth", "google_token_file": str(token_file)})

    assert load_credentials(settings, logger) is creds


@patch("reelbatch.services.google_auth.Request")
@patch("reelbatch.services.google_auth.Credentials")
def test_oauth_refreshes_expired_token(mock_credentials, mock_request, settings, logger, tmp_path):
    token_file = tmp_path / "token.json"
    token_file.write_text("{}")
    creds = MagicMock()
    creds.valid = False
    creds.expired = True
    creds.refresh_token = "refresh"
    creds.to_json.return_value = '{"token": "new"}'
    mock_credentials.from_authorized_user_file.return_value = creds
    settings = settings.model_copy(update={"row_source_mode": "oauth", "google_token_file": str(token_file)})

    load_credentials(settings, logger)

    creds.refresh.assert_called_once()
    assert token_file.read_text() == '{"token": "new"}'
