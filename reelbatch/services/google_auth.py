"""Google credential loading for the Sheets and Drive clients."""

import base64
import binascii
import json
from pathlib import Path
from typing import Any, Optional

from google.auth.transport.requests import Request
from google.oauth2 import service_account
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build

from reelbatch.core.config import Settings

GOOGLE_SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive",
]


def parse_service_account_info(raw: str) -> dict:
    """
    Decode service account JSON given raw or base64 encoded.

    Raises:
        ValueError: If the value is neither valid JSON nor base64 encoded JSON
    """
    text = raw.strip()
    if not text.startswith("{"):
        try:
            text = base64.b64decode(text, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as e:
            raise ValueError("GOOGLE_CONFIG is neither JSON nor base64 encoded JSON") from e
    info = json.loads(text)
    if not isinstance(info, dict) or "client_email" not in info:
        raise ValueError("GOOGLE_CONFIG does not look like a service account key")
    return info


def load_service_account_credentials(settings: Settings, logger: Any) -> Optional[service_account.Credentials]:
    """
    Build service account credentials from GOOGLE_CONFIG or a key file.

    Returns:
        Credentials, or None when neither source is configured
    """
    if settings.google_config:
        info = parse_service_account_info(settings.google_config)
        logger.info(f"Using service account from GOOGLE_CONFIG: {info['client_email']}")
        return service_account.Credentials.from_service_account_info(info, scopes=GOOGLE_SCOPES)

    if settings.google_credentials_file:
        key_file = Path(settings.google_credentials_file)
        if not key_file.exists():
            raise FileNotFoundError(f"Service account key file not found: {key_file}")
        logger.info(f"Using service account key file: {key_file}")
        return service_account.Credentials.from_service_account_file(str(key_file), scopes=GOOGLE_SCOPES)

    return None


def load_oauth_credentials(settings: Settings, logger: Any) -> Credentials:
    """Load, refresh or interactively obtain user OAuth credentials."""
    creds = None
    token_file = Path(settings.google_token_file)

    if token_file.exists():
        logger.info(f"Loading Google token from: {token_file}")
        creds = Credentials.from_authorized_user_file(str(token_file), GOOGLE_SCOPES)

    if not creds or not creds.valid:
        if creds and creds.expired and creds.refresh_token:
            logger.info("Refreshing Google token...")
            creds.refresh(Request())
        else:
            logger.info("Starting Google OAuth flow...")
            if not settings.google_client_secrets_file:
                raise ValueError(
                    "Google client secrets file not configured. "
                    "Set GOOGLE_CLIENT_SECRETS_FILE in .env or config."
                )
            secrets_file = Path(settings.google_client_secrets_file)
            if not secrets_file.exists():
                raise FileNotFoundError(
                    f"Google client secrets file not found: {secrets_file}. "
                    "Download from https://console.cloud.google.com/apis/credentials"
                )
            flow = InstalledAppFlow.from_client_secrets_file(str(secrets_file), GOOGLE_SCOPES)
            creds = flow.run_local_server(port=0)

        logger.info(f"Saving Google token to: {token_file}")
        token_file.parent.mkdir(parents=True, exist_ok=True)
        with open(token_file, "w") as token:
            token.write(creds.to_json())

    return creds


def load_credentials(settings: Settings, logger: Any) -> Any:
    """
    Pick credentials for the configured mode.

    ``oauth`` uses the user token flow; anything else prefers a service
    account and falls back to OAuth when a client secrets file is present.

    Raises:
        ValueError: If no credential source is configured
    """
    if settings.row_source_mode == "oauth":
        return load_oauth_credentials(settings, logger)

    creds = load_service_account_credentials(settings, logger)
    if creds is not None:
        return creds
    if settings.google_client_secrets_file:
        return load_oauth_credentials(settings, logger)
    raise ValueError(
        "No Google credentials configured. Set GOOGLE_CONFIG, GOOGLE_CREDENTIALS_FILE "
        "or GOOGLE_CLIENT_SECRETS_FILE."
    )


def build_google_service(api: str, version: str, credentials: Any) -> Any:
    """Build a Google API client (discovery cache disabled)."""
    return build(api, version, credentials=credentials, cache_discovery=False)
