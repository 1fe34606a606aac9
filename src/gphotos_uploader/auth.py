"""OAuth2 session acquisition for configured accounts."""

import asyncio
import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials

from gphotos_uploader.api_client import SCOPES, GooglePhotosClient
from gphotos_uploader.config import AppCredentials

logger = logging.getLogger(__name__)

TOKEN_URI = "https://oauth2.googleapis.com/token"
TOKENS_DIRNAME = "tokens"


class AuthError(Exception):
    """Raised when an account cannot be authenticated."""

    pass


def token_file(config_dir: Path, account: str) -> Path:
    """Path of the stored token of an account."""
    return config_dir / TOKENS_DIRNAME / f"{account}.json"


def _parse_expiry(value: str | None) -> datetime | None:
    # google-auth compares expiry as a naive UTC datetime
    if not value:
        return None
    try:
        expiry = datetime.fromisoformat(value)
    except ValueError:
        return None
    if expiry.tzinfo is not None:
        expiry = expiry.astimezone(timezone.utc).replace(tzinfo=None)
    return expiry


def load_credentials(
    config_dir: Path, account: str, app_credentials: AppCredentials
) -> Credentials:
    """Load an account's stored token, refreshing it when needed.

    The token file holds ``refresh_token`` and optionally the last
    ``token`` with its ``expiry``. A token without a known expiry is
    refreshed whenever a refresh token is available. The refreshed token
    and its expiry are written back to the same file.

    Raises:
        AuthError: If no token is stored or the refresh fails
    """
    path = token_file(config_dir, account)
    if not path.is_file():
        raise AuthError(f"No token stored for account '{account}' (expected {path})")

    try:
        stored = json.loads(path.read_text(encoding="utf-8"))
    except ValueError as e:
        raise AuthError(f"Corrupted token file {path}: {e}") from e

    creds = Credentials(
        token=stored.get("token"),
        expiry=_parse_expiry(stored.get("expiry")),
        refresh_token=stored.get("refresh_token"),
        token_uri=TOKEN_URI,
        client_id=app_credentials.client_id,
        client_secret=app_credentials.client_secret,
        scopes=SCOPES,
    )
    if creds.valid and (creds.expiry is not None or not creds.refresh_token):
        return creds
    if not creds.refresh_token:
        raise AuthError(f"Token of account '{account}' expired and cannot be refreshed")

    try:
        creds.refresh(Request())
    except RefreshError as e:
        raise AuthError(f"Failed to refresh token of account '{account}': {e}") from e

    stored["token"] = creds.token
    stored["expiry"] = creds.expiry.isoformat() if creds.expiry else None
    path.write_text(json.dumps(stored, indent=2), encoding="utf-8")
    logger.debug(f"Refreshed token of account '{account}'")
    return creds


async def open_session(
    config_dir: Path, account: str, app_credentials: AppCredentials
) -> GooglePhotosClient:
    """Return an API client authenticated for ``account``.

    The caller enters the returned client as an async context manager.
    """
    creds = await asyncio.to_thread(load_credentials, config_dir, account, app_credentials)
    logger.info(f"Authenticated account '{account}'")
    return GooglePhotosClient(creds.token)
