"""Tests for per-account session acquisition."""

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from google.auth.exceptions import RefreshError

from gphotos_uploader.api_client import GooglePhotosClient
from gphotos_uploader.auth import AuthError, load_credentials, open_session, token_file
from gphotos_uploader.config import AppCredentials

APP = AppCredentials(client_id="client-id", client_secret="secret")


def store_token(config_dir: Path, account: str, data: dict) -> Path:
    path = token_file(config_dir, account)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data))
    return path


def refresh_with(token: str):
    def fake_refresh(self, request) -> None:
        self.token = token
        self.expiry = datetime(2000, 1, 1)

    return fake_refresh


class TestLoadCredentials:
    """Test token loading and refresh."""

    def test_missing_token(self, tmp_path: Path) -> None:
        with pytest.raises(AuthError, match="No token stored"):
            load_credentials(tmp_path, "me@example.com", APP)

    def test_valid_token_used_as_is(self, tmp_path: Path, monkeypatch) -> None:
        later = datetime.now(timezone.utc) + timedelta(hours=1)
        store_token(
            tmp_path, "me", {"token": "abc", "refresh_token": "r", "expiry": later.isoformat()}
        )
        monkeypatch.setattr("gphotos_uploader.auth.Credentials.refresh", refresh_with("new"))

        creds = load_credentials(tmp_path, "me", APP)

        assert creds.token == "abc"
        assert creds.client_id == "client-id"

    def test_refresh_writes_token_back(self, tmp_path: Path, monkeypatch) -> None:
        path = store_token(tmp_path, "me", {"refresh_token": "r"})
        monkeypatch.setattr("gphotos_uploader.auth.Credentials.refresh", refresh_with("fresh"))

        creds = load_credentials(tmp_path, "me", APP)

        assert creds.token == "fresh"
        assert json.loads(path.read_text()) == {
            "refresh_token": "r",
            "token": "fresh",
            "expiry": "2000-01-01T00:00:00",
        }

    def test_expired_token_refreshed_on_every_run(self, tmp_path: Path, monkeypatch) -> None:
        """Test that a stored token past its expiry is not reused."""
        store_token(tmp_path, "me", {"refresh_token": "r"})
        tokens = iter(["fresh1", "fresh2"])
        calls: list[str] = []

        def fake_refresh(self, request) -> None:
            self.token = next(tokens)
            self.expiry = datetime(2000, 1, 1)
            calls.append(self.token)

        monkeypatch.setattr("gphotos_uploader.auth.Credentials.refresh", fake_refresh)

        load_credentials(tmp_path, "me", APP)
        creds = load_credentials(tmp_path, "me", APP)

        assert calls == ["fresh1", "fresh2"]
        assert creds.token == "fresh2"

    def test_token_without_expiry_is_refreshed(self, tmp_path: Path, monkeypatch) -> None:
        store_token(tmp_path, "me", {"token": "old", "refresh_token": "r"})
        monkeypatch.setattr("gphotos_uploader.auth.Credentials.refresh", refresh_with("new"))

        assert load_credentials(tmp_path, "me", APP).token == "new"

    def test_refresh_failure(self, tmp_path: Path, monkeypatch) -> None:
        store_token(tmp_path, "me", {"refresh_token": "revoked"})

        def fake_refresh(self, request) -> None:
            raise RefreshError("invalid_grant")

        monkeypatch.setattr("gphotos_uploader.auth.Credentials.refresh", fake_refresh)

        with pytest.raises(AuthError, match="Failed to refresh"):
            load_credentials(tmp_path, "me", APP)

    def test_no_refresh_token(self, tmp_path: Path) -> None:
        store_token(tmp_path, "me", {})

        with pytest.raises(AuthError, match="cannot be refreshed"):
            load_credentials(tmp_path, "me", APP)


@pytest.mark.asyncio
class TestOpenSession:
    async def test_returns_client_with_token(self, tmp_path: Path) -> None:
        store_token(tmp_path, "me", {"token": "abc"})

        client = await open_session(tmp_path, "me", app_credentials=APP)

        assert isinstance(client, GooglePhotosClient)
        assert client.access_token == "abc"
