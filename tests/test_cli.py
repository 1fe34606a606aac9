"""Black-box tests for CLI entry point."""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from conftest import FakePhotosService
from gphotos_uploader import cli
from gphotos_uploader.cli import app

runner = CliRunner()


@pytest.fixture
def fake_service(monkeypatch: pytest.MonkeyPatch) -> FakePhotosService:
    """Route every account of the CLI to one in-memory service."""
    service = FakePhotosService()

    async def session_factory(account: str) -> FakePhotosService:
        return service

    monkeypatch.setattr(cli, "session_factory_for", lambda config: session_factory)
    return service


class TestCLI:
    """Test command-line interface."""

    def test_cli_help(self) -> None:
        """Test CLI help output."""
        result = runner.invoke(app, ["--help"])

        assert result.exit_code == 0
        assert "push" in result.stdout
        assert "dedupe" in result.stdout

    def test_push_success(self, config_dir: Path, fake_service: FakePhotosService) -> None:
        """Test push with a valid configuration."""
        result = runner.invoke(app, ["push", str(config_dir), "--workers", "2"])

        assert result.exit_code == 0
        # root.jpg, photo1.jpg, photo2.png, photo3.jpg, photo4.jpg (videos disabled)
        assert "Succeeded: 5" in result.stdout
        assert len(fake_service.uploaded) == 5
        ledger = json.loads((config_dir / "uploaded_files.json").read_text())
        assert len(ledger) == 5

    def test_push_twice_reports_already_uploaded(
        self, config_dir: Path, fake_service: FakePhotosService
    ) -> None:
        runner.invoke(app, ["push", str(config_dir)])
        result = runner.invoke(app, ["push", str(config_dir)])

        assert result.exit_code == 0
        assert "Already uploaded: 5" in result.stdout
        assert len(fake_service.uploaded) == 5

    def test_push_failures_still_exit_zero(
        self, config_dir: Path, fake_service: FakePhotosService
    ) -> None:
        """Test that job failures are summarised, not fatal."""
        fake_service.fail_uploads = {"photo1.jpg"}

        result = runner.invoke(app, ["push", str(config_dir)])

        assert result.exit_code == 0
        assert "Failed: 1" in result.stdout

    def test_push_missing_token(self, config_dir: Path) -> None:
        """Test that an auth failure is fatal."""
        result = runner.invoke(app, ["push", str(config_dir)])

        assert result.exit_code == 1
        assert "No token stored" in result.stdout

    def test_push_bad_configuration(self, tmp_path: Path) -> None:
        (tmp_path / "config.json").write_text("{not json")

        result = runner.invoke(app, ["push", str(tmp_path)])

        assert result.exit_code == 1
        assert "configuration" in result.stdout

    def test_nonexistent_config_dir(self, tmp_path: Path) -> None:
        """Test CLI with non-existent directory."""
        result = runner.invoke(app, ["push", str(tmp_path / "nonexistent")])

        # Typer validates path existence before our code runs
        assert result.exit_code == 2

    def test_invalid_worker_count(self, config_dir: Path) -> None:
        result = runner.invoke(app, ["push", str(config_dir), "--workers", "0"])

        assert result.exit_code == 2

    def test_dedupe_lists_albums_to_delete(
        self, config_dir: Path, fake_service: FakePhotosService
    ) -> None:
        fake_service.add_album("a", "Trip", ["a1"])
        fake_service.add_album("b", "Trip", ["b1", "b2"])

        result = runner.invoke(app, ["dedupe", str(config_dir)])

        assert result.exit_code == 0
        assert "Albums to delete" in result.stdout
        assert "https://photos.example/a" in result.stdout
        assert sorted(fake_service.contents["b"]) == ["a1", "b1", "b2"]

    def test_aborted_dedupe_still_lists_albums_to_delete(
        self, config_dir: Path, fake_service: FakePhotosService
    ) -> None:
        fake_service.pages = [["a", "b"], ["c"]]
        fake_service.add_album("a", "Trip", ["a1"])
        fake_service.add_album("b", "Trip", ["b1", "b2"])
        fake_service.add_album("c", "Trip", [])
        fake_service.fail_list_call = 1

        result = runner.invoke(app, ["dedupe", str(config_dir)])

        assert result.exit_code == 0
        assert "aborted" in result.stdout
        assert "Albums to delete" in result.stdout
        assert "https://photos.example/a" in result.stdout

    def test_dedupe_verbose(self, config_dir: Path, fake_service: FakePhotosService) -> None:
        result = runner.invoke(app, ["dedupe", str(config_dir), "--verbose"])

        assert result.exit_code == 0
