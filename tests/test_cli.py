"""
Tests for the command line.
"""

import pytest
from typer.testing import CliRunner

from coffeetrix.cli import app
from coffeetrix.config import settings

runner = CliRunner()


@pytest.fixture
def database(tmp_path, monkeypatch):
    path = str(tmp_path / "cli.db")
    monkeypatch.setattr(settings, "database_path", path)
    return path


class TestCLI:

    def test_version(self):
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert settings.app_version in result.output

    def test_show_settings_defaults(self, database):
        result = runner.invoke(app, ["show-settings"])

        assert result.exit_code == 0
        assert f"daily_time={settings.default_daily_time}" in result.output
        assert "chats=0" in result.output

    def test_set_daily_time(self, database):
        result = runner.invoke(app, ["set-daily-time", "07:45"])
        assert result.exit_code == 0

        result = runner.invoke(app, ["show-settings"])
        assert "daily_time=07:45" in result.output

    def test_set_daily_time_invalid(self, database):
        result = runner.invoke(app, ["set-daily-time", "25:99"])
        assert result.exit_code == 2

    def test_invite_once_without_credentials(self, database, monkeypatch):
        monkeypatch.setattr(settings, "feishu_app_id", None)
        monkeypatch.setattr(settings, "feishu_app_secret", None)
        monkeypatch.setattr("coffeetrix.cli.setup_logging", lambda config: None)

        result = runner.invoke(app, ["invite-once"])
        assert result.exit_code == 1
