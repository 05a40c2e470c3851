"""Tests for the command-line interface."""

from unittest.mock import patch

from click.testing import CliRunner

from speechcast import __version__
from speechcast.cli.main import main
from speechcast.core.config import AppConfig

from conftest import FakeSynthesis


def _quiet_config(*args, **kwargs):
    return AppConfig(logging={"level": "WARNING"})


class TestCli:
    def test_version(self):
        result = CliRunner().invoke(main, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_probe_missing_program(self, tmp_path):
        result = CliRunner().invoke(main, ["probe", "--no-launch", str(tmp_path / "none")])
        assert result.exit_code == 1

    def test_probe_ok(self):
        with patch("speechcast.backends.process.shutil.which", return_value="/bin/say"):
            result = CliRunner().invoke(main, ["probe", "--no-launch", "say"])
        assert result.exit_code == 0
        assert "OK: say" in result.output

    def test_voices(self, monkeypatch):
        monkeypatch.setattr("speechcast.cli.main._load_config", lambda config: _quiet_config())
        with patch("speechcast.factory.SynthesisAdapter", return_value=FakeSynthesis()):
            result = CliRunner().invoke(main, ["voices"])
        assert result.exit_code == 0
        assert "Alice" in result.output
        assert "voice-b" in result.output

    def test_say_without_backend(self, monkeypatch):
        monkeypatch.setattr("speechcast.cli.main._load_config", lambda config: _quiet_config())
        with patch("speechcast.factory.SynthesisAdapter", return_value=FakeSynthesis()):
            result = CliRunner().invoke(main, ["say", "Hello"])
        assert result.exit_code == 1

    def test_say_unknown_voice(self, monkeypatch):
        monkeypatch.setattr("speechcast.cli.main._load_config", lambda config: _quiet_config())
        with patch("speechcast.factory.SynthesisAdapter", return_value=FakeSynthesis()):
            result = CliRunner().invoke(main, ["say", "Hello", "--voice", "Carol"])
        assert result.exit_code == 1
