"""Tests for the CLI."""

from unittest.mock import MagicMock, patch

from click.testing import CliRunner

from memogram import __version__
from memogram.cli import _mask, cli


class TestCLI:
    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_tokens_lists_masked(self, data_path):
        data_path.write_text("42:supersecrettoken\n7:short\n", encoding="utf-8")
        result = CliRunner().invoke(cli, ["tokens", "--data", str(data_path)])
        assert result.exit_code == 0
        assert "42" in result.output
        assert "supersecrettoken" not in result.output
        assert "supe" in result.output

    def test_tokens_missing_file(self, tmp_path):
        result = CliRunner().invoke(cli, ["tokens", "--data", str(tmp_path / "none.txt")])
        assert result.exit_code == 0
        assert "No credential file" in result.output

    def test_start_ctrl_c_exits_cleanly(self):
        with patch("memogram.main.setup_logging"), \
             patch("memogram.main.run", MagicMock()), \
             patch("memogram.cli.asyncio") as mock_asyncio:
            mock_asyncio.run.side_effect = KeyboardInterrupt
            result = CliRunner().invoke(cli, ["start"])
        assert result.exit_code == 0
        assert result.exception is None
        assert "Stopped." in result.output

    def test_start_config_error_exits_nonzero(self):
        with patch("memogram.main.setup_logging"), \
             patch("memogram.main.run", MagicMock()), \
             patch("memogram.cli.asyncio") as mock_asyncio:
            mock_asyncio.run.side_effect = ValueError("BOT_TOKEN missing")
            result = CliRunner().invoke(cli, ["start"])
        assert result.exit_code == 1
        assert "Configuration error" in result.output

    def test_mask(self):
        assert _mask("abc") == "****"
        assert _mask("abcdefghijkl") == "abcd…ijkl"
