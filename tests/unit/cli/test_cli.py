"""Tests for the crosscache CLI."""

from unittest.mock import AsyncMock, patch

from typer.testing import CliRunner

from crosscache.cache.events import MutationType
from crosscache.cli import app

runner = CliRunner()


class TestCli:
    """Test command wiring without a Redis server."""

    def test_help_lists_commands(self) -> None:
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "publish" in result.output
        assert "listen" in result.output

    def test_publish_success(self) -> None:
        with patch(
            "crosscache.cli.publish_cmd._publish", new=AsyncMock(return_value=True)
        ) as publish, patch("crosscache.cli.publish_cmd.configure_logging"):
            result = runner.invoke(app, ["publish", "update", "rev1", "--owner", "42"])

        assert result.exit_code == 0
        assert "Broadcast update for rev1" in result.output
        publish.assert_awaited_once_with(MutationType.UPDATE, "rev1", "42")

    def test_publish_accepts_options_before_arguments(self) -> None:
        with patch(
            "crosscache.cli.publish_cmd._publish", new=AsyncMock(return_value=True)
        ) as publish, patch("crosscache.cli.publish_cmd.configure_logging"):
            result = runner.invoke(app, ["publish", "-o", "42", "delete", "rev1"])

        assert result.exit_code == 0
        publish.assert_awaited_once_with(MutationType.DELETE, "rev1", "42")

    def test_publish_failure_exits_nonzero(self) -> None:
        with patch(
            "crosscache.cli.publish_cmd._publish", new=AsyncMock(return_value=False)
        ), patch("crosscache.cli.publish_cmd.configure_logging"):
            result = runner.invoke(app, ["publish", "create", "rev9"])

        assert result.exit_code == 1

    def test_listen_with_duration(self) -> None:
        with patch(
            "crosscache.cli.listen_cmd._listen", new=AsyncMock(return_value=None)
        ) as listen, patch("crosscache.cli.listen_cmd.configure_logging"):
            result = runner.invoke(app, ["listen", "--duration", "0.1"])

        assert result.exit_code == 0
        listen.assert_awaited_once_with(0.1)
