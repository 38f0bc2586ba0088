"""
Tests for the main entry point and CLI commands.
"""

from datetime import datetime
from pathlib import Path
from typing import List
from unittest.mock import Mock, patch

import pytest
from typer.testing import CliRunner

from evtcp import __version__
from evtcp.core.exceptions import AddressResolutionError
from evtcp.event.loop import EventLoop
from evtcp.infrastructure.config.loader import ConfigLoader
from evtcp.infrastructure.config.models import ClientAppConfig
from evtcp.main import build_client, cli, format_datetime
from evtcp.net.buffer import Buffer


def test_format_datetime() -> None:
    assert format_datetime(datetime(2024, 1, 2, 3, 4, 5, 678900)) == "2024-01-02 03:04:05.678"
    assert len(format_datetime()) == 23


class TestBuildClient:
    """Callbacks of the time-writing demo client"""

    @pytest.fixture
    def loop(self, fake_clock):
        ev_loop = EventLoop(clock=fake_clock)
        yield ev_loop
        ev_loop.close()

    @pytest.fixture
    def output(self) -> List[str]:
        return []

    @pytest.fixture
    def channel(self) -> Mock:
        channel = Mock()
        channel.is_connected.return_value = True
        channel.peeraddr.return_value = "127.0.0.1:9000"
        channel.fd.return_value = 7
        return channel

    def test_connected_starts_periodic_write(self, loop, fake_clock, output, channel) -> None:
        config = ClientAppConfig(send_interval=3000)
        client = build_client(loop, config, echo=output.append)

        client.on_connection(channel)

        assert output[0] == "connected to 127.0.0.1:9000! connfd=7"
        assert output[1] == "reconnect cnt=0, delay=1000"
        assert len(loop.timers) == 1

        fake_clock.advance(3000)
        loop.timers.process_timers()
        fake_clock.advance(3000)
        loop.timers.process_timers()
        assert channel.write.call_count == 2
        assert len(channel.write.call_args.args[0]) == 23

        channel.is_connected.return_value = False
        fake_clock.advance(3000)
        loop.timers.process_timers()
        assert channel.write.call_count == 2
        assert len(loop.timers) == 0

    def test_disconnected_message(self, loop, output, channel) -> None:
        config = ClientAppConfig()
        config.reconnect.enabled = False
        client = build_client(loop, config, echo=output.append)
        channel.is_connected.return_value = False

        client.on_connection(channel)

        assert output == ["disconnected to 127.0.0.1:9000! connfd=7"]
        assert len(loop.timers) == 0

    def test_message_is_printed_and_consumed(self, loop, output, channel) -> None:
        client = build_client(loop, ClientAppConfig(), echo=output.append)
        buf = Buffer()
        buf.append(b"pong")

        client.on_message(channel, buf)

        assert output == ["< pong"]
        assert buf.readable_bytes == 0

    def test_client_uses_config(self, loop) -> None:
        config = ClientAppConfig()
        config.tcp.host = "localhost"
        config.tcp.port = 4000
        config.reconnect.min_delay = 250

        client = build_client(loop, config)

        assert client.target == "localhost:4000"
        assert client.is_reconnect()
        assert client.reconnect_setting.min_delay == 250


class TestMainCLI:

    def setup_method(self) -> None:
        self.runner = CliRunner()

    def test_cli_help_command(self) -> None:
        result = self.runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "Reconnecting TCP client" in result.output

    def test_version_command(self) -> None:
        result = self.runner.invoke(cli, ["version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_init_config(self, tmp_path: Path) -> None:
        output = tmp_path / "evtcp.yaml"

        result = self.runner.invoke(cli, ["init-config", "--output", str(output)])

        assert result.exit_code == 0
        assert output.exists()
        config = ConfigLoader().load_config(str(output))
        assert config.tcp.port == ClientAppConfig().tcp.port

    def test_init_config_json(self, tmp_path: Path) -> None:
        output = tmp_path / "evtcp.json"

        result = self.runner.invoke(cli, ["init-config", "-o", str(output), "-f", "json"])

        assert result.exit_code == 0
        assert output.read_text(encoding="utf-8").startswith("{")

    def test_init_config_bad_format(self, tmp_path: Path) -> None:
        result = self.runner.invoke(cli, ["init-config", "-o", str(tmp_path / "x"), "-f", "ini"])
        assert result.exit_code == 1

    def test_validate_config(self, tmp_path: Path) -> None:
        path = tmp_path / "client.yaml"
        path.write_text(
            "tcp:\n  port: 1234\nreconnect:\n  delay_policy: linear\n  max_delay: 5000\n",
            encoding="utf-8")

        result = self.runner.invoke(cli, ["validate-config", str(path)])

        assert result.exit_code == 0
        assert "is valid" in result.output
        assert "Target: 127.0.0.1:1234" in result.output
        assert "Reconnect: linear 1000-5000ms" in result.output

    def test_validate_config_invalid(self, tmp_path: Path) -> None:
        path = tmp_path / "client.yaml"
        path.write_text("tcp:\n  port: 70000\n", encoding="utf-8")

        result = self.runner.invoke(cli, ["validate-config", str(path)])

        assert result.exit_code == 1

    @patch('evtcp.main.setup_logging')
    def test_connect_invalid_port(self, mock_setup_logging: Mock) -> None:
        result = self.runner.invoke(cli, ["connect", "0"])

        assert result.exit_code == 1
        mock_setup_logging.assert_not_called()

    @patch('evtcp.main.setup_logging')
    @patch('evtcp.main.build_client')
    @patch('evtcp.main.EventLoop')
    def test_connect_unresolvable(self, mock_loop_cls: Mock, mock_build_client: Mock,
                                  mock_setup_logging: Mock) -> None:
        client = Mock()
        client.start.side_effect = AddressResolutionError("Cannot resolve", host="nowhere", port=80)
        mock_build_client.return_value = client

        result = self.runner.invoke(cli, ["connect", "80", "--host", "nowhere"])

        assert result.exit_code == 2
        mock_loop_cls.return_value.close.assert_called_once()
        mock_loop_cls.return_value.run.assert_not_called()

    @patch('evtcp.main.setup_logging')
    @patch('evtcp.main.build_client')
    @patch('evtcp.main.EventLoop')
    def test_connect_runs_loop(self, mock_loop_cls: Mock, mock_build_client: Mock,
                               mock_setup_logging: Mock) -> None:
        client = Mock()
        client.target = "127.0.0.1:9000"
        client.channel.fd.return_value = 7
        mock_build_client.return_value = client
        loop = mock_loop_cls.return_value
        loop.run.side_effect = KeyboardInterrupt()

        result = self.runner.invoke(
            cli, ["connect", "9000", "--interval", "500", "--no-reconnect", "--debug"])

        assert result.exit_code == 0
        assert "client connect to 127.0.0.1:9000, connfd=7 ..." in result.output
        config = mock_build_client.call_args.args[1]
        assert config.tcp.port == 9000
        assert config.send_interval == 500
        assert config.reconnect.enabled is False
        assert config.logging.level == "DEBUG"
        mock_setup_logging.assert_called_once_with(config.logging)
        client.start.assert_called_once()
        client.stop.assert_called_once()
        loop.close.assert_called_once()
