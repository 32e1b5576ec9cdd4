"""
Unit tests for CLI main entry point.

Tests CLI infrastructure including the command group, global options,
configuration loading and the serve command.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from click.testing import CliRunner

from corsgate._version import __version__
from corsgate.cli.main import cli
from corsgate.exceptions import CorsgateError


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def fake_server():
    server = MagicMock()
    server.start = AsyncMock()
    return server


class TestCLIMain:
    """Test CLI main entry point."""

    def test_cli_help(self, runner):
        """Test CLI help output."""
        result = runner.invoke(cli, ['--help'])

        assert result.exit_code == 0
        assert 'Origin-gated CORS proxy gateway' in result.output
        assert '--config' in result.output
        assert '--log-level' in result.output
        assert '--verbose' in result.output
        assert 'serve' in result.output

    def test_cli_version(self, runner):
        """Test CLI version output."""
        result = runner.invoke(cli, ['--version'])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_invalid_config_exits(self, runner, temp_dir):
        """A malformed configuration file aborts with exit code 1."""
        config_path = temp_dir / "bad.yaml"
        config_path.write_text("gateway: [unclosed")

        result = runner.invoke(cli, ['--config', str(config_path), 'serve'])

        assert result.exit_code == 1
        assert 'Invalid configuration' in result.output


class TestServeCommand:
    """Test the serve command."""

    def test_serve_uses_config(self, runner, sample_config_path, fake_server):
        """serve builds the server from the loaded configuration."""
        with patch('corsgate.gateway.server.create_server', return_value=fake_server) as create:
            result = runner.invoke(cli, ['--config', str(sample_config_path), 'serve'])

        assert result.exit_code == 0, result.output
        gateway_config = create.call_args.args[0]
        assert gateway_config.listen_address == "127.0.0.1:9090"
        assert gateway_config.origin_blacklist == ["http://bad.com"]
        fake_server.start.assert_awaited_once()

    def test_serve_overrides(self, runner, sample_config_path, fake_server):
        """Command-line options replace configured values."""
        with patch('corsgate.gateway.server.create_server', return_value=fake_server) as create:
            result = runner.invoke(cli, [
                '--config', str(sample_config_path),
                'serve',
                '--listen', '0.0.0.0:8443',
                '-w', 'http://a.com',
                '-w', 'http://b.com',
                '-b', 'http://evil.com',
            ])

        assert result.exit_code == 0, result.output
        gateway_config = create.call_args.args[0]
        assert gateway_config.listen_address == "0.0.0.0:8443"
        assert gateway_config.origin_whitelist == ["http://a.com", "http://b.com"]
        assert gateway_config.origin_blacklist == ["http://evil.com"]

    def test_serve_invalid_listen(self, runner, temp_dir):
        """A malformed --listen is rejected before the server starts."""
        with patch('corsgate.gateway.server.create_server') as create:
            result = runner.invoke(cli, [
                '--config', str(temp_dir / "absent.yaml"),
                'serve',
                '--listen', 'nowhere',
            ])

        assert result.exit_code == 2
        assert 'Invalid value' in result.output
        create.assert_not_called()

    def test_serve_error_exits(self, runner, temp_dir, fake_server):
        """Gateway errors during startup exit with code 1."""
        fake_server.start.side_effect = CorsgateError("bind failed")

        with patch('corsgate.gateway.server.create_server', return_value=fake_server):
            result = runner.invoke(cli, ['--config', str(temp_dir / "absent.yaml"), 'serve'])

        assert result.exit_code == 1
        assert 'bind failed' in result.output
