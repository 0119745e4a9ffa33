"""Tests for config CLI commands."""
import pytest
from click.testing import CliRunner

from tabroom.cli.config import config
from tabroom.config import Config, set_config


@pytest.fixture
def runner():
    """Provide a Click test runner."""
    return CliRunner()


def test_config_show_toml(runner, reset_global_config):
    """Test tabroom config show command with TOML output."""
    set_config(Config(storage={"key": "tabs"}, server={"port": 8888, "auto_start": False}))

    result = runner.invoke(config, ['show'])

    assert result.exit_code == 0
    assert "[storage]" in result.output
    assert 'key = "tabs"' in result.output
    assert "port = 8888" in result.output
    assert "auto_start = false" in result.output


def test_config_show_env(runner, reset_global_config):
    """Test tabroom config show --format=env command."""
    set_config(Config(server={"port": 9999}))

    result = runner.invoke(config, ['show', '--format', 'env'])

    assert result.exit_code == 0
    lines = result.output.strip().split('\n')
    assert "TABROOM_SERVER_PORT=9999" in lines
    assert "TABROOM_STORAGE_KEY=rooms" in lines


def test_config_defaults_toml(runner):
    """Test tabroom config defaults command."""
    result = runner.invoke(config, ['defaults'])

    assert result.exit_code == 0
    assert "[storage]" in result.output
    assert "[server]" in result.output
    assert "[logging]" in result.output
    assert 'key = "rooms"' in result.output
    assert "port = 21591" in result.output


def test_config_defaults_env(runner):
    """Test tabroom config defaults --format=env command."""
    result = runner.invoke(config, ['defaults', '--format', 'env'])

    assert result.exit_code == 0
    lines = result.output.strip().split('\n')
    assert "TABROOM_SERVER_PORT=21591" in lines
    assert "TABROOM_SERVER_AUTO_START=true" in lines
    assert "TABROOM_STORAGE_WRITE_RETRIES=5" in lines


def test_config_invalid_format(runner):
    """Test config commands with invalid format."""
    result = runner.invoke(config, ['show', '--format', 'invalid'])

    assert result.exit_code != 0
    assert "Invalid value for '--format'" in result.output


def test_config_help(runner):
    """Test config command help."""
    result = runner.invoke(config, ['--help'])

    assert result.exit_code == 0
    assert "Configuration management commands" in result.output
    assert "show" in result.output
    assert "defaults" in result.output
