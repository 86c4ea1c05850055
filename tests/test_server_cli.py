"""Test the ``portfolio-live`` command line interface."""

import json

import pytest

from portfolio_live import RelayConfig, RelayServer
from portfolio_live.server.cli import config_from_args, parse_args, serve_from_cli

CONFIG = {"notification_buffer_size": 4, "log_level": "WARNING"}


def test_serve_with_defaults():
    """With no configuration, the defaults are used."""
    server = serve_from_cli([], dry_run=True)
    assert isinstance(server, RelayServer)
    assert server.config.notification_buffer_size == 3


def test_serve_from_json():
    """Configuration may be given as a JSON string."""
    server = serve_from_cli(["-j", json.dumps(CONFIG)], dry_run=True)
    assert server.relay.store.buffer_size == 4


def test_serve_from_file(tmp_path):
    """Configuration may be loaded from a file."""
    path = tmp_path / "config.json"
    path.write_text(json.dumps(CONFIG))
    server = serve_from_cli(["-c", str(path)], dry_run=True)
    assert server.config.log_level == "WARNING"


def test_missing_file(tmp_path):
    """A missing configuration file is reported."""
    with pytest.raises(FileNotFoundError):
        serve_from_cli(["-c", str(tmp_path / "missing.json")], dry_run=True)


def test_file_and_json(tmp_path):
    """A file and a string can't both be used."""
    path = tmp_path / "config.json"
    path.write_text(json.dumps(CONFIG))
    with pytest.raises(RuntimeError):
        serve_from_cli(["-c", str(path), "-j", "{}"], dry_run=True)


def test_invalid_config(capsys):
    """Invalid configuration exits with status 3."""
    with pytest.raises(SystemExit) as excinfo:
        serve_from_cli(["-j", json.dumps({"notification_buffer_size": 0})])
    assert excinfo.value.code == 3
    assert "Error reading portfolio-live configuration" in capsys.readouterr().out


def test_serve_starts_uvicorn(mocker):
    """Without ``dry_run``, uvicorn is started on the requested port."""
    run = mocker.patch("portfolio_live.server.cli.uvicorn.run")
    assert serve_from_cli(["--port", "9123"]) is None
    run.assert_called_once()
    assert run.call_args.kwargs == {"host": "127.0.0.1", "port": 9123}


def test_default_options():
    """The relay listens on localhost:9001 with default settings."""
    args = parse_args([])
    assert (args.host, args.port) == ("127.0.0.1", 9001)
    assert config_from_args(args) == RelayConfig()


def test_both_options_message(tmp_path):
    """Giving both -c and -j names the two options in the error."""
    path = tmp_path / "config.json"
    path.write_text("{}")
    with pytest.raises(RuntimeError, match="-c or -j"):
        config_from_args(parse_args(["-c", str(path), "-j", "{}"]))
