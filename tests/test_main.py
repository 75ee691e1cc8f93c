import argparse

import pytest

from whale_watcher.config import API_KEY_ENV_VAR
from whale_watcher.main import main_async, parse_args


def test_default_command_is_run():
    args = parse_args([])

    assert args.command == "run"
    assert args.config == "config.yaml"
    assert not args.debug


def test_lookup_arguments():
    args = parse_args(
        ["-c", "prod.yaml", "lookup", "1BoatSLRHtKNngkdXEeobR76b53LETtpyT", "--period", "7d", "--ingest"]
    )

    assert args.command == "lookup"
    assert args.config == "prod.yaml"
    assert args.addresses == ["1BoatSLRHtKNngkdXEeobR76b53LETtpyT"]
    assert args.period == "7d"
    assert args.ingest


@pytest.mark.asyncio
async def test_missing_config_file_exits_nonzero(tmp_path):
    args = argparse.Namespace(config=str(tmp_path / "missing.yaml"), debug=False, command="poll")

    assert await main_async(args) == 1


@pytest.mark.asyncio
async def test_missing_api_key_fails_at_startup(tmp_path, monkeypatch):
    monkeypatch.delenv(API_KEY_ENV_VAR, raising=False)
    path = tmp_path / "config.yaml"
    path.write_text(f"database:\n  path: {tmp_path / 'w.db'}\n")
    args = argparse.Namespace(config=str(path), debug=False, command="poll")

    assert await main_async(args) == 1
    # Validation runs before anything touches the database
    assert not (tmp_path / "w.db").exists()
