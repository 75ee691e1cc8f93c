import pytest

from whale_watcher.config import API_KEY_ENV_VAR, Config, FeedConfig, PollingConfig, load_config
from whale_watcher.errors import ConfigError

CONFIG_YAML = """
feed:
  api_key: file-key
  min_request_interval_ms: 100
polling:
  interval_seconds: 60
  blockchains: [bitcoin, ethereum]
dispatch:
  entitled_tiers: [elite, pro]
logging:
  level: DEBUG
  file: logs/test.log
  max_file_size_mb: 1
  backup_count: 2
database:
  path: data/test.db
"""


def test_load_config_from_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(CONFIG_YAML)

    config = load_config(path)

    assert config.feed.api_key == "file-key"
    assert config.feed.min_request_interval_ms == 100
    assert config.feed.base_url == "https://leviathan.whale-alert.io"
    assert config.polling.interval_seconds == 60
    assert config.polling.blockchains == ["bitcoin", "ethereum"]
    assert config.polling.min_value_usd == 100_000
    assert config.dispatch.entitled_tiers == ["elite", "pro"]
    assert config.logging.level == "DEBUG"
    assert config.database.path == "data/test.db"
    config.validate()


def test_api_key_falls_back_to_environment(tmp_path, monkeypatch):
    path = tmp_path / "config.yaml"
    path.write_text("polling:\n  interval_seconds: 300\n")
    monkeypatch.setenv(API_KEY_ENV_VAR, "env-key")

    assert load_config(path).feed.api_key == "env-key"


def test_empty_sections_use_defaults(tmp_path, monkeypatch):
    path = tmp_path / "config.yaml"
    path.write_text("feed:\npolling:\ndispatch:\nlogging:\ndatabase:\n")
    monkeypatch.setenv(API_KEY_ENV_VAR, "env-key")

    config = load_config(path)

    assert config.feed.api_key == "env-key"
    assert config.polling.interval_seconds == 300
    assert config.dispatch.entitled_tiers == ["elite"]
    config.validate()


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml")


@pytest.mark.parametrize(
    "config, message",
    [
        (Config(feed=FeedConfig(api_key=None)), "API key"),
        (Config(feed=FeedConfig(api_key="k"), polling=PollingConfig(blockchains=[])), "blockchains"),
        (Config(feed=FeedConfig(api_key="k"), polling=PollingConfig(interval_seconds=0)), "interval"),
        (Config(feed=FeedConfig(api_key="k"), polling=PollingConfig(limit=500)), "limit"),
    ],
)
def test_validate_fails_fast(config, message):
    with pytest.raises(ConfigError) as exc_info:
        config.validate()

    assert message in str(exc_info.value)
