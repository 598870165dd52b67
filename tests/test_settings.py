"""Tests for TOML settings and logging setup."""

import logging

from fleetdeck import config, settings


def test_defaults_load_without_user_config(monkeypatch, tmp_path) -> None:
    monkeypatch.setattr(settings, "USER_CONFIG_PATH", tmp_path / "missing.toml")

    s = settings.load_settings()

    assert s.server.base_url == "http://localhost:8110"
    assert s.server.credential_header == "X-API-Key"
    assert s.feed.poll_interval == 5.0
    assert s.feed.stream_retry_interval == 0.0
    assert s.pollers.terminal_interval == 2.0
    assert s.pollers.inbox_interval == 5.0
    assert s.banner_ttl == 2.5
    assert s.probe_timeout == 2.0
    assert [svc.name for svc in s.services] == [
        "command-center", "fleet-chat", "fleet-viewer", "trigger-api",
    ]


def test_user_config_overrides_defaults(monkeypatch, tmp_path) -> None:
    user = tmp_path / "config.toml"
    user.write_text(
        '[server]\nbase_url = "http://fleet.example:9000/"\n'
        "[feed]\npoll_interval = 1.5\n"
        '[[services]]\nname = "only"\nurl = "http://only.test"\n'
    )
    monkeypatch.setattr(settings, "USER_CONFIG_PATH", user)

    s = settings.load_settings()

    assert s.server.base_url == "http://fleet.example:9000"
    assert s.server.request_timeout == 10.0
    assert s.feed.poll_interval == 1.5
    assert [svc.url for svc in s.services] == ["http://only.test"]


def test_env_overrides_win(monkeypatch, tmp_path) -> None:
    monkeypatch.setattr(settings, "USER_CONFIG_PATH", tmp_path / "missing.toml")
    monkeypatch.setenv("FLEETDECK_URL", "http://env.test/")
    monkeypatch.setenv("FLEETDECK_POLL", "0.5")
    monkeypatch.setenv("FLEETDECK_STREAM_RETRY", "30")
    monkeypatch.setenv("FLEETDECK_LOG_LEVEL", "DEBUG")

    s = settings.load_settings()

    assert s.server.base_url == "http://env.test"
    assert s.feed.poll_interval == 0.5
    assert s.feed.stream_retry_interval == 30.0
    assert s.log_level == "DEBUG"


def test_deep_merge_keeps_nested_defaults() -> None:
    merged = settings._deep_merge(
        {"a": {"x": 1, "y": 2}, "b": 1},
        {"a": {"y": 3}, "c": 4},
    )
    assert merged == {"a": {"x": 1, "y": 3}, "b": 1, "c": 4}


def test_user_storage_reads_first_readable_config(monkeypatch, tmp_path) -> None:
    broken = tmp_path / "broken.toml"
    broken.write_text("storage = [", encoding="utf-8")
    good = tmp_path / "config.toml"
    good.write_text(
        '[storage]\nstate_dir = " ~/fleet-state "\nlog_dir = ""\nother = "x"\n',
        encoding="utf-8",
    )
    monkeypatch.setattr(
        config, "_USER_CONFIG_PATHS", (tmp_path / "missing.toml", broken, good),
    )

    assert config._user_storage_table() == {"state_dir": "~/fleet-state"}


def test_user_storage_without_table_is_empty(monkeypatch, tmp_path) -> None:
    path = tmp_path / "config.toml"
    path.write_text('[server]\nbase_url = "http://x"\n', encoding="utf-8")
    monkeypatch.setattr(config, "_USER_CONFIG_PATHS", (path,))

    assert config._user_storage_table() == {}


def test_setup_logging_writes_to_file(tmp_path) -> None:
    log_file = tmp_path / "fleetdeck.log"

    config.setup_logging("DEBUG", log_file)
    logging.getLogger("fleetdeck.test").debug("hello from test")
    for handler in logging.getLogger("fleetdeck").handlers:
        handler.flush()

    assert "hello from test" in log_file.read_text()
    assert logging.getLogger("fleetdeck").propagate is False

    config.setup_logging("INFO", tmp_path / "other.log")
    assert len(logging.getLogger("fleetdeck").handlers) == 1
