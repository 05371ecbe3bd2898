"""Tests for configuration and the command line."""

import json

import pytest
from pydantic import ValidationError

from crawl_queue.cli import build_parser, config_from_args
from crawl_queue.config import GCConfig, MonitorConfig, QueueConfig


def test_defaults():
    config = QueueConfig()

    assert config.url == "mongodb://localhost:27017"
    assert config.db_name == "crawler"
    assert config.collection_name == "queue"
    assert config.gc.run is False
    assert config.gc.interval_ms == 120000
    assert config.monitor.interval_ms == 60000
    assert config.monitor.statistic_collection_name == "statistic"


def test_stale_interval_defaults_to_interval():
    assert GCConfig(interval_ms=5000).stale_interval_ms == 5000
    assert GCConfig(interval_ms=5000, stale_interval_ms=9000).stale_interval_ms == 9000


@pytest.mark.parametrize("settings", [
    {"interval_ms": 0},
    {"interval_ms": -10},
    {"stale_interval_ms": 0},
])
def test_invalid_gc_intervals(settings):
    with pytest.raises(ValidationError):
        GCConfig(**settings)


def test_invalid_names():
    with pytest.raises(ValidationError):
        QueueConfig(collection_name="")
    with pytest.raises(ValidationError):
        MonitorConfig(statistic_collection_name="")


def test_from_env_mongo_variables():
    config = QueueConfig.from_env(
        {"MONGO_URL": "mongodb://db:27017", "MONGO_DB": "crawls"},
        crawler_name="worker-7",
    )

    assert config.url == "mongodb://db:27017"
    assert config.db_name == "crawls"
    assert config.crawler_name == "worker-7"


def test_from_env_service_binding_wins():
    services = {"mongodb": [{"credentials": {"uri": "mongodb://bound:27017", "dbname": "bound"}}]}
    config = QueueConfig.from_env({
        "VCAP_SERVICES": json.dumps(services),
        "MONGO_URL": "mongodb://db:27017",
        "MONGO_DB": "crawls",
    })

    assert config.url == "mongodb://bound:27017"
    assert config.db_name == "bound"


def test_from_env_without_binding():
    config = QueueConfig.from_env({"VCAP_SERVICES": json.dumps({"redis": []})})

    assert config.url == "mongodb://localhost:27017"
    assert config.db_name == "crawler"


@pytest.fixture
def clean_env(monkeypatch):
    for name in ("VCAP_SERVICES", "MONGO_URL", "MONGO_DB"):
        monkeypatch.delenv(name, raising=False)


def test_cli_monitor_options(clean_env):
    args = build_parser().parse_args([
        "--url", "mongodb://cli:27017",
        "--db", "cli",
        "--statistic-collection", "stats",
        "monitor", "--interval", "500", "--max-idle-ticks", "3",
    ])
    config = config_from_args(args)

    assert config.url == "mongodb://cli:27017"
    assert config.db_name == "cli"
    assert config.monitor.interval_ms == 500
    assert config.monitor.statistic_collection_name == "stats"
    assert args.max_idle_ticks == 3


def test_cli_gc_interval_does_not_touch_monitor(clean_env, monkeypatch):
    monkeypatch.setenv("MONGO_URL", "mongodb://env:27017")
    args = build_parser().parse_args(["--collection", "pages", "gc", "--interval", "1000"])
    config = config_from_args(args)

    assert args.interval == 1000
    assert config.url == "mongodb://env:27017"
    assert config.collection_name == "pages"
    assert config.monitor.interval_ms == 60000


def test_cli_requires_command():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])
