# File: tests/test_config.py
import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from site_tracer.config import CrawlConfig, build_config, env_overrides, load_config


def write_file(tmp_path: Path, content: str, suffix: str) -> Path:
    path = tmp_path / f"config{suffix}"
    path.write_text(content, encoding="utf-8")
    return path


@pytest.mark.parametrize(
    "content,suffix,expect_exc",
    [
        ("seed_url: http://example.com\nmax_depth: 2", ".yaml", None),
        (json.dumps({"seed_url": "http://example.com", "max_depth": 2}), ".json", None),
        ("{}", ".json", ValidationError),
        ("seed_url: ftp://example.com", ".yaml", ValidationError),
        ("seed_url: http://example.com\nrate_limit: 3", ".yaml", ValidationError),
        ("seed: [unclosed", ".yaml", ValueError),
        ("- just\n- a list", ".yaml", TypeError),
        ("{not json", ".json", ValueError),
        ("seed_url = 'http://example.com'", ".toml", ValueError),
    ],
)
def test_load_config_variants(tmp_path, content, suffix, expect_exc):
    cfg_path = write_file(tmp_path, content, suffix)
    if expect_exc:
        with pytest.raises(expect_exc):
            load_config(cfg_path)
    else:
        cfg = load_config(cfg_path)
        assert isinstance(cfg, CrawlConfig)
        assert cfg.seed_url == "http://example.com"
        assert cfg.max_depth == 2


def test_load_config_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml")


def test_defaults():
    cfg = CrawlConfig(seed_url="https://example.com")
    assert cfg.max_depth == 10
    assert cfg.concurrency == 5
    assert cfg.request_timeout == 10.0
    assert cfg.skip_data_images is True
    assert cfg.cleanup_prior_state is False
    assert cfg.redis_url is None
    assert cfg.exclude_patterns == ()


def test_config_is_frozen():
    cfg = CrawlConfig(seed_url="https://example.com")
    with pytest.raises(ValidationError):
        cfg.max_depth = 3


@pytest.mark.parametrize("field,value", [("max_depth", -1), ("concurrency", 0), ("request_timeout", 0)])
def test_rejects_out_of_range(field, value):
    with pytest.raises(ValidationError):
        CrawlConfig(seed_url="https://example.com", **{field: value})


def test_exclude_patterns_from_comma_string():
    cfg = CrawlConfig(seed_url="https://example.com", exclude_patterns=" /admin, /tmp ,,")
    assert cfg.exclude_patterns == ("/admin", "/tmp")


def test_env_overrides():
    env = {
        "WEBSITE_URL": "https://env.example",
        "MAX_DEPTH": "3",
        "CONCURRENCY": "7",
        "REQUEST_TIMEOUT": "2500",
        "USER_AGENT": "EnvAgent",
        "EXCLUDE_PATTERNS": "/a,/b",
        "SKIP_DATA_IMAGES": "false",
        "CLEANUP_REDIS": "yes",
        "REDIS_KEY_PREFIX": "env:",
    }
    out = env_overrides(env)
    assert out == {
        "seed_url": "https://env.example",
        "max_depth": 3,
        "concurrency": 7,
        "request_timeout": 2.5,
        "user_agent": "EnvAgent",
        "exclude_patterns": "/a,/b",
        "skip_data_images": False,
        "cleanup_prior_state": True,
        "key_prefix": "env:",
    }


def test_redis_url_from_parts():
    env = {"REDIS_HOST": "cache", "REDIS_PORT": "6380", "REDIS_PASSWORD": "p@ss", "REDIS_DB": "2"}
    assert env_overrides(env)["redis_url"] == "redis://:p%40ss@cache:6380/2"
    assert env_overrides({"REDIS_HOST": "cache"})["redis_url"] == "redis://cache:6379/0"
    full = {"REDIS_URL": "redis://r:1/0", "REDIS_HOST": "ignored"}
    assert env_overrides(full)["redis_url"] == "redis://r:1/0"


def test_build_config_precedence(tmp_path):
    cfg_path = write_file(
        tmp_path, "seed_url: https://file.example\nmax_depth: 1\nconcurrency: 2", ".yaml"
    )
    env = {"MAX_DEPTH": "4", "CONCURRENCY": "3"}

    cfg = build_config(cfg_path, environ=env, concurrency=9, user_agent=None)

    assert cfg.seed_url == "https://file.example"
    assert cfg.max_depth == 4
    assert cfg.concurrency == 9
    assert cfg.user_agent.startswith("Mozilla/5.0")


def test_build_config_without_seed_fails():
    with pytest.raises(ValidationError):
        build_config(environ={})
