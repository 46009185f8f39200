# === FILE: site_tracer/config.py ===
"""
Loading and validation of the SiteTracer crawl configuration.

The schema is described with Pydantic; values come from a YAML/JSON file,
from environment variables and from CLI flags (in that order of precedence).
"""
from __future__ import annotations

import errno
import json
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Union
from urllib.parse import quote, urlsplit

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

__all__ = ["CrawlConfig", "load_config", "env_overrides", "build_config"]

DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; TraceBot/1.0)"


class CrawlConfig(BaseModel):
    """Settings for a single crawl run. Immutable once built."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    seed_url: str = Field(..., description="Absolute URL the crawl starts from.")
    max_depth: int = Field(10, ge=0, description="Maximum link distance from the seed.")
    concurrency: int = Field(5, ge=1, description="Number of parallel fetch workers.")
    request_timeout: float = Field(10.0, gt=0, description="Timeout of one request (seconds).")
    user_agent: str = Field(DEFAULT_USER_AGENT, min_length=1, description="User-Agent header.")
    exclude_patterns: Tuple[str, ...] = Field(
        default=(), description="Path prefixes that are never crawled."
    )
    skip_data_images: bool = Field(True, description="Do not fetch data:image URLs.")
    cleanup_prior_state: bool = Field(False, description="Wipe stored results before crawling.")
    redis_url: Optional[str] = Field(None, description="Redis URL; in-memory store when empty.")
    key_prefix: str = Field("tracer:", description="Namespace of every store key.")
    sample_size: int = Field(5, ge=0, description="Sample URLs shown per status code.")

    @field_validator("seed_url", mode="before")
    def _check_seed(cls, v: Any) -> Any:
        if not isinstance(v, str):
            return v
        v = v.strip()
        parts = urlsplit(v)
        if parts.scheme.lower() not in ("http", "https") or not parts.hostname:
            raise ValueError(f"seed_url must be an absolute http(s) URL, got {v!r}")
        return v

    @field_validator("exclude_patterns", mode="before")
    def _split_patterns(cls, v: Any) -> Any:
        if v is None:
            return ()
        if isinstance(v, str):
            v = v.split(",")
        return tuple(p.strip() for p in v if p and p.strip())

    @field_validator("redis_url", mode="before")
    def _empty_redis_url(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Top level of YAML must be a mapping, got {type(data).__name__}")
    return data


def _read_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8")) or {}
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Top level of JSON must be a mapping, got {type(data).__name__}")
    return data


def read_config_file(path: Union[str, Path]) -> dict[str, Any]:
    """Read a YAML or JSON mapping without validating it."""
    path_obj = Path(path).expanduser().resolve()
    if not path_obj.is_file():
        raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(path_obj))

    suffix = path_obj.suffix.lower()
    if suffix in (".yaml", ".yml"):
        return _read_yaml(path_obj)
    if suffix == ".json":
        return _read_json(path_obj)
    raise ValueError(f"Unsupported config format: {suffix}")


def load_config(path: Union[str, Path]) -> CrawlConfig:
    """
    Read YAML or JSON and return a validated CrawlConfig.
    Raises FileNotFoundError when the file is missing.
    """
    return CrawlConfig(**read_config_file(path))


_TRUE = {"1", "true", "yes", "on"}


def _flag(value: str) -> bool:
    return value.strip().lower() in _TRUE


def env_overrides(environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Translate the crawler's environment variables into config fields.

    ``REQUEST_TIMEOUT`` is given in milliseconds. Redis settings come either
    as a full ``REDIS_URL`` or as ``REDIS_HOST``/``REDIS_PORT``/
    ``REDIS_PASSWORD``/``REDIS_DB``.
    """
    env = os.environ if environ is None else environ
    out: Dict[str, Any] = {}

    if env.get("WEBSITE_URL"):
        out["seed_url"] = env["WEBSITE_URL"]
    if env.get("MAX_DEPTH"):
        out["max_depth"] = int(env["MAX_DEPTH"])
    if env.get("CONCURRENCY"):
        out["concurrency"] = int(env["CONCURRENCY"])
    if env.get("REQUEST_TIMEOUT"):
        out["request_timeout"] = int(env["REQUEST_TIMEOUT"]) / 1000
    if env.get("USER_AGENT"):
        out["user_agent"] = env["USER_AGENT"]
    if env.get("EXCLUDE_PATTERNS"):
        out["exclude_patterns"] = env["EXCLUDE_PATTERNS"]
    if "SKIP_DATA_IMAGES" in env:
        out["skip_data_images"] = _flag(env["SKIP_DATA_IMAGES"])
    if "CLEANUP_REDIS" in env:
        out["cleanup_prior_state"] = _flag(env["CLEANUP_REDIS"])
    if env.get("REDIS_KEY_PREFIX"):
        out["key_prefix"] = env["REDIS_KEY_PREFIX"]

    if env.get("REDIS_URL"):
        out["redis_url"] = env["REDIS_URL"]
    elif env.get("REDIS_HOST"):
        password = env.get("REDIS_PASSWORD", "")
        auth = f":{quote(password, safe='')}@" if password else ""
        port = env.get("REDIS_PORT", "6379")
        db = env.get("REDIS_DB", "0")
        out["redis_url"] = f"redis://{auth}{env['REDIS_HOST']}:{port}/{db}"
    return out


def build_config(
    path: Union[str, Path, None] = None,
    environ: Optional[Mapping[str, str]] = None,
    **overrides: Any,
) -> CrawlConfig:
    """Merge file, environment and explicit overrides (``None`` values ignored)."""
    data: Dict[str, Any] = {}
    if path is not None:
        data.update(read_config_file(path))
    data.update(env_overrides(environ))
    data.update({k: v for k, v in overrides.items() if v is not None})
    return CrawlConfig(**data)
