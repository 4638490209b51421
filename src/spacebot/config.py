"""Configuration loading from YAML + environment variables."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = "https://app.matrixbooking.com/api/v1"


@dataclass
class MatrixConfig:
    username: str = ""
    password: str = ""
    preferred_location: int | None = None  # home building used as first search scope
    base_url: str = DEFAULT_API_BASE_URL
    timeout_seconds: float = 5.0
    max_retries: int = 3


@dataclass
class SearchConfig:
    default_limit: int = 10
    facility_search_limit: int = 20
    availability_concurrency: int = 5
    max_results: int = 50
    timezone: str = "UTC"  # wall clock for "now"/"today"/"tomorrow"


@dataclass
class MCPConfig:
    transport: str = "stdio"  # stdio | streamable-http
    host: str = "127.0.0.1"
    port: int = 8000


@dataclass
class Config:
    matrix: MatrixConfig = field(default_factory=MatrixConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    mcp: MCPConfig = field(default_factory=MCPConfig)


def _resolve_env_vars(value: str) -> str:
    """Replace ${VAR} with environment variable values."""
    def replacer(match):
        var_name = match.group(1)
        return os.environ.get(var_name, match.group(0))
    return re.sub(r"\$\{(\w+)\}", replacer, value)


def _resolve_dict(d: dict) -> dict:
    """Recursively resolve env vars in a dict."""
    resolved = {}
    for k, v in d.items():
        if isinstance(v, str):
            resolved[k] = _resolve_env_vars(v)
        elif isinstance(v, dict):
            resolved[k] = _resolve_dict(v)
        elif isinstance(v, list):
            resolved[k] = [_resolve_env_vars(i) if isinstance(i, str) else i for i in v]
        else:
            resolved[k] = v
    return resolved


def parse_location_id(value) -> int | None:
    """Parse a configured location id. Returns None when unset or not a number."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if not text.isdigit():
        if text:
            logger.warning("Ignoring invalid preferred_location %r: not a number", text)
        return None
    return int(text)


def load_config(config_path: str | Path, env_path: str | Path | None = None) -> Config:
    """Load config from YAML file with env var resolution."""
    config_path = Path(config_path).resolve()
    config_dir = config_path.parent

    if env_path:
        load_dotenv(env_path)
    else:
        # Look for .env next to config file first, then CWD
        env_beside_config = config_dir / ".env"
        if env_beside_config.exists():
            load_dotenv(env_beside_config)
        else:
            load_dotenv()

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    raw = _resolve_dict(raw)

    matrix_data = raw.get("matrix", {})
    matrix = MatrixConfig(
        username=matrix_data.get("username", ""),
        password=matrix_data.get("password", ""),
        preferred_location=parse_location_id(matrix_data.get("preferred_location")),
        base_url=matrix_data.get("base_url", DEFAULT_API_BASE_URL).rstrip("/"),
        timeout_seconds=float(matrix_data.get("timeout_seconds", 5.0)),
        max_retries=int(matrix_data.get("max_retries", 3)),
    )

    search_data = raw.get("search", {})
    search = SearchConfig(
        default_limit=search_data.get("default_limit", 10),
        facility_search_limit=search_data.get("facility_search_limit", 20),
        availability_concurrency=max(1, search_data.get("availability_concurrency", 5)),
        max_results=search_data.get("max_results", 50),
        timezone=search_data.get("timezone", "UTC"),
    )

    mcp_data = raw.get("mcp", {})
    mcp = MCPConfig(
        transport=mcp_data.get("transport", "stdio"),
        host=mcp_data.get("host", "127.0.0.1"),
        port=int(mcp_data.get("port", 8000)),
    )

    return Config(matrix=matrix, search=search, mcp=mcp)
