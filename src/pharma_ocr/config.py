import json
import os
from dataclasses import dataclass
from typing import Dict, Optional

from dotenv import dotenv_values

from .logging import get_logger
from .orchestrator.router import RoutingConfigError, RoutingTable, default_routing_table
from .paths import find_project_root, find_upwards, var_dir

log = get_logger("config")

DEFAULT_OPENROUTER_MODEL = "anthropic/claude-3-haiku"
DEFAULT_OPENAI_MODEL = "gpt-4o-mini"
DEFAULT_TESSERACT_TIMEOUT = 10.0
DEFAULT_PROVIDER_TIMEOUT = 30.0


@dataclass(frozen=True)
class OcrSettings:
    google_vision_api_key: Optional[str] = None
    openrouter_api_key: Optional[str] = None
    openrouter_model: str = DEFAULT_OPENROUTER_MODEL
    openai_api_key: Optional[str] = None
    openai_model: str = DEFAULT_OPENAI_MODEL
    tesseract_cmd: Optional[str] = None
    tesseract_timeout: float = DEFAULT_TESSERACT_TIMEOUT
    provider_timeout: float = DEFAULT_PROVIDER_TIMEOUT
    usage_db_path: Optional[str] = None


def _read_dotenv(dotenv_dir: str) -> Dict[str, str]:
    """Return key/value pairs of the nearest ``.env`` walking upward.

    The environment is not mutated; callers give ``os.environ`` precedence.
    """
    path = find_upwards(dotenv_dir, ".env")
    if not path:
        log.debug(f"No .env found starting from: {os.path.abspath(dotenv_dir)}")
        return {}
    values = {k: v.strip() for k, v in dotenv_values(path).items() if v is not None}
    log.debug(f"Loaded {len(values)} key(s) from .env at {path}")
    return values


def _lookup(env: Dict[str, str], key: str) -> Optional[str]:
    v = os.environ.get(key)
    if v is None:
        v = env.get(key) or env.get(key.lower())
    v = (v or "").strip()
    return v or None


def _float(env: Dict[str, str], key: str, fallback: float) -> float:
    raw = _lookup(env, key)
    if raw is None:
        return fallback
    try:
        value = float(raw)
    except ValueError:
        log.warning(f"{key}={raw!r} is not a number; using {fallback}")
        return fallback
    if value <= 0:
        log.warning(f"{key} must be positive; using {fallback}")
        return fallback
    return value


def default_usage_db_path(start_dir: Optional[str] = None) -> str:
    return os.path.join(var_dir(find_project_root(start_dir)), "usage", "usage.sqlite3")


def load_settings(dotenv_dir: Optional[str] = None) -> OcrSettings:
    """Collect provider credentials and limits from env, then ``.env``."""
    start = dotenv_dir or os.getcwd()
    env = _read_dotenv(start)
    settings = OcrSettings(
        google_vision_api_key=_lookup(env, "GOOGLE_VISION_API_KEY"),
        openrouter_api_key=_lookup(env, "OPEN_ROUTER_API_KEY"),
        openrouter_model=_lookup(env, "OPENROUTER_MODEL") or DEFAULT_OPENROUTER_MODEL,
        openai_api_key=_lookup(env, "OPENAI_API_KEY"),
        openai_model=_lookup(env, "OPENAI_MODEL") or DEFAULT_OPENAI_MODEL,
        tesseract_cmd=_lookup(env, "TESSERACT_CMD"),
        tesseract_timeout=_float(env, "TESSERACT_TIMEOUT", DEFAULT_TESSERACT_TIMEOUT),
        provider_timeout=_float(env, "PROVIDER_TIMEOUT", DEFAULT_PROVIDER_TIMEOUT),
        usage_db_path=_lookup(env, "USAGE_DB_PATH") or default_usage_db_path(start),
    )
    for label, key in (
        ("Google Vision", settings.google_vision_api_key),
        ("OpenRouter", settings.openrouter_api_key),
        ("OpenAI", settings.openai_api_key),
    ):
        if not key:
            log.info(f"{label} API key not configured; that provider will fail over")
    return settings


def load_routing_table(script_dir: Optional[str] = None, settings: Optional[OcrSettings] = None) -> RoutingTable:
    """Return the routing table from ``routing.json`` if present, else the default.

    A ``routing.json`` that exists but is invalid raises ``RoutingConfigError``.
    """
    settings = settings or OcrSettings()
    path = find_upwards(script_dir or os.getcwd(), "routing.json")
    if not path:
        log.debug("No routing.json found; using default routing table")
        return default_routing_table(
            openrouter_model=settings.openrouter_model,
            openai_model=settings.openai_model,
        )
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise RoutingConfigError(f"Failed to read {path}: {e}") from e
    if not isinstance(data, dict):
        raise RoutingConfigError(f"{path} must contain a JSON object")
    table = RoutingTable.from_dict(data)
    log.info(f"Loaded routing table with {len(table.providers)} provider(s) from {path}")
    return table
