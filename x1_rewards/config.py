"""Configuration loading: ``config.json`` merged over defaults, then validated."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from solders.pubkey import Pubkey

from x1_rewards.errors import ConfigurationError
from x1_rewards.rpc import DEFAULT_RPC_URL, DEFAULT_TIMEOUT_SECONDS, MAX_RPC_RETRIES, safe_int
from x1_rewards.walker import DEFAULT_PROGRESS_INTERVAL

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.json"
PLACEHOLDER_VOTE_PUBKEY = "YOUR_VOTE_ACCOUNT_PUBKEY_HERE"

DEFAULT_CONFIG: Dict[str, Any] = {
    "rpc_url": DEFAULT_RPC_URL,
    "rpc_fallback_urls": [],
    "vote_pubkey": PLACEHOLDER_VOTE_PUBKEY,
    "liquidity_pool_address": "CAJeVEoSm1QQZccnCqYu9cnNF7TTD2fcUA3E5HQoxRvR",
    "fallback_price_usd": 1.0,
    "output_file": "xnt_rewards_with_prices.csv",
    "analytics_output_file": "xnt_rewards_analytics.csv",
    "json_output_file": "xnt_rewards.json",
    "analytics_json_output_file": "xnt_rewards_analytics.json",
    "json": False,
    "verbose": False,
    "epochs": None,
    "concurrency": 1,
    "progress_interval": DEFAULT_PROGRESS_INTERVAL,
    "request_timeout": DEFAULT_TIMEOUT_SECONDS,
    "max_rpc_retries": MAX_RPC_RETRIES,
    "log_level": "INFO",
}


def load_config(config_path: Path) -> Dict[str, Any]:
    config = dict(DEFAULT_CONFIG)
    if not config_path.exists():
        logger.warning("%s not found; using defaults", config_path)
        return config
    with config_path.open("r", encoding="utf-8") as handle:
        try:
            overrides = json.load(handle)
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"Invalid JSON in configuration file: {exc}") from exc
    if not isinstance(overrides, dict):
        raise ConfigurationError(f"Configuration file {config_path} must contain a JSON object")
    config.update(overrides)
    return config


def apply_overrides(config: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Layer explicitly supplied values (e.g. CLI flags) over the loaded config."""
    merged = dict(config)
    for key, value in overrides.items():
        if value is not None:
            merged[key] = value
    return merged


def _validate_pubkey(value: Any) -> str:
    address = str(value or "").strip()
    if not address or address == PLACEHOLDER_VOTE_PUBKEY:
        raise ConfigurationError("A vote account public key is required (--vote-pubkey or 'vote_pubkey').")
    try:
        Pubkey.from_string(address)
    except Exception as exc:  # pylint: disable=broad-except
        raise ConfigurationError(f"Invalid vote account public key: {address}") from exc
    return address


def _optional_non_negative_int(name: str, value: Any) -> Optional[int]:
    if value is None:
        return None
    parsed = safe_int(value)
    if parsed is None or isinstance(value, bool) or parsed < 0:
        raise ConfigurationError(f"'{name}' must be a non-negative integer or null, got {value!r}")
    return parsed


def _positive_int(name: str, value: Any) -> int:
    parsed = safe_int(value)
    if parsed is None or isinstance(value, bool) or parsed < 1:
        raise ConfigurationError(f"'{name}' must be a positive integer, got {value!r}")
    return parsed


def _non_negative_float(name: str, value: Any) -> float:
    try:
        parsed = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"'{name}' must be a number, got {value!r}") from exc
    if parsed < 0:
        raise ConfigurationError(f"'{name}' must be non-negative, got {value!r}")
    return parsed


def _positive_float(name: str, value: Any) -> float:
    parsed = _non_negative_float(name, value)
    if parsed <= 0:
        raise ConfigurationError(f"'{name}' must be positive, got {value!r}")
    return parsed


def validate_config(config: Dict[str, Any]) -> Dict[str, Any]:
    validated = dict(config)
    validated["vote_pubkey"] = _validate_pubkey(config.get("vote_pubkey"))

    rpc_url = str(config.get("rpc_url") or "").strip()
    if not rpc_url:
        raise ConfigurationError("'rpc_url' must not be empty")
    fallback_urls = config.get("rpc_fallback_urls") or []
    if not isinstance(fallback_urls, list):
        raise ConfigurationError("'rpc_fallback_urls' must be a list of URLs")
    endpoints: List[str] = [rpc_url]
    for url in fallback_urls:
        value = str(url).strip()
        if value and value not in endpoints:
            endpoints.append(value)
    validated["rpc_url"] = rpc_url
    validated["rpc_endpoints"] = endpoints

    validated["epochs"] = _optional_non_negative_int("epochs", config.get("epochs"))
    validated["fallback_price_usd"] = _non_negative_float("fallback_price_usd", config.get("fallback_price_usd"))
    validated["request_timeout"] = _positive_float("request_timeout", config.get("request_timeout"))
    validated["concurrency"] = _positive_int("concurrency", config.get("concurrency"))
    validated["progress_interval"] = _positive_int("progress_interval", config.get("progress_interval"))
    validated["max_rpc_retries"] = _positive_int("max_rpc_retries", config.get("max_rpc_retries"))
    validated["verbose"] = bool(config.get("verbose"))
    validated["json"] = bool(config.get("json"))
    validated["log_level"] = str(config.get("log_level") or "INFO").upper()
    return validated
