"""Configuration loading for auditlens (.auditlens.yml plus environment)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import yaml
from dotenv import load_dotenv

CONFIG_FILENAME = ".auditlens.yml"
DEFAULT_DB_NAME = "auditlens_db"
DEFAULT_COLLECTION = "analysis_reports"
DEFAULT_ETHERSCAN_URL = "https://api.etherscan.io/api"


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class LLMConfig:
    """LLM runtime settings."""

    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    request_timeout: Optional[float] = None


@dataclass
class EtherscanConfig:
    """Block-explorer API settings."""

    api_key: Optional[str] = None
    base_url: str = DEFAULT_ETHERSCAN_URL
    chain_id: Optional[int] = None
    request_timeout: float = 30.0


@dataclass
class StorageConfig:
    """Document store settings for persisted reports."""

    uri: Optional[str] = None
    db_name: str = DEFAULT_DB_NAME
    collection: str = DEFAULT_COLLECTION


@dataclass
class ServiceConfig:
    """Web service bind settings."""

    host: str = "0.0.0.0"
    port: int = 8000
    url_fetch_timeout: float = 30.0


@dataclass
class AuditLensConfig:
    """Represents the settings defined in .auditlens.yml and the environment."""

    root: Path
    llm: LLMConfig = field(default_factory=LLMConfig)
    etherscan: EtherscanConfig = field(default_factory=EtherscanConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    service: ServiceConfig = field(default_factory=ServiceConfig)
    available_tools: List[str] = field(default_factory=list)


def load_environment(root: Path | None = None) -> bool:
    """Load a .env file from ``root`` (or the working directory) into os.environ."""
    base = (root or Path.cwd()).expanduser()
    env_file = base / ".env"
    if not env_file.exists():
        return False
    return load_dotenv(env_file, override=True)


def load_config(
    config_path: Path | None = None, *, env: Mapping[str, str] | None = None
) -> AuditLensConfig:
    """Load configuration from disk, then apply environment overrides."""
    environ = os.environ if env is None else env
    config_file = _resolve_config_path(config_path or Path.cwd())
    root = config_file.parent.resolve()

    data: Dict[str, Any] = {}
    if config_file.exists():
        data = _read_config(config_file)

    llm_data = _as_dict(data.get("llm"))
    llm = LLMConfig(
        model=_as_str(llm_data.get("model")),
        temperature=_as_float(llm_data.get("temperature")),
        max_tokens=_as_int(llm_data.get("max_tokens")),
        base_url=_as_str(llm_data.get("base_url")),
        api_key=_as_str(llm_data.get("api_key")),
        request_timeout=_as_float(llm_data.get("request_timeout")),
    )

    etherscan_data = _as_dict(data.get("etherscan"))
    etherscan = EtherscanConfig(
        api_key=_as_str(etherscan_data.get("api_key")),
        base_url=_as_str(etherscan_data.get("base_url")) or DEFAULT_ETHERSCAN_URL,
        chain_id=_as_int(etherscan_data.get("chain_id")),
        request_timeout=_as_float(etherscan_data.get("request_timeout")) or 30.0,
    )

    storage_data = _as_dict(data.get("storage"))
    storage = StorageConfig(
        uri=_as_str(storage_data.get("uri")),
        db_name=_as_str(storage_data.get("db_name")) or DEFAULT_DB_NAME,
        collection=_as_str(storage_data.get("collection")) or DEFAULT_COLLECTION,
    )

    service_data = _as_dict(data.get("service"))
    service = ServiceConfig(
        host=_as_str(service_data.get("host")) or "0.0.0.0",
        port=_as_int(service_data.get("port")) or 8000,
        url_fetch_timeout=_as_float(service_data.get("url_fetch_timeout")) or 30.0,
    )

    config = AuditLensConfig(
        root=root,
        llm=llm,
        etherscan=etherscan,
        storage=storage,
        service=service,
        available_tools=_as_str_list(data.get("available_tools")),
    )
    _apply_env_overrides(config, environ)
    return config


def _apply_env_overrides(config: AuditLensConfig, env: Mapping[str, str]) -> None:
    etherscan_key = _env_str(env, "ETHERSCAN_API_KEY")
    if etherscan_key:
        config.etherscan.api_key = etherscan_key
    etherscan_url = _env_str(env, "ETHERSCAN_API_URL")
    if etherscan_url:
        config.etherscan.base_url = etherscan_url
    chain_id = _as_int(_env_str(env, "ETHERSCAN_CHAIN_ID"))
    if chain_id is not None:
        config.etherscan.chain_id = chain_id

    mongo_uri = _env_str(env, "MONGODB_ATLAS_CONNECTION_STRING")
    if mongo_uri:
        config.storage.uri = mongo_uri
    db_name = _env_str(env, "MONGODB_DB_NAME")
    if db_name:
        config.storage.db_name = db_name

    llm_key = _env_str(env, "AUDITLENS_LLM_API_KEY", "GEMINI_API_KEY", "GOOGLE_API_KEY")
    if llm_key:
        config.llm.api_key = llm_key
    llm_model = _env_str(env, "AUDITLENS_LLM_MODEL")
    if llm_model:
        config.llm.model = llm_model
    llm_url = _env_str(env, "AUDITLENS_LLM_BASE_URL")
    if llm_url:
        config.llm.base_url = llm_url


def _env_str(env: Mapping[str, str], *keys: str) -> Optional[str]:
    for key in keys:
        value = env.get(key)
        if value and value.strip():
            return value.strip()
    return None


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"{path.name} must contain a mapping at the root")
    return loaded


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return str(value).lower()
    return str(value) if isinstance(value, (str, int, float)) else None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float))]
    return []


__all__ = [
    "AuditLensConfig",
    "ConfigError",
    "EtherscanConfig",
    "LLMConfig",
    "ServiceConfig",
    "StorageConfig",
    "load_config",
    "load_environment",
]
