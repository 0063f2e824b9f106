"""YAML config loading with `${VAR}` substitution from `.env` and the environment."""

import logging
import os
import re
from pathlib import Path
from typing import Any, Mapping

import yaml
from dotenv import dotenv_values

logger = logging.getLogger("chatrelay")

DEFAULT_CONFIG_PATH = "configs/config_default.yaml"
CONFIG_PATH_ENV = "CHATRELAY_CONFIG"

PROJECT_ROOT = Path(__file__).parent.parent

_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}|\$([A-Za-z_][A-Za-z0-9_]*)")


def resolve_config_path(path: str) -> Path:
    candidate = Path(path)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


def resolve_env_path(config_path: Path, env_path: str | None = None) -> Path:
    """`config_default.yaml` pairs with `.env_default`, anything else with `.env`."""
    if env_path:
        return resolve_config_path(env_path)
    prefix = "config_"
    if config_path.stem.startswith(prefix):
        return config_path.with_name(f".env_{config_path.stem[len(prefix):]}")
    return config_path.with_name(".env")


def load_env_values(env_path: Path) -> dict[str, str]:
    if not env_path.exists():
        return {}
    # dotenv_values leaves os.environ untouched
    return {k: v for k, v in dotenv_values(env_path).items() if v is not None}


def load_config(
    path: str | None = None,
    env_path: str | None = None,
    substitute_env: bool = True,
) -> dict:
    """Read the relay config.

    `path` defaults to `$CHATRELAY_CONFIG`, then `configs/config_default.yaml`.
    Raises RuntimeError when the file does not exist.
    """
    config_path = resolve_config_path(path or os.getenv(CONFIG_PATH_ENV) or DEFAULT_CONFIG_PATH)
    if not config_path.exists():
        logger.error(f"Config file not found: {config_path}")
        raise RuntimeError(f"Config file not found: {config_path}")

    with config_path.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}

    if substitute_env:
        env_file = resolve_env_path(config_path, env_path)
        env_values = load_env_values(env_file)
        if env_values:
            logger.info(f"Using {len(env_values)} value(s) from {env_file}")
        data = substitute_env_vars(data, env_values)

    logger.info(f"Loaded configuration from {config_path}")
    return data


def is_unresolved_placeholder(value: Any) -> bool:
    """True if `value` is still a bare `${VAR}` or `$VAR` placeholder."""
    return isinstance(value, str) and _ENV_PATTERN.fullmatch(value.strip()) is not None


def substitute_env_vars(obj: Any, env_values: Mapping[str, str] | None = None) -> Any:
    """Fill placeholders in every string of `obj`; `.env` values win over os.environ.

    Unset variables keep their placeholder and log a warning.
    """
    env_values = env_values or {}

    if isinstance(obj, dict):
        return {key: substitute_env_vars(value, env_values) for key, value in obj.items()}
    if isinstance(obj, list):
        return [substitute_env_vars(item, env_values) for item in obj]
    if not isinstance(obj, str):
        return obj

    def _lookup(match: re.Match) -> str:
        name = match.group(1) or match.group(2)
        value = env_values.get(name, os.getenv(name))
        if value is None:
            logger.warning(f"Config references ${name}, which is not set")
            return match.group(0)
        return value

    return _ENV_PATTERN.sub(_lookup, obj)
