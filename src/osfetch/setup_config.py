# src/osfetch/setup_config.py

import getpass
import os
from typing import Any, Callable, Dict, Optional

import platformdirs
import yaml

from osfetch.constants import (
    API_TOKEN_ENV_VAR,
    API_URL_ENV_VAR,
    APP_NAME,
    CONFIG_FILE_NAME,
    DEFAULT_API_URL,
    DEFAULT_FLUSH_MODE,
    DEFAULT_REQUEST_TIMEOUT,
    FLUSH_MODE_NO_FLUSH,
    FLUSH_MODE_SYNC_FLUSH,
    LOG_LEVEL_ENV_VAR,
)
from osfetch.exceptions import ConfigurationError
from osfetch.log_utils import logger

DEFAULT_CONFIG: Dict[str, Any] = {
    "API_URL": DEFAULT_API_URL,
    "API_TOKEN": None,
    "LOG_LEVEL": "INFO",
    "LOG_TO_FILE": False,
    "DECOMPRESS_FLUSH_MODE": DEFAULT_FLUSH_MODE,
    "REQUEST_TIMEOUT": DEFAULT_REQUEST_TIMEOUT,
}

VALID_FLUSH_MODES = (FLUSH_MODE_NO_FLUSH, FLUSH_MODE_SYNC_FLUSH)
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

# Environment variables win over the file
ENV_OVERRIDES = {
    "API_URL": API_URL_ENV_VAR,
    "API_TOKEN": API_TOKEN_ENV_VAR,
    "LOG_LEVEL": LOG_LEVEL_ENV_VAR,
}


def get_config_dir() -> str:
    return platformdirs.user_config_dir(APP_NAME)


def get_config_file() -> str:
    return os.path.join(get_config_dir(), CONFIG_FILE_NAME)


def get_log_dir() -> str:
    return platformdirs.user_log_dir(APP_NAME)


def config_exists() -> bool:
    return os.path.exists(get_config_file())


def _read_config_file(config_path: str) -> Dict[str, Any]:
    """
    Parse the YAML configuration file at `config_path`.

    An empty file yields an empty mapping.

    Raises:
        ConfigurationError: If the file cannot be read, is not valid YAML, or its
            top level is not a mapping.
    """
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigurationError(
            f"Could not read configuration file {config_path}", details=str(e)
        ) from e
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Invalid YAML in configuration file {config_path}", details=str(e)
        ) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Configuration file {config_path} must contain a mapping, "
            f"got {type(data).__name__}"
        )
    return data


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load the osfetch configuration, layering defaults, the YAML file and environment overrides.

    A missing configuration file is not an error: the defaults (plus any
    environment overrides) are returned.

    Parameters:
        config_path (Optional[str]): Explicit configuration file; defaults to the platformdirs location.

    Returns:
        Dict[str, Any]: The effective configuration mapping.

    Raises:
        ConfigurationError: If the file exists but cannot be parsed, or a value is invalid.
    """
    path = config_path or get_config_file()
    config = dict(DEFAULT_CONFIG)

    if os.path.exists(path):
        logger.debug(f"Loading configuration from {path}")
        config.update(_read_config_file(path))

    for key, env_var in ENV_OVERRIDES.items():
        value = os.environ.get(env_var)
        if value:
            config[key] = value

    flush_mode = str(config.get("DECOMPRESS_FLUSH_MODE") or DEFAULT_FLUSH_MODE).lower()
    if flush_mode not in VALID_FLUSH_MODES:
        raise ConfigurationError(
            f"Invalid DECOMPRESS_FLUSH_MODE '{flush_mode}'",
            details=f"choose from {', '.join(VALID_FLUSH_MODES)}",
        )
    config["DECOMPRESS_FLUSH_MODE"] = flush_mode

    try:
        config["REQUEST_TIMEOUT"] = float(config.get("REQUEST_TIMEOUT") or 0) or float(
            DEFAULT_REQUEST_TIMEOUT
        )
    except (TypeError, ValueError) as e:
        raise ConfigurationError(
            f"Invalid REQUEST_TIMEOUT '{config.get('REQUEST_TIMEOUT')}'"
        ) from e

    config["API_URL"] = str(config.get("API_URL") or DEFAULT_API_URL).rstrip("/")
    return config


def save_config(config: Dict[str, Any], config_path: Optional[str] = None) -> str:
    """
    Write `config` as YAML and return the path written.

    Keys whose value is None are omitted so the file stays minimal.
    """
    path = config_path or get_config_file()
    os.makedirs(os.path.dirname(path), exist_ok=True)
    data = {key: value for key, value in config.items() if value is not None}
    try:
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=True)
    except OSError as e:
        raise ConfigurationError(
            f"Could not write configuration file {path}", details=str(e)
        ) from e
    return path


def _prompt_with_default(prompt: str, default: str, input_func: Callable) -> str:
    answer = input_func(f"{prompt} (default: {default}): ").strip()
    return answer or default


def run_setup(
    input_func: Callable[[str], str] = input,
    secret_func: Callable[[str], str] = getpass.getpass,
) -> Dict[str, Any]:
    """
    Interactively create or update the configuration file.

    Existing values are offered as defaults. The API token is read without
    echo; pressing Enter keeps the current token and entering "-" clears it.

    Parameters:
        input_func: Prompt function for visible answers (patched in tests).
        secret_func: Prompt function for the API token.

    Returns:
        Dict[str, Any]: The configuration that was saved.
    """
    existing: Dict[str, Any] = dict(DEFAULT_CONFIG)
    if config_exists():
        try:
            existing.update(_read_config_file(get_config_file()))
        except ConfigurationError as e:
            logger.warning(f"Ignoring unreadable configuration: {e}")

    print("=" * 60)
    print("osfetch configuration")
    print("=" * 60)

    config: Dict[str, Any] = {}
    config["API_URL"] = _prompt_with_default(
        "API URL", str(existing.get("API_URL") or DEFAULT_API_URL), input_func
    ).rstrip("/")

    current_token = existing.get("API_TOKEN")
    if current_token:
        masked = current_token[:4] + "..." if len(current_token) > 4 else "***"
        print(f"Current status: API token configured ({masked})")
    token = secret_func(
        "API token (Enter to keep current, '-' to clear): "
    ).strip()
    if token == "-":
        config["API_TOKEN"] = None
    else:
        config["API_TOKEN"] = token or current_token

    level = _prompt_with_default(
        "Log level", str(existing.get("LOG_LEVEL") or "INFO"), input_func
    ).upper()
    if level not in VALID_LOG_LEVELS:
        print(f"Unknown log level '{level}', using INFO.")
        level = "INFO"
    config["LOG_LEVEL"] = level

    log_to_file = _prompt_with_default(
        "Write a log file? [y/n]",
        "yes" if existing.get("LOG_TO_FILE") else "no",
        input_func,
    ).lower()
    config["LOG_TO_FILE"] = log_to_file in ("y", "yes")

    flush_mode = _prompt_with_default(
        f"Decompression flush mode ({'/'.join(VALID_FLUSH_MODES)})",
        str(existing.get("DECOMPRESS_FLUSH_MODE") or DEFAULT_FLUSH_MODE),
        input_func,
    ).lower()
    if flush_mode not in VALID_FLUSH_MODES:
        print(f"Unknown flush mode '{flush_mode}', using {DEFAULT_FLUSH_MODE}.")
        flush_mode = DEFAULT_FLUSH_MODE
    config["DECOMPRESS_FLUSH_MODE"] = flush_mode
    config["REQUEST_TIMEOUT"] = existing.get("REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT)

    path = save_config(config)
    print(f"Configuration saved to: {path}")
    return config
