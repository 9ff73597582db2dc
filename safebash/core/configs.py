"""Configuration management for Safebash.

Loads user settings from ~/.config/safebash/config.cfg, falling back to a
.env file in the working directory.
Provides GateSettings (how guarded commands are executed and logged).
"""

import configparser
from dataclasses import dataclass
import os
from pathlib import Path
from typing import Dict, Optional

from dotenv import dotenv_values

# Default location for user configuration.
CONFIG_PATH = Path.home() / ".config" / "safebash" / "config.cfg"

ENV_PATH = Path(".env")
ENV_PREFIX = "SAFEBASH_"

LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass
class GateSettings:
    shell: str = "bash"
    timeout: int = 30
    log_level: str = "WARNING"
    stream: bool = True


def load_raw_config(path: Path = CONFIG_PATH, env_path: Path = ENV_PATH) -> Dict[str, str]:
    """
    Load configuration values from the standard config path.
    Values are returned with lowercase keys for convenience.

    When the config file does not exist, SAFEBASH_* entries of the .env
    file are used instead (prefix stripped).
    """
    data: Dict[str, str] = {}

    if path.exists():
        cfg = configparser.ConfigParser()
        cfg.read(path)
        data.update({k.lower(): v for k, v in cfg["DEFAULT"].items()})
        return data

    if env_path.exists():
        for key, value in dotenv_values(env_path).items():
            if key.upper().startswith(ENV_PREFIX) and value is not None:
                data[key[len(ENV_PREFIX):].lower()] = value

    return data


def _get_bool(raw: Dict[str, str], key: str, default: bool = False) -> bool:
    value = raw.get(key)
    if value is None or str(value).strip() == "":
        return default
    return str(value).strip().lower() in {"1", "true", "yes", "y", "on"}


def _get_int(raw: Dict[str, str], key: str, default: int) -> int:
    value = raw.get(key)
    if value is None or str(value).strip() == "":
        return default
    try:
        return int(float(value))
    except ValueError:
        raise ValueError(f"Invalid value for '{key}': {value!r} is not a number") from None


def get_gate_settings(raw: Optional[Dict[str, str]] = None) -> GateSettings:
    """
    Build GateSettings from raw configuration values.
    Raises ValueError on malformed numbers or unknown log levels.
    """
    raw = load_raw_config() if raw is None else raw

    timeout_env = os.environ.get("SAFEBASH_EXEC_TIMEOUT_S")
    if timeout_env is not None and timeout_env.strip() != "":
        timeout = _get_int({"SAFEBASH_EXEC_TIMEOUT_S": timeout_env}, "SAFEBASH_EXEC_TIMEOUT_S", 30)
    else:
        timeout = _get_int(raw, "timeout", 30)
    if timeout <= 0:
        raise ValueError(f"Timeout must be positive, got {timeout}")

    log_level = raw.get("log_level", "WARNING").strip().upper() or "WARNING"
    if log_level not in LOG_LEVELS:
        raise ValueError(
            f"Unknown log level '{log_level}'. Expected one of: {', '.join(sorted(LOG_LEVELS))}"
        )

    return GateSettings(
        shell=raw.get("shell", "bash").strip() or "bash",
        timeout=timeout,
        log_level=log_level,
        stream=_get_bool(raw, "stream", True),
    )
