"""
Utility functions for the command gateway
"""
import os
import re
import yaml
from typing import Any, Dict, Tuple


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load configuration from YAML file with environment variable substitution

    Supports ${VAR_NAME} syntax for environment variables
    """
    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        config_str = f.read()

    # Replace environment variables
    def replace_env(match):
        var_name = match.group(1)
        value = os.getenv(var_name)
        if value is None:
            raise ValueError(f"Environment variable {var_name} is not set")
        return value

    config_str = re.sub(r'\$\{([A-Za-z_][A-Za-z0-9_]*)\}', replace_env, config_str)

    config = yaml.safe_load(config_str)
    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ValueError(f"Configuration root must be a mapping: {config_path}")
    return config


def positive_int(value: Any, default: int) -> int:
    """Coerce a config value to a positive int, falling back to default."""
    try:
        n = int(value)
    except (TypeError, ValueError):
        return default
    if n <= 0:
        return default
    return n


def format_duration(seconds: float) -> str:
    """Render a duration the way operators read it in logs: 850.2ms, 1.502s."""
    if seconds < 0:
        seconds = 0.0
    if seconds < 1.0:
        return f"{seconds * 1000:.3f}ms"
    return f"{seconds:.3f}s"


def parse_listen_address(address: str) -> Tuple[str, int]:
    """Split "host:port" (or ":port") into a bindable pair."""
    text = str(address or "").strip()
    host, sep, port = text.rpartition(":")
    if not sep or not port.isdigit():
        raise ValueError(f"Invalid listen address: {address!r}")
    host = host.strip("[]") or "0.0.0.0"
    return host, int(port)
