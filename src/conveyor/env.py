import os
from typing import Any, Union

from .types import DEFAULT_BASE_URL

# Checked in order after the prefix; the first non-empty value wins
BASE_URL_VARS = ("API_URL", "API_BASE_URL")


def _parse_env_file(env_path: str) -> dict[str, str]:
    """Parse a simple .env file into a dict without modifying os.environ.

    Supports basic KEY=VALUE pairs, ignoring comments and blank lines.
    Surrounding single/double quotes are stripped if present.
    """
    values: dict[str, str] = {}
    try:
        with open(env_path) as f:
            for raw_line in f:
                line = raw_line.strip()
                if not line or line.startswith("#"):
                    continue
                if line.startswith("export "):
                    line = line[len("export ") :]
                if "=" not in line:
                    continue
                key, val = line.split("=", 1)
                key = key.strip()
                val = val.strip().strip('"').strip("'")
                if key:
                    values[key] = val
    except FileNotFoundError:
        # a missing .env is the common case outside development
        pass
    return values


def _float(env_map: dict[str, str], name: str) -> Union[float, None]:
    raw = env_map.get(name)
    if not raw:
        return None
    try:
        value = float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number of seconds, got {raw!r}") from e
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value


def load_settings_from_env(
    env_path: Union[str, None] = None, prefix: str = "CONVEYOR_"
) -> dict[str, Any]:
    """Read pipeline settings from environment variables.

    - base_url: CONVEYOR_API_URL, else CONVEYOR_API_BASE_URL, else the local default.
    - timeout / upload_timeout: CONVEYOR_TIMEOUT / CONVEYOR_UPLOAD_TIMEOUT (seconds).
    - client_version: CONVEYOR_CLIENT_VERSION.
    - token_file: CONVEYOR_TOKEN_FILE, path of a JSON token store.

    If 'env_path' is provided, variables from the .env file augment lookups (without
    mutating the process environment). Values in the actual environment take
    precedence over the file. Unset variables are left out of the result so the
    dataclass defaults apply.
    """
    file_env = _parse_env_file(env_path) if env_path else {}
    env_map: dict[str, str] = {**file_env, **os.environ}

    settings: dict[str, Any] = {}
    settings["base_url"] = DEFAULT_BASE_URL
    for name in BASE_URL_VARS:
        if env_map.get(prefix + name):
            settings["base_url"] = env_map[prefix + name]
            break

    timeout = _float(env_map, f"{prefix}TIMEOUT")
    if timeout is not None:
        settings["timeout"] = timeout
    upload_timeout = _float(env_map, f"{prefix}UPLOAD_TIMEOUT")
    if upload_timeout is not None:
        settings["upload_timeout"] = upload_timeout

    if env_map.get(f"{prefix}CLIENT_VERSION"):
        settings["client_version"] = env_map[f"{prefix}CLIENT_VERSION"]
    if env_map.get(f"{prefix}TOKEN_FILE"):
        settings["token_file"] = env_map[f"{prefix}TOKEN_FILE"]
    return settings
