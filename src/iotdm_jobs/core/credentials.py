"""Hub credentials: environment first, then a small TOML file.

The file holds string entries only::

    api_token = "..."
    hub_url = "https://myhub.example.net"
"""

import json
import os
import tomllib
from pathlib import Path
from typing import Dict, Optional

API_TOKEN_KEY = "api_token"
HUB_URL_KEY = "hub_url"


def get_credentials_path() -> Path:
    credentials_file = os.getenv("IOTDM_CREDENTIALS_FILE")
    if credentials_file:
        return Path(credentials_file).expanduser()

    config_home = os.getenv("XDG_CONFIG_HOME")
    base_dir = (
        Path(config_home).expanduser() if config_home else Path.home() / ".config"
    )
    return base_dir / "iotdm" / "credentials.toml"


def read_credentials() -> Dict[str, str]:
    """String entries of the credentials file; empty if missing or unreadable."""
    path = get_credentials_path()
    if not path.exists():
        return {}

    try:
        with path.open("rb") as handle:
            data = tomllib.load(handle)
    except (OSError, ValueError):
        return {}
    return {key: value for key, value in data.items() if isinstance(value, str)}


def _lookup(env_var: str, key: str) -> Optional[str]:
    value = os.getenv(env_var)
    if value and value.strip():
        return value

    stored = read_credentials().get(key)
    if stored and stored.strip():
        return stored
    return None


def get_api_token() -> Optional[str]:
    return _lookup("IOTDM_API_TOKEN", API_TOKEN_KEY)


def get_hub_url() -> Optional[str]:
    return _lookup("IOTDM_HUB_URL", HUB_URL_KEY)


def _toml_string(value: str) -> str:
    # JSON string escapes are valid TOML basic-string escapes; TOML also bans raw DEL
    return json.dumps(value, ensure_ascii=False).replace("\x7f", "\\u007f")


def save_credentials(
    api_token: Optional[str] = None, hub_url: Optional[str] = None
) -> Path:
    """Merge the given values into the credentials file, readable by the owner only.

    Returns:
        Path of the written file.
    """
    entries = read_credentials()
    if api_token is not None:
        entries[API_TOKEN_KEY] = api_token
    if hub_url is not None:
        entries[HUB_URL_KEY] = hub_url

    path = get_credentials_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    lines = [f"{key} = {_toml_string(value)}\n" for key, value in sorted(entries.items())]
    path.write_text("".join(lines), encoding="utf-8")
    try:
        os.chmod(path, 0o600)
    except OSError:
        pass
    return path
