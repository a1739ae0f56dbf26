import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import yaml

from .errors import ConfigError
from .storage import KeyValueStore
from .tailscale_client import DEFAULT_BASE_URL, TailscaleClient

logger = logging.getLogger(__name__)

DEFAULT_NOTE_PATH = "Tailscale.md"
DEFAULT_SYNC_INTERVAL = 5 * 60
SETTINGS_DIRNAME = ".tailscale-note"

# Wire names as stored in the settings file.
DEFAULT_SETTINGS: Dict[str, Any] = {"authToken": ""}


def _normalize_api_url(url: str) -> str:
    """Normalize the API base URL and ensure it has a host."""
    u = url.strip().rstrip("/")
    # Collapse extra slashes after :// (e.g. https:///host -> https://host)
    u = re.sub(r"(https?):///+", r"\1://", u)
    parsed = urlparse(u)
    if not parsed.netloc:
        raise ConfigError(
            f"TAILSCALE_API_URL has no host: {url!r}. "
            "Use e.g. https://api.tailscale.com/api/v2 (no extra slashes)."
        )
    return u


def _parse_bool(name: str, raw: object, default: bool = False) -> bool:
    if raw is None:
        return default
    if isinstance(raw, bool):
        return raw
    v = str(raw).strip().lower()
    if v in {"1", "true", "yes", "y", "on"}:
        return True
    if v in {"0", "false", "no", "n", "off"}:
        return False
    raise ConfigError(f"Invalid boolean value for {name}={raw!r} (expected true/false).")


def _parse_interval(name: str, raw: object) -> int:
    if raw is None:
        return DEFAULT_SYNC_INTERVAL
    try:
        value = int(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be an integer (seconds)") from exc
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {value}")
    return value


def _parse_note_path(name: str, raw: object) -> str:
    if raw is None:
        return DEFAULT_NOTE_PATH
    if not isinstance(raw, str) or not raw.strip():
        raise ConfigError(f"{name} must be a non-empty string")
    p = PurePosixPath(raw.strip())
    if p.is_absolute() or ".." in p.parts:
        raise ConfigError(f"{name} must be a path inside the vault, got {raw!r}")
    return str(p)


def default_settings_file(vault_dir: Path) -> Path:
    return Path(vault_dir) / SETTINGS_DIRNAME / "data.json"


@dataclass
class AppConfig:
    """Runtime configuration. User settings (the token) live in Settings."""

    vault_dir: Path
    note_path: str = DEFAULT_NOTE_PATH
    settings_file: Optional[Path] = None
    api_base_url: str = DEFAULT_BASE_URL
    tailnet: str = "-"
    sync_interval: int = DEFAULT_SYNC_INTERVAL
    log_level: str = "INFO"
    log_dir: Optional[Path] = None
    desktop_notifications: bool = False

    def __post_init__(self) -> None:
        self.vault_dir = Path(self.vault_dir)
        if self.settings_file is None:
            self.settings_file = default_settings_file(self.vault_dir)


def _load_config_from_yaml(path: str) -> AppConfig:
    """Load configuration from a single YAML config file."""
    p = Path(path)
    if not p.is_file():
        raise ConfigError(f"APP_CONFIG_FILE not found: {path}")

    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Failed to read YAML config: {path}") from exc

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError("YAML config root must be a mapping/object")

    sections: List[str] = ["vault", "tailscale", "runtime"]
    for section in sections:
        if not isinstance(raw.get(section) or {}, dict):
            raise ConfigError(f"{section} must be a mapping/object")

    vault = raw.get("vault") or {}
    tailscale = raw.get("tailscale") or {}
    runtime = raw.get("runtime") or {}

    vault_dir = vault.get("directory", ".")
    if not isinstance(vault_dir, str) or not vault_dir.strip():
        raise ConfigError("vault.directory must be a non-empty string")

    settings_file = vault.get("settings_file")
    if settings_file is not None and not isinstance(settings_file, str):
        raise ConfigError("vault.settings_file must be a string or null")

    tailnet = tailscale.get("tailnet", "-")
    if not isinstance(tailnet, str) or not tailnet.strip():
        raise ConfigError("tailscale.tailnet must be a non-empty string")

    log_dir = runtime.get("log_dir")
    if log_dir is not None and not isinstance(log_dir, str):
        raise ConfigError("runtime.log_dir must be a string or null")

    return AppConfig(
        vault_dir=Path(vault_dir.strip()).expanduser(),
        note_path=_parse_note_path("vault.note_path", vault.get("note_path")),
        settings_file=Path(settings_file).expanduser() if settings_file else None,
        api_base_url=_normalize_api_url(str(tailscale.get("api_url", DEFAULT_BASE_URL))),
        tailnet=tailnet.strip(),
        sync_interval=_parse_interval("runtime.sync_interval", runtime.get("sync_interval")),
        log_level=str(runtime.get("log_level", "INFO")),
        log_dir=Path(log_dir).expanduser() if log_dir else None,
        desktop_notifications=_parse_bool(
            "runtime.desktop_notifications", runtime.get("desktop_notifications")
        ),
    )


def load_config(config_file: Optional[str] = None) -> AppConfig:
    """Load configuration from YAML (config_file or APP_CONFIG_FILE) or environment variables."""

    app_config_file = config_file or os.getenv("APP_CONFIG_FILE")
    if app_config_file:
        return _load_config_from_yaml(app_config_file)

    settings_file = os.getenv("SETTINGS_FILE")
    log_dir = os.getenv("LOG_DIR")

    return AppConfig(
        vault_dir=Path(os.getenv("VAULT_DIR", ".")).expanduser(),
        note_path=_parse_note_path("NOTE_PATH", os.getenv("NOTE_PATH")),
        settings_file=Path(settings_file).expanduser() if settings_file else None,
        api_base_url=_normalize_api_url(os.getenv("TAILSCALE_API_URL", DEFAULT_BASE_URL)),
        tailnet=os.getenv("TAILSCALE_TAILNET", "-").strip() or "-",
        sync_interval=_parse_interval("SYNC_INTERVAL", os.getenv("SYNC_INTERVAL")),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_dir=Path(log_dir).expanduser() if log_dir else None,
        desktop_notifications=_parse_bool("DESKTOP_NOTIFICATIONS", os.getenv("DESKTOP_NOTIFICATIONS")),
    )


@dataclass
class Settings:
    """User settings persisted through a KeyValueStore."""

    auth_token: str = ""


class SettingsManager:
    """
    Owns the Settings value for the process.

    - load(): stored data merged over DEFAULT_SETTINGS (defaults only fill
      absent keys; unknown stored keys are kept and written back on save)
    - update_token(): the single entry point for changing the token; it
      persists the change and pushes it into every attached client
    """

    def __init__(self, store: KeyValueStore):
        self.store = store
        self.settings = Settings()
        self._raw: Dict[str, Any] = dict(DEFAULT_SETTINGS)
        self._clients: List[TailscaleClient] = []

    def load(self) -> Settings:
        return self._apply(self.store.load() or {})

    def refresh(self) -> Settings:
        """Re-read the store and push a changed token into attached clients.

        Picks up updates saved by another process (e.g. `set-token` while
        `run` is active). An unreadable store keeps the current settings.
        """
        stored = self.store.load()
        if stored is None:
            return self.settings

        previous = self.settings.auth_token
        self._apply(stored)
        if self.settings.auth_token != previous:
            for client in self._clients:
                client.set_auth_token(self.settings.auth_token)
            logger.info("Tailscale API token reloaded from settings")
        return self.settings

    def _apply(self, stored: Dict[str, Any]) -> Settings:
        self._raw = {**DEFAULT_SETTINGS, **stored}

        token = self._raw.get("authToken")
        if token is None:
            token = ""
        elif not isinstance(token, str):
            logger.warning("Ignoring stored authToken of type %s", type(token).__name__)
            token = ""

        self.settings = Settings(auth_token=token)
        return self.settings

    def save(self) -> None:
        self._raw["authToken"] = self.settings.auth_token
        self.store.save(dict(self._raw))

    def attach(self, client: TailscaleClient) -> None:
        """Keep client's bearer token in step with future updates."""
        self._clients.append(client)

    def update_token(self, token: str) -> None:
        self.settings.auth_token = token
        self.save()
        for client in self._clients:
            client.set_auth_token(token)
        logger.info("Tailscale API token updated")
