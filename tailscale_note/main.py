import argparse
import getpass
import logging
import os
import sys
from dataclasses import dataclass, replace
from pathlib import Path
from typing import List, Optional

from .config import AppConfig, SettingsManager, default_settings_file, load_config
from .errors import ConfigError
from .logging_config import configure_logging
from .notifier import DesktopNotifier, LogNotifier, Notifier
from .scheduler import SyncScheduler
from .storage import JsonKeyValueStore, VaultDocumentStore
from .sync_note import NoteSynchronizer
from .tailscale_client import TailscaleClient

logger = logging.getLogger(__name__)


@dataclass
class App:
    """Wired-up collaborators for one process."""

    config: AppConfig
    settings: SettingsManager
    client: TailscaleClient
    synchronizer: NoteSynchronizer


def build_app(config: AppConfig, notifier: Optional[Notifier] = None) -> App:
    settings = SettingsManager(JsonKeyValueStore(config.settings_file))
    settings.load()

    client = TailscaleClient(
        settings.settings.auth_token,
        base_url=config.api_base_url,
        tailnet=config.tailnet,
    )
    settings.attach(client)

    if notifier is None:
        notifier = DesktopNotifier() if config.desktop_notifications else LogNotifier()

    synchronizer = NoteSynchronizer(
        store=VaultDocumentStore(config.vault_dir),
        client=client,
        notifier=notifier,
        note_path=config.note_path,
    )
    return App(config=config, settings=settings, client=client, synchronizer=synchronizer)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tailscale-note",
        description="Keep a Markdown note listing the devices of your tailnet up to date.",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to a YAML config file (overrides APP_CONFIG_FILE)",
    )
    parser.add_argument(
        "--vault",
        type=Path,
        default=None,
        help="Vault directory the note is written into (overrides config)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug-level logging. Overrides the configured log level.",
    )

    commands = parser.add_subparsers(dest="command", title="commands")
    commands.add_parser("sync", help="Update the Tailscale note once")
    run_parser = commands.add_parser("run", help="Update the note now and then on a fixed interval")
    run_parser.add_argument(
        "--interval",
        type=int,
        default=None,
        help="Seconds between updates (default: 300)",
    )
    token_parser = commands.add_parser("set-token", help="Store the Tailscale API token")
    token_parser.add_argument(
        "token",
        nargs="?",
        default=None,
        help="API token; prompted for when omitted",
    )
    commands.add_parser("show-settings", help="Print the effective configuration")
    return parser


def _apply_overrides(config: AppConfig, args: argparse.Namespace) -> AppConfig:
    if args.vault is not None:
        settings_file = config.settings_file
        if settings_file == default_settings_file(config.vault_dir):
            # Follow the vault unless a settings file was configured explicitly.
            settings_file = None
        config = replace(config, vault_dir=args.vault, settings_file=settings_file)
    if args.debug:
        config.log_level = "DEBUG"
    if getattr(args, "interval", None) is not None:
        if args.interval <= 0:
            raise ConfigError(f"--interval must be positive, got {args.interval}")
        config.sync_interval = args.interval
    return config


def build_scheduler(app: App) -> SyncScheduler:
    # Re-read settings each cycle so `set-token` from another process applies.
    return SyncScheduler(
        app.synchronizer,
        app.config.sync_interval,
        before_cycle=app.settings.refresh,
    )


def _run_forever(app: App) -> int:
    scheduler = build_scheduler(app)
    scheduler.start()
    try:
        while scheduler.is_running():
            scheduler.join(timeout=1.0)
    except KeyboardInterrupt:
        logger.info("Interrupted; stopping scheduler")
        scheduler.stop()
        scheduler.join()
    return 0


def _show_settings(app: App) -> int:
    cfg = app.config
    token_state = "set" if app.settings.settings.auth_token else "not set"
    print(f"vault_dir:      {cfg.vault_dir}")
    print(f"note_path:      {cfg.note_path}")
    print(f"settings_file:  {cfg.settings_file}")
    print(f"api_url:        {app.client.devices_url}")
    print(f"sync_interval:  {cfg.sync_interval}s")
    print(f"api token:      {token_state}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    # Configure logging early so load_config() errors are visible.
    configure_logging(os.getenv("LOG_LEVEL", "INFO"))

    parser = build_parser()
    args = parser.parse_args(argv)
    command = args.command or "sync"

    try:
        config = _apply_overrides(load_config(args.config), args)
    except ConfigError as exc:
        logger.error("%s", exc)
        return 1

    configure_logging(config.log_level, config.log_dir)
    app = build_app(config)

    if command == "set-token":
        token = args.token if args.token is not None else getpass.getpass("Tailscale API token: ")
        app.settings.update_token(token.strip())
        return 0

    if command == "show-settings":
        return _show_settings(app)

    if command == "run":
        return _run_forever(app)

    app.synchronizer.sync()
    return 1 if app.synchronizer.last_error else 0


if __name__ == "__main__":
    sys.exit(main())
