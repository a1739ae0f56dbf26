import json
import logging
import stat
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

from .errors import DocumentCreateError, DocumentReadError, DocumentWriteError
from .models import VaultEntry

logger = logging.getLogger(__name__)


class DocumentStore(Protocol):
    """Where the note lives. Paths are relative to the store root."""

    def get(self, path: str) -> Optional[VaultEntry]: ...

    def create(self, path: str, content: str) -> VaultEntry: ...

    def read(self, entry: VaultEntry) -> str: ...

    def modify(self, entry: VaultEntry, content: str) -> None: ...


class KeyValueStore(Protocol):
    """Opaque persistence for the user settings object."""

    def load(self) -> Optional[Dict[str, Any]]: ...

    def save(self, data: Dict[str, Any]) -> None: ...


class VaultDocumentStore:
    """
    DocumentStore backed by a directory of Markdown files (the vault).

    Content is read and written byte-for-byte (UTF-8, no newline
    translation) so the change check in the synchronizer compares exactly
    what is on disk.
    """

    def __init__(self, root: Path):
        self.root = Path(root)

    def _resolve(self, path: str) -> Path:
        return self.root / path

    def get(self, path: str) -> Optional[VaultEntry]:
        target = self._resolve(path)
        try:
            st = target.stat()
        except (FileNotFoundError, NotADirectoryError):
            return None
        except OSError as exc:
            raise DocumentReadError(f"Could not inspect {target}: {exc}") from exc
        return VaultEntry(path=path, is_file=stat.S_ISREG(st.st_mode))

    def create(self, path: str, content: str) -> VaultEntry:
        target = self._resolve(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            # "x" refuses to clobber a file created since get() was called.
            with open(target, "x", encoding="utf-8", newline="") as fh:
                fh.write(content)
        except OSError as exc:
            raise DocumentCreateError(f"Could not create {target}: {exc}") from exc
        logger.info("Created new file: %s", target)
        return VaultEntry(path=path, is_file=True)

    def read(self, entry: VaultEntry) -> str:
        target = self._resolve(entry.path)
        try:
            with open(target, "r", encoding="utf-8", newline="") as fh:
                return fh.read()
        except (OSError, UnicodeDecodeError) as exc:
            raise DocumentReadError(f"Could not read {target}: {exc}") from exc

    def modify(self, entry: VaultEntry, content: str) -> None:
        target = self._resolve(entry.path)
        try:
            with open(target, "w", encoding="utf-8", newline="") as fh:
                fh.write(content)
        except OSError as exc:
            raise DocumentWriteError(f"Could not write {target}: {exc}") from exc


class JsonKeyValueStore:
    """KeyValueStore persisting a single JSON object to a file."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> Optional[Dict[str, Any]]:
        """Return the stored mapping, or None when nothing usable was saved yet."""
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
        except FileNotFoundError:
            return None
        except json.JSONDecodeError as exc:
            logger.error("Failed to parse %s: %s", self.path, exc)
            return None
        except (OSError, UnicodeDecodeError) as exc:
            logger.error("Failed to read %s: %s", self.path, exc)
            return None

        if not isinstance(data, dict):
            logger.warning("Ignoring settings file %s: root is not an object", self.path)
            return None
        return data

    def save(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        logger.info("Saving settings to %s", self.path)
        with open(self.path, "w", encoding="utf-8") as fh:
            json.dump(data, fh, indent=2, sort_keys=True)
