import logging
from typing import Iterable, Optional

from .config import DEFAULT_NOTE_PATH
from .errors import DocumentCreateError, DocumentError, DocumentTypeError, FetchError
from .models import NodeSummary, VaultEntry
from .notifier import Notifier
from .storage import DocumentStore
from .tailscale_client import TailscaleClient

logger = logging.getLogger(__name__)

NOTE_HEADER = "# Tailscale Nodes\n\n"
TABLE_HEADER = "| Node Name | Tailscale UP | Tailscale IP |\n"
TABLE_SEPARATOR = "|-----------|--------------|---------------|\n"

UPDATED = "updated"
NOOP = "noop"


def render_row(node: NodeSummary) -> str:
    return f"| {node.name} | {'Yes' if node.online else 'No'} | {node.address} |\n"


def render_note(nodes: Iterable[NodeSummary]) -> str:
    """Render the note: title, blank line, table header, separator, one row per node.

    Rows keep the order they were fetched in.
    """
    return NOTE_HEADER + TABLE_HEADER + TABLE_SEPARATOR + "".join(render_row(n) for n in nodes)


class NoteSynchronizer:
    """
    One sync cycle:
    - Resolve the note in the store, creating it with a header if absent.
    - Fetch devices from Tailscale and render the table.
    - Replace the note only if the rendered text differs from what is stored.

    Every failure ends the cycle with an error notice; sync() itself never
    raises for fetch or document errors. The note is only touched after a
    complete fetch and render.
    """

    def __init__(
        self,
        store: DocumentStore,
        client: TailscaleClient,
        notifier: Notifier,
        note_path: str = DEFAULT_NOTE_PATH,
    ):
        self.store = store
        self.client = client
        self.notifier = notifier
        self.note_path = note_path
        self.last_error: Optional[Exception] = None

    def _notify(self, message: str, *, error: bool = False) -> None:
        try:
            self.notifier.notify(message, error=error)
        except Exception:  # noqa: BLE001
            logger.exception("Failed to deliver notice: %s", message)

    def _resolve_note(self) -> VaultEntry:
        entry = self.store.get(self.note_path)
        if entry is None:
            entry = self.store.create(self.note_path, NOTE_HEADER)
        if not entry.is_file:
            raise DocumentTypeError(f"{self.note_path} is not a file")
        return entry

    def sync(self) -> str:
        """Run one cycle. Returns UPDATED if the note was rewritten, else NOOP."""
        self.last_error = None
        try:
            entry = self._resolve_note()
        except DocumentCreateError as exc:
            self.last_error = exc
            logger.error("Error creating file %s: %s", self.note_path, exc)
            self._notify("Error creating Tailscale note. Check logs for details.", error=True)
            return NOOP
        except DocumentTypeError as exc:
            self.last_error = exc
            logger.error("%s", exc)
            self._notify(f"Error: {self.note_path} is not a valid file.", error=True)
            return NOOP
        except DocumentError as exc:
            self.last_error = exc
            logger.error("Error resolving %s: %s", self.note_path, exc)
            self._notify("Error updating Tailscale note. Check logs for details.", error=True)
            return NOOP

        try:
            nodes = self.client.get_nodes()
            content = render_note(nodes)
            logger.debug("Content to be written:\n%s", content)

            current = self.store.read(entry)
            if current == content:
                logger.info("No changes needed, %s is up to date", self.note_path)
                return NOOP

            self.store.modify(entry, content)
        except (FetchError, DocumentError) as exc:
            self.last_error = exc
            logger.error("Error updating Tailscale note: %s", exc)
            self._notify("Error updating Tailscale note. Check logs for details.", error=True)
            return NOOP

        logger.info("Tailscale note updated successfully (%s nodes)", len(nodes))
        self._notify("Tailscale note updated")
        return UPDATED
