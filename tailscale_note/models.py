from dataclasses import dataclass


@dataclass(frozen=True)
class NodeSummary:
    """
    Normalized, per-cycle view of one Tailscale device.

    Rebuilt from the raw API record on every fetch and discarded after the
    note has been rendered.
    - online: device was seen within the last 5 minutes
    - address: first dotted (IPv4) address, or "N/A"
    """

    name: str
    online: bool
    address: str


@dataclass(frozen=True)
class VaultEntry:
    """An entry resolved inside the vault (note file or folder)."""

    path: str  # relative to the vault root, e.g. "Tailscale.md"
    is_file: bool
