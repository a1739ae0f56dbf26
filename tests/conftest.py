"""Shared fixtures for tailscale_note tests."""

from datetime import datetime, timezone
from typing import List, Optional, Tuple

import pytest

from tailscale_note.models import NodeSummary
from tailscale_note.storage import VaultDocumentStore

NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


def iso(dt: datetime) -> str:
    return dt.strftime("%Y-%m-%dT%H:%M:%SZ")


class RecordingNotifier:
    def __init__(self):
        self.notices: List[Tuple[str, bool]] = []

    def notify(self, message: str, *, error: bool = False) -> None:
        self.notices.append((message, error))


class FakeClient:
    """Stands in for TailscaleClient.get_nodes()."""

    def __init__(self, nodes: Optional[List[NodeSummary]] = None, error: Optional[Exception] = None):
        self.nodes = nodes or []
        self.error = error
        self.calls = 0

    def get_nodes(self, now=None):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.nodes)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def vault(tmp_path):
    root = tmp_path / "vault"
    root.mkdir()
    return root


@pytest.fixture
def store(vault):
    return VaultDocumentStore(vault)
