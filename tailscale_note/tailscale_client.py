import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional

import requests

from .errors import HttpStatusError, ParseError, TransportError
from .models import NodeSummary

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.tailscale.com/api/v2"
ONLINE_WINDOW = timedelta(minutes=5)
NO_ADDRESS = "N/A"


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp such as '2024-05-01T10:00:00Z'.

    Naive timestamps are taken to be UTC.
    """
    raw = value.strip()
    if raw.endswith(("Z", "z")):
        raw = raw[:-1] + "+00:00"
    parsed = datetime.fromisoformat(raw)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def is_online(last_seen: datetime, now: datetime) -> bool:
    """A device is online when it was seen strictly within the last 5 minutes."""
    return last_seen > now - ONLINE_WINDOW


def pick_address(addresses: Iterable[str]) -> str:
    """Return the first dotted (IPv4) address, or 'N/A' if there is none."""
    for addr in addresses:
        if "." in addr:
            return addr
    return NO_ADDRESS


def summarize_device(device: Dict[str, Any], now: datetime) -> NodeSummary:
    """Map one raw API device record to a NodeSummary."""
    return NodeSummary(
        name=device["name"],
        online=is_online(parse_timestamp(device["lastSeen"]), now),
        address=pick_address(device["addresses"]),
    )


class TailscaleClient:
    """Minimal Tailscale API client for retrieving the device inventory."""

    def __init__(
        self,
        auth_token: str,
        base_url: str = DEFAULT_BASE_URL,
        tailnet: str = "-",
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.tailnet = tailnet
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})
        self.set_auth_token(auth_token)

    def set_auth_token(self, auth_token: str) -> None:
        """Swap the bearer token used by subsequent requests."""
        # Empty tokens are sent as-is; the API rejects them with 401.
        self.auth_token = auth_token
        self.session.headers.update({"Authorization": f"Bearer {auth_token}"})

    @property
    def devices_url(self) -> str:
        return f"{self.base_url}/tailnet/{self.tailnet}/devices"

    def get_devices_raw(self) -> Dict[str, Any]:
        """Return the raw JSON body of the device listing."""
        logger.info("Fetching devices from Tailscale API")
        try:
            resp = self.session.get(self.devices_url)
        except requests.RequestException as exc:
            raise TransportError(f"Request to {self.devices_url} failed: {exc}") from exc

        if resp.status_code != 200:
            raise HttpStatusError(resp.status_code)

        try:
            data = resp.json()
        except ValueError as exc:
            raise ParseError(f"Tailscale API returned invalid JSON: {exc}") from exc

        logger.debug("Raw API response: %s", data)
        return data

    def get_nodes(self, now: Optional[datetime] = None) -> List[NodeSummary]:
        """Fetch the device list and convert it into NodeSummary objects.

        Any malformed record discards the whole batch.
        """
        data = self.get_devices_raw()
        now = now or datetime.now(timezone.utc)

        try:
            devices = data["devices"]
            if not isinstance(devices, list):
                raise TypeError(f"'devices' is {type(devices).__name__}, expected list")
            nodes = [summarize_device(d, now) for d in devices]
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise ParseError(f"Unexpected device payload: {exc!r}") from exc

        for node in nodes:
            logger.debug("Device %s: online=%s address=%s", node.name, node.online, node.address)
        logger.info("Fetched %s nodes from Tailscale API", len(nodes))
        return nodes
