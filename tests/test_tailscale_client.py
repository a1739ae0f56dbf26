"""Tests for the Tailscale device fetcher."""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest
import requests

from conftest import NOW, iso
from tailscale_note.errors import FetchError, HttpStatusError, ParseError, TransportError
from tailscale_note.models import NodeSummary
from tailscale_note.tailscale_client import (
    TailscaleClient,
    is_online,
    parse_timestamp,
    pick_address,
    summarize_device,
)


def _response(status_code=200, payload=None, json_error=None):
    resp = MagicMock()
    resp.status_code = status_code
    if json_error is not None:
        resp.json.side_effect = json_error
    else:
        resp.json.return_value = payload
    return resp


@pytest.fixture
def client():
    return TailscaleClient("tskey-api-abc", session=requests.Session())


class TestPickAddress:
    """Tests for choosing the displayed address."""

    def test_first_dotted_address_wins(self):
        assert pick_address(["fd7a:115c::1", "100.64.0.1", "100.64.0.2"]) == "100.64.0.1"

    def test_no_dotted_address(self):
        assert pick_address(["fd7a:115c::1"]) == "N/A"

    def test_empty_list(self):
        assert pick_address([]) == "N/A"


class TestOnline:
    """Tests for the 5 minute online window."""

    def test_seen_just_now(self):
        assert is_online(NOW, NOW) is True

    def test_seen_within_window(self):
        assert is_online(NOW - timedelta(minutes=4, seconds=59), NOW) is True

    def test_exactly_five_minutes_is_offline(self):
        assert is_online(NOW - timedelta(minutes=5), NOW) is False

    def test_seen_long_ago(self):
        assert is_online(NOW - timedelta(days=2), NOW) is False


class TestParseTimestamp:
    def test_zulu_suffix(self):
        assert parse_timestamp("2024-05-01T12:00:00Z") == NOW

    def test_offset(self):
        assert parse_timestamp("2024-05-01T14:00:00+02:00") == NOW

    def test_naive_is_utc(self):
        assert parse_timestamp("2024-05-01T12:00:00") == NOW

    def test_garbage_raises(self):
        with pytest.raises(ValueError):
            parse_timestamp("yesterday")


class TestSummarizeDevice:
    def test_example_device(self):
        device = {"name": "node-a", "addresses": ["100.64.0.1", "fd7a::1"], "lastSeen": iso(NOW)}

        assert summarize_device(device, NOW) == NodeSummary(name="node-a", online=True, address="100.64.0.1")

    def test_offline_ipv6_only(self):
        device = {
            "name": "node-b",
            "addresses": ["fd7a::2"],
            "lastSeen": iso(NOW - timedelta(hours=1)),
        }

        assert summarize_device(device, NOW) == NodeSummary(name="node-b", online=False, address="N/A")


class TestClientRequest:
    """Tests for the HTTP side of TailscaleClient."""

    def test_sends_bearer_token(self, client):
        with patch.object(client.session, "get", return_value=_response(payload={"devices": []})) as get:
            client.get_devices_raw()

        get.assert_called_once_with("https://api.tailscale.com/api/v2/tailnet/-/devices")
        assert client.session.headers["Authorization"] == "Bearer tskey-api-abc"
        assert client.session.headers["Content-Type"] == "application/json"

    def test_set_auth_token_replaces_header(self, client):
        client.set_auth_token("tskey-api-new")

        assert client.auth_token == "tskey-api-new"
        assert client.session.headers["Authorization"] == "Bearer tskey-api-new"

    def test_empty_token_is_sent(self):
        client = TailscaleClient("", session=requests.Session())

        assert client.session.headers["Authorization"] == "Bearer "

    def test_custom_base_url_and_tailnet(self):
        client = TailscaleClient("t", base_url="https://api.example.com/v2/", tailnet="example.com")

        assert client.devices_url == "https://api.example.com/v2/tailnet/example.com/devices"

    def test_transport_error(self, client):
        with patch.object(client.session, "get", side_effect=requests.ConnectionError("no route")):
            with pytest.raises(TransportError):
                client.get_devices_raw()

    def test_http_401(self, client):
        with patch.object(client.session, "get", return_value=_response(status_code=401)):
            with pytest.raises(HttpStatusError) as excinfo:
                client.get_devices_raw()

        assert excinfo.value.status_code == 401
        assert "401" in str(excinfo.value)

    def test_non_200_success_code_is_an_error(self, client):
        with patch.object(client.session, "get", return_value=_response(status_code=204)):
            with pytest.raises(HttpStatusError):
                client.get_devices_raw()

    def test_invalid_json(self, client):
        resp = _response(json_error=ValueError("Expecting value"))
        with patch.object(client.session, "get", return_value=resp):
            with pytest.raises(ParseError):
                client.get_devices_raw()


class TestGetNodes:
    """Tests for the full fetch + transform."""

    def test_preserves_fetch_order(self, client):
        payload = {
            "devices": [
                {"name": "zeta", "addresses": ["100.64.0.9"], "lastSeen": iso(NOW)},
                {"name": "alpha", "addresses": [], "lastSeen": iso(NOW - timedelta(minutes=10))},
            ]
        }
        with patch.object(client.session, "get", return_value=_response(payload=payload)):
            nodes = client.get_nodes(now=NOW)

        assert nodes == [
            NodeSummary(name="zeta", online=True, address="100.64.0.9"),
            NodeSummary(name="alpha", online=False, address="N/A"),
        ]

    def test_empty_device_list(self, client):
        with patch.object(client.session, "get", return_value=_response(payload={"devices": []})):
            assert client.get_nodes(now=NOW) == []

    def test_default_now_is_wall_clock(self, client):
        recent = datetime.now(timezone.utc) - timedelta(seconds=30)
        payload = {"devices": [{"name": "n", "addresses": ["1.2.3.4"], "lastSeen": iso(recent)}]}
        with patch.object(client.session, "get", return_value=_response(payload=payload)):
            nodes = client.get_nodes()

        assert nodes[0].online is True

    def test_missing_devices_field(self, client):
        with patch.object(client.session, "get", return_value=_response(payload={"nodes": []})):
            with pytest.raises(ParseError):
                client.get_nodes(now=NOW)

    def test_devices_not_a_list(self, client):
        with patch.object(client.session, "get", return_value=_response(payload={"devices": {"a": 1}})):
            with pytest.raises(ParseError):
                client.get_nodes(now=NOW)

    def test_malformed_record_discards_batch(self, client):
        payload = {
            "devices": [
                {"name": "ok", "addresses": ["100.64.0.1"], "lastSeen": iso(NOW)},
                {"name": "broken", "addresses": ["100.64.0.2"]},
            ]
        }
        with patch.object(client.session, "get", return_value=_response(payload=payload)):
            with pytest.raises(ParseError):
                client.get_nodes(now=NOW)

    def test_errors_share_a_base_class(self):
        for exc_type in (TransportError, HttpStatusError, ParseError):
            assert issubclass(exc_type, FetchError)
