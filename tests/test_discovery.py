"""Tests for /json/list target discovery."""

import httpx
import pytest

from lhremote.cdp.discovery import discover_targets, is_cdp_port
from lhremote.cdp.errors import CDPConnectionError, CDPDiscoveryError, CDPProtocolMismatchError
from lhremote.models.cdp import Endpoint

from conftest import unused_port

TARGETS = [
    {
        "id": "A1",
        "type": "page",
        "url": "https://www.linkedin.com/feed/",
        "title": "Feed",
        "webSocketDebuggerUrl": "ws://127.0.0.1:9222/devtools/page/A1",
    },
    {"id": "B2", "type": "page", "url": "file:///app/index.html", "title": "LinkedHelper"},
]


def transport_returning(response: httpx.Response) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/json/list"
        return response

    return httpx.MockTransport(handler)


async def test_parses_target_list():
    targets = await discover_targets(9222, transport=transport_returning(httpx.Response(200, json=TARGETS)))

    assert [t.id for t in targets] == ["A1", "B2"]
    assert targets[0].web_socket_debugger_url == "ws://127.0.0.1:9222/devtools/page/A1"
    assert targets[0].is_attachable


async def test_target_without_debugger_url_is_not_attachable():
    targets = await discover_targets(9222, transport=transport_returning(httpx.Response(200, json=TARGETS)))

    assert targets[1].web_socket_debugger_url is None
    assert not targets[1].is_attachable


async def test_http_error_status_is_discovery_error():
    with pytest.raises(CDPDiscoveryError) as exc:
        await discover_targets(9222, transport=transport_returning(httpx.Response(500)))
    assert not isinstance(exc.value, CDPProtocolMismatchError)
    assert exc.value.url == "http://127.0.0.1:9222/json/list"


async def test_non_json_body_is_protocol_mismatch():
    with pytest.raises(CDPProtocolMismatchError):
        await discover_targets(9222, transport=transport_returning(httpx.Response(200, text="<html>")))


async def test_non_array_body_is_protocol_mismatch():
    with pytest.raises(CDPProtocolMismatchError):
        await discover_targets(9222, transport=transport_returning(httpx.Response(200, json={"Browser": "x"})))


async def test_malformed_entry_is_protocol_mismatch():
    with pytest.raises(CDPProtocolMismatchError):
        await discover_targets(9222, transport=transport_returning(httpx.Response(200, json=[{"url": "x"}])))


async def test_transport_failure_is_discovery_error():
    def refuse(request):
        raise httpx.ConnectError("Connection refused", request=request)

    with pytest.raises(CDPDiscoveryError) as exc:
        await discover_targets(9222, transport=httpx.MockTransport(refuse))
    # Callers that only care about connectivity can catch the parent class
    assert isinstance(exc.value, CDPConnectionError)


async def test_is_cdp_port_true_for_cdp_endpoint(cdp_server):
    assert await is_cdp_port(cdp_server.port)


async def test_is_cdp_port_false_when_nothing_listens():
    assert not await is_cdp_port(unused_port())


def test_ipv6_endpoint_url_is_bracketed():
    assert Endpoint(host="::1", port=9222).http_url == "http://[::1]:9222"
    assert Endpoint(host="[::1]", port=9222).http_url == "http://[::1]:9222"
    assert Endpoint(port=9222).http_url == "http://127.0.0.1:9222"


async def test_ipv6_loopback_host():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.host == "::1"
        assert request.url.port == 9222
        return httpx.Response(200, json=TARGETS)

    targets = await discover_targets(9222, "::1", transport=httpx.MockTransport(handler))
    assert len(targets) == 2


async def test_nothing_listening_on_ipv6_loopback():
    port = unused_port()
    with pytest.raises(CDPDiscoveryError):
        await discover_targets(port, "::1", timeout=1)
    assert not await is_cdp_port(port, "::1")
