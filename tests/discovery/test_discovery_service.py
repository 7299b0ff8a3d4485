"""Test hub discovery over HTTP."""

import httpx
import pytest

from conftest import FEED_URL, HUB_URL
from websub.discovery.links import WebSubLinks
from websub.discovery.service import DiscoveryService
from websub.subscriptions.errors import DiscoveryFailed, TransportFailure


async def test_discover_from_html(web, http_client):
    """Test discovery of the links advertised in an HTML head."""
    service = DiscoveryService(http_client)

    links = await service.discover(FEED_URL)

    assert links == WebSubLinks(topic=FEED_URL, hub=HUB_URL)
    assert len(web.requests_to("GET", FEED_URL)) == 1


async def test_discover_from_link_headers(web, http_client):
    """Test that Link headers are used before the body."""
    web.page(
        "https://example.org/page",
        "<html><head></head><body>no links here</body></html>",
        headers={"link": '</canonical>; rel="self", <https://hub.example.com/>; rel="hub"'},
    )
    service = DiscoveryService(http_client)

    links = await service.discover("https://example.org/page")

    assert links == WebSubLinks(topic="https://example.org/canonical", hub=HUB_URL)


async def test_discover_follows_redirects(web, http_client):
    """Test that redirects are followed to the real resource."""
    web.on(
        "GET",
        "https://example.org/old",
        lambda request: httpx.Response(301, headers={"location": FEED_URL}),
    )
    service = DiscoveryService(http_client)

    links = await service.discover("https://example.org/old")

    assert links.hub == HUB_URL


async def test_discover_fails_without_links(web, http_client):
    """Test that a resource without a hub fails discovery."""
    web.page("https://example.org/plain", "<html><head></head><body></body></html>")
    service = DiscoveryService(http_client)

    with pytest.raises(DiscoveryFailed):
        await service.discover("https://example.org/plain")


async def test_discover_fails_on_error_status(http_client):
    """Test that a missing topic fails discovery."""
    service = DiscoveryService(http_client)

    with pytest.raises(DiscoveryFailed, match="status 404"):
        await service.discover("https://example.org/missing")


async def test_discover_transport_failure(web, http_client):
    """Test that connection errors surface as transport failures."""
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    web.on("GET", "https://down.example.org/", refuse)
    service = DiscoveryService(http_client)

    with pytest.raises(TransportFailure):
        await service.discover("https://down.example.org/")
