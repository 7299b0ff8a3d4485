"""Hub discovery over HTTP."""

import httpx
import structlog

from websub.discovery.links import WebSubLinks, extract_links
from websub.metrics import metrics
from websub.subscriptions.errors import DiscoveryFailed, TransportFailure

logger = structlog.get_logger("websub")


def links_from_response(response: httpx.Response) -> WebSubLinks | None:
    """Extract WebSub links from a fetched topic resource."""
    return extract_links(
        link_headers=response.headers.get_list("link"),
        body=response.content,
        content_type=response.headers.get("content-type"),
        base_url=str(response.url),
    )


class DiscoveryService:
    """Fetch a topic resource and find the hub it advertises."""

    def __init__(self, http_client: httpx.AsyncClient) -> None:
        self.http_client = http_client

    async def discover(self, topic: str) -> WebSubLinks:
        """
        Discover the canonical topic URL and hub of a resource.

        Args:
            topic: URL of the resource the user wants to follow

        Returns:
            WebSubLinks: the advertised ``self`` and ``hub`` URLs

        Raises:
            DiscoveryFailed: the resource is unavailable or has no link pair
            TransportFailure: the resource could not be fetched at all
        """
        try:
            response = await self.http_client.get(topic, follow_redirects=True)
        except httpx.HTTPError as e:
            logger.error("Failed to fetch topic for discovery", topic=topic, error=str(e))
            metrics.record_discovery("transport_error")
            raise TransportFailure(f"Failed to fetch topic: {e}", topic=topic) from e

        if not response.is_success:
            logger.warning(
                "Topic fetch returned an error status",
                topic=topic,
                status_code=response.status_code
            )
            metrics.record_discovery("failed")
            raise DiscoveryFailed(
                f"Topic responded with status {response.status_code}", topic=topic
            )

        links = links_from_response(response)
        if links is None:
            logger.warning("No WebSub links advertised by topic", topic=topic)
            metrics.record_discovery("failed")
            raise DiscoveryFailed("No self and hub links found for topic", topic=topic)

        logger.info("Hub discovered", topic=topic, preferred_topic=links.topic, hub=links.hub)
        metrics.record_discovery("found")
        return links
