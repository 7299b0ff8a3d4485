"""Subscription requests sent to a hub."""

from dataclasses import dataclass, field

import httpx
import structlog

from websub.metrics import metrics
from websub.subscriptions.errors import TransportFailure
from websub.subscriptions.models import Subscription, SubscriptionMode

logger = structlog.get_logger("websub")

# Hubs may always fall back to asynchronous verification
VERIFY_HINT = "sync"


@dataclass(frozen=True)
class HubRequest:
    """A form-encoded request addressed to a hub."""

    hub: str
    form: dict[str, str] = field(default_factory=dict)

    @property
    def mode(self) -> str:
        return self.form["hub.mode"]


@dataclass(frozen=True)
class HubReply:
    """The hub's answer to a subscription request."""

    status_code: int
    body: bytes = b""
    content_type: str | None = None

    @property
    def accepted(self) -> bool:
        return self.status_code == 202


def build_hub_request(subscription: Subscription, mode: SubscriptionMode) -> HubRequest:
    """Compose the hub request for ``subscription`` in ``mode``."""
    form = {
        "hub.callback": subscription.callback,
        "hub.topic": subscription.topic,
        "hub.verify": VERIFY_HINT,
        "hub.mode": mode.value,
    }
    if subscription.lease_seconds is not None:
        form["hub.lease_seconds"] = str(subscription.lease_seconds)
    return HubRequest(hub=subscription.hub, form=form)


class HubClient:
    """Send subscription requests to hubs."""

    def __init__(self, http_client: httpx.AsyncClient) -> None:
        self.http_client = http_client

    async def send(self, request: HubRequest) -> HubReply:
        """
        POST ``request`` to its hub.

        Returns:
            HubReply: the hub's status, body and content type, verbatim

        Raises:
            TransportFailure: the hub could not be reached
        """
        logger.info(
            "Sending hub request",
            hub=request.hub,
            mode=request.mode,
            topic=request.form["hub.topic"],
            callback=request.form["hub.callback"]
        )
        try:
            response = await self.http_client.post(request.hub, data=request.form)
        except httpx.HTTPError as e:
            logger.error(
                "Hub request failed",
                hub=request.hub,
                mode=request.mode,
                callback=request.form["hub.callback"],
                error=str(e)
            )
            metrics.record_hub_request(request.mode, "transport_error")
            raise TransportFailure(f"Failed to reach hub: {e}", hub=request.hub) from e

        reply = HubReply(
            status_code=response.status_code,
            body=response.content,
            content_type=response.headers.get("content-type"),
        )
        if reply.accepted:
            logger.info("Hub accepted request", hub=request.hub, status_code=reply.status_code)
            metrics.record_hub_request(request.mode, "accepted")
        else:
            logger.warning(
                "Hub rejected request",
                hub=request.hub,
                mode=request.mode,
                callback=request.form["hub.callback"],
                status_code=reply.status_code,
                body=response.text[:500]
            )
            metrics.record_hub_request(request.mode, "rejected")
        return reply
