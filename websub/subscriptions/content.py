"""Authentication and delivery of hub content notifications."""

from collections.abc import Iterable
from datetime import UTC, datetime
from typing import NoReturn, Protocol
from urllib.parse import urlsplit

import structlog

from websub.discovery.links import extract_links
from websub.metrics import metrics
from websub.subscriptions.database import DatabaseService
from websub.subscriptions.errors import NotificationRejected
from websub.subscriptions.models import Subscription

logger = structlog.get_logger("websub")


class ContentConsumer(Protocol):
    """Receives notification bodies that passed authentication."""

    async def consume(
        self,
        subscription: Subscription,
        body: bytes,
        content_type: str | None,
    ) -> None:
        ...


class LoggingContentConsumer:
    """Default consumer: log what arrived and drop it."""

    async def consume(
        self,
        subscription: Subscription,
        body: bytes,
        content_type: str | None,
    ) -> None:
        logger.info(
            "Content received",
            subscription_id=subscription.id,
            topic=subscription.topic,
            content_type=content_type,
            size=len(body)
        )


def _host(url: str) -> str | None:
    return urlsplit(url).hostname


class ContentAuthenticator:
    """Match content notifications to their subscription and forward them."""

    def __init__(self, database: DatabaseService, consumer: ContentConsumer) -> None:
        self.database = database
        self.consumer = consumer

    async def authenticate(
        self,
        callback: str,
        link_headers: Iterable[str],
        body: bytes,
        content_type: str | None = None,
    ) -> Subscription:
        """
        Authenticate a notification and hand its body to the consumer.

        The presented topic must equal the stored topic exactly and the
        presented hub must live on the same host as the stored hub.

        Returns:
            Subscription: the matched subscription, with its receive time stamped

        Raises:
            NotificationRejected: nothing was delivered
            TransportFailure: the database failed
        """
        links = extract_links(link_headers=link_headers, body=body, content_type=content_type)
        if links is None:
            self._reject(callback, "no self and hub links presented")

        subscription = await self.database.first_subscription(callback=callback)
        if subscription is None:
            self._reject(callback, "unknown callback", topic=links.topic)

        if links.topic != subscription.topic:
            self._reject(
                callback, "topic mismatch", topic=links.topic, stored_topic=subscription.topic
            )
        presented_host = _host(links.hub)
        if presented_host is None or presented_host != _host(subscription.hub):
            self._reject(
                callback, "hub host mismatch", topic=links.topic, hub=links.hub, stored_hub=subscription.hub
            )

        subscription.last_received_content_at = datetime.now(UTC)
        subscription = await self.database.save_subscription(subscription)

        logger.info(
            "Notification authenticated",
            subscription_id=subscription.id,
            callback=callback,
            topic=subscription.topic
        )
        metrics.record_notification("accepted")
        await self.consumer.consume(subscription, body, content_type)
        return subscription

    def _reject(self, callback: str, reason: str, **context: str) -> NoReturn:
        logger.warning("Notification rejected", callback=callback, reason=reason, **context)
        metrics.record_notification("rejected")
        raise NotificationRejected(f"Notification rejected: {reason}", callback=callback, **context)
