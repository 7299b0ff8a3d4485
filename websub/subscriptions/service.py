"""Subscribe and unsubscribe use cases."""

import uuid
from dataclasses import dataclass

import structlog

from websub.discovery.service import DiscoveryService
from websub.subscriptions.config import SubscriberSettings
from websub.subscriptions.database import DatabaseService
from websub.subscriptions.errors import InvalidRequest, StateMismatch
from websub.subscriptions.hub import HubClient, HubReply, build_hub_request
from websub.subscriptions.models import Subscription, SubscriptionMode
from websub.subscriptions.state import apply_request, initial_state

logger = structlog.get_logger("websub")


@dataclass(frozen=True)
class SubscribeWithDiscovery:
    """Subscribe to whatever hub the topic advertises."""

    topic: str
    lease_seconds: int | None = None


@dataclass(frozen=True)
class SubscribeWithPreferredHub:
    """Subscribe through a hub the caller chose; no discovery."""

    topic: str
    hub: str
    lease_seconds: int | None = None


@dataclass(frozen=True)
class Unsubscribe:
    """Unsubscribe the subscription living at ``callback``."""

    topic: str
    callback: str
    hub: str | None = None


SubscriptionIntent = SubscribeWithDiscovery | SubscribeWithPreferredHub | Unsubscribe


def intent_from_request(
    topic: str | None,
    mode: SubscriptionMode | None = None,
    hub: str | None = None,
    callback: str | None = None,
    lease_seconds: int | None = None,
) -> SubscriptionIntent:
    """Turn subscribe endpoint parameters into an intent.

    Raises:
        InvalidRequest: the topic is missing, or an unsubscribe has no callback
    """
    if not topic:
        raise InvalidRequest("Topic is required")

    mode = mode or SubscriptionMode.SUBSCRIBE
    if mode is SubscriptionMode.UNSUBSCRIBE:
        if not callback:
            raise InvalidRequest("Callback URL is required when unsubscribing topic", topic=topic)
        return Unsubscribe(topic=topic, callback=callback, hub=hub)
    if hub:
        return SubscribeWithPreferredHub(topic=topic, hub=hub, lease_seconds=lease_seconds)
    return SubscribeWithDiscovery(topic=topic, lease_seconds=lease_seconds)


class CallbackURLBuilder:
    """Build and recognise this subscriber's callback URLs."""

    def __init__(self, settings: SubscriberSettings) -> None:
        self.base = settings.callback_base()
        self.host = settings.host.rstrip("/")

    def new_callback(self) -> str:
        """A fresh, unguessable callback URL."""
        return f"{self.base}/{uuid.uuid4()}"

    def from_path(self, path: str) -> str:
        """The callback URL an inbound request on ``path`` was addressed to."""
        return f"{self.host}{path}"


@dataclass(frozen=True)
class SubscriptionOutcome:
    """Stored subscription plus the hub's answer to our request."""

    mode: SubscriptionMode
    subscription: Subscription
    reply: HubReply


class SubscriptionService:
    """Drive subscribe/unsubscribe intents through storage and the hub."""

    def __init__(
        self,
        database: DatabaseService,
        discovery: DiscoveryService,
        hub_client: HubClient,
        callbacks: CallbackURLBuilder,
    ) -> None:
        self.database = database
        self.discovery = discovery
        self.hub_client = hub_client
        self.callbacks = callbacks
        self._handlers = {
            SubscribeWithDiscovery: self._subscribe_with_discovery,
            SubscribeWithPreferredHub: self._subscribe_with_preferred_hub,
            Unsubscribe: self._unsubscribe,
        }

    async def subscribe(self, intent: SubscriptionIntent) -> SubscriptionOutcome:
        """
        Store the intent and send the matching request to the hub.

        Raises:
            DiscoveryFailed: the topic advertises no hub
            StateMismatch: the existing row cannot be unsubscribed
            TransportFailure: the topic, hub or database is unreachable
        """
        mode, subscription = await self.prepare(intent)
        reply = await self.hub_client.send(build_hub_request(subscription, mode))
        return SubscriptionOutcome(mode=mode, subscription=subscription, reply=reply)

    async def prepare(self, intent: SubscriptionIntent) -> tuple[SubscriptionMode, Subscription]:
        """Create or update the stored subscription for ``intent``."""
        handler = self._handlers[type(intent)]
        return await handler(intent)

    async def _subscribe_with_discovery(
        self, intent: SubscribeWithDiscovery
    ) -> tuple[SubscriptionMode, Subscription]:
        links = await self.discovery.discover(intent.topic)
        logger.info("Preferred hub advertised by the topic found", topic=links.topic, hub=links.hub)
        return await self._create(SubscriptionMode.SUBSCRIBE, links.topic, links.hub, intent.lease_seconds)

    async def _subscribe_with_preferred_hub(
        self, intent: SubscribeWithPreferredHub
    ) -> tuple[SubscriptionMode, Subscription]:
        logger.info("Preferred hub requested by the user found", topic=intent.topic, hub=intent.hub)
        return await self._create(SubscriptionMode.SUBSCRIBE, intent.topic, intent.hub, intent.lease_seconds)

    async def _unsubscribe(self, intent: Unsubscribe) -> tuple[SubscriptionMode, Subscription]:
        mode = SubscriptionMode.UNSUBSCRIBE
        existing = await self.database.first_subscription(callback=intent.callback)

        if existing is None:
            if intent.hub:
                topic, hub = intent.topic, intent.hub
            else:
                links = await self.discovery.discover(intent.topic)
                topic, hub = links.topic, links.hub
            return await self._create(mode, topic, hub, callback=intent.callback)

        if existing.topic != intent.topic:
            logger.error(
                "Received unsubscribe request, with error: Invalid topic",
                callback=intent.callback,
                topic=intent.topic,
                stored_topic=existing.topic
            )
            raise StateMismatch("Invalid topic", callback=intent.callback, topic=intent.topic)

        apply_request(existing, mode)
        return mode, await self.database.save_subscription(existing)

    async def _create(
        self,
        mode: SubscriptionMode,
        topic: str,
        hub: str,
        lease_seconds: int | None = None,
        callback: str | None = None,
    ) -> tuple[SubscriptionMode, Subscription]:
        subscription = await self.database.create_subscription(
            topic=topic,
            hub=hub,
            callback=callback or self.callbacks.new_callback(),
            state=initial_state(mode),
            lease_seconds=lease_seconds,
        )
        return mode, subscription
