"""Test the subscribe and unsubscribe use cases."""

import pytest

from conftest import FEED_URL, HUB_URL
from websub.discovery.service import DiscoveryService
from websub.subscriptions.errors import DiscoveryFailed, InvalidRequest, StateMismatch
from websub.subscriptions.hub import HubClient
from websub.subscriptions.models import SubscriptionMode, SubscriptionState
from websub.subscriptions.service import (
    CallbackURLBuilder,
    SubscribeWithDiscovery,
    SubscribeWithPreferredHub,
    SubscriptionService,
    Unsubscribe,
    intent_from_request,
)


@pytest.fixture
def service(database, http_client, settings):
    return SubscriptionService(
        database=database,
        discovery=DiscoveryService(http_client),
        hub_client=HubClient(http_client),
        callbacks=CallbackURLBuilder(settings),
    )


class TestIntentFromRequest:
    """Test mapping endpoint parameters onto intents."""

    def test_defaults_to_subscribe_with_discovery(self):
        intent = intent_from_request(topic=FEED_URL, lease_seconds=60)

        assert intent == SubscribeWithDiscovery(topic=FEED_URL, lease_seconds=60)

    def test_preferred_hub(self):
        intent = intent_from_request(topic=FEED_URL, hub=HUB_URL)

        assert intent == SubscribeWithPreferredHub(topic=FEED_URL, hub=HUB_URL)

    def test_unsubscribe(self):
        intent = intent_from_request(
            topic=FEED_URL, mode=SubscriptionMode.UNSUBSCRIBE, callback="http://testserver/callback/1"
        )

        assert intent == Unsubscribe(topic=FEED_URL, callback="http://testserver/callback/1")

    def test_unsubscribe_requires_callback(self):
        with pytest.raises(InvalidRequest, match="Callback URL is required"):
            intent_from_request(topic=FEED_URL, mode=SubscriptionMode.UNSUBSCRIBE)

    def test_topic_required(self):
        with pytest.raises(InvalidRequest):
            intent_from_request(topic=None)


class TestCallbackURLBuilder:
    """Test callback URL construction."""

    def test_new_callbacks_are_unique(self, settings):
        builder = CallbackURLBuilder(settings)

        first, second = builder.new_callback(), builder.new_callback()

        assert first.startswith("http://testserver/callback/")
        assert first != second

    def test_prefix_is_included(self, settings):
        builder = CallbackURLBuilder(settings.model_copy(update={"path_prefix": "/websub/"}))

        assert builder.new_callback().startswith("http://testserver/websub/callback/")
        assert builder.from_path("/websub/callback/1") == "http://testserver/websub/callback/1"


async def test_subscribe_discovers_hub(service, web):
    """Test that subscribing without a hub stores the discovered hub."""
    outcome = await service.subscribe(SubscribeWithDiscovery(topic=FEED_URL, lease_seconds=86400))

    assert outcome.mode is SubscriptionMode.SUBSCRIBE
    assert outcome.reply.accepted
    assert outcome.subscription.topic == FEED_URL
    assert outcome.subscription.hub == HUB_URL
    assert outcome.subscription.state is SubscriptionState.PENDING_SUBSCRIPTION
    assert outcome.subscription.lease_seconds == 86400
    assert outcome.subscription.callback.startswith("http://testserver/callback/")
    assert len(web.requests_to("POST", HUB_URL)) == 1


async def test_explicit_hub_skips_discovery(service, web):
    """Test that a caller supplied hub wins over the advertised one."""
    web.hub("https://my-hub.example.net/")

    outcome = await service.subscribe(
        SubscribeWithPreferredHub(topic=FEED_URL, hub="https://my-hub.example.net/")
    )

    assert outcome.subscription.hub == "https://my-hub.example.net/"
    assert web.requests_to("GET", FEED_URL) == []
    assert len(web.requests_to("POST", "https://my-hub.example.net/")) == 1


async def test_subscribe_discovery_failure_stores_nothing(service, database):
    """Test that a topic without a hub leaves the store untouched."""
    with pytest.raises(DiscoveryFailed):
        await service.subscribe(SubscribeWithDiscovery(topic="https://example.org/missing"))

    _, total = await database.list_subscriptions()
    assert total == 0


async def test_unsubscribe_unknown_callback_creates_row_via_discovery(service, web, database):
    """Test that unsubscribing an unknown callback discovers the hub and stores a pending row."""
    callback = "http://testserver/callback/legacy"

    outcome = await service.subscribe(Unsubscribe(topic=FEED_URL, callback=callback))

    assert outcome.mode is SubscriptionMode.UNSUBSCRIBE
    assert len(web.requests_to("GET", FEED_URL)) == 1
    stored = await database.first_subscription(callback=callback)
    assert stored.state is SubscriptionState.PENDING_UNSUBSCRIPTION
    assert stored.hub == HUB_URL


async def test_unsubscribe_existing_subscription(service, web, database):
    """Test that unsubscribing a confirmed subscription moves it to pending."""
    existing = await database.create_subscription(
        topic=FEED_URL,
        hub=HUB_URL,
        callback="http://testserver/callback/live",
        state=SubscriptionState.SUBSCRIBED,
    )

    outcome = await service.subscribe(Unsubscribe(topic=FEED_URL, callback=existing.callback))

    assert outcome.subscription.id == existing.id
    assert outcome.subscription.state is SubscriptionState.PENDING_UNSUBSCRIPTION
    assert web.requests_to("GET", FEED_URL) == []
    [sent] = web.requests_to("POST", HUB_URL)
    assert b"hub.mode=unsubscribe" in sent.content


async def test_unsubscribe_with_wrong_topic(service, database):
    """Test that an unsubscribe must name the stored topic."""
    existing = await database.create_subscription(
        topic=FEED_URL,
        hub=HUB_URL,
        callback="http://testserver/callback/live",
        state=SubscriptionState.SUBSCRIBED,
    )

    with pytest.raises(StateMismatch, match="Invalid topic"):
        await service.subscribe(Unsubscribe(topic="https://example.org/other", callback=existing.callback))

    stored = await database.first_subscription(callback=existing.callback)
    assert stored.state is SubscriptionState.SUBSCRIBED


async def test_unsubscribe_already_unsubscribed(service, database):
    """Test that an unsubscribed row stays terminal."""
    existing = await database.create_subscription(
        topic=FEED_URL,
        hub=HUB_URL,
        callback="http://testserver/callback/gone",
        state=SubscriptionState.UNSUBSCRIBED,
    )

    with pytest.raises(StateMismatch):
        await service.subscribe(Unsubscribe(topic=FEED_URL, callback=existing.callback))
