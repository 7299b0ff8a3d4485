"""Subscription state machine.

Two transition tables govern a subscription's life: one for requests the
subscriber sends to a hub, one for verifications the hub sends back.
"""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import structlog

from websub.subscriptions.errors import StateMismatch
from websub.subscriptions.models import Subscription, SubscriptionMode, SubscriptionState

logger = structlog.get_logger("websub")

# (current state, requested mode) -> state the row moves to.
# A new row always starts pending in the requested direction.
REQUEST_TRANSITIONS: dict[tuple[SubscriptionState | None, SubscriptionMode], SubscriptionState] = {
    (None, SubscriptionMode.SUBSCRIBE): SubscriptionState.PENDING_SUBSCRIPTION,
    (None, SubscriptionMode.UNSUBSCRIBE): SubscriptionState.PENDING_UNSUBSCRIPTION,
    (SubscriptionState.PENDING_SUBSCRIPTION, SubscriptionMode.UNSUBSCRIBE): SubscriptionState.PENDING_UNSUBSCRIPTION,
    (SubscriptionState.SUBSCRIBED, SubscriptionMode.UNSUBSCRIBE): SubscriptionState.PENDING_UNSUBSCRIPTION,
    (SubscriptionState.PENDING_UNSUBSCRIPTION, SubscriptionMode.UNSUBSCRIBE): SubscriptionState.PENDING_UNSUBSCRIPTION,
}

# (current state, hub.mode) -> state after a verification with a matching topic.
# Confirmed states accept a repeat of the verification that confirmed them.
VERIFICATION_TRANSITIONS: dict[tuple[SubscriptionState, SubscriptionMode], SubscriptionState] = {
    (SubscriptionState.PENDING_SUBSCRIPTION, SubscriptionMode.SUBSCRIBE): SubscriptionState.SUBSCRIBED,
    (SubscriptionState.SUBSCRIBED, SubscriptionMode.SUBSCRIBE): SubscriptionState.SUBSCRIBED,
    (SubscriptionState.PENDING_UNSUBSCRIPTION, SubscriptionMode.UNSUBSCRIBE): SubscriptionState.UNSUBSCRIBED,
    (SubscriptionState.UNSUBSCRIBED, SubscriptionMode.UNSUBSCRIBE): SubscriptionState.UNSUBSCRIBED,
}


@dataclass(frozen=True)
class VerificationAttempt:
    """What a hub presented on a verification GET."""

    mode: SubscriptionMode
    topic: str
    challenge: str
    lease_seconds: int | None = None


def initial_state(mode: SubscriptionMode) -> SubscriptionState:
    """State a brand-new row is created in for a request of ``mode``."""
    return REQUEST_TRANSITIONS[(None, mode)]


def apply_request(subscription: Subscription, mode: SubscriptionMode) -> Subscription:
    """Move an existing row for a new subscriber-side request.

    Raises:
        StateMismatch: the row cannot take a request of this mode
    """
    target = REQUEST_TRANSITIONS.get((subscription.state, mode))
    if target is None:
        raise StateMismatch(
            f"Cannot {mode.value} a subscription in state {subscription.state.value}",
            callback=subscription.callback,
            topic=subscription.topic,
            mode=mode.value,
        )
    subscription.state = target
    return subscription


def apply_verification(
    subscription: Subscription,
    attempt: VerificationAttempt,
    now: datetime | None = None,
) -> Subscription:
    """Apply a hub verification attempt to ``subscription`` in place.

    On success the state advances and the success timestamp is stamped. On
    failure only ``last_unsuccessful_verification_at`` changes and
    ``StateMismatch`` is raised; the caller still has to persist the row.
    """
    now = now or datetime.now(UTC)
    target = VERIFICATION_TRANSITIONS.get((subscription.state, attempt.mode))

    if target is None or attempt.topic != subscription.topic:
        subscription.last_unsuccessful_verification_at = now
        reason = "topic mismatch" if target is not None else "mode does not match state"
        logger.warning(
            "Verification rejected",
            callback=subscription.callback,
            topic=attempt.topic,
            stored_topic=subscription.topic,
            mode=attempt.mode.value,
            state=subscription.state.value,
            reason=reason
        )
        raise StateMismatch(
            f"Verification rejected: {reason}",
            callback=subscription.callback,
            topic=attempt.topic,
            mode=attempt.mode.value,
        )

    subscription.state = target
    subscription.last_successful_verification_at = now

    if attempt.mode is SubscriptionMode.SUBSCRIBE:
        lease_seconds = attempt.lease_seconds
        if lease_seconds is None:
            lease_seconds = subscription.lease_seconds
        if lease_seconds is not None:
            subscription.lease_seconds = lease_seconds
            subscription.expired_at = now + timedelta(seconds=lease_seconds)

    return subscription
