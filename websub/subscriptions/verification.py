"""Hub verification handshake."""

from dataclasses import dataclass

import structlog
from fastapi import status

from websub.metrics import metrics
from websub.subscriptions.database import DatabaseService
from websub.subscriptions.errors import StateMismatch, SubscriptionNotFound
from websub.subscriptions.models import Subscription, SubscriptionMode
from websub.subscriptions.state import VerificationAttempt, apply_verification

logger = structlog.get_logger("websub")


@dataclass(frozen=True)
class VerificationResult:
    """Status and body to answer a verification GET with."""

    status_code: int
    body: str = ""


class VerificationHandler:
    """Resolve pending subscriptions from hub verification requests."""

    def __init__(self, database: DatabaseService) -> None:
        self.database = database

    async def verify(
        self,
        callback: str,
        mode: SubscriptionMode,
        topic: str,
        challenge: str,
        lease_seconds: int | None = None,
    ) -> VerificationResult:
        """
        Handle a hub's verification of intent.

        The challenge is echoed back untouched only when the attempt advances
        (or repeats) a transition; every other outcome answers 404 with an
        empty body.

        Raises:
            TransportFailure: the database failed
        """
        log = logger.bind(callback=callback, topic=topic, mode=mode.value)

        try:
            subscription = await self._find(callback)
        except SubscriptionNotFound:
            log.warning("Verification for unknown callback")
            metrics.record_verification(mode.value, "not_found")
            return VerificationResult(status_code=status.HTTP_404_NOT_FOUND)

        attempt = VerificationAttempt(
            mode=mode,
            topic=topic,
            challenge=challenge,
            lease_seconds=lease_seconds,
        )
        try:
            apply_verification(subscription, attempt)
        except StateMismatch:
            await self.database.save_subscription(subscription)
            metrics.record_verification(mode.value, "rejected")
            return VerificationResult(status_code=status.HTTP_404_NOT_FOUND)

        subscription = await self.database.save_subscription(subscription)
        log.info(
            "Verification accepted",
            subscription_id=subscription.id,
            state=subscription.state.value,
            lease_seconds=subscription.lease_seconds,
            expired_at=subscription.expired_at.isoformat() if subscription.expired_at else None
        )
        metrics.record_verification(mode.value, "accepted")
        return VerificationResult(status_code=status.HTTP_200_OK, body=challenge)

    async def _find(self, callback: str) -> Subscription:
        subscription = await self.database.first_subscription(callback=callback)
        if subscription is None:
            raise SubscriptionNotFound("No subscription for callback", callback=callback)
        return subscription
