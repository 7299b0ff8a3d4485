"""Database models for WebSub subscriptions."""

import enum
from datetime import UTC, datetime

from sqlalchemy import Column, DateTime, Enum, Integer, String
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.sql import func
from sqlalchemy.types import TypeDecorator

Base = declarative_base()


class UTCDateTime(TypeDecorator):
    """Timezone-aware timestamp that always comes back in UTC.

    SQLite drops the offset on the way in, so naive values read back are
    taken to be UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value


class SubscriptionState(str, enum.Enum):
    """Lifecycle states of a subscription."""

    PENDING_SUBSCRIPTION = "pending_subscription"
    SUBSCRIBED = "subscribed"
    PENDING_UNSUBSCRIPTION = "pending_unsubscription"
    UNSUBSCRIBED = "unsubscribed"


class SubscriptionMode(str, enum.Enum):
    """Value of ``hub.mode`` on hub requests and verifications."""

    SUBSCRIBE = "subscribe"
    UNSUBSCRIBE = "unsubscribe"


class Subscription(Base):
    """Database model for a subscription held with a hub."""

    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    topic = Column(String(2048), nullable=False, index=True)
    hub = Column(String(2048), nullable=False)
    callback = Column(String(2048), nullable=False, unique=True, index=True)
    state = Column(
        Enum(
            SubscriptionState,
            native_enum=False,
            length=32,
            values_callable=lambda states: [state.value for state in states],
        ),
        nullable=False,
    )
    lease_seconds = Column(Integer, nullable=True)
    expired_at = Column(UTCDateTime, nullable=True)
    last_successful_verification_at = Column(UTCDateTime, nullable=True)
    last_unsuccessful_verification_at = Column(UTCDateTime, nullable=True)
    last_received_content_at = Column(UTCDateTime, nullable=True)
    created_at = Column(UTCDateTime, server_default=func.now())
    updated_at = Column(UTCDateTime, onupdate=func.now())

    def is_expired(self, now: datetime | None = None) -> bool:
        """Whether the negotiated lease has run out. Advisory only."""
        if self.expired_at is None:
            return False
        return self.expired_at <= (now or datetime.now(UTC))

    def __repr__(self) -> str:
        return (
            f"<Subscription id={self.id} topic={self.topic!r} "
            f"callback={self.callback!r} state={self.state}>"
        )
