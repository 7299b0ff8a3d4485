"""Database service for subscription storage."""

import structlog
from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from websub.subscriptions.errors import TransportFailure
from websub.subscriptions.models import Base, Subscription, SubscriptionState

logger = structlog.get_logger("websub")


class DatabaseService:
    """Create, find and save subscription records.

    Every operation opens its own short-lived session. Nothing is locked
    between a read and the following save, so two writers racing on the same
    callback end with the later write winning.
    """

    def __init__(self, dsn: str) -> None:
        if dsn.startswith("sqlite"):
            # In-memory SQLite must share one connection across sessions
            self.engine = create_engine(
                dsn,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            self.engine = create_engine(
                dsn,
                pool_pre_ping=True,  # Validate connections before use
                pool_recycle=3600,   # Recreate connections after 1 hour
                connect_args={
                    "connect_timeout": 10,
                    "application_name": "websub_subscriber",
                }
            )
        self.SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
            bind=self.engine,
        )

    def create_tables(self) -> None:
        """Create the subscriptions table if it doesn't exist."""
        Base.metadata.create_all(bind=self.engine)
        logger.info("Subscriptions table ensured")

    def get_session(self) -> Session:
        """Get a database session."""
        return self.SessionLocal()

    async def create_subscription(
        self,
        topic: str,
        hub: str,
        callback: str,
        state: SubscriptionState,
        lease_seconds: int | None = None,
    ) -> Subscription:
        """Create a new subscription."""
        try:
            with self.get_session() as session:
                subscription = Subscription(
                    topic=topic,
                    hub=hub,
                    callback=callback,
                    state=state,
                    lease_seconds=lease_seconds,
                )
                session.add(subscription)
                session.commit()
                session.refresh(subscription)
        except SQLAlchemyError as e:
            logger.error(
                "Failed to create subscription",
                topic=topic,
                callback=callback,
                error=str(e),
                exc_info=True
            )
            raise TransportFailure("Failed to create subscription", callback=callback) from e

        logger.info(
            "Subscription created",
            subscription_id=subscription.id,
            topic=topic,
            hub=hub,
            callback=callback,
            state=state.value
        )
        return subscription

    async def first_subscription(
        self,
        topic: str | None = None,
        hub: str | None = None,
        callback: str | None = None,
    ) -> Subscription | None:
        """Find the first subscription matching every given filter."""
        try:
            with self.get_session() as session:
                query = session.query(Subscription)
                if topic is not None:
                    query = query.filter(Subscription.topic == topic)
                if hub is not None:
                    query = query.filter(Subscription.hub == hub)
                if callback is not None:
                    query = query.filter(Subscription.callback == callback)
                return query.first()
        except SQLAlchemyError as e:
            logger.error(
                "Failed to look up subscription",
                topic=topic,
                callback=callback,
                error=str(e),
                exc_info=True
            )
            raise TransportFailure("Failed to look up subscription", callback=callback) from e

    async def get_subscription(self, subscription_id: int) -> Subscription | None:
        """Get a subscription by ID."""
        try:
            with self.get_session() as session:
                return session.get(Subscription, subscription_id)
        except SQLAlchemyError as e:
            raise TransportFailure("Failed to load subscription") from e

    async def list_subscriptions(
        self,
        state: SubscriptionState | None = None,
        skip: int = 0,
        limit: int = 100
    ) -> tuple[list[Subscription], int]:
        """List subscriptions, optionally by state, with pagination."""
        try:
            with self.get_session() as session:
                query = session.query(Subscription)
                if state is not None:
                    query = query.filter(Subscription.state == state)

                total = query.count()
                subscriptions = query.order_by(Subscription.id).offset(skip).limit(limit).all()
                return subscriptions, total
        except SQLAlchemyError as e:
            raise TransportFailure("Failed to list subscriptions") from e

    async def save_subscription(self, subscription: Subscription) -> Subscription:
        """Write a (possibly detached) subscription back to the database."""
        try:
            with self.get_session() as session:
                merged = session.merge(subscription)
                session.commit()
                session.refresh(merged)
        except SQLAlchemyError as e:
            logger.error(
                "Failed to save subscription",
                subscription_id=subscription.id,
                callback=subscription.callback,
                error=str(e),
                exc_info=True
            )
            raise TransportFailure("Failed to save subscription", callback=subscription.callback) from e

        logger.debug(
            "Subscription saved",
            subscription_id=merged.id,
            state=merged.state.value
        )
        return merged
