"""RabbitMQ publisher for session lifecycle events.

Chat and notification services subscribe to the ``session-events`` topic
exchange. Events are published only after the transition has committed; a
broker outage is logged and never rolls back the transition.
"""

from datetime import datetime
from typing import ClassVar, Optional, Union

import aio_pika
from aio_pika import DeliveryMode, ExchangeType, Message
from pydantic import BaseModel, Field

from yari_api.config import get_settings
from yari_api.utils.logging import get_logger

logger = get_logger("session_events")


class SessionConfirmedEvent(BaseModel):
    """Emitted once an expert confirms a session and its meeting link exists."""

    routing_key: ClassVar[str] = "session.confirmed"

    session_id: str = Field(..., description="Session ID")
    expert_id: str = Field(..., description="Expert ID")
    client_id: str = Field(..., description="Client ID")
    meeting_link: str = Field(..., description="Meeting URL")
    scheduled_at: datetime = Field(..., description="Session start (UTC)")


class SessionCancelledEvent(BaseModel):
    """Emitted when a session is declined or cancelled."""

    routing_key: ClassVar[str] = "session.cancelled"

    session_id: str = Field(..., description="Session ID")
    reason: Optional[str] = Field(None, description="Cancellation reason")


SessionEvent = Union[SessionConfirmedEvent, SessionCancelledEvent]


class SessionEventPublisher:
    """Publishes session events to a durable RabbitMQ topic exchange."""

    def __init__(self, url: Optional[str] = None, exchange_name: Optional[str] = None) -> None:
        settings = get_settings()
        self._url = url or settings.rabbitmq.url
        self._exchange_name = exchange_name or settings.rabbitmq.session_events_exchange
        self._connection: Optional[aio_pika.abc.AbstractRobustConnection] = None
        self._channel: Optional[aio_pika.abc.AbstractChannel] = None
        self._exchange: Optional[aio_pika.abc.AbstractExchange] = None

    async def connect(self) -> None:
        """Connect to RabbitMQ and declare the exchange."""
        if self._connection and not self._connection.is_closed:
            return

        self._connection = await aio_pika.connect_robust(self._url)
        self._channel = await self._connection.channel()

        # Declare exchange (idempotent)
        self._exchange = await self._channel.declare_exchange(
            name=self._exchange_name,
            type=ExchangeType.TOPIC,
            durable=True,
        )
        logger.info(f"Session event publisher connected: exchange={self._exchange_name}")

    async def close(self) -> None:
        """Close channel/connection."""
        try:
            if self._channel and not self._channel.is_closed:
                await self._channel.close()
        finally:
            self._channel = None
            self._exchange = None
        try:
            if self._connection and not self._connection.is_closed:
                await self._connection.close()
        finally:
            self._connection = None

    async def publish(self, event: SessionEvent) -> None:
        """Publish one event under its routing key."""
        if not self._exchange:
            await self.connect()
        assert self._exchange is not None

        msg = Message(
            body=event.model_dump_json().encode("utf-8"),
            content_type="application/json",
            delivery_mode=DeliveryMode.PERSISTENT,
        )
        await self._exchange.publish(msg, routing_key=event.routing_key)
        logger.info(f"Published {event.routing_key} for session {event.session_id}")


async def publish_after_commit(
    publisher: Optional[SessionEventPublisher], event: SessionEvent
) -> bool:
    """
    Deliver an event for an already-committed transition.

    Returns:
        True when the event reached the broker, False when skipped or failed
    """
    if publisher is None:
        logger.debug(f"No event publisher attached, skipping {event.routing_key}")
        return False
    try:
        await publisher.publish(event)
        return True
    except Exception as e:
        logger.error(
            f"Failed to publish {event.routing_key} for session {event.session_id}: {e}",
            exc_info=True,
        )
        return False


# Simple app-wide singleton (connected in lifespan when events are enabled)
publisher = SessionEventPublisher()


def get_event_publisher() -> Optional[SessionEventPublisher]:
    """FastAPI dependency returning the publisher, or None when events are disabled."""
    if not get_settings().rabbitmq.events_enabled:
        return None
    return publisher
