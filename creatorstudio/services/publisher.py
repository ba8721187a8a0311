"""Session event publisher module for pub/sub event publishing."""

import logging
from pubsub import pub
from ..models.events import SessionEvent

logger = logging.getLogger(__name__)


class SessionPublisher:
    """Publishes session events using pubsub.pub.

    Events go to ``<topic_prefix>.<event_type>``, e.g. ``session.state``.
    """

    def __init__(self, topic_prefix: str = "session"):
        """Initialize session publisher.

        Args:
            topic_prefix: Root topic name for session events
        """
        self.topic_prefix = topic_prefix
        logger.info(f"SessionPublisher initialized with topic prefix: {topic_prefix}")

    def topic(self, event_type: str) -> str:
        return f"{self.topic_prefix}.{event_type}"

    def publish(self, event: SessionEvent) -> None:
        pub.sendMessage(self.topic(event.event_type), event=event)
        logger.debug(f"Published {event.event_type} event for {event.session_id} ({event.state})")
