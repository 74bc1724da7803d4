"""
Broker session.

Bundles one INDI client with the event subscriptions made on it, so
both are discarded together when the session is rebuilt after a
driver restart. A client object is never reused across sessions.
"""
import logging
from datetime import datetime, timezone
from typing import Callable, List

from .base import BusEvent, DeviceBus, Subscription

logger = logging.getLogger(__name__)

BusFactory = Callable[[], DeviceBus]


class BrokerSession:
    """A device bus client plus its subscriptions."""

    def __init__(self, bus: DeviceBus, session_id: int = 0):
        """
        Initialize the session.

        Args:
            bus: Freshly created device bus client.
            session_id: Sequence number of the session, for logging.
        """
        self.bus = bus
        self.session_id = session_id
        self.created_at = datetime.now(timezone.utc)

        self._subscriptions: List[Subscription] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self, event: BusEvent, handler: Callable) -> Subscription:
        """
        Subscribe a handler on the session bus.

        Args:
            event: Event to listen for.
            handler: Handler callable.

        Returns:
            The subscription, also tracked by the session.
        """
        if self._closed:
            raise RuntimeError(f"Session {self.session_id} is closed")

        subscription = self.bus.subscribe(event, handler)
        self._subscriptions.append(subscription)
        return subscription

    @property
    def subscription_count(self) -> int:
        return sum(1 for s in self._subscriptions if s.active)

    def close(self) -> None:
        """Cancel all subscriptions and disconnect the client."""
        if self._closed:
            return

        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions.clear()
        # The client is never reused, drop handlers registered on it directly
        self.bus.unsubscribe_all()

        try:
            self.bus.disconnect_server()
        except Exception as e:
            logger.warning(f"Error disconnecting session {self.session_id}: {e}")

        self._closed = True
        logger.debug(f"Closed broker session {self.session_id}")
