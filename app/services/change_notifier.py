import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class ChangeEvent:
    table: str  # "folders" | "files"
    action: str  # "insert" | "update" | "delete"
    ids: Tuple[str, ...]
    owner_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "table": self.table,
            "action": self.action,
            "ids": list(self.ids),
            "owner_id": self.owner_id,
        }

Callback = Callable[[ChangeEvent], None]

@dataclass(eq=False)
class Subscription:
    notifier: "ChangeNotifier"
    callback: Callback
    owner_id: Optional[str] = None
    active: bool = field(default=True)

    def unsubscribe(self) -> None:
        self.notifier._remove(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.unsubscribe()
        return False

class ChangeNotifier:
    """Publishes "entity changed" events to explicit subscribers.

    Subscribers register with ``subscribe`` and must call ``unsubscribe`` (or
    use the subscription as a context manager) when they go away. Delivery is
    best effort: a failing callback is logged and skipped.
    """

    def __init__(self):
        self._subscriptions: List[Subscription] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Callback, owner_id: Optional[str] = None) -> Subscription:
        subscription = Subscription(self, callback, owner_id)
        with self._lock:
            self._subscriptions.append(subscription)
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)
        subscription.active = False

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def publish(self, event: ChangeEvent) -> None:
        if not event.ids:
            return
        with self._lock:
            targets = [
                s
                for s in self._subscriptions
                if s.owner_id is None or s.owner_id == event.owner_id
            ]
        for subscription in targets:
            try:
                subscription.callback(event)
            except Exception as e:
                logger.warning(f"Change subscriber failed on {event.table}/{event.action}: {e}")


change_notifier = ChangeNotifier()
