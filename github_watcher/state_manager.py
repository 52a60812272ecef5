"""State manager for tracking which events have already been seen."""
import logging

from .models import NOTIFICATION, STAR

logger = logging.getLogger(__name__)


class StateManager:
    """Holds the identities observed during one enabled session.

    State lives only in memory and is cleared on every enable. While the
    watcher is enabled the polling thread is the only caller.
    """

    def __init__(self):
        """Initialize empty seen-sets."""
        self.seen_notification_ids = set()
        self.seen_star_keys = set()

    def reset(self):
        """Forget everything seen in the previous session."""
        self.seen_notification_ids.clear()
        self.seen_star_keys.clear()
        logger.debug("Seen state cleared")

    def _bucket(self, identity):
        kind, _ = identity
        if kind == NOTIFICATION:
            return self.seen_notification_ids
        if kind == STAR:
            return self.seen_star_keys
        raise ValueError(f"Unknown identity kind: {kind}")

    def is_novel(self, identity):
        """Check whether an event has not been seen in this session."""
        _, key = identity
        return key not in self._bucket(identity)

    def mark_seen(self, identity):
        """Mark an event as seen. Marking twice is harmless."""
        _, key = identity
        self._bucket(identity).add(key)

    def counts(self):
        """Return (seen notifications, seen stars)."""
        return len(self.seen_notification_ids), len(self.seen_star_keys)
