"""Enable/Disable lifecycle for one GitHub watcher instance."""
import enum
import logging
import threading

from . import config
from .engine import PollingEngine
from .exceptions import InvalidConfig, LifecycleError
from .github_client import GitHubClient
from .state_manager import StateManager

logger = logging.getLogger(__name__)


class LifecycleState(enum.Enum):
    DISABLED = "disabled"
    ENABLING = "enabling"
    ENABLED = "enabled"
    DISABLING = "disabling"


_TRANSITIONS = {
    LifecycleState.DISABLED: LifecycleState.ENABLING,
    LifecycleState.ENABLING: LifecycleState.ENABLED,
    LifecycleState.ENABLED: LifecycleState.DISABLING,
    LifecycleState.DISABLING: LifecycleState.DISABLED,
}


class GitHubWatcher:
    """Watches GitHub notifications and repository stars for one user.

    The host creates one instance per user, hands it an alert sink and its
    own instance identity, then calls enable() and disable(). Both calls
    block: enable() returns once the baseline is in place and the polling
    thread is running, disable() returns once that thread has exited.
    """

    def __init__(self, sink, instance_id, source=None, config_value=None):
        """Initialize a disabled watcher."""
        self.sink = sink
        self.instance_id = instance_id
        self.source = source or GitHubClient()
        self.state_manager = StateManager()
        self._config = config.validate(config_value) if config_value is not None else None
        self._state = LifecycleState.DISABLED
        self._lifecycle_lock = threading.Lock()
        self.engine = PollingEngine(
            self.source, self.state_manager, self.sink, lambda: self._config)

    @property
    def state(self):
        return self._state

    @property
    def config(self):
        return self._config

    @staticmethod
    def default_config():
        return config.default_config()

    @staticmethod
    def display_text():
        return config.DISPLAY_TEXT

    def _transition(self, target):
        if _TRANSITIONS[self._state] is not target:
            raise LifecycleError(f"Cannot move from {self._state.value} to {target.value}")
        logger.debug("Watcher %s: %s -> %s", self.instance_id, self._state.value, target.value)
        self._state = target

    def enable(self, config_value=None):
        """Validate settings, record the baseline and start polling.

        Raises InvalidConfig, leaving the watcher disabled, when the settings
        (the ones given here, else the ones last applied) are invalid.
        Enabling an enabled watcher does nothing.
        """
        with self._lifecycle_lock:
            if self._state is LifecycleState.ENABLED:
                logger.info("Watcher %s is already enabled", self.instance_id)
                return

            if config_value is None:
                config_value = self._config
            if config_value is None:
                raise InvalidConfig("GitHub token is required")
            watcher_config = config.validate(config_value)

            self._transition(LifecycleState.ENABLING)
            try:
                # A thread told to stop from inside its own tick may still be finishing
                self.engine.wait_stopped()
                self._config = watcher_config
                self._route_alerts(watcher_config)
                self.state_manager.reset()
                self.engine.populate_baseline(watcher_config)
                self.engine.start()
            except Exception:
                logger.error("Failed to enable watcher %s", self.instance_id)
                self.engine.stop()
                # A failed enable never reached ENABLED, so roll straight back
                self._state = LifecycleState.DISABLED
                raise
            self._transition(LifecycleState.ENABLED)
            logger.info(
                "Watcher %s enabled (interval %ss, stars %s)", self.instance_id,
                watcher_config.poll_interval_seconds,
                "on" if watcher_config.watch_stars else "off")

    def disable(self):
        """Stop polling. No alert is sent after this returns."""
        if self.engine.in_polling_thread():
            # The host may be holding the lock while it joins this very thread
            if not self._lifecycle_lock.acquire(blocking=False):
                self.engine.stop()
                logger.info("Watcher %s is already being disabled", self.instance_id)
                return
        else:
            self._lifecycle_lock.acquire()
        try:
            if self._state is LifecycleState.DISABLED:
                return
            self._transition(LifecycleState.DISABLING)
            try:
                self.engine.stop()
            finally:
                self._transition(LifecycleState.DISABLED)
            logger.info("Watcher %s disabled", self.instance_id)
        finally:
            self._lifecycle_lock.release()

    def apply_config(self, config_value):
        """Replace the settings; a running watcher picks them up next tick."""
        self._config = config.validate(config_value)
        logger.info("Applied new configuration to watcher %s: %r", self.instance_id, self._config)
        return self._config

    def _route_alerts(self, watcher_config):
        if watcher_config.delegate_app_token:
            logger.info("Using custom application token for alerts")
        else:
            logger.info("Using default application with ID: %s", self.instance_id)
        self.sink.set_route(watcher_config.delegate_app_token, self.instance_id)
