"""
A service that watches GitHub for new notifications and repository stars
and forwards them to an alert sink.
"""

from . import config
from .config import WatcherConfig, validate
from .exceptions import ConfigError, InvalidConfig
from .notifier import MessageSink, NotificationService
from .watcher import GitHubWatcher, LifecycleState
