"""
Shared fixtures for the watcher tests.

FakeSource stands in for the GitHub client and RecordingSink for the alert
sink, so engine and lifecycle tests never touch the network.
"""

import threading
import time

import pytest

from github_watcher.config import WatcherConfig
from github_watcher.exceptions import TransportError
from github_watcher.models import NotificationEvent, StarEvent, SubjectType
from github_watcher.notifier import MessageSink


def make_notification(notification_id, repo="octo/hello", title=None,
                      subject_type=SubjectType.ISSUE, url=None):
    return NotificationEvent(
        id=notification_id,
        repository_full_name=repo,
        subject_title=title or f"Subject {notification_id}",
        subject_type=subject_type,
        subject_url=url,
        updated_at=None,
    )


def make_star(repo, user):
    return StarEvent(repository_full_name=repo, starring_user=user, starred_at=None)


class FakeSource:
    """In-memory GitHub client.

    Set ``notifications``, ``repositories`` and ``stargazers`` to lists to
    return them, or to an exception instance to raise it. Every call is
    recorded in ``calls``.
    """

    def __init__(self):
        self.notifications = []
        self.repositories = []
        self.stargazers = {}
        self.calls = []
        self._lock = threading.Lock()

    def _record(self, *call):
        with self._lock:
            self.calls.append(call)

    def count(self, name):
        with self._lock:
            return sum(1 for call in self.calls if call[0] == name)

    @staticmethod
    def _answer(value):
        if isinstance(value, Exception):
            raise value
        return list(value)

    def fetch_notifications(self, token):
        self._record("notifications", token)
        return self._answer(self.notifications)

    def fetch_repositories(self, token):
        self._record("repositories", token)
        return self._answer(self.repositories)

    def fetch_stargazers(self, token, repo_full_name):
        self._record("stargazers", token, repo_full_name)
        return self._answer(self.stargazers.get(repo_full_name, []))


class RecordingSink(MessageSink):
    """Alert sink that remembers every alert it was asked to send."""

    def __init__(self, result=True):
        super().__init__()
        self.result = result
        self.alerts = []
        self._lock = threading.Lock()

    def send_alert(self, title, message, priority, link=None):
        with self._lock:
            self.alerts.append((title, message, priority, link))
        if isinstance(self.result, Exception):
            raise self.result
        return self.result

    @property
    def titles(self):
        with self._lock:
            return [alert[0] for alert in self.alerts]


def wait_until(predicate, timeout=5.0, step=0.01):
    """Poll predicate until it holds or the timeout passes."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(step)
    return predicate()


def transport_error(resource="notifications"):
    return TransportError("connection reset", resource)


@pytest.fixture
def source():
    return FakeSource()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def watcher_config():
    return WatcherConfig(access_token="ghp_test", poll_interval_seconds=60)


@pytest.fixture
def star_config():
    return WatcherConfig(access_token="ghp_test", poll_interval_seconds=60, watch_stars=True)
