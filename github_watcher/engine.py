"""Polling loop that turns GitHub reads into alerts for unseen events."""
import logging
import threading
import time
import traceback
from dataclasses import dataclass, field
from typing import List

from . import config
from .exceptions import ActivitySourceError, DispatchError, LifecycleError
from .github_client import html_url_for
from .models import SubjectType

logger = logging.getLogger(__name__)


@dataclass
class TickReport:
    """What one tick did. Returned by run_tick and logged at DEBUG."""

    notifications_sent: int = 0
    stars_sent: int = 0
    dispatch_failures: int = 0
    absorbed: int = 0
    failed_reads: List[str] = field(default_factory=list)


def next_deadline(previous_due, now, interval):
    """Return (next due time, number of firings skipped).

    The schedule is fixed-rate. Firings that fell due while a tick was
    still running are dropped rather than queued.
    """
    due = previous_due + interval
    if due >= now:
        return due, 0
    missed = int((now - due) // interval) + 1
    return due + missed * interval, missed


def format_notification_alert(notification):
    """Build (title, message, link) for a new notification."""
    title = notification.subject_title or "GitHub notification"
    if notification.subject_type is not SubjectType.OTHER:
        title = f"[{notification.subject_type.value}] {title}"
    message = f"New notification in {notification.repository_full_name}"
    link = notification.html_url or html_url_for(
        notification.subject_url, notification.repository_full_name)
    return title, message, link


def format_star_alert(star):
    """Build (title, message, link) for a new star."""
    title = f"New star on {star.repository_full_name}"
    message = f"{star.starring_user} starred {star.repository_full_name}"
    link = star.user_html_url or f"https://github.com/{star.starring_user}"
    return title, message, link


class PollingEngine:
    """Runs fetch, diff and dispatch once per poll interval.

    The engine owns the seen state while its thread is alive. config_provider
    is called at every tick boundary so settings applied to a running watcher
    take effect on the next tick.
    """

    def __init__(self, source, state, sink, config_provider,
                 notification_priority=None, star_priority=None):
        self.source = source
        self.state = state
        self.sink = sink
        self.config_provider = config_provider
        if notification_priority is None:
            notification_priority = config.NOTIFICATION_PRIORITY
        if star_priority is None:
            star_priority = config.STAR_PRIORITY
        self.notification_priority = notification_priority
        self.star_priority = star_priority

        self._tick_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread = None
        self._suppress_dispatch = False

        self._notifications_baselined = False
        self._stars_baselined = False
        # Repositories whose stargazers could not be read during baseline
        self._pending_repos = set()

    @property
    def running(self):
        return self._thread is not None and self._thread.is_alive()

    def in_polling_thread(self):
        return self._thread is not None and self._thread is threading.current_thread()

    def populate_baseline(self, watcher_config):
        """Mark everything that exists right now as seen, without alerting.

        A resource that cannot be read here is absorbed silently on its
        first successful read instead.
        """
        self._notifications_baselined = False
        self._stars_baselined = False
        self._pending_repos.clear()
        report = TickReport()
        token = watcher_config.access_token

        notifications = self._read(report, "notifications", self.source.fetch_notifications, token)
        if notifications is not None:
            self._absorb(notifications, report)
            self._notifications_baselined = True
        else:
            logger.warning("Notification baseline incomplete, next successful read will be absorbed")

        if watcher_config.watch_stars:
            repositories = self._read(
                report, "repositories", self.source.fetch_repositories, token)
            if repositories is not None:
                self._absorb_stars(token, repositories, report)
            else:
                logger.warning("Star baseline incomplete, next successful read will be absorbed")

        seen_notifications, seen_stars = self.state.counts()
        logger.info(
            "Baseline complete: %s notifications and %s stars already seen",
            seen_notifications, seen_stars)
        return report

    def start(self):
        """Start the polling thread."""
        if self.running:
            if not self._stop_event.is_set():
                logger.warning("Polling thread is already running")
                return
            raise LifecycleError("Previous polling thread has not exited yet")
        self._stop_event.clear()
        self._suppress_dispatch = False
        self._thread = threading.Thread(target=self._run, name="github-watcher-poller")
        self._thread.daemon = True
        self._thread.start()

    def stop(self):
        """Signal the polling thread and wait for it to exit.

        A tick in flight runs to completion first. When called from the
        polling thread itself the remaining alerts of that tick are dropped,
        since the thread cannot join itself.
        """
        self._stop_event.set()
        thread = self._thread
        if thread is None:
            return
        if thread is threading.current_thread():
            self._suppress_dispatch = True
            logger.info("Stop requested from the polling thread, not waiting for it")
            return
        thread.join()
        self._thread = None

    def wait_stopped(self):
        """Wait for a thread that was stopped from inside its own tick."""
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join()
            self._thread = None

    def run_tick(self):
        """Run one tick now. Returns None if another tick is in flight."""
        if not self._tick_lock.acquire(blocking=False):
            logger.warning("Previous tick still running, skipping this one")
            return None
        try:
            return self._tick()
        finally:
            self._tick_lock.release()

    def _run(self):
        interval = self.config_provider().poll_interval_seconds
        logger.info("Polling GitHub every %s seconds", interval)
        next_due = time.monotonic() + interval

        while not self._stop_event.wait(max(0.0, next_due - time.monotonic())):
            try:
                report = self.run_tick()
                if report is not None:
                    logger.debug("Tick finished: %s", report)
            except Exception as e:
                logger.error("Unhandled exception in polling loop: %s", e)
                logger.debug(traceback.format_exc())

            interval = self.config_provider().poll_interval_seconds
            next_due, skipped = next_deadline(next_due, time.monotonic(), interval)
            if skipped:
                logger.warning("Tick overran the poll interval, skipped %s firing(s)", skipped)

        logger.info("Polling stopped")

    def _tick(self):
        watcher_config = self.config_provider()
        report = TickReport()
        self._check_notifications(watcher_config.access_token, report)
        if watcher_config.watch_stars:
            self._check_stars(watcher_config.access_token, report)
        elif self._stars_baselined:
            # Stars arriving while unwatched are absorbed when watching resumes
            self._stars_baselined = False
            self._pending_repos.clear()
        return report

    def _check_notifications(self, token, report):
        notifications = self._read(report, "notifications", self.source.fetch_notifications, token)
        if notifications is None:
            return

        if not self._notifications_baselined:
            self._absorb(notifications, report)
            self._notifications_baselined = True
            logger.info("Absorbed %s notifications as baseline", len(notifications))
            return

        for notification in notifications:
            if not self.state.is_novel(notification.identity):
                continue
            # Seen before dispatch so a failed delivery is never retried
            self.state.mark_seen(notification.identity)
            logger.info(
                "New notification %s in %s", notification.id, notification.repository_full_name)
            title, message, link = format_notification_alert(notification)
            if self._dispatch(title, message, self.notification_priority, link, report):
                report.notifications_sent += 1

    def _check_stars(self, token, report):
        repositories = self._read(report, "repositories", self.source.fetch_repositories, token)
        if repositories is None:
            return

        if not self._stars_baselined:
            self._absorb_stars(token, repositories, report)
            logger.info("Absorbed stars of %s repositories as baseline", len(repositories))
            return

        for repo in repositories:
            stars = self._read(
                report, f"stargazers of {repo}", self.source.fetch_stargazers, token, repo)
            if stars is None:
                continue
            if repo in self._pending_repos:
                self._absorb(stars, report)
                self._pending_repos.discard(repo)
                continue

            for star in stars:
                if not self.state.is_novel(star.identity):
                    continue
                self.state.mark_seen(star.identity)
                logger.info("New star on %s by %s", star.repository_full_name, star.starring_user)
                title, message, link = format_star_alert(star)
                if self._dispatch(title, message, self.star_priority, link, report):
                    report.stars_sent += 1

    def _absorb_stars(self, token, repositories, report):
        for repo in repositories:
            stars = self._read(
                report, f"stargazers of {repo}", self.source.fetch_stargazers, token, repo)
            if stars is None:
                self._pending_repos.add(repo)
                continue
            self._absorb(stars, report)
        self._stars_baselined = True

    def _absorb(self, events, report):
        for event in events:
            self.state.mark_seen(event.identity)
        report.absorbed += len(events)

    @staticmethod
    def _read(report, resource, fetch, *args):
        try:
            return fetch(*args)
        except ActivitySourceError as e:
            logger.error("Failed to fetch %s: %s", resource, e)
            report.failed_reads.append(resource)
            return None

    def _dispatch(self, title, message, priority, link, report):
        if self._suppress_dispatch:
            logger.info("Watcher disabled, dropping alert: %s", title)
            return False
        try:
            delivered = self.sink.send_alert(title, message, priority, link)
        except DispatchError as e:
            logger.error("Alert sink rejected %r: %s", title, e)
            delivered = False
        except Exception as e:
            logger.error("Error sending alert %r: %s", title, e)
            logger.debug(traceback.format_exc())
            delivered = False

        if not delivered:
            report.dispatch_failures += 1
            logger.warning("Alert not delivered and will not be retried: %s", title)
        return bool(delivered)
