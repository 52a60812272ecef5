"""Alert sinks that deliver watcher alerts."""
import logging

import requests

from . import config

logger = logging.getLogger(__name__)


class MessageSink:
    """Interface the watcher dispatches alerts through.

    send_alert returns True on success. Failures may be reported either by
    returning False or by raising; the watcher logs both and moves on.
    """

    def __init__(self):
        self.app_token = None
        self.instance_id = None

    def set_route(self, app_token=None, instance_id=None):
        """Choose where alerts go: a delegate app token, else the instance."""
        self.app_token = app_token
        self.instance_id = instance_id

    def send_alert(self, title, message, priority, link=None):
        raise NotImplementedError


class NotificationService(MessageSink):
    """Publishes alerts to an ntfy server.

    Alerts are posted to the topic named after the host instance. A delegate
    app token, when routed, is sent as an ntfy access token instead of the
    configured username/password.
    """

    def __init__(self, ntfy_url=None, tags=None, username=None, password=None, timeout=None):
        """Initialize the notification service with configuration."""
        super().__init__()
        self.ntfy_url = (ntfy_url or config.NTFY_URL).rstrip("/")
        self.tags = tags if tags is not None else config.NTFY_TAGS
        self.username = username if username is not None else config.NTFY_USERNAME
        self.password = password if password is not None else config.NTFY_PASSWORD
        self.timeout = config.REQUEST_TIMEOUT if timeout is None else timeout

    def send_alert(self, title, message, priority, link=None):
        """Send one alert through ntfy."""
        if not self.instance_id:
            logger.error("No ntfy topic routed, cannot send alert: %s", title)
            return False

        # JSON publishing keeps non-latin-1 titles intact
        payload = {
            "topic": self.instance_id,
            "title": title,
            "message": message,
            "priority": priority,
        }
        if self.tags:
            payload["tags"] = [tag.strip() for tag in self.tags.split(",") if tag.strip()]
        if link:
            payload["click"] = link

        auth = None
        headers = {}
        if self.app_token:
            headers["Authorization"] = f"Bearer {self.app_token}"
            logger.debug("Using delegate token for ntfy request")
        elif self.username and self.password:
            auth = (self.username, self.password)
            logger.debug("Added Basic authentication to ntfy request")

        try:
            response = requests.post(
                self.ntfy_url, json=payload, headers=headers, auth=auth, timeout=self.timeout)
            if response.status_code == 200:
                logger.info("Successfully sent ntfy notification: %s", title)
                return True
            logger.error(
                "Failed to send ntfy notification. Status code: %s, Response: %s",
                response.status_code, response.text)
            return False
        except requests.RequestException as e:
            logger.error("Error sending ntfy notification: %s", e)
            return False
