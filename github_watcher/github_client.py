"""Read-only client for the GitHub collections the watcher polls."""
import logging
import re

import requests

from . import config
from .exceptions import DecodeError, TransportError
from .models import NotificationEvent, StarEvent, SubjectType, parse_timestamp

logger = logging.getLogger(__name__)

JSON_MEDIA_TYPE = "application/vnd.github+json"
# Only this media type includes starred_at in stargazer listings
STAR_MEDIA_TYPE = "application/vnd.github.star+json"
API_VERSION = "2022-11-28"
PER_PAGE = 100

DEFAULT_API_URL = "https://api.github.com"

_PAGE_RE = re.compile(r"[?&]page=(\d+)")


def web_url_for(api_base):
    """Browser base URL for an API base URL.

    GitHub Enterprise serves its API under ``<host>/api/v3``.
    """
    api_base = api_base.rstrip("/")
    if api_base == DEFAULT_API_URL:
        return "https://github.com"
    if api_base.endswith("/api/v3"):
        return api_base[:-len("/api/v3")]
    return api_base


def html_url_for(api_url, repository_full_name=None, api_base=DEFAULT_API_URL):
    """Convert a REST API subject URL into the page a browser should open."""
    web_base = web_url_for(api_base)
    if not api_url:
        if repository_full_name:
            return f"{web_base}/{repository_full_name}"
        return None
    prefix = f"{api_base.rstrip('/')}/repos/"
    if not api_url.startswith(prefix):
        return api_url
    path = api_url[len(prefix):]
    path = re.sub(r"/pulls/(\d+)$", r"/pull/\1", path)
    path = re.sub(r"/commits/([0-9a-f]+)$", r"/commit/\1", path)
    # Release URLs carry a numeric id the web UI cannot resolve
    path = re.sub(r"/releases/\d+$", "/releases", path)
    return f"{web_base}/{path}"


class GitHubClient:
    """Performs the three reads the watcher needs.

    Every method is one logical read and raises TransportError or DecodeError
    on failure; nothing is retried here.
    """

    def __init__(self, api_url=None, timeout=None, max_pages=None, session=None):
        self.api_url = (api_url or config.GITHUB_API_URL).rstrip("/")
        self.timeout = config.REQUEST_TIMEOUT if timeout is None else timeout
        self.max_pages = config.GITHUB_MAX_PAGES if max_pages is None else max_pages
        self.web_url = web_url_for(self.api_url)
        self.session = session or requests.Session()
        self.session.headers.update({
            "User-Agent": config.GITHUB_USER_AGENT,
            "X-GitHub-Api-Version": API_VERSION,
        })

    def fetch_notifications(self, token):
        """Return the authenticated user's notifications in listing order."""
        items = self._get_collection(token, "/notifications", "notifications")
        notifications = []
        for item in items:
            if not isinstance(item, dict) or item.get("id") is None:
                logger.warning("Skipping notification without an id: %r", item)
                continue
            subject = item.get("subject") or {}
            repository = item.get("repository") or {}
            notifications.append(NotificationEvent(
                id=str(item["id"]),
                repository_full_name=repository.get("full_name") or "",
                subject_title=subject.get("title") or "",
                subject_type=SubjectType.classify(subject.get("type")),
                subject_url=subject.get("url"),
                html_url=html_url_for(
                    subject.get("url"), repository.get("full_name"), api_base=self.api_url),
                updated_at=parse_timestamp(item.get("updated_at")),
            ))
        return notifications

    def fetch_repositories(self, token):
        """Return the full names of repositories the token's user can see."""
        items = self._get_collection(token, "/user/repos", "repositories")
        names = []
        for item in items:
            name = item.get("full_name") if isinstance(item, dict) else None
            if not name:
                logger.warning("Skipping repository without a full_name: %r", item)
                continue
            names.append(name)
        return names

    def fetch_stargazers(self, token, repo_full_name):
        """Return the star events of one repository, oldest first."""
        resource = f"stargazers of {repo_full_name}"
        items = self._get_collection(
            token,
            f"/repos/{repo_full_name}/stargazers",
            resource,
            accept=STAR_MEDIA_TYPE,
            newest_last=True,
        )
        stars = []
        for item in items:
            user = item.get("user") if isinstance(item, dict) else None
            login = user.get("login") if isinstance(user, dict) else None
            if not login:
                logger.warning("Skipping stargazer without a login in %s", repo_full_name)
                continue
            stars.append(StarEvent(
                repository_full_name=repo_full_name,
                starring_user=login,
                starred_at=parse_timestamp(item.get("starred_at")),
                user_html_url=user.get("html_url") or f"{self.web_url}/{login}",
            ))
        return stars

    def _get_collection(self, token, path, resource, accept=JSON_MEDIA_TYPE, newest_last=False):
        """Read every page of a collection, up to max_pages.

        With newest_last, a collection longer than max_pages is read from its
        tail, since that is where recent entries are listed.
        """
        headers = {"Authorization": f"Bearer {token}", "Accept": accept}
        url = f"{self.api_url}{path}"
        response = self._get(url, headers, resource, params={"per_page": PER_PAGE})
        items = self._decode(response, resource)

        next_url = response.links.get("next", {}).get("url")
        if newest_last and next_url:
            last_page = self._page_number(response.links.get("last", {}).get("url"))
            if last_page and last_page > self.max_pages:
                first_tail_page = last_page - self.max_pages + 1
                logger.debug("Reading pages %s-%s of %s", first_tail_page, last_page, resource)
                items = []
                for page in range(first_tail_page, last_page + 1):
                    page_response = self._get(
                        url, headers, resource, params={"per_page": PER_PAGE, "page": page})
                    items.extend(self._decode(page_response, resource))
                return items

        pages_read = 1
        while next_url and pages_read < self.max_pages:
            response = self._get(next_url, headers, resource)
            items.extend(self._decode(response, resource))
            next_url = response.links.get("next", {}).get("url")
            pages_read += 1

        if next_url:
            logger.info("Stopped reading %s after %s pages", resource, pages_read)
        return items

    def _get(self, url, headers, resource, params=None):
        try:
            response = self.session.get(url, headers=headers, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransportError(f"Request for {resource} failed: {e}", resource) from e

        if not 200 <= response.status_code < 300:
            raise TransportError(
                f"GitHub returned {response.status_code} for {resource}: {response.text[:200]}",
                resource,
                status_code=response.status_code,
            )
        return response

    @staticmethod
    def _decode(response, resource):
        try:
            payload = response.json()
        except ValueError as e:
            raise DecodeError(f"Malformed JSON for {resource}: {e}", resource) from e
        if not isinstance(payload, list):
            raise DecodeError(
                f"Expected a list for {resource}, got {type(payload).__name__}", resource)
        return payload

    @staticmethod
    def _page_number(url):
        if not url:
            return None
        match = _PAGE_RE.search(url)
        return int(match.group(1)) if match else None
