"""Tests for the GitHub client, with requests mocked out."""

from unittest.mock import MagicMock

import pytest
import requests

from github_watcher.exceptions import DecodeError, TransportError
from github_watcher.github_client import (
    STAR_MEDIA_TYPE, GitHubClient, html_url_for, web_url_for,
)
from github_watcher.models import SubjectType

API = "https://api.github.com"


def make_response(payload=None, status_code=200, links=None, json_error=None):
    response = MagicMock()
    response.status_code = status_code
    response.links = links or {}
    response.text = "" if payload is None else str(payload)
    if json_error is not None:
        response.json.side_effect = json_error
    else:
        response.json.return_value = payload
    return response


def make_client(*responses, max_pages=10):
    session = MagicMock()
    session.headers = {}
    session.get.side_effect = list(responses)
    return GitHubClient(api_url=API, timeout=5, max_pages=max_pages, session=session), session


NOTIFICATION_PAYLOAD = {
    "id": "101",
    "repository": {"full_name": "octo/hello"},
    "subject": {
        "title": "Fix the thing",
        "type": "PullRequest",
        "url": "https://api.github.com/repos/octo/hello/pulls/7",
    },
    "updated_at": "2024-05-01T12:30:00Z",
}


class TestFetchNotifications:

    def test_parses_notifications(self):
        client, session = make_client(make_response([NOTIFICATION_PAYLOAD]))

        notifications = client.fetch_notifications("ghp_abc")

        assert len(notifications) == 1
        notification = notifications[0]
        assert notification.id == "101"
        assert notification.repository_full_name == "octo/hello"
        assert notification.subject_title == "Fix the thing"
        assert notification.subject_type is SubjectType.PULL_REQUEST
        assert notification.subject_url.endswith("/pulls/7")
        assert notification.updated_at.year == 2024
        assert notification.html_url == "https://github.com/octo/hello/pull/7"

    def test_sends_bearer_token(self):
        client, session = make_client(make_response([]))

        client.fetch_notifications("ghp_abc")

        url = session.get.call_args.args[0]
        headers = session.get.call_args.kwargs["headers"]
        assert url == f"{API}/notifications"
        assert headers["Authorization"] == "Bearer ghp_abc"
        assert session.get.call_args.kwargs["timeout"] == 5

    def test_skips_items_without_id(self):
        client, _ = make_client(make_response([{"subject": {}}, "junk", NOTIFICATION_PAYLOAD]))

        assert [n.id for n in client.fetch_notifications("t")] == ["101"]

    def test_keeps_listing_order_across_pages(self):
        second = dict(NOTIFICATION_PAYLOAD, id="102")
        client, session = make_client(
            make_response([NOTIFICATION_PAYLOAD], links={"next": {"url": f"{API}/notifications?page=2"}}),
            make_response([second]),
        )

        assert [n.id for n in client.fetch_notifications("t")] == ["101", "102"]
        assert session.get.call_args.args[0] == f"{API}/notifications?page=2"

    def test_stops_after_max_pages(self):
        next_link = {"next": {"url": f"{API}/notifications?page=2"}}
        client, session = make_client(
            make_response([NOTIFICATION_PAYLOAD], links=next_link),
            make_response([dict(NOTIFICATION_PAYLOAD, id="102")], links=next_link),
            max_pages=2,
        )

        assert len(client.fetch_notifications("t")) == 2
        assert session.get.call_count == 2

    def test_explicit_zero_settings_are_kept(self):
        client = GitHubClient(api_url=API, timeout=0, max_pages=0, session=MagicMock())

        assert client.timeout == 0
        assert client.max_pages == 0


class TestFailures:

    def test_network_error_is_transport_error(self):
        client, _ = make_client(requests.ConnectionError("boom"))

        with pytest.raises(TransportError):
            client.fetch_notifications("t")

    def test_timeout_is_transport_error(self):
        client, _ = make_client(requests.Timeout("slow"))

        with pytest.raises(TransportError):
            client.fetch_repositories("t")

    def test_error_status_is_transport_error(self):
        client, _ = make_client(make_response({"message": "Bad credentials"}, status_code=401))

        with pytest.raises(TransportError) as excinfo:
            client.fetch_notifications("t")
        assert excinfo.value.status_code == 401
        assert excinfo.value.resource == "notifications"

    def test_malformed_json_is_decode_error(self):
        client, _ = make_client(make_response(json_error=ValueError("Expecting value")))

        with pytest.raises(DecodeError):
            client.fetch_notifications("t")

    def test_non_list_payload_is_decode_error(self):
        client, _ = make_client(make_response({"message": "not a list"}))

        with pytest.raises(DecodeError):
            client.fetch_repositories("t")


class TestRepositoriesAndStargazers:

    def test_fetch_repositories(self):
        client, session = make_client(make_response([
            {"full_name": "octo/hello"}, {"name": "no-full-name"}, {"full_name": "octo/world"},
        ]))

        assert client.fetch_repositories("t") == ["octo/hello", "octo/world"]
        assert session.get.call_args.args[0] == f"{API}/user/repos"

    def test_fetch_stargazers_uses_star_media_type(self):
        client, session = make_client(make_response([
            {"starred_at": "2024-05-01T12:30:00Z", "user": {"login": "alice"}},
            {"starred_at": "2024-05-02T12:30:00Z", "user": {}},
            {"starred_at": None, "user": {"login": "bob"}},
        ]))

        stars = client.fetch_stargazers("t", "octo/hello")

        assert [(s.repository_full_name, s.starring_user) for s in stars] == [
            ("octo/hello", "alice"), ("octo/hello", "bob")]
        assert stars[0].starred_at is not None
        assert stars[1].starred_at is None
        assert stars[0].user_html_url == "https://github.com/alice"
        assert session.get.call_args.args[0] == f"{API}/repos/octo/hello/stargazers"
        assert session.get.call_args.kwargs["headers"]["Accept"] == STAR_MEDIA_TYPE

    def test_long_stargazer_list_is_read_from_the_tail(self):
        url = f"{API}/repos/octo/hello/stargazers"
        first = make_response(
            [{"user": {"login": "first"}}],
            links={"next": {"url": f"{url}?per_page=100&page=2"},
                   "last": {"url": f"{url}?per_page=100&page=5"}},
        )
        client, session = make_client(
            first,
            make_response([{"user": {"login": "page4"}}]),
            make_response([{"user": {"login": "page5"}}]),
            max_pages=2,
        )

        stars = client.fetch_stargazers("t", "octo/hello")

        assert [s.starring_user for s in stars] == ["page4", "page5"]
        pages = [c.kwargs["params"]["page"] for c in session.get.call_args_list[1:]]
        assert pages == [4, 5]


class TestHtmlUrl:

    @pytest.mark.parametrize("api_url,expected", [
        ("https://api.github.com/repos/octo/hello/pulls/7", "https://github.com/octo/hello/pull/7"),
        ("https://api.github.com/repos/octo/hello/issues/3", "https://github.com/octo/hello/issues/3"),
        ("https://api.github.com/repos/octo/hello/commits/abc123", "https://github.com/octo/hello/commit/abc123"),
        ("https://api.github.com/repos/octo/hello/releases/999", "https://github.com/octo/hello/releases"),
        ("https://example.com/elsewhere", "https://example.com/elsewhere"),
    ])
    def test_converts_api_urls(self, api_url, expected):
        assert html_url_for(api_url) == expected

    def test_missing_url_falls_back_to_repository(self):
        assert html_url_for(None, "octo/hello") == "https://github.com/octo/hello"

    def test_missing_everything(self):
        assert html_url_for(None) is None


GHE_API = "https://ghe.example.com/api/v3"


class TestEnterpriseUrls:

    @pytest.mark.parametrize("api_base,expected", [
        ("https://api.github.com", "https://github.com"),
        ("https://api.github.com/", "https://github.com"),
        (GHE_API, "https://ghe.example.com"),
    ])
    def test_web_url_for(self, api_base, expected):
        assert web_url_for(api_base) == expected

    def test_enterprise_subject_url_is_converted(self):
        assert html_url_for(
            f"{GHE_API}/repos/team/app/pulls/3", api_base=GHE_API,
        ) == "https://ghe.example.com/team/app/pull/3"

    def test_enterprise_repository_fallback(self):
        assert html_url_for(None, "team/app", api_base=GHE_API) == "https://ghe.example.com/team/app"

    def test_client_builds_enterprise_links(self):
        session = MagicMock()
        session.headers = {}
        session.get.side_effect = [
            make_response([{
                "id": "1",
                "repository": {"full_name": "team/app"},
                "subject": {"title": "t", "type": "Issue", "url": f"{GHE_API}/repos/team/app/issues/9"},
            }]),
            make_response([{"user": {"login": "alice"}}]),
        ]
        client = GitHubClient(api_url=GHE_API, session=session)

        notification = client.fetch_notifications("t")[0]
        star = client.fetch_stargazers("t", "team/app")[0]

        assert notification.html_url == "https://ghe.example.com/team/app/issues/9"
        assert star.user_html_url == "https://ghe.example.com/alice"
        assert session.get.call_args_list[0].args[0] == f"{GHE_API}/notifications"
