"""
Tests for the GitHub and Gitea clients against a mocked transport.
"""

import httpx
import pytest

from mirror_guard.errors import (
    ConfirmedRewrite,
    FetchError,
    NotFoundError,
    TransientHostError,
)
from mirror_guard.hosts.base import CompareStatus
from mirror_guard.hosts.gitea import GiteaClient
from mirror_guard.hosts.github import GitHubClient


def _client(handler):
    return httpx.Client(transport=httpx.MockTransport(handler))


def _github(handler):
    return GitHubClient("gh-token", api_url="https://api.github.test", client=_client(handler))


def _gitea(handler):
    return GiteaClient("https://gitea.test/", "gitea-token", client=_client(handler))


class TestGitHubBranches:

    def test_follows_pagination(self):
        pages = {
            "1": [{"name": f"b{i}", "commit": {"sha": f"s{i}"}} for i in range(100)],
            "2": [{"name": "last", "commit": {"sha": "zzz"}}],
        }
        seen = []

        def handler(request):
            seen.append(request.url.params["page"])
            assert request.headers["Authorization"] == "Bearer gh-token"
            return httpx.Response(200, json=pages[request.url.params["page"]])

        result = _github(handler).list_branches("acme", "app")
        assert len(result) == 101
        assert result[-1].name == "last"
        assert result[-1].commit_id == "zzz"
        assert seen == ["1", "2"]

    def test_stops_on_empty_page(self):
        def handler(request):
            if request.url.params["page"] == "1":
                return httpx.Response(200, json=[{"name": f"b{i}", "commit": {"sha": "x"}} for i in range(100)])
            return httpx.Response(200, json=[])

        assert len(_github(handler).list_branches("acme", "app")) == 100

    def test_not_found(self):
        client = _github(lambda r: httpx.Response(404, json={"message": "Not Found"}))
        with pytest.raises(NotFoundError) as exc:
            client.list_branches("acme", "missing")
        assert exc.value.status_code == 404

    def test_rate_limit_is_transient(self):
        client = _github(lambda r: httpx.Response(
            403, json={"message": "API rate limit exceeded"}, headers={"x-ratelimit-remaining": "0"}
        ))
        with pytest.raises(TransientHostError):
            client.list_branches("acme", "app")

    def test_forbidden_is_fetch_error(self):
        client = _github(lambda r: httpx.Response(403, json={"message": "Forbidden"}))
        with pytest.raises(FetchError) as exc:
            client.list_branches("acme", "app")
        assert not isinstance(exc.value, TransientHostError)

    def test_network_error_is_transient(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(TransientHostError):
            _github(handler).list_branches("acme", "app")


class TestGitHubCompare:

    @pytest.mark.parametrize("status", ["ahead", "behind", "diverged", "identical"])
    def test_status(self, status):
        def handler(request):
            assert request.url.path == "/repos/acme/app/compare/aaa...bbb"
            return httpx.Response(200, json={"status": status})

        assert _github(handler).compare("acme", "app", "aaa", "bbb") == CompareStatus(status)

    @pytest.mark.parametrize("code", [404, 422])
    def test_missing_commit_is_confirmed_rewrite(self, code):
        client = _github(lambda r: httpx.Response(code, json={"message": "No common ancestor"}))
        with pytest.raises(ConfirmedRewrite):
            client.compare("acme", "app", "aaa", "bbb")

    def test_server_error_is_transient(self):
        client = _github(lambda r: httpx.Response(502, text="Bad Gateway"))
        with pytest.raises(TransientHostError):
            client.compare("acme", "app", "aaa", "bbb")

    def test_unknown_status(self):
        client = _github(lambda r: httpx.Response(200, json={"status": "sideways"}))
        with pytest.raises(FetchError, match="Unexpected compare status"):
            client.compare("acme", "app", "aaa", "bbb")


class TestGitea:

    def test_branches_follow_pagination(self):
        def handler(request):
            assert request.headers["Authorization"] == "token gitea-token"
            assert request.url.path == "/api/v1/repos/backup/app/branches"
            if request.url.params["page"] == "1":
                return httpx.Response(200, json=[{"name": f"b{i}", "commit": {"id": f"c{i}"}} for i in range(50)])
            return httpx.Response(200, json=[{"name": "tail", "commit": {"id": "t"}}])

        result = _gitea(handler).list_branches("backup", "app")
        assert len(result) == 51
        assert result[0].commit_id == "c0"

    def test_missing_repository(self):
        client = _gitea(lambda r: httpx.Response(404, json={"message": "The target couldn't be found."}))
        with pytest.raises(NotFoundError):
            client.list_branches("backup", "app")

    def test_trigger_mirror_sync(self):
        calls = []

        def handler(request):
            calls.append((request.method, request.url.path))
            return httpx.Response(200)

        _gitea(handler).trigger_mirror_sync("backup", "app")
        assert calls == [("POST", "/api/v1/repos/backup/app/mirror-sync")]

    def test_trigger_failure_raises(self):
        client = _gitea(lambda r: httpx.Response(500, text="oops"))
        with pytest.raises(TransientHostError):
            client.trigger_mirror_sync("backup", "app")

    def test_clone_url(self):
        client = _gitea(lambda r: httpx.Response(200))
        assert client.clone_url("backup", "app") == "https://gitea.test/backup/app.git"
