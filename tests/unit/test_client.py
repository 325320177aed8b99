"""Tests for the platform and identity service clients."""

from urllib.parse import parse_qs

import httpx
import pytest
import respx

from capi_cli.client.auth import BearerTokenAuth, resolve_auth
from capi_cli.client.errors import (
    AuthenticationError,
    NotFoundError,
    PlatformAPIError,
    PlatformConnectionError,
    RefreshGrantError,
    TokenRetrievalError,
    UAADiscoveryError,
)
from capi_cli.client.platform import PlatformClient, RootInfoDiscoverer, uaa_from_links
from capi_cli.client.uaa import UAAClient, token_url
from capi_cli.config.models import APIConfig

ROOT_DOC = {
    "links": {
        "self": {"href": "https://api.example.com"},
        "cloud_controller_v3": {"href": "https://api.example.com/v3"},
        "login": {"href": "https://login.example.com"},
        "uaa": {"href": "https://uaa.example.com"},
        "logging": None,
    }
}


def _form(request: httpx.Request) -> dict[str, str]:
    return {k: v[0] for k, v in parse_qs(request.content.decode(), keep_blank_values=True).items()}


class TestAuth:
    def test_bearer_auth(self):
        auth = BearerTokenAuth("abc")
        request = httpx.Request("GET", "https://example.com")
        modified = next(auth.auth_flow(request))
        assert modified.headers["Authorization"] == "Bearer abc"

    def test_resolve_auth_token(self):
        api = APIConfig(endpoint="https://api.example.com", token="abc")
        assert isinstance(resolve_auth(api), BearerTokenAuth)

    def test_resolve_auth_none(self):
        assert resolve_auth(APIConfig(endpoint="https://api.example.com")) is None


class TestPlatformClient:
    @respx.mock
    def test_get_links(self):
        respx.get("https://api.example.com/").mock(return_value=httpx.Response(200, json=ROOT_DOC))
        with PlatformClient(APIConfig(endpoint="https://api.example.com")) as client:
            links = client.get_links()
        assert links["uaa"] == "https://uaa.example.com"
        assert links["login"] == "https://login.example.com"
        assert "logging" not in links

    @respx.mock
    def test_sends_bearer_token(self):
        route = respx.get("https://api.example.com/").mock(return_value=httpx.Response(200, json=ROOT_DOC))
        with PlatformClient(APIConfig(endpoint="https://api.example.com", token="tok")) as client:
            client.get_root_info()
        assert route.calls.last.request.headers["Authorization"] == "Bearer tok"

    @respx.mock
    def test_401(self):
        respx.get("https://api.example.com/").mock(return_value=httpx.Response(401))
        with PlatformClient(APIConfig(endpoint="https://api.example.com")) as client:
            with pytest.raises(AuthenticationError):
                client.get_root_info()

    @respx.mock
    def test_404(self):
        respx.get("https://api.example.com/").mock(return_value=httpx.Response(404, json={"description": "gone"}))
        with PlatformClient(APIConfig(endpoint="https://api.example.com")) as client:
            with pytest.raises(NotFoundError):
                client.get_root_info()

    @respx.mock
    def test_500(self):
        respx.get("https://api.example.com/").mock(return_value=httpx.Response(500, text="boom"))
        with PlatformClient(APIConfig(endpoint="https://api.example.com")) as client:
            with pytest.raises(PlatformAPIError) as exc_info:
                client.get_root_info()
        assert exc_info.value.status_code == 500

    @respx.mock
    def test_connect_error(self):
        respx.get("https://api.example.com/").mock(side_effect=httpx.ConnectError("refused"))
        with PlatformClient(APIConfig(endpoint="https://api.example.com")) as client:
            with pytest.raises(PlatformConnectionError):
                client.get_root_info()

    @respx.mock
    def test_invalid_json(self):
        respx.get("https://api.example.com/").mock(return_value=httpx.Response(200, text="<html>"))
        with PlatformClient(APIConfig(endpoint="https://api.example.com")) as client:
            with pytest.raises(PlatformAPIError):
                client.get_root_info()


class TestUaaFromLinks:
    def test_prefers_uaa(self):
        assert uaa_from_links({"login": "https://login.x", "uaa": "https://uaa.x/"}) == "https://uaa.x"

    def test_falls_back_to_login(self):
        assert uaa_from_links({"login": "https://login.x"}) == "https://login.x"

    def test_none(self):
        assert uaa_from_links({"self": "https://api.x"}) == ""


class TestRootInfoDiscoverer:
    @respx.mock
    def test_discover(self):
        respx.get("https://api.example.com/").mock(return_value=httpx.Response(200, json=ROOT_DOC))
        uaa = RootInfoDiscoverer().discover_uaa(APIConfig(endpoint="https://api.example.com"))
        assert uaa == "https://uaa.example.com"

    @respx.mock
    def test_transport_error(self):
        respx.get("https://api.example.com/").mock(side_effect=httpx.ConnectError("refused"))
        with pytest.raises(UAADiscoveryError) as exc_info:
            RootInfoDiscoverer().discover_uaa(APIConfig(endpoint="https://api.example.com"))
        assert isinstance(exc_info.value.__cause__, PlatformConnectionError)

    @respx.mock
    def test_no_links(self):
        respx.get("https://api.example.com/").mock(return_value=httpx.Response(200, json={"links": {}}))
        with pytest.raises(UAADiscoveryError):
            RootInfoDiscoverer().discover_uaa(APIConfig(endpoint="https://api.example.com"))


class TestUAAClient:
    def test_token_url(self):
        assert token_url("https://uaa.example.com/") == "https://uaa.example.com/oauth/token"

    @respx.mock
    def test_refresh_grant(self):
        route = respx.post("https://uaa.example.com/oauth/token").mock(
            return_value=httpx.Response(200, json={
                "access_token": "new-access",
                "refresh_token": "new-refresh",
                "expires_in": 599,
                "token_type": "bearer",
            })
        )
        token = UAAClient().refresh_grant(
            "https://uaa.example.com", refresh_token="old-refresh", client_id="cf",
        )
        assert token.access_token == "new-access"
        assert token.refresh_token == "new-refresh"
        assert token.expires_at is not None
        assert route.call_count == 1
        assert _form(route.calls.last.request) == {
            "grant_type": "refresh_token",
            "refresh_token": "old-refresh",
            "client_id": "cf",
            "client_secret": "",
        }

    @respx.mock
    def test_refresh_grant_rejected_no_retry(self):
        route = respx.post("https://uaa.example.com/oauth/token").mock(
            return_value=httpx.Response(401, json={"error": "invalid_token", "error_description": "revoked"})
        )
        with pytest.raises(RefreshGrantError) as exc_info:
            UAAClient().refresh_grant("https://uaa.example.com", refresh_token="r", client_id="cf")
        assert "revoked" in str(exc_info.value)
        assert exc_info.value.exit_code == 3
        assert route.call_count == 1

    @respx.mock
    def test_refresh_grant_transport_error(self):
        respx.post("https://uaa.example.com/oauth/token").mock(side_effect=httpx.ConnectError("refused"))
        with pytest.raises(RefreshGrantError):
            UAAClient().refresh_grant("https://uaa.example.com", refresh_token="r", client_id="cf")

    @respx.mock
    def test_missing_access_token(self):
        respx.post("https://uaa.example.com/oauth/token").mock(
            return_value=httpx.Response(200, json={"token_type": "bearer"})
        )
        with pytest.raises(TokenRetrievalError):
            UAAClient().refresh_grant("https://uaa.example.com", refresh_token="r", client_id="cf")

    @respx.mock
    def test_non_json(self):
        respx.post("https://uaa.example.com/oauth/token").mock(return_value=httpx.Response(200, text="ok"))
        with pytest.raises(TokenRetrievalError):
            UAAClient().refresh_grant("https://uaa.example.com", refresh_token="r", client_id="cf")

    @respx.mock
    def test_password_grant(self):
        route = respx.post("https://uaa.example.com/oauth/token").mock(
            return_value=httpx.Response(200, json={"access_token": "a", "refresh_token": "r", "expires_in": 600})
        )
        token = UAAClient().password_grant(
            "https://uaa.example.com", username="admin", password="pw", client_id="cf",
        )
        assert token.refresh_token == "r"
        form = _form(route.calls.last.request)
        assert form["grant_type"] == "password"
        assert form["username"] == "admin"
        assert form["password"] == "pw"

    @respx.mock
    def test_password_grant_rejected(self):
        respx.post("https://uaa.example.com/oauth/token").mock(
            return_value=httpx.Response(401, json={"error": "unauthorized"})
        )
        with pytest.raises(AuthenticationError):
            UAAClient().password_grant(
                "https://uaa.example.com", username="admin", password="bad", client_id="cf",
            )
