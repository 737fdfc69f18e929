# ============================================================================
# GITHUB APP CLIENT TESTS
# ============================================================================
# EPOCH: 1 - SPOT PROVISIONING
# STATUS: Tests - App auth, token cache, JIT config, connectivity
# PURPOSE: Verify the upstream client against an httpx mock transport
# CREATED: 11 OCT 2026
# ============================================================================
"""
GitHub App Client Tests

No network: every request goes through httpx.MockTransport. A throwaway
RSA key is generated once per module for JWT signing.

Run with:
    pytest tests/test_github_app.py -v
"""

import json
from datetime import timedelta

import httpx
import jwt
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from core.contracts import ConnectivityStatus
from core.errors import CredentialNotConfiguredError, UpstreamApiError
from infrastructure.github_app import GitHubAppClient

from fakes import FakeClock

API = "https://api.github.com"


# ============================================================================
# FIXTURES / HELPERS
# ============================================================================

@pytest.fixture(scope="module")
def rsa_key():
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    pem = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode("ascii")
    return pem, key.public_key()


class _Recorder:
    """MockTransport handler that records requests and replays canned responses."""

    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes[(request.method, request.url.path)]
        return handler(request) if callable(handler) else handler

    def count(self, method, path):
        return sum(1 for r in self.requests if r.method == method and r.url.path == path)


def _make_client(pem, routes, clock=None, app_id="12345"):
    recorder = _Recorder(routes)
    clock = clock or FakeClock()
    client = GitHubAppClient(
        app_id=app_id,
        private_key=pem,
        api_url=API,
        http_client=httpx.Client(transport=httpx.MockTransport(recorder)),
        clock=clock,
    )
    return client, recorder, clock


def _token_response(clock, lifetime=timedelta(hours=1), token="ghs_test"):
    def handler(request):
        expires = (clock.now() + lifetime).strftime("%Y-%m-%dT%H:%M:%SZ")
        return httpx.Response(201, json={"token": token, "expires_at": expires})
    return handler


TOKEN_PATH = "/app/installations/77/access_tokens"
JIT_PATH = "/repos/octo/repo/actions/runners/generate-jitconfig"


# ============================================================================
# APP JWT
# ============================================================================

class TestAppJwt:

    def test_claims(self, rsa_key):
        pem, public_key = rsa_key
        client, _, clock = _make_client(pem, {})

        token = client.create_app_jwt()
        claims = jwt.decode(token, public_key, algorithms=["RS256"],
                            options={"verify_exp": False, "verify_iat": False})

        now = int(clock.now().timestamp())
        assert claims["iss"] == "12345"
        assert claims["iat"] == now - 60
        assert claims["exp"] == now + 600

    def test_missing_credentials(self):
        client = GitHubAppClient(app_id=None, private_key=None, http_client=httpx.Client())
        with pytest.raises(CredentialNotConfiguredError):
            client.create_app_jwt()


# ============================================================================
# INSTALLATION TOKENS
# ============================================================================

class TestInstallationToken:

    def test_token_reused_until_refresh_window(self, rsa_key):
        pem, _ = rsa_key
        clock = FakeClock()
        client, recorder, _ = _make_client(pem, {("POST", TOKEN_PATH): _token_response(clock)}, clock=clock)

        assert client.get_installation_token(77) == "ghs_test"
        clock.advance(54 * 60)
        client.get_installation_token(77)
        assert recorder.count("POST", TOKEN_PATH) == 1

        # Inside the 5 minute buffer before expiry
        clock.advance(2 * 60)
        client.get_installation_token(77)
        assert recorder.count("POST", TOKEN_PATH) == 2

    def test_token_request_uses_app_jwt(self, rsa_key):
        pem, _ = rsa_key
        clock = FakeClock()
        client, recorder, _ = _make_client(pem, {("POST", TOKEN_PATH): _token_response(clock)}, clock=clock)

        client.get_installation_token(77)

        auth = recorder.requests[0].headers["Authorization"]
        assert auth.startswith("Bearer ")
        assert recorder.requests[0].headers["X-GitHub-Api-Version"] == "2022-11-28"

    def test_token_error(self, rsa_key):
        pem, _ = rsa_key
        client, _, _ = _make_client(pem, {("POST", TOKEN_PATH): httpx.Response(404, json={"message": "Not Found"})})
        with pytest.raises(UpstreamApiError) as exc:
            client.get_installation_token(77)
        assert exc.value.status_code == 404


# ============================================================================
# JIT CONFIG
# ============================================================================

class TestJitConfig:

    def _routes(self, clock, jit_response):
        return {
            ("POST", TOKEN_PATH): _token_response(clock),
            ("POST", JIT_PATH): jit_response,
        }

    def test_returns_encoded_config(self, rsa_key):
        pem, _ = rsa_key
        clock = FakeClock()
        routes = self._routes(clock, httpx.Response(201, json={"runner": {"id": 1}, "encoded_jit_config": "ZW5j"}))
        client, recorder, _ = _make_client(pem, routes, clock=clock)

        config = client.generate_jit_config(77, "octo/repo", ["linux", "x64"], "spot-runner-9001")

        assert config == "ZW5j"
        request = recorder.requests[-1]
        assert request.headers["Authorization"] == "token ghs_test"
        body = json.loads(request.content)
        assert body == {
            "name": "spot-runner-9001",
            "runner_group_id": 1,
            "labels": ["linux", "x64"],
            "work_folder": "_work",
        }

    def test_alternate_response_key(self, rsa_key):
        pem, _ = rsa_key
        clock = FakeClock()
        routes = self._routes(clock, httpx.Response(201, json={"runner_jit_config": "YWx0"}))
        client, _, _ = _make_client(pem, routes, clock=clock)
        assert client.generate_jit_config(77, "octo/repo", [], "r") == "YWx0"

    def test_missing_config_in_response(self, rsa_key):
        pem, _ = rsa_key
        clock = FakeClock()
        routes = self._routes(clock, httpx.Response(201, json={"runner": {}}))
        client, _, _ = _make_client(pem, routes, clock=clock)
        with pytest.raises(UpstreamApiError):
            client.generate_jit_config(77, "octo/repo", [], "r")

    def test_upstream_rejection(self, rsa_key):
        pem, _ = rsa_key
        clock = FakeClock()
        routes = self._routes(clock, httpx.Response(422, json={"message": "Validation Failed"}))
        client, _, _ = _make_client(pem, routes, clock=clock)
        with pytest.raises(UpstreamApiError) as exc:
            client.generate_jit_config(77, "octo/repo", [], "r")
        assert exc.value.status_code == 422


# ============================================================================
# CONNECTIVITY
# ============================================================================

class TestConnectivity:

    def test_connected(self, rsa_key):
        pem, _ = rsa_key
        client, _, _ = _make_client(pem, {("GET", "/app"): httpx.Response(200, json={"slug": "spot-runner"})})
        result = client.check_connectivity()
        assert result.status == ConnectivityStatus.CONNECTED
        assert result.app_slug == "spot-runner"
        assert result.to_dict() == {"status": "connected", "appSlug": "spot-runner"}

    @pytest.mark.parametrize("code", [401, 403])
    def test_rejected_credentials(self, rsa_key, code):
        pem, _ = rsa_key
        client, _, _ = _make_client(pem, {("GET", "/app"): httpx.Response(code)})
        assert client.check_connectivity().status == ConnectivityStatus.AUTH_ERROR

    def test_server_error(self, rsa_key):
        pem, _ = rsa_key
        client, _, _ = _make_client(pem, {("GET", "/app"): httpx.Response(502)})
        assert client.check_connectivity().status == ConnectivityStatus.UNEXPECTED_ERROR

    def test_unreachable(self, rsa_key):
        pem, _ = rsa_key

        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        client, _, _ = _make_client(pem, {("GET", "/app"): refuse})
        assert client.check_connectivity().status == ConnectivityStatus.UNREACHABLE

    def test_timeout(self, rsa_key):
        pem, _ = rsa_key

        def slow(request):
            raise httpx.ReadTimeout("timed out", request=request)

        client, _, _ = _make_client(pem, {("GET", "/app"): slow})
        result = client.check_connectivity()
        assert result.status == ConnectivityStatus.UNREACHABLE
        assert "timeout" in result.message.lower()

    def test_unusable_key(self):
        client, recorder, _ = _make_client("not a pem key", {})
        result = client.check_connectivity()
        assert result.status == ConnectivityStatus.AUTH_ERROR
        assert recorder.requests == []

    def test_missing_credentials(self):
        client, recorder, _ = _make_client(None, {})
        assert client.check_connectivity().status == ConnectivityStatus.AUTH_ERROR
        assert recorder.requests == []
