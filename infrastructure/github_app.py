# ============================================================================
# GITHUB APP CLIENT
# ============================================================================
# EPOCH: 1 - SPOT PROVISIONING
# STATUS: Infrastructure - Sync HTTP client for the upstream job queue
# PURPOSE: App JWT, installation tokens, JIT runner configs, identity check
# CREATED: 06 OCT 2026
# ============================================================================
"""
GitHub App Client

Sync httpx client for the GitHub REST API, authenticated as a GitHub App.

Auth chain:
    private key --RS256--> app JWT (10 min) --POST--> installation token (1 h)

Installation tokens are cached per installation in a TtlCache until five
minutes before their expiry. App JWTs are minted per call; they are cheap
and short-lived.

Azure Functions are synchronous, so this uses the httpx sync client.
Non-2xx responses and transport failures raise UpstreamApiError, except in
check_connectivity(), which categorises instead of raising.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx
import jwt

from core.cache import Clock, SystemClock, TtlCache
from core.config import get_defaults
from core.contracts import ConnectivityStatus
from core.errors import CredentialNotConfiguredError, UpstreamApiError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = httpx.Timeout(connect=10.0, read=30.0, write=10.0, pool=10.0)
API_VERSION = "2022-11-28"
ACCEPT = "application/vnd.github+json"


@dataclass(frozen=True)
class InstallationToken:
    token: str = field(repr=False)
    expires_at: datetime

    def seconds_until_expiry(self, clock: Clock) -> float:
        return (self.expires_at - clock.now()).total_seconds()


@dataclass
class ConnectivityResult:
    """Outcome of the app identity check."""
    status: ConnectivityStatus
    message: Optional[str] = None
    app_slug: Optional[str] = None

    @classmethod
    def connected(cls, app_slug: Optional[str] = None) -> "ConnectivityResult":
        return cls(status=ConnectivityStatus.CONNECTED, app_slug=app_slug)

    @classmethod
    def auth_error(cls, message: str) -> "ConnectivityResult":
        return cls(status=ConnectivityStatus.AUTH_ERROR, message=message)

    @classmethod
    def unreachable(cls, message: str) -> "ConnectivityResult":
        return cls(status=ConnectivityStatus.UNREACHABLE, message=message)

    @classmethod
    def unexpected(cls, message: str) -> "ConnectivityResult":
        return cls(status=ConnectivityStatus.UNEXPECTED_ERROR, message=message)

    @property
    def is_connected(self) -> bool:
        return self.status == ConnectivityStatus.CONNECTED

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"status": self.status.value}
        if self.message:
            result["message"] = self.message
        if self.is_connected and self.app_slug:
            result["appSlug"] = self.app_slug
        return result


def _parse_timestamp(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class GitHubAppClient:
    """Sync HTTP client for the GitHub App API."""

    def __init__(
        self,
        app_id: Optional[str],
        private_key: Optional[str],
        api_url: str = "https://api.github.com",
        http_client: Optional[httpx.Client] = None,
        token_cache: Optional[TtlCache] = None,
        clock: Optional[Clock] = None,
    ):
        self._app_id = app_id
        self._private_key = private_key
        self._api_url = api_url.rstrip("/")
        self._http = http_client or httpx.Client(timeout=DEFAULT_TIMEOUT)
        self._clock = clock or SystemClock()
        self._tokens = token_cache or TtlCache(clock=self._clock)
        self._timeouts = get_defaults().timeouts
        self._runner = get_defaults().runner

    # ------------------------------------------------------------------
    # AUTH
    # ------------------------------------------------------------------

    def create_app_jwt(self) -> str:
        """RS256 JWT identifying the app (backdated 60 s for clock skew)."""
        if not self._app_id or not self._private_key:
            raise CredentialNotConfiguredError("GitHub App id or private key not configured")

        now = int(self._clock.now().timestamp())
        payload = {
            "iat": now - self._timeouts.app_jwt_backdate_seconds,
            "exp": now + self._timeouts.app_jwt_lifetime_seconds,
            "iss": str(self._app_id),
        }
        return jwt.encode(payload, self._private_key, algorithm="RS256")

    def _headers(self, authorization: str) -> Dict[str, str]:
        return {
            "Accept": ACCEPT,
            "Authorization": authorization,
            "X-GitHub-Api-Version": API_VERSION,
        }

    def _request(
        self,
        method: str,
        path: str,
        authorization: str,
        json_body: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        url = f"{self._api_url}{path}"
        try:
            resp = self._http.request(method, url, headers=self._headers(authorization), json=json_body)
        except httpx.TimeoutException as e:
            raise UpstreamApiError(f"GitHub API timeout: {method} {path}") from e
        except httpx.HTTPError as e:
            raise UpstreamApiError(f"GitHub API unreachable: {method} {path}: {e}") from e

        if resp.status_code >= 400:
            logger.error(f"GitHub API {resp.status_code}: {method} {path}")
            raise UpstreamApiError(
                f"GitHub API error {resp.status_code} on {method} {path}: {resp.text[:200]}",
                status_code=resp.status_code,
            )
        return resp.json()

    def create_installation_token(self, installation_id: int) -> InstallationToken:
        """POST /app/installations/{id}/access_tokens"""
        body = self._request(
            "POST",
            f"/app/installations/{installation_id}/access_tokens",
            authorization=f"Bearer {self.create_app_jwt()}",
        )
        return InstallationToken(token=body["token"], expires_at=_parse_timestamp(body["expires_at"]))

    def get_installation_token(self, installation_id: int) -> str:
        """Installation token, reused until 5 minutes before expiry."""
        buffer = self._timeouts.token_refresh_buffer_seconds
        token = self._tokens.get_or_refresh(
            f"installation:{installation_id}",
            ttl=lambda tok: tok.seconds_until_expiry(self._clock) - buffer,
            loader=lambda: self.create_installation_token(installation_id),
        )
        return token.token

    # ------------------------------------------------------------------
    # RUNNERS
    # ------------------------------------------------------------------

    def generate_jit_config(
        self,
        installation_id: int,
        repo_full_name: str,
        labels: List[str],
        runner_name: str,
    ) -> str:
        """
        Single-use runner registration scoped to one repository.

        POST /repos/{owner}/{repo}/actions/runners/generate-jitconfig

        Returns:
            Base64 encoded JIT config (opaque to us, consumed by the runner)
        """
        token = self.get_installation_token(installation_id)
        body = self._request(
            "POST",
            f"/repos/{repo_full_name}/actions/runners/generate-jitconfig",
            authorization=f"token {token}",
            json_body={
                "name": runner_name,
                "runner_group_id": self._runner.runner_group_id,
                "labels": labels,
                "work_folder": self._runner.work_folder,
            },
        )
        jit_config = body.get("encoded_jit_config") or body.get("runner_jit_config")
        if not jit_config:
            raise UpstreamApiError("GitHub API returned no encoded_jit_config")
        return jit_config

    # ------------------------------------------------------------------
    # CONNECTIVITY
    # ------------------------------------------------------------------

    def check_connectivity(self) -> ConnectivityResult:
        """GET /app with the app JWT, categorised. Never raises."""
        try:
            app_jwt = self.create_app_jwt()
        except CredentialNotConfiguredError as e:
            return ConnectivityResult.auth_error(str(e))
        except (jwt.PyJWTError, ValueError) as e:
            # Malformed PEM surfaces from the crypto backend as ValueError
            return ConnectivityResult.auth_error(f"Private key unusable: {type(e).__name__}")

        try:
            resp = self._http.get(f"{self._api_url}/app", headers=self._headers(f"Bearer {app_jwt}"))
        except httpx.TimeoutException:
            return ConnectivityResult.unreachable("GitHub API timeout")
        except httpx.HTTPError as e:
            return ConnectivityResult.unreachable(f"GitHub API unreachable: {type(e).__name__}")

        if resp.status_code == 200:
            return ConnectivityResult.connected(app_slug=resp.json().get("slug"))
        if resp.status_code in (401, 403):
            return ConnectivityResult.auth_error(f"GitHub rejected app credentials ({resp.status_code})")
        return ConnectivityResult.unexpected(f"GitHub API returned {resp.status_code}")


__all__ = ["GitHubAppClient", "InstallationToken", "ConnectivityResult"]
