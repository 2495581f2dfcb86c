"""Access token resolution and advisory validation."""

import re
from typing import Dict, Optional

import httpx

from apiscanner.core.errors import AuthError, ConfigurationError

BEARER_PREFIX = "bearer:"
TOKEN_PATH = "/auth/bank-token"
VALIDATION_PATH = "/accounts"

_WS_RX = re.compile(r"[\r\n\t]")


def clean_token(token: Optional[str]) -> str:
    if not token:
        return ""
    return _WS_RX.sub("", token).strip()


class TokenResolver:
    """
    First match wins: ``bearer:<token>`` argument, environment token,
    client-credentials exchange against ``{base_url}/auth/bank-token``.
    """

    def __init__(self, client: httpx.Client, base_url: str, logger=None):
        self.client = client
        self.base_url = base_url
        self.logger = logger
        self.source = ""

    def resolve(self, auth_arg: str = "", env_token: str = "",
                client_id: str = "", client_secret: str = "") -> str:
        token = self._from_arg(auth_arg)
        if token:
            self.source = "--auth"
            return token

        token = clean_token(env_token)
        if token:
            self.source = "environment"
            if self.logger:
                self.logger.info(f"Access token (from environment) detected, length: {len(token)}")
            return token

        if not (client_id and client_id.strip() and client_secret and client_secret.strip()):
            raise ConfigurationError(
                "No valid token found. Provide:\n"
                "1. --auth 'bearer:YOUR_TOKEN' OR\n"
                "2. BANK_TOKEN environment variable OR\n"
                "3. --client-id and --client-secret to fetch a token automatically")

        self.source = "client-credentials"
        return self._exchange(client_id.strip(), client_secret.strip())

    def _from_arg(self, auth_arg: str) -> str:
        if not auth_arg or not auth_arg.strip():
            return ""
        if not auth_arg.lower().startswith(BEARER_PREFIX):
            if self.logger:
                preview = auth_arg if len(auth_arg) <= 20 else auth_arg[:20] + "..."
                self.logger.warn(f"Auth argument should start with 'bearer:', got: {preview}")
            return ""
        token = clean_token(auth_arg[len(BEARER_PREFIX):])
        if not token:
            if self.logger:
                self.logger.warn("Bearer token is empty after 'bearer:' prefix")
            return ""
        if self.logger:
            self.logger.info(f"Access token (from --auth) detected, length: {len(token)}")
        return token

    def _exchange(self, client_id: str, client_secret: str) -> str:
        url = f"{self.base_url}{TOKEN_PATH}"
        if self.logger:
            self.logger.info("Attempting to fetch token using client credentials...")
            self.logger.debug(f"POST {url}")
        try:
            r = self.client.post(url, params={"client_id": client_id, "client_secret": client_secret},
                                 content=b"")
        except httpx.HTTPError as exc:
            raise AuthError(f"Token request failed: {exc}") from exc

        if self.logger:
            self.logger.debug(f"Auth response status: {r.status_code}")
        if not r.is_success:
            raise AuthError(f"Auth failed: {r.status_code} - {r.text[:200]}")
        try:
            data = r.json()
        except ValueError as exc:
            raise AuthError(f"Auth response is not JSON: {r.text[:200]}") from exc

        token = clean_token(data.get("access_token") if isinstance(data, dict) else None)
        if not token:
            raise AuthError(f"Auth response has no access_token: {r.text[:200]}")
        if self.logger:
            self.logger.ok(f"Access token received, length: {len(token)}")
        return token

    def validate(self, token: str, extra_headers: Optional[Dict[str, str]] = None) -> bool:
        """Probe a protected resource; 401/403 or a network error means the token looks invalid."""
        if not token:
            return False
        headers = {"Authorization": f"Bearer {token}"}
        headers.update(extra_headers or {})
        try:
            r = self.client.get(f"{self.base_url}{VALIDATION_PATH}", headers=headers)
        except httpx.HTTPError as exc:
            if self.logger:
                self.logger.warn(f"Token validation request failed: {exc}")
            return False
        if self.logger:
            self.logger.debug(f"Token validation request: {r.status_code}")
        return r.status_code not in (401, 403)
