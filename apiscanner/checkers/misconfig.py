"""API8 security misconfiguration. Exposed debug endpoints and missing security headers."""

from typing import List

import httpx

from apiscanner.checkers.base import BasePlugin
from apiscanner.core.context import ExecutionContext
from apiscanner.core.models import Finding, Severity

DEBUG_ENDPOINTS = ("/debug", "/actuator", "/metrics", "/health", "/status", "/test")
SENSITIVE_KEYWORDS = ("memory", "heap", "database", "config")
PRIMARY_RESOURCE = "/accounts"

SECURITY_HEADERS = {
    "Strict-Transport-Security": Severity.HIGH,
    "X-Content-Type-Options": Severity.MEDIUM,
    "X-Frame-Options": Severity.MEDIUM,
    "Content-Security-Policy": Severity.MEDIUM,
}


class SecurityMisconfigPlugin(BasePlugin):

    id = "API8: SecurityMisconfig"
    title = "Security Misconfiguration"
    description = "Debug and management endpoints, missing security response headers"

    def run(self, ctx: ExecutionContext) -> List[Finding]:
        out: List[Finding] = []
        headers = ctx.auth_headers()

        for endpoint in DEBUG_ENDPOINTS:
            try:
                r = ctx.http.get(ctx.url(endpoint), headers=headers)
            except httpx.HTTPError:
                continue
            if r.status_code != 200:
                continue
            body = r.text or ""
            if any(kw in body for kw in SENSITIVE_KEYWORDS):
                out.append(self.finding(
                    endpoint, "GET", r.status_code, Severity.MEDIUM,
                    "Debug endpoint exposes system information", self.snippet(body),
                    "Disable or protect debug and management endpoints in production"))

        url = ctx.url(PRIMARY_RESOURCE)
        try:
            r = ctx.http.get(url, headers=headers)
        except httpx.HTTPError:
            return out
        self._check_security_headers(out, r, url)
        return out

    def _check_security_headers(self, out: List[Finding], response: httpx.Response, endpoint: str):
        for name, severity in SECURITY_HEADERS.items():
            value = response.headers.get(name, "")
            if not value.strip():
                out.append(self.finding(
                    endpoint, "GET", response.status_code, severity,
                    f"Missing security header: {name}",
                    recommendation=f"Send {name} on every response"))
