"""API2 broken authentication. Protected resource reachable without valid credentials."""

from typing import List

import httpx

from apiscanner.checkers.base import BasePlugin
from apiscanner.core.context import ExecutionContext
from apiscanner.core.models import Finding, Severity

PROTECTED_RESOURCE = "/accounts"
FORGED_TOKEN = "invalid.token.value"


class BrokenAuthenticationPlugin(BasePlugin):

    id = "API2: BrokenAuthentication"
    title = "Broken Authentication"
    description = "Protected resource requested with no token and with a forged token"

    def run(self, ctx: ExecutionContext) -> List[Finding]:
        out: List[Finding] = []
        url = ctx.url(PROTECTED_RESOURCE)
        attempts = [
            ("no credentials", {}),
            ("forged bearer token", {"Authorization": f"Bearer {FORGED_TOKEN}"}),
        ]
        for label, auth in attempts:
            headers = dict(ctx.extra_headers)
            headers.update(auth)
            try:
                r = ctx.http.get(url, headers=headers)
            except httpx.HTTPError:
                continue
            if ctx.logger:
                ctx.logger.debug(f"{self.id} {label} -> {r.status_code}")
            if r.is_success:
                out.append(self.finding(
                    PROTECTED_RESOURCE, "GET", r.status_code, Severity.HIGH,
                    f"Protected resource accessible with {label}", self.snippet(r.text),
                    "Reject requests without a valid, verified access token"))
        return out
