"""Execution context shared by every plugin."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from apiscanner.core.models import Finding


@dataclass
class ExecutionContext:
    base_url: str
    access_token: str
    requesting_bank: str
    interbank_client_id: str
    consent_id: Optional[str]
    verbose: bool
    http: httpx.Client
    loader: Any                         # OpenAPILoader
    openapi: Optional[Dict[str, Any]]
    findings: List[Finding]             # shared, append-only
    extra_headers: Dict[str, str] = field(default_factory=dict)
    logger: Any = None

    def url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def auth_headers(self) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        headers.update(self.extra_headers)
        return headers
