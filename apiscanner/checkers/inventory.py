"""API9 improper inventory management. Version exposure and leaked non-production servers."""

from typing import List

from apiscanner.checkers.base import BasePlugin
from apiscanner.core.context import ExecutionContext
from apiscanner.core.models import Finding, Severity
from apiscanner.parsers.openapi import OpenAPILoader

_VERSION_SEGMENTS = ("/v1/", "/v2/")
_NON_PROD_MARKERS = ("staging", "test", "dev")


class InventoryManagementPlugin(BasePlugin):

    id = "API9: InventoryManagement"
    title = "Improper Inventory Management"
    description = "Outdated API versions and undocumented environments in the published document"

    def run(self, ctx: ExecutionContext) -> List[Finding]:
        out: List[Finding] = []
        doc = ctx.openapi
        if not isinstance(doc, dict):
            out.append(self.finding("N/A", "N/A", 0, Severity.LOW,
                                    "OpenAPI document not available for analysis"))
            return out

        info = doc.get("info") or {}
        version = str(info.get("version") or "").strip()
        title = str(info.get("title") or "")
        if version:
            out.append(self.finding("/info", "N/A", 0, Severity.INFO,
                                    f"API version: {version} ({title})"))

        for path in doc.get("paths") or {}:
            if any(seg in path for seg in _VERSION_SEGMENTS):
                out.append(self.finding(
                    path, "N/A", 0, Severity.LOW,
                    "Endpoint carries a version in its path", path,
                    "Retire old versions and keep an inventory of every exposed version"))

        for url in OpenAPILoader.server_urls(doc):
            if any(marker in url for marker in _NON_PROD_MARKERS):
                out.append(self.finding(
                    url, "N/A", 0, Severity.MEDIUM,
                    "Server may be a test/staging environment", url,
                    "Do not publish non-production servers in the production document"))
        return out
