"""Abstract base for all security plugins."""

from abc import ABC, abstractmethod
from typing import List

from apiscanner.core.context import ExecutionContext
from apiscanner.core.models import Finding, Severity


class BasePlugin(ABC):
    """Every plugin must set id/title/description and implement run()."""

    id: str = "Unnamed"
    title: str = "Unnamed Plugin"
    description: str = ""

    # ── public API ──────────────────────────────────────────────

    @abstractmethod
    def run(self, ctx: ExecutionContext) -> List[Finding]:
        """
        Run the check against the shared context and return new findings.
        May raise; the registry turns the error into a finding.
        """
        ...

    # ── shared helpers ──────────────────────────────────────────

    def finding(self, endpoint: str, method: str, status: int, severity: Severity,
                message: str, evidence: str = "", recommendation: str = "") -> Finding:
        """Finding stamped with this plugin's id, with single-line text."""
        return Finding(endpoint, method, status, self.id, severity,
                       self.clean(message), evidence, self.clean(recommendation))

    @staticmethod
    def clean(message: str) -> str:
        if not message:
            return ""
        return message.replace("\n", " ").replace("\r", " ").replace("\t", " ").strip()

    @staticmethod
    def snippet(body: str, n: int = 400) -> str:
        if not body:
            return ""
        return body[:n] + "...(truncated)" if len(body) > n else body
