"""Shared data models for the API scanner."""

from copy import deepcopy
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Dict, Optional


class Severity(IntEnum):
    """Ordered severity, HIGH is the most severe."""
    INFO = 0
    LOW = 1
    MEDIUM = 2
    HIGH = 3

    def __str__(self):
        return self.name


@dataclass
class Finding:
    """A single observation produced during a run."""
    endpoint: str
    method: str
    status: int             # 0 when no HTTP exchange happened
    owasp: str              # "API8: SecurityMisconfig", "ContractMismatch", ...
    severity: Severity
    message: str
    evidence: str = ""      # Truncated response/body snippet
    recommendation: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "endpoint": self.endpoint,
            "method": self.method,
            "status": self.status,
            "owasp": self.owasp,
            "severity": self.severity.name,
            "message": self.message,
            "evidence": self.evidence,
            "recommendation": self.recommendation,
        }

    def __str__(self):
        return (f"[{self.severity.name}] {self.owasp} {self.method} {self.endpoint} "
                f"(HTTP {self.status}) - {self.message}")


@dataclass
class Scenario:
    """One synthesized HTTP request derived from a declared operation."""
    path: str
    method: str
    query: Dict[str, str] = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[Any] = None
    label: str = "positive"     # "positive" / "negative"

    def copy(self) -> "Scenario":
        return Scenario(
            path=self.path,
            method=self.method,
            query=dict(self.query),
            headers=dict(self.headers),
            body=deepcopy(self.body),
            label=self.label,
        )

    def __str__(self):
        return f"{self.method} {self.path} [{self.label}]"


class ConsentStatus(Enum):
    UNKNOWN = "unknown"
    PENDING = "pending"
    ACTIVE = "active"
    OTHER = "other"

    @classmethod
    def from_text(cls, text: Optional[str]) -> "ConsentStatus":
        value = (text or "").strip().lower()
        if not value:
            return cls.UNKNOWN
        if value in ("approved", "active"):
            return cls.ACTIVE
        if value in ("pending", "awaitingauthorization", "awaitingauthorisation"):
            return cls.PENDING
        return cls.OTHER


@dataclass
class Consent:
    """Authorization grant required for cross-bank data access."""
    consent_id: str
    status: ConsentStatus = ConsentStatus.UNKNOWN
    raw_status: str = ""

    @property
    def usable(self) -> bool:
        return self.status is ConsentStatus.ACTIVE
