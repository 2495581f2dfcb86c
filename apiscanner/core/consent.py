"""Consent (cross-bank data access grant) creation and status check."""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from apiscanner.core.models import Consent, ConsentStatus, Finding, Severity
from apiscanner.core.validator import body_snippet

CONSENT_REQUEST_PATH = "/account-consents/request"
CONSENT_PATH = "/account-consents"
PERMISSIONS = ["ReadAccountsDetail", "ReadBalances", "ReadTransactions"]
TAG = "ConsentManagement"


def extract_consent_id(data: Any) -> Optional[str]:
    if not isinstance(data, dict):
        return None
    if data.get("consent_id"):
        return str(data["consent_id"])
    inner = data.get("data")
    if isinstance(inner, dict) and inner.get("consentId"):
        return str(inner["consentId"])
    if data.get("id"):
        return str(data["id"])
    return None


class ConsentManager:
    """Creates a consent and polls its status once. Outcomes become findings, never errors."""

    def __init__(self, client: httpx.Client, base_url: str, token: str, requesting_bank: str,
                 interbank_client_id: str, findings: List[Finding],
                 extra_headers: Optional[Dict[str, str]] = None, logger=None):
        self.client = client
        self.base_url = base_url
        self.token = token
        self.requesting_bank = requesting_bank
        self.interbank_client_id = interbank_client_id
        self.findings = findings
        self.extra_headers = extra_headers or {}
        self.logger = logger

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.token}",
            "X-Requesting-Bank": self.requesting_bank,
        }
        headers.update(self.extra_headers)
        return headers

    def request_body(self) -> Dict[str, Any]:
        valid_until = (datetime.now() + timedelta(hours=1)).isoformat(timespec="seconds")
        return {
            "client_id": self.interbank_client_id,
            "permissions": list(PERMISSIONS),
            "reason": "Security scanning and penetration testing",
            "requesting_bank": self.requesting_bank,
            "requesting_bank_name": f"Security Scanner Team {self.requesting_bank}",
            "valid_until": valid_until,
        }

    def _record(self, status: int, severity: Severity, message: str, evidence: str = "",
                endpoint: str = CONSENT_REQUEST_PATH, method: str = "POST"):
        self.findings.append(Finding(endpoint, method, status, TAG, severity, message, evidence))

    def create(self) -> Optional[str]:
        url = f"{self.base_url}{CONSENT_REQUEST_PATH}"
        body = self.request_body()
        if self.logger:
            self.logger.info(f"Creating consent for client: {self.interbank_client_id}")
            self.logger.debug(f"POST {url} Body: {body}")
        try:
            r = self.client.post(url, json=body, headers=self._headers())
        except httpx.HTTPError as exc:
            self._record(0, Severity.MEDIUM, f"Consent request failed: {exc}")
            if self.logger:
                self.logger.fail(f"Consent request failed: {exc}")
            return None

        code = r.status_code
        evidence = body_snippet(r.text)
        if self.logger:
            self.logger.info(f"Create consent status: {code}")

        if code in (200, 201):
            try:
                consent_id = extract_consent_id(r.json())
            except ValueError:
                consent_id = None
            if consent_id:
                self._record(code, Severity.INFO,
                             f"Consent created for security testing: {consent_id}",
                             f"Client: {self.interbank_client_id}")
                if self.logger:
                    self.logger.ok(f"Consent created successfully: {consent_id}")
                return consent_id
            self._record(code, Severity.MEDIUM, "Consent created but no consent_id in response", evidence)
        elif code == 401:
            self._record(code, Severity.HIGH, "Consent creation failed - authentication required", evidence)
        elif code == 403:
            self._record(code, Severity.HIGH, "Consent creation failed - insufficient permissions", evidence)
        else:
            self._record(code, Severity.MEDIUM, f"Consent creation failed with status: {code}", evidence)
        if self.logger:
            self.logger.fail(f"Consent creation failed (HTTP {code})")
        return None

    def check_status(self, consent_id: str) -> Consent:
        consent = Consent(consent_id)
        url = f"{self.base_url}{CONSENT_PATH}/{quote(consent_id, safe='')}"
        if self.logger:
            self.logger.debug(f"Checking consent status: {consent_id}")
        try:
            r = self.client.get(url, headers=self._headers())
        except httpx.HTTPError as exc:
            if self.logger:
                self.logger.warn(f"Consent status check failed: {exc}")
            return consent

        if r.status_code != 200:
            if self.logger:
                self.logger.debug(f"Consent check failed: {r.status_code}")
            return consent
        try:
            data = r.json()
        except ValueError:
            return consent
        raw = data.get("status") if isinstance(data, dict) else None
        if raw is None and isinstance(data, dict) and isinstance(data.get("data"), dict):
            raw = data["data"].get("status")
        consent.raw_status = str(raw or "")
        consent.status = ConsentStatus.from_text(consent.raw_status)
        return consent

    def establish(self) -> Optional[Consent]:
        """Create, then check once. Absence or inactivity is recorded, not raised."""
        consent_id = self.create()
        if not consent_id:
            self._record(0, Severity.MEDIUM, "Running without valid consent",
                         endpoint=CONSENT_PATH, method="N/A")
            if self.logger:
                self.logger.warn("Running without consent - sensitive endpoints will return 403")
            return None

        consent = self.check_status(consent_id)
        if consent.usable:
            if self.logger:
                self.logger.ok(f"Using active consent: {consent_id}")
        else:
            self._record(0, Severity.LOW,
                         f"Consent {consent_id} is not active (status: {consent.raw_status or 'unknown'})",
                         endpoint=f"{CONSENT_PATH}/{consent_id}", method="GET")
            if self.logger:
                self.logger.warn("Consent may not be active, some tests may fail")
        return consent
