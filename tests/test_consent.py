import json

import httpx
import pytest

from apiscanner.core.consent import PERMISSIONS, ConsentManager, extract_consent_id
from apiscanner.core.models import ConsentStatus, Severity
from conftest import BASE, mock_client


def _manager(handler, findings):
    return ConsentManager(mock_client(handler), BASE, "tok", "team042", "team042-1", findings,
                          extra_headers={"X-Trace": "1"})


def _bank(create, status_body=None):
    """Consent endpoints: *create* answers the request, *status_body* the status lookup."""
    seen = []

    def handler(request):
        seen.append(request)
        if request.url.path == "/account-consents/request":
            return create
        if status_body is None:
            return httpx.Response(404)
        return httpx.Response(200, json=status_body)

    return handler, seen


@pytest.mark.parametrize("text,status", [
    ("approved", ConsentStatus.ACTIVE),
    ("Active", ConsentStatus.ACTIVE),
    ("pending", ConsentStatus.PENDING),
    ("AwaitingAuthorization", ConsentStatus.PENDING),
    ("awaitingauthorisation", ConsentStatus.PENDING),
    ("", ConsentStatus.UNKNOWN),
    (None, ConsentStatus.UNKNOWN),
    ("revoked", ConsentStatus.OTHER),
])
def test_status_mapping(text, status):
    assert ConsentStatus.from_text(text) is status


@pytest.mark.parametrize("data,expected", [
    ({"consent_id": "c-1", "id": "other"}, "c-1"),
    ({"data": {"consentId": "c-2"}}, "c-2"),
    ({"id": 17}, "17"),
    ({"status": "approved"}, None),
    (["c-1"], None),
])
def test_extract_consent_id(data, expected):
    assert extract_consent_id(data) == expected


class TestEstablish:

    def test_active_consent(self):
        findings = []
        handler, seen = _bank(httpx.Response(201, json={"consent_id": "c-1"}), {"status": "approved"})
        consent = _manager(handler, findings).establish()

        assert consent.consent_id == "c-1"
        assert consent.usable
        assert [(f.owasp, f.severity) for f in findings] == [("ConsentManagement", Severity.INFO)]

        create = seen[0]
        body = json.loads(create.content)
        assert body["client_id"] == "team042-1"
        assert body["requesting_bank"] == "team042"
        assert body["permissions"] == PERMISSIONS
        assert create.headers["X-Requesting-Bank"] == "team042"
        assert create.headers["Authorization"] == "Bearer tok"
        assert create.headers["X-Trace"] == "1"
        assert seen[1].url.path == "/account-consents/c-1"

    def test_nested_status(self):
        findings = []
        handler, _ = _bank(httpx.Response(200, json={"data": {"consentId": "c-9"}}),
                           {"data": {"status": "AwaitingAuthorisation"}})
        consent = _manager(handler, findings).establish()
        assert consent.status is ConsentStatus.PENDING
        assert [f.severity for f in findings] == [Severity.INFO, Severity.LOW]
        assert "not active (status: AwaitingAuthorisation)" in findings[1].message

    def test_consent_id_is_escaped_in_status_path(self):
        findings = []
        handler, seen = _bank(httpx.Response(201, json={"consent_id": "c/1 x?"}), {"status": "active"})
        consent = _manager(handler, findings).establish()
        assert consent.usable
        assert seen[1].url.raw_path == b"/account-consents/c%2F1%20x%3F"

    def test_status_lookup_failure_keeps_unknown(self):
        findings = []
        handler, _ = _bank(httpx.Response(201, json={"consent_id": "c-1"}))
        consent = _manager(handler, findings).establish()
        assert consent.status is ConsentStatus.UNKNOWN
        assert findings[-1].severity is Severity.LOW

    @pytest.mark.parametrize("status,severity,message", [
        (401, Severity.HIGH, "Consent creation failed - authentication required"),
        (403, Severity.HIGH, "Consent creation failed - insufficient permissions"),
        (422, Severity.MEDIUM, "Consent creation failed with status: 422"),
    ])
    def test_creation_rejected(self, status, severity, message):
        findings = []
        handler, _ = _bank(httpx.Response(status, json={"error": "no"}))
        assert _manager(handler, findings).establish() is None
        assert [(f.severity, f.message) for f in findings] == [
            (severity, message),
            (Severity.MEDIUM, "Running without valid consent"),
        ]
        assert (findings[1].endpoint, findings[1].method) == ("/account-consents", "N/A")

    def test_created_without_id(self):
        findings = []
        handler, _ = _bank(httpx.Response(201, json={"status": "approved"}))
        assert _manager(handler, findings).establish() is None
        assert findings[0].message == "Consent created but no consent_id in response"
        assert findings[0].severity is Severity.MEDIUM

    def test_network_error(self):
        findings = []

        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        assert _manager(handler, findings).establish() is None
        assert findings[0].status == 0
        assert findings[0].message.startswith("Consent request failed")
