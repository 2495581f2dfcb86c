import json
import os

import httpx
import pytest

from apiscanner.checkers.registry import PluginRegistry
from apiscanner.core.config import Settings
from apiscanner.core.engine import Auditor
from apiscanner.core.errors import ConfigurationError
from apiscanner.core.models import Severity
from conftest import mock_client


@pytest.fixture
def spec_file(tmp_path, sample_doc):
    path = tmp_path / "openapi.json"
    path.write_text(json.dumps(sample_doc))
    return str(path)


class _Recorder:
    """Request log plus a default 200 JSON answer."""

    def __init__(self, routes=None):
        self.requests = []
        self.routes = routes or {}

    def __call__(self, request):
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if callable(route):
            return route(request)
        if route is not None:
            return route
        return httpx.Response(200, json={"data": []})

    def calls(self, method=None):
        return [(r.method, r.url.path) for r in self.requests if method is None or r.method == method]


class _Exploding(PluginRegistry):
    def run_all(self, ctx):
        raise RuntimeError("registry blew up")


def _auditor(tmp_path, recorder, sleeps=None, registry=None, **overrides):
    values = dict(auth="bearer:tok", output_dir=str(tmp_path / "reports"))
    values.update(overrides)
    settings = Settings(**values)
    sleep = sleeps.append if sleeps is not None else (lambda s: None)
    return Auditor(settings, client=mock_client(recorder),
                   registry=registry if registry is not None else PluginRegistry(), sleep=sleep)


class TestBaseUrl:

    def test_explicit_is_stripped(self, tmp_path):
        a = _auditor(tmp_path, _Recorder(), base_url=" http://api.test/v2/ ")
        assert a.resolve_base_url() == "http://api.test/v2"

    def test_derived_from_document(self, tmp_path, spec_file):
        a = _auditor(tmp_path, _Recorder(), openapi=spec_file)
        assert a.resolve_base_url() == "http://api.test"

    def test_nothing_configured(self, tmp_path):
        recorder = _Recorder()
        with pytest.raises(ConfigurationError, match="Base URL is empty"):
            _auditor(tmp_path, recorder).run()
        assert recorder.requests == []

    def test_unreadable_document(self, tmp_path):
        a = _auditor(tmp_path, _Recorder(), openapi=str(tmp_path / "absent.json"))
        with pytest.raises(ConfigurationError, match="Cannot derive base URL"):
            a.resolve_base_url()

    def test_document_without_servers(self, tmp_path):
        path = tmp_path / "bare.json"
        path.write_text(json.dumps({"openapi": "3.0.0", "paths": {}}))
        with pytest.raises(ConfigurationError):
            _auditor(tmp_path, _Recorder(), openapi=str(path)).resolve_base_url()

    def test_relative_server_in_local_document(self, tmp_path):
        path = tmp_path / "relative.json"
        path.write_text(json.dumps({"openapi": "3.0.0", "servers": [{"url": "/api"}], "paths": {}}))
        recorder = _Recorder()
        with pytest.raises(ConfigurationError, match="not an absolute http"):
            _auditor(tmp_path, recorder, openapi=str(path)).run()
        assert recorder.requests == []


class TestWiring:

    def test_injected_empty_registry_is_kept(self, tmp_path):
        registry = PluginRegistry()
        a = _auditor(tmp_path, _Recorder(), registry=registry)
        assert a.registry is registry
        assert len(a.registry) == 0

    def test_defaults_when_nothing_injected(self, tmp_path):
        a = Auditor(Settings(output_dir=str(tmp_path)), client=mock_client(_Recorder()))
        assert len(a.registry) == 3


class TestRun:

    def test_scenarios_delays_and_report(self, tmp_path, spec_file):
        recorder = _Recorder()
        sleeps = []
        result = _auditor(tmp_path, recorder, sleeps, openapi=spec_file).run()

        assert result.base_url == "http://api.test"
        assert ("DELETE", "/payments") not in recorder.calls()
        assert recorder.calls("POST") == [("POST", "/payments"), ("POST", "/payments")]
        # GET /accounts, then positive and negative POST /payments
        assert sleeps == [0.3, 1.0, 1.0]

        posted = [json.loads(r.content) for r in recorder.requests if r.method == "POST"]
        assert posted == [{"amount": 1}, {"amount": 1, "_unexpected": "boom"}]

        assert os.path.exists(result.reports.json_path)
        assert os.path.exists(result.reports.html_path)
        with open(result.reports.json_path, encoding="utf-8") as f:
            report = json.load(f)
        assert report["meta"]["baseUrl"] == "http://api.test"
        assert len(report["findings"]) == len(result.findings)

    def test_common_paths_are_probed(self, tmp_path, spec_file):
        recorder = _Recorder()
        _auditor(tmp_path, recorder, openapi=spec_file).run()
        probed = [p for _, p in recorder.calls("GET")][-3:]
        assert probed == ["/health", "/", "/.well-known/jwks.json"]

    def test_scenario_network_error(self, tmp_path, spec_file):
        def refuse(request):
            raise httpx.ConnectError("refused", request=request)

        recorder = _Recorder({("POST", "/payments"): refuse})
        result = _auditor(tmp_path, recorder, openapi=spec_file).run()
        errors = [f for f in result.findings if f.owasp == "RunnerError"]
        assert len(errors) == 2
        assert all(f.severity is Severity.LOW and f.status == 0 for f in errors)

    def test_probe_network_error(self, tmp_path, spec_file):
        def refuse(request):
            raise httpx.ConnectError("refused", request=request)

        recorder = _Recorder({("GET", "/.well-known/jwks.json"): refuse})
        result = _auditor(tmp_path, recorder, openapi=spec_file).run()
        errors = [f for f in result.findings if f.owasp == "ConnectionError"]
        assert [(f.endpoint, f.severity) for f in errors] == [("/.well-known/jwks.json", Severity.LOW)]

    def test_invalid_token_is_reported(self, tmp_path, spec_file):
        recorder = _Recorder({("GET", "/accounts"): httpx.Response(401, json={"error": "no"})})
        result = _auditor(tmp_path, recorder, openapi=spec_file).run()
        auth = [f for f in result.findings if f.owasp == "AuthCheck"]
        assert [(f.severity, f.message) for f in auth] == [
            (Severity.HIGH, "Authentication token validation failed")]

    def test_forbidden_accounts_without_consent(self, tmp_path, spec_file):
        recorder = _Recorder({("GET", "/accounts"): httpx.Response(403, json={"error": "consent required"})})
        result = _auditor(tmp_path, recorder, openapi=spec_file).run()
        access = [f for f in result.findings if f.owasp == "AccessControl"]
        assert [(f.endpoint, f.severity) for f in access] == [("/accounts", Severity.INFO)]
        # 403 has no declared response, the default error schema applies
        assert any(f.owasp == "ContractMatch" and f.endpoint == "/accounts" for f in result.findings)

    def test_report_written_when_run_fails(self, tmp_path, spec_file):
        a = _auditor(tmp_path, _Recorder(), registry=_Exploding(), openapi=spec_file)
        with pytest.raises(RuntimeError):
            a.run()
        written = sorted(os.listdir(tmp_path / "reports"))
        assert [name.rsplit(".", 1)[1] for name in written] == ["html", "json"]

    def test_missing_credentials(self, tmp_path, spec_file):
        recorder = _Recorder()
        with pytest.raises(ConfigurationError, match="No valid token found"):
            _auditor(tmp_path, recorder, auth="", openapi=spec_file).run()
        assert recorder.requests == []
        assert not (tmp_path / "reports").exists()

    @pytest.mark.parametrize("overrides", [
        dict(requesting_bank="", interbank_client_id="team042-1"),
        dict(requesting_bank="team042", interbank_client_id=" "),
    ])
    def test_consent_requirements_checked_first(self, tmp_path, spec_file, overrides):
        recorder = _Recorder()
        with pytest.raises(ConfigurationError, match="--create-consent requires"):
            _auditor(tmp_path, recorder, openapi=spec_file, create_consent=True, **overrides).run()
        assert recorder.requests == []

    def test_interbank_headers(self, tmp_path, spec_file):
        recorder = _Recorder({
            ("POST", "/account-consents/request"): httpx.Response(201, json={"consent_id": "c-1"}),
            ("GET", "/account-consents/c-1"): httpx.Response(200, json={"status": "approved"}),
        })
        result = _auditor(tmp_path, recorder, openapi=spec_file, create_consent=True,
                          requesting_bank="team042", interbank_client_id="team042-1",
                          extra_headers=["X-Trace: 1"]).run()
        assert result.consent_id == "c-1"

        scoped = [r for r in recorder.requests
                  if r.url.path == "/accounts" and "client_id" in r.url.params]
        assert [r.url.params["client_id"] for r in scoped] == ["team042-1", "other-9999"]
        for r in scoped:
            assert r.headers["X-Consent-Id"] == "c-1"
            assert r.headers["X-Requesting-Bank"] == "team042"
            assert r.headers["X-Trace"] == "1"
            assert r.headers["Authorization"] == "Bearer tok"

    def test_worst(self, tmp_path, spec_file):
        recorder = _Recorder({("GET", "/accounts"): httpx.Response(200, json={"data": "nope"})})
        result = _auditor(tmp_path, recorder, openapi=spec_file).run()
        assert result.worst() is Severity.MEDIUM
