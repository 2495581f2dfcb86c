"""Auditor: runs one scan end to end and always writes the report."""

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import httpx

from apiscanner.checkers.registry import PluginRegistry
from apiscanner.core.auth import TokenResolver
from apiscanner.core.config import Settings
from apiscanner.core.consent import ConsentManager
from apiscanner.core.context import ExecutionContext
from apiscanner.core.errors import ConfigurationError, SpecUnavailable
from apiscanner.core.models import Finding, Scenario, Severity
from apiscanner.core.validator import ContractValidator, JsonSchemaValidator
from apiscanner.generators.scenarios import ScenarioGenerator
from apiscanner.parsers.openapi import OpenAPILoader
from apiscanner.reporters.report import ReportFiles, ReportWriter

COMMON_PATHS = ("/health", "/", "/.well-known/jwks.json")
_MUTATING = ("POST", "PUT")


@dataclass
class ScanResult:
    base_url: str
    consent_id: Optional[str]
    findings: List[Finding] = field(default_factory=list)
    reports: Optional[ReportFiles] = None

    def worst(self) -> Optional[Severity]:
        return max((f.severity for f in self.findings), default=None)


def build_client(settings: Settings) -> httpx.Client:
    return httpx.Client(
        proxy=settings.proxy,
        verify=settings.verify_tls,
        timeout=httpx.Timeout(settings.timeout),
        follow_redirects=True,
    )


class Auditor:
    def __init__(self, settings: Settings, logger=None, client: Optional[httpx.Client] = None,
                 loader: Optional[OpenAPILoader] = None, registry: Optional[PluginRegistry] = None,
                 generator: Optional[ScenarioGenerator] = None,
                 report_writer: Optional[ReportWriter] = None,
                 sleep: Callable[[float], Any] = time.sleep):
        self.settings = settings
        self.logger = logger
        self.client = client if client is not None else build_client(settings)
        self.loader = loader if loader is not None else OpenAPILoader(self.client, logger)
        self.registry = registry if registry is not None else PluginRegistry().register_defaults()
        self.generator = generator if generator is not None else ScenarioGenerator(logger=logger)
        self.report_writer = (report_writer if report_writer is not None
                              else ReportWriter(settings.output_dir))
        self.sleep = sleep

        self.findings: List[Finding] = []
        self.extra_headers: Dict[str, str] = settings.headers
        self.base_url = ""
        self.openapi_location = settings.openapi
        self.openapi: Optional[Dict[str, Any]] = None
        self.validator = ContractValidator()

    # ── stage helpers ──────────────────────────────────────────

    def _check_config(self):
        s = self.settings
        if s.create_consent:
            if not s.requesting_bank or not s.requesting_bank.strip():
                raise ConfigurationError("--create-consent requires --requesting-bank")
            if not s.interbank_client_id or not s.interbank_client_id.strip():
                raise ConfigurationError("--create-consent requires --client <client_id>")

    def resolve_base_url(self) -> str:
        explicit = (self.settings.base_url or "").strip()
        if explicit:
            return explicit.rstrip("/")
        if not self.openapi_location or not self.openapi_location.strip():
            raise ConfigurationError("Base URL is empty. Provide --base-url or --openapi with servers[].url")
        try:
            doc = self.loader.load(self.openapi_location)
        except SpecUnavailable as exc:
            raise ConfigurationError(f"Cannot derive base URL: {exc}") from exc
        url = OpenAPILoader.first_server_url(doc, self.openapi_location)
        if not url or not url.strip():
            raise ConfigurationError("Base URL is empty. Provide --base-url or a document with servers[].url")
        url = url.strip()
        if not url.lower().startswith(("http://", "https://")):
            raise ConfigurationError(f"servers[0].url is not an absolute http(s) URL: {url}. Provide --base-url")
        return url.rstrip("/")

    def _load_document(self):
        if not self.openapi_location or not self.openapi_location.strip():
            self.openapi_location = self.loader.discover(self.base_url) or ""
        if self.openapi_location:
            self.openapi = self.loader.try_load(self.openapi_location)
        elif self.logger:
            self.logger.warn("No OpenAPI document available, scenario generation skipped")

    def _add(self, finding: Finding):
        self.findings.append(finding)
        if self.logger:
            self.logger.finding(finding)

    def _add_all(self, findings: List[Finding]):
        for f in findings:
            self._add(f)

    # ── run ────────────────────────────────────────────────────

    def run(self) -> ScanResult:
        s = self.settings
        self._check_config()

        self.base_url = self.resolve_base_url()
        if self.logger:
            self.logger.info(f"Resolved base-url: {self.base_url}")

        resolver = TokenResolver(self.client, self.base_url, self.logger)
        token = resolver.resolve(s.auth, s.env_token, s.client_id, s.client_secret)

        result = ScanResult(self.base_url, None, self.findings)
        try:
            if not resolver.validate(token, self.extra_headers):
                if self.logger:
                    self.logger.warn("Token appears to be invalid. Some tests may fail.")
                self._add(Finding("/auth", "N/A", 0, "AuthCheck", Severity.HIGH,
                                  "Authentication token validation failed"))

            self._load_document()

            if s.create_consent:
                consent = ConsentManager(self.client, self.base_url, token, s.requesting_bank,
                                         s.interbank_client_id, self.findings,
                                         self.extra_headers, self.logger).establish()
                result.consent_id = consent.consent_id if consent else None
            elif self.logger:
                self.logger.info("Consent creation skipped")

            self.validator = ContractValidator(JsonSchemaValidator(self.openapi))
            self.run_scenarios(token, result.consent_id)

            ctx = ExecutionContext(
                base_url=self.base_url,
                access_token=token,
                requesting_bank=s.requesting_bank,
                interbank_client_id=s.interbank_client_id,
                consent_id=result.consent_id,
                verbose=s.verbose >= 2,
                http=self.client,
                loader=self.loader,
                openapi=self.openapi,
                findings=self.findings,
                extra_headers=dict(self.extra_headers),
                logger=self.logger,
            )
            self.registry.run_all(ctx)

            self.probe_common_paths(token, COMMON_PATHS)
        finally:
            result.reports = self._emit_report(result)
        return result

    def _emit_report(self, result: ScanResult) -> Optional[ReportFiles]:
        if self.logger:
            self.logger.info("Generating reports...")
        try:
            files = self.report_writer.write(self.settings.report_title, self.openapi_location,
                                             self.base_url, self.findings)
        except OSError as exc:
            if self.logger:
                self.logger.fail(f"Report could not be written: {exc}")
            return None
        if self.logger:
            self.logger.summary(self.findings)
            if result.consent_id:
                self.logger.info(f"Consent used: {result.consent_id}")
            else:
                self.logger.info("No consent used - limited testing performed")
            self.logger.ok(f"Reports: {files.json_path}, {files.html_path}")
        return files

    # ── scenarios ──────────────────────────────────────────────

    def run_scenarios(self, token: str, consent_id: Optional[str]):
        scenarios = self.generator.generate(self.openapi, self.settings.requesting_bank,
                                            self.settings.interbank_client_id)
        for sc in scenarios:
            if sc.method == "DELETE":
                continue
            try:
                self.run_scenario(sc, token, consent_id)
            except Exception as exc:
                self._add(Finding(sc.path, sc.method, 0, "RunnerError", Severity.LOW,
                                  f"Scenario failed: {exc}"))

    def _scenario_headers(self, sc: Scenario, token: str, consent_id: Optional[str]) -> Dict[str, str]:
        s = self.settings
        headers: Dict[str, str] = {}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        headers.update(sc.headers)
        if s.interbank_client_id and "client_id" in sc.query:
            if s.requesting_bank and "X-Requesting-Bank" not in headers:
                headers["X-Requesting-Bank"] = s.requesting_bank
            if consent_id and "X-Consent-Id" not in headers:
                headers["X-Consent-Id"] = consent_id
        headers.update(self.extra_headers)
        return headers

    def run_scenario(self, sc: Scenario, token: str, consent_id: Optional[str]):
        # rate limiting
        self.sleep(self.settings.mutating_delay if sc.method in _MUTATING else self.settings.read_delay)

        url = f"{self.base_url}{sc.path}"
        headers = self._scenario_headers(sc, token, consent_id)
        if sc.method in _MUTATING:
            body = sc.body if sc.body is not None else {}
            if self.logger:
                self.logger.debug(f"{sc.method} {url} Body: {body}")
            r = self.client.request(sc.method, url, params=sc.query or None, headers=headers, json=body)
        else:
            if self.logger:
                self.logger.debug(f"{sc.method} {url}")
            r = self.client.request(sc.method, url, params=sc.query or None, headers=headers)

        if self.logger:
            self.logger.info(f"{sc.path} [{sc.method}/{sc.label}] -> {r.status_code}")

        if r.status_code == 403 and consent_id is None and "/accounts" in sc.path:
            self._add(Finding(sc.path, sc.method, r.status_code, "AccessControl", Severity.INFO,
                              "Expected 403 without consent"))
        self._validate_and_record(sc.path, sc.method, r)

    def _validate_and_record(self, path: str, method: str, r: httpx.Response):
        ct = r.headers.get("content-type", "application/json")
        schema = OpenAPILoader.resolve_response_schema(self.openapi, path, r.status_code, ct)
        self._add_all(self.validator.validate(path, method, r, schema))

    # ── probes ─────────────────────────────────────────────────

    def probe_common_paths(self, token: str, paths=COMMON_PATHS):
        headers: Dict[str, str] = {}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        headers.update(self.extra_headers)

        for p in paths:
            url = f"{self.base_url}{p}"
            if self.logger:
                self.logger.debug(f"GET {url}")
            try:
                r = self.client.get(url, headers=headers)
            except httpx.HTTPError as exc:
                if self.logger:
                    self.logger.fail(f"Error probing {p}: {exc}")
                self._add(Finding(p, "GET", 0, "ConnectionError", Severity.LOW,
                                  f"Failed to probe: {exc}"))
                continue
            if self.logger:
                self.logger.info(f"{p} -> {r.status_code}")
            self._validate_and_record(p, "GET", r)
