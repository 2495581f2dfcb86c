"""OpenAPI document loading and read-only schema lookups."""

import json
from typing import Any, Dict, List, Optional
from urllib.parse import urljoin, urlsplit
from urllib.request import url2pathname

import httpx
import yaml

from apiscanner.core.errors import SpecUnavailable

# First present operation wins, whatever method produced the response.
_METHOD_PRECEDENCE = ("get", "post", "put", "delete")

DISCOVERY_PATHS = (
    "/openapi.json",
    "/swagger.json",
    "/v3/api-docs",
    "/api-docs",
    "/docs/swagger.json",
    "/swagger/v1/swagger.json",
    "/.well-known/openapi.json",
)


def _is_remote(location: str) -> bool:
    return location.startswith(("http://", "https://"))


def normalize_content_type(content_type: Optional[str]) -> str:
    """``application/JSON; charset=utf-8`` → ``application/json``."""
    if not content_type:
        return "application/json"
    return content_type.split(";", 1)[0].strip().lower()


def _node(obj: Any, key: str) -> Optional[Any]:
    if isinstance(obj, dict):
        return obj.get(key)
    return None


class OpenAPILoader:
    """
    Loads an OpenAPI document once per location and answers lookups on it.

    Usage:
        loader = OpenAPILoader(client, logger)
        doc = loader.load("openapi.json")
        schema = loader.resolve_response_schema(doc, "/accounts", 200, "application/json")
    """

    def __init__(self, client: Optional[httpx.Client] = None, logger=None, timeout: float = 20.0):
        self.client = client or httpx.Client(timeout=timeout, follow_redirects=True)
        self.logger = logger
        self._cache: Dict[str, Dict[str, Any]] = {}

    # ── loading ────────────────────────────────────────────────

    def load(self, location: str) -> Dict[str, Any]:
        if not location or not location.strip():
            raise SpecUnavailable(location or "", "no document location configured")
        if location in self._cache:
            return self._cache[location]

        text = self._read(location)
        doc = self._parse(location, text)
        self._cache[location] = doc
        if self.logger:
            self.logger.info(
                f"OpenAPI loaded: {location} ({len(doc.get('paths') or {})} paths)")
        return doc

    def try_load(self, location: str) -> Optional[Dict[str, Any]]:
        try:
            return self.load(location)
        except SpecUnavailable as exc:
            if self.logger:
                self.logger.warn(str(exc))
            return None

    def _read(self, location: str) -> str:
        if _is_remote(location):
            try:
                resp = self.client.get(location)
            except httpx.HTTPError as exc:
                raise SpecUnavailable(location, str(exc)) from exc
            if not resp.is_success:
                raise SpecUnavailable(location, f"HTTP {resp.status_code}")
            return resp.text

        path = location
        if location.startswith("file:"):
            path = url2pathname(urlsplit(location).path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                return f.read()
        except OSError as exc:
            raise SpecUnavailable(location, str(exc)) from exc

    @staticmethod
    def _parse(location: str, text: str) -> Dict[str, Any]:
        stripped = text.strip()
        is_yaml = urlsplit(location).path.lower().endswith((".yaml", ".yml"))
        try:
            if is_yaml or not stripped.startswith(("{", "[")):
                doc = yaml.safe_load(stripped)
            else:
                doc = json.loads(stripped)
        except (ValueError, yaml.YAMLError) as exc:
            raise SpecUnavailable(location, f"malformed document: {exc}") from exc
        if not isinstance(doc, dict):
            raise SpecUnavailable(location, "document root is not a mapping")
        return doc

    def discover(self, base_url: str) -> Optional[str]:
        """Probe well-known locations for a published OpenAPI document."""
        for path in DISCOVERY_PATHS:
            url = f"{base_url.rstrip('/')}{path}"
            if self.logger:
                self.logger.debug(f"Trying {url}")
            try:
                resp = self.client.get(url)
            except httpx.HTTPError:
                continue
            if resp.status_code == 200 and "openapi" in resp.text and "paths" in resp.text:
                if self.logger:
                    self.logger.ok(f"OpenAPI document found at {url}")
                return url
        return None

    # ── queries ────────────────────────────────────────────────

    @staticmethod
    def first_server_url(doc: Optional[Dict[str, Any]], location: str = "") -> Optional[str]:
        servers = _node(doc, "servers")
        if not isinstance(servers, list) or not servers:
            return None
        url = _node(servers[0], "url")
        if not isinstance(url, str) or not url.strip():
            return None
        if not _is_remote(url) and _is_remote(location):
            return urljoin(location, url)
        return url

    @staticmethod
    def server_urls(doc: Optional[Dict[str, Any]]) -> List[str]:
        servers = _node(doc, "servers")
        if not isinstance(servers, list):
            return []
        return [s["url"] for s in servers if isinstance(_node(s, "url"), str)]

    @staticmethod
    def resolve_response_schema(doc: Optional[Dict[str, Any]], path: str, status: int,
                                content_type: Optional[str]) -> Optional[Dict[str, Any]]:
        path_item = _node(_node(doc, "paths"), path)
        if not isinstance(path_item, dict):
            return None

        op = None
        for method in _METHOD_PRECEDENCE:
            if method in path_item:
                op = path_item[method]
                break
        responses = _node(op, "responses")
        if not isinstance(responses, dict):
            return None

        resp = responses.get(str(status))
        if resp is None:
            # unquoted YAML keys come back as ints
            resp = responses.get(status)
        if resp is None:
            resp = responses.get("default")
        content = _node(resp, "content")
        if not isinstance(content, dict):
            return None

        media = content.get(normalize_content_type(content_type))
        if media is None:
            media = content.get("application/json")
        return _node(media, "schema")
