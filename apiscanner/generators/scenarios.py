"""Scenario generator: positive and negative requests derived from an OpenAPI document."""

from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from apiscanner.core.models import Scenario

_METHODS = ("get", "post", "put", "delete")

# Endpoints whose schemas are unreliable (auth and consent bootstrapping)
SKIP_ENDPOINTS = (
    "/account-consents/request",
    "/auth/bank-token",
    "/product-agreement-consents/request",
    "/product-agreements",
)

# Resources that take a client_id when accessed on behalf of another bank
INTERBANK_PATHS = ("/accounts",)

CROSS_TENANT_CLIENT_ID = "other-9999"
UNEXPECTED_FIELD = ("_unexpected", "boom")
PLACEHOLDER = "sample"


def _resolve_ref(schema: Any, doc: Optional[Dict[str, Any]], seen: Set[str]) -> Tuple[Any, Set[str]]:
    """Follow a local ``$ref`` against *doc*; unresolvable or cyclic refs give ``{}``."""
    while isinstance(schema, dict) and "$ref" in schema:
        ref = schema["$ref"]
        if doc is None or not isinstance(ref, str) or not ref.startswith("#/") or ref in seen:
            return {}, seen
        seen = seen | {ref}
        node: Any = doc
        for part in ref[2:].split("/"):
            node = node.get(part) if isinstance(node, dict) else None
        if node is None:
            return {}, seen
        schema = node
    return schema, seen


def minimal_valid_json(schema: Any, doc: Optional[Dict[str, Any]] = None,
                       _seen: Optional[Set[str]] = None) -> Any:
    """
    Smallest schema-shaped payload: only required properties (all of them when
    nothing is required), each filled by default_for().
    """
    schema, seen = _resolve_ref(schema, doc, _seen or set())
    if not isinstance(schema, dict):
        return {}
    if schema.get("type") != "object":
        return default_for(schema, doc, seen)

    obj: Dict[str, Any] = {}
    props = schema.get("properties")
    required = set(schema.get("required") or [])
    if isinstance(props, dict):
        for name, prop in props.items():
            if not required or name in required:
                obj[name] = default_for(prop, doc, seen)
    return obj


def default_for(schema: Any, doc: Optional[Dict[str, Any]] = None,
                _seen: Optional[Set[str]] = None) -> Any:
    schema, seen = _resolve_ref(schema, doc, _seen or set())
    t = schema.get("type") if isinstance(schema, dict) else None

    if t == "string":
        enum = schema.get("enum")
        if isinstance(enum, list) and enum:
            return enum[0]
        return PLACEHOLDER
    if t in ("integer", "number"):
        return 1
    if t == "boolean":
        return True
    if t == "array":
        if "items" in schema:
            return [default_for(schema["items"], doc, seen)]
        return []
    if t == "object":
        return minimal_valid_json(schema, doc, seen)
    return PLACEHOLDER


class ScenarioGenerator:
    """
    Walks ``paths`` in document order and emits, per declared operation, one
    positive scenario immediately followed by its negative variant, when a
    mutation applies to it.
    """

    def __init__(self, skip_endpoints: Iterable[str] = SKIP_ENDPOINTS,
                 interbank_paths: Iterable[str] = INTERBANK_PATHS, logger=None):
        self.skip_endpoints = tuple(skip_endpoints)
        self.interbank_paths = tuple(interbank_paths)
        self.logger = logger

    def generate(self, doc: Optional[Dict[str, Any]], requesting_bank: str = "",
                 interbank_client_id: str = "") -> List[Scenario]:
        out: List[Scenario] = []
        paths = doc.get("paths") if isinstance(doc, dict) else None
        if not isinstance(paths, dict):
            return out

        for path, item in paths.items():
            if any(skip in path for skip in self.skip_endpoints):
                if self.logger:
                    self.logger.debug(f"Skipping {path}")
                continue
            if not isinstance(item, dict):
                continue

            for m in _METHODS:
                op = item.get(m)
                if not isinstance(op, dict):
                    continue
                pos = self._positive(path, m, op, doc, requesting_bank, interbank_client_id)
                out.append(pos)
                if self._wants_negative(path):
                    neg = self._negative(pos)
                    if neg is not None:
                        out.append(neg)

        if self.logger:
            self.logger.info(f"Generated {len(out)} test scenarios")
        return out

    # ── builders ───────────────────────────────────────────────

    def _positive(self, path: str, method: str, op: Dict[str, Any], doc: Dict[str, Any],
                  requesting_bank: str, interbank_client_id: str) -> Scenario:
        s = Scenario(path=path, method=method.upper(), label="positive")

        if path in self.interbank_paths and interbank_client_id and interbank_client_id.strip():
            s.query["client_id"] = interbank_client_id
            if requesting_bank and requesting_bank.strip():
                s.headers["X-Requesting-Bank"] = requesting_bank

        if "/consents" not in path and "/agreements" not in path:
            schema = (((op.get("requestBody") or {}).get("content") or {})
                      .get("application/json") or {}).get("schema")
            if isinstance(schema, dict):
                s.body = minimal_valid_json(schema, doc)
        return s

    @staticmethod
    def _wants_negative(path: str) -> bool:
        return "/auth" not in path and "/consents" not in path

    @staticmethod
    def _negative(positive: Scenario) -> Optional[Scenario]:
        """Mutated copy, or None when there is nothing to mutate (it would repeat the positive)."""
        neg = positive.copy()
        neg.label = "negative"
        if "client_id" in neg.query:
            neg.query["client_id"] = CROSS_TENANT_CLIENT_ID
        elif isinstance(neg.body, dict):
            key, value = UNEXPECTED_FIELD
            neg.body[key] = value
        else:
            return None
        return neg
