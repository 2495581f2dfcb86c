"""Contract validation of live responses against declared response schemas."""

import json
from typing import Any, Dict, List, Optional, Protocol

import httpx
from jsonschema import Draft202012Validator

from apiscanner.core.models import Finding, Severity

MAX_EVIDENCE = 2000
TRUNCATED = "...(truncated)"


def body_snippet(body: Optional[str], limit: int = MAX_EVIDENCE) -> str:
    if not body:
        return ""
    return body[:limit] + TRUNCATED if len(body) > limit else body


def looks_like_json(body: str) -> bool:
    t = body.strip()
    return (t.startswith("{") and t.endswith("}")) or (t.startswith("[") and t.endswith("]"))


class SchemaValidator(Protocol):
    def validate(self, schema: Dict[str, Any], document: Any) -> List[str]:
        """Return one message per violation, empty when *document* conforms."""
        ...


class JsonSchemaValidator:
    """
    jsonschema-backed validator. OpenAPI response schemas point into
    ``#/components/...``; the document's components are attached to the schema
    being checked so those references resolve.
    """

    def __init__(self, openapi: Optional[Dict[str, Any]] = None):
        self.openapi = openapi

    def validate(self, schema: Dict[str, Any], document: Any) -> List[str]:
        if isinstance(schema, dict) and isinstance(self.openapi, dict) and "components" in self.openapi:
            schema = {**schema, "components": self.openapi["components"]}
        validator = Draft202012Validator(schema)
        errors = sorted(validator.iter_errors(document), key=lambda e: list(e.absolute_path))
        return [self._describe(e) for e in errors]

    @staticmethod
    def _describe(error) -> str:
        where = "/".join(str(p) for p in error.absolute_path)
        return f"{where}: {error.message}" if where else error.message


class ContractValidator:
    """Rules are applied independently: content type, schema conformance, fallback note."""

    def __init__(self, schema_validator: Optional[SchemaValidator] = None):
        self.schema_validator = schema_validator or JsonSchemaValidator()

    def validate(self, endpoint: str, method: str, response: httpx.Response,
                 expected_schema: Optional[Dict[str, Any]]) -> List[Finding]:
        out: List[Finding] = []
        code = response.status_code
        body = response.text or ""
        evidence = body_snippet(body)

        ct = response.headers.get("content-type", "")
        if expected_schema is not None and "application/json" not in ct.lower():
            # keep going, the body may still be JSON
            out.append(Finding(endpoint, method, code, "ContractMismatch", Severity.LOW,
                               f"Unexpected Content-Type: {ct}", evidence))

        if expected_schema is not None and body.strip() and looks_like_json(body):
            try:
                violations = self.schema_validator.validate(expected_schema, json.loads(body))
            except Exception as exc:
                out.append(Finding(endpoint, method, code, "ContractValidationError", Severity.LOW,
                                   f"Validator error: {exc}", evidence))
            else:
                if violations:
                    out.append(Finding(endpoint, method, code, "ContractMismatch", Severity.MEDIUM,
                                       "Schema violations: " + "; ".join(violations), evidence))
                else:
                    out.append(Finding(endpoint, method, code, "ContractMatch", Severity.INFO,
                                       "Response matches schema", evidence))
        else:
            out.append(Finding(endpoint, method, code, "ContractCheck", Severity.INFO,
                               "No schema to validate or non-JSON body", evidence))
        return out
