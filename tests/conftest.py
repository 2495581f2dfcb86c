import copy

import httpx
import pytest

from apiscanner.core.context import ExecutionContext
from apiscanner.parsers.openapi import OpenAPILoader

BASE = "http://api.test"

SAMPLE_DOC = {
    "openapi": "3.0.3",
    "info": {"title": "Sample Bank", "version": "2.1.0"},
    "servers": [{"url": "http://api.test/"}],
    "paths": {
        "/accounts": {
            "get": {
                "responses": {
                    "200": {
                        "description": "ok",
                        "content": {"application/json": {"schema": {
                            "type": "object",
                            "required": ["data"],
                            "properties": {"data": {"type": "array"}},
                        }}},
                    },
                    "default": {
                        "description": "error",
                        "content": {"application/json": {"schema": {
                            "type": "object",
                            "required": ["error"],
                            "properties": {"error": {"type": "string"}},
                        }}},
                    },
                },
            },
        },
        "/payments": {
            "post": {
                "requestBody": {"content": {"application/json": {"schema": {
                    "type": "object",
                    "required": ["amount"],
                    "properties": {
                        "amount": {"type": "number"},
                        "note": {"type": "string"},
                    },
                }}}},
                "responses": {"201": {"description": "created"}},
            },
            "delete": {"responses": {"204": {"description": "gone"}}},
        },
        "/auth/bank-token": {
            "post": {"responses": {"200": {"description": "token"}}},
        },
    },
}


@pytest.fixture
def sample_doc():
    return copy.deepcopy(SAMPLE_DOC)


def mock_client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


@pytest.fixture
def make_ctx():
    def _make(handler=None, openapi=None, findings=None, token="tok"):
        handler = handler or (lambda request: httpx.Response(404))
        client = mock_client(handler)
        return ExecutionContext(
            base_url=BASE,
            access_token=token,
            requesting_bank="team042",
            interbank_client_id="",
            consent_id=None,
            verbose=False,
            http=client,
            loader=OpenAPILoader(client),
            openapi=openapi,
            findings=findings if findings is not None else [],
        )
    return _make
