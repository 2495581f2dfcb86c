"""Run configuration."""

import os
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

ENV_TOKEN = "BANK_TOKEN"
ENV_CLIENT_ID = "CLIENT_ID"
ENV_CLIENT_SECRET = "CLIENT_SECRET"


@dataclass
class Settings:
    openapi: str = ""
    base_url: str = ""
    auth: str = ""                      # "bearer:XXXX"
    client_id: str = ""
    client_secret: str = ""
    requesting_bank: str = ""
    interbank_client_id: str = ""
    create_consent: bool = False
    extra_headers: List[str] = field(default_factory=list)
    env_token: str = ""
    verbose: int = 1
    proxy: Optional[str] = None
    verify_tls: bool = True
    timeout: float = 30.0
    read_delay: float = 0.3
    mutating_delay: float = 1.0
    output_dir: str = "reports"
    report_title: str = "Virtual Bank API Report"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "Settings":
        """Build settings from explicit values, falling back to the environment."""
        env = os.environ if environ is None else environ
        settings = cls(**overrides)
        if not settings.client_id:
            settings.client_id = env.get(ENV_CLIENT_ID, "")
        if not settings.client_secret:
            settings.client_secret = env.get(ENV_CLIENT_SECRET, "")
        if not settings.env_token:
            settings.env_token = env.get(ENV_TOKEN, "")
        if not settings.requesting_bank:
            settings.requesting_bank = settings.client_id
        return settings

    @property
    def headers(self) -> Dict[str, str]:
        return parse_extra_headers(self.extra_headers)


def parse_extra_headers(raw: List[str]) -> Dict[str, str]:
    """Turn ``["Name: Value", ...]`` into a dict, ignoring malformed entries."""
    out: Dict[str, str] = {}
    for item in raw or []:
        name, sep, value = item.partition(":")
        name, value = name.strip(), value.strip()
        if sep and name and value:
            out[name] = value
    return out
