import argparse
import sys

from apiscanner.core.config import Settings
from apiscanner.core.engine import Auditor
from apiscanner.core.errors import AuthError, ConfigurationError
from apiscanner.core.models import Severity
from apiscanner.reporters.console import Log

EXIT_FINDINGS = 1
EXIT_CONFIG = 2
EXIT_AUTH = 3


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="OpenAPI-driven API Security Scanner")
    p.add_argument("--openapi", default="", help="OpenAPI document: path, file: URI or http(s) URL")
    p.add_argument("--base-url", default="", help="Target base URL (default: servers[0].url)")
    p.add_argument("--auth", default="", help="Access token as 'bearer:XXXX'")
    p.add_argument("--client-id", default="", help="Client id for the token exchange (env CLIENT_ID)")
    p.add_argument("--client-secret", default="", help="Client secret (env CLIENT_SECRET)")
    p.add_argument("--requesting-bank", default="", help="Requesting bank id (default: client id)")
    p.add_argument("--client", dest="interbank_client", default="",
                   help="Interbank client_id used for cross-bank requests")
    p.add_argument("--create-consent", action="store_true", help="Create an account consent first")
    p.add_argument("--add-header", action="append", default=[], metavar="'Name: Value'",
                   help="Extra header for every request (repeatable)")
    p.add_argument("--proxy", help="Proxy (ej: http://127.0.0.1:8080)")
    p.add_argument("--insecure", action="store_true", help="Skip TLS certificate verification")
    p.add_argument("--timeout", type=float, default=30.0, help="Per-request timeout in seconds")
    p.add_argument("--output-dir", default="reports", help="Directory for JSON/HTML reports")
    p.add_argument("--fail-on", choices=[s.name for s in Severity],
                   help="Exit 1 when a finding of this severity or worse is reported")
    p.add_argument("-v", "--verbose", action="count", default=1,
                   help="-v, -vv")
    return p


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    log = Log(verbose=args.verbose)

    settings = Settings.from_env(
        openapi=args.openapi,
        base_url=args.base_url,
        auth=args.auth,
        client_id=args.client_id,
        client_secret=args.client_secret,
        requesting_bank=args.requesting_bank,
        interbank_client_id=args.interbank_client,
        create_consent=args.create_consent,
        extra_headers=args.add_header,
        verbose=args.verbose,
        proxy=args.proxy,
        verify_tls=not args.insecure,
        timeout=args.timeout,
        output_dir=args.output_dir,
    )

    log.info("Starting API Security Scanner...")
    log.info(f"openapi={settings.openapi or '(discover)'}")
    log.info(f"base-url={settings.base_url or '(auto from OpenAPI)'}")
    log.info(f"create-consent={settings.create_consent}")
    if settings.extra_headers:
        log.debug(f"extra headers: {settings.extra_headers}")

    try:
        result = Auditor(settings, logger=log).run()
    except ConfigurationError as exc:
        log.fail(str(exc))
        return EXIT_CONFIG
    except AuthError as exc:
        log.fail(str(exc))
        return EXIT_AUTH

    if args.fail_on:
        worst = result.worst()
        if worst is not None and worst >= Severity[args.fail_on]:
            return EXIT_FINDINGS
    return 0


if __name__ == "__main__":
    sys.exit(main())
