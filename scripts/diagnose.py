#!/usr/bin/env python3
"""OpenSearch connection diagnostics.

Walks config -> DNS -> raw connectivity -> signed handshake -> index check
and stops at the first layer that is broken, printing a hint for it.

    ./scripts/diagnose.py [--index NAME] [--json]

Exit code is 0 when every stage passed, 1 otherwise.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

# Ensure project root is on sys.path so standard package imports work
script_dir = Path(__file__).resolve().parent
project_root = script_dir.parent
sys.path.insert(0, str(project_root))

load_dotenv(dotenv_path=project_root / ".env")

from config.config_loader import config  # noqa: E402
from connectors.errors import TransportError  # noqa: E402
from connectors.factory import credentials_from_config, search_cluster_factory  # noqa: E402
from diagnostics.faults import remediation_hint  # noqa: E402
from diagnostics.pipeline import ConnectivityDiagnostics, DiagnosticReport, StageName  # noqa: E402

RED = "\x1b[31m"
GREEN = "\x1b[32m"
YELLOW = "\x1b[33m"
BLUE = "\x1b[34m"
RESET = "\x1b[0m"

STAGE_TITLES = {
    StageName.CONFIG: "Configuration",
    StageName.DNS: "DNS resolution",
    StageName.TRANSPORT: "Basic connectivity",
    StageName.HANDSHAKE: "OpenSearch client",
    StageName.RESOURCE: "Index",
}


def print_environment(index):
    def show(value, secret=False):
        if not value:
            return f"{RED}NOT SET{RESET}"
        return f"{GREEN}SET{RESET}" if secret else value

    print(f"{YELLOW}Environment:{RESET}")
    print(f"  OPENSEARCH_ENDPOINT: {show(config.OPENSEARCH_ENDPOINT)}")
    print(f"  AWS_REGION: {show(config.AWS_REGION)}")
    print(f"  AWS_ACCESS_KEY_ID: {show(config.AWS_ACCESS_KEY_ID, secret=True)}")
    print(f"  AWS_SECRET_ACCESS_KEY: {show(config.AWS_SECRET_ACCESS_KEY, secret=True)}")
    print(f"  OPENSEARCH_INDEX: {index}")


class KeepingFactory:
    """Service factory wrapper that remembers the handle it built."""

    def __init__(self, factory):
        self.factory = factory
        self.service = None

    def __call__(self, endpoint, credentials, timeout):
        self.service = self.factory(endpoint, credentials, timeout)
        return self.service


def document_count_line(service, index):
    try:
        return f"     Document count: {service.document_count(index)}"
    except TransportError as exc:
        return f"{YELLOW}     could not count documents: {exc.message}{RESET}"


def render(report: DiagnosticReport, service=None, index=None) -> None:
    for finding in report:
        title = STAGE_TITLES[finding.stage]
        if finding.succeeded:
            print(f"{GREEN}OK   {title}{RESET} ({finding.duration_ms}ms) {finding.outcome.detail}")
            if finding.stage is StageName.RESOURCE and finding.outcome.payload is False:
                print(f"{YELLOW}     hint: create the index or check OPENSEARCH_INDEX{RESET}")
            elif finding.stage is StageName.RESOURCE and service is not None:
                print(document_count_line(service, index))
        else:
            category = finding.category
            print(f"{RED}FAIL {title}{RESET} ({finding.duration_ms}ms) [{category.value}] {finding.outcome.detail}")
            print(f"{YELLOW}     hint: {remediation_hint(category)}{RESET}")


def main(argv=None):
    parser = argparse.ArgumentParser(description="Diagnose the connection to the OpenSearch domain.")
    parser.add_argument("--index", default=None, help="index to check (default: OPENSEARCH_INDEX)")
    parser.add_argument("--json", action="store_true", help="print the report as JSON")
    args = parser.parse_args(argv)

    logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
    index = args.index or config.OPENSEARCH_INDEX

    factory = KeepingFactory(search_cluster_factory(config))
    pipeline = ConnectivityDiagnostics(
        endpoint_url=config.OPENSEARCH_ENDPOINT,
        credentials=credentials_from_config(config),
        resource_name=index,
        service_factory=factory,
        transport_timeout_ms=config.TRANSPORT_TIMEOUT_MS,
        handshake_timeout_ms=config.HANDSHAKE_TIMEOUT_MS,
    )
    report = pipeline.run()

    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        print(f"{BLUE}OpenSearch Connection Diagnostics{RESET}")
        print("=" * 50)
        print_environment(index)
        print()
        render(report, factory.service, index)
    if factory.service is not None:
        factory.service.close()
    return 0 if report.succeeded else 1


if __name__ == "__main__":
    sys.exit(main())
