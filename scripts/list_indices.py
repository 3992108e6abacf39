#!/usr/bin/env python3
"""List the indices of the OpenSearch domain, then print cluster identity.

Handy inside the container:  docker exec -it <name> python scripts/list_indices.py
"""

import sys
from pathlib import Path

from dotenv import load_dotenv

script_dir = Path(__file__).resolve().parent
project_root = script_dir.parent
sys.path.insert(0, str(project_root))

load_dotenv(dotenv_path=project_root / ".env")

from config.config_loader import config  # noqa: E402
from connectors.errors import TransportError  # noqa: E402
from connectors.factory import build_search_cluster  # noqa: E402
from diagnostics.faults import classify_error, remediation_hint  # noqa: E402


def main():
    cluster = build_search_cluster(config)
    if cluster is None:
        print("OPENSEARCH_ENDPOINT is missing or invalid")
        return 2

    print("Connecting to OpenSearch...")
    print(f"Endpoint: {config.OPENSEARCH_ENDPOINT}")
    try:
        indices = cluster.list_indices()
        print("\nAvailable indices:")
        if indices:
            for row in indices:
                print(f"  - {row['index']} ({row['docs_count']} docs, {row['store_size']})")
        else:
            print("  No indices found. You may need to create one first.")

        info = cluster.health_check()
        print("\nConnection successful!")
        print(f"Cluster: {info.cluster_id}")
        print(f"Version: {info.version}")
        return 0
    except TransportError as exc:
        category = classify_error(exc)
        print(f"ERROR: {exc.message}")
        print(f"[{category.value}] hint: {remediation_hint(category)}")
        return 1
    finally:
        cluster.close()


if __name__ == "__main__":
    sys.exit(main())
