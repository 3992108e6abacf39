#!/usr/bin/env python3
"""Launcher for the HTTP gateway.

Loads .env, builds the shared OpenSearch / Firehose handles once and serves
the FastAPI app with uvicorn on 0.0.0.0:$PORT (3000 by default).
"""

import logging
import sys
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

# Ensure project root is on sys.path so standard package imports work
script_dir = Path(__file__).resolve().parent
project_root = script_dir.parent
sys.path.insert(0, str(project_root))

load_dotenv(dotenv_path=project_root / ".env")

from config.config_loader import config  # noqa: E402
from connectors.factory import build_ingestion_stream, build_search_cluster, search_cluster_factory  # noqa: E402
from gateway.app import GatewaySettings, create_app  # noqa: E402

logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
logger = logging.getLogger("gateway")


def main():
    settings = GatewaySettings.from_config(config)
    app = create_app(
        build_search_cluster(config),
        build_ingestion_stream(config),
        settings,
        diagnostics_factory=search_cluster_factory(config),
    )

    logger.info("Gateway listening on http://%s:%s", config.HOST, config.PORT)
    logger.info("OpenSearch: %s (index %s)", config.OPENSEARCH_ENDPOINT, config.OPENSEARCH_INDEX)
    logger.info("Firehose: %s", config.FIREHOSE_STREAM)
    logger.info("Using AWS credentials: %s", "yes" if config.HAS_CREDENTIALS else "no")
    uvicorn.run(app, host=config.HOST, port=config.PORT, log_level=config.LOG_LEVEL.lower())


if __name__ == "__main__":
    main()
