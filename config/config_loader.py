import os
from pathlib import Path

import yaml

# Central config loader. Simple singleton so the rest of the code can just do:
#   from config.config_loader import config
# YAML gives the defaults, environment variables win over them.

_TRUE = {"1", "true", "yes", "on"}


def _env(name, default=None):
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    return value.strip()


class Config:
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(Config, cls).__new__(cls)
            cls._instance._load_yaml_configs()
            cls._instance._set_values()
        return cls._instance

    @classmethod
    def reload(cls):
        """Drop the cached instance and re-read YAML + environment."""
        cls._instance = None
        return cls()

    def _load_yaml_configs(self):
        self.BASE_DIR = Path(__file__).resolve().parent.parent
        config_file = Path(_env("BRIDGE_CONFIG_FILE", Path(__file__).resolve().parent / 'bridge_config.yaml'))

        with open(config_file, 'r', encoding='utf-8') as f:
            self.bridge = yaml.safe_load(f) or {}

    def _set_values(self):
        opensearch = self.bridge.get('opensearch', {}) or {}
        firehose = self.bridge.get('firehose', {}) or {}
        aws = self.bridge.get('aws', {}) or {}
        gateway = self.bridge.get('gateway', {}) or {}
        diagnostics = self.bridge.get('diagnostics', {}) or {}
        logging_section = self.bridge.get('logging', {}) or {}

        # Search cluster
        self.OPENSEARCH_ENDPOINT = _env('OPENSEARCH_ENDPOINT', opensearch.get('endpoint'))
        self.OPENSEARCH_INDEX = _env('OPENSEARCH_INDEX', opensearch.get('index') or 'mydomain')
        self.OPENSEARCH_REQUEST_TIMEOUT = float(opensearch.get('request_timeout', 30))
        verify = _env('OPENSEARCH_VERIFY_CERTS', opensearch.get('verify_certs', True))
        self.OPENSEARCH_VERIFY_CERTS = verify if isinstance(verify, bool) else str(verify).lower() in _TRUE
        self.OPENSEARCH_SIGNING_SERVICE = opensearch.get('signing_service') or 'es'

        # Ingestion stream
        self.FIREHOSE_STREAM = _env('FIREHOSE_DELIVERY_STREAM_NAME', firehose.get('delivery_stream'))

        # AWS credentials are never stored in YAML
        self.AWS_REGION = _env('AWS_REGION', aws.get('region') or 'us-east-1')
        self.AWS_ACCESS_KEY_ID = _env('AWS_ACCESS_KEY_ID')
        self.AWS_SECRET_ACCESS_KEY = _env('AWS_SECRET_ACCESS_KEY')
        self.AWS_SESSION_TOKEN = _env('AWS_SESSION_TOKEN')

        # Gateway
        self.HOST = gateway.get('host', '0.0.0.0')
        self.PORT = int(_env('PORT', gateway.get('port', 3000)))
        self.ENVIRONMENT = _env('ENVIRONMENT', gateway.get('environment', 'production'))

        # Diagnostics
        self.TRANSPORT_TIMEOUT_MS = int(_env('DIAG_TRANSPORT_TIMEOUT_MS', diagnostics.get('transport_timeout_ms', 10000)))
        self.HANDSHAKE_TIMEOUT_MS = int(_env('DIAG_HANDSHAKE_TIMEOUT_MS', diagnostics.get('handshake_timeout_ms', 30000)))

        # Logging level fallback
        self.LOG_LEVEL = str(_env('LOG_LEVEL', logging_section.get('level', 'INFO'))).upper()

    @property
    def HAS_CREDENTIALS(self):
        return bool(self.AWS_ACCESS_KEY_ID and self.AWS_SECRET_ACCESS_KEY)

# Singleton instance
config = Config()
