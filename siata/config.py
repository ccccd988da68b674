"""
Configuration for the SIATA PM2.5 ingestion job.

Everything the job talks to is fixed: the upstream layer, the bucket and
its keys, the metric namespace. Only the knobs that drive and observe the
job (scheduler interval, log level) come from the environment.
"""

import os

from dotenv import load_dotenv

load_dotenv()

# ── Upstream (SIATA map service) ───────────────────────────────────────────────
SIATA_URL = "https://siata.gov.co/siata_nuevo/index.php/capa_service/consultar_capa_carga"
SIATA_LAYER_ID = "C_00000000000000000000602"

# The SIATA service is very slow, so timeouts are long.
REQUEST_TIMEOUT = 120.0    # seconds, whole request including body
CONNECT_TIMEOUT = 30.0     # seconds, TCP connect + TLS handshake
KEEPALIVE_EXPIRY = 30.0    # seconds

# ── Storage (S3) ───────────────────────────────────────────────────────────────
AWS_REGION = "us-east-1"
BUCKET = "siata.picoyplaca.org"
ACL = "public-read"
CONTENT_TYPE = "application/json"
JSON_KEY = "pm25.json"
JS_KEY = "data.js"
JS_PREFIX = "var data = "

# ── Metrics (CloudWatch) ───────────────────────────────────────────────────────
METRIC_NAMESPACE = "Station/2.5Meassurements"  # typo kept, dashboards depend on it
METRIC_NAME = "PM25"
METRIC_UNIT = "Count"
METRIC_DIMENSION = "StationName"

# ── Orchestration ──────────────────────────────────────────────────────────────
MAX_ATTEMPTS = 3
TIMEZONE = "America/Bogota"

POLL_INTERVAL = int(os.environ.get("POLL_INTERVAL_SECONDS", "300"))
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
