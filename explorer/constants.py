from __future__ import annotations

import logging

LOGGER = logging.getLogger("explorer.client")
APP_VERSION = "0.1.0"

STATE_NAMESPACE = "explorer-session"
DEFAULT_API_URL = "http://127.0.0.1:8080/api/v1"
DEFAULT_STATE_PATH = ".explorer-state.json"
DEFAULT_TIMEOUT_SECONDS = 30.0

DEFAULT_PAGE_SIZE = 100
MIN_PAGE_SIZE = 10
MAX_PAGE_SIZE = 1000

MAX_REQUEST_ATTEMPTS = 2
ERROR_BODY_LOG_LIMIT = 1000
