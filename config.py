"""
Configuration — loads settings from environment / .env file.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Paths
PROJECT_ROOT = Path(__file__).parent
STATE_DIR = Path(os.getenv("STATE_DIR", str(PROJECT_ROOT / "state")))

# Optional Postgres backing store for persisted client state
DATABASE_URL = os.getenv("DATABASE_URL", "")

# Identity provider (OpenID Connect client_credentials grant)
AUTH_BASE_URL = os.getenv("AUTH_BASE_URL", "https://login.arkane.network/auth")
AUTH_REALM = os.getenv("AUTH_REALM", "Arkane")

# Remote ledger service
API_BASE_URL = os.getenv("API_BASE_URL", "https://api-wallet.venly.io/api/v3")
REQUEST_TIMEOUT_SEC = float(os.getenv("REQUEST_TIMEOUT_SEC", "20"))

# Polling: 12 attempts every 5 seconds is a one-minute budget
POLL_INTERVAL_SEC = float(os.getenv("POLL_INTERVAL_SEC", "5"))
POLL_MAX_ATTEMPTS = int(os.getenv("POLL_MAX_ATTEMPTS", "12"))

# Refresh the bearer token when it has less than this many seconds left
TOKEN_REFRESH_MARGIN_SEC = float(os.getenv("TOKEN_REFRESH_MARGIN_SEC", "30"))

# Chains offered for contract deployment (static, never polled)
SUPPORTED_CHAINS = [
    c.strip() for c in os.getenv("SUPPORTED_CHAINS", "AVAC,BSC,ETHEREUM,MATIC,ARBITRUM").split(",")
    if c.strip()
]

# Logical names of the persisted state records
AUTH_STATE_KEY = "auth-storage"
LEDGER_STATE_KEY = "transaction-storage"
PROGRESS_STATE_KEY = "form-progress"

# How many user-visible notifications the API keeps around
NOTIFICATION_BACKLOG = 50
