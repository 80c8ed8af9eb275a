"""Shared configuration for the COB backend.

This module centralizes environment variable access and default values
to prevent drift between modules.
"""

import os

# Database configuration
DB_PATH = os.getenv("DB_PATH", "./data/cob.db")

# Optional YAML/JSON file overriding COB policy limits
COB_POLICY_FILE = os.getenv("COB_POLICY_FILE", "")

# Rate limits for COB endpoints
COB_WRITE_RATE_LIMIT = os.getenv("COB_WRITE_RATE_LIMIT", "100/minute")
