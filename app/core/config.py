import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent.parent

DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BASE_DIR}/grading_monitor.db")

# External grading server. Required for anything that talks to it.
GRADING_SERVER_URL = os.getenv("GRADING_SERVER_URL")
GRADING_HTTP_TIMEOUT_SECONDS = float(os.getenv("GRADING_HTTP_TIMEOUT_SECONDS", "30"))

# Task monitor
POLL_BATCH_SIZE = int(os.getenv("POLL_BATCH_SIZE", "10"))
POLL_LEASE_NAME = "task-monitor"
POLL_LEASE_SECONDS = int(os.getenv("POLL_LEASE_SECONDS", "300"))

# Statistics
PASSING_PERCENTAGE = 50.0

# Session logs
DEFAULT_LOG_LIMIT = 100
MAX_LOG_LIMIT = 500

# Auth is stubbed: every request acts as this user.
DEFAULT_USER_EMAIL = "default@example.com"
DEFAULT_USER_NAME = "Default User"
