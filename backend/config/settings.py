"""
Runtime settings for the stale-issue pipeline.

Values come from the environment (a local .env file is honoured). Every
setting has a production default so a bare environment still runs a cycle.
"""

import os
from dotenv import load_dotenv

load_dotenv()

# Database
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_SERVICE_KEY = os.getenv("SUPABASE_SERVICE_KEY")

# Issue tracker
GITHUB_API_URL = os.getenv("GITHUB_API_URL", "https://api.github.com")
GITHUB_OAUTH_TOKEN_URL = os.getenv(
    "GITHUB_OAUTH_TOKEN_URL", "https://github.com/login/oauth/access_token"
)
GITHUB_CLIENT_ID = os.getenv("GITHUB_CLIENT_ID")
GITHUB_CLIENT_SECRET = os.getenv("GITHUB_CLIENT_SECRET")
GITHUB_USER_AGENT = "StaleBot/1.0"

# Email
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
NOTIFICATION_FROM_EMAIL = os.getenv(
    "NOTIFICATION_FROM_EMAIL", "notifications@stalebot.dev"
)
FRONTEND_BASE_URL = os.getenv("FRONTEND_BASE_URL", "https://stalebot.dev")

# Check cycle
CHECK_INTERVAL_MINUTES = int(os.getenv("CHECK_INTERVAL_MINUTES", "60"))
SYNC_BATCH_SIZE = int(os.getenv("SYNC_BATCH_SIZE", "5"))
SYNC_BATCH_DELAY_SECONDS = float(os.getenv("SYNC_BATCH_DELAY_SECONDS", "1"))
FAILED_SYNC_MAX_RETRIES = int(os.getenv("FAILED_SYNC_MAX_RETRIES", "3"))
FAILED_SYNC_BASE_DELAY_SECONDS = float(
    os.getenv("FAILED_SYNC_BASE_DELAY_SECONDS", "2")
)

# Resilience
CIRCUIT_FAILURE_THRESHOLD = int(os.getenv("CIRCUIT_FAILURE_THRESHOLD", "5"))
CIRCUIT_RECOVERY_TIMEOUT_SECONDS = float(
    os.getenv("CIRCUIT_RECOVERY_TIMEOUT_SECONDS", "60")
)
RETRY_MAX_DELAY_SECONDS = float(os.getenv("RETRY_MAX_DELAY_SECONDS", "60"))

# Notifications
NOTIFICATION_DEDUP_HOURS = int(os.getenv("NOTIFICATION_DEDUP_HOURS", "24"))
BOUNCE_PAUSE_THRESHOLD = int(os.getenv("BOUNCE_PAUSE_THRESHOLD", "3"))
