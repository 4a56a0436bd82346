"""Configuration loader for the exam portal with environment-specific support"""

import os
from pathlib import Path

from dotenv import load_dotenv

project_dir = Path(__file__).parent.parent.parent
env_path = project_dir / ".env"

# Load .env file if it exists. For local development only.
if env_path.exists():
    load_dotenv(env_path)

# Configuration dictionary - set once at initialization
config = {
    "database_url": os.getenv("DATABASE_URL", "sqlite:///./exam_portal.db"),
    "redis_url": os.getenv("REDIS_URL", "redis://localhost:6379/0"),
    # "redis" in deployed environments, "memory" for a single local process
    "stage_store": os.getenv("STAGE_STORE", "redis"),
    "port": int(os.getenv("PORT", "8080")),
    "log_level": os.getenv("LOG_LEVEL", "INFO"),
    "environment": os.getenv("ENVIRONMENT", "development"),
    "admin_api_key": os.getenv("ADMIN_API_KEY"),
    "mailgun_api_key": os.getenv("MAILGUN_API_KEY"),
    "mailgun_domain": os.getenv("MAILGUN_DOMAIN"),
    "sender_email": os.getenv("SENDER_EMAIL"),
    "bcrypt_rounds": int(os.getenv("BCRYPT_ROUNDS", "12")),
    # Registration workflow limits
    "stage_ttl_minutes": int(os.getenv("STAGE_TTL_MINUTES", "20")),
    "rate_window_minutes": int(os.getenv("RATE_WINDOW_MINUTES", "20")),
    "begin_send_ceiling": int(os.getenv("BEGIN_SEND_CEILING", "20")),
    "resend_ceiling": int(os.getenv("RESEND_CEILING", "3")),
    "max_verify_attempts": int(os.getenv("MAX_VERIFY_ATTEMPTS", "5")),
    "default_seats_per_day": int(os.getenv("DEFAULT_SEATS_PER_DAY", "40")),
    "cleanup_after_hours": int(os.getenv("CLEANUP_AFTER_HOURS", "24")),
}
