"""Database and Redis connection setup"""

import os

import redis
from sqlalchemy import create_engine
from sqlmodel import Session

from exam_portal.config import config

# Database URL from config
DATABASE_URL = config["database_url"]

if not DATABASE_URL:
    raise ValueError(
        "DATABASE_URL environment variable is not set. "
        "Make sure to set DATABASE_URL in the deployment environment or local .env file."
    )

# SQLite connections are shared across FastAPI's worker threads
connect_args = (
    {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
)

engine = create_engine(
    DATABASE_URL,
    echo=os.getenv("DEBUG", "false").lower() == "true",
    connect_args=connect_args,
)

# Create Redis client (singleton) with connection pool configuration
redis_client = redis.from_url(
    config["redis_url"],
    decode_responses=True,
    max_connections=20,  # Max connections in pool
    socket_connect_timeout=5,  # Connection timeout in seconds
    socket_keepalive=True,  # Enable TCP keepalive
    retry_on_timeout=True,  # Retry on timeout
)


def get_db():
    """Get database session"""
    with Session(engine) as session:
        yield session


def get_redis():
    """Get Redis client"""
    return redis_client
