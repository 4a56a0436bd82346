from datetime import datetime, timezone

import redis
from fastapi import APIRouter, HTTPException
from sqlmodel import Session, text

from exam_portal.config import config
from exam_portal.models.database import engine, get_redis

health = APIRouter()


@health.get("/health")
async def health_check():
    """Basic health check endpoint"""
    return {
        "status": "healthy",
        "service": "exam-portal",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": config["environment"],
    }


@health.get("/health/detailed")
async def detailed_health_check():
    """Health check including the database and, when used, Redis"""
    health_status = {
        "status": "healthy",
        "service": "exam-portal",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": config["environment"],
        "checks": {},
    }

    try:
        with Session(engine) as session:
            result = session.exec(text("SELECT 1")).first()
            health_status["checks"]["database"] = "healthy" if result else "unhealthy"
    except Exception as e:
        health_status["checks"]["database"] = f"unhealthy: {str(e)}"
        health_status["status"] = "unhealthy"

    if config["stage_store"] == "redis":
        try:
            get_redis().ping()
            health_status["checks"]["redis"] = "healthy"
        except redis.RedisError as e:
            health_status["checks"]["redis"] = f"unhealthy: {str(e)}"
            health_status["status"] = "unhealthy"
    else:
        health_status["checks"]["redis"] = "not used"

    if health_status["status"] == "unhealthy":
        raise HTTPException(status_code=503, detail=health_status)

    return health_status
