#!/usr/bin/env python3
"""Exam Portal - applicant registration API"""

import redis
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from exam_portal.config import config
from exam_portal.logging_config import get_logger, setup_logging
from exam_portal.routers.admin import router as admin_router
from exam_portal.routers.health import health
from exam_portal.routers.registration import router as registration_router

# Configure logging (INFO -> stdout, WARNING/ERROR -> stderr)
setup_logging()
logger = get_logger(__name__)


app = FastAPI(
    title="Exam Portal",
    description="College entrance exam registration API - stage applicants behind an "
    "email verification code and assign them an exam session",
    version="1.0.0",
)

# Trust proxy headers from the load balancer terminating HTTPS
app.add_middleware(ProxyHeadersMiddleware, trusted_hosts="*")


@app.exception_handler(redis.RedisError)
async def store_unavailable_handler(request: Request, exc: redis.RedisError):
    logger.error(f"Expiring store unavailable on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=503,
        content={
            "error": "store_unavailable",
            "message": "Registration is temporarily unavailable. Please try again.",
        },
    )


app.include_router(health)
app.include_router(registration_router)
app.include_router(admin_router)


if __name__ == "__main__":
    port = config.get("port")
    logger.info(f"Starting Exam Portal on 0.0.0.0:{port}")
    logger.info("Health check available at /health")

    try:
        uvicorn.run(
            app, host="0.0.0.0", port=port, log_level=config["log_level"].lower()
        )
    except Exception as e:
        logger.error(f"Failed to start server: {e}")
        raise
