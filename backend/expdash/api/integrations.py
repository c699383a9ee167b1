"""Service-to-service endpoints.

The traffic-assignment system polls the live feed to learn which
experiments to split traffic for. Authenticated with the shared integration
key in `x-api-key` and rate-limited per consumer.
"""
from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session
import redis

from expdash.config import get_settings
from expdash.database import get_db
from expdash.middleware.auth import verify_integration_key
from expdash.middleware.logging import get_logger
from expdash.schemas.feed import LiveFeedResponse
from expdash.services.live_feed import list_live_experiments
from expdash.services.rate_limiter import RateLimiter

router = APIRouter()
settings = get_settings()
logger = get_logger()

redis_client = redis.from_url(settings.redis_url)
rate_limiter = RateLimiter(redis_client)


def get_rate_limiter() -> RateLimiter:
    return rate_limiter


@router.get("/integrations/experiments", response_model=LiveFeedResponse)
async def live_experiments_feed(
    response: Response,
    consumer: str = Depends(verify_integration_key),
    limiter: RateLimiter = Depends(get_rate_limiter),
    db: Session = Depends(get_db)
):
    """
    All LIVE experiments with their variants and targeting.

    Example response:
        {"experiments": [{"id": "...", "name": "...", "variants": [...]}],
         "count": 1, "fetched_at": "2024-01-01T00:00:00"}
    """
    allowed, count = limiter.check_rate_limit(
        consumer,
        limit=settings.integration_rate_limit,
        window=settings.rate_limit_window
    )
    if not allowed:
        logger.warning("feed_rate_limit_exceeded", consumer=consumer, count=count)
        raise HTTPException(
            status_code=429,
            detail=f"Rate limit exceeded. Limit: {settings.integration_rate_limit} requests per window",
            headers={"X-RateLimit-Limit": str(settings.integration_rate_limit), "X-RateLimit-Remaining": "0"}
        )

    experiments = list_live_experiments(db)
    logger.info("live_feed_served", consumer=consumer, count=len(experiments))

    response.headers["X-RateLimit-Limit"] = str(settings.integration_rate_limit)
    response.headers["X-RateLimit-Remaining"] = str(limiter.get_remaining(
        consumer,
        limit=settings.integration_rate_limit,
        window=settings.rate_limit_window
    ))

    return LiveFeedResponse(
        experiments=experiments,
        count=len(experiments),
        fetched_at=datetime.utcnow()
    )
