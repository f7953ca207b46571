import logging
import redis
from fastapi import HTTPException, Request
from cfa_practice.core.config import settings

logger = logging.getLogger(__name__)

redis_client = redis.Redis.from_url(settings.REDIS_URL, decode_responses=True)

def rate_limit_key(scope: str, identifier: str) -> str:
    return f"rate_limit:{scope}:{identifier}"

def check_rate_limit(scope: str, identifier: str, limit: int, window: int) -> tuple[bool, int]:
    """Count a hit; the counter expires after `window` seconds without hits."""
    key = rate_limit_key(scope, identifier)
    try:
        pipe = redis_client.pipeline()
        pipe.incr(key, 1)
        pipe.expire(key, window)
        results = pipe.execute()
    except redis.RedisError as e:
        logger.error(f"Rate limit check error: {e}")
        return True, 0
    current_count = int(results[0])
    return current_count <= limit, current_count

def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"

def rate_limit(scope: str, limit: int, window: int):
    def checker(request: Request):
        if not settings.RATE_LIMIT_ENABLED:
            return
        allowed, count = check_rate_limit(scope, client_ip(request), limit, window)
        if not allowed:
            logger.warning(f"Rate limit exceeded for {scope} from {client_ip(request)} ({count}/{limit})")
            raise HTTPException(status_code=429, detail="Too many requests, please try again later")
    return checker
