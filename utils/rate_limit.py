"""Rate limiting utilities using throttled-py"""
import os
from datetime import timedelta

from throttled import Throttled, RateLimiterType, store, rate_limiter

from core.config import MAX_IMAGE_FILE_SIZE_MB, PROCESSING_RATE_LIMIT_PER_HOUR, logger

# Initialize storage - Redis for production, MemoryStore for development
_storage_type = "memory"
try:
    redis_url = os.getenv("REDIS_URL", "").strip()
    if redis_url:
        # RedisStore expects the URL string, not a Redis client object
        storage = store.RedisStore(server=redis_url)
        _storage_type = "redis"
        logger.info("[rate_limit] Using Redis for rate limiting")
    else:
        storage = store.MemoryStore()
        logger.info("[rate_limit] REDIS_URL not set - using in-memory storage")
except Exception as ex:
    storage = store.MemoryStore()
    logger.warning(f"[rate_limit] Redis connection failed, using in-memory storage: {ex}")

# Enhancement requests per client per hour
processing_throttle = None
if PROCESSING_RATE_LIMIT_PER_HOUR > 0:
    processing_throttle = Throttled(
        using=RateLimiterType.FIXED_WINDOW.value,
        quota=rate_limiter.per_duration(timedelta(hours=1), limit=PROCESSING_RATE_LIMIT_PER_HOUR),
        store=storage,
    )

MAX_IMAGE_FILE_SIZE_BYTES = MAX_IMAGE_FILE_SIZE_MB * 1024 * 1024


def check_processing_rate_limit(client_key: str) -> tuple[bool, str]:
    """
    Check if processing request is allowed based on rate limits.

    Args:
        client_key: Client IP address (or other caller identity)

    Returns:
        Tuple of (allowed: bool, error_message: str)
    """
    if processing_throttle is None:
        return True, ""
    try:
        result = processing_throttle.limit(f"processing:{client_key}", cost=1)
        if result.limited:
            return False, f"Processing rate limit exceeded. You can enhance up to {PROCESSING_RATE_LIMIT_PER_HOUR} images per hour. Please try again later."
        return True, ""
    except Exception as ex:
        logger.warning(f"[rate_limit] Processing rate limit check failed: {ex}")
        # Fail open - allow processing if rate limiter fails
        return True, ""


def validate_file_size(size_bytes: int, filename: str = "") -> tuple[bool, str]:
    """
    Validate an uploaded image's size.

    Returns:
        Tuple of (valid: bool, error_message: str)
    """
    name_part = f" '{filename}'" if filename else ""
    if size_bytes > MAX_IMAGE_FILE_SIZE_BYTES:
        return False, f"Image file{name_part} too large. Maximum image file size is {MAX_IMAGE_FILE_SIZE_MB}MB."
    return True, ""
