from flask import current_app
from redis import Redis


def get_redis_client() -> Redis:
    """Return the app's shared Redis client, creating it from REDIS_URL if missing."""
    client = getattr(current_app, "redis_client", None)
    if client is None:
        client = Redis.from_url(current_app.config["REDIS_URL"], decode_responses=True)
        current_app.redis_client = client
    return client
