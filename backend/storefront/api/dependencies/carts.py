"""Cart repository dependency."""

from functools import lru_cache

from redis import Redis

from storefront.core.config import get_settings
from storefront.services.cart_repository import CartRepository
from storefront.utils.redis_client import create_redis_client


@lru_cache
def _cart_redis() -> Redis:
    return create_redis_client(get_settings().redis_url, decode_responses=True)


def get_cart_repository() -> CartRepository:
    return CartRepository(_cart_redis(), get_settings().cart_ttl_seconds)
