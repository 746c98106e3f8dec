"""Per-customer cart storage in Redis.

Every operation takes the resolved customer id explicitly; nothing here reads
session state. A cart is a Redis hash mapping ``"<product_id>:<tier>"`` to a
quantity, refreshed to ``ttl_seconds`` on every write.
"""

from __future__ import annotations

import logging

from redis import Redis

from storefront.api.schemas.cart import CartItem

logger = logging.getLogger(__name__)

CART_PREFIX = "carts:"


def _line_key(product_id: int, tier: int) -> str:
    return f"{product_id}:{tier}"


class CartRepository:
    def __init__(self, redis_client: Redis, ttl_seconds: int):
        self.redis = redis_client
        self.ttl_seconds = ttl_seconds

    @staticmethod
    def _key(customer_id: int) -> str:
        return f"{CART_PREFIX}{customer_id}"

    def _touch(self, customer_id: int) -> None:
        self.redis.expire(self._key(customer_id), self.ttl_seconds)

    def get(self, customer_id: int) -> list[CartItem]:
        """Return the cart lines ordered by product then tier."""
        raw = self.redis.hgetall(self._key(customer_id)) or {}
        items = []
        for field, quantity in raw.items():
            if isinstance(field, bytes):
                field = field.decode()
            product_id, _, tier = field.partition(":")
            try:
                items.append(
                    CartItem(
                        product_id=int(product_id), tier=int(tier), quantity=int(quantity)
                    )
                )
            except ValueError:
                logger.warning(f"Dropping malformed cart line {field!r} for {customer_id}")
        return sorted(items, key=lambda item: (item.product_id, item.tier))

    def add_item(self, customer_id: int, item: CartItem) -> list[CartItem]:
        """Add ``item``; an existing line for the same product and tier grows."""
        self.redis.hincrby(
            self._key(customer_id), _line_key(item.product_id, item.tier), item.quantity
        )
        self._touch(customer_id)
        return self.get(customer_id)

    def set_quantity(
        self, customer_id: int, product_id: int, tier: int, quantity: int
    ) -> list[CartItem]:
        if quantity <= 0:
            return self.remove_item(customer_id, product_id, tier)
        self.redis.hset(self._key(customer_id), _line_key(product_id, tier), quantity)
        self._touch(customer_id)
        return self.get(customer_id)

    def remove_item(self, customer_id: int, product_id: int, tier: int) -> list[CartItem]:
        self.redis.hdel(self._key(customer_id), _line_key(product_id, tier))
        return self.get(customer_id)

    def clear(self, customer_id: int) -> None:
        self.redis.delete(self._key(customer_id))
