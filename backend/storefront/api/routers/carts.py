"""Per-customer cart endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Path, Response, status
from redis.exceptions import RedisError

from storefront.api.dependencies.carts import get_cart_repository
from storefront.api.schemas.cart import CartItem, CartQuantityUpdate, CartRead
from storefront.services.cart_repository import CartRepository

logger = logging.getLogger(__name__)

router = APIRouter()


def _unavailable(customer_id: int, exc: RedisError) -> HTTPException:
    logger.error(f"Cart store error for customer {customer_id}: {exc}", exc_info=True)
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Cart storage is unavailable",
    )


@router.get("/{customer_id}", summary="Fetch a customer's cart", response_model=CartRead)
async def get_cart(
    customer_id: int = Path(..., ge=1),
    carts: CartRepository = Depends(get_cart_repository),
) -> CartRead:
    try:
        return CartRead(customer_id=customer_id, items=carts.get(customer_id))
    except RedisError as e:
        raise _unavailable(customer_id, e) from e


@router.post(
    "/{customer_id}/items",
    summary="Add a product tier to the cart",
    response_model=CartRead,
)
async def add_cart_item(
    item: CartItem,
    customer_id: int = Path(..., ge=1),
    carts: CartRepository = Depends(get_cart_repository),
) -> CartRead:
    try:
        return CartRead(customer_id=customer_id, items=carts.add_item(customer_id, item))
    except RedisError as e:
        raise _unavailable(customer_id, e) from e


@router.put(
    "/{customer_id}/items/{product_id}/{tier}",
    summary="Set the quantity of a cart line",
    response_model=CartRead,
)
async def update_cart_item(
    payload: CartQuantityUpdate,
    customer_id: int = Path(..., ge=1),
    product_id: int = Path(..., ge=1),
    tier: int = Path(..., ge=1, le=3),
    carts: CartRepository = Depends(get_cart_repository),
) -> CartRead:
    try:
        items = carts.set_quantity(customer_id, product_id, tier, payload.quantity)
    except RedisError as e:
        raise _unavailable(customer_id, e) from e
    return CartRead(customer_id=customer_id, items=items)


@router.delete(
    "/{customer_id}/items/{product_id}/{tier}",
    summary="Remove a cart line",
    response_model=CartRead,
)
async def remove_cart_item(
    customer_id: int = Path(..., ge=1),
    product_id: int = Path(..., ge=1),
    tier: int = Path(..., ge=1, le=3),
    carts: CartRepository = Depends(get_cart_repository),
) -> CartRead:
    try:
        items = carts.remove_item(customer_id, product_id, tier)
    except RedisError as e:
        raise _unavailable(customer_id, e) from e
    return CartRead(customer_id=customer_id, items=items)


@router.delete("/{customer_id}", summary="Empty the cart")
async def clear_cart(
    customer_id: int = Path(..., ge=1),
    carts: CartRepository = Depends(get_cart_repository),
) -> Response:
    try:
        carts.clear(customer_id)
    except RedisError as e:
        raise _unavailable(customer_id, e) from e
    return Response(status_code=status.HTTP_204_NO_CONTENT)
