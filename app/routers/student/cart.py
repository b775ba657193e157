from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Request, status, Path, Query

from app.schemas.cart_schemas import AddToCartRequest, CheckoutRequest
from app.services.cart_service import CartService, get_cart_service
from app.utils.responses import ResponseBuilder

cart_router = APIRouter()


@cart_router.post(
    "/",
    response_model=None,
    status_code=status.HTTP_201_CREATED,
    summary="Add a document to the cart",
)
async def add_to_cart(
    request: Request,
    body: AddToCartRequest,
    cart_service: CartService = Depends(get_cart_service),
):
    item = await cart_service.add_to_cart(body.user_id, body.doc_id, body.reason)
    return ResponseBuilder.success(
        request=request,
        data=item.model_dump(by_alias=True),
        message="Document added to cart successfully.",
        status_code=status.HTTP_201_CREATED,
    )


@cart_router.get(
    "/{user_id}",
    response_model=None,
    status_code=status.HTTP_200_OK,
    summary="Get the cart",
)
async def get_cart(
    request: Request,
    user_id: Annotated[int, Path(description="Student user ID")],
    cart_service: CartService = Depends(get_cart_service),
):
    items = await cart_service.get_cart(user_id)
    return ResponseBuilder.success(
        request=request,
        data=[i.model_dump(by_alias=True) for i in items],
        message=f"Retrieved {len(items)} cart item(s)",
    )


@cart_router.delete(
    "/items/{item_id}",
    response_model=None,
    status_code=status.HTTP_200_OK,
    summary="Remove a cart item",
)
async def remove_from_cart(
    request: Request,
    item_id: Annotated[int, Path(description="Cart item ID")],
    user_id: Annotated[Optional[int], Query(alias="userId")] = None,
    cart_service: CartService = Depends(get_cart_service),
):
    await cart_service.remove_from_cart(item_id, user_id=user_id)
    return ResponseBuilder.success(
        request=request,
        data={"itemId": item_id},
        message="Item removed from cart successfully.",
    )


@cart_router.post(
    "/checkout",
    response_model=None,
    status_code=status.HTTP_201_CREATED,
    summary="Check out the cart",
    description="Creates one request for all documents and empties the consumed cart lines, atomically.",
)
async def checkout(
    request: Request,
    body: CheckoutRequest,
    cart_service: CartService = Depends(get_cart_service),
):
    result = await cart_service.checkout(body.user_id, body.items)
    return ResponseBuilder.success(
        request=request,
        data=result.model_dump(by_alias=True),
        message="Checkout successful! One request created for all documents.",
        status_code=status.HTTP_201_CREATED,
    )
