from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from identity_service.features.auth.dependencies import get_current_user
from identity_service.features.auth.models import User
from identity_service.features.payments.schemas.payment_method import (
    PaymentMethodCreate,
    PaymentMethodUpdate,
)
from identity_service.features.payments.services.payment_method_service import (
    PaymentMethodService,
    to_response,
)
from identity_service.platform.db.session import get_db
from identity_service.platform.response import api_response

router = APIRouter(prefix="/users/{user_id}/payment-methods", tags=["Payment Methods"])


@router.get("", response_model=dict, summary="List payment methods")
async def list_payment_methods(
    user_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    methods = await PaymentMethodService(db).list_methods(user_id, current_user.id)
    return api_response(data=[to_response(m) for m in methods], message="Payment methods retrieved")


@router.post(
    "",
    response_model=dict,
    status_code=status.HTTP_201_CREATED,
    summary="Add a payment method",
    description="Body `details.kind` selects card, paypal, bizum or bank_transfer; sensitive fields are stored encrypted",
)
async def create_payment_method(
    user_id: str,
    request: PaymentMethodCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    method = await PaymentMethodService(db).create(user_id, current_user.id, request)
    return api_response(
        data=to_response(method),
        message="Payment method added",
        status_code=status.HTTP_201_CREATED,
    )


@router.patch("/{payment_method_id}", response_model=dict, summary="Update a payment method")
async def update_payment_method(
    user_id: str,
    payment_method_id: str,
    request: PaymentMethodUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    method = await PaymentMethodService(db).update(user_id, current_user.id, payment_method_id, request)
    return api_response(data=to_response(method), message="Payment method updated")


@router.delete("/{payment_method_id}", response_model=dict, summary="Delete a payment method")
async def delete_payment_method(
    user_id: str,
    payment_method_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await PaymentMethodService(db).delete(user_id, current_user.id, payment_method_id)
    return api_response(message="Payment method deleted")
