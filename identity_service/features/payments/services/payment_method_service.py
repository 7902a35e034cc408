"""
Payment methods per account.

Each ``PaymentKind`` has exactly one ``KindHandler`` that writes its own
fields and renders them back. The map is checked against the enum at import
time, so a new kind without a handler fails on startup rather than falling
through to some default branch.
"""
from typing import Callable, Dict, List, NamedTuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from identity_service.features.auth.exceptions import ForbiddenError
from identity_service.features.payments.exceptions import (
    PaymentMethodMismatchError,
    PaymentMethodNotFoundError,
)
from identity_service.features.payments.models import PaymentKind, PaymentMethod
from identity_service.features.payments.schemas.payment_method import (
    BankTransferDetails,
    BizumDetails,
    CardDetails,
    PaymentMethodCreate,
    PaymentMethodResponse,
    PaymentMethodUpdate,
    PaypalDetails,
)
from identity_service.platform.logger import get_logger

logger = get_logger(__name__)

SENSITIVE_FIELDS = ("card_number", "card_expiry", "cvv", "paypal_email", "bizum_phone", "iban")


class KindHandler(NamedTuple):
    apply: Callable[[PaymentMethod, object], None]
    render: Callable[[PaymentMethod], dict]


def _clear_sensitive(method: PaymentMethod) -> None:
    for field in SENSITIVE_FIELDS:
        setattr(method, field, None)


def _apply_card(method: PaymentMethod, details: CardDetails) -> None:
    method.card_number = details.card_number
    method.card_expiry = details.card_expiry
    method.cvv = details.cvv


def _render_card(method: PaymentMethod) -> dict:
    return {
        "card_last4": method.card_number[-4:] if method.card_number else None,
        "card_expiry": method.card_expiry,
    }


def _apply_paypal(method: PaymentMethod, details: PaypalDetails) -> None:
    method.paypal_email = str(details.paypal_email)


def _apply_bizum(method: PaymentMethod, details: BizumDetails) -> None:
    method.bizum_phone = details.bizum_phone


def _apply_bank_transfer(method: PaymentMethod, details: BankTransferDetails) -> None:
    method.iban = details.iban


KIND_HANDLERS: Dict[PaymentKind, KindHandler] = {
    PaymentKind.CARD: KindHandler(_apply_card, _render_card),
    PaymentKind.PAYPAL: KindHandler(_apply_paypal, lambda m: {"paypal_email": m.paypal_email}),
    PaymentKind.BIZUM: KindHandler(_apply_bizum, lambda m: {"bizum_phone": m.bizum_phone}),
    PaymentKind.BANK_TRANSFER: KindHandler(_apply_bank_transfer, lambda m: {"iban": m.iban}),
}

_unhandled = set(PaymentKind) - set(KIND_HANDLERS)
if _unhandled:
    raise RuntimeError(f"Payment kinds without a handler: {sorted(k.value for k in _unhandled)}")


def to_response(method: PaymentMethod) -> PaymentMethodResponse:
    kind = PaymentKind(method.kind)
    return PaymentMethodResponse(
        id=method.id,
        kind=kind,
        holder_name=method.holder_name,
        address=method.address,
        country=method.country,
        province=method.province,
        postal_code=method.postal_code,
        created_at=method.created_at,
        updated_at=method.updated_at,
        **KIND_HANDLERS[kind].render(method),
    )


class PaymentMethodService:
    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def _ensure_owner(user_id: str, caller_id: str) -> None:
        if user_id != caller_id:
            logger.warning(f"User {caller_id} attempted to access payment methods of user {user_id}")
            raise ForbiddenError()

    async def _get_owned(self, user_id: str, payment_method_id: str) -> PaymentMethod:
        result = await self.db.execute(
            select(PaymentMethod).where(
                PaymentMethod.id == payment_method_id,
                PaymentMethod.user_id == user_id,
            )
        )
        method = result.scalar_one_or_none()
        if method is None:
            raise PaymentMethodNotFoundError()
        return method

    async def list_methods(self, user_id: str, caller_id: str) -> List[PaymentMethod]:
        self._ensure_owner(user_id, caller_id)
        result = await self.db.execute(
            select(PaymentMethod)
            .where(PaymentMethod.user_id == user_id)
            .order_by(PaymentMethod.created_at.asc())
        )
        return list(result.scalars().all())

    async def create(self, user_id: str, caller_id: str, request: PaymentMethodCreate) -> PaymentMethod:
        self._ensure_owner(user_id, caller_id)
        kind = PaymentKind(request.details.kind)
        method = PaymentMethod(
            user_id=user_id,
            kind=kind,
            holder_name=request.holder_name,
            address=request.address,
            country=request.country,
            province=request.province,
            postal_code=request.postal_code,
        )
        _clear_sensitive(method)
        KIND_HANDLERS[kind].apply(method, request.details)

        self.db.add(method)
        await self.db.commit()
        logger.info(f"Payment method {method.id} ({kind.value}) added for user {user_id}")
        return method

    async def update(
        self, user_id: str, caller_id: str, payment_method_id: str, request: PaymentMethodUpdate
    ) -> PaymentMethod:
        self._ensure_owner(user_id, caller_id)
        method = await self._get_owned(user_id, payment_method_id)

        for field in ("holder_name", "address", "country", "province", "postal_code"):
            if field in request.model_fields_set:
                value = getattr(request, field)
                if field == "holder_name" and value is None:
                    continue
                setattr(method, field, value)

        if request.details is not None:
            kind = PaymentKind(request.details.kind)
            if kind != PaymentKind(method.kind):
                raise PaymentMethodMismatchError()
            _clear_sensitive(method)
            KIND_HANDLERS[kind].apply(method, request.details)

        await self.db.commit()
        logger.info(f"Payment method {method.id} updated for user {user_id}")
        return method

    async def delete(self, user_id: str, caller_id: str, payment_method_id: str) -> None:
        self._ensure_owner(user_id, caller_id)
        method = await self._get_owned(user_id, payment_method_id)
        await self.db.delete(method)
        await self.db.commit()
        logger.info(f"Payment method {payment_method_id} deleted for user {user_id}")
