import enum

from sqlalchemy import Column, Enum, ForeignKey, String

from identity_service.platform.db.base import BaseModel
from identity_service.platform.db.types import EncryptedString


class PaymentKind(str, enum.Enum):
    CARD = "card"
    PAYPAL = "paypal"
    BIZUM = "bizum"
    BANK_TRANSFER = "bank_transfer"


class PaymentMethod(BaseModel):
    __tablename__ = "payment_methods"

    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    kind = Column(
        Enum(PaymentKind, name="payment_kind", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )

    holder_name = Column(String(200), nullable=False)
    address = Column(String(255), nullable=True)
    country = Column(String(100), nullable=True)
    province = Column(String(100), nullable=True)
    postal_code = Column(String(20), nullable=True)

    # Ciphertext columns: base64 of nonce + payload + tag, hence the generous widths
    card_number = Column(EncryptedString(255), nullable=True)
    card_expiry = Column(EncryptedString(255), nullable=True)
    cvv = Column(EncryptedString(255), nullable=True)
    paypal_email = Column(EncryptedString(512), nullable=True)
    bizum_phone = Column(EncryptedString(255), nullable=True)
    iban = Column(EncryptedString(255), nullable=True)

    def __repr__(self):
        return f"<PaymentMethod(id={self.id}, user_id={self.user_id}, kind={self.kind})>"
