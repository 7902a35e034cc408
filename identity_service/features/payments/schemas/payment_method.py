import re
from datetime import datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, EmailStr, Field, field_validator

from identity_service.features.payments.models import PaymentKind


class CardDetails(BaseModel):
    kind: Literal["card"] = "card"
    card_number: str = Field(..., description="12-19 digits, spaces and dashes are ignored")
    card_expiry: str = Field(..., pattern=r"^(0[1-9]|1[0-2])/\d{2}$", description="MM/YY")
    cvv: str = Field(..., pattern=r"^\d{3,4}$")

    @field_validator("card_number")
    @classmethod
    def normalize_card_number(cls, v: str) -> str:
        digits = re.sub(r"[\s-]", "", v)
        if not re.fullmatch(r"\d{12,19}", digits):
            raise ValueError("Card number must contain 12 to 19 digits")
        return digits


class PaypalDetails(BaseModel):
    kind: Literal["paypal"] = "paypal"
    paypal_email: EmailStr


class BizumDetails(BaseModel):
    kind: Literal["bizum"] = "bizum"
    bizum_phone: str = Field(..., pattern=r"^\+?\d{9,15}$")


class BankTransferDetails(BaseModel):
    kind: Literal["bank_transfer"] = "bank_transfer"
    iban: str

    @field_validator("iban")
    @classmethod
    def normalize_iban(cls, v: str) -> str:
        iban = v.replace(" ", "").upper()
        if not re.fullmatch(r"[A-Z]{2}\d{2}[A-Z0-9]{11,30}", iban):
            raise ValueError("Invalid IBAN format")
        return iban


PaymentDetails = Annotated[
    Union[CardDetails, PaypalDetails, BizumDetails, BankTransferDetails],
    Field(discriminator="kind"),
]


class PaymentMethodCreate(BaseModel):
    holder_name: str = Field(..., min_length=1, max_length=200)
    address: Optional[str] = Field(None, max_length=255)
    country: Optional[str] = Field(None, max_length=100)
    province: Optional[str] = Field(None, max_length=100)
    postal_code: Optional[str] = Field(None, max_length=20)
    details: PaymentDetails

    class Config:
        json_schema_extra = {
            "example": {
                "holder_name": "Alice Liddell",
                "country": "ES",
                "details": {"kind": "bank_transfer", "iban": "ES9121000418450200051332"},
            }
        }


class PaymentMethodUpdate(BaseModel):
    holder_name: Optional[str] = Field(None, min_length=1, max_length=200)
    address: Optional[str] = Field(None, max_length=255)
    country: Optional[str] = Field(None, max_length=100)
    province: Optional[str] = Field(None, max_length=100)
    postal_code: Optional[str] = Field(None, max_length=20)
    details: Optional[PaymentDetails] = None


class PaymentMethodResponse(BaseModel):
    id: str
    kind: PaymentKind
    holder_name: str
    address: Optional[str] = None
    country: Optional[str] = None
    province: Optional[str] = None
    postal_code: Optional[str] = None
    card_last4: Optional[str] = None
    card_expiry: Optional[str] = None
    paypal_email: Optional[str] = None
    bizum_phone: Optional[str] = None
    iban: Optional[str] = None
    created_at: datetime
    updated_at: datetime
