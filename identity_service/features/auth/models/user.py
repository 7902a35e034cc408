import enum

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Enum, Integer, String

from identity_service.platform.db.base import BaseModel
from identity_service.platform.db.types import EncryptedString


class AccountType(str, enum.Enum):
    STANDARD = "standard"
    CREATOR = "creator"


class User(BaseModel):
    __tablename__ = "users"
    __table_args__ = (
        # Every account keeps at least one way to sign in
        CheckConstraint(
            "password_hash IS NOT NULL OR allows_federated_login",
            name="ck_users_credential_path",
        ),
    )

    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=True)

    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    profile_picture_url = Column(String(500), nullable=True)
    account_type = Column(
        Enum(AccountType, name="account_type", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=AccountType.STANDARD,
    )

    is_active = Column(Boolean, nullable=False, default=True)
    is_email_verified = Column(Boolean, nullable=False, default=False)
    email_verified_at = Column(DateTime, nullable=True)
    verification_token = Column(String(64), unique=True, nullable=True, index=True)
    verification_token_expires_at = Column(DateTime, nullable=True)

    external_subject_id = Column(String(255), unique=True, nullable=True, index=True)
    allows_federated_login = Column(Boolean, nullable=False, default=True)

    recovery_code = Column(EncryptedString(255), nullable=True)
    recovery_code_expires_at = Column(DateTime, nullable=True)
    recovery_attempts = Column(Integer, nullable=False, default=0)

    last_login = Column(DateTime, nullable=True)

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email}, account_type={self.account_type})>"
