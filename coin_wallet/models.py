from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Numeric, String, Text

from .db import Base

# Order / withdrawal lifecycle
PENDING = "Pending"
APPROVED = "Approved"
REJECTED = "Rejected"
STATUSES = (PENDING, APPROVED, REJECTED)

ROLE_USER = "user"
ROLE_ADMIN = "admin"

PAYMENT_QR_KEY = "payment_qr"


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"
    id = Column(String(16), primary_key=True, index=True)        # UID, e.g. DT4821
    name = Column(String, nullable=False)
    phone = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)               # bcrypt
    balance = Column(Numeric(12, 2), default=0)
    has_purchased = Column(Boolean, default=False, nullable=False)
    role = Column(String(16), default=ROLE_USER, nullable=False)  # user | admin
    upi_id = Column(String)
    referred_by = Column(String)
    created_at = Column(DateTime(timezone=True), default=_now_utc)


class Order(Base):
    __tablename__ = "orders"
    id = Column(String(40), primary_key=True, index=True)
    user_id = Column(String(16), ForeignKey("users.id"), index=True, nullable=False)
    pack_name = Column(String, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)              # credited on approval
    total_return = Column(Numeric(12, 2))                        # informational
    upi_id = Column(String, nullable=False)
    payment_screenshot = Column(Text, nullable=False)            # data:<mime>;base64,...
    status = Column(String(16), index=True, default=PENDING, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_now_utc, index=True)
    processed_at = Column(DateTime(timezone=True))


class AppSetting(Base):
    __tablename__ = "app_settings"
    setting_key = Column(String(64), primary_key=True)
    setting_value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_now_utc, onupdate=_now_utc)


class Withdrawal(Base):
    __tablename__ = "withdrawals"
    id = Column(String(40), primary_key=True, index=True)
    user_id = Column(String(16), ForeignKey("users.id"), index=True, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    bank_name = Column(String, nullable=False)
    account_number = Column(String, nullable=False)
    ifsc_code = Column(String, nullable=False)
    status = Column(String(16), index=True, default=PENDING, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_now_utc, index=True)
