from pydantic import BaseModel
from typing import List, Optional, Literal, Union
from datetime import datetime
from decimal import Decimal

OrderStatus = Literal["Pending", "Approved", "Rejected"]

# ---------- Auth ----------
class SignupIn(BaseModel):
    name: str
    phone: str
    password: str
    referral_code: Optional[str] = None

class LoginIn(BaseModel):
    phone: str
    password: str

class SessionOut(BaseModel):
    id: str
    name: str
    phone: str
    balance: Decimal
    role: str

class SignupOut(BaseModel):
    session: SessionOut
    notices: List[str] = []

class UpiIn(BaseModel):
    upi_id: str

# ---------- Users ----------
class UserOut(BaseModel):
    id: str
    name: str
    phone: str
    balance: Decimal = Decimal("0")
    has_purchased: bool = False
    role: str
    upi_id: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class BalanceAdjustIn(BaseModel):
    amount: Union[Decimal, str]                  # validated by the ledger
    direction: Literal["increase", "decrease"]

class BalanceOut(BaseModel):
    user_id: str
    balance: Decimal

# ---------- Packs / Orders ----------
class PackOut(BaseModel):
    name: str
    amount: Decimal
    fixed_reward: Decimal
    commission: Decimal
    total: Decimal
    income_percent: Decimal

class OrderOut(BaseModel):
    id: str
    user_id: str
    pack_name: str
    amount: Decimal
    total_return: Optional[Decimal] = None
    upi_id: str
    status: OrderStatus
    created_at: datetime
    processed_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class OrderDetailOut(OrderOut):
    payment_screenshot: str

# ---------- Withdrawals ----------
class WithdrawalIn(BaseModel):
    amount: Union[Decimal, str]
    bank_name: str
    account_number: str
    ifsc_code: str

class WithdrawalOut(BaseModel):
    id: str
    user_id: str
    amount: Decimal
    bank_name: str
    account_number: str
    ifsc_code: str
    status: OrderStatus
    created_at: datetime

    class Config:
        from_attributes = True

# ---------- Settings ----------
class SettingOut(BaseModel):
    setting_key: str
    setting_value: str
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

# ---------- Admin gesture ----------
class UnlockOut(BaseModel):
    unlocked: bool
    remaining: int
