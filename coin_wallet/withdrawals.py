from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from .auth import get_session_holder
from .db import get_db
from .errors import NotFoundError, ValidationError
from .ledger import ZERO, parse_amount
from .models import PENDING, User, Withdrawal
from .orders import ALL, normalize_status_filter
from .schemas import WithdrawalIn, WithdrawalOut
from .session import SessionHolder
from .store import insert, select_rows, store_errors

log = logging.getLogger(__name__)

router = APIRouter(prefix="/withdrawals", tags=["withdrawals"])

MIN_BALANCE = Decimal("500")
MIN_WITHDRAWAL = Decimal("500")
MAX_WITHDRAWAL = Decimal("3000")


def new_withdrawal_id() -> str:
    return f"WD{datetime.now().strftime('%Y%m%d')}{uuid.uuid4().hex[:8].upper()}"


def request_withdrawal(
    db: Session,
    user_id: str,
    amount,
    bank_name: str,
    account_number: str,
    ifsc_code: str,
) -> Withdrawal:
    """
    File a payout request. The balance is not debited here; the request
    stays Pending for an admin to settle outside the app.
    """
    amount = parse_amount(amount)
    bank_name = (bank_name or "").strip()
    account_number = (account_number or "").strip()
    ifsc_code = (ifsc_code or "").strip().upper()

    with store_errors(db):
        u = db.get(User, user_id)
        if not u:
            raise NotFoundError(f"User {user_id} not found")
        balance = Decimal(u.balance) if u.balance is not None else ZERO

        if not u.has_purchased:
            raise ValidationError("Buy at least 1 order first to enable withdrawals")
        if balance < MIN_BALANCE:
            raise ValidationError(f"Minimum balance of ₹{MIN_BALANCE} required for withdrawal")
        if amount < MIN_WITHDRAWAL or amount > MAX_WITHDRAWAL:
            raise ValidationError(
                f"Withdrawal amount must be between ₹{MIN_WITHDRAWAL} and ₹{MAX_WITHDRAWAL}"
            )
        if amount > balance:
            raise ValidationError("Insufficient balance")
        if not bank_name or not account_number or not ifsc_code:
            raise ValidationError("Please fill in all bank details")

        w = insert(db, Withdrawal(
            id=new_withdrawal_id(),
            user_id=user_id,
            amount=amount,
            bank_name=bank_name,
            account_number=account_number,
            ifsc_code=ifsc_code,
            status=PENDING,
            created_at=datetime.now(timezone.utc),
        ))
        db.commit()
        db.refresh(w)

    log.info("withdrawal %s requested by %s for %s", w.id, user_id, amount)
    return w


def list_withdrawals_for_user(db: Session, user_id: str, status_filter: Optional[str] = ALL) -> List[Withdrawal]:
    wanted = normalize_status_filter(status_filter)
    eq = {"user_id": user_id}
    if wanted:
        eq["status"] = wanted
    with store_errors(db):
        return select_rows(db, Withdrawal, order_by=Withdrawal.created_at.desc(), **eq)


def list_withdrawals(db: Session, status_filter: Optional[str] = ALL) -> List[Withdrawal]:
    wanted = normalize_status_filter(status_filter)
    eq = {"status": wanted} if wanted else {}
    with store_errors(db):
        return select_rows(db, Withdrawal, order_by=Withdrawal.created_at.desc(), **eq)


@router.post("", response_model=WithdrawalOut, status_code=status.HTTP_201_CREATED)
def create_withdrawal(
    payload: WithdrawalIn,
    holder: SessionHolder = Depends(get_session_holder),
    db: Session = Depends(get_db),
):
    return request_withdrawal(
        db, holder.current.id, payload.amount,
        payload.bank_name, payload.account_number, payload.ifsc_code,
    )


@router.get("", response_model=List[WithdrawalOut])
def my_withdrawals(
    status_filter: str = ALL,
    holder: SessionHolder = Depends(get_session_holder),
    db: Session = Depends(get_db),
):
    return list_withdrawals_for_user(db, holder.current.id, status_filter)
