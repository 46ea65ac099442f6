# coin_wallet/ledger.py
from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Literal, Union

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from .errors import NotFoundError, ValidationError
from .models import User
from .store import store_errors, update_rows

log = logging.getLogger(__name__)

Direction = Literal["increase", "decrease"]
_DIRECTIONS = {"increase", "decrease"}

ZERO = Decimal("0")
CENT = Decimal("0.01")
# Numeric(12, 2)
MAX_AMOUNT = Decimal("9999999999.99")


def parse_amount(value: Union[str, int, float, Decimal, None], what: str = "Amount") -> Decimal:
    """Positive decimal rounded to paise, or ValidationError."""
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{what} must be a number")
    if not amount.is_finite() or amount <= 0:
        raise ValidationError(f"{what} must be greater than 0")
    if amount > MAX_AMOUNT:
        raise ValidationError(f"{what} is too large")
    amount = amount.quantize(CENT, rounding=ROUND_HALF_UP)
    if amount <= 0:
        raise ValidationError(f"{what} must be at least {CENT}")
    return amount


def _get_user(db: Session, user_id: str) -> User:
    u = db.get(User, user_id)
    if not u:
        raise NotFoundError(f"User {user_id} not found")
    return u


def read_balance(db: Session, user_id: str) -> Decimal:
    """Current balance; an unset balance reads as zero."""
    with store_errors(db):
        u = _get_user(db, user_id)
        return Decimal(u.balance) if u.balance is not None else ZERO


def adjust_balance(
    db: Session,
    user_id: str,
    delta,
    direction: Direction,
    holder=None,
) -> Decimal:
    """
    Admin credit/debit. `decrease` floors at zero instead of going negative.
    The arithmetic runs in the UPDATE itself, so a concurrent approval credit
    is never overwritten. If `holder` is the adjusted user's own session its
    cached balance follows the stored value.
    """
    amount = parse_amount(delta)
    if direction not in _DIRECTIONS:
        raise ValidationError(f"Invalid direction '{direction}'. Allowed: increase, decrease.")

    current = func.coalesce(User.balance, 0)
    if direction == "increase":
        new_value = current + amount
    else:
        new_value = case((current - amount < 0, 0), else_=current - amount)

    with store_errors(db):
        if update_rows(db, User, {"id": user_id}, {"balance": new_value}) == 0:
            raise NotFoundError(f"User {user_id} not found")
        db.commit()

    new_balance = read_balance(db, user_id)
    log.info("balance %s for %s by %s: now %s", direction, user_id, amount, new_balance)
    if holder is not None:
        holder.update_balance(user_id, new_balance)
    return new_balance
