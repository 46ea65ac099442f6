# admin.py
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Cookie, Depends, File, Response, UploadFile
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from .app_settings import set_payment_qr
from .auth import JWT_ALG, JWT_SECRET, cookie_kwargs, require_admin, write_session_cookie
from .db import get_db
from .ledger import adjust_balance
from .orders import ALL, approve_order, list_orders, reject_order
from .schemas import (
    BalanceAdjustIn, BalanceOut,
    OrderDetailOut, OrderOut,
    SettingOut, UnlockOut,
    UserOut, WithdrawalOut,
)
from .session import AdminUnlockGesture, SessionHolder
from .users import list_users
from .withdrawals import list_withdrawals

# Everything here is admin-only, except the logo-tap gesture, which only
# tells the client whether to show the admin screen.
router = APIRouter(prefix="/admin", tags=["admin"])

# ---------- Unlock gesture ----------

TAPS_COOKIE = "admin_taps"


def _gesture(taps: Optional[str]) -> AdminUnlockGesture:
    """Rebuild this client's counter from its cookie; anything unreadable is 0."""
    if not taps:
        return AdminUnlockGesture()
    try:
        claims = jwt.decode(taps, JWT_SECRET, algorithms=[JWT_ALG])
        return AdminUnlockGesture(int(claims.get("taps", 0)))
    except (JWTError, TypeError, ValueError):
        return AdminUnlockGesture()


def _write_gesture(resp: Response, g: AdminUnlockGesture) -> None:
    kw = cookie_kwargs()
    kw.pop("max_age")     # lives as long as the browser session
    if g.count == 0:
        resp.delete_cookie(key=TAPS_COOKIE, path=kw["path"], httponly=True,
                           samesite=kw["samesite"], secure=kw["secure"])
        return
    token = jwt.encode({"taps": g.count}, JWT_SECRET, algorithm=JWT_ALG)
    resp.set_cookie(key=TAPS_COOKIE, value=token, **kw)


@router.post("/unlock", response_model=UnlockOut)
def tap_logo(resp: Response, admin_taps: Optional[str] = Cookie(default=None)):
    g = _gesture(admin_taps)
    unlocked = g.tap()
    _write_gesture(resp, g)
    return UnlockOut(unlocked=unlocked, remaining=0 if unlocked else g.remaining)


@router.delete("/unlock", response_model=UnlockOut)
def reset_taps(resp: Response):
    """Navigating away resets the tap counter."""
    g = AdminUnlockGesture()
    _write_gesture(resp, g)
    return UnlockOut(unlocked=False, remaining=g.remaining)

# ---------- Orders ----------

@router.get("/orders", response_model=List[OrderDetailOut], dependencies=[Depends(require_admin)])
def admin_list_orders(status_filter: Optional[str] = ALL, db: Session = Depends(get_db)):
    """All orders newest first, with the payment screenshot for review."""
    return list_orders(db, status_filter)


@router.post("/orders/{order_id}/approve", response_model=OrderOut, dependencies=[Depends(require_admin)])
def admin_approve(order_id: str, db: Session = Depends(get_db)):
    return approve_order(db, order_id)


@router.post("/orders/{order_id}/reject", response_model=OrderOut, dependencies=[Depends(require_admin)])
def admin_reject(order_id: str, db: Session = Depends(get_db)):
    return reject_order(db, order_id)

# ---------- Users / balances ----------

@router.get("/users", response_model=List[UserOut], dependencies=[Depends(require_admin)])
def admin_list_users(db: Session = Depends(get_db)):
    return list_users(db)


@router.post("/users/{user_id}/balance", response_model=BalanceOut)
def admin_adjust_balance(
    user_id: str,
    payload: BalanceAdjustIn,
    resp: Response,
    holder: SessionHolder = Depends(require_admin),
    db: Session = Depends(get_db),
):
    new_balance = adjust_balance(db, user_id, payload.amount, payload.direction, holder=holder)
    if holder.changed:
        # admin adjusted their own account; keep the session token in step
        write_session_cookie(resp, holder)
    return BalanceOut(user_id=user_id, balance=new_balance)

# ---------- Settings / withdrawals ----------

@router.put("/payment-qr", response_model=SettingOut, dependencies=[Depends(require_admin)])
def admin_set_payment_qr(image: Optional[UploadFile] = File(None), db: Session = Depends(get_db)):
    data = image.file.read() if image is not None else None
    return set_payment_qr(db, data, image.content_type if image is not None else None)


@router.get("/withdrawals", response_model=List[WithdrawalOut], dependencies=[Depends(require_admin)])
def admin_list_withdrawals(status_filter: Optional[str] = ALL, db: Session = Depends(get_db)):
    return list_withdrawals(db, status_filter)
