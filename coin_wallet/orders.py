# ==========================================================
# coin_wallet/orders.py
# ==========================================================
"""
Buy orders and their reconciliation.

An order is created Pending with a payment screenshot as proof. An admin
moves it to Approved (crediting `amount` to the owner) or Rejected. Both
are terminal. Each transition is a conditional UPDATE on `status = Pending`,
so of two concurrent approvals only one matches a row; the other gets a
ConflictError and credits nothing.
"""
from __future__ import annotations

import base64
import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from .auth import get_session_holder
from .db import get_db
from .errors import ConflictError, NotFoundError, ValidationError
from .ledger import parse_amount
from .models import APPROVED, PENDING, REJECTED, STATUSES, Order, User
from .packs import TOKEN_PACKS, get_pack
from .schemas import OrderOut, PackOut
from .session import SessionHolder
from .store import insert, select_rows, store_errors, update_rows

log = logging.getLogger(__name__)

router = APIRouter(tags=["orders"])

ALL = "All"

# ==========================================================
# HELPERS
# ==========================================================

def new_order_id() -> str:
    return f"ORD{datetime.now().strftime('%Y%m%d')}{uuid.uuid4().hex[:8].upper()}"


def encode_screenshot(
    data: Optional[bytes],
    content_type: Optional[str] = None,
    missing: str = "Please upload payment screenshot",
) -> str:
    """Image bytes -> data URI, the form images are stored in."""
    if not data:
        raise ValidationError(missing)
    mime = content_type or "application/octet-stream"
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def normalize_status_filter(status_filter: Optional[str]) -> Optional[str]:
    """None means no filter. Matching is exact on the stored status."""
    if status_filter is None or status_filter == ALL:
        return None
    if status_filter not in STATUSES:
        raise ValidationError(
            f"Invalid status '{status_filter}'. Allowed: All, Pending, Approved, Rejected."
        )
    return status_filter


def _load(db: Session, order_id: str) -> Order:
    order = db.get(Order, order_id)
    if not order:
        raise NotFoundError(f"Order {order_id} not found")
    return order


def _transition(db: Session, order: Order, new_status: str) -> None:
    """Pending -> new_status as a compare-and-set; raises if it did not match."""
    if order.status != PENDING:
        raise ConflictError(f"Order {order.id} is already {order.status}")
    affected = update_rows(
        db, Order,
        {"id": order.id, "status": PENDING},
        {"status": new_status, "processed_at": datetime.now(timezone.utc)},
    )
    if affected == 0:
        log.warning("order %s: lost race moving to %s", order.id, new_status)
        raise ConflictError(f"Order {order.id} is no longer Pending")

# ==========================================================
# OPERATIONS
# ==========================================================

def submit_order(
    db: Session,
    user_id: str,
    pack_name: str,
    amount,
    total_return,
    upi_id: str,
    screenshot: Optional[bytes],
    content_type: Optional[str] = None,
) -> Order:
    upi_id = (upi_id or "").strip()
    if not upi_id:
        raise ValidationError("Please enter your UPI ID")
    encoded = encode_screenshot(screenshot, content_type)
    amount = parse_amount(amount)
    total = parse_amount(total_return, "Total return") if total_return is not None else None

    with store_errors(db):
        if db.get(User, user_id) is None:
            raise NotFoundError(f"User {user_id} not found")
        order = insert(db, Order(
            id=new_order_id(),
            user_id=user_id,
            pack_name=pack_name,
            amount=amount,
            total_return=total,
            upi_id=upi_id,
            payment_screenshot=encoded,
            status=PENDING,
            created_at=datetime.now(timezone.utc),
        ))
        db.commit()
        db.refresh(order)

    log.info("order %s submitted by %s: %s for %s", order.id, user_id, pack_name, amount)
    return order


def approve_order(db: Session, order_id: str) -> Order:
    """Pending -> Approved and credit the owner, committed together."""
    with store_errors(db):
        order = _load(db, order_id)
        amount = Decimal(order.amount)
        _transition(db, order, APPROVED)
        credited = update_rows(
            db, User,
            {"id": order.user_id},
            {"balance": func.coalesce(User.balance, 0) + amount, "has_purchased": True},
        )
        if credited == 0:
            raise NotFoundError(f"User {order.user_id} not found")
        db.commit()
        db.refresh(order)

    log.info("order %s approved; credited %s to %s", order_id, amount, order.user_id)
    return order


def reject_order(db: Session, order_id: str) -> Order:
    with store_errors(db):
        order = _load(db, order_id)
        _transition(db, order, REJECTED)
        db.commit()
        db.refresh(order)

    log.info("order %s rejected", order_id)
    return order


def list_orders_for_user(db: Session, user_id: str, status_filter: Optional[str] = ALL) -> List[Order]:
    wanted = normalize_status_filter(status_filter)
    eq = {"user_id": user_id}
    if wanted:
        eq["status"] = wanted
    with store_errors(db):
        return select_rows(db, Order, order_by=Order.created_at.desc(), **eq)


def list_orders(db: Session, status_filter: Optional[str] = ALL) -> List[Order]:
    wanted = normalize_status_filter(status_filter)
    eq = {"status": wanted} if wanted else {}
    with store_errors(db):
        return select_rows(db, Order, order_by=Order.created_at.desc(), **eq)

# ==========================================================
# ROUTES
# ==========================================================

@router.get("/packs", response_model=List[PackOut])
def packs():
    return [
        PackOut(name=p.name, amount=p.amount, fixed_reward=p.fixed_reward,
                commission=p.commission, total=p.total, income_percent=p.income_percent)
        for p in TOKEN_PACKS
    ]


@router.post("/orders", response_model=OrderOut, status_code=status.HTTP_201_CREATED)
def create_order(
    pack_name: str = Form(...),
    upi_id: str = Form(""),
    screenshot: Optional[UploadFile] = File(None),
    holder: SessionHolder = Depends(get_session_holder),
    db: Session = Depends(get_db),
):
    """Buy a pack: the order waits Pending until an admin checks the payment."""
    pack = get_pack(pack_name)
    data = screenshot.file.read() if screenshot is not None else None
    return submit_order(
        db,
        user_id=holder.current.id,
        pack_name=pack.name,
        amount=pack.amount,
        total_return=pack.total,
        upi_id=upi_id,
        screenshot=data,
        content_type=screenshot.content_type if screenshot is not None else None,
    )


@router.get("/orders", response_model=List[OrderOut])
def my_orders(
    status_filter: str = ALL,
    holder: SessionHolder = Depends(get_session_holder),
    db: Session = Depends(get_db),
):
    return list_orders_for_user(db, holder.current.id, status_filter)
