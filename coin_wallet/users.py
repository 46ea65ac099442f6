# users.py
from __future__ import annotations

import logging
import os
import random
from typing import List, Optional, Tuple

from fastapi import APIRouter, Depends
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .auth import get_session_holder, hash_password, verify_password
from .db import get_db
from .errors import ConflictError, InvalidCredentialsError, NotFoundError, ValidationError
from .models import ROLE_ADMIN, ROLE_USER, User
from .schemas import UpiIn, UserOut
from .session import Session as WalletSession, SessionHolder
from .store import insert, select_rows, store_errors

log = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])

UID_PREFIX = "DT"
UID_ATTEMPTS = 5

REFERRAL_NOTICE = "Referral code recorded. Referral bonuses are not credited automatically."

# ---------- Helpers ----------

def _clean(val: Optional[str]) -> str:
    return (val or "").strip()


def generate_uid() -> str:
    """Human-readable UID: 2-letter prefix + 4 digits, e.g. DT4821."""
    return f"{UID_PREFIX}{random.randint(1000, 9999)}"


def _phone_taken(db: Session, phone: str) -> bool:
    return bool(select_rows(db, User, phone=phone))


def _insert_new_user(db: Session, phone: str, **fields) -> User:
    """Insert and commit a fresh zero-balance user under a newly drawn UID."""
    # UIDs are short: a taken id, seen up front or as a PK violation, means draw again.
    for attempt in range(UID_ATTEMPTS):
        uid = generate_uid()
        if db.get(User, uid) is not None:
            log.warning("uid %s already taken (attempt %d)", uid, attempt + 1)
            continue
        u = User(id=uid, phone=phone, balance=0, has_purchased=False, **fields)
        try:
            insert(db, u)
            db.commit()
            return u
        except IntegrityError:
            db.rollback()
            if _phone_taken(db, phone):
                raise ConflictError("Phone number already registered")
            log.warning("uid collision on %s (attempt %d)", uid, attempt + 1)
    raise ConflictError("Could not allocate a unique user id, please retry")

# ---------- Operations ----------

def signup(
    db: Session,
    holder: SessionHolder,
    name: str,
    phone: str,
    password: str,
    referral_code: Optional[str] = None,
) -> Tuple[WalletSession, List[str]]:
    """
    Register a user with balance 0 and start the holder on it.
    Returns the session plus informational notices for the client.
    """
    name, phone, password = _clean(name), _clean(phone), _clean(password)
    referral_code = _clean(referral_code) or None
    if not name or not phone or not password:
        raise ValidationError("Please fill in all required fields")

    password_hash = hash_password(password)

    with store_errors(db):
        if _phone_taken(db, phone):
            raise ConflictError("Phone number already registered")
        u = _insert_new_user(
            db,
            name=name,
            phone=phone,
            password_hash=password_hash,
            role=ROLE_USER,
            referred_by=referral_code,
        )
        db.refresh(u)

    notices = []
    if referral_code:
        log.info("user %s signed up with referral code %s", u.id, referral_code)
        notices.append(REFERRAL_NOTICE)
    log.info("new user %s", u.id)
    return holder.start(WalletSession.from_user(u)), notices


def login(db: Session, holder: SessionHolder, phone: str, password: str) -> WalletSession:
    phone, password = _clean(phone), _clean(password)
    if not phone or not password:
        raise ValidationError("Please enter your phone number and password")

    with store_errors(db):
        matches = select_rows(db, User, phone=phone)

    if len(matches) != 1 or not verify_password(password, matches[0].password_hash):
        raise InvalidCredentialsError("Invalid phone number or password")
    return holder.start(WalletSession.from_user(matches[0]))


def logout(holder: SessionHolder) -> None:
    holder.clear()


def list_users(db: Session) -> List[User]:
    with store_errors(db):
        return select_rows(db, User, order_by=User.created_at.desc())


def link_upi(db: Session, user_id: str, upi_id: str) -> User:
    upi_id = _clean(upi_id)
    if not upi_id:
        raise ValidationError("Please enter your UPI ID")
    with store_errors(db):
        u = db.get(User, user_id)
        if not u:
            raise NotFoundError(f"User {user_id} not found")
        u.upi_id = upi_id
        db.commit()
        db.refresh(u)
    return u


def bootstrap_admin(db: Session) -> Optional[User]:
    """
    Create or promote the admin account named by ADMIN_PHONE and
    ADMIN_PASSWORD_HASH (bcrypt) / ADMIN_PASSWORD (raw, dev only).
    """
    phone = _clean(os.getenv("ADMIN_PHONE"))
    pw_hash = os.getenv("ADMIN_PASSWORD_HASH", "")
    raw = os.getenv("ADMIN_PASSWORD", "")
    if not phone or not (pw_hash or raw):
        return None

    password_hash = pw_hash or hash_password(raw)

    with store_errors(db):
        found = select_rows(db, User, phone=phone)
        if found:
            u = found[0]
            u.role = ROLE_ADMIN
            u.password_hash = password_hash
            db.commit()
        else:
            u = _insert_new_user(db, phone=phone, name="Admin",
                                 password_hash=password_hash, role=ROLE_ADMIN)
        db.refresh(u)
    log.info("admin account %s ready", u.id)
    return u

# ---------- Routes ----------

@router.get("/me", response_model=UserOut)
def me(holder: SessionHolder = Depends(get_session_holder), db: Session = Depends(get_db)):
    with store_errors(db):
        u = db.get(User, holder.current.id)
    if not u:
        raise NotFoundError("User not found")
    return u


@router.put("/me/upi", response_model=UserOut)
def put_upi(
    payload: UpiIn,
    holder: SessionHolder = Depends(get_session_holder),
    db: Session = Depends(get_db),
):
    """Link a UPI handle to the signed-in account."""
    return link_upi(db, holder.current.id, payload.upi_id)
