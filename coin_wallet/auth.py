# coin_wallet/auth.py
import os
import bcrypt
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

from jose import jwt, JWTError
from fastapi import Cookie, Depends, Header, HTTPException, Response, status
from sqlalchemy.orm import Session as DBSession

from .db import get_db
from .models import ROLE_ADMIN, User
from .session import Session, SessionHolder

# ─────────────────────────────────────────────────────────────────────────────
# Env config
# ─────────────────────────────────────────────────────────────────────────────

JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret")
JWT_ALG = "HS256"
# default ~7 days (in minutes)
JWT_EXPIRE_MIN = int(os.getenv("JWT_EXPIRE_MIN", "10080"))

BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))

SESSION_COOKIE = "session"


def _truthy(name: str) -> bool:
    v = os.getenv(name, "")
    return v not in ("", "0", "false", "False", "no", "No")


IS_PROD = (
    _truthy("RENDER")
    or bool(os.getenv("RENDER_EXTERNAL_URL"))
    or os.getenv("ENV", "").lower() in {"prod", "production"}
    or _truthy("FORCE_CROSS_SITE_COOKIES")
)


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


# ─────────────────────────────────────────────────────────────────────────────
# Passwords
# ─────────────────────────────────────────────────────────────────────────────

def hash_password(plain: str) -> str:
    return bcrypt.hashpw(plain.encode(), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode()


def verify_password(plain: str, hashed: str) -> bool:
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(plain.encode(), hashed.encode())
    except ValueError:
        # malformed hash in the row
        return False


# ─────────────────────────────────────────────────────────────────────────────
# JWT helpers
# ─────────────────────────────────────────────────────────────────────────────

def create_token(session: Session) -> str:
    """Signed JWT carrying the session snapshot."""
    iat = _now_utc()
    exp = iat + timedelta(minutes=JWT_EXPIRE_MIN)
    payload = {
        "sub": session.id,
        "name": session.name,
        "phone": session.phone,
        "balance": str(session.balance),
        "role": session.role,
        "iat": int(iat.timestamp()),
        "exp": int(exp.timestamp()),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALG)


def decode_token(token: str) -> Session:
    try:
        claims = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALG])
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid or expired session: {str(e)}",
        )
    try:
        return Session(
            id=claims["sub"],
            name=claims.get("name", ""),
            phone=claims.get("phone", ""),
            balance=Decimal(claims.get("balance", "0")),
            role=claims.get("role", "user"),
        )
    except (KeyError, ArithmeticError, ValueError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Malformed session")


def cookie_kwargs() -> dict:
    if IS_PROD:
        return dict(httponly=True, samesite="none", secure=True, path="/", max_age=JWT_EXPIRE_MIN * 60)
    return dict(httponly=True, samesite="lax", secure=False, path="/", max_age=JWT_EXPIRE_MIN * 60)


def write_session_cookie(resp: Response, holder: SessionHolder) -> Optional[str]:
    """Re-issue (or drop) the session cookie to match the holder. Returns the token."""
    if holder.current is None:
        kw = cookie_kwargs()
        resp.delete_cookie(key=SESSION_COOKIE, path=kw["path"], httponly=True,
                           samesite=kw["samesite"], secure=kw["secure"])
        return None
    token = create_token(holder.current)
    resp.set_cookie(key=SESSION_COOKIE, value=token, **cookie_kwargs())
    return token


# ─────────────────────────────────────────────────────────────────────────────
# Auth dependencies
# ─────────────────────────────────────────────────────────────────────────────

def require_auth(
    session: Optional[str] = Cookie(default=None),           # cookie "session"
    authorization: Optional[str] = Header(default=None),     # "Bearer <jwt>"
) -> Session:
    """
    Validate the session. Accepts either:
      - Header: Authorization: Bearer <jwt>  (wins when both are sent)
      - Cookie: session=<jwt>
    Returns the decoded Session; raises 401 on failure.
    """
    token = None

    if authorization:
        parts = authorization.strip().split()
        if len(parts) == 2 and parts[0].lower() == "bearer":
            token = parts[1]

    if not token:
        token = session

    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthenticated")

    return decode_token(token)


def get_session_holder(current: Session = Depends(require_auth)) -> SessionHolder:
    return SessionHolder(current)


def require_admin(
    holder: SessionHolder = Depends(get_session_holder),
    db: DBSession = Depends(get_db),
) -> SessionHolder:
    """The token claims admin AND the stored user still holds the role."""
    u = db.get(User, holder.current.id) if holder.current.is_admin else None
    if not u or u.role != ROLE_ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin role required")
    return holder
