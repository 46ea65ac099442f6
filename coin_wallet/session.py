from __future__ import annotations

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel
from sqlalchemy.orm import Session as DBSession

from .ledger import read_balance
from .models import ROLE_ADMIN, ROLE_USER, User


class Session(BaseModel):
    """Identity snapshot carried in the session token."""
    id: str
    name: str
    phone: str
    balance: Decimal = Decimal("0")
    role: str = ROLE_USER

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @classmethod
    def from_user(cls, u: User) -> "Session":
        return cls(id=u.id, name=u.name, phone=u.phone,
                   balance=u.balance or Decimal("0"), role=u.role or ROLE_USER)


class SessionHolder:
    """
    The authenticated identity for one request (or one client).

    Started on login/signup, cleared on logout. `changed` flips whenever the
    snapshot is replaced or its balance moves, so the HTTP layer knows to
    re-issue the token.
    """

    def __init__(self, session: Optional[Session] = None):
        self._session = session
        self.changed = False

    @property
    def current(self) -> Optional[Session]:
        return self._session

    def start(self, session: Session) -> Session:
        self._session = session
        self.changed = True
        return session

    def clear(self) -> None:
        self._session = None
        self.changed = True

    def is_active(self, user_id: str) -> bool:
        return self._session is not None and self._session.id == user_id

    def update_balance(self, user_id: str, balance: Decimal) -> None:
        if not self.is_active(user_id):
            return
        if self._session.balance != balance:
            self._session = self._session.model_copy(update={"balance": balance})
            self.changed = True

    def refresh(self, db: DBSession) -> Optional[Session]:
        """Re-read the cached balance from the store."""
        if self._session is None:
            return None
        self.update_balance(self._session.id, read_balance(db, self._session.id))
        return self._session


class AdminUnlockGesture:
    """
    Tap counter on the app logo: the fifth consecutive tap reveals the admin
    screen. Only reveals it; admin operations still check the role.
    One counter per client: the HTTP layer carries `count` in a signed cookie.
    """
    TAPS_REQUIRED = 5

    def __init__(self, count: int = 0):
        self.count = count if 0 <= count < self.TAPS_REQUIRED else 0

    def tap(self) -> bool:
        self.count += 1
        if self.count >= self.TAPS_REQUIRED:
            self.count = 0
            return True
        return False

    @property
    def remaining(self) -> int:
        return self.TAPS_REQUIRED - self.count

    def reset(self) -> None:
        self.count = 0
