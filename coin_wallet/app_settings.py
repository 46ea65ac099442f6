from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .auth import get_session_holder
from .db import get_db
from .errors import NotFoundError
from .models import PAYMENT_QR_KEY, AppSetting
from .orders import encode_screenshot
from .schemas import SettingOut
from .store import insert, store_errors

log = logging.getLogger(__name__)

router = APIRouter(prefix="/settings", tags=["settings"])


def get_setting(db: Session, key: str) -> Optional[AppSetting]:
    with store_errors(db):
        return db.get(AppSetting, key)


def put_setting(db: Session, key: str, value: str) -> AppSetting:
    with store_errors(db):
        row = db.get(AppSetting, key)
        if row is None:
            row = insert(db, AppSetting(setting_key=key, setting_value=value))
        else:
            row.setting_value = value
            row.updated_at = datetime.now(timezone.utc)
        db.commit()
        db.refresh(row)
    return row


def get_payment_qr(db: Session) -> Optional[AppSetting]:
    return get_setting(db, PAYMENT_QR_KEY)


def set_payment_qr(db: Session, image: Optional[bytes], content_type: Optional[str] = None) -> AppSetting:
    """Replace the shared payment QR shown on the Buy screen."""
    row = put_setting(db, PAYMENT_QR_KEY, encode_screenshot(image, content_type, "Please upload a QR image"))
    log.info("payment QR updated (%d bytes)", len(image))
    return row


@router.get("/payment-qr", response_model=SettingOut, dependencies=[Depends(get_session_holder)])
def payment_qr(db: Session = Depends(get_db)):
    row = get_payment_qr(db)
    if not row:
        raise NotFoundError("Payment QR has not been set")
    return row
